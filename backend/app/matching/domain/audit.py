"""Audit helpers for match requests, connections and suppressions."""

from __future__ import annotations

from typing import Dict

from app.infra.redis import redis_client
from app.obs import metrics as obs_metrics


async def log_request_event(event: str, fields: Dict[str, str]) -> None:
	payload = {"event": event, **fields}
	await redis_client.xadd("x:match_requests.events", payload)


async def log_suppression_event(event: str, fields: Dict[str, str]) -> None:
	payload = {"event": event, **fields}
	await redis_client.xadd("x:suppressions.events", payload)


def inc_request_sent(result: str) -> None:
	obs_metrics.inc_match_request_sent(result)


def inc_request_reject(reason: str) -> None:
	obs_metrics.inc_match_request_reject(reason)


def inc_connection(via: str) -> None:
	obs_metrics.inc_connection_created(via)


def inc_suppression(action: str) -> None:
	obs_metrics.inc_suppression(action)


async def log_membership_event(event: str, fields: Dict[str, str]) -> None:
	payload = {"event": event, **fields}
	await redis_client.xadd("x:memberships.events", payload)


def inc_membership_exit(result: str) -> None:
	obs_metrics.inc_membership_exit(result)
