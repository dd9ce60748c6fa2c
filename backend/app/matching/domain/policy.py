"""Rate limits and guard checks for match requests and hides."""

from __future__ import annotations

from datetime import datetime, timezone

from app.infra.rate_limit import hit
from app.matching.domain.exceptions import MatchingRateLimitExceeded, NotAMember, SelfTarget, TargetNotMember
from app.matching.domain.models import (
	HIDE_MAX_DAYS,
	HIDE_PER_MINUTE,
	MATCH_REQUEST_PER_DAY,
	MATCH_REQUEST_PER_MINUTE,
	Member,
)


async def enforce_request_limits(user_id: str) -> None:
	now = datetime.now(timezone.utc)
	per_min_key = f"rl:match_request:send:{user_id}:{now.strftime('%Y%m%d%H%M')}"
	if await hit(per_min_key, 60) > MATCH_REQUEST_PER_MINUTE:
		raise MatchingRateLimitExceeded("per_minute")

	per_day_key = f"rl:match_request:daily:{user_id}:{now.strftime('%Y%m%d')}"
	if await hit(per_day_key, 86_400) > MATCH_REQUEST_PER_DAY:
		raise MatchingRateLimitExceeded("per_day")


async def enforce_hide_limits(user_id: str) -> None:
	now = datetime.now(timezone.utc)
	key = f"rl:hide:{user_id}:{now.strftime('%Y%m%d%H%M')}"
	if await hit(key, 60) > HIDE_PER_MINUTE:
		raise MatchingRateLimitExceeded("per_minute")


def guard_not_self(user_id: str, target_id: str) -> None:
	if str(user_id) == str(target_id):
		raise SelfTarget()


def guard_hide_days(days: int) -> int:
	if days < 1 or days > HIDE_MAX_DAYS:
		raise ValueError(f"days must be between 1 and {HIDE_MAX_DAYS}")
	return days


def require_member(member: Member | None) -> Member:
	if member is None:
		raise NotAMember()
	return member


def require_target(member: Member | None) -> Member:
	if member is None:
		raise TargetNotMember()
	return member
