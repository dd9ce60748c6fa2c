"""Short generated explanations of why a candidate suits the requester."""

from __future__ import annotations

import asyncio
import logging
from typing import Protocol, Sequence

from app.matching.domain.models import Member, RankedCandidate
from app.obs import metrics as obs_metrics

logger = logging.getLogger(__name__)


class ReasonGenerator(Protocol):
	async def generate(self, requester: Member, candidate: RankedCandidate) -> str:
		...


class NoopReasonGenerator(ReasonGenerator):
	"""Fallback generator that never explains anything."""

	async def generate(self, requester: Member, candidate: RankedCandidate) -> str:
		return ""


async def _one(generator: ReasonGenerator, requester: Member, candidate: RankedCandidate, timeout: float) -> str:
	return await asyncio.wait_for(generator.generate(requester, candidate), timeout=timeout)


async def generate_reasons(
	generator: ReasonGenerator,
	requester: Member,
	candidates: Sequence[RankedCandidate],
	*,
	timeout: float,
) -> list[str]:
	"""Generate one reason per candidate concurrently.

	Each candidate succeeds or fails on its own: a provider error or timeout for one
	candidate yields "" in its slot and leaves the others untouched. Output order
	matches input order.
	"""
	if not candidates:
		return []
	results = await asyncio.gather(
		*(_one(generator, requester, candidate, timeout) for candidate in candidates),
		return_exceptions=True,
	)
	reasons: list[str] = []
	for candidate, result in zip(candidates, results):
		if isinstance(result, BaseException):
			if isinstance(result, asyncio.CancelledError):
				raise result
			obs_metrics.inc_match_reason("timeout" if isinstance(result, asyncio.TimeoutError) else "error")
			logger.info(
				"match reason unavailable",
				extra={"candidate_id": candidate.user_id, "error": type(result).__name__},
			)
			reasons.append("")
			continue
		obs_metrics.inc_match_reason("ok" if result else "empty")
		reasons.append((result or "").strip())
	return reasons
