"""Assemble a paginated, explained match feed for one member."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

from app.matching.domain.exceptions import ProfileIncomplete
from app.matching.domain.models import FeedEntry, MatchFeed, Member, RankedCandidate
from app.matching.domain.normalizer import clean_tags
from app.matching.domain.ranker import Ranker
from app.matching.domain.reasons import ReasonGenerator, generate_reasons
from app.obs import metrics as obs_metrics

logger = logging.getLogger(__name__)

ExclusionLoader = Callable[[], Awaitable[frozenset[str]]]


def _filter(candidates: list[RankedCandidate], excluded: frozenset[str]) -> list[RankedCandidate]:
	return [c for c in candidates if c.user_id not in excluded]


async def build_match_feed(
	requester: Member,
	*,
	ranker: Ranker,
	load_exclusions: ExclusionLoader,
	reasons: ReasonGenerator,
	offset: int,
	limit: int,
	reason_limit: int,
	overfetch: int,
	reason_timeout: float,
) -> MatchFeed:
	"""Rank, filter, paginate and explain candidates for ``requester``.

	The ranker is over-fetched and exclusions are applied afterwards. When the
	filtered list cannot fill the requested page and the ranker returned a full
	batch, the batch size doubles until the page fills or the group is exhausted.
	Only the first ``reason_limit`` rows of the first page get a generated reason.
	"""
	if requester.embedding is None:
		raise ProfileIncomplete()
	if offset < 0 or limit <= 0:
		raise ValueError("offset must be >= 0 and limit must be > 0")

	group_id = requester.group_id
	wanted = offset + limit + 1
	fetch = max(overfetch, wanted)

	excluded, ranked = await asyncio.gather(
		load_exclusions(),
		ranker.rank(group_id, requester.embedding, exclude_user_id=requester.user_id, limit=fetch),
	)
	filtered = _filter(ranked, excluded)
	while len(filtered) < wanted and len(ranked) >= fetch:
		fetch *= 2
		obs_metrics.inc_feed_refetch()
		logger.info("match feed refetch", extra={"fetch": fetch, "excluded": len(excluded)})
		ranked = await ranker.rank(group_id, requester.embedding, exclude_user_id=requester.user_id, limit=fetch)
		filtered = _filter(ranked, excluded)

	page = filtered[offset : offset + limit]
	texts: list[str] = [""] * len(page)
	if offset == 0 and reason_limit > 0 and page:
		head = page[:reason_limit]
		texts[: len(head)] = await generate_reasons(reasons, requester, head, timeout=reason_timeout)

	return MatchFeed(
		entries=[FeedEntry(candidate=c, match_reason=text) for c, text in zip(page, texts)],
		has_more=len(filtered) > offset + limit,
		offset=offset,
		limit=limit,
		looking_for=clean_tags(requester.profile.get("looking_for")),
		offering=clean_tags(requester.profile.get("offering")),
	)
