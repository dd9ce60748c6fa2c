"""Resolve which members must never appear in a user's match feed."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Optional

from app.matching.domain.repository import MatchingRepository


async def resolve_exclusions(
	repo: MatchingRepository,
	group_id: str,
	user_id: str,
	*,
	now: Optional[datetime] = None,
) -> frozenset[str]:
	"""Self, active suppressions, anyone already requested, and every connection.

	Computed fresh on each call; the three lookups run concurrently.
	"""
	now = now or datetime.now(timezone.utc)
	hidden, requested, connected = await asyncio.gather(
		repo.list_active_suppression_targets(group_id, user_id, now=now),
		repo.list_requested_targets(group_id, user_id),
		repo.list_connected_users(group_id, user_id),
	)
	return frozenset({user_id, *hidden, *requested, *connected})
