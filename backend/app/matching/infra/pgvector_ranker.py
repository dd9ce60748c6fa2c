"""pgvector-backed similarity ranker."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Sequence
from uuid import UUID

import asyncpg
import numpy as np

from app.matching.domain.exceptions import RankerFailure
from app.matching.domain.models import RankedCandidate
from app.matching.domain.ranker import Ranker, sort_candidates
from app.obs import metrics as obs_metrics
from app.settings import settings

logger = logging.getLogger(__name__)

# exact scan: the user_id tie-break keeps pages stable across calls
_RANK_SQL = """
SELECT m.user_id, p.full_name, m.profile_data, 1 - (m.embedding <=> $2) AS similarity
FROM group_memberships m
LEFT JOIN profiles p ON p.id = m.user_id
WHERE m.group_id = $1
	AND m.embedding IS NOT NULL
	AND m.user_id <> $3
ORDER BY m.embedding <=> $2, m.user_id
LIMIT $4
"""


class PgvectorRanker(Ranker):
	"""One cosine-distance query per call; failures are reported, never retried."""

	def __init__(self, pool: asyncpg.Pool, *, timeout: float | None = None) -> None:
		self._pool = pool
		self._timeout = timeout or settings.ranker_timeout_seconds

	async def rank(
		self,
		group_id: str,
		query: Sequence[float],
		*,
		exclude_user_id: str,
		limit: int,
	) -> list[RankedCandidate]:
		if limit <= 0:
			return []
		started = time.perf_counter()
		try:
			rows = await self._pool.fetch(
				_RANK_SQL,
				UUID(group_id),
				np.asarray(query, dtype=np.float32),
				UUID(exclude_user_id),
				limit,
				timeout=self._timeout,
			)
		except asyncio.TimeoutError:
			obs_metrics.inc_ranker_failure("timeout")
			logger.warning("ranker query timed out", extra={"group_id": group_id, "limit": limit})
			raise RankerFailure("ranker_timeout") from None
		except (asyncpg.PostgresError, OSError) as exc:
			obs_metrics.inc_ranker_failure("datastore")
			logger.warning("ranker query failed", extra={"group_id": group_id, "error": type(exc).__name__})
			raise RankerFailure() from exc
		finally:
			obs_metrics.observe_ranker(time.perf_counter() - started)
		candidates = [
			RankedCandidate(
				user_id=str(row["user_id"]),
				profile=dict(row["profile_data"] or {}),
				similarity=float(row["similarity"]),
				full_name=row["full_name"],
			)
			for row in rows
		]
		return sort_candidates(candidates)
