"""Similarity ranking over the embedded members of a group."""

from __future__ import annotations

from typing import Protocol, Sequence

import numpy as np

from app.matching.domain.models import RankedCandidate
from app.matching.domain.repository import InMemoryMatchingRepository


class Ranker(Protocol):
	"""Nearest-neighbour search scoped to one group.

	Results are ordered by similarity descending, ties broken by user_id ascending,
	and never include the querying user or members without an embedding.
	"""

	async def rank(
		self,
		group_id: str,
		query: Sequence[float],
		*,
		exclude_user_id: str,
		limit: int,
	) -> list[RankedCandidate]:
		...


def sort_candidates(candidates: list[RankedCandidate]) -> list[RankedCandidate]:
	return sorted(candidates, key=lambda c: (-c.similarity, c.user_id))


class InMemoryRanker(Ranker):
	"""Brute-force cosine similarity over the in-memory repository."""

	def __init__(self, repository: InMemoryMatchingRepository) -> None:
		self._repo = repository

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
		members = [
			m
			for m in self._repo.group_members(group_id)
			if m.embedding is not None and m.user_id != exclude_user_id
		]
		if not members:
			return []
		matrix = np.asarray([m.embedding for m in members], dtype=np.float64)
		vector = np.asarray(query, dtype=np.float64)
		norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(vector)
		with np.errstate(divide="ignore", invalid="ignore"):
			scores = np.where(norms > 0, matrix @ vector / norms, 0.0)
		candidates = [
			RankedCandidate(
				user_id=member.user_id,
				profile=dict(member.profile),
				similarity=float(score),
				full_name=member.full_name,
			)
			for member, score in zip(members, scores)
		]
		return sort_candidates(candidates)[:limit]
