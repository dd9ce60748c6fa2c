"""Persistence interface for group matching plus an in-memory implementation."""

from __future__ import annotations

import asyncio
import uuid
from datetime import datetime, timezone
from typing import Any, Optional, Protocol, Sequence

from app.matching.domain.exceptions import AlreadyConnected, DuplicateRequest, LastAdmin, NotAMember, RequestNotFound
from app.matching.domain.models import (
	Connection,
	GroupStats,
	LeaveOutcome,
	MatchRequest,
	MatchRequestStatus,
	Member,
	MemberRole,
	RequestOutcome,
	Suppression,
	ordered_pair,
)


class MatchingRepository(Protocol):
	async def get_member(self, group_id: str, user_id: str) -> Member | None:
		...

	async def get_members(self, group_id: str, user_ids: Sequence[str]) -> dict[str, Member]:
		...

	async def save_profile(
		self,
		group_id: str,
		user_id: str,
		profile: dict[str, Any],
		embedding: Optional[list[float]],
	) -> Member:
		...

	async def list_active_suppression_targets(self, group_id: str, user_id: str, *, now: datetime) -> list[str]:
		...

	async def list_requested_targets(self, group_id: str, user_id: str) -> list[str]:
		...

	async def list_connected_users(self, group_id: str, user_id: str) -> list[str]:
		...

	async def are_connected(self, group_id: str, user_a: str, user_b: str) -> bool:
		...

	async def create_match_request(self, group_id: str, requester_id: str, target_id: str) -> RequestOutcome:
		"""Insert requester->target; on a pending reverse request, connect both atomically."""
		...

	async def list_incoming_requests(self, group_id: str, user_id: str) -> list[MatchRequest]:
		...

	async def accept_match_request(self, group_id: str, request_id: str, target_id: str) -> tuple[MatchRequest, Connection]:
		...

	async def upsert_suppression(
		self,
		group_id: str,
		user_id: str,
		hidden_id: str,
		hidden_until: datetime,
	) -> Suppression:
		...

	async def delete_suppression(self, group_id: str, user_id: str, hidden_id: str) -> bool:
		...

	async def list_connections(self, group_id: str, user_id: str) -> list[Connection]:
		...

	async def list_members_missing_embedding(
		self,
		group_id: str | None,
		*,
		after_id: str | None,
		limit: int,
	) -> list[Member]:
		"""Members without an embedding ordered by membership id, keyset-paginated."""
		...

	async def set_embedding_if_unchanged(
		self,
		group_id: str,
		user_id: str,
		embedding: list[float],
		*,
		expected_updated_at: datetime,
	) -> bool:
		...

	async def leave_group(self, group_id: str, user_id: str) -> LeaveOutcome:
		"""Remove a membership and everything it touches in the group, both directions.

		Raises LastAdmin when the user is the only admin and others remain. The group
		itself is deleted once its last member leaves.
		"""
		...

	async def group_stats(self, group_id: str, *, since: datetime) -> GroupStats:
		...


def _now() -> datetime:
	return datetime.now(timezone.utc)


class InMemoryMatchingRepository(MatchingRepository):
	"""Dictionary-backed repository used in development and tests."""

	def __init__(self) -> None:
		self.members: dict[tuple[str, str], Member] = {}
		self.requests: dict[str, MatchRequest] = {}
		self.connections: dict[str, Connection] = {}
		self.suppressions: dict[tuple[str, str, str], Suppression] = {}
		self._lock = asyncio.Lock()

	def add_member(
		self,
		group_id: str,
		user_id: str,
		*,
		profile: Optional[dict[str, Any]] = None,
		embedding: Optional[list[float]] = None,
		role: MemberRole = MemberRole.MEMBER,
		full_name: Optional[str] = None,
		email: Optional[str] = None,
	) -> Member:
		now = _now()
		member = Member(
			id=str(uuid.uuid4()),
			group_id=group_id,
			user_id=user_id,
			role=role,
			profile=dict(profile or {}),
			embedding=list(embedding) if embedding is not None else None,
			joined_at=now,
			updated_at=now,
			full_name=full_name,
			email=email,
		)
		self.members[(group_id, user_id)] = member
		return member

	def group_members(self, group_id: str) -> list[Member]:
		return [member for (gid, _), member in self.members.items() if gid == group_id]

	async def get_member(self, group_id: str, user_id: str) -> Member | None:
		return self.members.get((group_id, user_id))

	async def get_members(self, group_id: str, user_ids: Sequence[str]) -> dict[str, Member]:
		found: dict[str, Member] = {}
		for user_id in user_ids:
			member = self.members.get((group_id, user_id))
			if member is not None:
				found[user_id] = member
		return found

	async def save_profile(
		self,
		group_id: str,
		user_id: str,
		profile: dict[str, Any],
		embedding: Optional[list[float]],
	) -> Member:
		member = self.members[(group_id, user_id)]
		member.profile = dict(profile)
		member.embedding = list(embedding) if embedding is not None else None
		member.updated_at = _now()
		return member

	async def list_active_suppression_targets(self, group_id: str, user_id: str, *, now: datetime) -> list[str]:
		return [
			s.hidden_id
			for s in self.suppressions.values()
			if s.group_id == group_id and s.user_id == user_id and s.is_active(now=now)
		]

	async def list_requested_targets(self, group_id: str, user_id: str) -> list[str]:
		return [r.target_id for r in self.requests.values() if r.group_id == group_id and r.requester_id == user_id]

	async def list_connected_users(self, group_id: str, user_id: str) -> list[str]:
		return [c.other_party(user_id) for c in self.connections.values() if c.group_id == group_id and c.involves(user_id)]

	async def are_connected(self, group_id: str, user_a: str, user_b: str) -> bool:
		return self._find_connection(group_id, user_a, user_b) is not None

	def _find_connection(self, group_id: str, user_a: str, user_b: str) -> Connection | None:
		low, high = ordered_pair(user_a, user_b)
		for connection in self.connections.values():
			if connection.group_id == group_id and connection.user_a == low and connection.user_b == high:
				return connection
		return None

	def _find_request(self, group_id: str, requester_id: str, target_id: str) -> MatchRequest | None:
		for request in self.requests.values():
			if request.group_id == group_id and request.requester_id == requester_id and request.target_id == target_id:
				return request
		return None

	def _connect(self, group_id: str, user_a: str, user_b: str) -> Connection:
		existing = self._find_connection(group_id, user_a, user_b)
		if existing is not None:
			return existing
		low, high = ordered_pair(user_a, user_b)
		connection = Connection(id=str(uuid.uuid4()), group_id=group_id, user_a=low, user_b=high, created_at=_now())
		self.connections[connection.id] = connection
		return connection

	async def create_match_request(self, group_id: str, requester_id: str, target_id: str) -> RequestOutcome:
		async with self._lock:
			if self._find_connection(group_id, requester_id, target_id) is not None:
				raise AlreadyConnected()
			if self._find_request(group_id, requester_id, target_id) is not None:
				raise DuplicateRequest()
			request = MatchRequest(
				id=str(uuid.uuid4()),
				group_id=group_id,
				requester_id=requester_id,
				target_id=target_id,
				status=MatchRequestStatus.PENDING,
				created_at=_now(),
			)
			self.requests[request.id] = request
			reverse = self._find_request(group_id, target_id, requester_id)
			if reverse is None or reverse.status != MatchRequestStatus.PENDING:
				return RequestOutcome(request=request)
			connection = self._connect(group_id, requester_id, target_id)
			request.status = MatchRequestStatus.ACCEPTED
			reverse.status = MatchRequestStatus.ACCEPTED
			return RequestOutcome(request=request, connection=connection)

	async def list_incoming_requests(self, group_id: str, user_id: str) -> list[MatchRequest]:
		pending = [
			r
			for r in self.requests.values()
			if r.group_id == group_id and r.target_id == user_id and r.status == MatchRequestStatus.PENDING
		]
		return sorted(pending, key=lambda r: r.created_at, reverse=True)

	async def accept_match_request(self, group_id: str, request_id: str, target_id: str) -> tuple[MatchRequest, Connection]:
		async with self._lock:
			request = self.requests.get(request_id)
			if (
				request is None
				or request.group_id != group_id
				or request.target_id != target_id
				or request.status != MatchRequestStatus.PENDING
			):
				raise RequestNotFound()
			connection = self._connect(group_id, request.requester_id, target_id)
			request.status = MatchRequestStatus.ACCEPTED
			reverse = self._find_request(group_id, target_id, request.requester_id)
			if reverse is not None:
				reverse.status = MatchRequestStatus.ACCEPTED
			return request, connection

	async def upsert_suppression(
		self,
		group_id: str,
		user_id: str,
		hidden_id: str,
		hidden_until: datetime,
	) -> Suppression:
		key = (group_id, user_id, hidden_id)
		existing = self.suppressions.get(key)
		suppression = Suppression(
			group_id=group_id,
			user_id=user_id,
			hidden_id=hidden_id,
			hidden_until=hidden_until,
			created_at=existing.created_at if existing else _now(),
		)
		self.suppressions[key] = suppression
		return suppression

	async def delete_suppression(self, group_id: str, user_id: str, hidden_id: str) -> bool:
		return self.suppressions.pop((group_id, user_id, hidden_id), None) is not None

	async def list_connections(self, group_id: str, user_id: str) -> list[Connection]:
		mine = [c for c in self.connections.values() if c.group_id == group_id and c.involves(user_id)]
		return sorted(mine, key=lambda c: c.created_at, reverse=True)

	async def list_members_missing_embedding(
		self,
		group_id: str | None,
		*,
		after_id: str | None,
		limit: int,
	) -> list[Member]:
		missing = [
			m
			for m in self.members.values()
			if m.embedding is None
			and (group_id is None or m.group_id == group_id)
			and (after_id is None or m.id > after_id)
		]
		return sorted(missing, key=lambda m: m.id)[:limit]

	async def set_embedding_if_unchanged(
		self,
		group_id: str,
		user_id: str,
		embedding: list[float],
		*,
		expected_updated_at: datetime,
	) -> bool:
		member = self.members.get((group_id, user_id))
		if member is None or member.updated_at != expected_updated_at or member.embedding is not None:
			return False
		member.embedding = list(embedding)
		return True

	async def leave_group(self, group_id: str, user_id: str) -> LeaveOutcome:
		async with self._lock:
			member = self.members.get((group_id, user_id))
			if member is None:
				raise NotAMember()
			others = [m for m in self.group_members(group_id) if m.user_id != user_id]
			if member.role == MemberRole.ADMIN and others and not any(m.role == MemberRole.ADMIN for m in others):
				raise LastAdmin()
			outcome = LeaveOutcome()
			for request_id in [
				r.id
				for r in self.requests.values()
				if r.group_id == group_id and user_id in (r.requester_id, r.target_id)
			]:
				del self.requests[request_id]
				outcome.requests_removed += 1
			for connection_id in [c.id for c in self.connections.values() if c.group_id == group_id and c.involves(user_id)]:
				del self.connections[connection_id]
				outcome.connections_removed += 1
			for key in [
				k
				for k, s in self.suppressions.items()
				if s.group_id == group_id and user_id in (s.user_id, s.hidden_id)
			]:
				del self.suppressions[key]
				outcome.suppressions_removed += 1
			del self.members[(group_id, user_id)]
			outcome.group_deleted = not others
			return outcome

	async def group_stats(self, group_id: str, *, since: datetime) -> GroupStats:
		members = self.group_members(group_id)
		return GroupStats(
			member_count=len(members),
			members_with_embedding=sum(1 for m in members if m.has_embedding),
			pending_requests=sum(
				1 for r in self.requests.values() if r.group_id == group_id and r.status == MatchRequestStatus.PENDING
			),
			connections=sum(1 for c in self.connections.values() if c.group_id == group_id),
			new_members_this_week=sum(1 for m in members if m.joined_at >= since),
		)
