"""PostgreSQL persistence for group matching."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional, Sequence
from uuid import UUID

import asyncpg

from app.matching.domain.exceptions import AlreadyConnected, DuplicateRequest, LastAdmin, NotAMember, RequestNotFound
from app.matching.domain.models import (
	Connection,
	GroupStats,
	LeaveOutcome,
	MatchRequest,
	Member,
	MemberRole,
	RequestOutcome,
	Suppression,
)
from app.matching.domain.repository import MatchingRepository

_MEMBER_COLUMNS = """
	m.id, m.group_id, m.user_id, m.role, m.profile_data, m.embedding, m.joined_at, m.updated_at,
	p.full_name, p.email
"""

_REQUEST_COLUMNS = "id, group_id, requester_id, target_id, status, created_at"
_CONNECTION_COLUMNS = "id, group_id, user_a, user_b, match_reason, created_at"


def _uuid(value: str) -> Optional[UUID]:
	try:
		return UUID(str(value))
	except ValueError:
		return None


def _affected(status: str) -> int:
	# asyncpg returns the command tag, e.g. "DELETE 3"
	tail = status.rsplit(" ", 1)[-1]
	return int(tail) if tail.isdigit() else 0


def _pair_lock_key(group_id: str, user_a: UUID, user_b: UUID) -> str:
	low, high = sorted((str(user_a), str(user_b)))
	return f"group_match:{group_id}:{low}:{high}"


class PostgresMatchingRepository(MatchingRepository):
	"""Persists memberships, requests, connections and suppressions using asyncpg."""

	def __init__(self, pool: asyncpg.Pool) -> None:
		self._pool = pool

	async def get_member(self, group_id: str, user_id: str) -> Member | None:
		group_uuid, user_uuid = _uuid(group_id), _uuid(user_id)
		if group_uuid is None or user_uuid is None:
			return None
		row = await self._pool.fetchrow(
			f"""
			SELECT {_MEMBER_COLUMNS}
			FROM group_memberships m
			LEFT JOIN profiles p ON p.id = m.user_id
			WHERE m.group_id = $1 AND m.user_id = $2
			""",
			group_uuid,
			user_uuid,
		)
		return Member.from_record(row) if row else None

	async def get_members(self, group_id: str, user_ids: Sequence[str]) -> dict[str, Member]:
		group_uuid = _uuid(group_id)
		ids = [u for u in (_uuid(uid) for uid in user_ids) if u is not None]
		if group_uuid is None or not ids:
			return {}
		rows = await self._pool.fetch(
			f"""
			SELECT {_MEMBER_COLUMNS}
			FROM group_memberships m
			LEFT JOIN profiles p ON p.id = m.user_id
			WHERE m.group_id = $1 AND m.user_id = ANY($2::uuid[])
			""",
			group_uuid,
			ids,
		)
		members = [Member.from_record(row) for row in rows]
		return {member.user_id: member for member in members}

	async def save_profile(
		self,
		group_id: str,
		user_id: str,
		profile: dict[str, Any],
		embedding: Optional[list[float]],
	) -> Member:
		row = await self._pool.fetchrow(
			f"""
			WITH updated AS (
				UPDATE group_memberships
				SET profile_data = $3, embedding = $4, updated_at = now()
				WHERE group_id = $1 AND user_id = $2
				RETURNING *
			)
			SELECT {_MEMBER_COLUMNS}
			FROM updated m
			LEFT JOIN profiles p ON p.id = m.user_id
			""",
			UUID(group_id),
			UUID(user_id),
			profile,
			embedding,
		)
		if row is None:
			raise RuntimeError("membership vanished during profile update")
		return Member.from_record(row)

	async def list_active_suppression_targets(self, group_id: str, user_id: str, *, now: datetime) -> list[str]:
		rows = await self._pool.fetch(
			"""
			SELECT hidden_id
			FROM group_hidden_profiles
			WHERE group_id = $1 AND user_id = $2 AND (hidden_until IS NULL OR hidden_until > $3)
			""",
			UUID(group_id),
			UUID(user_id),
			now,
		)
		return [str(row["hidden_id"]) for row in rows]

	async def list_requested_targets(self, group_id: str, user_id: str) -> list[str]:
		rows = await self._pool.fetch(
			"SELECT target_id FROM group_match_requests WHERE group_id = $1 AND requester_id = $2",
			UUID(group_id),
			UUID(user_id),
		)
		return [str(row["target_id"]) for row in rows]

	async def list_connected_users(self, group_id: str, user_id: str) -> list[str]:
		rows = await self._pool.fetch(
			"""
			SELECT CASE WHEN user_a = $2 THEN user_b ELSE user_a END AS other_id
			FROM group_connections
			WHERE group_id = $1 AND (user_a = $2 OR user_b = $2)
			""",
			UUID(group_id),
			UUID(user_id),
		)
		return [str(row["other_id"]) for row in rows]

	async def are_connected(self, group_id: str, user_a: str, user_b: str) -> bool:
		return await self._connection_exists(self._pool, UUID(group_id), UUID(user_a), UUID(user_b))

	@staticmethod
	async def _connection_exists(conn: Any, group_id: UUID, user_a: UUID, user_b: UUID) -> bool:
		value = await conn.fetchval(
			"""
			SELECT 1 FROM group_connections
			WHERE group_id = $1 AND user_a = LEAST($2::uuid, $3::uuid) AND user_b = GREATEST($2::uuid, $3::uuid)
			""",
			group_id,
			user_a,
			user_b,
		)
		return value is not None

	@staticmethod
	async def _connect(conn: asyncpg.Connection, group_id: UUID, user_a: UUID, user_b: UUID) -> Connection:
		row = await conn.fetchrow(
			f"""
			INSERT INTO group_connections (group_id, user_a, user_b)
			VALUES ($1, LEAST($2::uuid, $3::uuid), GREATEST($2::uuid, $3::uuid))
			ON CONFLICT (group_id, user_a, user_b) DO NOTHING
			RETURNING {_CONNECTION_COLUMNS}
			""",
			group_id,
			user_a,
			user_b,
		)
		if row is None:
			row = await conn.fetchrow(
				f"""
				SELECT {_CONNECTION_COLUMNS} FROM group_connections
				WHERE group_id = $1 AND user_a = LEAST($2::uuid, $3::uuid) AND user_b = GREATEST($2::uuid, $3::uuid)
				""",
				group_id,
				user_a,
				user_b,
			)
		return Connection.from_record(row)

	async def create_match_request(self, group_id: str, requester_id: str, target_id: str) -> RequestOutcome:
		group_uuid, requester, target = UUID(group_id), UUID(requester_id), UUID(target_id)
		async with self._pool.acquire() as conn:
			async with conn.transaction():
				# serialise both directions of the pair so a mutual send yields one connection
				await conn.execute(
					"SELECT pg_advisory_xact_lock(hashtextextended($1, 0))",
					_pair_lock_key(group_id, requester, target),
				)
				if await self._connection_exists(conn, group_uuid, requester, target):
					raise AlreadyConnected()
				row = await conn.fetchrow(
					f"""
					INSERT INTO group_match_requests (group_id, requester_id, target_id, status)
					VALUES ($1, $2, $3, 'pending')
					ON CONFLICT (group_id, requester_id, target_id) DO NOTHING
					RETURNING {_REQUEST_COLUMNS}
					""",
					group_uuid,
					requester,
					target,
				)
				if row is None:
					raise DuplicateRequest()
				reverse_id = await conn.fetchval(
					"""
					SELECT id FROM group_match_requests
					WHERE group_id = $1 AND requester_id = $2 AND target_id = $3 AND status = 'pending'
					FOR UPDATE
					""",
					group_uuid,
					target,
					requester,
				)
				if reverse_id is None:
					return RequestOutcome(request=MatchRequest.from_record(row))
				connection = await self._connect(conn, group_uuid, requester, target)
				await conn.execute(
					"UPDATE group_match_requests SET status = 'accepted' WHERE id = ANY($1::uuid[])",
					[row["id"], reverse_id],
				)
				request = MatchRequest.from_record({**dict(row), "status": "accepted"})
				return RequestOutcome(request=request, connection=connection)

	async def list_incoming_requests(self, group_id: str, user_id: str) -> list[MatchRequest]:
		rows = await self._pool.fetch(
			f"""
			SELECT {_REQUEST_COLUMNS}
			FROM group_match_requests
			WHERE group_id = $1 AND target_id = $2 AND status = 'pending'
			ORDER BY created_at DESC
			""",
			UUID(group_id),
			UUID(user_id),
		)
		return [MatchRequest.from_record(row) for row in rows]

	async def accept_match_request(self, group_id: str, request_id: str, target_id: str) -> tuple[MatchRequest, Connection]:
		request_uuid = _uuid(request_id)
		if request_uuid is None:
			raise RequestNotFound()
		group_uuid, target = UUID(group_id), UUID(target_id)
		async with self._pool.acquire() as conn:
			async with conn.transaction():
				requester = await conn.fetchval(
					"""
					SELECT requester_id FROM group_match_requests
					WHERE id = $1 AND group_id = $2 AND target_id = $3 AND status = 'pending'
					""",
					request_uuid,
					group_uuid,
					target,
				)
				if requester is None:
					raise RequestNotFound()
				# pair lock before row lock, same order as create_match_request
				await conn.execute(
					"SELECT pg_advisory_xact_lock(hashtextextended($1, 0))",
					_pair_lock_key(group_id, requester, target),
				)
				row = await conn.fetchrow(
					f"""
					SELECT {_REQUEST_COLUMNS} FROM group_match_requests
					WHERE id = $1 AND group_id = $2 AND target_id = $3 AND status = 'pending'
					FOR UPDATE
					""",
					request_uuid,
					group_uuid,
					target,
				)
				if row is None:
					raise RequestNotFound()
				connection = await self._connect(conn, group_uuid, requester, target)
				await conn.execute(
					"""
					UPDATE group_match_requests SET status = 'accepted'
					WHERE group_id = $1
						AND ((requester_id = $2 AND target_id = $3) OR (requester_id = $3 AND target_id = $2))
					""",
					group_uuid,
					requester,
					target,
				)
				return MatchRequest.from_record({**dict(row), "status": "accepted"}), connection

	async def upsert_suppression(
		self,
		group_id: str,
		user_id: str,
		hidden_id: str,
		hidden_until: datetime,
	) -> Suppression:
		row = await self._pool.fetchrow(
			"""
			INSERT INTO group_hidden_profiles (group_id, user_id, hidden_id, hidden_until)
			VALUES ($1, $2, $3, $4)
			ON CONFLICT (group_id, user_id, hidden_id)
			DO UPDATE SET hidden_until = EXCLUDED.hidden_until
			RETURNING group_id, user_id, hidden_id, hidden_until, created_at
			""",
			UUID(group_id),
			UUID(user_id),
			UUID(hidden_id),
			hidden_until,
		)
		if row is None:  # pragma: no cover - asyncpg always returns a row for RETURNING
			raise RuntimeError("Failed to upsert suppression")
		return Suppression.from_record(row)

	async def delete_suppression(self, group_id: str, user_id: str, hidden_id: str) -> bool:
		hidden_uuid = _uuid(hidden_id)
		if hidden_uuid is None:
			return False
		status = await self._pool.execute(
			"DELETE FROM group_hidden_profiles WHERE group_id = $1 AND user_id = $2 AND hidden_id = $3",
			UUID(group_id),
			UUID(user_id),
			hidden_uuid,
		)
		return _affected(status) == 1

	async def list_connections(self, group_id: str, user_id: str) -> list[Connection]:
		rows = await self._pool.fetch(
			f"""
			SELECT {_CONNECTION_COLUMNS}
			FROM group_connections
			WHERE group_id = $1 AND (user_a = $2 OR user_b = $2)
			ORDER BY created_at DESC
			""",
			UUID(group_id),
			UUID(user_id),
		)
		return [Connection.from_record(row) for row in rows]

	async def list_members_missing_embedding(
		self,
		group_id: str | None,
		*,
		after_id: str | None,
		limit: int,
	) -> list[Member]:
		rows = await self._pool.fetch(
			f"""
			SELECT {_MEMBER_COLUMNS}
			FROM group_memberships m
			LEFT JOIN profiles p ON p.id = m.user_id
			WHERE m.embedding IS NULL
				AND ($1::uuid IS NULL OR m.group_id = $1::uuid)
				AND ($2::uuid IS NULL OR m.id > $2::uuid)
			ORDER BY m.id
			LIMIT $3
			""",
			_uuid(group_id) if group_id else None,
			_uuid(after_id) if after_id else None,
			limit,
		)
		return [Member.from_record(row) for row in rows]

	async def set_embedding_if_unchanged(
		self,
		group_id: str,
		user_id: str,
		embedding: list[float],
		*,
		expected_updated_at: datetime,
	) -> bool:
		status = await self._pool.execute(
			"""
			UPDATE group_memberships
			SET embedding = $3
			WHERE group_id = $1 AND user_id = $2 AND updated_at = $4 AND embedding IS NULL
			""",
			UUID(group_id),
			UUID(user_id),
			embedding,
			expected_updated_at,
		)
		return _affected(status) == 1

	async def leave_group(self, group_id: str, user_id: str) -> LeaveOutcome:
		group_uuid, user_uuid = _uuid(group_id), _uuid(user_id)
		if group_uuid is None or user_uuid is None:
			raise NotAMember()
		async with self._pool.acquire() as conn:
			async with conn.transaction():
				# concurrent leaves in one group serialise on the membership rows
				rows = await conn.fetch(
					"SELECT user_id, role FROM group_memberships WHERE group_id = $1 ORDER BY id FOR UPDATE",
					group_uuid,
				)
				mine = [row for row in rows if row["user_id"] == user_uuid]
				if not mine:
					raise NotAMember()
				others = [row for row in rows if row["user_id"] != user_uuid]
				admin = MemberRole.ADMIN.value
				if mine[0]["role"] == admin and others and not any(row["role"] == admin for row in others):
					raise LastAdmin()
				outcome = LeaveOutcome()
				status = await conn.execute(
					"DELETE FROM group_match_requests WHERE group_id = $1 AND (requester_id = $2 OR target_id = $2)",
					group_uuid,
					user_uuid,
				)
				outcome.requests_removed = _affected(status)
				status = await conn.execute(
					"DELETE FROM group_connections WHERE group_id = $1 AND (user_a = $2 OR user_b = $2)",
					group_uuid,
					user_uuid,
				)
				outcome.connections_removed = _affected(status)
				status = await conn.execute(
					"DELETE FROM group_hidden_profiles WHERE group_id = $1 AND (user_id = $2 OR hidden_id = $2)",
					group_uuid,
					user_uuid,
				)
				outcome.suppressions_removed = _affected(status)
				await conn.execute(
					"DELETE FROM group_memberships WHERE group_id = $1 AND user_id = $2",
					group_uuid,
					user_uuid,
				)
				if not others:
					await conn.execute("DELETE FROM groups WHERE id = $1", group_uuid)
					outcome.group_deleted = True
				return outcome

	async def group_stats(self, group_id: str, *, since: datetime) -> GroupStats:
		group_uuid = _uuid(group_id)
		if group_uuid is None:
			return GroupStats(0, 0, 0, 0, 0)
		row = await self._pool.fetchrow(
			"""
			SELECT
				(SELECT count(*) FROM group_memberships WHERE group_id = $1) AS member_count,
				(SELECT count(*) FROM group_memberships WHERE group_id = $1 AND embedding IS NOT NULL) AS members_with_embedding,
				(SELECT count(*) FROM group_match_requests WHERE group_id = $1 AND status = 'pending') AS pending_requests,
				(SELECT count(*) FROM group_connections WHERE group_id = $1) AS connections,
				(SELECT count(*) FROM group_memberships WHERE group_id = $1 AND joined_at >= $2) AS new_members_this_week
			""",
			group_uuid,
			since,
		)
		return GroupStats(**{key: int(row[key] or 0) for key in row.keys()})
