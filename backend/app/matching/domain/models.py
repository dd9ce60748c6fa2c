"""Domain models for group-scoped members, match requests, connections and suppressions."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Mapping, Optional, Sequence

MATCH_REQUEST_PER_MINUTE = 20
MATCH_REQUEST_PER_DAY = 200
HIDE_PER_MINUTE = 30
HIDE_MAX_DAYS = 365


class MemberRole(str, Enum):
	ADMIN = "admin"
	MEMBER = "member"


class MatchRequestStatus(str, Enum):
	PENDING = "pending"
	ACCEPTED = "accepted"


def _as_str(value: Any) -> str:
	return str(value) if value is not None else ""


def _as_vector(value: Any) -> Optional[list[float]]:
	if value is None:
		return None
	# pgvector hands back numpy arrays; lists pass through untouched
	tolist = getattr(value, "tolist", None)
	if callable(tolist):
		return [float(x) for x in tolist()]
	return [float(x) for x in value]


@dataclass(slots=True)
class Member:
	"""A user's profile within one group."""

	id: str
	group_id: str
	user_id: str
	role: MemberRole
	profile: dict[str, Any]
	embedding: Optional[list[float]]
	joined_at: datetime
	updated_at: datetime
	full_name: Optional[str] = None
	email: Optional[str] = None

	@property
	def has_embedding(self) -> bool:
		return self.embedding is not None

	@classmethod
	def from_record(cls, record: Mapping[str, Any]) -> "Member":
		return cls(
			id=_as_str(record["id"]),
			group_id=_as_str(record["group_id"]),
			user_id=_as_str(record["user_id"]),
			role=MemberRole(record.get("role") or MemberRole.MEMBER.value),
			profile=dict(record.get("profile_data") or {}),
			embedding=_as_vector(record.get("embedding")),
			joined_at=record["joined_at"],
			updated_at=record["updated_at"],
			full_name=record.get("full_name"),
			email=record.get("email"),
		)


@dataclass(slots=True)
class MatchRequest:
	"""A directed proposal from requester to target within a group."""

	id: str
	group_id: str
	requester_id: str
	target_id: str
	status: MatchRequestStatus
	created_at: datetime

	@classmethod
	def from_record(cls, record: Mapping[str, Any]) -> "MatchRequest":
		return cls(
			id=_as_str(record["id"]),
			group_id=_as_str(record["group_id"]),
			requester_id=_as_str(record["requester_id"]),
			target_id=_as_str(record["target_id"]),
			status=MatchRequestStatus(record["status"]),
			created_at=record["created_at"],
		)


def ordered_pair(user_a: str, user_b: str) -> tuple[str, str]:
	"""Canonical storage order for an unordered pair."""
	return (user_a, user_b) if user_a <= user_b else (user_b, user_a)


@dataclass(slots=True)
class Connection:
	"""Undirected, materialised mutual match."""

	id: str
	group_id: str
	user_a: str
	user_b: str
	created_at: datetime
	match_reason: Optional[str] = None

	def other_party(self, user_id: str) -> str:
		return self.user_b if self.user_a == user_id else self.user_a

	def involves(self, user_id: str) -> bool:
		return user_id in (self.user_a, self.user_b)

	@classmethod
	def from_record(cls, record: Mapping[str, Any]) -> "Connection":
		return cls(
			id=_as_str(record["id"]),
			group_id=_as_str(record["group_id"]),
			user_a=_as_str(record["user_a"]),
			user_b=_as_str(record["user_b"]),
			created_at=record["created_at"],
			match_reason=record.get("match_reason"),
		)


@dataclass(slots=True)
class Suppression:
	"""One-directional, time-bounded hide of target from actor's feed."""

	group_id: str
	user_id: str
	hidden_id: str
	hidden_until: Optional[datetime]
	created_at: datetime

	def is_active(self, *, now: datetime | None = None) -> bool:
		now = now or datetime.now(timezone.utc)
		return self.hidden_until is None or self.hidden_until > now

	@classmethod
	def from_record(cls, record: Mapping[str, Any]) -> "Suppression":
		return cls(
			group_id=_as_str(record["group_id"]),
			user_id=_as_str(record["user_id"]),
			hidden_id=_as_str(record["hidden_id"]),
			hidden_until=record.get("hidden_until"),
			created_at=record["created_at"],
		)


@dataclass(slots=True)
class RequestOutcome:
	"""Result of sending a match request."""

	request: MatchRequest
	connection: Optional[Connection] = None

	@property
	def is_mutual(self) -> bool:
		return self.connection is not None


@dataclass(slots=True)
class RankedCandidate:
	user_id: str
	profile: dict[str, Any]
	similarity: float
	full_name: Optional[str] = None


@dataclass(slots=True)
class FeedEntry:
	candidate: RankedCandidate
	match_reason: str = ""


@dataclass(slots=True)
class MatchFeed:
	entries: list[FeedEntry]
	has_more: bool
	offset: int
	limit: int
	looking_for: Sequence[str] = field(default_factory=list)
	offering: Sequence[str] = field(default_factory=list)


@dataclass(slots=True)
class BackfillReport:
	updated: int = 0
	failed: int = 0
	skipped: int = 0


@dataclass(slots=True)
class LeaveOutcome:
	"""What leaving a group removed."""

	requests_removed: int = 0
	connections_removed: int = 0
	suppressions_removed: int = 0
	group_deleted: bool = False


@dataclass(slots=True)
class GroupStats:
	member_count: int
	members_with_embedding: int
	pending_requests: int
	connections: int
	new_members_this_week: int
