"""Domain-level exceptions for group matching."""

from __future__ import annotations

from app.infra.rate_limit import RateLimitExceeded


class MatchingError(Exception):
	"""Base class for matching feature errors."""

	reason: str = "unknown"

	def __init__(self, reason: str | None = None) -> None:
		super().__init__(reason or self.reason)
		if reason:
			self.reason = reason


class NotAMember(MatchingError):
	reason = "not_a_member"


class ProfileIncomplete(MatchingError):
	reason = "profile_incomplete"


class EmbeddingUnavailable(MatchingError):
	reason = "embedding_unavailable"


class ReasonUnavailable(MatchingError):
	reason = "reason_unavailable"


class RankerFailure(MatchingError):
	reason = "ranker_unavailable"


class MatchConflict(MatchingError):
	reason = "conflict"


class DuplicateRequest(MatchConflict):
	reason = "already_requested"


class AlreadyConnected(MatchConflict):
	reason = "already_connected"


class SelfTarget(MatchConflict):
	reason = "self_target"


class TargetNotMember(MatchingError):
	reason = "target_not_member"


class RequestNotFound(MatchingError):
	reason = "request_not_found"


class LastAdmin(MatchingError):
	"""The only admin cannot leave while other members remain."""

	reason = "last_admin"


class MatchingRateLimitExceeded(RateLimitExceeded):
	"""Raised when match requests or hides hit a quota."""

	def __init__(self, reason: str) -> None:
		super().__init__(reason)
		self.reason = reason
