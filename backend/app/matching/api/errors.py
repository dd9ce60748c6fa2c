"""Translate matching domain errors into HTTP responses."""

from __future__ import annotations

from fastapi import HTTPException, status

from app.matching.domain.exceptions import (
	LastAdmin,
	MatchConflict,
	MatchingRateLimitExceeded,
	NotAMember,
	ProfileIncomplete,
	RankerFailure,
	RequestNotFound,
	TargetNotMember,
)


def map_error(exc: Exception) -> HTTPException:
	if isinstance(exc, MatchingRateLimitExceeded):
		return HTTPException(status.HTTP_429_TOO_MANY_REQUESTS, detail=getattr(exc, "reason", "rate_limit"))
	if isinstance(exc, MatchConflict):
		return HTTPException(status.HTTP_409_CONFLICT, detail=exc.reason)
	if isinstance(exc, NotAMember):
		return HTTPException(status.HTTP_403_FORBIDDEN, detail=exc.reason)
	if isinstance(exc, (TargetNotMember, RequestNotFound)):
		return HTTPException(status.HTTP_404_NOT_FOUND, detail=exc.reason)
	if isinstance(exc, LastAdmin):
		return HTTPException(status.HTTP_400_BAD_REQUEST, detail=exc.reason)
	if isinstance(exc, ProfileIncomplete):
		return HTTPException(status.HTTP_400_BAD_REQUEST, detail=exc.reason)
	if isinstance(exc, RankerFailure):
		return HTTPException(status.HTTP_503_SERVICE_UNAVAILABLE, detail=exc.reason)
	return HTTPException(status.HTTP_400_BAD_REQUEST, detail=str(exc))
