"""Ranked, explained match feed."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query

from app.infra.auth import AuthenticatedUser, get_current_user
from app.matching.api.errors import map_error
from app.matching.domain import service
from app.matching.domain.exceptions import MatchingError
from app.matching.domain.schemas import MatchFeedResponse

router = APIRouter(prefix="/groups/{group_id}", tags=["matching"])


@router.get("/matches", response_model=MatchFeedResponse)
async def get_matches(
	group_id: str,
	offset: int = Query(default=0, ge=0),
	limit: Optional[int] = Query(default=None, ge=1, le=100),
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> MatchFeedResponse:
	try:
		return await service.get_match_feed(auth_user, group_id, offset=offset, limit=limit)
	except MatchingError as exc:
		raise map_error(exc) from None
