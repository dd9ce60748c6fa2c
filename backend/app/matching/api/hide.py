"""Hide and unhide members from one's own feed."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from app.infra.auth import AuthenticatedUser, get_current_user
from app.matching.api.errors import map_error
from app.matching.domain import service
from app.matching.domain.exceptions import MatchingError, MatchingRateLimitExceeded
from app.matching.domain.schemas import HideRequest, HideResult

router = APIRouter(prefix="/groups/{group_id}", tags=["matching"])


@router.post("/hide", response_model=HideResult)
async def hide(
	group_id: str,
	payload: HideRequest,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> HideResult:
	try:
		return await service.hide_member(auth_user, group_id, payload.hidden_id, days=payload.days)
	except (MatchingError, MatchingRateLimitExceeded, ValueError) as exc:
		raise map_error(exc) from None


@router.delete("/hide")
async def unhide(
	group_id: str,
	hidden_id: str = Query(..., min_length=1),
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> dict:
	try:
		removed = await service.unhide_member(auth_user, group_id, hidden_id)
	except MatchingError as exc:
		raise map_error(exc) from None
	return {"success": True, "removed": removed}
