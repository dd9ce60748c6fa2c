"""Group profile read and update."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from app.infra.auth import AuthenticatedUser, get_current_user
from app.matching.api.errors import map_error
from app.matching.domain import service
from app.matching.domain.exceptions import MatchingError
from app.matching.domain.schemas import GroupProfile, ProfileUpdateRequest

router = APIRouter(prefix="/groups/{group_id}", tags=["matching"])


@router.get("/profile", response_model=GroupProfile)
async def get_profile(
	group_id: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> GroupProfile:
	try:
		return await service.get_profile(auth_user, group_id)
	except MatchingError as exc:
		raise map_error(exc) from None


@router.put("/profile", response_model=GroupProfile)
async def update_profile(
	group_id: str,
	payload: ProfileUpdateRequest,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> GroupProfile:
	try:
		return await service.update_profile(auth_user, group_id, payload)
	except MatchingError as exc:
		raise map_error(exc) from None
