"""Leaving a group."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from app.infra.auth import AuthenticatedUser, get_current_user
from app.matching.api.errors import map_error
from app.matching.domain import service
from app.matching.domain.exceptions import MatchingError
from app.matching.domain.schemas import LeaveResult

router = APIRouter(prefix="/groups/{group_id}", tags=["matching"])


@router.delete("/membership", response_model=LeaveResult)
async def leave_group(
	group_id: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> LeaveResult:
	try:
		return await service.leave_group(auth_user, group_id)
	except MatchingError as exc:
		raise map_error(exc) from None
