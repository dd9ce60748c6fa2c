"""Accept match requests and list connections."""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, status

from app.infra.auth import AuthenticatedUser, get_current_user
from app.matching.api.errors import map_error
from app.matching.domain import service
from app.matching.domain.exceptions import MatchingError
from app.matching.domain.schemas import ConnectionAccept, ConnectionSummary

router = APIRouter(prefix="/groups/{group_id}", tags=["matching"])


@router.get("/connections", response_model=List[ConnectionSummary])
async def list_connections(
	group_id: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> List[ConnectionSummary]:
	try:
		return await service.list_connections(auth_user, group_id)
	except MatchingError as exc:
		raise map_error(exc) from None


@router.post("/connections", response_model=ConnectionSummary, status_code=status.HTTP_201_CREATED)
async def accept_request(
	group_id: str,
	payload: ConnectionAccept,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> ConnectionSummary:
	try:
		return await service.accept_match_request(auth_user, group_id, payload.request_id)
	except MatchingError as exc:
		raise map_error(exc) from None
