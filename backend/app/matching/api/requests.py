"""Send and list match requests."""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, status

from app.infra.auth import AuthenticatedUser, get_current_user
from app.matching.api.errors import map_error
from app.matching.domain import service
from app.matching.domain.exceptions import MatchingError, MatchingRateLimitExceeded
from app.matching.domain.schemas import IncomingRequest, MatchRequestCreate, MatchRequestResult

router = APIRouter(prefix="/groups/{group_id}", tags=["matching"])


@router.get("/match-requests", response_model=List[IncomingRequest])
async def list_incoming(
	group_id: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> List[IncomingRequest]:
	try:
		return await service.list_incoming_requests(auth_user, group_id)
	except MatchingError as exc:
		raise map_error(exc) from None


@router.post("/match-requests", response_model=MatchRequestResult, status_code=status.HTTP_201_CREATED)
async def send_request(
	group_id: str,
	payload: MatchRequestCreate,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> MatchRequestResult:
	try:
		return await service.send_match_request(auth_user, group_id, payload.target_id)
	except (MatchingError, MatchingRateLimitExceeded) as exc:
		raise map_error(exc) from None
