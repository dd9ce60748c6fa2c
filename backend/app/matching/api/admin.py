"""Administrative matching operations."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends

from app.infra.auth import AuthenticatedUser, get_admin_user
from app.matching.domain import service
from app.matching.domain.schemas import BackfillRequest, BackfillResult, GroupStatsResponse

router = APIRouter(prefix="/admin/matching", tags=["matching-admin"])


@router.post("/embeddings/backfill", response_model=BackfillResult)
async def backfill_embeddings(
	payload: Optional[BackfillRequest] = None,
	_: AuthenticatedUser = Depends(get_admin_user),
) -> BackfillResult:
	payload = payload or BackfillRequest()
	return await service.backfill_embeddings(group_id=payload.group_id, batch_size=payload.batch_size)


@router.get("/groups/{group_id}/stats", response_model=GroupStatsResponse)
async def group_stats(
	group_id: str,
	_: AuthenticatedUser = Depends(get_admin_user),
) -> GroupStatsResponse:
	return await service.get_group_stats(group_id)
