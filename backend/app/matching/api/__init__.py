"""Group matching API routers."""

from fastapi import APIRouter

from . import admin, connections, feed, hide, membership, profile, requests

router = APIRouter()
router.include_router(profile.router)
router.include_router(feed.router)
router.include_router(requests.router)
router.include_router(connections.router)
router.include_router(hide.router)
router.include_router(membership.router)
router.include_router(admin.router)

__all__ = ["router"]
