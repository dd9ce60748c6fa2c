import pytest
from fastapi import HTTPException

from app.infra import jwt as jwt_helper
from app.infra.auth import get_admin_user, get_current_user, verify_access_jwt, AuthenticatedUser
from app.settings import settings


def test_verify_access_jwt_round_trip():
    token = jwt_helper.encode_access({"sub": "user-1", "name": "Ada", "roles": ["admin", "member"]})
    user = verify_access_jwt(token)
    assert user.id == "user-1"
    assert user.display_name == "Ada"
    assert user.has_role("admin")


def test_verify_access_jwt_rejects_foreign_signature():
    original = settings.secret_key
    settings.secret_key = "someone-elses-secret-of-adequate-length"
    try:
        token = jwt_helper.encode_access({"sub": "user-1"})
    finally:
        settings.secret_key = original
    with pytest.raises(HTTPException) as exc_info:
        verify_access_jwt(token)
    assert exc_info.value.status_code == 401
    assert exc_info.value.detail == "invalid_token"


def test_verify_access_jwt_rejects_expired_token():
    token = jwt_helper.encode_access({"sub": "user-1"}, ttl_seconds=-60)
    with pytest.raises(HTTPException):
        verify_access_jwt(token)


@pytest.mark.asyncio
async def test_dev_headers_only_accepted_in_dev():
    user = await get_current_user(x_user_id="u1", x_user_roles="admin, member", credentials=None)
    assert user.roles == ("admin", "member")

    settings.environment = "production"
    with pytest.raises(HTTPException) as exc_info:
        await get_current_user(x_user_id="u1", x_user_roles=None, credentials=None)
    assert exc_info.value.status_code == 401


@pytest.mark.asyncio
async def test_admin_guard():
    assert (await get_admin_user(AuthenticatedUser(id="a", roles=("admin",)))).id == "a"
    with pytest.raises(HTTPException) as exc_info:
        await get_admin_user(AuthenticatedUser(id="b"))
    assert exc_info.value.status_code == 403
