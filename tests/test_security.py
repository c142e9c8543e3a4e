import pytest
from datetime import timedelta
from fastapi import HTTPException
from fastapi.security import HTTPAuthorizationCredentials
from bson import ObjectId
from jose import jwt

from mess_api.core.auth import CurrentUser, create_access_token, get_current_user, require_admin
from mess_api.core.config import settings
from mess_api.core.errors import ForbiddenError
from mess_api.models.user import User, UserRole


def bearer(token: str) -> HTTPAuthorizationCredentials:
    return HTTPAuthorizationCredentials(scheme="Bearer", credentials=token)


def test_create_access_token_carries_subject():
    user_id = str(ObjectId())
    token = create_access_token(user_id)

    payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    assert payload["sub"] == user_id
    assert payload["exp"] > payload["iat"]


@pytest.mark.asyncio
async def test_get_current_user_from_token(mock_db):
    user = User(name="Rahim", email="rahim@example.com", role=UserRole.ADMIN)
    mock_db.users.find_one.return_value = user.to_document()

    current = await get_current_user(bearer(create_access_token(str(user.id))), mock_db)

    assert current.id == user.id
    assert current.is_admin


@pytest.mark.asyncio
async def test_expired_token_rejected(mock_db):
    token = create_access_token(str(ObjectId()), expires_delta=timedelta(minutes=-5))

    with pytest.raises(HTTPException) as exc_info:
        await get_current_user(bearer(token), mock_db)

    assert exc_info.value.status_code == 401


@pytest.mark.asyncio
async def test_inactive_user_rejected(mock_db):
    user = User(name="Rahim", email="rahim@example.com", is_active=False)
    mock_db.users.find_one.return_value = user.to_document()

    with pytest.raises(HTTPException) as exc_info:
        await get_current_user(bearer(create_access_token(str(user.id))), mock_db)

    assert exc_info.value.status_code == 401


@pytest.mark.asyncio
async def test_require_admin():
    admin = CurrentUser(id=ObjectId(), role=UserRole.ADMIN)
    assert await require_admin(admin) is admin

    with pytest.raises(ForbiddenError):
        await require_admin(CurrentUser(id=ObjectId()))


def test_ensure_can_act_for():
    member = CurrentUser(id=ObjectId())
    member.ensure_can_act_for(member.id)
    with pytest.raises(ForbiddenError):
        member.ensure_can_act_for(ObjectId())

    CurrentUser(id=ObjectId(), role=UserRole.ADMIN).ensure_can_act_for(ObjectId())
