from datetime import timedelta
from types import SimpleNamespace

import pytest
from fastapi import HTTPException
from jose import jwt

from ems.core.config import settings
from ems.core.exceptions import ConflictError
from ems.core.security import (
    ADMIN_ROLE,
    UserCreate,
    authenticate_user,
    create_access_token,
    create_user,
    get_current_active_user,
    get_current_user,
    get_password_hash,
    require_admin,
    verify_password,
)


def test_password_hashing():
    hashed = get_password_hash("secret123")
    assert hashed != "secret123"
    assert verify_password("secret123", hashed)
    assert not verify_password("wrong", hashed)


def test_access_token_carries_subject():
    token = create_access_token({"sub": "admin"}, expires_delta=timedelta(minutes=5))
    payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    assert payload["sub"] == "admin"
    assert "exp" in payload


async def test_register_and_authenticate(database):
    async with database.session() as session:
        user = await create_user(session, UserCreate(username="clerk", email="clerk@ems.com", password="secret123"))
    assert user.role == "User"

    async with database.session() as session:
        assert await authenticate_user(session, "clerk", "nope") is None
        authenticated = await authenticate_user(session, "clerk", "secret123")
        assert authenticated.last_login_at is not None


async def test_duplicate_username_is_conflict(database):
    async with database.session() as session:
        await create_user(session, UserCreate(username="clerk", email="clerk@ems.com", password="secret123"))

    with pytest.raises(ConflictError):
        async with database.session() as session:
            await create_user(session, UserCreate(username="CLERK", email="other@ems.com", password="secret123"))


async def test_current_user_from_token(database):
    async with database.session() as session:
        await create_user(session, UserCreate(username="clerk", email="clerk@ems.com", password="secret123"))

    async with database.session() as session:
        user = await get_current_user(create_access_token({"sub": "clerk"}), session)
        assert user.username == "clerk"

        with pytest.raises(HTTPException) as exc_info:
            await get_current_user("not-a-jwt", session)
        assert exc_info.value.status_code == 401

        with pytest.raises(HTTPException) as exc_info:
            await get_current_user(create_access_token({"sub": "ghost"}), session)
        assert exc_info.value.status_code == 401


async def test_inactive_user_is_rejected():
    with pytest.raises(HTTPException) as exc_info:
        await get_current_active_user(SimpleNamespace(is_active=False, role=ADMIN_ROLE))
    assert exc_info.value.status_code == 400


async def test_require_admin():
    admin = SimpleNamespace(is_active=True, role=ADMIN_ROLE)
    assert await require_admin(admin) is admin

    with pytest.raises(HTTPException) as exc_info:
        await require_admin(SimpleNamespace(is_active=True, role="User"))
    assert exc_info.value.status_code == 403
