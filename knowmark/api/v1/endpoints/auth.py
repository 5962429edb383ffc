"""
Auth endpoints: signup, login & logout via the ``jwt_auth`` session cookie.
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Form, Response

from knowmark.api.v1.deps import get_key_material, get_optional_principal, get_user_service
from knowmark.core.gate import Principal
from knowmark.core.keys import KeyMaterial
from knowmark.core.security import clear_auth_cookie, set_auth_cookie
from knowmark.schemas.user import UserLogin, UserRead, UserSignup
from knowmark.services.users import UserService

router = APIRouter(tags=["auth"])
logger = logging.getLogger(__name__)


@router.post("/user", response_model=UserRead)
async def signup(
    body: Annotated[UserSignup, Form()],
    response: Response,
    service: UserService = Depends(get_user_service),
    keys: KeyMaterial = Depends(get_key_material),
) -> UserRead:
    """Create an account and start a session.

    Signing up again with the same email and password logs the existing
    user in instead of failing.
    """
    user, token = await service.signup(body)
    set_auth_cookie(response, token, keys.private_key_pem)
    return UserRead.from_user(user)


@router.post("/login", response_model=UserRead)
async def login(
    body: Annotated[UserLogin, Form()],
    response: Response,
    service: UserService = Depends(get_user_service),
    keys: KeyMaterial = Depends(get_key_material),
) -> UserRead:
    """Authenticate by username or email. Returns 200 OK with an HttpOnly cookie."""
    user, token = await service.login(body)
    set_auth_cookie(response, token, keys.private_key_pem)
    return UserRead.from_user(user)


@router.post("/logout", status_code=204)
async def logout(
    principal: Principal | None = Depends(get_optional_principal),
) -> Response:
    """Clear the auth cookie. The token itself stays valid until it expires."""
    if principal is not None:
        logger.info("User %s logged out", principal.user_id)
    response = Response(status_code=204)
    clear_auth_cookie(response)
    return response
