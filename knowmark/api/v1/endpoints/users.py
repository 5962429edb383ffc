"""
User endpoints: profile lookup and account deletion.

- GET /user/me requires any valid session, whatever its role.
- GET /user/{id} requires at least the ``normal`` role.
- DELETE /user/{id} is allowed for the account owner or an admin.
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse

from knowmark.api.v1.deps import get_principal, get_user_service, require_member
from knowmark.core.gate import Principal
from knowmark.core.security import clear_auth_cookie
from knowmark.schemas.user import UserRead
from knowmark.services.users import UserService

router = APIRouter(prefix="/user", tags=["users"])


@router.get("/me", response_model=UserRead)
async def read_current_user(
    principal: Principal = Depends(get_principal),
    service: UserService = Depends(get_user_service),
) -> UserRead:
    """Return the profile of the currently authenticated user."""
    return UserRead.from_user(await service.current(principal))


@router.get("/{user_id}", response_model=UserRead)
async def read_user(
    user_id: uuid.UUID,
    principal: Principal = Depends(require_member),
    service: UserService = Depends(get_user_service),
) -> UserRead:
    return UserRead.from_user(await service.get(principal, user_id))


@router.delete("/{user_id}", response_class=PlainTextResponse)
async def delete_user(
    user_id: uuid.UUID,
    principal: Principal = Depends(get_principal),
    service: UserService = Depends(get_user_service),
) -> PlainTextResponse:
    """Delete an account; deleting your own account also ends your session."""
    removed, self_deleted = await service.delete(principal, user_id)
    response = PlainTextResponse(str(removed.id))
    if self_deleted:
        clear_auth_cookie(response)
    return response
