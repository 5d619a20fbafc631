"""
User account API endpoints.

Endpoints:
- GET /users - List users (search, role filter, pagination)
- POST /users - Create a user (password stored as a bcrypt hash)
"""

import logging
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from backend.auth.dependencies import AuthenticatedUser, get_authenticated_user
from backend.db.models import User
from backend.db.session import get_db_session
from backend.schemas.common import Pagination
from backend.schemas.users import UserCreateRequest, UserListResponse, UserResponse
from backend.services import create_user, get_users
from backend.utils.errors import ServiceError
from backend.utils.serialization import id_to_str, iso_or_none

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["users"])


def _build_user_response(user: User) -> UserResponse:
    return UserResponse(
        id=id_to_str(user.id),
        username=user.username,
        name=user.name,
        role=user.role,
        is_active=user.is_active,
        created_at=iso_or_none(user.created_at),
        updated_at=iso_or_none(user.updated_at),
    )


@router.get(
    "",
    response_model=UserListResponse,
    status_code=status.HTTP_200_OK,
    summary="List users",
)
def list_users(
    auth_user: Annotated[AuthenticatedUser, Depends(get_authenticated_user)],
    session: Annotated[Session, Depends(get_db_session)],
    search: Optional[str] = None,
    role: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
) -> UserListResponse:
    try:
        users, total = get_users(session, search=search, role=role, page=page, limit=limit)
    except ServiceError as e:
        raise e.to_http_exception()

    return UserListResponse(
        users=[_build_user_response(user) for user in users],
        pagination=Pagination.build(total, page, limit),
    )


@router.post(
    "",
    response_model=UserResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a user",
    description="username and password are required; role is admin or user (default user).",
)
def create_user_endpoint(
    request: UserCreateRequest,
    auth_user: Annotated[AuthenticatedUser, Depends(get_authenticated_user)],
    session: Annotated[Session, Depends(get_db_session)],
) -> UserResponse:
    logger.info(f"Creating user {request.username} (requested by {auth_user.user_id})")

    try:
        user = create_user(
            session,
            username=request.username,
            password=request.password,
            name=request.name,
            role=request.role,
        )
    except ServiceError as e:
        raise e.to_http_exception()

    return _build_user_response(user)
