"""
Category CRUD API endpoints.

Endpoints:
- GET /categories - List categories (optional type/userId filter), ordered by name
- POST /categories - Create a category
- GET /categories/{category_id} - Get one category
- PUT /categories/{category_id} - Replace a category
- DELETE /categories/{category_id} - Delete a category (its transactions are kept)
"""

import logging
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.orm import Session

from backend.auth.dependencies import AuthenticatedUser, get_authenticated_user
from backend.db.models import Category
from backend.db.session import get_db_session
from backend.schemas.categories import CategoryListResponse, CategoryResponse, CategoryWriteRequest
from backend.schemas.common import DeleteResponse
from backend.services import (
    create_category,
    delete_category,
    get_all_categories,
    get_category_by_id,
    update_category,
)
from backend.utils.errors import ServiceError
from backend.utils.serialization import id_to_str, iso_or_none

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/categories", tags=["categories"])

CategoryId = Annotated[int, Path(description="Category id")]


def _build_category_response(category: Category, transaction_count: int = 0) -> CategoryResponse:
    """Helper to build CategoryResponse from a Category row."""
    return CategoryResponse(
        id=id_to_str(category.id),
        name=category.name,
        type=category.type,
        user_id=id_to_str(category.user_id),
        transaction_count=transaction_count,
        created_at=iso_or_none(category.created_at),
        updated_at=iso_or_none(category.updated_at),
    )


@router.get(
    "",
    response_model=CategoryListResponse,
    status_code=status.HTTP_200_OK,
    summary="List categories",
    description="""
    Retrieve categories ordered by name, each with its transaction count.

    Query parameters:
    - type: income or expense
    - userId: only categories created by this user
    """
)
def list_categories(
    auth_user: Annotated[AuthenticatedUser, Depends(get_authenticated_user)],
    session: Annotated[Session, Depends(get_db_session)],
    type: Optional[str] = None,
    user_id: Optional[int] = Query(None, alias="userId"),
) -> CategoryListResponse:
    """List categories."""
    logger.info(f"Listing categories for user {auth_user.user_id} (type={type})")

    try:
        rows = get_all_categories(session, type=type, user_id=user_id)
    except ServiceError as e:
        raise e.to_http_exception()

    categories = [_build_category_response(category, count) for category, count in rows]
    return CategoryListResponse(categories=categories, count=len(categories))


@router.post(
    "",
    response_model=CategoryResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a category",
    description="""
    Create an income or expense category.

    - name and type are required
    - names are unique (409 on duplicates)
    """
)
def create_category_endpoint(
    request: CategoryWriteRequest,
    auth_user: Annotated[AuthenticatedUser, Depends(get_authenticated_user)],
    session: Annotated[Session, Depends(get_db_session)],
) -> CategoryResponse:
    logger.info(f"Creating category for user {auth_user.user_id}: name={request.name}, type={request.type}")

    try:
        category = create_category(session, name=request.name, type=request.type, user_id=request.user_id)
    except ServiceError as e:
        raise e.to_http_exception()

    return _build_category_response(category)


@router.get(
    "/{category_id}",
    response_model=CategoryResponse,
    status_code=status.HTTP_200_OK,
    summary="Get a category",
)
def get_category_endpoint(
    category_id: CategoryId,
    auth_user: Annotated[AuthenticatedUser, Depends(get_authenticated_user)],
    session: Annotated[Session, Depends(get_db_session)],
) -> CategoryResponse:
    try:
        category, count = get_category_by_id(session, category_id)
    except ServiceError as e:
        raise e.to_http_exception()

    return _build_category_response(category, count)


@router.put(
    "/{category_id}",
    response_model=CategoryResponse,
    status_code=status.HTTP_200_OK,
    summary="Replace a category",
)
def update_category_endpoint(
    category_id: CategoryId,
    request: CategoryWriteRequest,
    auth_user: Annotated[AuthenticatedUser, Depends(get_authenticated_user)],
    session: Annotated[Session, Depends(get_db_session)],
) -> CategoryResponse:
    logger.info(f"Updating category {category_id} for user {auth_user.user_id}")

    try:
        update_category(session, category_id, name=request.name, type=request.type, user_id=request.user_id)
        category, count = get_category_by_id(session, category_id)
    except ServiceError as e:
        raise e.to_http_exception()

    return _build_category_response(category, count)


@router.delete(
    "/{category_id}",
    response_model=DeleteResponse,
    status_code=status.HTTP_200_OK,
    summary="Delete a category",
    description="Transactions that used the category are kept without a category.",
)
def delete_category_endpoint(
    category_id: CategoryId,
    auth_user: Annotated[AuthenticatedUser, Depends(get_authenticated_user)],
    session: Annotated[Session, Depends(get_db_session)],
) -> DeleteResponse:
    logger.info(f"Deleting category {category_id} for user {auth_user.user_id}")

    try:
        delete_category(session, category_id)
    except ServiceError as e:
        raise e.to_http_exception()

    return DeleteResponse(message="Category deleted successfully")
