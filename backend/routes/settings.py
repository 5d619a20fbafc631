"""
Application settings API endpoints.

Endpoints:
- GET /settings - All settings as {key: value}, or {key, value} with ?key=
- POST /settings - Create or overwrite one setting
- POST /settings/logo - Upload the company logo to Supabase Storage
"""

import logging
from typing import Annotated, Dict, Optional, Union

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from backend.auth.dependencies import AuthenticatedUser, get_authenticated_user
from backend.db.client import get_supabase_client
from backend.db.session import get_db_session
from backend.schemas.settings import LogoUploadResponse, SettingResponse, SettingWriteRequest
from backend.services import delete_logo, get_setting, get_settings, upload_logo, upsert_setting
from backend.utils.constants import COMPANY_LOGO_SETTING_KEY
from backend.utils.errors import NotFound, ServiceError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/settings", tags=["settings"])


@router.get(
    "",
    response_model=Union[SettingResponse, Dict[str, Optional[str]]],
    status_code=status.HTTP_200_OK,
    summary="Get settings",
    description="""
    Without `key`: every setting as a {key: value} object.
    With `key`: {key, value} for that setting, 404 if it is not set.
    """
)
def read_settings(
    auth_user: Annotated[AuthenticatedUser, Depends(get_authenticated_user)],
    session: Annotated[Session, Depends(get_db_session)],
    key: Optional[str] = None,
) -> Union[SettingResponse, Dict[str, Optional[str]]]:
    if key is None:
        return get_settings(session)

    try:
        setting = get_setting(session, key)
    except ServiceError as e:
        raise e.to_http_exception()

    return SettingResponse(key=setting.key, value=setting.value)


@router.post(
    "",
    response_model=SettingResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create or update a setting",
)
def write_setting(
    request: SettingWriteRequest,
    auth_user: Annotated[AuthenticatedUser, Depends(get_authenticated_user)],
    session: Annotated[Session, Depends(get_db_session)],
) -> SettingResponse:
    logger.info(f"Saving setting key={request.key} for user {auth_user.user_id}")

    try:
        setting = upsert_setting(session, request.key, request.value, user_id=request.user_id)
    except ServiceError as e:
        raise e.to_http_exception()

    return SettingResponse(key=setting.key, value=setting.value)


def _current_logo(session: Session) -> Optional[str]:
    try:
        return get_setting(session, COMPANY_LOGO_SETTING_KEY).value
    except NotFound:
        return None


@router.post(
    "/logo",
    response_model=LogoUploadResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Upload the company logo",
    description="""
    Upload a JPEG, PNG, GIF or WebP image (max 5 MB).

    This endpoint:
    - Stores the file in Supabase Storage under logos/{uuid}.{ext}
    - Saves the storage path in the `company_logo` setting
    - Removes the previously uploaded logo file, if any
    """
)
async def upload_company_logo(
    auth_user: Annotated[AuthenticatedUser, Depends(get_authenticated_user)],
    session: Annotated[Session, Depends(get_db_session)],
    file: UploadFile = File(..., description="Logo image"),
) -> LogoUploadResponse:
    """Upload the company logo and remember its storage path."""
    image_bytes = await file.read()
    logger.info(f"Logo upload by user {auth_user.user_id}: filename={file.filename}, size={len(image_bytes)}")

    supabase_client = get_supabase_client(auth_user.access_token)

    try:
        storage_path = await upload_logo(
            supabase_client,
            image_bytes=image_bytes,
            filename=file.filename or "",
            content_type=file.content_type,
        )
    except ServiceError as e:
        raise e.to_http_exception()
    except Exception as e:
        logger.error(f"Failed to upload logo: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "error": "upload_error",
                "details": "Failed to upload logo"
            }
        )

    previous = await run_in_threadpool(_current_logo, session)
    setting = await run_in_threadpool(
        upsert_setting, session, COMPANY_LOGO_SETTING_KEY, storage_path, None
    )

    if previous and previous != storage_path:
        await delete_logo(supabase_client, previous)

    return LogoUploadResponse(key=setting.key, value=setting.value)
