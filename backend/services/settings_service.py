"""
Key/value application settings (company name, address, logo path, ...).
"""

import logging
from typing import Dict, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from backend.db.models import Setting
from backend.db.session import write_transaction
from backend.utils.errors import InvalidInput, NotFound, map_database_error

logger = logging.getLogger(__name__)


def get_settings(session: Session) -> Dict[str, Optional[str]]:
    """All settings as a {key: value} dict."""
    return {setting.key: setting.value for setting in session.scalars(select(Setting).order_by(Setting.key))}


def get_setting(session: Session, key: str) -> Setting:
    """
    Raises:
        NotFound: If the key is not set
    """
    setting = session.scalars(select(Setting).where(Setting.key == key)).first()
    if setting is None:
        raise NotFound("Setting not found")
    return setting


def upsert_setting(
    session: Session,
    key: Optional[str],
    value: Optional[str],
    user_id: Optional[int] = None,
) -> Setting:
    """
    Create or overwrite a setting.

    Raises:
        InvalidInput: If key is missing
    """
    if not key or not key.strip():
        raise InvalidInput("Key is required")
    key = key.strip()

    try:
        with write_transaction(session):
            setting = session.scalars(
                select(Setting).where(Setting.key == key).with_for_update()
            ).first()
            if setting is None:
                setting = Setting(key=key, value=value, user_id=user_id)
                session.add(setting)
            else:
                setting.value = value
                setting.user_id = user_id
            session.flush()
    except IntegrityError as e:
        # Lost a race against a concurrent insert of the same key
        raise map_database_error(e, f"Setting '{key}'") from e

    logger.info(f"Setting saved: key={key}")
    return setting
