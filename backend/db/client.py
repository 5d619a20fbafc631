"""
Supabase client factory.

Supabase is used for two things only: verifying user JWTs (see
backend/auth/dependencies.py) and storing uploaded files such as the
company logo. Relational data lives in the SQLAlchemy database.

The client MUST be created per-request with the user's token so Storage
policies apply to the caller.
"""

import logging

from backend.config import settings
from supabase import Client, create_client

logger = logging.getLogger(__name__)


def get_supabase_client(access_token: str) -> Client:
    """
    Create an authenticated Supabase client for a specific user.

    Args:
        access_token: The user's JWT access token from Supabase Auth,
                      as verified in backend/auth/dependencies.py.

    Returns:
        A Supabase client acting on behalf of the user.

    Example:
        >>> client = get_supabase_client(auth_user.access_token)
        >>> client.storage.from_("logos").upload(path, data)
    """
    client: Client = create_client(
        supabase_url=settings.SUPABASE_URL,
        supabase_key=settings.SUPABASE_PUBLISHABLE_KEY
    )

    # Storage policies see the caller through this token
    client.auth.set_session(access_token, access_token)

    logger.debug("Created authenticated Supabase client with user token")

    return client
