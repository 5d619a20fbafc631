"""
Database access layer.

Includes:
- SQLAlchemy models (models.py)
- Engine / session factory and the per-request session dependency (session.py)
- Supabase client factory used for file storage (client.py)

Write operations are owned by the service layer and always run inside a
single `session.begin()` block so a failure never leaves partial writes.
"""

from .client import get_supabase_client
from .models import Base
from .session import create_db_engine, create_session_factory, get_db_session

__all__ = [
    "Base",
    "create_db_engine",
    "create_session_factory",
    "get_db_session",
    "get_supabase_client",
]
