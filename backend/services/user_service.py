"""
Application user accounts.

Passwords are stored as bcrypt hashes and never returned by the API.
"""

import logging
from typing import List, Optional, Tuple

import bcrypt
from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from backend.db.models import User
from backend.db.session import write_transaction
from backend.utils.constants import UserRole
from backend.utils.errors import InvalidInput, map_database_error

logger = logging.getLogger(__name__)


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))


def normalize_role(role: Optional[str]) -> str:
    """Upper-case a role, defaulting to USER."""
    if not role:
        return UserRole.USER.value
    normalized = role.strip().upper()
    if normalized not in UserRole.__members__:
        raise InvalidInput("Role must be admin or user")
    return normalized


def get_users(
    session: Session,
    search: Optional[str] = None,
    role: Optional[str] = None,
    page: int = 1,
    limit: int = 10,
) -> Tuple[List[User], int]:
    """
    Fetch a page of users, newest first.

    Returns:
        (users, total_matching)
    """
    stmt = select(User)
    if search:
        pattern = f"%{search}%"
        stmt = stmt.where(or_(User.username.ilike(pattern), User.name.ilike(pattern)))
    if role:
        stmt = stmt.where(User.role == normalize_role(role))

    total = session.scalar(select(func.count()).select_from(stmt.subquery())) or 0
    users = list(
        session.scalars(
            stmt.order_by(User.created_at.desc(), User.id.desc()).offset((page - 1) * limit).limit(limit)
        )
    )
    logger.info(f"Fetched {len(users)} of {total} users")
    return users, total


def create_user(
    session: Session,
    username: Optional[str],
    password: Optional[str],
    name: Optional[str] = None,
    role: Optional[str] = None,
) -> User:
    """
    Create a user with a hashed password.

    Raises:
        InvalidInput: Missing username/password or unknown role
        Conflict: Username already taken
    """
    if not username or not username.strip() or not password:
        raise InvalidInput("Username and password are required")
    user_role = normalize_role(role)

    try:
        with write_transaction(session):
            user = User(
                username=username.strip(),
                password_hash=hash_password(password),
                name=name or None,
                role=user_role,
            )
            session.add(user)
            session.flush()
    except IntegrityError as e:
        raise map_database_error(e, "Username") from e

    logger.info(f"User created: id={user.id}, role={user_role}")
    return user
