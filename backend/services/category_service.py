"""
Category persistence service.

CRITICAL RULES:
1. A category is either INCOME or EXPENSE
2. Category names are unique (duplicate → Conflict)
3. A transaction may only reference a category of its own type; every
   transaction write path goes through ensure_category_matches()
4. Deleting a category detaches its transactions (category_id → NULL)
"""

import logging
from typing import List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from backend.db.models import Category, Transaction
from backend.db.session import write_transaction
from backend.utils.constants import DEFAULT_INCOME_CATEGORY_NAME, TransactionType
from backend.utils.errors import InvalidInput, NotFound, map_database_error

logger = logging.getLogger(__name__)


def normalize_type(value: Optional[str]) -> str:
    """
    Normalize 'income'/'expense' (any case) to the stored upper-case value.

    Raises:
        InvalidInput: If the value is missing or not a known type
    """
    if not value or value.strip().upper() not in TransactionType.__members__:
        raise InvalidInput("Type must be income or expense")
    return value.strip().upper()


def ensure_category_matches(session: Session, category_id: int, transaction_type: str) -> Category:
    """
    Load a category and check it can classify a transaction of the given type.

    Args:
        session: Active Session
        category_id: Category referenced by the transaction
        transaction_type: INCOME or EXPENSE

    Returns:
        The category

    Raises:
        NotFound: If the category does not exist
        InvalidInput: If the category type differs from the transaction type
    """
    category = session.get(Category, category_id)
    if category is None:
        raise NotFound("Category not found")
    if category.type.upper() != transaction_type.upper():
        raise InvalidInput(
            f"Category type ({category.type}) does not match transaction type ({transaction_type})"
        )
    return category


def get_or_create_income_category(
    session: Session,
    name: str = DEFAULT_INCOME_CATEGORY_NAME,
    user_id: Optional[int] = None,
) -> Category:
    """Return the named INCOME category, creating it inside the open transaction if missing."""
    category = session.scalars(
        select(Category).where(Category.name == name, Category.type == TransactionType.INCOME.value)
    ).first()
    if category is not None:
        return category

    category = Category(name=name, type=TransactionType.INCOME.value, user_id=user_id)
    session.add(category)
    session.flush()
    logger.info(f"Created default income category '{name}' id={category.id}")
    return category


def get_all_categories(
    session: Session,
    type: Optional[str] = None,
    user_id: Optional[int] = None,
) -> List[Tuple[Category, int]]:
    """
    Fetch categories ordered by name, each with its transaction count.

    Returns:
        List of (category, transaction_count) tuples
    """
    transaction_count = (
        select(func.count(Transaction.id))
        .where(Transaction.category_id == Category.id)
        .correlate(Category)
        .scalar_subquery()
    )
    stmt = select(Category, transaction_count).order_by(Category.name)
    if type:
        stmt = stmt.where(Category.type == normalize_type(type))
    if user_id is not None:
        stmt = stmt.where(Category.user_id == user_id)

    rows = [(category, count) for category, count in session.execute(stmt).all()]
    logger.info(f"Fetched {len(rows)} categories")
    return rows


def get_category_by_id(session: Session, category_id: int) -> Tuple[Category, int]:
    """
    Fetch one category with its transaction count.

    Raises:
        NotFound: If the category does not exist
    """
    category = session.get(Category, category_id)
    if category is None:
        raise NotFound("Category not found")
    count = session.scalar(
        select(func.count(Transaction.id)).where(Transaction.category_id == category_id)
    )
    return category, count or 0


def create_category(
    session: Session,
    name: Optional[str],
    type: Optional[str],
    user_id: Optional[int] = None,
) -> Category:
    """
    Create a category.

    Raises:
        InvalidInput: Missing name/type or unknown type
        Conflict: A category with this name already exists
    """
    if not name or not name.strip() or not type:
        raise InvalidInput("Name and type are required")
    category_type = normalize_type(type)

    try:
        with write_transaction(session):
            category = Category(name=name.strip(), type=category_type, user_id=user_id)
            session.add(category)
            session.flush()
    except IntegrityError as e:
        raise map_database_error(e, "Category with this name") from e

    logger.info(f"Category created: id={category.id}, type={category_type}")
    return category


def update_category(
    session: Session,
    category_id: int,
    name: Optional[str],
    type: Optional[str],
    user_id: Optional[int] = None,
) -> Category:
    """
    Replace a category's name, type and owner.

    Raises:
        InvalidInput, NotFound, Conflict
    """
    if not name or not name.strip() or not type:
        raise InvalidInput("Name and type are required")
    category_type = normalize_type(type)

    try:
        with write_transaction(session):
            category = session.get(Category, category_id)
            if category is None:
                raise NotFound("Category not found")
            category.name = name.strip()
            category.type = category_type
            category.user_id = user_id
            session.flush()
    except IntegrityError as e:
        raise map_database_error(e, "Category with this name") from e

    logger.info(f"Category updated: id={category_id}")
    return category


def delete_category(session: Session, category_id: int) -> None:
    """
    Delete a category; its transactions keep existing without a category.

    Raises:
        NotFound: If the category does not exist
    """
    with write_transaction(session):
        category = session.get(Category, category_id)
        if category is None:
            raise NotFound("Category not found")
        # The ORM nulls category_id on the loaded transactions
        session.delete(category)

    logger.info(f"Category deleted: id={category_id}")

