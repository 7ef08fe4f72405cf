import logging
from collections.abc import Sequence

from sqlalchemy import update  # type: ignore
from sqlalchemy.exc import IntegrityError  # type: ignore
from sqlmodel import Session, select  # type: ignore

from mapala.database import Borrowing, Item, User
from mapala.errors import (
    AuthError,
    ConflictError,
    InsufficientStockError,
    NotFoundError,
    ValidationError,
)
from mapala.models import RecentBorrowing
from mapala.security import get_password_hash, verify_password

logger = logging.getLogger(__name__)

RECENT_BORROWINGS_LIMIT = 10


# User operations
def get_user_by_username(db: Session, username: str) -> User | None:
    return db.exec(select(User).where(User.username == username)).first()


def create_user(db: Session, username: str | None, password: str | None) -> int:
    if not username or not password:
        raise ValidationError("Username and password required")
    password_digest = get_password_hash(password)
    if get_user_by_username(db, username):
        raise ConflictError()
    db_user = User(username=username, password_digest=password_digest)
    db.add(db_user)
    try:
        db.commit()
    except IntegrityError:
        # lost a race with another registration of the same name
        db.rollback()
        raise ConflictError()
    db.refresh(db_user)
    logger.info("Registered user %s (id=%s)", db_user.username, db_user.id)
    return db_user.id


def authenticate_user(db: Session, username: str | None, password: str | None) -> int:
    user = get_user_by_username(db, username) if username else None
    if not user or not password or not verify_password(password, user.password_digest):
        logger.info("Failed login for %r", username)
        raise AuthError()
    return user.id


# Logistics operations
def list_items(db: Session) -> Sequence[Item]:
    return db.exec(select(Item)).all()


def create_item(db: Session, item_name: str | None, quantity: int | None,
                description: str | None) -> Item:
    db_item = Item(item_name=item_name, quantity=quantity, description=description)
    db.add(db_item)
    db.commit()
    db.refresh(db_item)
    logger.info("Created item %s (id=%s, quantity=%s)", db_item.item_name, db_item.id, db_item.quantity)
    return db_item


def update_item(db: Session, item_id: int, item_name: str | None, quantity: int | None,
                description: str | None) -> Item:
    db_item = db.get(Item, item_id)
    if db_item is None:
        raise NotFoundError()
    db_item.item_name = item_name
    db_item.quantity = quantity
    db_item.description = description
    db.add(db_item)
    db.commit()
    db.refresh(db_item)
    logger.info("Updated item %s", item_id)
    return db_item


def delete_item(db: Session, item_id: int) -> None:
    db_item = db.get(Item, item_id)
    if db_item is None:
        raise NotFoundError()
    db.delete(db_item)
    db.commit()
    logger.info("Deleted item %s", item_id)


# Borrowing operations
def borrow_item(db: Session, item_id: int | None, borrower_name: str | None,
                quantity: int | None) -> Borrowing:
    """Record a borrowing and take its quantity out of stock.

    The stock check and the decrement are one conditional UPDATE, and the
    borrowing row is committed in the same transaction, so concurrent
    borrows of one item can never drive its quantity below zero.
    """
    if not item_id or not borrower_name or not quantity:
        raise ValidationError("All fields are required")
    if quantity < 0:
        raise ValidationError("Quantity must be a positive integer")

    try:
        result = db.exec(
            update(Item)
            .where(Item.id == item_id, Item.quantity >= quantity)
            .values(quantity=Item.quantity - quantity)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            if db.get(Item, item_id) is None:
                raise NotFoundError()
            raise InsufficientStockError()
        borrowing = Borrowing(item_id=item_id, borrower_name=borrower_name, quantity=quantity)
        db.add(borrowing)
        db.commit()
    except (NotFoundError, InsufficientStockError) as exc:
        db.rollback()
        logger.warning("Rejected borrow of %s x item %s by %s: %s",
                       quantity, item_id, borrower_name, exc.message)
        raise
    except Exception:
        db.rollback()
        raise
    db.refresh(borrowing)
    logger.info("%s borrowed %s x item %s", borrower_name, quantity, item_id)
    return borrowing


def recent_borrowings(db: Session, limit: int = RECENT_BORROWINGS_LIMIT) -> list[RecentBorrowing]:
    # inner join: borrowings of deleted items are left out
    statement = (
        select(Borrowing, Item.item_name)
        .join(Item, Borrowing.item_id == Item.id)
        .order_by(Borrowing.borrow_date.desc(), Borrowing.id.desc())
        .limit(limit)
    )
    return [
        RecentBorrowing(**borrowing.model_dump(), item_name=item_name)
        for borrowing, item_name in db.exec(statement).all()
    ]
