from datetime import datetime

from sqlmodel import Field, SQLModel  # type: ignore

# range of an SQLite INTEGER column
MIN_INTEGER = -(2**63)
MAX_INTEGER = 2**63 - 1


class Credentials(SQLModel):
    username: str | None = None
    password: str | None = None


class Message(SQLModel):
    message: str


# Missing fields are stored as NULL; a quantity, when given, may not be negative.
class ItemIn(SQLModel):
    item_name: str | None = None
    quantity: int | None = Field(default=None, ge=0, le=MAX_INTEGER)
    description: str | None = None


class ItemOut(ItemIn):
    id: int


class BorrowRequest(SQLModel):
    item_id: int | None = Field(default=None, ge=MIN_INTEGER, le=MAX_INTEGER)
    borrower_name: str | None = None
    quantity: int | None = Field(default=None, ge=1, le=MAX_INTEGER)


class BorrowingOut(SQLModel):
    id: int
    item_id: int
    borrower_name: str
    quantity: int
    borrow_date: datetime


class RecentBorrowing(BorrowingOut):
    item_name: str | None = None
