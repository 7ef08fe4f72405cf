from datetime import datetime, timezone

from fastapi import Request  # type: ignore
from sqlalchemy.engine import Engine  # type: ignore
from sqlmodel import Field, Session, SQLModel, create_engine  # type: ignore


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(SQLModel, table=True):
    __tablename__ = "users"
    id: int | None = Field(default=None, primary_key=True)
    username: str = Field(index=True, unique=True)
    password_digest: str


class Item(SQLModel, table=True):
    __tablename__ = "logistics"
    id: int | None = Field(default=None, primary_key=True)
    item_name: str | None = Field(default=None)
    quantity: int | None = Field(default=None)
    description: str | None = Field(default=None)


class Borrowing(SQLModel, table=True):
    __tablename__ = "borrowings"
    id: int | None = Field(default=None, primary_key=True)
    # no ondelete: deleting an item leaves its borrowings in place
    item_id: int = Field(index=True, foreign_key="logistics.id")
    borrower_name: str
    quantity: int
    borrow_date: datetime = Field(default_factory=utcnow, index=True)


def make_engine(url: str, echo: bool = False) -> Engine:
    connect_args = {}
    if url.startswith("sqlite"):
        # route handlers run in a threadpool
        connect_args["check_same_thread"] = False
    return create_engine(url, echo=echo, connect_args=connect_args)


def create_db_and_tables(engine: Engine) -> None:
    SQLModel.metadata.create_all(engine)


def get_session(request: Request):
    with Session(request.app.state.engine) as session:
        yield session
