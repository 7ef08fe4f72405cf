import logging
import os
from contextlib import asynccontextmanager
from typing import Annotated

import uvicorn  # type: ignore
from fastapi import Depends, FastAPI, Path, Query, Request, Response  # type: ignore
from fastapi.exceptions import RequestValidationError  # type: ignore
from fastapi.middleware.cors import CORSMiddleware  # type: ignore
from fastapi.responses import JSONResponse  # type: ignore
from fastapi.staticfiles import StaticFiles  # type: ignore
from sqlalchemy.exc import SQLAlchemyError  # type: ignore
from sqlmodel import Session  # type: ignore

from mapala import crud
from mapala.config import DEFAULT_SECRET_KEY, Settings, configure_logging, get_settings
from mapala.database import create_db_and_tables, get_session, make_engine
from mapala.errors import MapalaError, StoreError
from mapala.models import (
    BorrowingOut,
    BorrowRequest,
    Credentials,
    ItemIn,
    ItemOut,
    MAX_INTEGER,
    MIN_INTEGER,
    Message,
    RecentBorrowing,
)
from mapala.security import SessionStore, get_session_store, get_session_token, require_user

logger = logging.getLogger(__name__)

SessionDep = Annotated[Session, Depends(get_session)]
SessionStoreDep = Annotated[SessionStore, Depends(get_session_store)]
ItemId = Annotated[int, Path(ge=MIN_INTEGER, le=MAX_INTEGER)]


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Using database %s", app.state.engine.url)
    create_db_and_tables(app.state.engine)
    yield
    app.state.engine.dispose()


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.log_level)
    if settings.secret_key == DEFAULT_SECRET_KEY:
        logger.warning("MAPALA_SECRET_KEY is not set, session cookies are signed with the default key")

    app = FastAPI(title="Mapala Logistics", lifespan=lifespan)
    app.state.settings = settings
    app.state.engine = make_engine(settings.database_url)
    app.state.sessions = SessionStore(settings.secret_key, settings.algorithm,
                                      settings.session_lifetime)

    app.add_middleware(
        CORSMiddleware,
        allow_origin_regex=r".*",
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_error_handlers(app)
    register_routes(app)

    if os.path.isdir(settings.public_dir):
        app.mount("/", StaticFiles(directory=settings.public_dir, html=True), name="public")
    return app


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(MapalaError)
    async def mapala_error_handler(request: Request, exc: MapalaError):
        return JSONResponse(status_code=exc.status_code, content={"message": exc.message})

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={"message": "Invalid request"})

    @app.exception_handler(SQLAlchemyError)
    async def store_error_handler(request: Request, exc: SQLAlchemyError):
        logger.exception("Store error on %s %s", request.method, request.url.path, exc_info=exc)
        return JSONResponse(status_code=StoreError.status_code, content={"message": StoreError.message})


def register_routes(app: FastAPI) -> None:
    settings: Settings = app.state.settings

    @app.post("/register")
    def register(credentials: Credentials, session: SessionDep) -> Message:
        crud.create_user(session, credentials.username, credentials.password)
        return Message(message="User registered successfully")

    @app.post("/login")
    def login(credentials: Credentials, response: Response, session: SessionDep,
              sessions: SessionStoreDep) -> Message:
        user_id = crud.authenticate_user(session, credentials.username, credentials.password)
        token = sessions.create_session(user_id)
        response.set_cookie(
            key=settings.session_cookie,
            value=token,
            max_age=settings.session_max_age,
            httponly=True,
            secure=False,
            samesite="lax",
        )
        logger.info("User %s logged in", user_id)
        return Message(message="Login successful")

    @app.post("/logout")
    def logout(request: Request, response: Response, sessions: SessionStoreDep) -> Message:
        sessions.destroy_session(get_session_token(request))
        response.delete_cookie(settings.session_cookie)
        logger.info("Session closed")
        return Message(message="Logged out")

    # guests can read the catalog
    @app.get("/logistics")
    def list_logistics(session: SessionDep) -> list[ItemOut]:
        return crud.list_items(session)

    @app.post("/logistics", dependencies=[Depends(require_user)])
    def create_logistics(item: ItemIn, session: SessionDep) -> ItemOut:
        return crud.create_item(session, item.item_name, item.quantity, item.description)

    @app.put("/logistics/{item_id}", dependencies=[Depends(require_user)])
    def update_logistics(item_id: ItemId, item: ItemIn, session: SessionDep) -> ItemOut:
        return crud.update_item(session, item_id, item.item_name, item.quantity, item.description)

    @app.delete("/logistics/{item_id}", dependencies=[Depends(require_user)])
    def delete_logistics(item_id: ItemId, session: SessionDep) -> Message:
        crud.delete_item(session, item_id)
        return Message(message="Item deleted")

    # open to guests, like the catalog listing
    @app.post("/borrow")
    def borrow(borrow_request: BorrowRequest, session: SessionDep) -> BorrowingOut:
        return crud.borrow_item(session, borrow_request.item_id, borrow_request.borrower_name,
                                borrow_request.quantity)

    @app.get("/borrowings", dependencies=[Depends(require_user)])
    def list_borrowings(session: SessionDep,
                        limit: int = Query(default=crud.RECENT_BORROWINGS_LIMIT, ge=1, le=100)
                        ) -> list[RecentBorrowing]:
        return crud.recent_borrowings(session, limit)


app = create_app()


def run() -> None:
    settings = get_settings()
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port)
