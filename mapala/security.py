import logging
import secrets
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import jwt  # type: ignore
from fastapi import Request  # type: ignore
from jwt.exceptions import InvalidTokenError  # type: ignore
from passlib.context import CryptContext  # type: ignore

from mapala.errors import UnauthorizedError

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


@dataclass
class SessionRecord:
    user_id: int
    expires_at: datetime


class SessionStore:
    """In-memory map of live sessions.

    The cookie handed to the client is a signed token carrying a random
    session id; the id has to be present here for the session to count, so
    destroying a session takes effect immediately even though the token
    itself would still verify until it expires.
    """

    def __init__(self, secret_key: str, algorithm: str = "HS256",
                 lifetime: timedelta = timedelta(days=1)):
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.lifetime = lifetime
        self._sessions: dict[str, SessionRecord] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def create_session(self, user_id: int) -> str:
        now = datetime.now(timezone.utc)
        session_id = secrets.token_urlsafe(32)
        expires_at = now + self.lifetime
        with self._lock:
            self._purge_expired(now)
            self._sessions[session_id] = SessionRecord(user_id=user_id, expires_at=expires_at)
        logger.debug("Opened session for user %s, expires %s", user_id, expires_at.isoformat())
        to_encode = {"sid": session_id, "sub": str(user_id), "exp": expires_at}
        return jwt.encode(to_encode, self.secret_key, algorithm=self.algorithm)

    def require_session(self, token: str | None) -> int:
        if not token:
            raise UnauthorizedError()
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except InvalidTokenError:
            raise UnauthorizedError()
        session_id = payload.get("sid")
        now = datetime.now(timezone.utc)
        with self._lock:
            record = self._sessions.get(session_id)
            if record is not None and record.expires_at <= now:
                del self._sessions[session_id]
                record = None
        if record is None:
            raise UnauthorizedError()
        return record.user_id

    def destroy_session(self, token: str | None) -> None:
        if not token:
            return
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm],
                                 options={"verify_exp": False})
        except InvalidTokenError:
            return
        with self._lock:
            record = self._sessions.pop(payload.get("sid"), None)
        if record is not None:
            logger.debug("Closed session for user %s", record.user_id)

    def _purge_expired(self, now: datetime) -> None:
        expired = [sid for sid, record in self._sessions.items() if record.expires_at <= now]
        for sid in expired:
            del self._sessions[sid]


def get_session_store(request: Request) -> SessionStore:
    return request.app.state.sessions


def get_session_token(request: Request) -> str | None:
    return request.cookies.get(request.app.state.settings.session_cookie)


def require_user(request: Request) -> int:
    """Dependency for routes that need a logged in user; returns the user id."""
    return get_session_store(request).require_session(get_session_token(request))
