import logging
import os
from dataclasses import dataclass
from datetime import timedelta

from dotenv import load_dotenv  # type: ignore

load_dotenv()

DEFAULT_SECRET_KEY = "mapala_secret_key"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


@dataclass(frozen=True)
class Settings:
    database_url: str = "sqlite:///./mapala.db"
    secret_key: str = DEFAULT_SECRET_KEY
    algorithm: str = "HS256"
    session_cookie: str = "mapala_session"
    session_max_age: int = 60 * 60 * 24  # 1 day
    public_dir: str = "public"
    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "INFO"

    @property
    def session_lifetime(self) -> timedelta:
        return timedelta(seconds=self.session_max_age)


def get_settings() -> Settings:
    """Build settings from MAPALA_* environment variables (and .env)."""
    return Settings(
        database_url=os.getenv("MAPALA_DATABASE_URL", Settings.database_url),
        secret_key=os.getenv("MAPALA_SECRET_KEY", DEFAULT_SECRET_KEY),
        session_cookie=os.getenv("MAPALA_SESSION_COOKIE", Settings.session_cookie),
        session_max_age=int(os.getenv("MAPALA_SESSION_MAX_AGE", Settings.session_max_age)),
        public_dir=os.getenv("MAPALA_PUBLIC_DIR", Settings.public_dir),
        host=os.getenv("MAPALA_HOST", Settings.host),
        port=int(os.getenv("MAPALA_PORT", Settings.port)),
        log_level=os.getenv("MAPALA_LOG_LEVEL", Settings.log_level),
    )


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)
