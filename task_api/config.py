"""Settings loaded from environment variables (+ optional .env file)."""
import logging
import os
from dataclasses import dataclass, field
from typing import List, Mapping, Optional
from urllib.parse import quote_plus

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

DEFAULT_DATABASE_URL = "sqlite:///./tasks.db"
DB_VARS = ("DB_HOST", "DB_NAME", "DB_USER", "DB_PASSWORD")
TRUTHY = frozenset({"1", "true", "yes", "on"})


class ConfigError(RuntimeError):
    pass


class _Environ:
    """Reads over the process environment. Blank values count as unset."""

    def __init__(self, values: Mapping[str, str]):
        self._values = values

    def get(self, *names: str, default: Optional[str] = None) -> Optional[str]:
        for name in names:
            value = self._values.get(name, "").strip()
            if value:
                return value
        return default

    def number(self, name: str, default: int) -> int:
        raw = self.get(name)
        if raw is None:
            return default
        try:
            return int(raw)
        except ValueError:
            logger.warning("Ignoring non-integer %s=%r", name, raw)
            return default

    def flag(self, name: str, default: bool) -> bool:
        raw = self.get(name)
        return default if raw is None else raw.lower() in TRUTHY

    def origins(self, name: str) -> List[str]:
        raw = self.get(name, default="*")
        return raw.replace(",", " ").split()


def _database_url_from_parts(env: str, environ: _Environ) -> Optional[str]:
    """Build a MySQL URL from DB_* variables, the way the service is deployed on RDS."""
    if not environ.get("DB_HOST"):
        return None

    missing = [name for name in DB_VARS if not environ.get(name)]
    if missing:
        message = f"Missing required environment variables: {', '.join(missing)}"
        if env != "production":
            logger.error(message)
            raise ConfigError(message)
        logger.warning(
            "%s. Continuing in production mode assuming they will be injected by the container runtime.",
            message,
        )

    user = quote_plus(environ.get("DB_USER", default=""))
    password = quote_plus(environ.get("DB_PASSWORD", default=""))
    host = environ.get("DB_HOST")
    port = environ.get("DB_PORT", default="3306")
    name = environ.get("DB_NAME", default="")
    return f"mysql+pymysql://{user}:{password}@{host}:{port}/{name}"


@dataclass(frozen=True)
class Settings:
    env: str = "development"
    log_level: str = "INFO"

    database_url: str = DEFAULT_DATABASE_URL
    db_pool_size: int = 5
    db_pool_timeout: int = 30
    db_pool_recycle: int = 1800
    db_echo: bool = False
    db_connect_retries: int = 1
    run_migrations: bool = True

    host: str = "0.0.0.0"
    port: int = 3000
    cors_origins: List[str] = field(default_factory=lambda: ["*"])
    cors_credentials: bool = False

    @property
    def is_production(self) -> bool:
        return self.env == "production"

    @staticmethod
    def from_env(dotenv: bool = True) -> "Settings":
        if dotenv:
            load_dotenv(override=False)

        environ = _Environ(os.environ)
        env = environ.get("TASK_API_ENV", "APP_ENV", default="development")
        development = env == "development"
        production = env == "production"

        database_url = (
            environ.get("TASK_API_DATABASE_URL", "DATABASE_URL")
            or _database_url_from_parts(env, environ)
            or DEFAULT_DATABASE_URL
        )

        return Settings(
            env=env,
            log_level=environ.get("TASK_API_LOG_LEVEL", default="DEBUG" if development else "INFO").upper(),
            database_url=database_url,
            db_pool_size=environ.number("TASK_API_DB_POOL_SIZE", 5 if development else 10),
            db_pool_timeout=environ.number("TASK_API_DB_POOL_TIMEOUT", 30),
            db_pool_recycle=environ.number("TASK_API_DB_POOL_RECYCLE", 1800),
            db_echo=environ.flag("TASK_API_DB_ECHO", False),
            db_connect_retries=environ.number("TASK_API_DB_CONNECT_RETRIES", 5 if production else 1),
            run_migrations=environ.flag("TASK_API_RUN_MIGRATIONS", True),
            host=environ.get("TASK_API_HOST", default="0.0.0.0"),
            port=environ.number("TASK_API_PORT", environ.number("PORT", 3000)),
            cors_origins=environ.origins("TASK_API_CORS_ORIGINS"),
            cors_credentials=environ.flag("TASK_API_CORS_CREDENTIALS", False),
        )
