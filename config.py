from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Mapping, Optional

from dotenv import dotenv_values, load_dotenv
from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

logger = logging.getLogger(__name__)

APP_DIR = Path(__file__).resolve().parent
PROPERTIES_FILENAME = "database.properties"
PROPERTIES_ENV_VAR = "LIBRARY_DB_PROPERTIES"
LOG_LEVEL_ENV_VAR = "LIBRARY_LOG_LEVEL"

SQLITE_PREFIXES = ("jdbc:sqlite:", "sqlite:")
MEMORY_PATH = ":memory:"


class ConfigurationError(Exception):
    """Raised when the database settings cannot be resolved."""


class DatabaseConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    url: str
    user: str = "root"
    password: str = ""

    @field_validator("url")
    @classmethod
    def _supported_url(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("db.url must not be empty")
        if not value.lower().startswith(SQLITE_PREFIXES):
            raise ValueError(f"unsupported database URL {value!r}; only SQLite is available")
        return value

    @property
    def driver(self) -> str:
        return "sqlite"

    @property
    def database_path(self) -> str:
        """Filesystem path (or ``:memory:``) named by the URL."""
        lowered = self.url.lower()
        prefix = next(p for p in SQLITE_PREFIXES if lowered.startswith(p))
        remainder = self.url[len(prefix):]
        if remainder.startswith("//"):
            # sqlite:///relative.db and sqlite:////abs/path.db
            remainder = remainder[3:] if remainder.startswith("///") else remainder[2:]
        if remainder in ("", MEMORY_PATH):
            return MEMORY_PATH
        return remainder

    @property
    def is_memory(self) -> bool:
        return self.database_path == MEMORY_PATH


# --------------------------------------------------------------------------- #
# Loading
# --------------------------------------------------------------------------- #
def default_properties_path(environ: Optional[Mapping[str, str]] = None) -> Optional[Path]:
    env = os.environ if environ is None else environ
    override = env.get(PROPERTIES_ENV_VAR)
    if override:
        return Path(override)
    for candidate in (Path.cwd() / PROPERTIES_FILENAME, APP_DIR / PROPERTIES_FILENAME):
        if candidate.exists():
            return candidate
    return None


def load_config(
    properties_path: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> DatabaseConfig:
    """Build the database settings from the properties file and the environment.

    ``DB_USER`` and ``DB_PASSWORD`` take precedence over ``db.user`` and
    ``db.password`` whenever they are set, even to an empty string.
    """
    if environ is None:
        load_dotenv(Path.cwd() / ".env", override=False)
        environ = os.environ

    path = Path(properties_path) if properties_path else default_properties_path(environ)
    if path is None or not path.exists():
        raise ConfigurationError(f"Could not find {PROPERTIES_FILENAME}")

    properties = dotenv_values(path)
    url = properties.get("db.url")
    if not url:
        raise ConfigurationError(f"db.url is missing from {path}")

    user = environ.get("DB_USER")
    if user is None:
        user = properties.get("db.user")
    if user is None:
        user = "root"
    password = environ.get("DB_PASSWORD")
    if password is None:
        password = properties.get("db.password")
    if password is None:
        password = ""

    try:
        config = DatabaseConfig(url=url, user=user, password=password)
    except ValidationError as error:
        messages = "; ".join(item["msg"] for item in error.errors())
        raise ConfigurationError(f"Invalid database settings in {path}: {messages}") from error

    logger.info("Loaded database settings from %s (%s)", path, config.database_path)
    return config


def configure_logging(level: Optional[str] = None) -> None:
    name = (level or os.environ.get(LOG_LEVEL_ENV_VAR) or "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, name, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
