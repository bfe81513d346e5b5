"""Database settings.

Settings come either from a full connection URL or from discrete host, port,
database and user values plus a password file. The password is never read
from the environment directly and never appears in ``repr`` output.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Literal

import pydantic
from pydantic import BaseModel, ConfigDict, Field, model_validator
from sqlalchemy.engine import URL, make_url

from formscaffold.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

ENV_PREFIX = "FORMSCAFFOLD_"

TLSMode = Literal["disable", "prefer", "require", "verify-ca", "verify-full"]
Environment = Literal["development", "test", "production"]

# Environment variable suffix -> settings field
_ENV_FIELDS = {
    "DATABASE_URL": "url",
    "DB_HOST": "host",
    "DB_PORT": "port",
    "DB_NAME": "database",
    "DB_USER": "user",
    "DB_PASSWORD_FILE": "password_file",
    "DB_POOL_SIZE": "pool_size",
    "DB_IDLE_TIMEOUT": "idle_timeout",
    "DB_CONNECT_TIMEOUT": "connect_timeout",
    "DB_STATEMENT_TIMEOUT": "statement_timeout",
    "DB_TLS": "tls",
    "ENV": "environment",
}


def _normalize_postgresql_url(url: str) -> str:
    """Normalize a PostgreSQL URL to the psycopg (v3) driver.

    Args:
        url: Database URL

    Returns:
        URL using ``postgresql+psycopg://`` unless a driver is already named
    """
    if url.startswith("postgres://"):
        url = "postgresql://" + url[len("postgres://") :]
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+psycopg://", 1)
    return url


class DatabaseSettings(BaseModel):
    """Connection and pool settings.

    Example:
        >>> settings = DatabaseSettings(url="sqlite:///:memory:")
        >>> settings.backend
        'sqlite'
    """

    model_config = ConfigDict(frozen=True)

    url: str | None = Field(default=None, repr=False, description="Full connection URL")
    host: str = "localhost"
    port: int = Field(default=5432, ge=1, le=65535)
    database: str | None = None
    user: str | None = None
    password_file: Path | None = Field(
        default=None, description="File holding the password (trailing whitespace trimmed)"
    )
    pool_size: int = Field(default=10, ge=1, description="Maximum pooled connections")
    idle_timeout: float = Field(
        default=20, gt=0, description="Seconds before an idle connection is recycled"
    )
    connect_timeout: float = Field(default=10, gt=0, description="Seconds to wait for a connection")
    statement_timeout: float = Field(default=30, gt=0, description="Seconds a statement may run")
    tls: TLSMode | None = None
    environment: Environment = "development"
    echo: bool = False

    @model_validator(mode="after")
    def _check_target(self) -> DatabaseSettings:
        if not self.url and not self.database:
            raise ValueError("either url or database must be set")
        if self.environment == "production" and self.tls in ("disable", "prefer"):
            raise ValueError(f"tls '{self.tls}' is not allowed in production")
        return self

    @property
    def sslmode(self) -> str:
        """TLS mode passed to the PostgreSQL driver; production always requires it."""
        if self.tls is not None:
            return self.tls
        return "require" if self.environment == "production" else "prefer"

    @property
    def backend(self) -> str:
        """Backend name of the target database (``postgresql`` or ``sqlite``)."""
        return self.sqlalchemy_url(with_password=False).get_backend_name()

    @property
    def is_memory(self) -> bool:
        """True for an in-memory SQLite database."""
        url = self.sqlalchemy_url(with_password=False)
        return url.get_backend_name() == "sqlite" and url.database in (None, "", ":memory:")

    def read_password(self) -> str | None:
        """Read the password file.

        Raises:
            ConfigurationError: If the file is set but cannot be read
        """
        if self.password_file is None:
            return None
        try:
            return self.password_file.read_text().strip()
        except OSError as e:
            raise ConfigurationError(
                f"Cannot read password file: {e}", {"password_file": str(self.password_file)}
            ) from e

    def sqlalchemy_url(self, with_password: bool = True) -> URL:
        """Build the SQLAlchemy URL.

        Args:
            with_password: Read the password file when building from parts

        Raises:
            ConfigurationError: If the URL cannot be parsed
        """
        if self.url:
            try:
                return make_url(_normalize_postgresql_url(self.url))
            except Exception as e:
                raise ConfigurationError(f"Invalid database URL: {e}") from e
        return URL.create(
            "postgresql+psycopg",
            username=self.user,
            password=self.read_password() if with_password else None,
            host=self.host,
            port=self.port,
            database=self.database,
        )

    def display_url(self) -> str:
        """The target URL with any password masked."""
        return self.sqlalchemy_url(with_password=False).render_as_string(hide_password=True)

    @classmethod
    def from_env(
        cls, environ: Mapping[str, str] | None = None, **overrides: object
    ) -> DatabaseSettings:
        """Load settings from ``FORMSCAFFOLD_*`` environment variables.

        Args:
            environ: Mapping to read instead of ``os.environ``
            **overrides: Values that win over the environment

        Returns:
            DatabaseSettings

        Raises:
            ConfigurationError: If the resulting settings are invalid
        """
        source = os.environ if environ is None else environ
        values: dict[str, object] = {}
        for suffix, field_name in _ENV_FIELDS.items():
            raw = source.get(f"{ENV_PREFIX}{suffix}")
            if raw:
                values[field_name] = raw
        values.update({k: v for k, v in overrides.items() if v is not None})

        try:
            settings = cls.model_validate(values)
        except pydantic.ValidationError as e:
            problems = [
                f"{'.'.join(str(p) for p in err['loc']) or 'settings'}: {err['msg']}"
                for err in e.errors()
            ]
            raise ConfigurationError(
                f"Invalid database settings: {'; '.join(problems)}", {"problems": problems}
            ) from e
        logger.debug(f"Loaded database settings for {settings.display_url()}")
        return settings
