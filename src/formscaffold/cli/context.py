"""CLI context management for database connections and shared state."""

import os
from dataclasses import dataclass, field

from formscaffold import FormScaffold
from formscaffold.core.config import ENV_PREFIX, DatabaseSettings

DEFAULT_DATABASE_URL = "sqlite:///./formscaffold.db"


def resolve_settings(url: str | None, echo: bool = False) -> DatabaseSettings:
    """Resolve database settings from CLI arg, environment variables, or default.

    Priority:
    1. Explicit URL argument
    2. FORMSCAFFOLD_DATABASE_URL or FORMSCAFFOLD_DB_NAME (with the other DB_* variables)
    3. Default: sqlite:///./formscaffold.db
    """
    if url:
        return DatabaseSettings(url=url, echo=echo)
    if os.getenv(f"{ENV_PREFIX}DATABASE_URL") or os.getenv(f"{ENV_PREFIX}DB_NAME"):
        return DatabaseSettings.from_env(echo=echo)
    return DatabaseSettings(url=DEFAULT_DATABASE_URL, echo=echo)


@dataclass
class CLIContext:
    """Shared context for CLI commands.

    Manages the store lifecycle and output preferences.
    """

    database_url: str | None
    echo: bool
    json_output: bool
    _store: FormScaffold | None = field(default=None, init=False, repr=False)

    def get_store(self) -> FormScaffold:
        """Get or create the store (lazy initialization).

        Returns:
            FormScaffold instance
        """
        if self._store is None:
            self._store = FormScaffold(resolve_settings(self.database_url, echo=self.echo))
        return self._store

    def close(self) -> None:
        """Close database connection if open."""
        if self._store is not None:
            self._store.close()
            self._store = None
