"""Centralised settings for the drugcrawl scraper.

All runtime configuration is resolved here in one place.  Values can be
overridden via environment variables or a `.env` file in the project root
(loaded automatically when this module is imported).  The CLI applies its
own flags on top of these defaults.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

# Load .env from the project root (two levels up from this file)
_env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_env_path, override=False)

VERSION = "1.1.0"


def _env_bool(name: str, default: str = "0") -> bool:
    return os.environ.get(name, default).strip().lower() in ("1", "true", "yes", "on")


@dataclass
class Settings:
    # ------------------------------------------------------------------
    # Source
    # ------------------------------------------------------------------
    atc_url: str = field(
        default_factory=lambda: os.environ.get("ATC_URL", "https://tabletki.ua/atc/")
    )
    atc_root_name: str = "АТХ (ATC) классификация"

    # ------------------------------------------------------------------
    # Mode / output targets
    # ------------------------------------------------------------------
    prod: bool = field(default_factory=lambda: _env_bool("DRUGCRAWL_PROD"))
    workspace_dir: Path = field(
        default_factory=lambda: Path(
            os.environ.get("DRUGCRAWL_WORKSPACE", Path.home() / ".drugcrawl_data")
        )
    )
    csv_file: Path = field(
        default_factory=lambda: Path(os.environ.get("CSV_FILE", "tabletki.csv"))
    )
    json_file: Path = field(
        default_factory=lambda: Path(os.environ.get("JSON_FILE", "ATC_tree.json"))
    )
    db_file: str = field(default_factory=lambda: os.environ.get("DB_PATH", ""))

    @property
    def db_path(self) -> Path:
        """Absolute path to the SQLite database used in production mode."""
        if self.db_file:
            return Path(self.db_file)
        return self.workspace_dir / "drugs.db"

    @property
    def schema_path(self) -> Path:
        """Absolute path to the schema SQL file bundled with the package."""
        return Path(__file__).resolve().parent / "db" / "schema.sql"

    # ------------------------------------------------------------------
    # Concurrency
    # ------------------------------------------------------------------
    workers: int = field(
        default_factory=lambda: int(os.environ.get("WORKERS", "20"))
    )
    # 0 keeps the tree crawl unbounded (one thread per child).
    tree_workers: int = field(
        default_factory=lambda: int(os.environ.get("TREE_WORKERS", "0"))
    )
    stream_buffer: int = field(
        default_factory=lambda: int(os.environ.get("STREAM_BUFFER", "1"))
    )

    # ------------------------------------------------------------------
    # Fetcher / sinks
    # ------------------------------------------------------------------
    request_timeout: float = field(
        default_factory=lambda: float(os.environ.get("REQUEST_TIMEOUT", "30.0"))
    )
    batch_size: int = field(
        default_factory=lambda: int(os.environ.get("BATCH_SIZE", "100"))
    )

    # ------------------------------------------------------------------
    # Logging
    # ------------------------------------------------------------------
    log_level: str = field(
        default_factory=lambda: os.environ.get("LOG_LEVEL", "INFO")
    )


# Module-level singleton, import this everywhere:
#   from drugcrawl.config import settings
settings = Settings()
