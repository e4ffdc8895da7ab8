"""PINGSYNC - Manifest Store Factory."""

from typing import Optional

from pingsync.config import Settings, settings
from pingsync.core.errors import ConfigError
from pingsync.core.logging import get_logger
from pingsync.manifest.base import ManifestStore
from pingsync.manifest.json_store import JsonManifestStore

logger = get_logger("manifest")


def build_manifest_store(config: Optional[Settings] = None) -> ManifestStore:
    """SQL store when ``DATABASE_URL`` is set, otherwise the JSON manifest file.

    Raises:
        ConfigError: the database does not answer.
    """
    config = config or settings
    if config.database_url:
        # SQL backend imports stay lazy
        from pingsync.database import build_engine, check_connection
        from pingsync.manifest.sql_store import SqlManifestStore

        engine = build_engine(config.database_url)
        if not check_connection(engine):
            raise ConfigError("DATABASE_URL is set but the database is unreachable")
        return SqlManifestStore(engine)

    logger.info(f"📄 Manifest file: {config.manifest_path}")
    return JsonManifestStore(config.manifest_path)
