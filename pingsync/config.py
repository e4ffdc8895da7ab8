"""PINGSYNC - Central Configuration via Pydantic Settings."""

import json
import re
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings

from pingsync.core.errors import ConfigError

GRAPHITE_AUTH_PATTERN = re.compile(r"^\w+:[\w.-]+$")


class Settings(BaseSettings):
    """Application settings loaded from environment variables / .env file."""

    # ── Pingdom API ──
    pingdom_api_token: str = ""
    pingdom_base_url: str = "https://api.pingdom.com/api/3.1"
    # Legacy 2.1 API, still the only way to reach transaction monitors
    pingdom_legacy_base_url: str = "https://api.pingdom.com/api/2.1"
    pingdom_app_key: str = ""
    pingdom_username: str = ""
    pingdom_password: str = ""
    pingdom_account_email: str = ""
    pingdom_regex: Optional[str] = None
    pingdom_tags: str = ""  # comma-separated
    pingdom_concurrency: int = 5
    pingdom_timeout: float = 30.0

    # ── Graphite sink ──
    graphite_hostname: str = ""
    graphite_auth: str = ""  # user:api_key
    graphite_prefix: str = "pingdom"
    graphite_concurrency: int = 5
    graphite_batch_size: int = 500
    graphite_timeout: float = 30.0

    # ── State ──
    manifest_path: str = "manifest.json"
    database_url: str = ""  # when set, checkpoints live in SQL instead of the JSON manifest

    # ── Sync ──
    max_horizon_seconds: int = 2764770  # ~32 days
    sync_summary_only: bool = False

    # ── App ──
    log_level: str = "INFO"
    scheduler_enabled: bool = True
    sync_interval_minutes: int = 5

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    @field_validator("pingdom_tags", mode="before")
    @classmethod
    def _join_tags(cls, value: Any) -> Any:
        """The JSON config file carries tags as a list."""
        if isinstance(value, (list, tuple)):
            return ",".join(str(tag) for tag in value)
        return value

    @field_validator("graphite_auth")
    @classmethod
    def _check_graphite_auth(cls, value: str) -> str:
        if value and not GRAPHITE_AUTH_PATTERN.match(value):
            raise ValueError("graphite_auth must look like 'user:api_key'")
        return value

    @field_validator("pingdom_concurrency", "graphite_concurrency", "graphite_batch_size")
    @classmethod
    def _check_positive(cls, value: int) -> int:
        if value < 1:
            raise ValueError("must be >= 1")
        return value

    @property
    def tag_list(self) -> List[str]:
        return [tag.strip() for tag in self.pingdom_tags.split(",") if tag.strip()]

    def missing_pingdom_settings(self) -> List[str]:
        """Names of the Pingdom credentials that are not configured."""
        required = {
            "pingdom_api_token": self.pingdom_api_token,
            "pingdom_app_key": self.pingdom_app_key,
            "pingdom_username": self.pingdom_username,
            "pingdom_password": self.pingdom_password,
            "pingdom_account_email": self.pingdom_account_email,
        }
        missing = [name for name, value in required.items() if not value]
        for name in ("pingdom_username", "pingdom_account_email"):
            value = required[name]
            if value and "@" not in value:
                missing.append(f"{name} (not an email address)")
        return missing

    def validate_for_pingdom(self) -> None:
        """Raise ConfigError unless the Pingdom side is fully configured."""
        missing = self.missing_pingdom_settings()
        if missing:
            raise ConfigError(f"Missing or invalid settings: {', '.join(missing)}")

    def validate_for_sync(self) -> None:
        """Raise ConfigError unless both Pingdom and Graphite are configured."""
        missing = self.missing_pingdom_settings()
        if not self.graphite_hostname:
            missing.append("graphite_hostname")
        if not self.graphite_auth:
            missing.append("graphite_auth")
        if missing:
            raise ConfigError(f"Missing or invalid settings: {', '.join(missing)}")


# Nested JSON config file keys → flat settings fields
_CONFIG_FILE_KEYS = {
    ("manifest",): "manifest_path",
    ("pingdom", "apiToken"): "pingdom_api_token",
    ("pingdom", "appKey"): "pingdom_app_key",
    ("pingdom", "username"): "pingdom_username",
    ("pingdom", "password"): "pingdom_password",
    ("pingdom", "accountEmail"): "pingdom_account_email",
    ("pingdom", "regex"): "pingdom_regex",
    ("pingdom", "tags"): "pingdom_tags",
    ("graphite", "hostname"): "graphite_hostname",
    ("graphite", "auth"): "graphite_auth",
    ("graphite", "prefix"): "graphite_prefix",
}


def _flatten_config_file(content: Dict[str, Any]) -> Dict[str, Any]:
    values: Dict[str, Any] = {}
    for path, field_name in _CONFIG_FILE_KEYS.items():
        node: Any = content
        for key in path:
            if not isinstance(node, dict) or key not in node:
                node = None
                break
            node = node[key]
        if node is not None:
            values[field_name] = node
    return values


def load_settings(config_file: Optional[str] = None) -> Settings:
    """Build settings, optionally seeded from a JSON config file.

    The file uses the nested layout
    ``{"manifest": ..., "pingdom": {"apiToken": ...}, "graphite": {...}}``.
    Values from the file win over the environment.
    """
    if not config_file:
        return Settings()

    path = Path(config_file).expanduser()
    try:
        content = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigError(f"Cannot read config file {path}: {e}") from e
    if not isinstance(content, dict):
        raise ConfigError(f"Config file {path} must contain a JSON object")

    try:
        return Settings(**_flatten_config_file(content))
    except ValueError as e:
        raise ConfigError(f"Invalid config file {path}: {e}") from e


settings = Settings()
