"""Integration settings for the order sync pipeline.

Settings are read once per batch from the environment (a ``.env`` file at
the repo root is loaded first if present) and passed explicitly through the
pipeline. They are immutable once built.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import FrozenSet, Mapping, Optional

from dotenv import load_dotenv

from order_store.models import REFUND_RECORD_TYPES


REPO_ROOT = Path(__file__).resolve().parents[2]
DEFAULT_DB_PATH = REPO_ROOT / "order_sync.db"

DEFAULT_TIMEOUT_SECONDS = 60
DEFAULT_CHANNEL_NAME = "NetSuite"


class ConfigurationError(Exception):
    """Integration settings are missing or invalid."""
    pass


def _load_env_file() -> None:
    env_path = REPO_ROOT / ".env"
    if env_path.exists():
        load_dotenv(env_path, override=False)


def _parse_bool(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in {"1", "true", "yes", "on"}


def _parse_record_types(value: Optional[str]) -> FrozenSet[str]:
    # Unset or blank keeps the refund exclusions; they are never synchronized
    parts = frozenset(part.strip() for part in (value or "").split(",") if part.strip())
    return parts or REFUND_RECORD_TYPES


def json_logs_enabled(environ: Optional[Mapping[str, str]] = None) -> bool:
    """Whether ORDER_SYNC_LOG_JSON asks for JSON log lines.

    Readable without the NetSuite credentials, so processes can configure
    logging before any batch settings exist.
    """
    if environ is None:
        _load_env_file()
        environ = os.environ
    return _parse_bool(environ.get("ORDER_SYNC_LOG_JSON"))


@dataclass(frozen=True)
class IntegrationSettings:
    """Configuration for one sync batch.

    Attributes:
        endpoint_url: NetSuite RESTlet/endpoint receiving order payloads
        token_url: OAuth2 token endpoint
        client_assertion: Signed client assertion presented to the token endpoint
        timeout_seconds: Per-callout timeout
        channel_name: Integration channel recorded on every outcome
        db_path: SQLite source store
        audit_db_path: SQLite audit store
        excluded_record_types: Milestone record types never synchronized
        json_logs: Emit JSON log lines instead of human-readable ones
    """
    endpoint_url: str
    token_url: str
    client_assertion: str
    timeout_seconds: int = DEFAULT_TIMEOUT_SECONDS
    channel_name: str = DEFAULT_CHANNEL_NAME
    db_path: Path = DEFAULT_DB_PATH
    audit_db_path: Path = DEFAULT_DB_PATH
    excluded_record_types: FrozenSet[str] = field(default_factory=lambda: REFUND_RECORD_TYPES)
    json_logs: bool = False

    def __post_init__(self):
        missing = [
            name for name in ("endpoint_url", "token_url", "client_assertion")
            if not (getattr(self, name) or "").strip()
        ]
        if missing:
            raise ConfigurationError(f"Missing integration settings: {', '.join(missing)}")
        if self.timeout_seconds <= 0:
            raise ConfigurationError(f"timeout_seconds must be positive, got {self.timeout_seconds}")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "IntegrationSettings":
        """Build settings from environment variables.

        Reads:
        - NETSUITE_ENDPOINT_URL, NETSUITE_TOKEN_URL, NETSUITE_CLIENT_ASSERTION (required)
        - NETSUITE_TIMEOUT_SECONDS, NETSUITE_CHANNEL_NAME
        - ORDER_SYNC_DB_PATH, ORDER_SYNC_AUDIT_DB_PATH
        - ORDER_SYNC_EXCLUDED_RECORD_TYPES (comma separated)
        - ORDER_SYNC_LOG_JSON

        Raises:
            ConfigurationError: If a required value is missing or a value is malformed
        """
        if environ is None:
            _load_env_file()
            environ = os.environ

        timeout_raw = environ.get("NETSUITE_TIMEOUT_SECONDS", str(DEFAULT_TIMEOUT_SECONDS))
        try:
            timeout_seconds = int(timeout_raw)
        except ValueError:
            raise ConfigurationError(f"NETSUITE_TIMEOUT_SECONDS is not an integer: {timeout_raw!r}")

        db_path = Path(environ.get("ORDER_SYNC_DB_PATH") or DEFAULT_DB_PATH)
        audit_db_path = Path(environ.get("ORDER_SYNC_AUDIT_DB_PATH") or db_path)

        return cls(
            endpoint_url=environ.get("NETSUITE_ENDPOINT_URL", ""),
            token_url=environ.get("NETSUITE_TOKEN_URL", ""),
            client_assertion=environ.get("NETSUITE_CLIENT_ASSERTION", ""),
            timeout_seconds=timeout_seconds,
            channel_name=environ.get("NETSUITE_CHANNEL_NAME") or DEFAULT_CHANNEL_NAME,
            db_path=db_path,
            audit_db_path=audit_db_path,
            excluded_record_types=_parse_record_types(environ.get("ORDER_SYNC_EXCLUDED_RECORD_TYPES")),
            json_logs=json_logs_enabled(environ),
        )
