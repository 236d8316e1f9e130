"""Configuration loaded from environment variables.

All settings have sensible defaults. Override via CHATGROUP_* env vars,
or a YAML file (see :mod:`chatgroup.yaml_config`).
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from urllib.parse import quote, urlsplit, urlunsplit

logger = logging.getLogger(__name__)

API_PREFIX = "/api/chat"


@dataclass
class ClientConfig:
    """Chat client configuration."""

    # Collaborator server, e.g. http://127.0.0.1:3000
    base_url: str = "http://127.0.0.1:3000"

    # Fixed delay between stream reconnect attempts (no backoff).
    reconnect_delay_seconds: float = 1.5
    # How long a finished run stays visible waiting for its message.
    run_grace_seconds: float = 1.5

    # Inline diff ceilings. Larger diffs get a raw-diff link instead.
    max_inline_diff_chars: int = 1_000_000
    max_inline_diff_files: int = 120
    max_inline_file_patch_chars: int = 300_000

    request_timeout_seconds: float = 30.0

    # Logging
    log_level: str = "INFO"
    log_file: str | None = None

    def api_url(self, path: str) -> str:
        return f"{self.base_url.rstrip('/')}{API_PREFIX}{path}"

    def stream_url(self, session_id: str) -> str:
        """WebSocket URL of the live stream for *session_id*."""
        parts = urlsplit(self.base_url.rstrip("/"))
        scheme = {"https": "wss", "http": "ws"}.get(parts.scheme, parts.scheme)
        path = f"{parts.path}{API_PREFIX}/sessions/{quote(session_id, safe='')}/stream"
        return urlunsplit((scheme, parts.netloc, path, "", ""))

    @classmethod
    def from_env(cls) -> ClientConfig:
        """Load configuration from CHATGROUP_* environment variables."""
        overrides = {
            k: v for k, v in os.environ.items() if k.startswith("CHATGROUP_")
        }
        if overrides:
            logger.info(
                "ClientConfig.from_env: CHATGROUP_* env overrides: %s",
                ", ".join(sorted(overrides)),
            )
        else:
            logger.debug("ClientConfig.from_env: no CHATGROUP_* env vars set, using defaults")

        return cls(
            base_url=os.getenv("CHATGROUP_BASE_URL", cls.base_url),
            reconnect_delay_seconds=float(os.getenv(
                "CHATGROUP_RECONNECT_DELAY", str(cls.reconnect_delay_seconds)
            )),
            run_grace_seconds=float(os.getenv(
                "CHATGROUP_RUN_GRACE", str(cls.run_grace_seconds)
            )),
            max_inline_diff_chars=int(os.getenv(
                "CHATGROUP_MAX_DIFF_CHARS", str(cls.max_inline_diff_chars)
            )),
            max_inline_diff_files=int(os.getenv(
                "CHATGROUP_MAX_DIFF_FILES", str(cls.max_inline_diff_files)
            )),
            max_inline_file_patch_chars=int(os.getenv(
                "CHATGROUP_MAX_FILE_PATCH_CHARS",
                str(cls.max_inline_file_patch_chars),
            )),
            request_timeout_seconds=float(os.getenv(
                "CHATGROUP_REQUEST_TIMEOUT", str(cls.request_timeout_seconds)
            )),
            log_level=os.getenv("CHATGROUP_LOG_LEVEL", cls.log_level),
            log_file=os.getenv("CHATGROUP_LOG_FILE") or None,
        )
