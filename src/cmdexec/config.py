"""cmdexec environment configuration.

Environment variables:
    CMDEXEC_TERM_TIMEOUT: Seconds to wait after SIGTERM before SIGKILL
        - default 2.0, clamped to 0-60

    CMDEXEC_KILL_TIMEOUT: Seconds to wait for exit after SIGKILL
        - default 1.0, clamped to 0-60

    CMDEXEC_ENCODING: Codec used to decode text results
        - default utf-8, unknown codecs fall back to the default

    CMDEXEC_DECODE_ERRORS: Codec error handler for text results
        - strict | replace (default) | ignore | surrogateescape | backslashreplace

    CMDEXEC_NEW_SESSION: Start children in a new session/process group
        - true/1/yes = isolate (default), so termination reaches grandchildren
        - false/0/no = share the caller's process group
"""

from __future__ import annotations

import codecs
import os
from dataclasses import dataclass

__all__ = ["Config", "load_config", "get_config", "reload_config"]

DEFAULT_TERM_TIMEOUT = 2.0
DEFAULT_KILL_TIMEOUT = 1.0
DEFAULT_ENCODING = "utf-8"
DEFAULT_DECODE_ERRORS = "replace"

DECODE_ERROR_HANDLERS = frozenset(
    {"strict", "replace", "ignore", "surrogateescape", "backslashreplace"}
)


def _parse_bool(value: str | None, default: bool = False) -> bool:
    """Parse a boolean environment variable."""
    if value is None or not value.strip():
        return default
    return value.strip().lower() in ("true", "1", "yes", "on")


def _parse_timeout(value: str | None, default: float) -> float:
    """Parse a timeout in seconds, clamped to 0-60."""
    if not value:
        return default
    try:
        seconds = float(value)
    except ValueError:
        return default
    return max(0.0, min(seconds, 60.0))


def _parse_encoding(value: str | None) -> str:
    """Parse a codec name, falling back to utf-8 when Python does not know it."""
    if not value or not value.strip():
        return DEFAULT_ENCODING
    try:
        return codecs.lookup(value.strip()).name
    except LookupError:
        return DEFAULT_ENCODING


def _parse_decode_errors(value: str | None) -> str:
    if not value:
        return DEFAULT_DECODE_ERRORS
    handler = value.strip().lower()
    if handler in DECODE_ERROR_HANDLERS:
        return handler
    return DEFAULT_DECODE_ERRORS


@dataclass(frozen=True)
class Config:
    """cmdexec configuration.

    Attributes:
        term_timeout: Seconds between SIGTERM and SIGKILL when a run is cancelled
        kill_timeout: Seconds to wait for exit after SIGKILL
        encoding: Codec for ``*_str`` results
        decode_errors: Codec error handler for ``*_str`` results
        new_session: Whether children start in their own session/process group
    """

    term_timeout: float = DEFAULT_TERM_TIMEOUT
    kill_timeout: float = DEFAULT_KILL_TIMEOUT
    encoding: str = DEFAULT_ENCODING
    decode_errors: str = DEFAULT_DECODE_ERRORS
    new_session: bool = True

    def decode(self, data: bytes) -> str:
        """Decode captured output with the configured codec."""
        return data.decode(self.encoding, errors=self.decode_errors)


def load_config() -> Config:
    """Load configuration from the environment."""
    return Config(
        term_timeout=_parse_timeout(
            os.environ.get("CMDEXEC_TERM_TIMEOUT"), DEFAULT_TERM_TIMEOUT
        ),
        kill_timeout=_parse_timeout(
            os.environ.get("CMDEXEC_KILL_TIMEOUT"), DEFAULT_KILL_TIMEOUT
        ),
        encoding=_parse_encoding(os.environ.get("CMDEXEC_ENCODING")),
        decode_errors=_parse_decode_errors(os.environ.get("CMDEXEC_DECODE_ERRORS")),
        new_session=_parse_bool(os.environ.get("CMDEXEC_NEW_SESSION"), default=True),
    )


# Global config instance (loaded lazily)
_config: Config | None = None


def get_config() -> Config:
    """Return the global configuration instance."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reload_config() -> Config:
    """Reload configuration from the environment (used by tests)."""
    global _config
    _config = load_config()
    return _config
