"""
Error types and error logging utilities for imag.

Store, driver and parser failures are reported through the StoreError
hierarchy. The CLI logs full stack traces for debugging while showing clean
messages to users.
"""

import logging
import traceback
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


class StoreError(Exception):
    """Base class for all store errors."""


class IoError(StoreError):
    """Underlying filesystem failure (permission, disk full, ...)."""


class NotFound(StoreError):
    """A requested path or entry does not exist."""


class EntryNotFound(NotFound):
    """No entry with the requested identifier exists in the store."""


class FileNotFound(NotFound):
    """The backing file of a lazy file handle does not exist."""


class FileNotCreated(IoError):
    """The backing file of a lazy file handle could not be created."""


class ParseError(StoreError):
    """Stored text could not be decoded into a header/content pair."""


class SchemaError(ParseError):
    """A header tree does not satisfy the parser's schema."""


class SerializeError(StoreError):
    """A header/content pair could not be rendered to text."""


class InvalidIdentifier(StoreError, ValueError):
    """A string does not parse into a known FileID."""


class AmbiguousHash(StoreError):
    """More than one stored entry matches a hash lookup."""

    def __init__(self, hash: str, candidates: list[str]):
        self.hash = hash
        self.candidates = candidates
        super().__init__(
            f"Hash {hash!r} matches {len(candidates)} entries: {', '.join(candidates)}"
        )


def is_not_found(exc: BaseException) -> bool:
    """True for errors meaning "nothing there" rather than "store broken"."""
    return isinstance(exc, (NotFound, FileNotFoundError))


ERROR_LOG_FILENAME = "imag-errors.log"


def error_log_path(rtp: Optional[Path] = None) -> Path:
    """The error log lives in the runtime path (``~/.imag`` by default)."""
    from .config import get_default_rtp

    return Path(rtp if rtp is not None else get_default_rtp()) / ERROR_LOG_FILENAME


def format_error_record(exc: BaseException, context: str = "") -> str:
    """One error-log record: ``[imag][<utc time>][<context>]`` plus traceback."""
    stamp = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
    head = f"[imag][{stamp}]" + (f"[{context}]" if context else "")
    return "".join([head, "\n", *traceback.format_exception(exc), "\n"])


def log_exception(exc: BaseException, context: str = "", rtp: Optional[Path] = None) -> Path:
    """
    Append an exception with its traceback to the error log.

    A log that cannot be written is reported as a warning and otherwise
    ignored, so the original error stays the one the user sees.

    Args:
        exc: The exception that occurred
        context: Where it happened (e.g. the command)
        rtp: Runtime path holding the log (default: IMAG_RTP or ~/.imag)

    Returns:
        Path to the error log file
    """
    log_path = error_log_path(rtp)
    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        with open(log_path, "a", encoding="utf-8") as f:
            f.write(format_error_record(exc, context))
    except OSError as e:
        logger.warning("Could not write error log %s: %s", log_path, e)
    return log_path
