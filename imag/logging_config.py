"""
Logging configuration for imag.

All library code logs through ``logging.getLogger(__name__)``; the CLI
decides where records go and how loud they are.
"""

import logging
import os
import sys

import typer

# Level colours for terminal output
_LEVEL_COLORS = {
    logging.DEBUG: typer.colors.CYAN,
    logging.INFO: typer.colors.YELLOW,
    logging.WARNING: typer.colors.RED,
    logging.ERROR: typer.colors.RED,
    logging.CRITICAL: typer.colors.RED,
}


class ImagFormatter(logging.Formatter):
    """
    Render records as ``[imag][LEVEL]: message``.

    Debug records also carry ``[file][line]``. Warnings and errors are
    blinking red when colour is on.
    """

    def __init__(self, prefix: str = "[imag]", color: bool = True, fileline: bool = True):
        super().__init__()
        self.prefix = prefix
        self.color = color
        self.fileline = fileline

    def _paint(self, text: str, levelno: int, blink: bool = False) -> str:
        if not self.color:
            return text
        return typer.style(text, fg=_LEVEL_COLORS.get(levelno), blink=blink)

    def format(self, record: logging.LogRecord) -> str:
        message = record.getMessage()
        if record.exc_info:
            message = f"{message}\n{self.formatException(record.exc_info)}"
        level = f"{record.levelname:<5}"
        blink = record.levelno >= logging.WARNING
        lvl = self._paint(level, record.levelno, blink=blink)
        args = self._paint(message, record.levelno)
        if record.levelno == logging.DEBUG and self.fileline:
            file = self._paint(record.pathname, record.levelno)
            line = self._paint(f"{record.lineno:>5}", record.levelno)
            return f"{self.prefix}[{lvl}][{file}][{line}]: {args}"
        return f"{self.prefix}[{lvl}]: {args}"


def _level_for(debug: bool, verbose: bool) -> int:
    if debug:
        return logging.DEBUG
    if verbose:
        return logging.INFO
    return logging.ERROR


def configure_logging(debug: bool = False, verbose: bool = False, color: bool = True):
    """
    Route the ``imag`` logger to stderr.

    Args:
        debug: DEBUG level with file/line information
        verbose: INFO level
        color: colourise level and message

    Returns the installed handler.
    """
    level = _level_for(debug, verbose)
    imag_logger = logging.getLogger("imag")
    imag_logger.setLevel(level)

    # Replace a handler from an earlier call instead of stacking them
    for h in list(imag_logger.handlers):
        if getattr(h, "_imag_stderr", False):
            imag_logger.removeHandler(h)

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(ImagFormatter(color=color))
    handler._imag_stderr = True
    imag_logger.addHandler(handler)
    imag_logger.propagate = False
    imag_logger.debug("Init logger with %s", logging.getLevelName(level))
    return handler


OPS_LOG_FILENAME = "imag-ops.log"


def configure_ops_log(store_path, max_bytes: int = 1_000_000, backups: int = 3):
    """
    Record store changes in ``<store_path>/imag-ops.log``.

    The rotating file handler takes INFO records whatever the stderr level,
    so the ``imag`` logger is lowered to INFO if it is quieter. A handler
    already logging to the same file is replaced.

    Returns the handler, for remove_ops_log().
    """
    from logging.handlers import RotatingFileHandler

    log_path = os.path.abspath(os.path.join(os.fspath(store_path), OPS_LOG_FILENAME))
    imag_logger = logging.getLogger("imag")
    for h in list(imag_logger.handlers):
        if getattr(h, "_imag_ops", None) == log_path:
            remove_ops_log(h)

    handler = RotatingFileHandler(log_path, maxBytes=max_bytes, backupCount=backups, encoding="utf-8")
    handler.setLevel(logging.INFO)
    handler.setFormatter(logging.Formatter(
        "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    ))
    handler._imag_ops = log_path
    imag_logger.addHandler(handler)
    if imag_logger.level == logging.NOTSET or imag_logger.level > logging.INFO:
        imag_logger.setLevel(logging.INFO)
    return handler


def remove_ops_log(handler) -> None:
    """Detach and close a handler from configure_ops_log()."""
    logging.getLogger("imag").removeHandler(handler)
    handler.close()
