"""
Runtime: resolves paths, configuration and the editor, and owns the Store.
"""

import logging
import os
import shlex
import subprocess
import tempfile
from pathlib import Path
from typing import Optional

from .config import Configuration, get_default_rtp, load_or_default_config
from .driver import Driver
from .logging_config import configure_ops_log, remove_ops_log
from .store import Store

logger = logging.getLogger(__name__)


class Runtime:
    """
    Everything a module needs to run a command.

    Resolution order:
    - runtime path: argument, IMAG_RTP, ~/.imag
    - store path: argument, IMAG_STORE_PATH, config ``store``, <rtp>/store
    - editor: argument, config ``editor``, EDITOR
    """

    def __init__(
        self,
        rtp: Optional[Path] = None,
        store_path: Optional[Path] = None,
        config_file: Optional[Path] = None,
        editor: Optional[str] = None,
        verbose: bool = False,
        debug: bool = False,
        driver: Optional[Driver] = None,
        ops_log: bool = False,
    ):
        self.rtp = Path(rtp).expanduser() if rtp is not None else get_default_rtp()
        self.config: Configuration = load_or_default_config(self.rtp, config_file)
        self.verbose = verbose or self.config.verbosity
        self.debug = debug
        self._editor = editor

        if store_path is None:
            env = os.environ.get("IMAG_STORE_PATH")
            if env:
                store_path = Path(env)
            elif self.config.store is not None:
                store_path = self.config.store
            else:
                store_path = self.rtp / "store"
        self.store_path = Path(store_path).expanduser()

        logger.debug("Building runtime")
        logger.debug("  - rtp       : %s", self.rtp)
        logger.debug("  - store     : %s", self.store_path)
        logger.debug("  - verbosity : %s", self.verbose)

        self.store = Store(self.store_path, driver=driver)
        self._ops_log_handler = configure_ops_log(self.store_path) if ops_log else None

    def editor_command(self) -> Optional[list[str]]:
        """Editor argv (editor plus configured options), or None."""
        editor = self._editor or self.config.editor or os.environ.get("EDITOR")
        if not editor:
            return None
        argv = shlex.split(editor)
        if self.config.editor_opts:
            argv.extend(shlex.split(self.config.editor_opts))
        return argv

    def edit_text(self, text: str) -> str:
        """
        Open text in the editor and return the edited result.

        Raises:
            RuntimeError: if no editor is configured or it exits non-zero
        """
        argv = self.editor_command()
        if argv is None:
            raise RuntimeError("No editor configured (use --editor, config 'editor' or $EDITOR)")

        fd, tmp = tempfile.mkstemp(suffix=".imag", prefix="imag-edit-")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(text)
            logger.debug("Running editor: %s %s", argv, tmp)
            result = subprocess.run([*argv, tmp])
            if result.returncode != 0:
                raise RuntimeError(f"Editor exited with status {result.returncode}")
            with open(tmp, encoding="utf-8") as f:
                return f.read()
        finally:
            os.unlink(tmp)

    def close(self) -> None:
        """Close the store and detach the operations log."""
        self.store.close()
        if self._ops_log_handler is not None:
            remove_ops_log(self._ops_log_handler)
            self._ops_log_handler = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
