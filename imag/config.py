"""
Configuration management for imag.

The configuration is a TOML file in the runtime path (``~/.imag/config.toml``
by default). Every key is optional::

    verbosity = false
    editor = "vim"
    editor-opts = "-c 'set tw=72'"
    store = "/home/me/.imag/store"
"""

import os
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

# tomli_w for writing TOML (tomllib is read-only)
import tomli_w


CONFIG_FILENAME = "config.toml"
DEFAULT_RTP_DIRNAME = ".imag"


@dataclass
class Configuration:
    """Settings read from the config file."""
    path: Path
    verbosity: bool = False
    editor: Optional[str] = None
    editor_opts: str = ""
    store: Optional[Path] = None

    @property
    def config_path(self) -> Path:
        """Path to the TOML config file."""
        return self.path / CONFIG_FILENAME

    def exists(self) -> bool:
        return self.config_path.exists()


def get_default_rtp() -> Path:
    """Runtime path: IMAG_RTP, else ~/.imag."""
    env = os.environ.get("IMAG_RTP")
    if env:
        return Path(env).expanduser()
    return Path.home() / DEFAULT_RTP_DIRNAME


def load_config(rtp: Path, config_file: Optional[Path] = None) -> Configuration:
    """
    Load configuration from a runtime path.

    Args:
        rtp: Runtime path directory
        config_file: Alternative config file (default: <rtp>/config.toml)

    Raises:
        FileNotFoundError: If config doesn't exist
        ValueError: If config is invalid
    """
    config_path = config_file if config_file is not None else rtp / CONFIG_FILENAME

    if not config_path.exists():
        raise FileNotFoundError(f"Config not found: {config_path}")

    try:
        with open(config_path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ValueError(f"Invalid config {config_path}: {e}") from e

    verbosity = data.get("verbosity", False)
    if not isinstance(verbosity, bool):
        raise ValueError(f"'verbosity' must be true or false in {config_path}")
    editor = data.get("editor")
    if editor is not None and not isinstance(editor, str):
        raise ValueError(f"'editor' must be a string in {config_path}")
    editor_opts = data.get("editor-opts", "")
    if not isinstance(editor_opts, str):
        raise ValueError(f"'editor-opts' must be a string in {config_path}")
    store = data.get("store")
    if store is not None and not isinstance(store, str):
        raise ValueError(f"'store' must be a path string in {config_path}")

    return Configuration(
        path=rtp,
        verbosity=verbosity,
        editor=editor,
        editor_opts=editor_opts,
        store=Path(store).expanduser() if store else None,
    )


def load_or_default_config(rtp: Path, config_file: Optional[Path] = None) -> Configuration:
    """Load the config, or defaults when there is no config file."""
    try:
        return load_config(rtp, config_file)
    except FileNotFoundError:
        return Configuration(path=rtp)


def save_config(config: Configuration) -> None:
    """
    Save configuration to the runtime path.

    Creates the directory if it doesn't exist.
    """
    config.path.mkdir(parents=True, exist_ok=True)

    data: dict = {"verbosity": config.verbosity}
    if config.editor:
        data["editor"] = config.editor
    if config.editor_opts:
        data["editor-opts"] = config.editor_opts
    if config.store is not None:
        data["store"] = str(config.store)

    with open(config.config_path, "wb") as f:
        tomli_w.dump(data, f)
