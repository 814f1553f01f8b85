"""Tests for configuration loading and runtime resolution."""

import logging
from pathlib import Path

import pytest

from imag.config import (
    Configuration,
    get_default_rtp,
    load_config,
    load_or_default_config,
    save_config,
)
from imag.driver import MemoryDriver
from imag.logging_config import configure_ops_log, remove_ops_log
from imag.runtime import Runtime


@pytest.fixture
def clean_env(monkeypatch):
    for var in ("IMAG_RTP", "IMAG_STORE_PATH", "EDITOR"):
        monkeypatch.delenv(var, raising=False)
    return monkeypatch


class TestConfig:

    def test_missing(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path)

    def test_defaults_when_missing(self, tmp_path):
        config = load_or_default_config(tmp_path)
        assert config == Configuration(path=tmp_path)
        assert not config.exists()

    def test_load(self, tmp_path):
        (tmp_path / "config.toml").write_text(
            'verbosity = true\n'
            'editor = "vim"\n'
            'editor-opts = "-c \'set tw=72\'"\n'
            'store = "~/notes"\n'
        )
        config = load_config(tmp_path)
        assert config.verbosity is True
        assert config.editor == "vim"
        assert config.editor_opts == "-c 'set tw=72'"
        assert config.store == Path("~/notes").expanduser()

    def test_alternative_file(self, tmp_path):
        other = tmp_path / "other.toml"
        other.write_text('editor = "nano"\n')
        config = load_config(tmp_path, other)
        assert config.editor == "nano"
        assert config.path == tmp_path

    def test_invalid_toml(self, tmp_path):
        (tmp_path / "config.toml").write_text("verbosity = \n")
        with pytest.raises(ValueError, match="Invalid config"):
            load_config(tmp_path)

    @pytest.mark.parametrize("line", [
        "verbosity = 1",
        "editor = 3",
        "editor-opts = []",
        "store = false",
    ])
    def test_wrong_types(self, tmp_path, line):
        (tmp_path / "config.toml").write_text(line + "\n")
        with pytest.raises(ValueError):
            load_config(tmp_path)

    def test_save_and_reload(self, tmp_path):
        rtp = tmp_path / "rtp"
        config = Configuration(
            path=rtp, verbosity=True, editor="vim", editor_opts="-n", store=tmp_path / "s",
        )
        save_config(config)
        assert config.exists()
        assert load_config(rtp) == config

    def test_default_rtp(self, clean_env, tmp_path):
        assert get_default_rtp() == Path.home() / ".imag"
        clean_env.setenv("IMAG_RTP", str(tmp_path))
        assert get_default_rtp() == tmp_path


class TestRuntime:

    def test_store_under_rtp(self, clean_env, tmp_path):
        rt = Runtime(rtp=tmp_path)
        assert rt.store_path == tmp_path / "store"
        assert (tmp_path / "store").is_dir()
        assert rt.store.path == str(tmp_path / "store")

    def test_store_resolution_order(self, clean_env, tmp_path):
        (tmp_path / "config.toml").write_text(f'store = "{tmp_path / "from-config"}"\n')
        assert Runtime(rtp=tmp_path).store_path == tmp_path / "from-config"

        clean_env.setenv("IMAG_STORE_PATH", str(tmp_path / "from-env"))
        assert Runtime(rtp=tmp_path).store_path == tmp_path / "from-env"

        rt = Runtime(rtp=tmp_path, store_path=tmp_path / "from-arg")
        assert rt.store_path == tmp_path / "from-arg"

    def test_memory_driver(self, clean_env, tmp_path):
        driver = MemoryDriver()
        rt = Runtime(rtp=tmp_path, store_path=Path("/mem"), driver=driver)
        assert driver.exists("/mem")
        assert not (tmp_path / "store").exists()
        assert rt.store.driver is driver

    def test_verbosity_from_config(self, clean_env, tmp_path):
        assert not Runtime(rtp=tmp_path).verbose
        (tmp_path / "config.toml").write_text("verbosity = true\n")
        assert Runtime(rtp=tmp_path).verbose

    def test_editor_resolution(self, clean_env, tmp_path):
        assert Runtime(rtp=tmp_path).editor_command() is None

        clean_env.setenv("EDITOR", "nano")
        assert Runtime(rtp=tmp_path).editor_command() == ["nano"]

        (tmp_path / "config.toml").write_text('editor = "vim"\neditor-opts = "-c \'set tw=72\'"\n')
        assert Runtime(rtp=tmp_path).editor_command() == ["vim", "-c", "set tw=72"]

        rt = Runtime(rtp=tmp_path, editor="emacs -nw")
        assert rt.editor_command() == ["emacs", "-nw", "-c", "set tw=72"]

    def test_edit_text(self, clean_env, tmp_path, monkeypatch):
        calls = []

        class Done:
            returncode = 0

        def fake_run(argv):
            calls.append(argv)
            Path(argv[-1]).write_text("after", encoding="utf-8")
            return Done()

        monkeypatch.setattr("imag.runtime.subprocess.run", fake_run)
        rt = Runtime(rtp=tmp_path, editor="ed")
        assert rt.edit_text("before") == "after"
        [argv] = calls
        assert argv[0] == "ed"
        assert not Path(argv[-1]).exists()

    def test_edit_text_failure(self, clean_env, tmp_path, monkeypatch):
        class Failed:
            returncode = 3

        monkeypatch.setattr("imag.runtime.subprocess.run", lambda argv: Failed())
        rt = Runtime(rtp=tmp_path, editor="ed")
        with pytest.raises(RuntimeError, match="status 3"):
            rt.edit_text("x")

    def test_edit_text_no_editor(self, clean_env, tmp_path):
        with pytest.raises(RuntimeError, match="No editor"):
            Runtime(rtp=tmp_path).edit_text("x")

    def test_ops_log(self, clean_env, tmp_path, json_parser):
        with Runtime(rtp=tmp_path, ops_log=True) as rt:
            id = rt.store.new_entry("notes")
            rt.store.persist(json_parser, id)
        assert str(id) in (tmp_path / "store" / "imag-ops.log").read_text()
        assert logging.getLogger("imag").handlers == []

    def test_ops_log_replaced_not_stacked(self, tmp_path):
        first = configure_ops_log(tmp_path)
        second = configure_ops_log(tmp_path)
        assert logging.getLogger("imag").handlers == [second]
        assert first is not second
        remove_ops_log(second)
        assert logging.getLogger("imag").handlers == []
