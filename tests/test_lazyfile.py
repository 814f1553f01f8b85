"""Tests for LazyFile."""

import pytest

from imag.errors import FileNotCreated, FileNotFound, IoError, NotFound
from imag.lazyfile import LazyFile


class TestLazyFile:

    def test_starts_absent(self, memory_driver):
        lf = LazyFile("/s/f", memory_driver)
        assert not lf.is_open
        assert not memory_driver.exists("/s/f")

    def test_get_for_read_write_missing(self, memory_driver):
        lf = LazyFile("/s/f", memory_driver)
        with pytest.raises(FileNotFound):
            lf.get_for_read_write()
        assert not lf.is_open

    def test_file_not_found_is_not_found(self, memory_driver):
        with pytest.raises(NotFound):
            LazyFile("/s/f", memory_driver).get_for_read_write()

    def test_get_or_create_opens(self, memory_driver):
        lf = LazyFile("/s/f", memory_driver)
        handle = lf.get_or_create()
        assert lf.is_open
        assert memory_driver.exists("/s/f")
        assert lf.get_or_create() is handle

    def test_get_or_create_failure(self, memory_driver):
        memory_driver.create_dir_all("/s/f")
        with pytest.raises(FileNotCreated):
            LazyFile("/s/f", memory_driver).get_or_create()

    def test_read_write_resets_position(self, memory_driver):
        lf = LazyFile("/s/f", memory_driver)
        lf.get_or_create().write(b"Hello World")
        assert lf.get_for_read_write().read() == b"Hello World"
        # second access starts from the beginning again
        assert lf.get_for_read_write().read() == b"Hello World"

    def test_text_helpers(self, memory_driver):
        lf = LazyFile("/s/f", memory_driver)
        lf.write_text("first version, longer")
        lf.write_text("second")
        assert lf.read_text() == "second"
        assert memory_driver.read_bytes("/s/f") == b"second"

    def test_unencodable_text_leaves_file_alone(self, memory_driver):
        memory_driver.write_bytes("/s/f", b"keep me")
        lf = LazyFile("/s/f", memory_driver)
        with pytest.raises(UnicodeEncodeError):
            lf.write_text("bad\ud800")
        assert not lf.is_open
        assert memory_driver.read_bytes("/s/f") == b"keep me"

    def test_relocate_follows_copy_when_remove_fails(self, memory_driver, monkeypatch):
        lf = LazyFile("/s/old", memory_driver)
        lf.write_text("content")

        def refuse(path):
            raise IoError(f"cannot remove {path}")

        monkeypatch.setattr(memory_driver, "remove_file", refuse)
        with pytest.raises(IoError):
            lf.relocate("/s/new", remove_old=True)
        assert lf.path == "/s/new"
        assert lf.is_open
        assert lf.read_text() == "content"
        assert memory_driver.exists("/s/old")

    def test_opens_existing(self, memory_driver):
        memory_driver.write_bytes("/s/f", "grüße".encode("utf-8"))
        assert LazyFile("/s/f", memory_driver).read_text() == "grüße"

    def test_relocate_open(self, memory_driver):
        lf = LazyFile("/s/old", memory_driver)
        lf.write_text("content")
        copied = lf.relocate("/s/new", remove_old=True)
        assert copied == len(b"content")
        assert lf.path == "/s/new"
        assert lf.is_open
        assert not memory_driver.exists("/s/old")
        assert lf.read_text() == "content"

    def test_relocate_absent_keeps_old(self, memory_driver):
        memory_driver.write_bytes("/s/old", b"data")
        lf = LazyFile("/s/old", memory_driver)
        lf.relocate("/s/new", remove_old=False)
        assert not lf.is_open
        assert memory_driver.exists("/s/old")
        assert memory_driver.read_bytes("/s/new") == b"data"

    def test_relocate_missing_source(self, memory_driver):
        lf = LazyFile("/s/old", memory_driver)
        with pytest.raises(NotFound):
            lf.relocate("/s/new", remove_old=True)
        assert lf.path == "/s/old"

    def test_delete_open_and_absent(self, memory_driver):
        lf = LazyFile("/s/f", memory_driver)
        lf.write_text("x")
        lf.delete()
        assert not lf.is_open
        assert not memory_driver.exists("/s/f")

        memory_driver.write_bytes("/s/g", b"y")
        LazyFile("/s/g", memory_driver).delete()
        assert not memory_driver.exists("/s/g")

    def test_delete_missing_propagates(self, memory_driver):
        with pytest.raises(NotFound):
            LazyFile("/s/f", memory_driver).delete()

    def test_real_filesystem(self, tmp_path):
        from imag.driver import IoDriver
        path = str(tmp_path / "sub" / "f.imag")
        with LazyFile(path, IoDriver()) as lf:
            lf.write_text("on disk")
        with LazyFile(path, IoDriver()) as lf:
            assert lf.read_text() == "on disk"
