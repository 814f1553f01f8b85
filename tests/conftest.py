"""
Shared pytest fixtures for imag tests.

Most tests run against a MemoryDriver so nothing touches the real
filesystem; disk_store covers the real driver on a temporary directory.
"""

import logging

import pytest

from imag.driver import MemoryDriver
from imag.parser import JsonHeaderParser
from imag.store import Store

STORE_ROOT = "/store"


@pytest.fixture
def memory_driver():
    """A fresh in-memory filesystem per test."""
    return MemoryDriver()


@pytest.fixture
def store(memory_driver):
    """Store on an in-memory filesystem."""
    return Store(STORE_ROOT, driver=memory_driver)


@pytest.fixture
def disk_store(tmp_path):
    """Store on the real filesystem under tmp_path."""
    return Store(tmp_path / "store")


@pytest.fixture
def json_parser():
    return JsonHeaderParser()


@pytest.fixture(autouse=True)
def _reset_imag_logger():
    """Undo handlers installed by CLI invocations."""
    yield
    imag_logger = logging.getLogger("imag")
    for h in list(imag_logger.handlers):
        imag_logger.removeHandler(h)
        h.close()
    imag_logger.setLevel(logging.NOTSET)
    imag_logger.propagate = True
