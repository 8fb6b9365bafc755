"""
Pytest configuration and fixtures for store tests.
Provides an isolated store file per test with guaranteed cleanup.
"""

import os
import tempfile
from collections.abc import Callable, Iterator

import pytest

from tagstore.infrastructure.sqlite.sqlite_group_store import SQLiteGroupStore, open_store
from tagstore.models.image import Image, Rating
from tagstore.utils.constants import LOCK_FILE_SUFFIX

SIDECAR_SUFFIXES = ("", "-wal", "-shm", "-journal", LOCK_FILE_SUFFIX)


def _remove_store_files(path: str) -> None:
    """Helper to delete the store file and every sidecar SQLite may leave."""
    for suffix in SIDECAR_SUFFIXES:
        try:
            os.remove(path + suffix)
        except FileNotFoundError:
            pass


@pytest.fixture(scope="function")
def store_path() -> Iterator[str]:
    """
    Path of a fresh temporary store file.

    Cleanup Strategy:
    - The file and its sidecars are removed after each test,
      whether the test passed or failed
    """
    fd, path = tempfile.mkstemp(prefix="tagstore_test_", suffix=".db")
    os.close(fd)
    os.remove(path)

    yield path

    _remove_store_files(path)


@pytest.fixture(scope="function")
def store(store_path: str) -> Iterator[SQLiteGroupStore]:
    """Open store on an isolated file, closed on teardown."""
    opened = open_store(store_path, timeout=1.0)

    yield opened

    opened.close()


@pytest.fixture
def make_image() -> Callable[..., Image]:
    """
    Helper to build an image with sensible defaults.

    Usage:
        img = make_image(name="a.jpg", size=5)
    """

    def _make(**overrides: object) -> Image:
        fields: dict[str, object] = {
            "name": "img.jpg",
            "tags": "tag1 tag2",
            "source": "https://example.com/img.jpg",
            "rating": Rating.SAFE,
            "size": 5,
            "width": 640,
            "height": 480,
            "hash": "d41d8cd98f00b204e9800998ecf8427e",
            "ext": "jpg",
        }
        fields.update(overrides)
        return Image(**fields)

    return _make


@pytest.fixture
def sample_image_binary() -> bytes:
    """Sample binary image data (1x1 PNG)."""
    import base64

    png_base64 = "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNk+M9QDwADhgGAWjR9awAAAABJRU5ErkJggg=="
    return base64.b64decode(png_base64)
