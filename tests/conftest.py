"""Shared pytest fixtures for NixplayFS tests."""
from typing import Callable, List
from unittest.mock import MagicMock

import pytest

from nixplayfs.backend.fs import RemoteFs
from nixplayfs.backend.memory import MemoryPhotoService
from nixplayfs.core.constants import CollectionKind
from nixplayfs.infrastructure.logger import Logger
from nixplayfs.routing.patterns import build_pattern_table
from nixplayfs.routing.router import DirEntry, Router

# fusepy raises OSError on import when libfuse is not installed
try:
    import fuse  # noqa: F401
except (ImportError, OSError):
    collect_ignore_glob = ["fuse/*", "test_main.py"]


@pytest.fixture(scope="session")
def pattern_table():
    """The built-in pattern table."""
    return build_pattern_table()


@pytest.fixture
def router(pattern_table) -> Router:
    """Router over the built-in table."""
    return Router(pattern_table)


@pytest.fixture
def quiet_logger() -> Logger:
    """Logger that discards everything below ERROR."""
    return Logger("nixplayfs.test", level="ERROR")


@pytest.fixture
def clock() -> Callable[[], float]:
    """Deterministic clock advancing one second per call."""
    ticks = iter(range(1_700_000_000, 1_800_000_000))
    return lambda: float(next(ticks))


@pytest.fixture
def service(clock) -> MemoryPhotoService:
    """Empty in-memory photo service."""
    return MemoryPhotoService(clock=clock)


@pytest.fixture
def populated_service(service) -> MemoryPhotoService:
    """Service holding two albums and one playlist.

    album/Vacation: img1.jpg, img2.png
    album/Empty: (nothing)
    playlist/Frame: frame.jpg
    """
    vacation = service.create_collection(CollectionKind.ALBUM, "Vacation")
    service.upload_photo(vacation, "img1.jpg", "image/jpeg", b"first photo")
    service.upload_photo(vacation, "img2.png", "image/png", b"second")
    service.create_collection(CollectionKind.ALBUM, "Empty")
    frame = service.create_collection(CollectionKind.PLAYLIST, "Frame")
    service.upload_photo(frame, "frame.jpg", "image/jpeg", b"framed")
    return service


@pytest.fixture
def remote_fs(populated_service, router, quiet_logger) -> RemoteFs:
    """RemoteFs mounted at the hierarchy root."""
    return RemoteFs.new(populated_service, "", router=router, logger=quiet_logger)


@pytest.fixture
def fake_lister():
    """Lister returning canned entries and recording its calls."""
    lister = MagicMock()
    lister.dir_time.return_value = 1234.0

    def list_collections(prefix: str, kind: CollectionKind) -> List[DirEntry]:
        return [DirEntry(remote=prefix + "Vacation", is_dir=True, mod_time=1234.0)]

    def list_items(prefix: str, kind: CollectionKind, name: str) -> List[DirEntry]:
        return [DirEntry(remote=prefix + "img1.jpg", is_dir=False, mod_time=1.0, size=3)]

    lister.list_collections.side_effect = list_collections
    lister.list_items.side_effect = list_items
    return lister
