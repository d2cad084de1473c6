"""Tests for RemoteFs."""
from unittest.mock import MagicMock, patch

import pytest

from nixplayfs.backend.errors import (
    AmbiguousCollectionError,
    CantUploadError,
    DirNotEmptyError,
    DirNotFoundError,
    NotPermittedError,
    ObjectNotFoundError,
    ServiceError,
)
from nixplayfs.backend.fs import PhotoObject, RemoteFs
from nixplayfs.backend.service import PhotoService
from nixplayfs.core.constants import CollectionKind, ErrorCode, Limits


def names(entries):
    return [entry.remote for entry in entries]


class TestConstruction:
    """Test creation and re-rooting."""

    def test_defaults(self, populated_service):
        fs = RemoteFs(populated_service, "/album/")
        assert fs.root == "album"
        assert fs.root_is_file is False
        assert fs.router is not None
        assert fs.logger is not None

    def test_new_directory_root(self, populated_service, router, quiet_logger):
        fs = RemoteFs.new(populated_service, "album/Vacation", router=router, logger=quiet_logger)
        assert fs.root == "album/Vacation"
        assert fs.root_is_file is False

    def test_new_photo_root_is_rerooted(self, populated_service, router, quiet_logger):
        fs = RemoteFs.new(
            populated_service, "album/Vacation/img1.jpg", router=router, logger=quiet_logger
        )
        assert fs.root == "album/Vacation"
        assert fs.root_is_file is True

    def test_new_missing_photo_root_kept(self, populated_service, router, quiet_logger):
        fs = RemoteFs.new(
            populated_service, "album/Vacation/nope.jpg", router=router, logger=quiet_logger
        )
        assert fs.root == "album/Vacation/nope.jpg"
        assert fs.root_is_file is False

    def test_repr(self, remote_fs):
        assert "root=''" in repr(remote_fs)


class TestList:
    """Test directory listings."""

    def test_root(self, remote_fs):
        entries = remote_fs.list("")
        assert names(entries) == ["album", "playlist"]
        assert all(entry.is_dir for entry in entries)
        assert entries[0].mod_time == remote_fs.dir_time()

    def test_albums(self, remote_fs):
        entries = remote_fs.list("album")
        assert names(entries) == ["album/Vacation", "album/Empty"]
        assert entries[0].items == 2
        assert entries[0].id != ""

    def test_playlists(self, remote_fs):
        assert names(remote_fs.list("playlist")) == ["playlist/Frame"]

    def test_photos(self, remote_fs):
        entries = remote_fs.list("album/Vacation")
        assert names(entries) == ["album/Vacation/img1.jpg", "album/Vacation/img2.png"]
        assert entries[0].size == len(b"first photo")
        assert entries[1].mime_type == "image/png"
        assert not entries[0].is_dir

    def test_empty_collection(self, remote_fs):
        assert remote_fs.list("album/Empty") == []

    def test_missing_collection(self, remote_fs):
        with pytest.raises(DirNotFoundError):
            remote_fs.list("album/Nope")

    @pytest.mark.parametrize("path", ["photos", "album/Vacation/img1.jpg", "album/a/b/c"])
    def test_not_a_directory(self, remote_fs, path):
        with pytest.raises(DirNotFoundError) as exc_info:
            remote_fs.list(path)
        assert exc_info.value.error_code == ErrorCode.NOT_FOUND

    def test_rooted_listing_is_relative(self, populated_service, router, quiet_logger):
        fs = RemoteFs.new(populated_service, "album", router=router, logger=quiet_logger)
        assert names(fs.list("")) == ["Vacation", "Empty"]
        assert names(fs.list("Vacation")) == ["Vacation/img1.jpg", "Vacation/img2.png"]

    def test_listing_round_trip(self, remote_fs):
        """Every listed path can be looked up again."""
        for kind_entry in remote_fs.list(""):
            for collection_entry in remote_fs.list(kind_entry.remote):
                assert remote_fs.stat(collection_entry.remote).is_dir
                for photo_entry in remote_fs.list(collection_entry.remote):
                    assert remote_fs.new_object(photo_entry.remote).id == photo_entry.id

    def test_ambiguous_collection(self, remote_fs, populated_service):
        populated_service.create_collection(CollectionKind.ALBUM, "Vacation")
        with pytest.raises(AmbiguousCollectionError, match="got 2 albums for 'Vacation'"):
            remote_fs.list("album/Vacation")

    @pytest.mark.parametrize("path", ["album/\0", "album/Vac\x01ation", "album/\nVacation"])
    def test_invalid_path_is_not_found(self, remote_fs, path):
        with pytest.raises(DirNotFoundError):
            remote_fs.list(path)

    @pytest.mark.parametrize("path", ["album/Vacation/\0", "album/Vacation/img1\n.jpg"])
    def test_invalid_file_path_is_not_found(self, remote_fs, path):
        with pytest.raises(ObjectNotFoundError):
            remote_fs.new_object(path)
        with pytest.raises(ObjectNotFoundError):
            remote_fs.stat(path)


class TestObjects:
    """Test photo lookup and stat."""

    def test_new_object(self, remote_fs):
        obj = remote_fs.new_object("album/Vacation/img1.jpg")
        assert isinstance(obj, PhotoObject)
        assert obj.remote == "album/Vacation/img1.jpg"
        assert obj.collection.title == "Vacation"
        assert obj.size == len(b"first photo")
        assert obj.mime_type == "image/jpeg"

    @pytest.mark.parametrize(
        "path",
        [
            "album/Vacation/nope.jpg",
            "album/Nope/img1.jpg",
            "album/Vacation",
            "album",
            "",
            "playlist/Vacation/img1.jpg",
        ],
    )
    def test_missing_object(self, remote_fs, path):
        with pytest.raises(ObjectNotFoundError):
            remote_fs.new_object(path)

    def test_duplicate_names_first_wins(self, remote_fs, populated_service):
        album = populated_service.find_collections(CollectionKind.ALBUM, "Vacation")[0]
        populated_service.upload_photo(album, "img1.jpg", "image/jpeg", b"second copy")
        assert remote_fs.open("album/Vacation/img1.jpg") == b"first photo"

    def test_to_entry(self, remote_fs):
        entry = remote_fs.new_object("playlist/Frame/frame.jpg").to_entry()
        assert entry.remote == "playlist/Frame/frame.jpg"
        assert entry.is_dir is False
        assert entry.size == len(b"framed")

    @pytest.mark.parametrize("path", ["", "album", "playlist", "album/Vacation", "album/Empty"])
    def test_stat_directories(self, remote_fs, path):
        assert remote_fs.stat(path).is_dir

    def test_stat_collection_details(self, remote_fs):
        entry = remote_fs.stat("album/Vacation")
        assert entry.items == 2

    def test_stat_photo(self, remote_fs):
        entry = remote_fs.stat("album/Vacation/img2.png")
        assert not entry.is_dir
        assert entry.size == len(b"second")

    @pytest.mark.parametrize("path", ["album/Nope", "photos", "album/Vacation/nope.jpg"])
    def test_stat_missing(self, remote_fs, path):
        with pytest.raises(ObjectNotFoundError):
            remote_fs.stat(path)

    def test_open(self, remote_fs):
        assert remote_fs.open("playlist/Frame/frame.jpg") == b"framed"

    def test_rooted_object(self, populated_service, router, quiet_logger):
        fs = RemoteFs.new(populated_service, "album/Vacation", router=router, logger=quiet_logger)
        assert fs.open("img1.jpg") == b"first photo"
        assert fs.stat("").is_dir


class TestPut:
    """Test uploads."""

    def test_put(self, remote_fs):
        obj = remote_fs.put("album/Empty/new.jpg", b"new content")
        assert obj.size == len(b"new content")
        assert remote_fs.open("album/Empty/new.jpg") == b"new content"
        assert names(remote_fs.list("album/Empty")) == ["album/Empty/new.jpg"]

    def test_put_guesses_mime_type(self, remote_fs):
        assert remote_fs.put("album/Empty/pic.png", b"x").mime_type == "image/png"

    def test_put_default_mime_type(self, remote_fs):
        assert remote_fs.put("album/Empty/noext", b"x").mime_type == "image/jpeg"

    def test_put_explicit_mime_type(self, remote_fs):
        assert remote_fs.put("album/Empty/a.jpg", b"x", "image/heic").mime_type == "image/heic"

    @pytest.mark.parametrize("path", ["new.jpg", "album/new.jpg", "album/a/b/new.jpg", ""])
    def test_put_outside_collection(self, remote_fs, path):
        with pytest.raises(CantUploadError) as exc_info:
            remote_fs.put(path, b"x")
        assert exc_info.value.error_code == ErrorCode.PERMISSION_DENIED
        assert str(exc_info.value) == "can't upload files here"

    def test_put_missing_collection(self, remote_fs):
        with pytest.raises(DirNotFoundError):
            remote_fs.put("album/Nope/new.jpg", b"x")

    def test_put_too_large(self, remote_fs, monkeypatch):
        monkeypatch.setattr(Limits, "MAX_UPLOAD_SIZE", 4)
        with pytest.raises(CantUploadError, match="maximum size"):
            remote_fs.put("album/Empty/big.jpg", b"12345")

    def test_can_upload(self, remote_fs):
        assert remote_fs.can_upload("album/Vacation/new.jpg")
        assert not remote_fs.can_upload("album/new.jpg")
        assert not remote_fs.can_upload("album/Vacation")
        assert not remote_fs.can_upload("album/x/\0")


class TestMkdirRmdir:
    """Test collection creation and removal."""

    def test_mkdir(self, remote_fs, populated_service):
        assert remote_fs.mkdir("playlist/New") is True
        assert populated_service.find_collections(CollectionKind.PLAYLIST, "New")
        assert "playlist/New" in names(remote_fs.list("playlist"))

    def test_mkdir_existing(self, remote_fs, populated_service):
        assert remote_fs.mkdir("album/Vacation") is False
        assert len(populated_service.find_collections(CollectionKind.ALBUM, "Vacation")) == 1

    @pytest.mark.parametrize("path", ["", "album", "playlist", "other", "album/a/b"])
    def test_mkdir_not_permitted(self, remote_fs, path):
        with pytest.raises(NotPermittedError):
            remote_fs.mkdir(path)

    def test_mkdir_rooted(self, populated_service, router, quiet_logger):
        fs = RemoteFs.new(populated_service, "album", router=router, logger=quiet_logger)
        assert fs.mkdir("Trip") is True
        assert populated_service.find_collections(CollectionKind.ALBUM, "Trip")

    def test_mkdir_concurrent_creates_once(self, remote_fs, populated_service):
        import threading

        results = []
        threads = [
            threading.Thread(target=lambda: results.append(remote_fs.mkdir("album/Race")))
            for _ in range(8)
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert results.count(True) == 1
        assert len(populated_service.find_collections(CollectionKind.ALBUM, "Race")) == 1

    def test_rmdir(self, remote_fs, populated_service):
        remote_fs.rmdir("album/Empty")
        assert populated_service.find_collections(CollectionKind.ALBUM, "Empty") == []

    def test_rmdir_not_empty(self, remote_fs):
        with pytest.raises(DirNotEmptyError):
            remote_fs.rmdir("album/Vacation")

    def test_rmdir_missing(self, remote_fs):
        with pytest.raises(DirNotFoundError):
            remote_fs.rmdir("album/Nope")

    def test_upload_during_rmdir_is_not_lost(self, remote_fs, populated_service):
        """An upload racing an rmdir either lands before the check or fails."""
        import threading

        list_photos = populated_service.list_photos
        outcome = {}

        def upload():
            try:
                remote_fs.put("album/Empty/new.jpg", b"data")
                outcome["put"] = "stored"
            except DirNotFoundError:
                outcome["put"] = "not found"

        uploader = threading.Thread(target=upload)

        def list_then_race(collection):
            photos = list_photos(collection)
            uploader.start()
            uploader.join(timeout=0.2)
            outcome["blocked"] = uploader.is_alive()
            return photos

        with patch.object(populated_service, "list_photos", side_effect=list_then_race):
            remote_fs.rmdir("album/Empty")
        uploader.join(timeout=5)

        assert outcome["blocked"] is True
        assert outcome["put"] == "not found"
        assert populated_service.find_collections(CollectionKind.ALBUM, "Empty") == []

    @pytest.mark.parametrize("path", ["", "album", "playlist"])
    def test_rmdir_not_permitted(self, remote_fs, path):
        with pytest.raises(NotPermittedError):
            remote_fs.rmdir(path)


class TestRemove:
    def test_remove(self, remote_fs):
        remote_fs.remove("album/Vacation/img1.jpg")
        assert names(remote_fs.list("album/Vacation")) == ["album/Vacation/img2.png"]

    def test_remove_missing(self, remote_fs):
        with pytest.raises(ObjectNotFoundError):
            remote_fs.remove("album/Vacation/nope.jpg")

    def test_remove_directory(self, remote_fs):
        with pytest.raises(ObjectNotFoundError):
            remote_fs.remove("album/Vacation")


class TestServiceFailures:
    """Unexpected service exceptions become ServiceError."""

    @pytest.fixture
    def broken_fs(self, router, quiet_logger):
        service = MagicMock(spec=PhotoService)
        service.list_collections.side_effect = ConnectionError("network down")
        service.find_collections.side_effect = TimeoutError("slow")
        return RemoteFs(service, "", router=router, logger=quiet_logger)

    def test_list_failure(self, broken_fs):
        with pytest.raises(ServiceError, match="network down") as exc_info:
            broken_fs.list("album")
        assert exc_info.value.error_code == ErrorCode.DEPENDENCY_ERROR
        assert isinstance(exc_info.value.__cause__, ConnectionError)

    def test_lookup_failure(self, broken_fs):
        with pytest.raises(ServiceError, match="slow"):
            broken_fs.new_object("album/Vacation/img1.jpg")

    def test_root_listing_needs_no_service(self, broken_fs):
        assert names(broken_fs.list("")) == ["album", "playlist"]
