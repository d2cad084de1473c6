"""
NixplayFS Backend: Remote Filesystem.

RemoteFs turns filesystem operations on virtual paths into calls on a
PhotoService. Every operation follows the same steps:
1. Resolve the path with the Router (file or directory style)
2. Check the matched rule allows the operation
3. Look the collection and photo up by name
4. Call the service

RemoteFs also plays the lister role the Router needs to produce
directory contents.
"""

import mimetypes
import posixpath
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator, List, Optional

from nixplayfs.backend.errors import (
    AmbiguousCollectionError,
    CantUploadError,
    DirNotEmptyError,
    DirNotFoundError,
    FsError,
    NotPermittedError,
    ObjectNotFoundError,
    ServiceError,
)
from nixplayfs.backend.models import Collection, Photo
from nixplayfs.backend.service import PhotoService
from nixplayfs.core.constants import (
    DEFAULT_MIME_TYPE,
    CollectionKind,
    CollectionName,
    ItemName,
    Limits,
    MountRoot,
    PhotoContent,
    VirtualPath,
)
from nixplayfs.core.validators import (
    ValidationError,
    validate_collection_name,
    validate_item_name,
    validate_virtual_path,
)
from nixplayfs.infrastructure.logger import Logger
from nixplayfs.routing.patterns import StructuralRole, build_pattern_table
from nixplayfs.routing.router import NO_MATCH, DirEntry, MatchResult, Router, normalize_root


@dataclass(frozen=True)
class PhotoObject:
    """A photo found at a virtual file path."""

    remote: str  # Path relative to the mount root
    collection: Collection
    photo: Photo

    @property
    def size(self) -> int:
        return self.photo.size

    @property
    def mod_time(self) -> float:
        return self.photo.modified

    @property
    def mime_type(self) -> str:
        return self.photo.mime_type

    @property
    def id(self) -> str:
        return self.photo.id

    def to_entry(self) -> DirEntry:
        return DirEntry(
            remote=self.remote,
            is_dir=False,
            mod_time=self.mod_time,
            size=self.size,
            id=self.id,
            mime_type=self.mime_type,
        )


class RemoteFs:
    """
    Filesystem view of a remote photo service.

    Thread Safety:
    - Path resolution is pure and lock free
    - Collection creation is serialized to prevent duplicates
    - Everything else is delegated to the service

    Attributes:
        service: Remote photo service
        root: Normalized mount root (e.g. "" or "album/Vacation")
        router: Router built around the pattern table
        root_is_file: True when the requested root named a photo and the
            filesystem was re-rooted at its collection
    """

    def __init__(
        self,
        service: PhotoService,
        root: MountRoot = "",
        router: Optional[Router] = None,
        logger: Optional[Logger] = None,
    ):
        """
        Initialize the remote filesystem.

        Args:
            service: Photo service to operate on
            root: Path inside the virtual hierarchy to expose
            router: Router to resolve paths (built from the default table if None)
            logger: Logger instance (created if None)
        """
        self.service = service
        self.root = normalize_root(root)
        self.router = router if router is not None else Router(build_pattern_table())
        self.logger = logger if logger is not None else Logger("nixplayfs.backend")
        self.root_is_file = False
        self.start_time = time.time()
        self._collection_lock = threading.Lock()

    @classmethod
    def new(
        cls,
        service: PhotoService,
        root: MountRoot = "",
        router: Optional[Router] = None,
        logger: Optional[Logger] = None,
    ) -> "RemoteFs":
        """
        Create a filesystem, re-rooting it when the root names a photo.

        If ``root`` resolves to an existing photo, the returned filesystem
        is rooted at the photo's collection and ``root_is_file`` is set.
        """
        fs = cls(service, root, router=router, logger=logger)
        match = fs.router.resolve(fs.root, "", is_file=True)
        if match and match.rule.is_file:
            old_root = fs.root
            fs.root, leaf = posixpath.split(fs.root)
            try:
                fs.new_object(leaf)
            except FsError:
                fs.root = old_root
            else:
                fs.root_is_file = True
        return fs

    def __repr__(self) -> str:
        return f"RemoteFs(root={self.root!r}, service={self.service!r})"

    # =========================================================================
    # Helpers
    # =========================================================================

    @contextmanager
    def _remote(self, operation: str) -> Iterator[None]:
        """Wrap unexpected service failures in ServiceError."""
        try:
            yield
        except FsError:
            raise
        except Exception as e:
            raise ServiceError(f"{operation} failed: {e}") from e

    def _resolve(self, path: str, is_file: bool) -> MatchResult:
        """Resolve path; one outside the path grammar matches nothing."""
        try:
            validate_virtual_path(path)
        except ValidationError as e:
            self.logger.debug("Invalid virtual path", path=repr(path), reason=str(e))
            return NO_MATCH
        return self.router.resolve(self.root, path, is_file)

    def _find_collection(self, kind: CollectionKind, name: CollectionName) -> Collection:
        """Look a collection up by name; exactly one must exist."""
        with self._remote(f"find {kind.value} {name!r}"):
            collections = self.service.find_collections(kind, name)
        if not collections:
            raise DirNotFoundError(f"{kind.value} {name!r} not found")
        if len(collections) != 1:
            raise AmbiguousCollectionError(
                f"got {len(collections)} {kind.value}s for {name!r}"
            )
        return collections[0]

    def _find_photo(self, collection: Collection, filename: ItemName) -> Photo:
        """Look a photo up by file name; the first one in collection order wins."""
        with self._remote(f"list photos of {collection.title!r}"):
            photos = self.service.list_photos(collection)
        for photo in photos:
            if photo.filename == filename:
                return photo
        raise ObjectNotFoundError(f"photo {filename!r} not found in {collection.title!r}")

    # =========================================================================
    # Lister role
    # =========================================================================

    def dir_time(self) -> float:
        """Timestamp given to directories."""
        return self.start_time

    def list_collections(self, prefix: str, kind: CollectionKind) -> List[DirEntry]:
        """List every collection of one kind as directories."""
        with self.logger.trace("list_collections", prefix=prefix, kind=kind.value):
            with self._remote(f"list {kind.value}s"):
                collections = self.service.list_collections(kind)
            return [
                DirEntry(
                    remote=prefix + collection.title,
                    is_dir=True,
                    mod_time=self.dir_time(),
                    id=collection.id,
                    items=collection.photo_count,
                )
                for collection in collections
            ]

    def list_items(self, prefix: str, kind: CollectionKind, name: CollectionName) -> List[DirEntry]:
        """List the photos of a named collection as files."""
        with self.logger.trace("list_items", prefix=prefix, kind=kind.value, name=name):
            collection = self._find_collection(kind, name)
            with self._remote(f"list photos of {name!r}"):
                photos = self.service.list_photos(collection)
            return [
                DirEntry(
                    remote=prefix + photo.filename,
                    is_dir=False,
                    mod_time=photo.modified,
                    size=photo.size,
                    id=photo.id,
                    mime_type=photo.mime_type,
                )
                for photo in photos
            ]

    # =========================================================================
    # Filesystem operations
    # =========================================================================

    def list(self, dir: VirtualPath) -> List[DirEntry]:
        """
        List the objects and directories in dir.

        Args:
            dir: Directory relative to the root, "" for the root itself

        Returns:
            Entries with ``remote`` relative to the root

        Raises:
            DirNotFoundError: If dir is not a directory of the hierarchy
        """
        with self.logger.trace("list", dir=dir):
            match = self._resolve(dir, is_file=False)
            if not match or match.rule.is_file or not match.rule.lists:
                raise DirNotFoundError(f"directory not found: {dir!r}")
            return self.router.list_entries(match, self)

    def new_object(self, remote: VirtualPath) -> PhotoObject:
        """
        Find the photo at remote.

        Raises:
            ObjectNotFoundError: If no photo exists at that path
        """
        with self.logger.trace("new_object", remote=remote):
            match = self._resolve(remote, is_file=True)
            if not match:
                raise ObjectNotFoundError(f"object not found: {remote!r}")
            try:
                collection = self._find_collection(match.kind, match.collection_name)
            except DirNotFoundError as e:
                raise ObjectNotFoundError(str(e))
            photo = self._find_photo(collection, match.item_name)
            return PhotoObject(remote=remote, collection=collection, photo=photo)

    def stat(self, path: VirtualPath) -> DirEntry:
        """
        Describe the directory or photo at path.

        Directory-style resolution is tried first; a path of the grammar
        never resolves in both styles.

        Raises:
            ObjectNotFoundError: If nothing exists at path
        """
        match = self._resolve(path, is_file=False)
        if match:
            if match.rule.role == StructuralRole.COLLECTION:
                try:
                    collection = self._find_collection(match.kind, match.collection_name)
                except DirNotFoundError as e:
                    raise ObjectNotFoundError(str(e))
                return DirEntry(
                    remote=path,
                    is_dir=True,
                    mod_time=self.dir_time(),
                    id=collection.id,
                    items=collection.photo_count,
                )
            return DirEntry(remote=path, is_dir=True, mod_time=self.dir_time())
        return self.new_object(path).to_entry()

    def can_upload(self, remote: VirtualPath) -> bool:
        """Check whether remote is a path photos may be written to."""
        match = self._resolve(remote, is_file=True)
        return bool(match) and match.rule.can_upload

    def put(
        self, remote: VirtualPath, data: PhotoContent, mime_type: Optional[str] = None
    ) -> PhotoObject:
        """
        Upload data as a photo at remote.

        Args:
            remote: File path relative to the root
            data: Photo content
            mime_type: Content type (guessed from the file name if None)

        Returns:
            The uploaded photo

        Raises:
            CantUploadError: If remote is not inside a collection
            DirNotFoundError: If the collection does not exist
        """
        with self.logger.trace("put", remote=remote, size=len(data)):
            match = self._resolve(remote, is_file=True)
            if not match or not match.rule.can_upload:
                raise CantUploadError()

            filename = match.item_name
            try:
                validate_item_name(filename)
            except ValidationError as e:
                raise CantUploadError(str(e))
            if len(data) > Limits.MAX_UPLOAD_SIZE:
                raise CantUploadError(f"photo exceeds maximum size ({Limits.MAX_UPLOAD_SIZE})")

            if mime_type is None:
                mime_type = mimetypes.guess_type(filename)[0] or DEFAULT_MIME_TYPE

            # Lookup and upload must not interleave with rmdir
            with self._collection_lock:
                collection = self._find_collection(match.kind, match.collection_name)
                with self._remote(f"upload {filename!r}"):
                    photo = self.service.upload_photo(collection, filename, mime_type, bytes(data))
            self.logger.info("Uploaded photo", remote=remote, id=photo.id)
            return PhotoObject(remote=remote, collection=collection, photo=photo)

    def mkdir(self, dir: VirtualPath) -> bool:
        """
        Create the collection at dir if it doesn't exist.

        Returns:
            True if a collection was created, False if it already existed

        Raises:
            NotPermittedError: If dir is not a collection path
        """
        with self.logger.trace("mkdir", dir=dir):
            match = self._resolve(dir, is_file=False)
            if not match or not match.rule.can_mkdir:
                raise NotPermittedError(f"can't create directory here: {dir!r}")

            name = match.collection_name
            try:
                validate_collection_name(name)
            except ValidationError as e:
                raise NotPermittedError(str(e))

            with self._collection_lock:
                with self._remote(f"find {match.kind.value} {name!r}"):
                    if self.service.find_collections(match.kind, name):
                        return False
                with self._remote(f"create {match.kind.value} {name!r}"):
                    collection = self.service.create_collection(match.kind, name)
            self.logger.info(
                "Created collection", kind=match.kind.value, name=name, id=collection.id
            )
            return True

    def rmdir(self, dir: VirtualPath) -> None:
        """
        Delete the empty collection at dir.

        Raises:
            NotPermittedError: If dir is not a collection path
            DirNotFoundError: If the collection doesn't exist
            DirNotEmptyError: If the collection still holds photos
        """
        with self.logger.trace("rmdir", dir=dir):
            match = self._resolve(dir, is_file=False)
            if not match or not match.rule.can_mkdir:
                raise NotPermittedError(f"can't remove directory here: {dir!r}")

            with self._collection_lock:
                collection = self._find_collection(match.kind, match.collection_name)
                with self._remote(f"list photos of {collection.title!r}"):
                    photos = self.service.list_photos(collection)
                if photos:
                    raise DirNotEmptyError(f"directory not empty: {dir!r}")
                with self._remote(f"delete {collection.title!r}"):
                    self.service.delete_collection(collection)
            self.logger.info(
                "Deleted collection", kind=match.kind.value, name=collection.title
            )

    def remove(self, remote: VirtualPath) -> None:
        """
        Delete the photo at remote.

        Raises:
            ObjectNotFoundError: If no photo exists at that path
        """
        with self.logger.trace("remove", remote=remote):
            obj = self.new_object(remote)
            with self._remote(f"delete {remote!r}"):
                self.service.delete_photo(obj.collection, obj.photo)
            self.logger.info("Deleted photo", remote=remote, id=obj.id)

    def open(self, remote: VirtualPath) -> PhotoContent:
        """
        Read the content of the photo at remote.

        Raises:
            ObjectNotFoundError: If no photo exists at that path
        """
        with self.logger.trace("open", remote=remote):
            obj = self.new_object(remote)
            return self.read_object(obj)

    def read_object(self, obj: PhotoObject) -> PhotoContent:
        """Download the content of a photo already looked up."""
        with self._remote(f"download {obj.remote!r}"):
            return self.service.download_photo(obj.photo)
