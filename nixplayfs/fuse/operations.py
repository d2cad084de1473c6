"""
FUSE filesystem operations for NixplayFS.

This module implements the FUSE (Filesystem in Userspace) interface on top
of RemoteFs:
- Metadata operations (getattr, statfs, access, utimens)
- Directory operations (readdir, mkdir, rmdir)
- File operations (create, open, read, write, truncate, flush, release, unlink)

Photos are immutable once stored: new files are buffered in memory per
handle and uploaded when the handle is released.
"""

import errno
import os
import posixpath
import stat
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional

from fuse import FuseOSError, Operations

from nixplayfs.backend.errors import (
    AmbiguousCollectionError,
    DirNotEmptyError,
    DirNotFoundError,
    FsError,
    NotPermittedError,
    ObjectNotFoundError,
    ServiceError,
)
from nixplayfs.backend.fs import PhotoObject, RemoteFs
from nixplayfs.core.constants import PATH_SEPARATOR, Limits
from nixplayfs.infrastructure.config_manager import ConfigManager
from nixplayfs.infrastructure.logger import Logger

# Order matters: the first matching class wins
ERRNO_MAP = (
    (DirNotFoundError, errno.ENOENT),
    (ObjectNotFoundError, errno.ENOENT),
    (DirNotEmptyError, errno.ENOTEMPTY),
    (NotPermittedError, errno.EPERM),
    (AmbiguousCollectionError, errno.EIO),
    (ServiceError, errno.EIO),
)

WRITE_FLAGS = os.O_WRONLY | os.O_RDWR | os.O_APPEND | os.O_CREAT | os.O_TRUNC


def to_errno(error: FsError) -> int:
    """Map a filesystem error to an errno value."""
    for error_type, code in ERRNO_MAP:
        if isinstance(error, error_type):
            return code
    return errno.EIO


@dataclass
class FileHandle:
    """Represents an open file handle."""

    virtual_path: str  # Path relative to the mount root
    flags: int  # Open flags (O_RDONLY, O_WRONLY, etc.)
    writable: bool = False  # Created by create(); uploaded on release
    obj: Optional[PhotoObject] = None  # Photo being read
    buffer: Optional[bytearray] = None  # Content, loaded lazily for reads
    dirty: bool = False  # Buffer must be uploaded on release
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)


class NixplayFSOperations(Operations):
    """
    FUSE filesystem operations implementation for NixplayFS.

    Integration Points:
    - RemoteFs: Resolves virtual paths and talks to the photo service
    - ConfigManager: readonly and allow_other flags

    Thread Safety:
    - File handle tracking uses locks
    - Each handle's buffer has its own lock
    - Multiple concurrent FUSE operations supported
    """

    def __init__(
        self,
        remote_fs: RemoteFs,
        config: Optional[ConfigManager] = None,
        logger: Optional[Logger] = None,
    ):
        """
        Initialize FUSE operations.

        Args:
            remote_fs: Remote filesystem to expose
            config: Configuration manager (defaults if None)
            logger: Logger instance (created if None)
        """
        self.remote_fs = remote_fs
        self.config = config if config is not None else ConfigManager(load_environment=False)
        self.logger = logger if logger is not None else Logger("nixplayfs.fuse")

        # File handle tracking
        self.fds: Dict[int, FileHandle] = {}
        self.fd_counter = 0
        self.fd_lock = threading.Lock()

        self.readonly = bool(self.config.get("nixplayfs.readonly", False))
        self.allow_other = bool(self.config.get("nixplayfs.allow_other", False))
        self.uid = os.getuid()
        self.gid = os.getgid()

        self.logger.info("FUSE operations initialized", readonly=self.readonly)

    # =========================================================================
    # Helpers
    # =========================================================================

    @staticmethod
    def _relative(path: str) -> str:
        """Turn a kernel path ("/album/x") into a mount-relative path."""
        return path.strip(PATH_SEPARATOR)

    @contextmanager
    def _translate(self, operation: str, path: str) -> Iterator[None]:
        """Translate filesystem errors into FuseOSError."""
        try:
            yield
        except FsError as e:
            code = to_errno(e)
            if code == errno.EIO:
                self.logger.error(f"{operation} failed", path=path, error=str(e))
            else:
                self.logger.debug(f"{operation} refused", path=path, error=str(e))
            raise FuseOSError(code)

    def _check_writable(self) -> None:
        if self.readonly:
            raise FuseOSError(errno.EROFS)

    def _dir_attrs(self, mod_time: float) -> Dict[str, Any]:
        return {
            "st_mode": stat.S_IFDIR | 0o755,
            "st_nlink": 2,
            "st_size": 0,
            "st_ctime": mod_time,
            "st_mtime": mod_time,
            "st_atime": mod_time,
            "st_uid": self.uid,
            "st_gid": self.gid,
        }

    def _file_attrs(self, size: int, mod_time: float) -> Dict[str, Any]:
        mode = 0o444 if self.readonly else 0o644
        return {
            "st_mode": stat.S_IFREG | mode,
            "st_nlink": 1,
            "st_size": size,
            "st_ctime": mod_time,
            "st_mtime": mod_time,
            "st_atime": mod_time,
            "st_uid": self.uid,
            "st_gid": self.gid,
        }

    def _pending_handle(self, remote: str) -> Optional[FileHandle]:
        """Find a not yet uploaded handle created for remote."""
        with self.fd_lock:
            for handle in self.fds.values():
                if handle.writable and handle.virtual_path == remote:
                    return handle
        return None

    # =========================================================================
    # FUSE Metadata Operations
    # =========================================================================

    def getattr(self, path: str, fh: Optional[int] = None) -> Dict[str, Any]:
        """
        Get file attributes (equivalent to stat()).

        Raises:
            FuseOSError: ENOENT if path doesn't exist
        """
        remote = self._relative(path)

        pending = self._pending_handle(remote)
        if pending is not None:
            return self._file_attrs(len(pending.buffer or b""), self.remote_fs.dir_time())

        with self._translate("getattr", remote):
            entry = self.remote_fs.stat(remote)

        if entry.is_dir:
            return self._dir_attrs(entry.mod_time)
        return self._file_attrs(entry.size, entry.mod_time)

    def statfs(self, path: str) -> Dict[str, Any]:
        """Get filesystem statistics; the remote has no meaningful quota."""
        return {
            "f_bsize": Limits.BLOCK_SIZE,
            "f_frsize": Limits.BLOCK_SIZE,
            "f_blocks": 1 << 30,
            "f_bfree": 1 << 30,
            "f_bavail": 1 << 30,
            "f_files": 1 << 20,
            "f_ffree": 1 << 20,
            "f_favail": 1 << 20,
            "f_namemax": Limits.MAX_FILENAME_LENGTH,
        }

    def access(self, path: str, mode: int) -> None:
        """
        Check file access permissions.

        Raises:
            FuseOSError: ENOENT if path doesn't exist, EROFS for writes on readonly
        """
        remote = self._relative(path)
        if self._pending_handle(remote) is None:
            with self._translate("access", remote):
                self.remote_fs.stat(remote)

        if self.readonly and (mode & os.W_OK):
            raise FuseOSError(errno.EROFS)

    def utimens(self, path: str, times=None) -> None:
        """Accept timestamp updates on existing paths; the remote keeps its own."""
        self.getattr(path)

    def chmod(self, path: str, mode: int) -> None:
        """Permissions are fixed."""
        raise FuseOSError(errno.EPERM)

    def chown(self, path: str, uid: int, gid: int) -> None:
        """Ownership is fixed."""
        raise FuseOSError(errno.EPERM)

    # =========================================================================
    # FUSE Directory Operations
    # =========================================================================

    def readdir(self, path: str, fh: int) -> List[str]:
        """
        List directory contents.

        Raises:
            FuseOSError: ENOENT if directory doesn't exist
        """
        remote = self._relative(path)
        with self._translate("readdir", remote):
            entries = self.remote_fs.list(remote)
        return [".", ".."] + [entry.name for entry in entries]

    def mkdir(self, path: str, mode: int) -> None:
        """
        Create a collection.

        Raises:
            FuseOSError: EROFS if readonly, EPERM outside a collection path,
                EEXIST if the collection already exists
        """
        self._check_writable()
        remote = self._relative(path)
        with self._translate("mkdir", remote):
            created = self.remote_fs.mkdir(remote)
        if not created:
            raise FuseOSError(errno.EEXIST)

    def rmdir(self, path: str) -> None:
        """
        Remove an empty collection.

        Raises:
            FuseOSError: EROFS if readonly, ENOTEMPTY if not empty
        """
        self._check_writable()
        remote = self._relative(path)
        with self._translate("rmdir", remote):
            self.remote_fs.rmdir(remote)

    # =========================================================================
    # FUSE File Operations
    # =========================================================================

    def create(self, path: str, mode: int, fi=None) -> int:
        """
        Create a new photo; the content is uploaded on release.

        Raises:
            FuseOSError: EROFS if readonly, EPERM outside a collection,
                ENOENT if the collection doesn't exist
        """
        self._check_writable()
        remote = self._relative(path)
        if not self.remote_fs.can_upload(remote):
            raise FuseOSError(errno.EPERM)

        parent = posixpath.dirname(remote)
        with self._translate("create", remote):
            self.remote_fs.stat(parent)

        fh = self._allocate_file_handle(
            FileHandle(
                virtual_path=remote,
                flags=os.O_WRONLY | os.O_CREAT,
                writable=True,
                buffer=bytearray(),
                dirty=True,
            )
        )
        self.logger.debug("Created file", path=remote, fh=fh)
        return fh

    def open(self, path: str, flags: int) -> int:
        """
        Open a photo for reading.

        Raises:
            FuseOSError: ENOENT if the photo doesn't exist, EROFS or EPERM
                for writes (stored photos are immutable)
        """
        remote = self._relative(path)
        if flags & WRITE_FLAGS:
            self._check_writable()
            raise FuseOSError(errno.EPERM)

        with self._translate("open", remote):
            obj = self.remote_fs.new_object(remote)

        fh = self._allocate_file_handle(FileHandle(virtual_path=remote, flags=flags, obj=obj))
        self.logger.debug("Opened file", path=remote, fh=fh)
        return fh

    def read(self, path: str, size: int, offset: int, fh: int) -> bytes:
        """
        Read photo content, downloading it on first access.

        Raises:
            FuseOSError: EBADF if invalid handle
        """
        handle = self._get_file_handle(fh)
        with handle.lock:
            if handle.buffer is None:
                with self._translate("read", handle.virtual_path):
                    handle.buffer = bytearray(self.remote_fs.read_object(handle.obj))
            return bytes(handle.buffer[offset : offset + size])

    def write(self, path: str, data: bytes, offset: int, fh: int) -> int:
        """
        Write data into a created file's buffer.

        Raises:
            FuseOSError: EBADF if the handle wasn't created for writing
        """
        handle = self._get_file_handle(fh)
        if not handle.writable:
            raise FuseOSError(errno.EBADF)

        with handle.lock:
            end = offset + len(data)
            if end > Limits.MAX_UPLOAD_SIZE:
                raise FuseOSError(errno.EFBIG)
            if offset > len(handle.buffer):
                handle.buffer.extend(b"\0" * (offset - len(handle.buffer)))
            handle.buffer[offset:end] = data
            handle.dirty = True
        return len(data)

    def truncate(self, path: str, length: int, fh: Optional[int] = None) -> None:
        """
        Truncate a file still being written.

        Raises:
            FuseOSError: EROFS if readonly, EPERM for stored photos
        """
        self._check_writable()
        remote = self._relative(path)
        handle = self._get_file_handle(fh) if fh is not None else self._pending_handle(remote)
        if handle is None or not handle.writable:
            raise FuseOSError(errno.EPERM)

        with handle.lock:
            if length < len(handle.buffer):
                del handle.buffer[length:]
            else:
                handle.buffer.extend(b"\0" * (length - len(handle.buffer)))
            handle.dirty = True

    def flush(self, path: str, fh: int) -> None:
        """Nothing to flush; uploads happen on release."""
        self._get_file_handle(fh)

    def release(self, path: str, fh: int) -> None:
        """
        Release (close) file handle, uploading created files.

        Raises:
            FuseOSError: If the upload fails
        """
        handle = self._get_file_handle(fh)
        try:
            if handle.writable and handle.dirty:
                with handle.lock, self._translate("release", handle.virtual_path):
                    self.remote_fs.put(handle.virtual_path, bytes(handle.buffer))
                    handle.dirty = False
        finally:
            self._release_file_handle(fh)
            self.logger.debug("Closed file", path=handle.virtual_path, fh=fh)

    def unlink(self, path: str) -> None:
        """
        Delete a photo.

        Raises:
            FuseOSError: EROFS if readonly, ENOENT if doesn't exist
        """
        self._check_writable()
        remote = self._relative(path)
        with self._translate("unlink", remote):
            self.remote_fs.remove(remote)

    # =========================================================================
    # Helper Methods
    # =========================================================================

    def _allocate_file_handle(self, handle: FileHandle) -> int:
        """Register a handle and return its ID."""
        with self.fd_lock:
            fh_id = self.fd_counter
            self.fds[fh_id] = handle
            self.fd_counter += 1
            return fh_id

    def _get_file_handle(self, fh: int) -> FileHandle:
        """
        Get file handle by ID.

        Raises:
            FuseOSError: EBADF if handle doesn't exist
        """
        with self.fd_lock:
            handle = self.fds.get(fh)
        if handle is None:
            raise FuseOSError(errno.EBADF)
        return handle

    def _release_file_handle(self, fh: int) -> None:
        with self.fd_lock:
            self.fds.pop(fh, None)

    def get_stats(self) -> Dict[str, Any]:
        """Get filesystem statistics."""
        with self.fd_lock:
            open_files = len(self.fds)
        return {
            "open_files": open_files,
            "root": self.remote_fs.root,
            "readonly": self.readonly,
        }
