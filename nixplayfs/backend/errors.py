"""
NixplayFS Backend: Filesystem Errors.

Every error raised by RemoteFs derives from FsError and carries an
ErrorCode. The FUSE layer turns them into errno values.
"""

from typing import Optional

from nixplayfs.core.constants import ErrorCode


class FsError(Exception):
    """Base exception for remote filesystem errors."""

    error_code = ErrorCode.INTERNAL_ERROR

    def __init__(self, message: str, error_code: Optional[ErrorCode] = None):
        super().__init__(message)
        if error_code is not None:
            self.error_code = error_code


class DirNotFoundError(FsError):
    """The path is not a directory of the virtual hierarchy."""

    error_code = ErrorCode.NOT_FOUND


class ObjectNotFoundError(FsError):
    """The path does not name an existing photo."""

    error_code = ErrorCode.NOT_FOUND


class NotPermittedError(FsError):
    """The operation is not permitted at this path."""

    error_code = ErrorCode.PERMISSION_DENIED


class CantUploadError(NotPermittedError):
    """Upload attempted outside a collection."""

    def __init__(
        self, message: str = "can't upload files here", error_code: Optional[ErrorCode] = None
    ):
        super().__init__(message, error_code)


class DirNotEmptyError(FsError):
    """A collection still holds photos."""

    error_code = ErrorCode.CONFLICT


class AmbiguousCollectionError(FsError):
    """More than one collection carries the requested name."""

    error_code = ErrorCode.CONFLICT


class ServiceError(FsError):
    """The remote photo service failed."""

    error_code = ErrorCode.DEPENDENCY_ERROR
