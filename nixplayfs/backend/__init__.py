"""NixplayFS Backend.

Everything between the router and the remote photo API:
- PhotoService: Contract a remote collection-of-photos client fulfils
- MemoryPhotoService: In-process implementation for tests and local mounts
- RemoteFs: Filesystem operations on virtual paths
- create_service: Build the service named by configuration

Usage:
    from nixplayfs.backend import MemoryPhotoService, RemoteFs

    fs = RemoteFs.new(MemoryPhotoService(), root="")
    fs.mkdir("album/Vacation")
    fs.put("album/Vacation/img1.jpg", data)
"""

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
from nixplayfs.backend.fs import PhotoObject, RemoteFs
from nixplayfs.backend.loader import create_service
from nixplayfs.backend.memory import MemoryPhotoService
from nixplayfs.backend.models import Collection, Photo
from nixplayfs.backend.service import PhotoService

__all__ = [
    # Models
    "Collection",
    "Photo",
    "PhotoObject",
    # Services
    "PhotoService",
    "MemoryPhotoService",
    "create_service",
    # Filesystem
    "RemoteFs",
    # Errors
    "FsError",
    "DirNotFoundError",
    "ObjectNotFoundError",
    "NotPermittedError",
    "CantUploadError",
    "DirNotEmptyError",
    "AmbiguousCollectionError",
    "ServiceError",
]
