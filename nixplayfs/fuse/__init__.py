"""NixplayFS FUSE Interface.

This module implements the FUSE filesystem interface for NixplayFS:
- NixplayFSOperations: FUSE callback implementations over RemoteFs
- FileHandle: Per-open-file state (read buffer or pending upload)

Usage:
    from nixplayfs.backend import MemoryPhotoService, RemoteFs
    from nixplayfs.fuse import NixplayFSOperations

    ops = NixplayFSOperations(RemoteFs.new(MemoryPhotoService()))
"""

from nixplayfs.fuse.operations import FileHandle, NixplayFSOperations, to_errno

__all__ = [
    "NixplayFSOperations",
    "FileHandle",
    "to_errno",
]
