"""
NixplayFS Backend: Photo Service Interface.

This module defines the contract between the filesystem and a remote
collection-of-photos API:
- Collections (albums and playlists): enumerate, look up by name,
  create, delete
- Photos: enumerate within a collection, upload, delete, download

Implementations own their own concurrency, pagination and retry policy.
Failures are reported by raising ServiceError (or a subclass of FsError
when the service knows better, e.g. ObjectNotFoundError).
"""

from abc import ABC, abstractmethod
from typing import List

from nixplayfs.backend.models import Collection, Photo
from nixplayfs.core.constants import CollectionKind, CollectionName, ItemName, PhotoContent


class PhotoService(ABC):
    """
    Abstract base class for remote photo services.

    RemoteFs calls these methods only after the router has decided that
    the requested operation is legal at the requested path.
    """

    @abstractmethod
    def list_collections(self, kind: CollectionKind) -> List[Collection]:
        """
        Enumerate all collections of one kind.

        Args:
            kind: Album or playlist

        Returns:
            Collections in the order the service reports them
        """

    @abstractmethod
    def find_collections(self, kind: CollectionKind, title: CollectionName) -> List[Collection]:
        """
        Look collections up by exact title.

        Args:
            kind: Album or playlist
            title: Collection title

        Returns:
            Every collection of that kind carrying the title (may be several)
        """

    @abstractmethod
    def create_collection(self, kind: CollectionKind, title: CollectionName) -> Collection:
        """
        Create an empty collection.

        Args:
            kind: Album or playlist
            title: Collection title

        Returns:
            The new collection
        """

    @abstractmethod
    def delete_collection(self, collection: Collection) -> None:
        """Delete a collection."""

    @abstractmethod
    def list_photos(self, collection: Collection) -> List[Photo]:
        """
        Enumerate the photos of a collection.

        Args:
            collection: Collection to enumerate

        Returns:
            Photos in collection order
        """

    @abstractmethod
    def upload_photo(
        self, collection: Collection, filename: ItemName, mime_type: str, data: PhotoContent
    ) -> Photo:
        """
        Add a photo to a collection.

        Args:
            collection: Target collection
            filename: Photo file name
            mime_type: Content type of ``data``
            data: Photo content

        Returns:
            The stored photo
        """

    @abstractmethod
    def delete_photo(self, collection: Collection, photo: Photo) -> None:
        """Remove a photo from a collection."""

    @abstractmethod
    def download_photo(self, photo: Photo) -> PhotoContent:
        """Return the content of a photo."""

    def close(self) -> None:
        """Release resources held by the service."""

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"
