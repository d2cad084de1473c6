"""
NixplayFS Backend: In-Memory Photo Service.

A PhotoService keeping albums, playlists and photo bytes in process
memory. It backs local test mounts and the test suite; all state is lost
on unmount.
"""

import itertools
import threading
import time
from typing import Dict, List, Optional

from nixplayfs.backend.errors import ObjectNotFoundError
from nixplayfs.backend.models import Collection, Photo
from nixplayfs.backend.service import PhotoService
from nixplayfs.core.constants import CollectionKind, CollectionName, ItemName, PhotoContent


class MemoryPhotoService(PhotoService):
    """
    Thread-safe in-memory photo service.

    Collections are kept in creation order; photos in upload order.
    Same-titled collections are allowed, as on the real service.
    """

    def __init__(self, clock=time.time):
        """
        Initialize an empty service.

        Args:
            clock: Callable returning the current timestamp
        """
        self._clock = clock
        self._lock = threading.Lock()
        self._ids = itertools.count(1)
        self._collections: Dict[str, Collection] = {}
        self._photos: Dict[str, List[Photo]] = {}
        self._content: Dict[str, bytes] = {}

    def _next_id(self) -> str:
        return str(next(self._ids))

    def _refresh(self, collection_id: str) -> Collection:
        """Return a snapshot of a collection with an up to date photo count."""
        collection = self._collections.get(collection_id)
        if collection is None:
            raise ObjectNotFoundError(f"collection {collection_id} not found")
        return Collection(
            id=collection.id,
            kind=collection.kind,
            title=collection.title,
            photo_count=len(self._photos[collection_id]),
        )

    def list_collections(self, kind: CollectionKind) -> List[Collection]:
        with self._lock:
            return [self._refresh(c.id) for c in self._collections.values() if c.kind == kind]

    def find_collections(self, kind: CollectionKind, title: CollectionName) -> List[Collection]:
        with self._lock:
            return [
                self._refresh(c.id)
                for c in self._collections.values()
                if c.kind == kind and c.title == title
            ]

    def create_collection(self, kind: CollectionKind, title: CollectionName) -> Collection:
        with self._lock:
            collection = Collection(id=self._next_id(), kind=kind, title=title)
            self._collections[collection.id] = collection
            self._photos[collection.id] = []
            return collection

    def delete_collection(self, collection: Collection) -> None:
        with self._lock:
            if collection.id not in self._collections:
                raise ObjectNotFoundError(f"collection {collection.title!r} not found")
            for photo in self._photos.pop(collection.id):
                self._content.pop(photo.id, None)
            del self._collections[collection.id]

    def list_photos(self, collection: Collection) -> List[Photo]:
        with self._lock:
            if collection.id not in self._photos:
                raise ObjectNotFoundError(f"collection {collection.title!r} not found")
            return list(self._photos[collection.id])

    def upload_photo(
        self, collection: Collection, filename: ItemName, mime_type: str, data: PhotoContent
    ) -> Photo:
        with self._lock:
            if collection.id not in self._photos:
                raise ObjectNotFoundError(f"collection {collection.title!r} not found")
            photo = Photo(
                id=self._next_id(),
                collection_id=collection.id,
                filename=filename,
                size=len(data),
                mime_type=mime_type,
                modified=self._clock(),
            )
            self._photos[collection.id].append(photo)
            self._content[photo.id] = bytes(data)
            return photo

    def delete_photo(self, collection: Collection, photo: Photo) -> None:
        with self._lock:
            photos = self._photos.get(collection.id)
            if photos is None or photo not in photos:
                raise ObjectNotFoundError(f"photo {photo.filename!r} not found")
            photos.remove(photo)
            self._content.pop(photo.id, None)

    def download_photo(self, photo: Photo) -> PhotoContent:
        with self._lock:
            content: Optional[bytes] = self._content.get(photo.id)
        if content is None:
            raise ObjectNotFoundError(f"photo {photo.filename!r} not found")
        return content

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(collections={len(self._collections)})"
