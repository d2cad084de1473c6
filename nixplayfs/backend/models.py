"""
NixplayFS Backend: Remote Data Structures.

Immutable snapshots of the objects returned by a photo service. They are
produced fresh by every service call and never updated in place.
"""

from dataclasses import dataclass

from nixplayfs.core.constants import CollectionKind


@dataclass(frozen=True)
class Collection:
    """
    A named album or playlist on the remote service.

    Attributes:
        id: Service identifier
        kind: Album or playlist
        title: Name shown as the directory name
        photo_count: Number of photos at the time of the snapshot
    """

    id: str
    kind: CollectionKind
    title: str
    photo_count: int = 0


@dataclass(frozen=True)
class Photo:
    """
    A photo stored in exactly one collection.

    Attributes:
        id: Service identifier
        collection_id: Identifier of the owning collection
        filename: Name shown as the file name
        size: Size in bytes
        mime_type: Content type reported by the service
        modified: Modification timestamp (seconds since epoch)
    """

    id: str
    collection_id: str
    filename: str
    size: int
    mime_type: str
    modified: float
