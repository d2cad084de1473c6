#!/usr/bin/env python3
"""Resolution of virtual paths against the pattern table.

The router is the single place where a caller-supplied path string is
mapped onto a structural role. It:
- Normalizes the path and anchors it under the mount root
- Computes the prefix used to re-qualify listing output
- Picks the first rule of the requested style whose pattern matches
- Produces directory entries for listable matches through a lister

Example:
    >>> router = Router(build_pattern_table())
    >>> match = router.resolve("", "album/Vacation/img1.jpg", is_file=True)
    >>> match.collection_name, match.item_name, match.rule.can_upload
    ('Vacation', 'img1.jpg', True)
"""

import posixpath
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Protocol, Tuple

from nixplayfs.core.constants import (
    PATH_SEPARATOR,
    CollectionKind,
    CollectionName,
    MountRoot,
    VirtualPath,
)
from nixplayfs.routing.patterns import PatternTable, Rule, StructuralRole


@dataclass(frozen=True)
class DirEntry:
    """One entry of a directory listing.

    Attributes:
        remote: Path relative to the mount root (prefix + name)
        is_dir: True for collections and kind directories
        mod_time: Modification timestamp (seconds since epoch)
        size: Size in bytes, 0 for directories
        id: Remote identifier, empty when synthesized
        items: Number of photos in a collection, -1 if unknown
        mime_type: MIME type of a photo, empty for directories
    """

    remote: str
    is_dir: bool
    mod_time: float
    size: int = 0
    id: str = ""
    items: int = -1
    mime_type: str = ""

    @property
    def name(self) -> str:
        """Last path segment of the entry."""
        return self.remote.rsplit(PATH_SEPARATOR, 1)[-1]


class Lister(Protocol):
    """What the router needs from its environment to produce listings."""

    def list_collections(self, prefix: str, kind: CollectionKind) -> List[DirEntry]:
        ...

    def list_items(self, prefix: str, kind: CollectionKind, name: CollectionName) -> List[DirEntry]:
        ...

    def dir_time(self) -> float:
        ...


@dataclass(frozen=True)
class MatchResult:
    """Outcome of resolving one virtual path.

    Attributes:
        captures: Index 0 is the matched absolute path, 1 the collection
            name and 2 the photo name when the rule captures them
        prefix: Path below the mount root with one trailing "/" when
            non-empty; prepended to listed names
        rule: Winning rule, or None when the path does not exist
    """

    captures: Tuple[str, ...] = ()
    prefix: str = ""
    rule: Optional[Rule] = None

    def __bool__(self) -> bool:
        return self.rule is not None

    @property
    def found(self) -> bool:
        return self.rule is not None

    @property
    def role(self) -> Optional[StructuralRole]:
        return self.rule.role if self.rule is not None else None

    @property
    def kind(self) -> Optional[CollectionKind]:
        return self.rule.kind if self.rule is not None else None

    @property
    def collection_name(self) -> Optional[str]:
        return self.captures[1] if len(self.captures) > 1 else None

    @property
    def item_name(self) -> Optional[str]:
        return self.captures[2] if len(self.captures) > 2 else None


NO_MATCH = MatchResult()


def trim_separators(path: str) -> str:
    """Strip leading and trailing "/" from a path."""
    return path.strip(PATH_SEPARATOR)


def clean_path(path: str) -> str:
    """Collapse duplicate separators, "." and ".." segments.

    The empty path stays empty and a path reducing to "." becomes "".
    """
    if not path:
        return ""
    cleaned = posixpath.normpath(path)
    if cleaned in (".", PATH_SEPARATOR, "//"):
        return ""
    return trim_separators(cleaned)


def normalize_root(root: str) -> str:
    """Normalize a mount root: cleaned, no leading or trailing "/"."""
    return clean_path(trim_separators(root or ""))


def join_path(root: str, item_path: str) -> str:
    """Join a root and a relative path into a cleaned absolute virtual path."""
    if not root:
        return clean_path(item_path)
    if not item_path:
        return clean_path(root)
    return clean_path(root + PATH_SEPARATOR + item_path)


def is_under_root(root: str, abs_path: str) -> bool:
    """Check that a cleaned absolute path has not escaped the root."""
    if not root:
        return not (abs_path == ".." or abs_path.startswith("../"))
    return abs_path == root or abs_path.startswith(root + PATH_SEPARATOR)


class Router:
    """Resolves virtual paths to rules of a pattern table.

    The router holds only the immutable table it was given; ``resolve``
    is pure and may be called from any number of threads.
    """

    def __init__(self, table: PatternTable):
        """Initialize router.

        Args:
            table: Compiled pattern table, built once at startup
        """
        self.table = table
        self._entry_producers: Dict[
            StructuralRole, Callable[[MatchResult, Lister], List[DirEntry]]
        ] = {
            StructuralRole.ROOT: self._root_entries,
            StructuralRole.COLLECTION_KIND_ROOT: self._collection_entries,
            StructuralRole.COLLECTION: self._item_entries,
        }

    def resolve(self, root: MountRoot, item_path: VirtualPath, is_file: bool) -> MatchResult:
        """Find the rule matching a path.

        Args:
            root: Mount root ("" for the filesystem root); normalized here
            item_path: Path relative to the mount root
            is_file: True for file-style lookups (read, write, delete),
                False for directory-style lookups (list, mkdir, rmdir)

        Returns:
            MatchResult; falsy when no rule matches
        """
        root = normalize_root(root)
        item_path = trim_separators(item_path)
        abs_path = join_path(root, item_path)
        if not is_under_root(root, abs_path):
            return NO_MATCH

        prefix = trim_separators(abs_path[len(root) :])
        if prefix:
            prefix += PATH_SEPARATOR

        for rule in self.table.candidates(is_file):
            match = rule.match(abs_path)
            if match is not None:
                return MatchResult(
                    captures=(match.group(0),) + match.groups(), prefix=prefix, rule=rule
                )
        return NO_MATCH

    def list_entries(self, match: MatchResult, lister: Lister) -> List[DirEntry]:
        """Produce the directory contents for a listable match.

        Args:
            match: Result of a directory-style ``resolve``
            lister: Source of collection and photo listings

        Returns:
            Entries whose ``remote`` is qualified with ``match.prefix``

        Raises:
            ValueError: If the match is empty or not listable
        """
        if match.rule is None or not match.rule.lists:
            raise ValueError(f"Path {match.prefix!r} cannot be listed")
        return self._entry_producers[match.rule.role](match, lister)

    def _root_entries(self, match: MatchResult, lister: Lister) -> List[DirEntry]:
        """One synthesized directory per collection kind in the table."""
        entries = []
        for rule in self.table:
            if rule.role == StructuralRole.COLLECTION_KIND_ROOT and rule.kind is not None:
                entries.append(
                    DirEntry(
                        remote=match.prefix + rule.kind.value,
                        is_dir=True,
                        mod_time=lister.dir_time(),
                    )
                )
        return entries

    def _collection_entries(self, match: MatchResult, lister: Lister) -> List[DirEntry]:
        return lister.list_collections(match.prefix, match.rule.kind)

    def _item_entries(self, match: MatchResult, lister: Lister) -> List[DirEntry]:
        return lister.list_items(match.prefix, match.rule.kind, match.collection_name)
