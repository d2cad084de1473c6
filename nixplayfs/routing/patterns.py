#!/usr/bin/env python3
r"""Pattern table describing the virtual directory layout of NixplayFS.

Every virtual path is classified by exactly one rule of the table:

    ""                          root                 (dir)
    album                       collection-kind root (dir)
    album/<name>                collection           (dir)
    album/<name>/<photo>        item                 (file)
    playlist ...                same shapes for playlists

A rule is plain data: an anchored regular expression, the structural role
of the paths it matches and the collection kind it concerns. What may be
done at a path (list it, upload into it, create or remove it) follows from
the role alone through ROLE_CAPABILITIES, so a rule cannot carry an
inconsistent combination of flags.

Example:
    >>> table = build_pattern_table()
    >>> rule = table.rules[2]
    >>> rule.role, rule.kind, rule.can_mkdir
    (<StructuralRole.COLLECTION: 'collection'>, <CollectionKind.ALBUM: 'album'>, True)
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterator, List, Optional, Pattern, Sequence, Tuple

from nixplayfs.core.constants import CollectionKind, ErrorCode
from nixplayfs.core.validators import ValidationError, validate_regex


class StructuralRole(Enum):
    """Position of a path in the virtual hierarchy."""

    ROOT = "root"  # The mount root, lists one directory per kind
    COLLECTION_KIND_ROOT = "collection_kind_root"  # "album", "playlist"
    COLLECTION = "collection"  # A named album or playlist
    ITEM = "item"  # A photo inside a collection


@dataclass(frozen=True)
class Capabilities:
    """Operations legal at a structural position."""

    is_file: bool = False  # Matched by file-style lookups only
    lists: bool = False  # Directory contents can be produced
    can_upload: bool = False  # Photos may be written here
    can_mkdir: bool = False  # The collection may be created or removed here


ROLE_CAPABILITIES: Dict[StructuralRole, Capabilities] = {
    StructuralRole.ROOT: Capabilities(lists=True),
    StructuralRole.COLLECTION_KIND_ROOT: Capabilities(lists=True),
    StructuralRole.COLLECTION: Capabilities(lists=True, can_mkdir=True),
    StructuralRole.ITEM: Capabilities(is_file=True, can_upload=True),
}


class PatternTableError(Exception):
    """A built-in pattern failed to compile.

    Only a code change to the table can cause this; it is never the
    result of user input and must abort initialization.
    """

    def __init__(self, message: str, error_code: ErrorCode = ErrorCode.INTERNAL_ERROR):
        super().__init__(message)
        self.error_code = error_code


@dataclass(frozen=True)
class Rule:
    """One entry of the pattern table.

    Attributes:
        pattern: Regular expression source, anchored with ^ and $
        role: Structural role of the paths this rule matches
        kind: Collection kind concerned, None for the root
        compiled: Compiled form of ``pattern``
    """

    pattern: str
    role: StructuralRole
    kind: Optional[CollectionKind] = None
    compiled: Optional[Pattern[str]] = field(default=None, compare=False, repr=False)

    @property
    def capabilities(self) -> Capabilities:
        return ROLE_CAPABILITIES[self.role]

    @property
    def is_file(self) -> bool:
        return self.capabilities.is_file

    @property
    def lists(self) -> bool:
        return self.capabilities.lists

    @property
    def can_upload(self) -> bool:
        return self.capabilities.can_upload

    @property
    def can_mkdir(self) -> bool:
        return self.capabilities.can_mkdir

    def match(self, path: str) -> Optional["re.Match[str]"]:
        """Match a normalized absolute path against this rule."""
        if self.compiled is None:
            raise PatternTableError(f"Rule {self.pattern!r} used before compilation")
        return self.compiled.fullmatch(path)


# Single path segment: collection and photo names never contain "/"
SEGMENT = r"([^/]+)"

# Layout template; "{kind}" is substituted with each CollectionKind value.
# NB no trailing / on paths
KIND_LAYOUT: Tuple[Tuple[str, StructuralRole], ...] = (
    (r"^{kind}$", StructuralRole.COLLECTION_KIND_ROOT),
    (r"^{kind}/" + SEGMENT + r"$", StructuralRole.COLLECTION),
    (r"^{kind}/" + SEGMENT + "/" + SEGMENT + r"$", StructuralRole.ITEM),
)


class PatternTable:
    """Immutable, ordered, compiled list of rules.

    Rules are tried in declaration order; the first one whose style and
    pattern both match wins. The table holds no mutable state and can be
    shared between threads freely.
    """

    def __init__(self, rules: Sequence[Rule]):
        """Compile the rules.

        Args:
            rules: Rules in evaluation order

        Raises:
            PatternTableError: If a pattern does not compile
        """
        self._rules: Tuple[Rule, ...] = tuple(self._compile(rule) for rule in rules)

    @staticmethod
    def _compile(rule: Rule) -> Rule:
        try:
            compiled = validate_regex(rule.pattern)
        except ValidationError as e:
            raise PatternTableError(f"Invalid built-in pattern {rule.pattern!r}: {e}") from e
        return Rule(pattern=rule.pattern, role=rule.role, kind=rule.kind, compiled=compiled)

    @property
    def rules(self) -> Tuple[Rule, ...]:
        return self._rules

    def candidates(self, is_file: bool) -> Iterator[Rule]:
        """Yield the rules of one lookup style in evaluation order."""
        for rule in self._rules:
            if rule.is_file == is_file:
                yield rule

    def __iter__(self) -> Iterator[Rule]:
        return iter(self._rules)

    def __len__(self) -> int:
        return len(self._rules)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PatternTable):
            return NotImplemented
        return self._rules == other._rules

    def __hash__(self) -> int:
        return hash(self._rules)


def default_rules(kinds: Sequence[CollectionKind] = tuple(CollectionKind)) -> List[Rule]:
    """Return the uncompiled rules describing the NixplayFS layout.

    Args:
        kinds: Collection kinds exposed under the root, in listing order
    """
    rules = [Rule(pattern=r"^$", role=StructuralRole.ROOT)]
    for kind in kinds:
        for template, role in KIND_LAYOUT:
            rules.append(
                Rule(pattern=template.format(kind=re.escape(kind.value)), role=role, kind=kind)
            )
    return rules


def build_pattern_table() -> PatternTable:
    """Build and compile the built-in pattern table.

    Raises:
        PatternTableError: If the built-in table is defective
    """
    return PatternTable(default_rules())
