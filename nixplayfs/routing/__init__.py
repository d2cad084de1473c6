"""NixplayFS Routing.

This package maps virtual paths onto the fixed directory layout:
- PatternTable: Ordered, compiled rules built once at startup
- Router: First-match resolution of paths and listing dispatch

Rules decide what is legal at a path (list, upload, create collection)
purely from the structural role they match.
"""

from .patterns import (
    ROLE_CAPABILITIES,
    Capabilities,
    PatternTable,
    PatternTableError,
    Rule,
    StructuralRole,
    build_pattern_table,
    default_rules,
)
from .router import (
    NO_MATCH,
    DirEntry,
    Lister,
    MatchResult,
    Router,
    clean_path,
    join_path,
    normalize_root,
    trim_separators,
)

__all__ = [
    # Pattern table
    "StructuralRole",
    "Capabilities",
    "ROLE_CAPABILITIES",
    "Rule",
    "PatternTable",
    "PatternTableError",
    "build_pattern_table",
    "default_rules",
    # Router
    "DirEntry",
    "Lister",
    "MatchResult",
    "NO_MATCH",
    "Router",
    "clean_path",
    "join_path",
    "normalize_root",
    "trim_separators",
]
