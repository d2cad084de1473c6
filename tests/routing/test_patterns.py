"""Tests for the pattern table."""
import re

import pytest

from nixplayfs.core.constants import CollectionKind, ErrorCode
from nixplayfs.routing.patterns import (
    KIND_LAYOUT,
    ROLE_CAPABILITIES,
    Capabilities,
    PatternTable,
    PatternTableError,
    Rule,
    StructuralRole,
    build_pattern_table,
    default_rules,
)

# Representative paths per structural role, drawn from the path grammar
REPRESENTATIVE_PATHS = {
    StructuralRole.ROOT: [""],
    StructuralRole.COLLECTION_KIND_ROOT: ["album", "playlist"],
    StructuralRole.COLLECTION: [
        "album/Vacation",
        "album/My Trip 2019",
        "album/a",
        "playlist/Frame",
        "playlist/album",
        "album/playlist",
        "album/img1.jpg",
    ],
    StructuralRole.ITEM: [
        "album/Vacation/img1.jpg",
        "album/Vacation/no-extension",
        "album/album/album",
        "playlist/Frame/frame.jpg",
        "playlist/x/.hidden",
    ],
}

ALL_PATHS = [path for paths in REPRESENTATIVE_PATHS.values() for path in paths]

# Paths no rule may match in either style
FOREIGN_PATHS = [
    "albums",
    "Album",
    "photos/x",
    "album/",
    "/album",
    "album//x",
    "album/a/b/c",
    "playlist/a/b/c/d",
    "albumx/Vacation",
]


class TestCapabilities:
    """Test capability derivation from roles."""

    def test_every_role_has_capabilities(self):
        """Each structural role appears in the lookup table."""
        assert set(ROLE_CAPABILITIES) == set(StructuralRole)

    def test_only_items_are_files(self):
        for role, caps in ROLE_CAPABILITIES.items():
            assert caps.is_file == (role == StructuralRole.ITEM)

    def test_only_items_accept_uploads(self):
        for role, caps in ROLE_CAPABILITIES.items():
            assert caps.can_upload == (role == StructuralRole.ITEM)

    def test_only_collections_accept_mkdir(self):
        for role, caps in ROLE_CAPABILITIES.items():
            assert caps.can_mkdir == (role == StructuralRole.COLLECTION)

    def test_directories_list(self):
        """Every directory role can be listed, files cannot."""
        for caps in ROLE_CAPABILITIES.values():
            assert caps.lists != caps.is_file

    def test_no_role_can_upload_and_mkdir(self):
        for caps in ROLE_CAPABILITIES.values():
            assert not (caps.can_upload and caps.can_mkdir)

    def test_capabilities_are_immutable(self):
        caps = Capabilities()
        with pytest.raises(AttributeError):
            caps.can_upload = True


class TestRule:
    """Test Rule dataclass."""

    def test_flags_follow_role(self):
        rule = Rule(pattern=r"^album/([^/]+)$", role=StructuralRole.COLLECTION)
        assert rule.can_mkdir is True
        assert rule.can_upload is False
        assert rule.is_file is False
        assert rule.lists is True
        assert rule.capabilities is ROLE_CAPABILITIES[StructuralRole.COLLECTION]

    def test_match_requires_compilation(self):
        rule = Rule(pattern=r"^$", role=StructuralRole.ROOT)
        with pytest.raises(PatternTableError):
            rule.match("")

    def test_match_is_anchored(self, pattern_table):
        kind_root = pattern_table.rules[1]
        assert kind_root.match("album") is not None
        assert kind_root.match("xalbum") is None
        assert kind_root.match("albumx") is None

    def test_equality_ignores_compiled(self):
        plain = Rule(pattern=r"^$", role=StructuralRole.ROOT)
        compiled = Rule(pattern=r"^$", role=StructuralRole.ROOT, compiled=re.compile(r"^$"))
        assert plain == compiled

    def test_rule_is_immutable(self):
        rule = Rule(pattern=r"^$", role=StructuralRole.ROOT)
        with pytest.raises(AttributeError):
            rule.pattern = "x"


class TestDefaultRules:
    """Test the built-in layout."""

    def test_table_shape(self):
        """Root first, then kind root, collection and item for each kind."""
        rules = default_rules()
        assert [(r.role, r.kind) for r in rules] == [
            (StructuralRole.ROOT, None),
            (StructuralRole.COLLECTION_KIND_ROOT, CollectionKind.ALBUM),
            (StructuralRole.COLLECTION, CollectionKind.ALBUM),
            (StructuralRole.ITEM, CollectionKind.ALBUM),
            (StructuralRole.COLLECTION_KIND_ROOT, CollectionKind.PLAYLIST),
            (StructuralRole.COLLECTION, CollectionKind.PLAYLIST),
            (StructuralRole.ITEM, CollectionKind.PLAYLIST),
        ]

    def test_patterns_anchored(self):
        for rule in default_rules():
            assert rule.pattern.startswith("^")
            assert rule.pattern.endswith("$")

    def test_no_trailing_separator_in_patterns(self):
        for rule in default_rules():
            assert not rule.pattern.endswith("/$")

    def test_kind_subset(self):
        rules = default_rules(kinds=(CollectionKind.PLAYLIST,))
        assert len(rules) == 1 + len(KIND_LAYOUT)
        assert {r.kind for r in rules[1:]} == {CollectionKind.PLAYLIST}

    def test_rules_are_uncompiled(self):
        assert all(rule.compiled is None for rule in default_rules())


class TestPatternTable:
    """Test table compilation and lookup."""

    def test_build_compiles_every_rule(self, pattern_table):
        assert len(pattern_table) == 7
        assert all(rule.compiled is not None for rule in pattern_table)

    def test_rebuild_is_identical(self, pattern_table):
        """Compiling twice yields the same table and the same matching."""
        rebuilt = build_pattern_table()
        assert rebuilt == pattern_table
        assert hash(rebuilt) == hash(pattern_table)
        for path in ALL_PATHS + FOREIGN_PATHS:
            for old, new in zip(pattern_table, rebuilt):
                assert (old.match(path) is None) == (new.match(path) is None)

    def test_invalid_pattern_is_fatal(self):
        with pytest.raises(PatternTableError) as exc_info:
            PatternTable([Rule(pattern=r"^album/([^/]+$", role=StructuralRole.COLLECTION)])
        assert exc_info.value.error_code == ErrorCode.INTERNAL_ERROR

    def test_rules_is_tuple(self, pattern_table):
        assert isinstance(pattern_table.rules, tuple)

    def test_candidates_partition_by_style(self, pattern_table):
        files = list(pattern_table.candidates(is_file=True))
        dirs = list(pattern_table.candidates(is_file=False))
        assert len(files) + len(dirs) == len(pattern_table)
        assert all(rule.role == StructuralRole.ITEM for rule in files)
        assert all(rule.role != StructuralRole.ITEM for rule in dirs)

    def test_candidates_keep_declaration_order(self, pattern_table):
        dirs = list(pattern_table.candidates(is_file=False))
        positions = [pattern_table.rules.index(rule) for rule in dirs]
        assert positions == sorted(positions)

    def test_not_equal_to_other_types(self, pattern_table):
        assert pattern_table != list(pattern_table)


class TestMutualExclusivity:
    """No two rules of the same style match the same path."""

    @pytest.mark.parametrize("path", ALL_PATHS + FOREIGN_PATHS)
    @pytest.mark.parametrize("is_file", [True, False])
    def test_at_most_one_rule_matches(self, pattern_table, path, is_file):
        matching = [r for r in pattern_table.candidates(is_file) if r.match(path)]
        assert len(matching) <= 1

    @pytest.mark.parametrize("path", ALL_PATHS + FOREIGN_PATHS)
    def test_never_both_file_and_directory(self, pattern_table, path):
        file_hits = [r for r in pattern_table.candidates(True) if r.match(path)]
        dir_hits = [r for r in pattern_table.candidates(False) if r.match(path)]
        assert not (file_hits and dir_hits)

    @pytest.mark.parametrize(
        "role,path",
        [(role, path) for role, paths in REPRESENTATIVE_PATHS.items() for path in paths],
    )
    def test_representative_path_matches_its_role(self, pattern_table, role, path):
        matching = [r for r in pattern_table if r.match(path)]
        assert len(matching) == 1
        assert matching[0].role == role

    @pytest.mark.parametrize("path", FOREIGN_PATHS)
    def test_foreign_paths_match_nothing(self, pattern_table, path):
        assert not any(rule.match(path) for rule in pattern_table)
