"""Tests for the in-memory reference store.

Covers:
- Reads and sibling order
- Node creation rules (kinds, names, identities)
- Whole-subtree removal and identity retirement
- Per-subgraph variant removal
- Adoption outcomes and structural checks
- Subtree import with identity reuse and conflicts
- Fallback projection
- Traversal helpers
"""

import pytest
from pydantic import ValidationError

from taxonomy_sync.errors import NotFoundError, StructuralViolation
from taxonomy_sync.store import (
    ROOT_IDENTITY,
    AdoptOutcome,
    ImportNode,
    MemoryTreeStore,
    NodeKind,
    vocabularies,
    walk,
)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _sub(dimensions, value):
    return dimensions.resolve_subgraph({"language": value})


def _names(nodes):
    return [n.name for n in nodes]


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


class TestReads:
    def test_root_seeded_in_every_subgraph(self, empty_store, dimensions):
        for subgraph in dimensions.all_subgraphs():
            root = empty_store.get_root(subgraph)
            assert root is not None
            assert root.kind == NodeKind.ROOT
            assert root.path == "/taxonomies"

    def test_custom_root_name(self, dimensions):
        store = MemoryTreeStore(dimensions, root_name="tags")
        assert store.get_root(dimensions.default_subgraph).path == "/tags"

    def test_children_in_sibling_order(self, store, dimensions):
        root = store.get_root(dimensions.default_subgraph)
        assert _names(store.children(root)) == ["colors", "sizes"]

    def test_children_hidden_in_other_subgraph(self, store, dimensions):
        root = store.get_root(_sub(dimensions, "de"))
        assert list(store.children(root)) == []

    def test_children_kind_filter(self, store, dimensions, ids):
        colors = store.get_node(ids["colors"], dimensions.default_subgraph)
        assert _names(store.children(colors, kinds=[NodeKind.TERM])) == [
            "red",
            "green",
        ]
        assert list(store.children(colors, kinds=[NodeKind.VOCABULARY])) == []

    def test_get_node_missing_variant(self, store, dimensions, ids):
        assert store.get_node(ids["red"], _sub(dimensions, "fr")) is None

    def test_get_node_unknown_identity(self, store, dimensions):
        assert store.get_node("nope", dimensions.default_subgraph) is None

    def test_context_path(self, store, dimensions, ids):
        node = store.get_node(ids["red"], dimensions.default_subgraph)
        assert node.context_path == "/taxonomies/colors/red@live;language=en"

    def test_find_by_path_returns_every_variant(self, store, dimensions, ids):
        store.adopt(ids["colors"], dimensions.default_subgraph, _sub(dimensions, "de"))
        found = store.find_by_path("/taxonomies/colors")
        assert {n.subgraph.key for n in found} == {"language=en", "language=de"}
        assert {n.identity for n in found} == {ids["colors"]}

    def test_find_by_path_unknown(self, store):
        assert store.find_by_path("/taxonomies/nothing") == []


class TestTraversal:
    def test_walk_is_pre_order(self, store, dimensions):
        root = store.get_root(dimensions.default_subgraph)
        assert _names(walk(store, root)) == [
            "colors",
            "red",
            "green",
            "lime",
            "sizes",
            "small",
        ]

    def test_walk_kind_filter(self, store, dimensions):
        root = store.get_root(dimensions.default_subgraph)
        assert _names(walk(store, root, kinds=[NodeKind.VOCABULARY])) == [
            "colors",
            "sizes",
        ]

    def test_walk_skips_subtrees_missing_in_subgraph(self, store, dimensions, ids):
        de = _sub(dimensions, "de")
        store.adopt(ids["colors"], dimensions.default_subgraph, de)
        store.adopt(ids["red"], dimensions.default_subgraph, de)
        assert _names(walk(store, store.get_root(de))) == ["colors", "red"]

    def test_vocabularies(self, store, dimensions):
        root = store.get_root(dimensions.default_subgraph)
        assert _names(vocabularies(store, root)) == ["colors", "sizes"]


# ---------------------------------------------------------------------------
# Creation
# ---------------------------------------------------------------------------


class TestCreateNode:
    def test_term_below_root_rejected(self, empty_store, dimensions):
        with pytest.raises(StructuralViolation, match="cannot be placed"):
            empty_store.create_node(
                ROOT_IDENTITY, "red", NodeKind.TERM, dimensions.default_subgraph
            )

    def test_duplicate_name_rejected(self, store, dimensions):
        with pytest.raises(StructuralViolation, match="already exists"):
            store.create_node(
                ROOT_IDENTITY,
                "colors",
                NodeKind.VOCABULARY,
                dimensions.default_subgraph,
            )

    def test_parent_must_exist_in_subgraph(self, store, dimensions, ids):
        with pytest.raises(NotFoundError):
            store.create_node(
                ids["colors"], "blue", NodeKind.TERM, _sub(dimensions, "de")
            )

    def test_explicit_identity(self, empty_store, dimensions):
        node = empty_store.create_node(
            ROOT_IDENTITY,
            "colors",
            NodeKind.VOCABULARY,
            dimensions.default_subgraph,
            identity="colors-id",
        )
        assert node.identity == "colors-id"


# ---------------------------------------------------------------------------
# Removal
# ---------------------------------------------------------------------------


class TestRemoveSubtree:
    def test_removes_every_variant_of_every_descendant(self, store, dimensions, ids):
        default = dimensions.default_subgraph
        for value in ("de", "fr"):
            for name in ("colors", "green", "lime"):
                store.adopt(ids[name], default, _sub(dimensions, value))

        removed = store.remove_subtree(ids["colors"])

        assert removed == 4 + 3 + 3
        for name in ("colors", "red", "green", "lime"):
            assert store.variant_keys(ids[name]) == []
        assert store.find_by_path("/taxonomies/colors/green/lime") == []

    def test_identities_are_retired(self, store, ids):
        store.remove_subtree(ids["colors"])
        assert {ids["colors"], ids["lime"]} <= store.retired

    def test_retired_identity_cannot_be_reused(self, store, dimensions, ids):
        store.remove_subtree(ids["sizes"])
        with pytest.raises(StructuralViolation, match="Identity already used"):
            store.create_node(
                ROOT_IDENTITY,
                "sizes",
                NodeKind.VOCABULARY,
                dimensions.default_subgraph,
                identity=ids["sizes"],
            )

    def test_root_cannot_be_removed(self, store):
        with pytest.raises(StructuralViolation):
            store.remove_subtree(ROOT_IDENTITY)

    def test_unknown_identity_removes_nothing(self, store):
        assert store.remove_subtree("nope") == 0


class TestRemoveVariant:
    def test_only_target_subgraph_affected(self, store, dimensions, ids):
        default = dimensions.default_subgraph
        de = _sub(dimensions, "de")
        store.adopt(ids["colors"], default, de)
        store.adopt(ids["red"], default, de)

        removed = store.remove_variant(ids["colors"], de)

        assert removed == 2
        assert store.variant_keys(ids["colors"]) == ["language=en"]
        assert store.get_node(ids["red"], default) is not None

    def test_last_variant_drops_record(self, store, dimensions, ids):
        store.remove_variant(ids["small"], dimensions.default_subgraph)
        assert ids["small"] in store.retired
        sizes = store.get_node(ids["sizes"], dimensions.default_subgraph)
        assert list(store.children(sizes)) == []

    def test_missing_variant(self, store, dimensions, ids):
        with pytest.raises(NotFoundError):
            store.remove_variant(ids["red"], _sub(dimensions, "fr"))

    def test_variant_index_follows_changes(self, store, dimensions, ids):
        default = dimensions.default_subgraph
        de = _sub(dimensions, "de")
        store.adopt(ids["colors"], default, de)
        store.adopt(ids["green"], default, de)
        assert store.variant_keys(ids["green"]) == ["language=de", "language=en"]

        store.remove_variant(ids["colors"], de)

        assert store.variant_keys(ids["green"]) == ["language=en"]
        found = store.find_by_path("/taxonomies/colors/green")
        assert [n.subgraph.key for n in found] == ["language=en"]

    def test_wide_vocabulary(self, empty_store, dimensions):
        default = dimensions.default_subgraph
        de = _sub(dimensions, "de")
        vocabulary = empty_store.create_node(
            ROOT_IDENTITY, "wide", NodeKind.VOCABULARY, default
        )
        empty_store.adopt(vocabulary.identity, default, de)
        terms = []
        for i in range(2000):
            term = empty_store.create_node(
                vocabulary.identity, f"t{i}", NodeKind.TERM, default
            )
            empty_store.adopt(term.identity, default, de)
            terms.append(term.identity)

        for identity in reversed(terms):
            assert empty_store.remove_variant(identity, de) == 1
        assert empty_store.remove_variant(vocabulary.identity, de) == 1

        assert empty_store.get_node(vocabulary.identity, de) is None
        assert empty_store.variant_keys(terms[0]) == ["language=en"]
        assert empty_store.remove_subtree(vocabulary.identity) == 2001
        assert empty_store.retired >= set(terms)


# ---------------------------------------------------------------------------
# Adoption
# ---------------------------------------------------------------------------


class TestAdopt:
    def test_adopt_copies_properties(self, store, dimensions, ids):
        de = _sub(dimensions, "de")
        outcome = store.adopt(ids["colors"], dimensions.default_subgraph, de)
        assert outcome == AdoptOutcome.ADOPTED
        node = store.get_node(ids["colors"], de)
        assert node.properties == {"title": "Colors"}
        assert node.identity == ids["colors"]

    def test_adopted_variant_is_independent(self, store, dimensions, ids):
        de = _sub(dimensions, "de")
        store.adopt(ids["colors"], dimensions.default_subgraph, de)
        store.set_properties(ids["colors"], de, {"title": "Farben"})
        default_node = store.get_node(ids["colors"], dimensions.default_subgraph)
        assert default_node.properties == {"title": "Colors"}

    def test_already_present(self, store, dimensions, ids):
        de = _sub(dimensions, "de")
        store.adopt(ids["colors"], dimensions.default_subgraph, de)
        store.set_properties(ids["colors"], de, {"title": "Farben"})
        outcome = store.adopt(ids["colors"], dimensions.default_subgraph, de)
        assert outcome == AdoptOutcome.ALREADY_PRESENT
        assert store.get_node(ids["colors"], de).properties == {"title": "Farben"}

    def test_child_before_parent_is_structural_violation(
        self, store, dimensions, ids
    ):
        with pytest.raises(StructuralViolation, match="parent has no variant"):
            store.adopt(ids["red"], dimensions.default_subgraph, _sub(dimensions, "de"))
        assert store.get_node(ids["red"], _sub(dimensions, "de")) is None

    def test_unknown_identity(self, store, dimensions):
        with pytest.raises(NotFoundError):
            store.adopt("nope", dimensions.default_subgraph, _sub(dimensions, "de"))

    def test_missing_source(self, store, dimensions, ids):
        with pytest.raises(NotFoundError, match="to adopt from"):
            store.adopt(ids["colors"], _sub(dimensions, "fr"), _sub(dimensions, "de"))


# ---------------------------------------------------------------------------
# Import
# ---------------------------------------------------------------------------


def _tree(identifier=None, child_identifier=None):
    return ImportNode(
        identifier=identifier,
        name="shapes",
        kind=NodeKind.VOCABULARY,
        properties={"title": "Shapes"},
        children=[
            ImportNode(
                identifier=child_identifier,
                name="round",
                kind=NodeKind.TERM,
                children=[ImportNode(name="circle", kind=NodeKind.TERM)],
            ),
            ImportNode(name="square", kind=NodeKind.TERM),
        ],
    )


class TestImportSubtree:
    def test_import_new_subtree(self, store, dimensions):
        default = dimensions.default_subgraph
        top = store.import_subtree(ROOT_IDENTITY, _tree(), default)

        assert top.path == "/taxonomies/shapes"
        assert top.properties == {"title": "Shapes"}
        assert _names(walk(store, top)) == ["round", "circle", "square"]
        root = store.get_root(default)
        assert _names(store.children(root)) == ["colors", "sizes", "shapes"]

    def test_identifiers_preserved(self, empty_store, dimensions):
        top = empty_store.import_subtree(
            ROOT_IDENTITY,
            _tree("shapes-id", "round-id"),
            dimensions.default_subgraph,
        )
        assert top.identity == "shapes-id"
        (round_node,) = empty_store.find_by_path("/taxonomies/shapes/round")
        assert round_node.identity == "round-id"

    def test_reimport_updates_in_place(self, empty_store, dimensions):
        default = dimensions.default_subgraph
        first = empty_store.import_subtree(ROOT_IDENTITY, _tree(), default)
        changed = _tree().model_copy(update={"properties": {"title": "Forms"}})

        second = empty_store.import_subtree(ROOT_IDENTITY, changed, default)

        assert second.identity == first.identity
        assert second.properties == {"title": "Forms"}
        assert len(empty_store.find_by_path("/taxonomies/shapes/round")) == 1

    def test_path_taken_by_other_identity(self, empty_store, dimensions):
        default = dimensions.default_subgraph
        empty_store.import_subtree(ROOT_IDENTITY, _tree("a"), default)
        with pytest.raises(StructuralViolation, match="already taken"):
            empty_store.import_subtree(ROOT_IDENTITY, _tree("b"), default)

    def test_identity_belongs_elsewhere(self, store, dimensions, ids):
        with pytest.raises(StructuralViolation, match="already belongs"):
            store.import_subtree(
                ROOT_IDENTITY, _tree(ids["colors"]), dimensions.default_subgraph
            )

    def test_name_with_slash_rejected(self):
        with pytest.raises(ValidationError, match="must not contain"):
            ImportNode(name="round/flat", kind=NodeKind.TERM)

    def test_duplicate_sibling_names_rejected(self, empty_store, dimensions):
        tree = ImportNode(
            name="shapes",
            kind=NodeKind.VOCABULARY,
            children=[
                ImportNode(name="round", kind=NodeKind.TERM),
                ImportNode(name="round", kind=NodeKind.TERM),
            ],
        )
        with pytest.raises(StructuralViolation, match="appears twice"):
            empty_store.import_subtree(
                ROOT_IDENTITY, tree, dimensions.default_subgraph
            )
        assert empty_store.find_by_path("/taxonomies/shapes") == []

    def test_rejected_import_changes_nothing(self, store, dimensions, ids):
        before = len(store)
        tree = _tree(child_identifier=ids["red"])
        with pytest.raises(StructuralViolation):
            store.import_subtree(ROOT_IDENTITY, tree, dimensions.default_subgraph)
        assert len(store) == before
        assert store.find_by_path("/taxonomies/shapes") == []

    def test_retired_identifier_gets_new_identity(self, store, dimensions, ids):
        store.remove_subtree(ids["sizes"])
        tree = ImportNode(
            identifier=ids["sizes"], name="sizes", kind=NodeKind.VOCABULARY
        )
        top = store.import_subtree(ROOT_IDENTITY, tree, dimensions.default_subgraph)
        assert top.identity != ids["sizes"]

    def test_wrong_top_kind_rejected(self, empty_store, dimensions):
        tree = ImportNode(name="red", kind=NodeKind.TERM)
        with pytest.raises(StructuralViolation):
            empty_store.import_subtree(
                ROOT_IDENTITY, tree, dimensions.default_subgraph
            )


# ---------------------------------------------------------------------------
# Projection
# ---------------------------------------------------------------------------


class TestProject:
    def test_exact_variant(self, store, dimensions, ids):
        props = store.project(ids["colors"], dimensions.default_subgraph)
        assert props == {"title": "Colors"}

    def test_missing_without_fallback(self, store, dimensions, ids):
        assert store.project(ids["colors"], _sub(dimensions, "de_CH")) is None

    def test_fallback_prefers_configured_chain(self, store, dimensions, ids):
        de = _sub(dimensions, "de")
        store.adopt(ids["colors"], dimensions.default_subgraph, de)
        store.set_properties(ids["colors"], de, {"title": "Farben"})
        props = store.project(ids["colors"], _sub(dimensions, "de_CH"), fallback=True)
        assert props == {"title": "Farben"}

    def test_fallback_to_default(self, store, dimensions, ids):
        props = store.project(ids["colors"], _sub(dimensions, "fr"), fallback=True)
        assert props == {"title": "Colors"}


# ---------------------------------------------------------------------------
# Snapshot dicts
# ---------------------------------------------------------------------------


class TestDictRoundTrip:
    def test_from_dict_restores_tables(self, store, dimensions, ids):
        de = _sub(dimensions, "de")
        store.adopt(ids["colors"], dimensions.default_subgraph, de)
        store.remove_subtree(ids["sizes"])

        restored = MemoryTreeStore.from_dict(store.to_dict(), dimensions)

        assert len(restored) == len(store)
        assert restored.retired == store.retired
        root = restored.get_root(dimensions.default_subgraph)
        assert _names(walk(restored, root)) == ["colors", "red", "green", "lime"]
        assert restored.get_node(ids["colors"], de) is not None

    def test_from_dict_rebuilds_variant_index(self, store, dimensions, ids):
        de = _sub(dimensions, "de")
        store.adopt(ids["colors"], dimensions.default_subgraph, de)

        restored = MemoryTreeStore.from_dict(store.to_dict(), dimensions)

        assert restored.variant_keys(ids["colors"]) == ["language=de", "language=en"]
        assert len(restored.find_by_path("/taxonomies/colors")) == 2
        restored.remove_variant(ids["colors"], de)
        assert restored.variant_keys(ids["colors"]) == ["language=en"]
