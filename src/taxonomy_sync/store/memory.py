"""In-memory taxonomy store.

The store keeps two tables:

* an **arena** of node records keyed by identity (kind, name, parent,
  path, ordered child identities), shared by all variants of a node;
* a **variant table** keyed by ``(identity, subgraph key)`` holding the
  content projection of the node in that subgraph.

"The same term in German and in French" is therefore two variant rows
sharing one arena record.  Every public mutation validates first and
then applies its changes, so a failed call leaves both tables untouched.
Identities whose last variant has been removed are *retired* and never
handed out again.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from typing import Any

from ..dimensions import DimensionService, Subgraph
from ..errors import NotFoundError, StructuralViolation
from .models import AdoptOutcome, ImportNode, Node, NodeKind

logger = logging.getLogger(__name__)

ROOT_IDENTITY = "taxonomy-root"


@dataclass
class NodeRecord:
    identity: str
    kind: NodeKind
    name: str
    parent: str | None
    path: str
    children: list[str] = field(default_factory=list)


@dataclass
class _ImportOp:
    identity: str
    parent: str
    name: str
    kind: NodeKind
    path: str
    properties: dict[str, str]
    is_new: bool


def join_path(parent_path: str, name: str) -> str:
    return f"{parent_path.rstrip('/')}/{name}"


class MemoryTreeStore:
    """Reference ``TreeStore`` implementation backed by dicts.

    Args:
        dimensions: Dimension service used to enumerate subgraphs and
            compute fallback chains.
        root_name: Node name of the taxonomy root.
        seed_root: Create the root variant in every legal subgraph.
    """

    def __init__(
        self,
        dimensions: DimensionService,
        root_name: str = "taxonomies",
        seed_root: bool = True,
    ) -> None:
        self.dimensions = dimensions
        self._records: dict[str, NodeRecord] = {}
        self._variants: dict[tuple[str, str], dict[str, str]] = {}
        # identity -> subgraph keys it has a variant in
        self._keys: dict[str, set[str]] = {}
        self._by_path: dict[str, set[str]] = {}
        self._retired: set[str] = set()

        self._add_record(
            NodeRecord(
                identity=ROOT_IDENTITY,
                kind=NodeKind.ROOT,
                name=root_name,
                parent=None,
                path=f"/{root_name}",
            )
        )
        if seed_root:
            self.ensure_root_variants()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @property
    def root_identity(self) -> str:
        return ROOT_IDENTITY

    @property
    def retired(self) -> frozenset[str]:
        return frozenset(self._retired)

    def get_root(self, subgraph: Subgraph) -> Node | None:
        return self.get_node(ROOT_IDENTITY, subgraph)

    def get_node(self, identity: str, subgraph: Subgraph) -> Node | None:
        record = self._records.get(identity)
        if record is None:
            return None
        properties = self._variants.get((identity, subgraph.key))
        if properties is None:
            return None
        return self._view(record, subgraph, properties)

    def children(
        self, node: Node, kinds: Iterable[NodeKind] | None = None
    ) -> Iterator[Node]:
        wanted = set(kinds) if kinds is not None else None
        record = self._records.get(node.identity)
        if record is None:
            return
        # Copy: callers may mutate the store between yields.
        for child_identity in list(record.children):
            child = self.get_node(child_identity, node.subgraph)
            if child is None:
                continue
            if wanted is None or child.kind in wanted:
                yield child

    def find_by_path(self, path: str) -> list[Node]:
        nodes = []
        for identity in sorted(self._by_path.get(path, ())):
            record = self._records[identity]
            for key in sorted(self._keys.get(identity, ())):
                properties = self._variants[(identity, key)]
                nodes.append(
                    self._view(record, Subgraph.parse_key(key), properties)
                )
        return nodes

    def project(
        self, identity: str, subgraph: Subgraph, fallback: bool = False
    ) -> dict[str, str] | None:
        candidates = (
            self.dimensions.fallback_chain(subgraph) if fallback else [subgraph]
        )
        for candidate in candidates:
            properties = self._variants.get((identity, candidate.key))
            if properties is not None:
                return dict(properties)
        return None

    def variant_keys(self, identity: str) -> list[str]:
        """Subgraph keys in which *identity* currently has a variant."""
        return sorted(self._keys.get(identity, ()))

    def __len__(self) -> int:
        return len(self._variants)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def ensure_root_variants(self) -> int:
        """Create the root variant in every legal subgraph that lacks one."""
        created = 0
        for subgraph in self.dimensions.all_subgraphs():
            created += self.ensure_root_variant(subgraph)
        return created

    def ensure_root_variant(self, subgraph: Subgraph) -> int:
        key = (ROOT_IDENTITY, subgraph.key)
        if key in self._variants:
            return 0
        self._put_variant(ROOT_IDENTITY, subgraph.key, {})
        return 1

    def create_node(
        self,
        parent_identity: str,
        name: str,
        kind: NodeKind,
        subgraph: Subgraph,
        properties: dict[str, str] | None = None,
        identity: str | None = None,
    ) -> Node:
        """Create a new node with a single variant in *subgraph*.

        Raises:
            NotFoundError: The parent has no variant in *subgraph*.
            StructuralViolation: The name is taken, the identity is in use
                or retired, or the kind is not allowed below the parent.
        """
        parent = self._require_variant_parent(parent_identity, subgraph)
        self._check_kind(parent.kind, kind)
        path = join_path(parent.path, name)
        if self._child_named(parent, name) is not None:
            raise StructuralViolation(f"Path already exists: {path}")

        identity = identity or self._new_identity()
        if identity in self._records or identity in self._retired:
            raise StructuralViolation(f"Identity already used: {identity}")

        record = NodeRecord(
            identity=identity,
            kind=kind,
            name=name,
            parent=parent.identity,
            path=path,
        )
        self._add_record(record)
        parent.children.append(identity)
        self._put_variant(identity, subgraph.key, dict(properties or {}))
        logger.debug("Created %s %s in %s", kind.value, path, subgraph)
        return self._view(record, subgraph, self._variants[(identity, subgraph.key)])

    def set_properties(
        self, identity: str, subgraph: Subgraph, properties: dict[str, str]
    ) -> None:
        key = (identity, subgraph.key)
        if key not in self._variants:
            raise NotFoundError(
                f"Node {identity} has no variant in {subgraph}"
            )
        self._variants[key] = dict(properties)

    def remove_subtree(self, identity: str) -> int:
        if identity == ROOT_IDENTITY:
            raise StructuralViolation("The taxonomy root cannot be removed")
        record = self._records.get(identity)
        if record is None:
            return 0

        doomed = list(self._iter_record_subtree(identity))
        removed = 0
        for doomed_identity in doomed:
            for key in list(self._keys.get(doomed_identity, ())):
                self._pop_variant(doomed_identity, key)
                removed += 1

        # Children before parents so every intermediate state is connected.
        for doomed_identity in reversed(doomed):
            self._drop_record(doomed_identity)

        logger.debug(
            "Removed subtree %s (%d nodes, %d variants)",
            record.path,
            len(doomed),
            removed,
        )
        return removed

    def remove_variant(self, identity: str, subgraph: Subgraph) -> int:
        if identity == ROOT_IDENTITY:
            raise StructuralViolation("The taxonomy root cannot be removed")
        if (identity, subgraph.key) not in self._variants:
            raise NotFoundError(f"Node {identity} has no variant in {subgraph}")

        removed = 0
        for doomed in reversed(list(self._iter_record_subtree(identity))):
            if self._pop_variant(doomed, subgraph.key) is not None:
                removed += 1
            if not self._keys.get(doomed) and not self._records[doomed].children:
                self._drop_record(doomed)
        return removed

    def adopt(
        self, identity: str, from_subgraph: Subgraph, into_subgraph: Subgraph
    ) -> AdoptOutcome:
        record = self._records.get(identity)
        if record is None:
            raise NotFoundError(f"Unknown node identity: {identity}")
        if (identity, into_subgraph.key) in self._variants:
            return AdoptOutcome.ALREADY_PRESENT

        source = self._variants.get((identity, from_subgraph.key))
        if source is None:
            raise NotFoundError(
                f"{record.path} has no variant in {from_subgraph} to adopt from"
            )
        if record.parent is not None and (
            (record.parent, into_subgraph.key) not in self._variants
        ):
            raise StructuralViolation(
                f"Cannot adopt {record.path} into {into_subgraph}: "
                "parent has no variant there"
            )

        self._put_variant(identity, into_subgraph.key, dict(source))
        return AdoptOutcome.ADOPTED

    def import_subtree(
        self, parent_identity: str, tree: ImportNode, subgraph: Subgraph
    ) -> Node:
        parent = self._require_variant_parent(parent_identity, subgraph)
        ops: list[_ImportOp] = []
        self._plan_import(parent, tree, ops, set(), set())

        for op in ops:
            if op.is_new:
                record = NodeRecord(
                    identity=op.identity,
                    kind=op.kind,
                    name=op.name,
                    parent=op.parent,
                    path=op.path,
                )
                self._add_record(record)
                self._records[op.parent].children.append(op.identity)
            self._put_variant(op.identity, subgraph.key, op.properties)

        return self._view(
            self._records[ops[0].identity], subgraph, ops[0].properties
        )

    # ------------------------------------------------------------------
    # Snapshot support
    # ------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        """Serialise both tables; records are listed parents first."""
        records = []
        for identity in self._iter_record_subtree(ROOT_IDENTITY):
            records.append(self._record_dict(self._records[identity]))
        # Records unreachable from the root (damaged stores) are kept too.
        reachable = {r["identity"] for r in records}
        for identity, record in self._records.items():
            if identity not in reachable:
                records.append(self._record_dict(record))

        variants: dict[str, dict[str, dict[str, str]]] = {}
        for (identity, key), properties in self._variants.items():
            variants.setdefault(identity, {})[key] = dict(properties)

        return {
            "records": records,
            "variants": variants,
            "retired": sorted(self._retired),
        }

    @classmethod
    def from_dict(
        cls,
        data: dict[str, Any],
        dimensions: DimensionService,
        root_name: str = "taxonomies",
    ) -> MemoryTreeStore:
        """Rebuild a store from ``to_dict()`` output.

        The root record always comes from *root_name*; stored root variants
        are kept.
        """
        store = cls(dimensions, root_name=root_name, seed_root=False)
        for item in data.get("records", []):
            if item["identity"] == ROOT_IDENTITY:
                store._records[ROOT_IDENTITY].children = list(item["children"])
                continue
            store._add_record(
                NodeRecord(
                    identity=item["identity"],
                    kind=NodeKind(item["kind"]),
                    name=item["name"],
                    parent=item["parent"],
                    path=item["path"],
                    children=list(item["children"]),
                )
            )
        for identity, rows in data.get("variants", {}).items():
            for key, properties in rows.items():
                store._put_variant(identity, key, dict(properties))
        store._retired = set(data.get("retired", []))
        return store

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _view(
        self, record: NodeRecord, subgraph: Subgraph, properties: dict[str, str]
    ) -> Node:
        return Node(
            identity=record.identity,
            name=record.name,
            kind=record.kind,
            path=record.path,
            subgraph=subgraph,
            properties=dict(properties),
        )

    def _put_variant(
        self, identity: str, key: str, properties: dict[str, str]
    ) -> None:
        self._variants[(identity, key)] = properties
        self._keys.setdefault(identity, set()).add(key)

    def _pop_variant(self, identity: str, key: str) -> dict[str, str] | None:
        properties = self._variants.pop((identity, key), None)
        keys = self._keys.get(identity)
        if keys is not None:
            keys.discard(key)
            if not keys:
                del self._keys[identity]
        return properties

    def _new_identity(self) -> str:
        while True:
            identity = uuid.uuid4().hex
            if identity not in self._records and identity not in self._retired:
                return identity

    def _add_record(self, record: NodeRecord) -> None:
        self._records[record.identity] = record
        self._by_path.setdefault(record.path, set()).add(record.identity)

    def _drop_record(self, identity: str) -> None:
        record = self._records.pop(identity, None)
        if record is None:
            return
        paths = self._by_path.get(record.path)
        if paths is not None:
            paths.discard(identity)
            if not paths:
                del self._by_path[record.path]
        if record.parent is not None and record.parent in self._records:
            siblings = self._records[record.parent].children
            # Subtrees are dropped last child first, so search from the end.
            for index in range(len(siblings) - 1, -1, -1):
                if siblings[index] == identity:
                    del siblings[index]
                    break
        self._retired.add(identity)

    def _iter_record_subtree(self, identity: str) -> Iterator[str]:
        """Pre-order identities of the arena subtree, across all subgraphs."""
        stack = [identity]
        while stack:
            current = stack.pop()
            record = self._records.get(current)
            if record is None:
                continue
            yield current
            stack.extend(reversed(record.children))

    def _require_variant_parent(
        self, parent_identity: str, subgraph: Subgraph
    ) -> NodeRecord:
        record = self._records.get(parent_identity)
        if record is None or (parent_identity, subgraph.key) not in self._variants:
            raise NotFoundError(
                f"Parent node {parent_identity} has no variant in {subgraph}"
            )
        return record

    def _child_named(self, parent: NodeRecord, name: str) -> NodeRecord | None:
        for identity in parent.children:
            child = self._records.get(identity)
            if child is not None and child.name == name:
                return child
        return None

    @staticmethod
    def _check_kind(parent_kind: NodeKind, kind: NodeKind) -> None:
        allowed = {
            NodeKind.ROOT: NodeKind.VOCABULARY,
            NodeKind.VOCABULARY: NodeKind.TERM,
            NodeKind.TERM: NodeKind.TERM,
        }
        if allowed[parent_kind] != kind:
            raise StructuralViolation(
                f"A {kind.value} node cannot be placed below a {parent_kind.value} node"
            )

    def _plan_import(
        self,
        parent: NodeRecord,
        node: ImportNode,
        ops: list[_ImportOp],
        seen_identities: set[str],
        seen_paths: set[str],
    ) -> None:
        """Validate one decoded node and queue the changes it needs."""
        self._check_kind(parent.kind, node.kind)
        path = join_path(parent.path, node.name)
        existing_at_path = self._child_named(parent, node.name)

        identity = node.identifier
        if identity is not None and identity in self._retired:
            logger.warning(
                "Identity %s of %s was retired, assigning a new one",
                identity,
                path,
            )
            identity = None

        if identity is None:
            if existing_at_path is not None:
                identity = existing_at_path.identity
            else:
                identity = self._new_identity()

        if path in seen_paths:
            raise StructuralViolation(
                f"Path {path} appears twice in the imported subtree"
            )
        if identity in seen_identities:
            raise StructuralViolation(
                f"Identity {identity} appears twice in the imported subtree"
            )
        seen_paths.add(path)
        seen_identities.add(identity)

        record = self._records.get(identity)
        if record is not None and record.path != path:
            raise StructuralViolation(
                f"Identity {identity} already belongs to {record.path}, cannot import it at {path}"
            )
        if existing_at_path is not None and existing_at_path.identity != identity:
            raise StructuralViolation(
                f"Path {path} is already taken by identity {existing_at_path.identity}"
            )

        ops.append(
            _ImportOp(
                identity=identity,
                parent=parent.identity,
                name=node.name,
                kind=node.kind,
                path=path,
                properties=dict(node.properties),
                is_new=record is None,
            )
        )

        # Planned-but-not-applied nodes act as parents for their children.
        child_parent = record or NodeRecord(
            identity=identity,
            kind=node.kind,
            name=node.name,
            parent=parent.identity,
            path=path,
        )
        for child in node.children:
            self._plan_import(
                child_parent, child, ops, seen_identities, seen_paths
            )

    @staticmethod
    def _record_dict(record: NodeRecord) -> dict[str, Any]:
        return {
            "identity": record.identity,
            "kind": record.kind.value,
            "name": record.name,
            "parent": record.parent,
            "path": record.path,
            "children": list(record.children),
        }
