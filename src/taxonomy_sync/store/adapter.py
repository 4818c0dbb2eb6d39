"""Protocol every taxonomy store must satisfy.

The synchronization engine and the codec only talk to a store through
this protocol.  ``MemoryTreeStore`` is the reference implementation; a
database-backed store only has to provide the same operations with at
least per-call atomicity.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from typing import Protocol

from ..dimensions import Subgraph
from .models import AdoptOutcome, ImportNode, Node, NodeKind


class TreeStore(Protocol):
    """Operations the core needs from the node-graph store."""

    @property
    def root_identity(self) -> str:
        """Identity of the taxonomy root node."""
        ...  # pragma: no cover

    def get_root(self, subgraph: Subgraph) -> Node | None:
        """Return the root's variant in *subgraph*, or ``None``."""
        ...  # pragma: no cover

    def get_node(self, identity: str, subgraph: Subgraph) -> Node | None:
        """Re-resolve a node into *subgraph*; ``None`` if it has no variant there."""
        ...  # pragma: no cover

    def children(
        self, node: Node, kinds: Iterable[NodeKind] | None = None
    ) -> Iterator[Node]:
        """Yield the children of *node* that exist in ``node.subgraph``.

        Children come in sibling order.  With *kinds*, only children of
        those kinds are yielded.
        """
        ...  # pragma: no cover

    def find_by_path(self, path: str) -> list[Node]:
        """Return every variant, in every subgraph, of every node at *path*."""
        ...  # pragma: no cover

    def remove_subtree(self, identity: str) -> int:
        """Delete a node and all its descendants in every subgraph.

        Returns:
            Number of variant rows removed.
        """
        ...  # pragma: no cover

    def remove_variant(self, identity: str, subgraph: Subgraph) -> int:
        """Delete one node's variant (and its descendants' variants) in *subgraph*.

        Returns:
            Number of variant rows removed.
        """
        ...  # pragma: no cover

    def adopt(
        self, identity: str, from_subgraph: Subgraph, into_subgraph: Subgraph
    ) -> AdoptOutcome:
        """Create the variant of *identity* in *into_subgraph* from *from_subgraph*.

        Raises:
            NotFoundError: The node or its source variant does not exist.
            StructuralViolation: The parent has no variant in *into_subgraph*.
        """
        ...  # pragma: no cover

    def import_subtree(
        self, parent_identity: str, tree: ImportNode, subgraph: Subgraph
    ) -> Node:
        """Insert or update a decoded subtree below *parent_identity*.

        Returns:
            The top node of the imported subtree.
        """
        ...  # pragma: no cover

    def project(
        self, identity: str, subgraph: Subgraph, fallback: bool = False
    ) -> dict[str, str] | None:
        """Return the content of *identity* in *subgraph*.

        With *fallback*, less specific subgraphs are consulted in order
        when the node has no variant in *subgraph* itself.
        """
        ...  # pragma: no cover
