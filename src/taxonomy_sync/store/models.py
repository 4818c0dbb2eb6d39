"""Pydantic models for taxonomy nodes.

- ``NodeKind``: Enum of node kinds (root, vocabulary, term).
- ``Node``: Read-only view of one node variant in one subgraph.
- ``ImportNode``: A node subtree decoded from a taxonomy document,
  waiting to be inserted into a store.
- ``AdoptOutcome``: Result of adopting a node into another subgraph.

Views are frozen; the store owns all mutable state.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field, field_validator

from ..dimensions import Subgraph


class NodeKind(str, Enum):
    """Kinds of taxonomy nodes."""

    ROOT = "root"
    VOCABULARY = "vocabulary"
    TERM = "term"


class AdoptOutcome(str, Enum):
    """What ``adopt()`` did for one node."""

    ADOPTED = "adopted"
    ALREADY_PRESENT = "already_present"


class Node(BaseModel):
    """One node as seen from one subgraph.

    Attributes:
        identity: Stable identifier shared by all variants of the node.
        name: Node name, the last segment of ``path``.
        kind: Node kind.
        path: Absolute ``/``-separated path from the taxonomy root.
        subgraph: The subgraph this view was resolved in.
        properties: Content projection of the node in ``subgraph``.
    """

    identity: str
    name: str
    kind: NodeKind
    path: str
    subgraph: Subgraph
    properties: dict[str, str] = Field(default_factory=dict)

    model_config = {"frozen": True}

    @property
    def context_path(self) -> str:
        """Human-readable handle such as ``/taxonomies/colors@live;language=de``."""
        return format_context_path(self.path, self.subgraph)


def format_context_path(path: str, subgraph: Subgraph) -> str:
    key = subgraph.key
    return f"{path}@live;{key}" if key else f"{path}@live"


class ImportNode(BaseModel):
    """A decoded node and its children, in document order.

    Attributes:
        identifier: Identity recorded in the document, or ``None`` to let
            the store mint one.
        name: Node name.
        kind: Node kind, vocabulary for the top node and term below it.
        properties: Default-subgraph content.
        children: Child nodes in sibling order.
    """

    identifier: str | None = None
    name: str = Field(min_length=1)
    kind: NodeKind
    properties: dict[str, str] = Field(default_factory=dict)
    children: list[ImportNode] = Field(default_factory=list)

    @field_validator("name")
    @classmethod
    def _name_is_one_segment(cls, value: str) -> str:
        if "/" in value:
            raise ValueError(f"Node name '{value}' must not contain '/'")
        return value

    def count(self) -> int:
        """Number of nodes in this subtree, including this one."""
        return 1 + sum(child.count() for child in self.children)
