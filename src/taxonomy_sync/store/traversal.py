"""Typed traversal over a store.

Only two kinds are ever selected (vocabularies and terms), so traversal
is an explicit walk over children filtered by ``NodeKind`` rather than a
query language.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator

from .adapter import TreeStore
from .models import Node, NodeKind

TAXONOMY_KINDS = frozenset({NodeKind.VOCABULARY, NodeKind.TERM})


def walk(
    store: TreeStore,
    start: Node,
    kinds: Iterable[NodeKind] = TAXONOMY_KINDS,
) -> Iterator[Node]:
    """Yield descendants of *start* in pre-order (ancestors first).

    Only nodes that exist in ``start.subgraph`` are visited; a node
    missing there hides its whole subtree.  *start* itself is not yielded.
    """
    wanted = frozenset(kinds)
    stack: list[Iterator[Node]] = [store.children(start)]
    while stack:
        child = next(stack[-1], None)
        if child is None:
            stack.pop()
            continue
        if child.kind in wanted:
            yield child
        stack.append(store.children(child))


def vocabularies(store: TreeStore, root: Node) -> Iterator[Node]:
    """Yield the vocabulary children of *root* in sibling order."""
    return store.children(root, kinds=[NodeKind.VOCABULARY])
