"""Pull-based taxonomy document reader.

``lxml.etree.iterparse`` delivers start/end events while the file is
read.  The filter is checked on each ``<vocabulary>`` start event:

* a matching vocabulary is decoded when its end event arrives and handed
  to the store, then its elements are released;
* a skipped vocabulary is cleared element by element as its end events
  arrive and never decoded.

At most one vocabulary subtree is alive at any time.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path

from lxml import etree
from pydantic import ValidationError

from ..dimensions import Subgraph
from ..errors import CodecError, TaxonomyError
from ..matcher import matches
from ..store.adapter import TreeStore
from ..store.models import ImportNode, Node, NodeKind
from .common import (
    ATTR_IDENTIFIER,
    ATTR_KIND,
    ATTR_NAME,
    ATTR_NODE_NAME,
    TAG_NODE,
    TAG_PROPERTIES,
    TAG_PROPERTY,
    TAG_ROOT,
    TAG_VOCABULARY,
)

logger = logging.getLogger(__name__)

# Depth of <vocabulary> elements: <root> is 1.
_VOCABULARY_DEPTH = 2


@dataclass
class ImportedVocabulary:
    """Outcome of importing one vocabulary element.

    Attributes:
        name: Value of the ``name`` attribute.
        node: Top node of the imported subtree, ``None`` on failure.
        node_count: Number of nodes decoded from the document.
        error: Store error that rejected the subtree, if any.
    """

    name: str
    node: Node | None = None
    node_count: int = 0
    error: TaxonomyError | None = None

    @property
    def success(self) -> bool:
        return self.error is None


class TaxonomyReader:
    """Stream vocabularies from a taxonomy document into a store.

    Args:
        store: Store receiving the imported subtrees.
        subgraph: Subgraph the content is written to.
    """

    def __init__(self, store: TreeStore, subgraph: Subgraph) -> None:
        self._store = store
        self._subgraph = subgraph

    def read(
        self, path: Path, name_filter: str | None = None
    ) -> Iterator[ImportedVocabulary]:
        """Import every vocabulary of *path* whose name matches *name_filter*.

        Yields one ``ImportedVocabulary`` per matching vocabulary, in
        document order.  A store rejecting one vocabulary does not stop
        the import.

        Raises:
            CodecError: If the file is unreadable or not a well-formed
                taxonomy document.  Vocabularies yielded before the error
                stay imported.
        """
        depth = 0
        current_name: str | None = None
        skipping = False

        try:
            events = etree.iterparse(
                str(path), events=("start", "end"), huge_tree=True
            )
            for event, elem in events:
                if event == "start":
                    depth += 1
                    if depth == 1 and elem.tag != TAG_ROOT:
                        raise CodecError(
                            f"{path} is not a taxonomy document "
                            f"(root element <{elem.tag}>)"
                        )
                    if depth == _VOCABULARY_DEPTH:
                        if elem.tag != TAG_VOCABULARY:
                            raise CodecError(
                                f"Unexpected <{elem.tag}> below <{TAG_ROOT}> in {path}"
                            )
                        current_name = elem.get(ATTR_NAME)
                        if not current_name:
                            raise CodecError(
                                f"<{TAG_VOCABULARY}> without a name in {path}"
                            )
                        skipping = not matches(name_filter, current_name)
                        if skipping:
                            logger.debug("Skipping vocabulary %s", current_name)
                    continue

                depth -= 1
                if depth == _VOCABULARY_DEPTH - 1 and elem.tag == TAG_VOCABULARY:
                    if not skipping:
                        yield self._import(elem, current_name)
                    _release(elem)
                    current_name = None
                    skipping = False
                elif skipping:
                    elem.clear()
        except etree.XMLSyntaxError as exc:
            raise CodecError(f"Malformed taxonomy document {path}: {exc}") from exc
        except OSError as exc:
            raise CodecError(f"Cannot read {path}: {exc}") from exc

    def _import(self, elem, name: str) -> ImportedVocabulary:
        nodes = elem.findall(TAG_NODE)
        if len(nodes) != 1:
            raise CodecError(
                f"Vocabulary {name} must contain exactly one <{TAG_NODE}>, found {len(nodes)}"
            )
        tree = _decode_node(nodes[0])
        if tree.kind != NodeKind.VOCABULARY:
            raise CodecError(
                f"Top node of vocabulary {name} has kind '{tree.kind.value}'"
            )
        if tree.name != name:
            raise CodecError(
                f"Vocabulary {name} holds a node named '{tree.name}'"
            )

        try:
            node = self._store.import_subtree(
                self._store.root_identity, tree, self._subgraph
            )
        except TaxonomyError as exc:
            logger.error("Vocabulary %s rejected by store: %s", name, exc)
            return ImportedVocabulary(name=name, node_count=tree.count(), error=exc)

        logger.info("Imported vocabulary %s (%d nodes)", name, tree.count())
        return ImportedVocabulary(name=name, node=node, node_count=tree.count())


def _decode_node(elem) -> ImportNode:
    """Decode a ``<node>`` element and its descendants."""
    properties: dict[str, str] = {}
    children: list[ImportNode] = []
    for child in elem:
        if child.tag == TAG_PROPERTIES:
            for prop in child.iter(TAG_PROPERTY):
                prop_name = prop.get(ATTR_NAME)
                if not prop_name:
                    raise CodecError(
                        f"<{TAG_PROPERTY}> without a name on line {prop.sourceline}"
                    )
                properties[prop_name] = prop.text or ""
        elif child.tag == TAG_NODE:
            children.append(_decode_node(child))

    try:
        return ImportNode(
            identifier=elem.get(ATTR_IDENTIFIER) or None,
            name=elem.get(ATTR_NODE_NAME) or "",
            kind=elem.get(ATTR_KIND) or "",
            properties=properties,
            children=children,
        )
    except ValidationError as exc:
        raise CodecError(
            f"Invalid <{TAG_NODE}> on line {elem.sourceline}: {exc}"
        ) from exc


def _release(elem) -> None:
    """Free a processed element and the already-processed siblings before it."""
    elem.clear()
    parent = elem.getparent()
    if parent is None:
        return
    while elem.getprevious() is not None:
        del parent[0]
