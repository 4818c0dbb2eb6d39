"""Incremental taxonomy document writer.

Uses ``lxml.etree.xmlfile`` so every element is serialised as soon as the
store walk reaches it.  Memory use depends on tree depth, never on tree
size.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from pathlib import Path

from lxml import etree

from ..errors import CodecError
from ..store.adapter import TreeStore
from ..store.models import Node
from .common import (
    ATTR_IDENTIFIER,
    ATTR_KIND,
    ATTR_NAME,
    ATTR_NODE_NAME,
    INDENT,
    TAG_NODE,
    TAG_PROPERTIES,
    TAG_PROPERTY,
    TAG_ROOT,
    TAG_VOCABULARY,
)

logger = logging.getLogger(__name__)


class TaxonomyWriter:
    """Write vocabularies from a store into a taxonomy document.

    Args:
        store: Store to read nodes from.
    """

    def __init__(self, store: TreeStore) -> None:
        self._store = store

    def write(self, path: Path, vocabularies: Iterable[Node]) -> Iterator[Node]:
        """Write *vocabularies* (already filtered) to *path*.

        Content is taken from the subgraph each vocabulary view was
        resolved in.  Yields every vocabulary after its element has been
        closed, so callers can report progress.  The document is only
        complete once the generator is exhausted.

        Raises:
            CodecError: If the file cannot be written or a value cannot be
                represented in XML.  A partially written file is left
                in place.
        """
        try:
            with etree.xmlfile(str(path), encoding="utf-8") as xf:
                xf.write_declaration()
                with xf.element(TAG_ROOT):
                    for vocabulary in vocabularies:
                        xf.write(_indent(1))
                        with xf.element(
                            TAG_VOCABULARY, {ATTR_NAME: vocabulary.name}
                        ):
                            self._write_node(xf, vocabulary, 2)
                            xf.write(_indent(1))
                        logger.debug("Wrote vocabulary %s", vocabulary.name)
                        yield vocabulary
                    xf.write("\n")
        except (OSError, ValueError, IndexError, etree.LxmlError) as exc:
            raise CodecError(f"Cannot write {path}: {exc}") from exc

    def _write_node(self, xf, node: Node, depth: int) -> None:
        xf.write(_indent(depth))
        attrib = {
            ATTR_IDENTIFIER: node.identity,
            ATTR_NODE_NAME: node.name,
            ATTR_KIND: node.kind.value,
        }
        with xf.element(TAG_NODE, attrib):
            has_content = False
            if node.properties:
                has_content = True
                xf.write(_indent(depth + 1))
                with xf.element(TAG_PROPERTIES):
                    for name, value in node.properties.items():
                        xf.write(_indent(depth + 2))
                        with xf.element(TAG_PROPERTY, {ATTR_NAME: name}):
                            xf.write(value)
                    xf.write(_indent(depth + 1))
            for child in self._store.children(node):
                has_content = True
                self._write_node(xf, child, depth + 1)
            if has_content:
                xf.write(_indent(depth))


def _indent(depth: int) -> str:
    return "\n" + INDENT * depth
