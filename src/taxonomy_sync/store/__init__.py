"""Taxonomy node store: adapter protocol, in-memory store, snapshots."""

from .adapter import TreeStore
from .memory import ROOT_IDENTITY, MemoryTreeStore
from .models import AdoptOutcome, ImportNode, Node, NodeKind
from .snapshot import SnapshotFile
from .traversal import TAXONOMY_KINDS, vocabularies, walk

__all__ = [
    "ROOT_IDENTITY",
    "TAXONOMY_KINDS",
    "AdoptOutcome",
    "ImportNode",
    "MemoryTreeStore",
    "Node",
    "NodeKind",
    "SnapshotFile",
    "TreeStore",
    "vocabularies",
    "walk",
]
