"""JSON snapshot persistence for ``MemoryTreeStore``.

Key design choices:

* **Atomic writes**: ``save()`` writes to a temp file then calls
  ``os.replace()`` so readers never see partial data, and a run that is
  killed half way leaves the previous snapshot in place.
* **Validated loads**: the file is checked against Pydantic models before
  the store is rebuilt, so a damaged snapshot fails with ``StoreError``
  instead of surfacing as a ``KeyError`` deep inside a traversal.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from ..dimensions import DimensionService, Subgraph
from ..errors import StoreError
from .memory import MemoryTreeStore
from .models import NodeKind

logger = logging.getLogger(__name__)

SNAPSHOT_VERSION = 1


class RecordModel(BaseModel):
    identity: str
    kind: NodeKind
    name: str
    parent: str | None = None
    path: str
    children: list[str] = Field(default_factory=list)


class SnapshotModel(BaseModel):
    """On-disk layout of a store snapshot."""

    version: int = SNAPSHOT_VERSION
    saved_at: str | None = None
    records: list[RecordModel] = Field(default_factory=list)
    variants: dict[str, dict[str, dict[str, str]]] = Field(default_factory=dict)
    retired: list[str] = Field(default_factory=list)


class SnapshotFile:
    """Load and save a store snapshot.

    Args:
        path: Location of the JSON snapshot file.
    """

    def __init__(self, path: Path) -> None:
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def load(
        self, dimensions: DimensionService, root_name: str = "taxonomies"
    ) -> MemoryTreeStore:
        """Load the store, or return a fresh one if no snapshot exists.

        Root variants are created for every legal subgraph missing one, so
        dimension values added to the config after the last save become
        usable immediately.

        Raises:
            StoreError: If the file is not valid JSON or does not match
                the snapshot layout.
        """
        if not self._path.exists():
            logger.info("No store snapshot at %s, starting empty", self._path)
            return MemoryTreeStore(dimensions, root_name=root_name)

        try:
            with open(self._path, encoding="utf-8") as fh:
                raw = json.load(fh)
            snapshot = SnapshotModel.model_validate(raw)
        except (OSError, json.JSONDecodeError, ValidationError) as exc:
            raise StoreError(
                f"Cannot read store snapshot {self._path}: {exc}"
            ) from exc

        if snapshot.version != SNAPSHOT_VERSION:
            raise StoreError(
                f"Unsupported snapshot version {snapshot.version} in {self._path}"
            )

        self._warn_unknown_subgraphs(snapshot, dimensions)
        store = MemoryTreeStore.from_dict(
            snapshot.model_dump(mode="json"), dimensions, root_name=root_name
        )
        created = store.ensure_root_variants()
        if created:
            logger.info("Created %d missing root variants", created)
        logger.debug(
            "Loaded %d records, %d variants from %s",
            len(snapshot.records),
            len(store),
            self._path,
        )
        return store

    def _warn_unknown_subgraphs(
        self, snapshot: SnapshotModel, dimensions: DimensionService
    ) -> None:
        """Log variant subgraphs the current dimension config does not allow.

        Such rows are kept; they become reachable again once the
        dimension values are configured back.
        """
        keys = {key for rows in snapshot.variants.values() for key in rows}
        unknown = []
        for key in sorted(keys):
            try:
                subgraph = Subgraph.parse_key(key)
            except ValueError as exc:
                raise StoreError(f"Corrupt store snapshot {self._path}: {exc}") from exc
            if not dimensions.is_legal(subgraph):
                unknown.append(key or "(no dimensions)")
        if unknown:
            logger.warning(
                "Store %s holds variants in unconfigured subgraphs: %s",
                self._path,
                ", ".join(unknown),
            )

    def save(self, store: MemoryTreeStore) -> None:
        """Persist *store* atomically, creating parent directories."""
        self._path.parent.mkdir(parents=True, exist_ok=True)
        data = store.to_dict()
        data["version"] = SNAPSHOT_VERSION
        data["saved_at"] = datetime.now(timezone.utc).isoformat()

        fd, tmp_path = tempfile.mkstemp(
            dir=str(self._path.parent), suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(data, fh, indent=2)
            os.replace(tmp_path, self._path)
        except BaseException:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise
        logger.debug("Saved store snapshot to %s", self._path)
