"""Synchronization engine for taxonomy vocabularies and their dimension variants.

Every operation follows the same run lifecycle:

1. **Resolving**: find the target subgraph and the root's variant in it.
2. **Guarding**: refuse to touch the default subgraph where that matters.
3. **Traversing**: walk the tree once and apply one store call per node.
4. **Done** / **Aborted**.

Aborts only happen before traversal starts, so an aborted run has not
mutated anything.  During traversal errors are per-node: a failing node
is recorded in the report and the walk goes on (best effort), because
these operations run as batch jobs over whole trees.  Codec failures
(``CodecError``) are the exception: they propagate, since a broken file
makes every remaining vocabulary unreachable.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

from ..codec import TaxonomyReader, TaxonomyWriter
from ..dimensions import DimensionService, Subgraph
from ..errors import (
    GuardViolation,
    NotFoundError,
    TaxonomyError,
)
from ..matcher import matches
from ..store.adapter import TreeStore
from ..store.models import AdoptOutcome, Node, format_context_path
from ..store.traversal import vocabularies, walk
from .models import NodeAction, NodeContent, NodeResult, RunReport, RunState
from .reporter import format_progress_line

logger = logging.getLogger(__name__)

Echo = Callable[[str], None]


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class _Run:
    """Mutable bookkeeping for one run; frozen into a ``RunReport`` at the end."""

    def __init__(self, operation: str, echo: Echo) -> None:
        self.operation = operation
        self.target: str | None = None
        self.state = RunState.RESOLVING
        self.results: list[NodeResult] = []
        self.started_at = _now()
        self._echo = echo

    def advance(self, state: RunState) -> None:
        logger.debug(
            "%s: %s -> %s", self.operation, self.state.value, state.value
        )
        self.state = state

    def say(self, line: str) -> None:
        self._echo(line)

    def record(self, result: NodeResult) -> None:
        self.results.append(result)
        self._echo(format_progress_line(result))

    def abort(self, error: TaxonomyError) -> RunReport:
        logger.error("%s aborted: %s", self.operation, error)
        self._echo(str(error))
        self.advance(RunState.ABORTED)
        return self._report(error)

    def finish(self) -> RunReport:
        self.advance(RunState.DONE)
        return self._report(None)

    def _report(self, error: TaxonomyError | None) -> RunReport:
        return RunReport(
            operation=self.operation,
            target=self.target,
            state=self.state,
            error_kind=error.error_kind if error else None,
            error=str(error) if error else None,
            results=self.results,
            started_at=self.started_at,
            completed_at=_now(),
        )


@dataclass
class _Target:
    subgraph: Subgraph
    root: Node


class TaxonomyEngine:
    """Run taxonomy maintenance operations against a store.

    Args:
        store: The node store (any ``TreeStore`` implementation).
        dimensions: Dimension service used to resolve target subgraphs.
        echo: Receives one operator-facing line per processed node.
            Defaults to discarding the lines; the CLI passes ``print``.
    """

    def __init__(
        self,
        store: TreeStore,
        dimensions: DimensionService,
        echo: Echo | None = None,
    ) -> None:
        self.store = store
        self.dimensions = dimensions
        self._echo: Echo = echo or (lambda line: None)

    # ------------------------------------------------------------------
    # Read-only
    # ------------------------------------------------------------------

    def list_vocabularies(self) -> list[str]:
        """Names of the vocabularies below the root in the default subgraph."""
        root = self.store.get_root(self.dimensions.default_subgraph)
        if root is None:
            raise NotFoundError("Root not found in default context")
        return [node.name for node in vocabularies(self.store, root)]

    def show_vocabulary(
        self,
        name: str,
        dimension_name: str | None = None,
        dimension_value: str | None = None,
    ) -> tuple[Subgraph, list[NodeContent]]:
        """Read one vocabulary as seen from a dimension value.

        The tree shape comes from the default subgraph.  Each node's
        content is read from the target subgraph, falling back along the
        configured fallback chain when the node has no variant there.
        Without a dimension the default subgraph is read.

        Raises:
            NotFoundError: If the dimension value does not resolve or the
                vocabulary does not exist.
        """
        hints = {dimension_name: dimension_value} if dimension_name else {}
        target = self.dimensions.resolve_subgraph(hints)
        if target is None:
            raise NotFoundError("Target subgraph not found")

        root = self.store.get_root(self.dimensions.default_subgraph)
        if root is None:
            raise NotFoundError("Root not found in default context")
        vocabulary = next(
            (v for v in vocabularies(self.store, root) if v.name == name), None
        )
        if vocabulary is None:
            raise NotFoundError(f"Vocabulary not found: {name}")

        contents = []
        for node in [vocabulary, *walk(self.store, vocabulary)]:
            own = self.store.project(node.identity, target)
            properties = (
                own
                if own is not None
                else self.store.project(node.identity, target, fallback=True)
            )
            contents.append(
                NodeContent(
                    path=node.path,
                    kind=node.kind.value,
                    properties=properties or {},
                    inherited=own is None,
                )
            )
        return target, contents

    # ------------------------------------------------------------------
    # Whole-vocabulary operations
    # ------------------------------------------------------------------

    def prune_vocabularies(self, name_filter: str | None) -> RunReport:
        """Delete matching vocabularies in every subgraph.

        Each vocabulary is removed with all descendants and all variants.
        A second pass deletes any variant still registered at the
        vocabulary's path, which only finds something in stores whose
        child links were damaged.
        """
        run = _Run("prune", self._echo)
        root = self._default_root(run)
        if root is None:
            return run.abort(NotFoundError("Root not found in default context"))
        run.advance(RunState.GUARDING)
        run.advance(RunState.TRAVERSING)

        for vocabulary in list(vocabularies(self.store, root)):
            if not matches(name_filter, vocabulary.name):
                continue
            try:
                removed = self.store.remove_subtree(vocabulary.identity)
                leftovers = self._remove_by_path(vocabulary.path)
            except TaxonomyError as exc:
                logger.warning("Failed to prune %s: %s", vocabulary.name, exc)
                run.record(
                    NodeResult(
                        context_path=vocabulary.name,
                        action=NodeAction.PRUNE,
                        success=False,
                        error=str(exc),
                    )
                )
                continue

            logger.info(
                "Pruned vocabulary %s (%d variants, %d leftovers)",
                vocabulary.name,
                removed,
                leftovers,
            )
            run.record(
                NodeResult(
                    context_path=vocabulary.name,
                    action=NodeAction.PRUNE,
                    success=True,
                )
            )

        return run.finish()

    def _remove_by_path(self, path: str) -> int:
        removed = 0
        while True:
            remaining = self.store.find_by_path(path)
            if not remaining:
                return removed
            node = remaining[0]
            logger.warning(
                "Removing orphaned variant %s (%s)", node.context_path, node.identity
            )
            removed += self.store.remove_variant(node.identity, node.subgraph)

    # ------------------------------------------------------------------
    # Dimension operations
    # ------------------------------------------------------------------

    def prune_dimension(self, dimension_name: str, dimension_value: str) -> RunReport:
        """Remove every vocabulary and term variant in one non-default subgraph.

        Variants in other subgraphs are untouched.  Nodes are removed
        descendants first so that a run cut short never leaves a variant
        whose parent variant is already gone.
        """
        run = _Run("prune-dimension", self._echo)
        target = self._resolve_target(run, dimension_name, dimension_value, "pruned")
        if isinstance(target, RunReport):
            return target

        run.advance(RunState.TRAVERSING)
        run.say(f"Removing all content below {target.root.context_path}")
        nodes = list(walk(self.store, target.root))
        for node in reversed(nodes):
            try:
                self.store.remove_variant(node.identity, target.subgraph)
            except TaxonomyError as exc:
                logger.warning("Failed to remove %s: %s", node.context_path, exc)
                run.record(
                    NodeResult(
                        context_path=node.context_path,
                        action=NodeAction.REMOVE,
                        success=False,
                        error=str(exc),
                    )
                )
                continue
            logger.info("Removed %s", node.context_path)
            run.record(
                NodeResult(
                    context_path=node.context_path,
                    action=NodeAction.REMOVE,
                    success=True,
                )
            )

        run.say("Done")
        return run.finish()

    def populate_dimension(
        self, dimension_name: str, dimension_value: str
    ) -> RunReport:
        """Adopt every default-subgraph vocabulary and term into a target subgraph.

        Nodes are adopted in pre-order, so each parent is adopted before
        its children.  Nodes already present in the target count as
        successes, which makes repeated runs no-ops.
        """
        run = _Run("populate-dimension", self._echo)
        target = self._resolve_target(
            run, dimension_name, dimension_value, "populated"
        )
        if isinstance(target, RunReport):
            return target

        default = self.dimensions.default_subgraph
        source_root = self.store.get_root(default)
        if source_root is None:
            return run.abort(NotFoundError("Root not found in default context"))

        run.advance(RunState.TRAVERSING)
        run.say(
            f"Populating taxonomy content from default below {target.root.context_path}"
        )
        self._adopt_all(run, walk(self.store, source_root), default, target.subgraph)
        run.say("Done")
        return run.finish()

    def _adopt_all(
        self,
        run: _Run,
        nodes: Iterator[Node],
        source: Subgraph,
        target: Subgraph,
    ) -> None:
        for node in nodes:
            target_path = format_context_path(node.path, target)
            try:
                outcome = self.store.adopt(node.identity, source, target)
            except TaxonomyError as exc:
                logger.warning("Failed to adopt %s: %s", target_path, exc)
                run.record(
                    NodeResult(
                        context_path=target_path,
                        action=NodeAction.ADOPT,
                        success=False,
                        error=str(exc),
                    )
                )
                continue

            already = outcome == AdoptOutcome.ALREADY_PRESENT
            logger.info(
                "Adopted %s%s", target_path, " (already present)" if already else ""
            )
            run.record(
                NodeResult(
                    context_path=target_path,
                    action=NodeAction.ADOPT,
                    success=True,
                    detail="already present" if already else None,
                )
            )

    # ------------------------------------------------------------------
    # Import / export
    # ------------------------------------------------------------------

    def import_file(self, path: Path, name_filter: str | None = None) -> RunReport:
        """Stream matching vocabularies from *path* into the default subgraph.

        Raises:
            CodecError: If the file is unreadable or malformed.
        """
        run = _Run("import", self._echo)
        run.target = str(path)
        if self._default_root(run) is None:
            return run.abort(NotFoundError("Root not found in default context"))
        run.advance(RunState.GUARDING)
        run.advance(RunState.TRAVERSING)

        reader = TaxonomyReader(self.store, self.dimensions.default_subgraph)
        for item in reader.read(path, name_filter):
            run.record(
                NodeResult(
                    context_path=item.name,
                    action=NodeAction.IMPORT,
                    success=item.success,
                    detail=f"{item.node_count} nodes from {path.name}",
                    error=str(item.error) if item.error else None,
                )
            )

        return run.finish()

    def export_file(self, path: Path, name_filter: str | None = None) -> RunReport:
        """Stream matching default-subgraph vocabularies into *path*.

        Raises:
            CodecError: If the file cannot be written.
        """
        run = _Run("export", self._echo)
        run.target = str(path)
        root = self._default_root(run)
        if root is None:
            return run.abort(NotFoundError("Root not found in default context"))
        run.advance(RunState.GUARDING)
        run.advance(RunState.TRAVERSING)

        selected = (
            node
            for node in vocabularies(self.store, root)
            if matches(name_filter, node.name)
        )
        writer = TaxonomyWriter(self.store)
        for vocabulary in writer.write(path, selected):
            logger.info("Exported vocabulary %s to %s", vocabulary.name, path)
            run.record(
                NodeResult(
                    context_path=vocabulary.name,
                    action=NodeAction.EXPORT,
                    success=True,
                    detail=f"to {path.name}",
                )
            )

        return run.finish()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _default_root(self, run: _Run) -> Node | None:
        default = self.dimensions.default_subgraph
        run.target = run.target or default.key or None
        return self.store.get_root(default)

    def _resolve_target(
        self,
        run: _Run,
        dimension_name: str,
        dimension_value: str,
        verb: str,
    ) -> _Target | RunReport:
        """Resolve and guard the target subgraph of a dimension operation.

        Returns the target, or the aborted report when resolving or
        guarding fails.
        """
        subgraph = self.dimensions.resolve_subgraph(
            {dimension_name: dimension_value}
        )
        if subgraph is None:
            run.target = f"{dimension_name}={dimension_value}"
            return run.abort(NotFoundError("Target subgraph not found"))
        run.target = subgraph.key

        root = self.store.get_root(subgraph)
        if root is None:
            return run.abort(NotFoundError("Root not found in target context"))

        run.advance(RunState.GUARDING)
        if self.dimensions.is_default(subgraph):
            return run.abort(
                GuardViolation(
                    f"The root is the default context and cannot be {verb}"
                )
            )

        return _Target(subgraph=subgraph, root=root)
