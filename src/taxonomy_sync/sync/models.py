"""Pydantic models for synchronization runs.

- ``RunState``: Phases a run moves through.
- ``NodeAction``: What was done to one node or vocabulary.
- ``NodeResult``: Outcome for one node or vocabulary.
- ``RunReport``: Aggregate results for one run.
- ``NodeContent``: Content of one node as read in one subgraph.

All models are frozen (immutable) for safety.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel


class RunState(str, Enum):
    """Phases of a run: ``resolving -> guarding -> traversing -> done``.

    ``aborted`` is only reachable from ``resolving`` and ``guarding``;
    once traversal starts, per-node failures are recorded and the run
    still ends ``done``.
    """

    RESOLVING = "resolving"
    GUARDING = "guarding"
    TRAVERSING = "traversing"
    DONE = "done"
    ABORTED = "aborted"


class NodeAction(str, Enum):
    """Per-node operations."""

    ADOPT = "adopt"
    REMOVE = "remove"
    PRUNE = "prune"
    IMPORT = "import"
    EXPORT = "export"


class NodeResult(BaseModel):
    """Result of processing one node (or one vocabulary).

    Attributes:
        context_path: Node handle, e.g. ``/taxonomies/colors@live;language=de``,
            or the vocabulary name for import/export/prune.
        action: Operation that was attempted.
        success: Whether it succeeded.
        detail: Extra information, e.g. ``already present``.
        error: Error message if the operation failed.
    """

    context_path: str
    action: NodeAction
    success: bool
    detail: str | None = None
    error: str | None = None

    model_config = {"frozen": True}


class RunReport(BaseModel):
    """Aggregate report for one run.

    Attributes:
        operation: Command name, e.g. ``populate-dimension``.
        target: Target subgraph key or file name, if any.
        state: Final state, ``done`` or ``aborted``.
        error_kind: Category of the abort reason.
        error: Abort reason.
        results: Individual node results in processing order.
        started_at: ISO 8601 timestamp when the run started.
        completed_at: ISO 8601 timestamp when the run finished.
    """

    operation: str
    target: str | None = None
    state: RunState
    error_kind: str | None = None
    error: str | None = None
    results: list[NodeResult] = []
    started_at: str
    completed_at: str | None = None

    model_config = {"frozen": True}

    @property
    def aborted(self) -> bool:
        return self.state == RunState.ABORTED

    @property
    def succeeded(self) -> list[NodeResult]:
        """Results where success is True."""
        return [r for r in self.results if r.success]

    @property
    def failed(self) -> list[NodeResult]:
        """Results where success is False."""
        return [r for r in self.results if not r.success]

    @property
    def exit_code(self) -> int:
        """Process exit status: 1 for aborted runs, 0 otherwise."""
        return 1 if self.aborted else 0

    def summary(self) -> str:
        """Format a one-paragraph summary of the run."""
        lines = [
            f"{self.operation}: {self.state.value}"
            + (f" ({self.target})" if self.target else ""),
        ]
        if self.aborted:
            lines.append(f"  Aborted:   {self.error}")
        else:
            lines.extend(
                [
                    f"  Succeeded: {len(self.succeeded)}",
                    f"  Failed:    {len(self.failed)}",
                    f"  Total:     {len(self.results)}",
                ]
            )
        return "\n".join(lines)


class NodeContent(BaseModel):
    """Content of one node as read in a target subgraph.

    Attributes:
        path: Absolute node path.
        kind: Node kind value, ``vocabulary`` or ``term``.
        properties: Content found for the node, empty if none was found.
        inherited: True when the content came from a fallback subgraph
            because the node has no variant of its own in the target.
    """

    path: str
    kind: str
    properties: dict[str, str] = {}
    inherited: bool = False

    model_config = {"frozen": True}
