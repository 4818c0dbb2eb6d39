"""Taxonomy synchronization engine.

Public API for pruning, populating, importing, and exporting taxonomy
vocabularies across dimension subgraphs.

Modules:

- ``engine``    -- ``TaxonomyEngine``: runs one operation over a store.
- ``models``    -- ``RunState``, ``NodeAction``, ``NodeResult``,
  ``RunReport``, ``NodeContent``: core data contracts.
- ``reporter``  -- Progress lines, human-readable and JSON reports.

Usage example
-------------
::

    from taxonomy_sync.config_schema import DimensionConfig
    from taxonomy_sync.dimensions import DimensionService
    from taxonomy_sync.store import MemoryTreeStore
    from taxonomy_sync.sync import TaxonomyEngine, format_run_report

    dimensions = DimensionService(
        {"language": DimensionConfig(default="en", values=["en", "de"])}
    )
    store = MemoryTreeStore(dimensions)
    engine = TaxonomyEngine(store, dimensions, echo=print)

    report = engine.populate_dimension("language", "de")
    print(format_run_report(report))
"""

from .engine import TaxonomyEngine
from .models import NodeAction, NodeContent, NodeResult, RunReport, RunState
from .reporter import format_progress_line, format_run_report, report_to_json

__all__ = [
    "NodeAction",
    "NodeContent",
    "NodeResult",
    "RunReport",
    "RunState",
    "TaxonomyEngine",
    "format_progress_line",
    "format_run_report",
    "report_to_json",
]
