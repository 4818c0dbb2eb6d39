"""Command-line interface for taxonomy-sync.

Every command loads the configuration, opens the store snapshot, runs one
engine operation, and saves the snapshot again when the operation
mutated the store and was not aborted.

Exit status:
    0  success (per-node failures are listed but do not change the status)
    1  run aborted, unreadable or malformed file, corrupt store snapshot
    2  invalid configuration
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

import yaml
from dotenv import load_dotenv

from . import __version__
from .config import Config, load_config
from .config_loader import ensure_config, load_hierarchical_config
from .config_schema import build_config
from .dimensions import DimensionService
from .errors import CodecError, NotFoundError, StoreError
from .logger import setup_logging
from .store import MemoryTreeStore, SnapshotFile
from .sync import TaxonomyEngine, format_run_report, report_to_json
from .sync.models import RunReport

logger = logging.getLogger(__name__)

_MUTATING_COMMANDS = frozenset(
    {"import", "prune", "prune-dimension", "populate-dimension"}
)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="taxonomy-sync",
        description="Maintain taxonomy vocabularies across content dimensions",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Show the vocabularies of the default subgraph
  taxonomy-sync list

  # Export every vocabulary whose name starts with "product"
  taxonomy-sync export taxonomies.xml --vocabulary 'product*'

  # Copy all default-language vocabularies into German
  taxonomy-sync populate-dimension language de

  # Drop the French variants again
  taxonomy-sync prune-dimension language fr

  # Show the Swiss German view of a vocabulary
  taxonomy-sync show colors --dimension language de_CH

Progress lines are printed on stdout, log records on stderr.
        """,
    )

    parser.add_argument(
        "--store",
        help="Store snapshot path (takes precedence over TAXONOMY_STORE and config files)",
    )
    parser.add_argument(
        "--config",
        help="Config file to load before the discovered ones",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--log-file",
        help="Also write log records to this file",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the run report as JSON instead of progress lines",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"taxonomy-sync version {__version__}",
    )

    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("list", help="List vocabularies in the default subgraph")
    commands.add_parser("dimensions", help="List every subgraph key")
    show_cmd = commands.add_parser(
        "show", help="Print one vocabulary as seen from a dimension value"
    )
    show_cmd.add_argument("vocabulary", help="Vocabulary name")
    show_cmd.add_argument(
        "--dimension",
        nargs=2,
        metavar=("NAME", "VALUE"),
        help="Read content in this dimension value, with fallback",
    )
    commands.add_parser(
        "init-config", help="Write a starter config file if none exists"
    )

    import_cmd = commands.add_parser(
        "import", help="Import vocabularies from a taxonomy XML file"
    )
    import_cmd.add_argument("filename", type=Path)
    import_cmd.add_argument(
        "--vocabulary", help="Only import vocabularies matching this glob"
    )

    export_cmd = commands.add_parser(
        "export", help="Export vocabularies to a taxonomy XML file"
    )
    export_cmd.add_argument("filename", type=Path)
    export_cmd.add_argument(
        "--vocabulary", help="Only export vocabularies matching this glob"
    )

    prune_cmd = commands.add_parser(
        "prune", help="Delete vocabularies in every subgraph"
    )
    prune_cmd.add_argument("vocabulary", help="Glob of vocabulary names")

    for name, help_text in (
        ("prune-dimension", "Remove all taxonomy variants of one dimension value"),
        (
            "populate-dimension",
            "Adopt all default taxonomy content into one dimension value",
        ),
    ):
        dim_cmd = commands.add_parser(name, help=help_text)
        dim_cmd.add_argument("dimension", help="Dimension name, e.g. language")
        dim_cmd.add_argument("value", help="Dimension value, e.g. de")

    return parser


def _load_config(args: argparse.Namespace) -> Config:
    explicit = Path(args.config) if args.config else None
    if explicit is not None and not explicit.exists():
        raise ValueError(f"Config file not found: {explicit}")
    raw = load_hierarchical_config(explicit)
    unified = build_config(raw)
    return load_config(
        store=args.store,
        debug=args.debug,
        log_file=args.log_file,
        unified=unified,
    )


def _run_operation(
    args: argparse.Namespace, engine: TaxonomyEngine
) -> RunReport:
    if args.command == "import":
        return engine.import_file(args.filename, args.vocabulary)
    if args.command == "export":
        return engine.export_file(args.filename, args.vocabulary)
    if args.command == "prune":
        return engine.prune_vocabularies(args.vocabulary)
    if args.command == "prune-dimension":
        return engine.prune_dimension(args.dimension, args.value)
    return engine.populate_dimension(args.dimension, args.value)


def _list_vocabularies(args: argparse.Namespace, engine: TaxonomyEngine) -> int:
    try:
        names = engine.list_vocabularies()
    except NotFoundError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    if args.json:
        print(json.dumps({"vocabularies": names}, indent=2))
    else:
        for name in names:
            print(name)
    return 0


def _show_vocabulary(args: argparse.Namespace, engine: TaxonomyEngine) -> int:
    dimension_name, dimension_value = args.dimension or (None, None)
    try:
        subgraph, contents = engine.show_vocabulary(
            args.vocabulary, dimension_name, dimension_value
        )
    except NotFoundError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    if args.json:
        data = {
            "vocabulary": args.vocabulary,
            "subgraph": subgraph.key,
            "nodes": [content.model_dump() for content in contents],
        }
        print(json.dumps(data, indent=2))
        return 0
    for content in contents:
        marker = " (fallback)" if content.inherited else ""
        print(f"{content.path}{marker}")
        for name, value in content.properties.items():
            print(f"  {name}: {value}")
    return 0


def _list_dimensions(args: argparse.Namespace, dimensions: DimensionService) -> int:
    subgraphs = list(dimensions.all_subgraphs())
    if args.json:
        data = [
            {
                "key": subgraph.key,
                "coordinate": dimensions.coordinate_of(subgraph),
                "default": dimensions.is_default(subgraph),
            }
            for subgraph in subgraphs
        ]
        print(json.dumps({"subgraphs": data}, indent=2))
        return 0
    for subgraph in subgraphs:
        marker = " (default)" if dimensions.is_default(subgraph) else ""
        print(f"{subgraph}{marker}")
    return 0


def main(argv: list[str] | None = None) -> int:
    """Parse *argv*, run one command, and return the exit status."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    load_dotenv()

    if args.command == "init-config":
        path, created = ensure_config(Path(args.config) if args.config else None)
        if created:
            print(f"Created config file {path}")
        else:
            print(f"Config file already exists: {path}")
        return 0

    try:
        config = _load_config(args)
    except (ValueError, OSError, yaml.YAMLError) as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 2

    setup_logging(
        debug=config.debug, log_file=config.log_file, level=config.log_level
    )
    logger.debug(
        "Using store %s with dimensions %s",
        config.store_path,
        ", ".join(config.dimensions) or "(none)",
    )

    dimensions = DimensionService(config.dimensions)

    if args.command == "dimensions":
        return _list_dimensions(args, dimensions)

    snapshot = SnapshotFile(config.store_path)
    try:
        store: MemoryTreeStore = snapshot.load(dimensions, config.root_name)
    except StoreError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    engine = TaxonomyEngine(store, dimensions, echo=None if args.json else print)

    if args.command == "list":
        return _list_vocabularies(args, engine)
    if args.command == "show":
        return _show_vocabulary(args, engine)

    try:
        report = _run_operation(args, engine)
    except CodecError as exc:
        logger.error("%s failed: %s", args.command, exc)
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    if args.command in _MUTATING_COMMANDS and not report.aborted:
        snapshot.save(store)

    if args.json:
        print(json.dumps(report_to_json(report), indent=2))
    else:
        print(format_run_report(report))

    return report.exit_code


def run() -> None:
    """Console script entry point."""
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(130)


if __name__ == "__main__":
    run()
