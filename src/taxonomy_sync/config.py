"""Runtime configuration for taxonomy-sync commands.

Reads settings from CLI args, environment variables, .env files, and the
YAML config file.

Precedence (highest to lowest):
    CLI args > Environment variables > .env file > YAML config > Built-in defaults

Environment variables:
    TAXONOMY_STORE: Path of the JSON store snapshot
        (optional, default: .taxonomy_sync/store.json)
    TAXONOMY_DEBUG: Enable debug logging (optional, default: false)
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from .config_schema import DimensionConfig, UnifiedConfig

logger = logging.getLogger(__name__)

DEFAULT_STORE_PATH = Path(".taxonomy_sync") / "store.json"


@dataclass
class Config:
    store_path: Path
    root_name: str = "taxonomies"
    dimensions: dict[str, DimensionConfig] = field(default_factory=dict)
    debug: bool = False
    log_level: str = "WARNING"
    log_file: str | None = None


def validate_config(config: Config) -> None:
    """Validate configuration values and raise ValueError if invalid.

    Raises:
        ValueError: If the store path points at a directory or the root
            name is not a usable node name.
    """
    if config.store_path.is_dir():
        raise ValueError(
            f"Store path '{config.store_path}' is a directory, expected a file"
        )

    if not config.root_name.strip() or "/" in config.root_name:
        raise ValueError(
            f"Invalid root name '{config.root_name}': must be a non-empty name without '/'"
        )


def load_config(
    store: str | None = None,
    debug: bool = False,
    log_file: str | None = None,
    unified: UnifiedConfig | None = None,
) -> Config:
    """Load configuration with unified precedence.

    Resolution order for each field (highest to lowest):
        CLI arg > env var / .env > YAML (``unified``) > built-in default

    The caller is responsible for calling ``load_dotenv()`` before this
    function so that .env values are available via ``os.getenv()``.

    Args:
        store: Override store snapshot path (``--store``).
        debug: Enable debug logging (CLI flag).
        log_file: Override log file (``--log-file``).
        unified: Parsed config file, or ``None`` for zero-config.

    Returns:
        Validated Config instance.
    """
    unified = unified or UnifiedConfig()

    store_path = (
        store or os.getenv("TAXONOMY_STORE") or unified.store.path
    )
    final_store = Path(store_path) if store_path else DEFAULT_STORE_PATH

    if debug:
        final_debug = True
    else:
        env_debug = os.getenv("TAXONOMY_DEBUG")
        final_debug = env_debug is not None and env_debug.lower() in (
            "true",
            "1",
            "yes",
            "on",
        )

    config = Config(
        store_path=final_store,
        root_name=unified.store.root_name,
        dimensions=dict(unified.dimensions),
        debug=final_debug,
        log_level=unified.logging.level,
        log_file=log_file or unified.logging.file,
    )

    validate_config(config)

    return config
