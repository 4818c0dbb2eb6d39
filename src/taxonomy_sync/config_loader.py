"""
Config file discovery and loading for taxonomy_sync.

Config files are YAML mappings with up to three sections (``store``,
``dimensions``, ``logging``).  Several files may apply at once; a file
with higher precedence replaces whole sections of the files below it.

A section may live in its own file (``dimensions: !include dims.yml``),
and string values may reference the environment as ``${VAR}`` or
``${VAR:-default}``.
"""

import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "TAXONOMY_SYNC_CONFIG"
CONFIG_DIR_NAME = ".taxonomy_sync"

_ENV_REF = re.compile(r"\$\{(?P<name>[^}:]+?)(?::-(?P<default>.*?))?\}")


def interpolate_env_vars(value: str) -> str:
    """Expand ``${VAR}`` and ``${VAR:-default}`` in *value*.

    An unset or empty variable expands to its default, or to ``""`` when
    there is none.  A ``${`` without a closing brace is kept as is.
    """
    return _ENV_REF.sub(
        lambda m: os.environ.get(m["name"]) or m["default"] or "", value
    )


def _expand(data: Any) -> Any:
    if isinstance(data, str):
        return interpolate_env_vars(data)
    if isinstance(data, dict):
        return {key: _expand(value) for key, value in data.items()}
    if isinstance(data, list):
        return [_expand(item) for item in data]
    return data


class ConfigLoader(yaml.SafeLoader):
    """SafeLoader accepting ``!include`` in a top-level config file.

    Included files are read with the plain ``yaml.SafeLoader``, so they
    cannot include further files.
    """


def _include(loader: ConfigLoader, node: yaml.ScalarNode) -> Any:
    target = Path(loader.construct_scalar(node)).expanduser()
    if not target.is_absolute():
        target = Path(loader.name).resolve().parent / target
    if not target.is_file():
        raise FileNotFoundError(
            f"Include file not found: {target} (referenced from {loader.name})"
        )
    with open(target, encoding="utf-8") as fh:
        return yaml.safe_load(fh)


ConfigLoader.add_constructor("!include", _include)


def _load_yaml_with_includes(path: Path) -> Any:
    with open(path, encoding="utf-8") as fh:
        return yaml.load(fh, Loader=ConfigLoader)


def discover_config_files(explicit: Path | None = None) -> list[Path]:
    """Return the existing config files, highest precedence first.

    Candidates, in order: *explicit* (``--config``), the file named by
    ``TAXONOMY_SYNC_CONFIG``, ``.taxonomy_sync/config.yml`` or
    ``.taxonomy_sync/config.yaml`` in the working directory, and
    ``~/.config/taxonomy_sync/config.yml``.
    """
    candidates = []
    if explicit is not None:
        candidates.append(explicit.expanduser().resolve())
    if os.environ.get(CONFIG_ENV_VAR):
        candidates.append(Path(os.environ[CONFIG_ENV_VAR]).expanduser().resolve())
    project_dir = Path.cwd() / CONFIG_DIR_NAME
    candidates += [
        project_dir / "config.yml",
        project_dir / "config.yaml",
        Path.home() / ".config" / "taxonomy_sync" / "config.yml",
    ]
    return [path for path in candidates if path.exists()]


_STARTER_CONFIG = """\
# taxonomy-sync configuration
#
# The store location can also be set via the TAXONOMY_STORE environment
# variable or the --store command line option.
#
# store:
#   path: .taxonomy_sync/store.json
#   root_name: taxonomies
#
# Content dimensions. Every combination of values is one subgraph; the
# subgraph made of all defaults is the canonical source for
# populate-dimension and cannot be pruned.
#
# dimensions:
#   language:
#     default: en
#     values: [en, de, de_CH, fr]
#     fallbacks:
#       de_CH: [de]
#
# logging:
#   level: WARNING
#   file: null
"""


def ensure_config(target: Path | None = None) -> tuple[Path, bool]:
    """Write a commented starter config unless a config file already applies.

    Args:
        target: File to create.  Defaults to the project-level
            ``.taxonomy_sync/config.yml`` in the working directory.

    Returns:
        ``(path, created)``; *path* is the existing file when one was found.
    """
    existing = discover_config_files(target)
    if existing:
        logger.debug("Config file already exists: %s", existing[0])
        return existing[0], False

    path = target or Path.cwd() / CONFIG_DIR_NAME / "config.yml"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(_STARTER_CONFIG, encoding="utf-8")
    logger.info("Created starter config: %s", path)
    return path, True


def load_hierarchical_config(explicit: Path | None = None) -> dict[str, Any]:
    """Merge every discovered config file into one raw config dict.

    Sections of higher-precedence files replace the same sections of
    lower ones wholesale.  Environment references are expanded after the
    merge.  Returns ``{}`` when no config file exists.
    """
    merged: dict[str, Any] = {}
    for path in reversed(discover_config_files(explicit)):
        logger.debug("Loading config: %s", path)
        data = _load_yaml_with_includes(path)
        if data is None:
            continue
        if not isinstance(data, dict):
            logger.warning(
                "Ignoring config file %s: top level is a %s, not a mapping",
                path,
                type(data).__name__,
            )
            continue
        merged.update(data)
    return _expand(merged)
