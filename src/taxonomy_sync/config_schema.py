"""Unified configuration schema for taxonomy_sync.

Defines Pydantic models for the config file with dedicated sections for
the store, the content dimensions, and logging.

Usage:
    from taxonomy_sync.config_schema import UnifiedConfig, build_config

    raw = load_hierarchical_config()
    unified = build_config(raw)
    language = unified.dimensions["language"]
"""

from __future__ import annotations

import logging

from pydantic import BaseModel, Field, model_validator

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class StoreConfig(BaseModel):
    """Location and shape of the taxonomy store.

    All fields are optional to support zero-config: env vars and CLI args
    can supply them at runtime instead.
    """

    path: str | None = Field(
        default=None, description="Path of the JSON store snapshot"
    )
    root_name: str = Field(
        default="taxonomies",
        min_length=1,
        description="Node name of the taxonomy root",
    )

    model_config = {"frozen": True}


class DimensionConfig(BaseModel):
    """One content dimension (e.g. ``language``).

    Attributes:
        default: The primary value; the default subgraph uses it.
        values: Ordered list of legal values.
        fallbacks: Per-value ordered fallback values used when reading
            content with fallback.  Values without an entry fall back to
            nothing but the default.
    """

    default: str
    values: list[str] = Field(min_length=1)
    fallbacks: dict[str, list[str]] = Field(default_factory=dict)

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def _check_values(self) -> DimensionConfig:
        if len(set(self.values)) != len(self.values):
            raise ValueError(f"Duplicate dimension values: {self.values}")
        if self.default not in self.values:
            raise ValueError(
                f"Default value '{self.default}' is not one of {self.values}"
            )
        for value, chain in self.fallbacks.items():
            unknown = [v for v in [value, *chain] if v not in self.values]
            if unknown:
                raise ValueError(
                    f"Fallbacks for '{value}' reference unknown values: {unknown}"
                )
        return self


class LoggingConfig(BaseModel):
    """Logging configuration.

    Attributes:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        file: Optional log file path.
    """

    level: str = Field(default="WARNING", description="Log level")
    file: str | None = Field(default=None, description="Log file path")

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Top-level unified config
# ---------------------------------------------------------------------------


class UnifiedConfig(BaseModel):
    """Top-level unified configuration.

    Aggregates all config sections. Every section has sensible defaults,
    so ``UnifiedConfig()`` (zero-config) is always valid and describes a
    store without content dimensions.
    """

    store: StoreConfig = Field(default_factory=StoreConfig)
    dimensions: dict[str, DimensionConfig] = Field(default_factory=dict)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Factory function
# ---------------------------------------------------------------------------


def build_config(raw_data: dict) -> UnifiedConfig:
    """Construct a ``UnifiedConfig`` from the raw dict returned by
    ``load_hierarchical_config()``.

    Handles missing sections gracefully, anything absent gets defaults.

    Args:
        raw_data: Merged configuration dictionary.

    Returns:
        Validated ``UnifiedConfig`` instance.
    """
    if not raw_data:
        return UnifiedConfig()

    return UnifiedConfig(**raw_data)
