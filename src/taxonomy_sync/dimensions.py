"""Dimension subgraph resolution.

A *subgraph* is one point in the dimension space: every configured
dimension assigned exactly one legal value.  The subgraph in which every
dimension sits at its default value is the *default subgraph*, the
canonical source of taxonomy content.

``DimensionService`` turns partial hints such as ``{"language": "de"}``
into a full ``Subgraph``, recovers the coordinate of a subgraph, and
computes fallback chains for reads that may fall back to less specific
content.
"""

from __future__ import annotations

import itertools
import logging
from collections.abc import Iterator, Mapping
from dataclasses import dataclass

from .config_schema import DimensionConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Subgraph:
    """A fully resolved dimension coordinate.

    Coordinates are kept sorted by dimension name so two subgraphs built
    from equal mappings compare and hash equal.
    """

    coordinates: tuple[tuple[str, str], ...] = ()

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, str]) -> Subgraph:
        return cls(tuple(sorted(mapping.items())))

    @classmethod
    def parse_key(cls, key: str) -> Subgraph:
        """Inverse of ``key``; an empty string is the dimensionless subgraph."""
        if not key:
            return cls()
        pairs = []
        for part in key.split(";"):
            name, sep, value = part.partition("=")
            if not sep or not name:
                raise ValueError(f"Malformed subgraph key: '{key}'")
            pairs.append((name, value))
        return cls(tuple(sorted(pairs)))

    @property
    def key(self) -> str:
        """Stable string form, e.g. ``language=de;market=ch``."""
        return ";".join(f"{name}={value}" for name, value in self.coordinates)

    def as_dict(self) -> dict[str, str]:
        return dict(self.coordinates)

    def __str__(self) -> str:
        return self.key or "(no dimensions)"


class DimensionService:
    """Resolve dimension hints into subgraphs.

    Args:
        dimensions: Dimension name to its configuration.  An empty mapping
            describes a store with a single subgraph.
    """

    def __init__(self, dimensions: Mapping[str, DimensionConfig]) -> None:
        self._dimensions = dict(dimensions)
        self._default = Subgraph.from_mapping(
            {name: dim.default for name, dim in self._dimensions.items()}
        )

    @property
    def dimension_names(self) -> list[str]:
        return sorted(self._dimensions)

    @property
    def default_subgraph(self) -> Subgraph:
        return self._default

    def resolve_subgraph(self, hints: Mapping[str, str]) -> Subgraph | None:
        """Find the subgraph matching *hints*.

        Only the named dimensions are constrained; the others take their
        default value.

        Returns:
            The resolved ``Subgraph``, or ``None`` when a hint names an
            unknown dimension or a value that dimension does not allow.
        """
        coordinate = self._default.as_dict()
        for name, value in hints.items():
            dimension = self._dimensions.get(name)
            if dimension is None:
                logger.debug("Unknown dimension '%s'", name)
                return None
            if value not in dimension.values:
                logger.debug(
                    "Value '%s' is not legal for dimension '%s'", value, name
                )
                return None
            coordinate[name] = value
        return Subgraph.from_mapping(coordinate)

    def coordinate_of(self, subgraph: Subgraph) -> dict[str, str]:
        """Return the full dimension-name to value mapping of *subgraph*."""
        return subgraph.as_dict()

    def is_default(self, subgraph: Subgraph) -> bool:
        return subgraph == self._default

    def is_legal(self, subgraph: Subgraph) -> bool:
        coordinate = subgraph.as_dict()
        if set(coordinate) != set(self._dimensions):
            return False
        return all(
            value in self._dimensions[name].values
            for name, value in coordinate.items()
        )

    def all_subgraphs(self) -> Iterator[Subgraph]:
        """Yield every legal subgraph, default first."""
        yield self._default
        names = self.dimension_names
        for values in itertools.product(
            *(self._dimensions[name].values for name in names)
        ):
            subgraph = Subgraph(tuple(zip(names, values)))
            if subgraph != self._default:
                yield subgraph

    def fallback_chain(self, subgraph: Subgraph) -> list[Subgraph]:
        """Subgraphs to consult when reading with fallback, most specific first.

        Each dimension contributes its own value, then its configured
        fallbacks, then its default.  The combined chain is the ordered
        product of the per-dimension chains, so the default subgraph is
        always last.
        """
        coordinate = subgraph.as_dict()
        names = self.dimension_names
        chains: list[list[str]] = []
        for name in names:
            dimension = self._dimensions[name]
            value = coordinate[name]
            chain = [value]
            for candidate in [*dimension.fallbacks.get(value, []), dimension.default]:
                if candidate not in chain:
                    chain.append(candidate)
            chains.append(chain)

        return [
            Subgraph(tuple(zip(names, values)))
            for values in itertools.product(*chains)
        ]
