"""Shared pytest fixtures for taxonomy-sync tests."""

import pytest
from dotenv import load_dotenv

from taxonomy_sync.config_schema import DimensionConfig
from taxonomy_sync.dimensions import DimensionService
from taxonomy_sync.store import MemoryTreeStore, NodeKind

load_dotenv()


LANGUAGE = DimensionConfig(
    default="en",
    values=["en", "de", "de_CH", "fr"],
    fallbacks={"de_CH": ["de"]},
)


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch):
    """Keep developer settings out of the tests."""
    for var in (
        "TAXONOMY_STORE",
        "TAXONOMY_DEBUG",
        "TAXONOMY_SYNC_CONFIG",
        "LOG_LEVEL",
    ):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def dimensions():
    """Dimension service with a single ``language`` dimension (default en)."""
    return DimensionService({"language": LANGUAGE})


@pytest.fixture
def empty_store(dimensions):
    """A store holding only the root, seeded in every subgraph."""
    return MemoryTreeStore(dimensions)


def populate(store: MemoryTreeStore, dimensions: DimensionService) -> dict[str, str]:
    """Create two vocabularies in the default subgraph.

    ::

        /taxonomies
          colors      {title: Colors}
            red       {title: Red}
            green     {title: Green}
              lime    {title: Lime}
          sizes       {title: Sizes}
            small

    Returns:
        Node name to identity.
    """
    default = dimensions.default_subgraph
    root = store.root_identity
    ids: dict[str, str] = {}

    colors = store.create_node(
        root, "colors", NodeKind.VOCABULARY, default, {"title": "Colors"}
    )
    ids["colors"] = colors.identity
    ids["red"] = store.create_node(
        colors.identity, "red", NodeKind.TERM, default, {"title": "Red"}
    ).identity
    green = store.create_node(
        colors.identity, "green", NodeKind.TERM, default, {"title": "Green"}
    )
    ids["green"] = green.identity
    ids["lime"] = store.create_node(
        green.identity, "lime", NodeKind.TERM, default, {"title": "Lime"}
    ).identity

    sizes = store.create_node(
        root, "sizes", NodeKind.VOCABULARY, default, {"title": "Sizes"}
    )
    ids["sizes"] = sizes.identity
    ids["small"] = store.create_node(
        sizes.identity, "small", NodeKind.TERM, default
    ).identity
    return ids


@pytest.fixture
def store(empty_store, dimensions):
    """A store with the ``colors`` and ``sizes`` vocabularies in English."""
    populate(empty_store, dimensions)
    return empty_store


@pytest.fixture
def ids(store):
    """Node name to identity for the ``store`` fixture."""
    result = {}
    for path in (
        "/taxonomies/colors",
        "/taxonomies/colors/red",
        "/taxonomies/colors/green",
        "/taxonomies/colors/green/lime",
        "/taxonomies/sizes",
        "/taxonomies/sizes/small",
    ):
        (node,) = store.find_by_path(path)
        result[node.name] = node.identity
    return result
