"""Streaming import/export of taxonomy documents."""

from .reader import ImportedVocabulary, TaxonomyReader
from .writer import TaxonomyWriter

__all__ = [
    "ImportedVocabulary",
    "TaxonomyReader",
    "TaxonomyWriter",
]
