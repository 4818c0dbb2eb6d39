"""Exception hierarchy for taxonomy operations.

Each exception carries an ``error_kind`` used in run reports and JSON
output so callers can branch on the category without matching classes.
"""


class TaxonomyError(Exception):
    """Base class for all taxonomy errors."""

    error_kind = "error"


class NotFoundError(TaxonomyError):
    """A subgraph, node, or path could not be resolved."""

    error_kind = "not_found"


class GuardViolation(TaxonomyError):
    """An operation was refused because it targets the default subgraph."""

    error_kind = "guard_violation"


class StructuralViolation(TaxonomyError):
    """A mutation would break tree connectivity within a subgraph."""

    error_kind = "structural_violation"


class CodecError(TaxonomyError):
    """Reading or writing a taxonomy document failed."""

    error_kind = "io_failure"


class StoreError(TaxonomyError):
    """The persisted store snapshot is unreadable or inconsistent."""

    error_kind = "store_error"
