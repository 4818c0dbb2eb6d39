"""Shell-glob matching of vocabulary names."""

from __future__ import annotations

import fnmatch


def matches(pattern: str | None, name: str) -> bool:
    """Return ``True`` if *name* matches the glob *pattern*.

    ``None`` matches everything.  Matching is anchored at both ends and
    case-sensitive on every platform; an unterminated ``[`` is treated
    as a literal character.
    """
    if pattern is None:
        return True
    return fnmatch.fnmatchcase(name, pattern)
