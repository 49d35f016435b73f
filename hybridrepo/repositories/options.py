"""Per-call read options."""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class QueryOptions:
    """
    Flags controlling how a read is executed.

    Attributes:
        no_tracking: Results are fresh instances loaded outside the
            change-tracking set, even for rows the session already tracks;
            mutations made on them are not persisted by commit. Changes
            staged but not yet flushed are not visible to such reads
        ignore_auto_includes: Suppress relationships configured to load
            eagerly by default (lazy="selectin", lazy="joined", ...)
    """

    no_tracking: bool = False
    ignore_auto_includes: bool = False


DEFAULT_OPTIONS = QueryOptions()


def resolve_options(options: Optional[QueryOptions]) -> QueryOptions:
    """Absent options mean tracked reads with default includes."""
    return options if options is not None else DEFAULT_OPTIONS
