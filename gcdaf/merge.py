"""Forward-only cursors for joining jointly sorted coordinate streams.

All tables and the query stream must be sorted by chromosome then position.
A cursor never moves backwards, so a full pass over the queries costs
``O(len(queries) + sum(len(table)))``.  An out-of-order input does not fail,
it silently skips matches.
"""
from __future__ import annotations

from typing import Callable, Sequence, Tuple

from .tables import IntervalRecord, SiteRecord

Span = Callable[[object], Tuple[int, int]]


def _interval_span(record) -> tuple[int, int]:
    return record.start, record.end


def _point_span(record) -> tuple[int, int]:
    return record.position, record.position


class Cursor:
    """Position inside one sorted table that only ever advances."""

    __slots__ = ("table", "index")

    def __init__(self, table: Sequence[IntervalRecord | SiteRecord]):
        self.table = table
        self.index = 0

    @property
    def exhausted(self) -> bool:
        return self.index >= len(self.table)

    @property
    def current(self):
        return None if self.exhausted else self.table[self.index]

    def __repr__(self) -> str:
        return f"Cursor(index={self.index}, size={len(self.table)})"


def _advance(cursor: Cursor, chrom: int, pos: int, span: Span) -> int | None:
    table = cursor.table
    while cursor.index < len(table):
        record = table[cursor.index]
        if record.chrom == chrom:
            start, end = span(record)
            if start <= pos <= end:
                return cursor.index
            if pos < start:
                return None
        elif chrom < record.chrom:
            return None
        cursor.index += 1
    return None


def locate_containing(cursor: Cursor, chrom: int, pos: int) -> int | None:
    """Return the index of the interval holding ``(chrom, pos)``, or ``None``.

    Records entirely before the query are skipped for good.  The cursor stops
    on the first record that contains the query or lies after it.
    """
    return _advance(cursor, chrom, pos, _interval_span)


def locate_equal(cursor: Cursor, chrom: int, pos: int) -> int | None:
    """Return the index of the site at exactly ``(chrom, pos)``, or ``None``."""
    return _advance(cursor, chrom, pos, _point_span)


def restrict_sites(
    sites: Sequence[SiteRecord],
    coords: Sequence[IntervalRecord],
    targets: Sequence[IntervalRecord] | None = None,
) -> list[SiteRecord]:
    """Keep sites inside an alignment block and, if given, inside a target region."""
    coord_cursor = Cursor(coords)
    target_cursor = Cursor(targets) if targets else None
    kept: list[SiteRecord] = []
    for site in sites:
        if locate_containing(coord_cursor, site.chrom, site.position) is None:
            continue
        if target_cursor is not None and locate_containing(target_cursor, site.chrom, site.position) is None:
            continue
        kept.append(site)
    return kept


def restrict_divergence(divergence: Sequence[SiteRecord], sites: Sequence[SiteRecord]) -> list[SiteRecord]:
    """Keep substitution records that fall on one of ``sites``."""
    cursor = Cursor(sites)
    return [sub for sub in divergence if locate_equal(cursor, sub.chrom, sub.position) is not None]
