"""Loaders for the sorted, tab-delimited coordinate tables used by the analyses.

Every loader reads its source in a single streaming pass and returns a plain
list of immutable records.  Sort order is trusted unless ``check_order`` is
requested, in which case :func:`check_sorted` rejects the first record that
moves backwards in ``(chrom, start)``.
"""
from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable, Iterator, Sequence, TextIO, TypeVar, Union

Source = Union[str, Path, TextIO]
T = TypeVar("T")

COORD_FIELDS = 8
DIVERGENCE_FIELDS = 8


class ResourceError(OSError):
    """Raised when an input file cannot be opened."""

    def __init__(self, path: str, original: OSError):
        self.path = path
        self.original = original
        super().__init__(f"Cannot open file {path}: {original.strerror or original}")


class ParseError(ValueError):
    """Raised when a required field is missing or malformed."""

    def __init__(self, source: str, line_number: int | None, detail: str):
        self.source = source
        self.line_number = line_number
        self.detail = detail
        where = source if line_number is None else f"{source}:{line_number}"
        super().__init__(f"{where}: {detail}")


class SortOrderError(ParseError):
    """Raised by the optional order check when a table is not sorted."""


@dataclass(frozen=True)
class IntervalRecord:
    chrom: int
    start: int
    end: int
    label: str | None = None


@dataclass(frozen=True)
class SiteRecord:
    chrom: int
    position: int
    ref: str = ""
    alt: str = ""

    @property
    def start(self) -> int:
        return self.position

    @property
    def end(self) -> int:
        return self.position


def source_name(source: Source) -> str:
    if isinstance(source, (str, Path)):
        return str(source)
    return str(getattr(source, "name", "<stream>"))


@contextmanager
def open_source(source: Source) -> Iterator[TextIO]:
    """Yield a text handle for ``source``; paths are opened and closed here.

    Undecodable bytes are replaced, since only ASCII fields are ever parsed.
    """
    if not isinstance(source, (str, Path)):
        yield source
        return
    try:
        handle = open(source, "r", encoding="utf-8", errors="replace")
    except OSError as exc:
        raise ResourceError(str(source), exc) from exc
    with handle:
        yield handle


def _records(source: Source, parse: Callable[[list[str], str, int], T | None]) -> list[T]:
    name = source_name(source)
    records: list[T] = []
    with open_source(source) as handle:
        for line_number, raw in enumerate(handle, start=1):
            line = raw.rstrip("\r\n")
            if not line.strip() or line.startswith("#"):
                continue
            record = parse(line.split("\t"), name, line_number)
            if record is not None:
                records.append(record)
    return records


def is_plain_number(value: str) -> bool:
    """True for a non-empty run of ASCII digits (``12``, not ``chr12`` or ``1²``)."""
    return value.isascii() and value.isdigit()


def _int_field(fields: Sequence[str], index: int, what: str, name: str, line_number: int) -> int:
    if index >= len(fields):
        raise ParseError(name, line_number, f"missing {what} (field {index + 1})")
    value = fields[index].strip()
    try:
        return int(value)
    except ValueError:
        raise ParseError(name, line_number, f"non-numeric {what}: {value!r}") from None


def _numeric_chrom(fields: Sequence[str], index: int) -> int | None:
    if index >= len(fields):
        return None
    value = fields[index].strip()
    return int(value) if is_plain_number(value) else None


def _parse_gene(fields: list[str], name: str, line_number: int) -> IntervalRecord:
    if len(fields) < 4:
        raise ParseError(name, line_number, f"expected 4 fields (label, chrom, start, end), found {len(fields)}")
    return IntervalRecord(
        chrom=_int_field(fields, 1, "chromosome", name, line_number),
        start=_int_field(fields, 2, "start", name, line_number),
        end=_int_field(fields, 3, "end", name, line_number),
        label=fields[0].strip(),
    )


def _parse_target(fields: list[str], name: str, line_number: int) -> IntervalRecord:
    if len(fields) < 3:
        raise ParseError(name, line_number, f"expected 3 fields (chrom, start, end), found {len(fields)}")
    return IntervalRecord(
        chrom=_int_field(fields, 0, "chromosome", name, line_number),
        start=_int_field(fields, 1, "start", name, line_number),
        end=_int_field(fields, 2, "end", name, line_number),
    )


def _parse_coord(fields: list[str], name: str, line_number: int) -> IntervalRecord | None:
    # S1, E1, ..., reference tag in field 8
    chrom = _numeric_chrom(fields, COORD_FIELDS - 1)
    if chrom is None:
        return None
    return IntervalRecord(
        chrom=chrom,
        start=_int_field(fields, 0, "start", name, line_number),
        end=_int_field(fields, 1, "end", name, line_number),
    )


def _parse_divergence(fields: list[str], name: str, line_number: int) -> SiteRecord | None:
    # P1, SUB_R, SUB_Q, ..., reference tag in field 8
    chrom = _numeric_chrom(fields, DIVERGENCE_FIELDS - 1)
    if chrom is None:
        return None
    ref = fields[1].strip()[:1]
    alt = fields[2].strip()[:1]
    if not ref or not alt:
        raise ParseError(name, line_number, "missing substitution alleles")
    return SiteRecord(
        chrom=chrom,
        position=_int_field(fields, 0, "position", name, line_number),
        ref=ref,
        alt=alt,
    )


def _parse_site(fields: list[str], name: str, line_number: int) -> SiteRecord | None:
    if not is_plain_number(fields[0][:1]):
        return None
    return SiteRecord(
        chrom=_int_field(fields, 0, "chromosome", name, line_number),
        position=_int_field(fields, 1, "position", name, line_number),
    )


def check_sorted(records: Iterable[IntervalRecord | SiteRecord], source: str) -> None:
    """Raise :class:`SortOrderError` unless ``records`` are sorted by (chrom, start)."""
    previous = None
    for index, record in enumerate(records):
        key = (record.chrom, record.start)
        if previous is not None and key < previous:
            raise SortOrderError(
                source,
                None,
                f"record {index + 1} at chr {record.chrom} pos {record.start} "
                f"precedes chr {previous[0]} pos {previous[1]}; input must be sorted by chromosome and position",
            )
        previous = key


def _load(source: Source, parse, check_order: bool):
    records = _records(source, parse)
    if check_order:
        check_sorted(records, source_name(source))
    return records


def load_genes(source: Source, *, check_order: bool = False) -> list[IntervalRecord]:
    """Load ``label<TAB>chrom<TAB>start<TAB>end`` gene annotations."""
    return _load(source, _parse_gene, check_order)


def load_targets(source: Source, *, check_order: bool = False) -> list[IntervalRecord]:
    """Load ``chrom<TAB>start<TAB>end`` target regions."""
    return _load(source, _parse_target, check_order)


def load_coords(source: Source, *, check_order: bool = False) -> list[IntervalRecord]:
    """Load alignment blocks from ``show-coords -H -T`` output.

    Rows whose chromosome tag (field 8) is absent or not purely numeric are
    skipped without error.
    """
    return _load(source, _parse_coord, check_order)


def load_divergence(source: Source, *, check_order: bool = False) -> list[SiteRecord]:
    """Load substitutions from ``show-snps -C -I -H -T`` output.

    Same lenient skip rule as :func:`load_coords`.
    """
    return _load(source, _parse_divergence, check_order)


def load_sites(source: Source, *, check_order: bool = False) -> list[SiteRecord]:
    """Load ``chrom<TAB>position`` site coordinates (e.g. 0-fold or 4-fold sites)."""
    return _load(source, _parse_site, check_order)
