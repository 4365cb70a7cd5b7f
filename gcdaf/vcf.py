"""Line-level reading of VCF records for the streaming join."""
from __future__ import annotations

from dataclasses import dataclass, field

from .tables import ParseError, is_plain_number

SAMPLE_HEADER = "#CHROM"
FIXED_COLUMNS = 9


@dataclass
class VariantLine:
    chrom: int
    position: int
    ref: str
    alt: str
    genotypes: list[str] = field(default_factory=list)


def is_sample_header(line: str) -> bool:
    return line.split("\t", 1)[0].rstrip("\r\n") == SAMPLE_HEADER


def count_samples(header_line: str) -> int:
    """Number of sample columns on the ``#CHROM`` header line."""
    columns = header_line.rstrip("\r\n").split("\t")
    return max(0, len(columns) - FIXED_COLUMNS)


def parse_variant_line(line: str, *, source: str = "<vcf>", line_number: int | None = None) -> VariantLine | None:
    """Parse one VCF data line.

    Returns ``None`` for header and blank lines and for records whose
    chromosome is not a plain number (``chr1`` style contigs are not joined).
    """
    text = line.rstrip("\r\n")
    if not text or text.startswith("#"):
        return None
    columns = text.split("\t")
    if not is_plain_number(columns[0]):
        return None
    if len(columns) < 5:
        raise ParseError(source, line_number, f"expected at least 5 VCF columns, found {len(columns)}")
    try:
        position = int(columns[1])
    except ValueError:
        raise ParseError(source, line_number, f"non-numeric position: {columns[1]!r}") from None
    return VariantLine(
        chrom=int(columns[0]),
        position=position,
        ref=columns[3][:1],
        alt=columns[4][:1],
        genotypes=columns[FIXED_COLUMNS:],
    )
