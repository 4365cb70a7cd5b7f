import os
import sys

import pytest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "..")))
from gcdaf.tables import ParseError
from gcdaf.vcf import count_samples, is_sample_header, parse_variant_line

pytestmark = pytest.mark.timeout(30)

HEADER = "#CHROM\tPOS\tID\tREF\tALT\tQUAL\tFILTER\tINFO\tFORMAT\ts1\ts2\ts3\n"


def test_parse_variant_line_reads_first_allele_characters_and_genotypes():
    variant = parse_variant_line("4\t1200\t.\tAT\tG,C\t50\tPASS\t.\tGT\t0/0\t1/1\r\n")

    assert (variant.chrom, variant.position, variant.ref, variant.alt) == (4, 1200, "A", "G")
    assert variant.genotypes == ["0/0", "1/1"]


@pytest.mark.parametrize(
    "line",
    [
        "\n",
        "##fileformat=VCFv4.2\n",
        HEADER,
        "chr1\t10\t.\tA\tG\t50\tPASS\t.\tGT\t0/0\n",
        "1²\t10\t.\tA\tG\t50\tPASS\t.\tGT\t0/0\n",
        "²\t10\t.\tA\tG\t50\tPASS\t.\tGT\t0/0\n",
    ],
)
def test_lines_without_a_numeric_chromosome_are_skipped(line):
    assert parse_variant_line(line) is None


def test_short_or_malformed_records_raise_parse_error():
    with pytest.raises(ParseError) as excinfo:
        parse_variant_line("1\t10\t.\tA\n", source="calls.vcf", line_number=7)
    assert excinfo.value.line_number == 7
    assert str(excinfo.value).startswith("calls.vcf:7:")

    with pytest.raises(ParseError):
        parse_variant_line("1\t1e3\t.\tA\tG\n")


def test_sample_header_detection_and_count():
    assert is_sample_header(HEADER)
    assert not is_sample_header("##contig=<ID=1>\n")
    assert count_samples(HEADER) == 3
    assert count_samples("#CHROM\tPOS\tID\tREF\tALT\tQUAL\tFILTER\tINFO\n") == 0
