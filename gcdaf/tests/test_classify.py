import itertools
import os
import sys

import pytest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "..")))
from gcdaf.classify import (
    Genotype,
    Mode,
    classify,
    daf_counts,
    derived_count,
    parse_genotype,
    passes_mode,
    strength,
)
from gcdaf.tables import SiteRecord

pytestmark = pytest.mark.timeout(30)

BASES = "ACGT"


@pytest.mark.parametrize(
    "value, expected",
    [("1", Mode.WS), (2, Mode.SW), ("ss", Mode.SS), ("WW", Mode.WW), ("ss+ww", Mode.SS_WW), ("0", Mode.ALL)],
)
def test_mode_parse_accepts_numbers_and_names(value, expected):
    assert Mode.parse(value) is expected


@pytest.mark.parametrize("value", ["6", "-1", "GC"])
def test_mode_parse_rejects_unknown_values(value):
    with pytest.raises(ValueError):
        Mode.parse(value)


def test_mode_label():
    assert Mode.SS_WW.label == "SS+WW"
    assert Mode.WS.label == "WS"


def test_strength_classes():
    assert [strength(b) for b in "ATGCN."] == ["W", "W", "S", "S", None, None]


def test_every_pair_is_classified_for_every_mode():
    for ref, alt in itertools.product(BASES, repeat=2):
        results = {mode: classify(mode, ref, alt).eligible for mode in Mode}
        assert all(isinstance(value, bool) for value in results.values())
        assert results[Mode.ALL] is True
        assert results[Mode.SS_WW] == (results[Mode.SS] or results[Mode.WW])
        assert results[Mode.WS] == (strength(ref) == "W" and strength(alt) == "S")
        assert results[Mode.SW] == (strength(ref) == "S" and strength(alt) == "W")
        assert results[Mode.SS] == ({ref, alt} == {"G", "C"})
        assert results[Mode.WW] == ({ref, alt} == {"A", "T"})


def test_without_substitution_reference_is_ancestral():
    result = classify(Mode.WS, "A", "G")
    assert result.eligible
    assert not result.polarity_known
    assert not result.derived_is_reference


def test_substitution_flips_direction_to_reference_derived():
    # Outgroup carries A, reference carries G: the reference allele is derived (W->S).
    substitution = SiteRecord(1, 100, "G", "A")

    ws = classify(Mode.WS, "G", "A", substitution)
    sw = classify(Mode.SW, "G", "A", substitution)

    assert ws.eligible and ws.polarity_known and ws.derived_is_reference
    assert not sw.eligible
    assert classify(Mode.SW, "G", "A").eligible


def test_reference_mismatch_is_flagged_and_excluded():
    result = classify(Mode.ALL, "A", "G", SiteRecord(1, 100, "C", "G"))
    assert result.reference_mismatch
    assert not result.eligible


def test_alternate_mismatch_excludes_unless_disabled():
    substitution = SiteRecord(1, 100, "A", "T")
    assert not classify(Mode.ALL, "A", "G", substitution).eligible
    kept = classify(Mode.ALL, "A", "G", substitution, check_alternate=False)
    assert kept.eligible and not kept.reference_mismatch


def test_reference_ancestral_fallback_can_be_disabled():
    assert classify(Mode.ALL, "A", "G").eligible
    result = classify(Mode.ALL, "A", "G", assume_reference_ancestral=False)
    assert not result.eligible
    assert classify(Mode.ALL, "A", "G", SiteRecord(1, 1, "A", "G"), assume_reference_ancestral=False).eligible


def test_invariant_sites_match_any_class_when_allowed():
    assert not passes_mode(Mode.SS, "G", ".")
    assert passes_mode(Mode.SS, "G", ".", allow_invariant=True)
    assert passes_mode(Mode.WS, "A", ".", allow_invariant=True)
    assert not passes_mode(Mode.WS, "G", ".", allow_invariant=True)
    assert not passes_mode(Mode.SS_WW, ".", ".", allow_invariant=True)
    assert passes_mode(Mode.ALL, ".", ".", allow_invariant=True)


@pytest.mark.parametrize(
    "token, expected",
    [
        ("0/0", Genotype.HOM_REF),
        ("0|0", Genotype.HOM_REF),
        ("1/1:35:0,12", Genotype.HOM_ALT),
        ("0/1", Genotype.HET),
        ("1|2", Genotype.HET),
        ("./.", Genotype.MISSING),
        ("0/.", Genotype.MISSING),
        (".", Genotype.MISSING),
        ("", Genotype.MISSING),
    ],
)
def test_parse_genotype(token, expected):
    assert parse_genotype(token) is expected


def test_daf_counts_exclude_missing_and_count_het_as_callable():
    genotypes = [parse_genotype(t) for t in ("1/1", "0/0", "0/1", "./.", "1/1")]
    assert daf_counts(genotypes, derived_is_reference=False) == (2, 4)
    assert daf_counts(genotypes, derived_is_reference=True) == (1, 4)


def test_derived_count_imputes_missing_to_majority_allele():
    genotypes = [parse_genotype(t) for t in ("1/1", "1/1", "0/0", "./.", "0/1")]
    assert derived_count(genotypes, derived_is_reference=False) == 4
    assert derived_count(genotypes, derived_is_reference=True) == 1


def test_derived_count_tie_imputes_to_ancestral():
    genotypes = [parse_genotype(t) for t in ("1/1", "0/0", "./.", "./.")]
    assert derived_count(genotypes, derived_is_reference=False) == 1
    assert derived_count(genotypes, derived_is_reference=True) == 1


def test_unknown_bases_belong_to_no_gc_class():
    for mode in (Mode.WS, Mode.SW, Mode.SS, Mode.WW, Mode.SS_WW):
        assert not passes_mode(mode, "N", "G")
        assert not passes_mode(mode, "A", "N", allow_invariant=True)
    assert passes_mode(Mode.ALL, "N", "N")
