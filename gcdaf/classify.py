"""GC-class filtering, ancestral/derived polarity and genotype resolution."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Iterable, Sequence

from .tables import SiteRecord

WEAK = frozenset("AT")
STRONG = frozenset("GC")
INVARIANT = "."


class Mode(IntEnum):
    ALL = 0
    WS = 1
    SW = 2
    SS = 3
    WW = 4
    SS_WW = 5

    @classmethod
    def parse(cls, value: "str | int | Mode") -> "Mode":
        """Accept the numeric selector (``1``) or a name (``ws``, ``ss+ww``)."""
        if isinstance(value, Mode):
            return value
        text = str(value).strip()
        if text.lstrip("-").isdigit():
            try:
                return cls(int(text))
            except ValueError:
                raise ValueError(
                    "allowed values are 0 [ALL], 1 [WS], 2 [SW], 3 [SS], 4 [WW], 5 [SS+WW]"
                ) from None
        key = text.upper().replace("+", "_").replace("-", "_")
        try:
            return cls[key]
        except KeyError:
            raise ValueError(f"unknown GC class {value!r}") from None

    @property
    def label(self) -> str:
        return self.name.replace("_", "+")


class Genotype(Enum):
    HOM_REF = 0
    HOM_ALT = 1
    HET = 2
    MISSING = 9


def strength(base: str) -> str | None:
    if base in WEAK:
        return "W"
    if base in STRONG:
        return "S"
    return None


def parse_genotype(token: str) -> Genotype:
    """Resolve a ``GT``-leading sample column into a :class:`Genotype`.

    Only characters 0 and 2 are read, so ``0/0``, ``1|1`` and ``0/0:12:...``
    are all understood; anything shorter is missing.
    """
    if len(token) < 3:
        return Genotype.MISSING
    first, second = token[0], token[2]
    if first == "." or second == ".":
        return Genotype.MISSING
    if first == "0" and second == "0":
        return Genotype.HOM_REF
    if first == "1" and second == "1":
        return Genotype.HOM_ALT
    return Genotype.HET


@dataclass(frozen=True)
class Classification:
    eligible: bool
    polarity_known: bool
    derived_is_reference: bool
    reference_mismatch: bool = False


def _in_class(base: str, cls: str, allow_invariant: bool) -> bool:
    return strength(base) == cls or (allow_invariant and base == INVARIANT)


def _same_class_pair(ref: str, alt: str, cls: str, allow_invariant: bool) -> bool:
    if not (_in_class(ref, cls, allow_invariant) and _in_class(alt, cls, allow_invariant)):
        return False
    return ref != alt or ref == INVARIANT


def _directional(ancestral: str, derived: str, src: str, dst: str, allow_invariant: bool) -> bool:
    return _in_class(ancestral, src, allow_invariant) and _in_class(derived, dst, allow_invariant)


def passes_mode(mode: Mode, ancestral: str, derived: str, *, allow_invariant: bool = False) -> bool:
    """Whether an ancestral->derived allele pair belongs to the GC class ``mode``."""
    if mode is Mode.ALL:
        return True
    if allow_invariant and ancestral == INVARIANT and derived == INVARIANT:
        return False
    if mode is Mode.WS:
        return _directional(ancestral, derived, "W", "S", allow_invariant)
    if mode is Mode.SW:
        return _directional(ancestral, derived, "S", "W", allow_invariant)
    ss = _same_class_pair(ancestral, derived, "S", allow_invariant)
    ww = _same_class_pair(ancestral, derived, "W", allow_invariant)
    if mode is Mode.SS:
        return ss
    if mode is Mode.WW:
        return ww
    return ss or ww


def classify(
    mode: Mode,
    ref: str,
    alt: str,
    substitution: SiteRecord | None = None,
    *,
    assume_reference_ancestral: bool = True,
    allow_invariant: bool = False,
    check_alternate: bool = True,
) -> Classification:
    """Decide whether a variant enters the analysis and which allele is derived.

    A substitution record means the outgroup differs from the reference
    genome at this site, so the reference allele is the derived one and the
    alternate allele is ancestral.  Without a record the reference allele is
    taken as ancestral when ``assume_reference_ancestral`` is set; otherwise
    the site has no usable polarity and is dropped.

    A record whose reference allele disagrees with the variant's is flagged
    with ``reference_mismatch`` so the caller can warn about it.
    """
    if substitution is not None:
        if ref != substitution.ref:
            return Classification(False, True, True, reference_mismatch=True)
        if check_alternate and alt != substitution.alt:
            return Classification(False, True, True)
        return Classification(
            passes_mode(mode, alt, ref, allow_invariant=allow_invariant),
            True,
            True,
        )
    if not assume_reference_ancestral:
        return Classification(False, False, False)
    return Classification(
        passes_mode(mode, ref, alt, allow_invariant=allow_invariant),
        False,
        False,
    )


def daf_counts(genotypes: Iterable[Genotype], derived_is_reference: bool) -> tuple[int, int]:
    """Return ``(derived, callable)`` for one site; missing calls count in neither."""
    derived_call = Genotype.HOM_REF if derived_is_reference else Genotype.HOM_ALT
    derived = 0
    called = 0
    for genotype in genotypes:
        if genotype is Genotype.MISSING:
            continue
        called += 1
        if genotype is derived_call:
            derived += 1
    return derived, called


def derived_count(genotypes: Sequence[Genotype], derived_is_reference: bool) -> int:
    """Number of samples carrying the derived allele, imputing unresolved calls.

    Missing and heterozygous calls are imputed to the allele seen more often
    among homozygous calls.  A tie imputes them to the ancestral allele.
    """
    hom_ref = sum(1 for g in genotypes if g is Genotype.HOM_REF)
    hom_alt = sum(1 for g in genotypes if g is Genotype.HOM_ALT)
    unresolved = len(genotypes) - hom_ref - hom_alt
    if derived_is_reference:
        derived, ancestral = hom_ref, hom_alt
    else:
        derived, ancestral = hom_alt, hom_ref
    if derived > ancestral:
        return derived + unresolved
    return derived
