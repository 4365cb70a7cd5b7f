from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from typing import Callable, Iterable, Iterator, Optional, Sequence

from . import tables
from .aggregate import GeneDaf, GeneDafAggregator, SiteFrequencySpectrum
from .classify import Mode, classify, daf_counts, derived_count, parse_genotype
from .merge import Cursor, locate_containing, locate_equal, restrict_divergence, restrict_sites
from .tables import IntervalRecord, ParseError, ResourceError, SiteRecord
from .vcf import count_samples, is_sample_header, parse_variant_line

# --- Defaults (overridable through GCDAF_* environment variables or the CLI) ---
DEFAULT_ASSUME_REFERENCE_ANCESTRAL = True
DEFAULT_CHECK_ORDER = False
DEFAULT_PROGRESS_EVERY = 1_000_000
DEFAULT_LOG_DIRECTORY = None

_TRUE_STRINGS = {"1", "true", "yes", "on"}
_FALSE_STRINGS = {"0", "false", "no", "off"}


def _diag(message: str) -> None:
    print(message, file=sys.stderr, flush=True)


def _parse_bool(raw: str) -> bool:
    value = raw.strip().lower()
    if value in _TRUE_STRINGS:
        return True
    if value in _FALSE_STRINGS:
        return False
    raise ValueError(f"not a boolean: {raw!r}")


def _maybe_parse_env(name: str, cast):
    raw = os.getenv(name)
    if raw is None:
        return None
    try:
        return cast(raw)
    except Exception:
        _diag(f"[Config] Ignoring invalid value for {name!s}: {raw!r}")
        return None


@dataclass
class RunConfig:
    assume_reference_ancestral: bool = DEFAULT_ASSUME_REFERENCE_ANCESTRAL
    check_order: bool = DEFAULT_CHECK_ORDER
    progress_every: int = DEFAULT_PROGRESS_EVERY
    log_directory: str | None = DEFAULT_LOG_DIRECTORY


def _env_overrides() -> dict[str, object]:
    overrides: dict[str, object] = {}
    assume = _maybe_parse_env("GCDAF_ASSUME_REFERENCE_ANCESTRAL", _parse_bool)
    if assume is not None:
        overrides["assume_reference_ancestral"] = assume
    check = _maybe_parse_env("GCDAF_CHECK_ORDER", _parse_bool)
    if check is not None:
        overrides["check_order"] = check
    every = _maybe_parse_env("GCDAF_PROGRESS_EVERY", int)
    if every is not None:
        overrides["progress_every"] = max(int(every), 0)
    log_dir = os.getenv("GCDAF_LOG_DIR")
    if log_dir:
        overrides["log_directory"] = log_dir.strip()
    return overrides


def get_run_config(overrides: Optional[dict] = None) -> RunConfig:
    """Defaults, then environment, then explicit ``overrides`` (``None`` values ignored)."""
    values = _env_overrides()
    if overrides:
        values.update({k: v for k, v in overrides.items() if v is not None})
    return RunConfig(**values)


@dataclass
class RunStats:
    lines: int = 0
    matched: int = 0
    used: int = 0
    mismatches: list = field(default_factory=list)


def _create_progress_emitter(every: int, stage_label: str) -> Callable[[int], None]:
    """Return a callable that prints a progress line every ``every`` records."""
    if every <= 0:
        return lambda _count: None

    def _emit(count: int) -> None:
        if count % every == 0:
            _diag(f"[Progress] {stage_label}: {count:,} lines read")

    return _emit


def _report_mismatch(stats: RunStats, chrom: int, pos: int) -> None:
    stats.mismatches.append((chrom, pos))
    _diag(f"Warning: ref alleles differ at chr {chrom} pos {pos}")


def _lookup(cursor: Cursor, table: Sequence[SiteRecord], chrom: int, pos: int) -> SiteRecord | None:
    index = locate_equal(cursor, chrom, pos)
    return None if index is None else table[index]


def estimate_daf(
    genes: Sequence[IntervalRecord],
    coords: Sequence[IntervalRecord],
    divergence: Sequence[SiteRecord],
    variants: Iterable[str],
    mode: Mode = Mode.ALL,
    *,
    config: RunConfig | None = None,
    stats: RunStats | None = None,
    source: str = "<vcf>",
) -> Iterator[GeneDaf]:
    """Stream VCF lines and yield one :class:`GeneDaf` per gene.

    A record is used only when it falls inside a gene and inside an alignment
    block.  The gene key switches as soon as such a record reaches a new gene,
    even if that record is then filtered out, so genes can be reported with
    zero sites.
    """
    config = config or get_run_config()
    stats = stats if stats is not None else RunStats()
    progress = _create_progress_emitter(config.progress_every, "daf")
    gene_cursor = Cursor(genes)
    coord_cursor = Cursor(coords)
    div_cursor = Cursor(divergence)
    aggregator = GeneDafAggregator()

    for line_number, line in enumerate(variants, start=1):
        stats.lines += 1
        progress(stats.lines)
        variant = parse_variant_line(line, source=source, line_number=line_number)
        if variant is None:
            continue
        gene_index = locate_containing(gene_cursor, variant.chrom, variant.position)
        if gene_index is None:
            continue
        if locate_containing(coord_cursor, variant.chrom, variant.position) is None:
            continue

        gene = genes[gene_index]
        finished = aggregator.enter(gene.label or f"{gene.chrom}:{gene.start}-{gene.end}")
        if finished is not None:
            yield finished
        stats.matched += 1

        substitution = _lookup(div_cursor, divergence, variant.chrom, variant.position)
        result = classify(
            mode,
            variant.ref,
            variant.alt,
            substitution,
            assume_reference_ancestral=config.assume_reference_ancestral,
        )
        if result.reference_mismatch:
            _report_mismatch(stats, variant.chrom, variant.position)
            continue
        if not result.eligible:
            continue

        genotypes = (parse_genotype(token) for token in variant.genotypes)
        aggregator.add(*daf_counts(genotypes, result.derived_is_reference))
        stats.used += 1

    last = aggregator.finish()
    if last is not None:
        yield last


def build_sfs(
    sites: Sequence[SiteRecord],
    divergence: Sequence[SiteRecord],
    variants: Iterable[str],
    mode: Mode = Mode.ALL,
    *,
    config: RunConfig | None = None,
    stats: RunStats | None = None,
    source: str = "<vcf>",
) -> SiteFrequencySpectrum:
    """Stream a full VCF (variant and invariant sites) into a DFE-alpha style SFS.

    The sample size comes from the ``#CHROM`` header.  Invariant records
    (``ALT`` of ``.``) match any GC class so that monomorphic sites count.
    """
    config = config or get_run_config()
    stats = stats if stats is not None else RunStats()
    progress = _create_progress_emitter(config.progress_every, "sfs")
    site_cursor = Cursor(sites)
    div_cursor = Cursor(divergence)
    spectrum: SiteFrequencySpectrum | None = None

    for line_number, line in enumerate(variants, start=1):
        stats.lines += 1
        progress(stats.lines)
        if is_sample_header(line):
            spectrum = SiteFrequencySpectrum(count_samples(line))
            continue
        variant = parse_variant_line(line, source=source, line_number=line_number)
        if variant is None:
            continue
        if spectrum is None:
            raise ParseError(source, line_number, "variant record before the #CHROM header")
        if locate_equal(site_cursor, variant.chrom, variant.position) is None:
            continue
        stats.matched += 1

        substitution = _lookup(div_cursor, divergence, variant.chrom, variant.position)
        result = classify(
            mode,
            variant.ref,
            variant.alt,
            substitution,
            assume_reference_ancestral=config.assume_reference_ancestral,
            allow_invariant=True,
            check_alternate=mode is not Mode.ALL,
        )
        if result.reference_mismatch:
            _report_mismatch(stats, variant.chrom, variant.position)
            continue
        if not result.eligible:
            continue

        if len(variant.genotypes) != spectrum.sample_size:
            raise ParseError(
                source,
                line_number,
                f"expected {spectrum.sample_size} genotype columns, found {len(variant.genotypes)}",
            )
        genotypes = [parse_genotype(token) for token in variant.genotypes]
        spectrum.add(derived_count(genotypes, result.derived_is_reference), substitution is not None)
        stats.used += 1

    if spectrum is None:
        raise ParseError(source, None, "no #CHROM header line found")
    return spectrum


def require_readable(*paths) -> None:
    """Open and close each path so unreadable inputs fail before any loading."""
    for path in paths:
        if path is None:
            continue
        try:
            with open(path, "r", encoding="utf-8", errors="replace"):
                pass
        except OSError as exc:
            raise ResourceError(str(path), exc) from exc


def _load_table(loader, path, what: str, check_order: bool):
    records = loader(path, check_order=check_order)
    _diag(f"[Load] {what}: {len(records):,} records from {path}")
    return records


def run_daf(
    *,
    genes_path: str,
    coords_path: str,
    divergence_path: str,
    vcf_path: str,
    mode: Mode = Mode.ALL,
    config: RunConfig | None = None,
) -> tuple[list[GeneDaf], RunStats]:
    config = config or get_run_config()
    require_readable(genes_path, coords_path, divergence_path, vcf_path)

    genes = _load_table(tables.load_genes, genes_path, "genes", config.check_order)
    coords = _load_table(tables.load_coords, coords_path, "alignment blocks", config.check_order)
    divergence = _load_table(tables.load_divergence, divergence_path, "substitutions", config.check_order)

    stats = RunStats()
    with tables.open_source(vcf_path) as handle:
        rows = list(
            estimate_daf(genes, coords, divergence, handle, mode, config=config, stats=stats, source=str(vcf_path))
        )
    _diag(
        f"[Done] {len(rows):,} genes, {stats.used:,} sites used of {stats.matched:,} matched "
        f"({stats.lines:,} VCF lines, {len(stats.mismatches):,} reference mismatches)"
    )
    return rows, stats


def run_sfs(
    *,
    coords_path: str,
    divergence_path: str,
    sites_path: str,
    vcf_path: str,
    targets_path: str | None = None,
    mode: Mode = Mode.ALL,
    config: RunConfig | None = None,
) -> tuple[SiteFrequencySpectrum, RunStats]:
    config = config or get_run_config()
    require_readable(coords_path, divergence_path, sites_path, vcf_path, targets_path)

    coords = _load_table(tables.load_coords, coords_path, "alignment blocks", config.check_order)
    targets = None
    if targets_path is not None:
        targets = _load_table(tables.load_targets, targets_path, "target regions", config.check_order)
    sites = _load_table(tables.load_sites, sites_path, "sites", config.check_order)
    sites = restrict_sites(sites, coords, targets)
    _diag(f"[Load] {len(sites):,} sites inside aligned{' target' if targets else ''} regions")
    divergence = _load_table(tables.load_divergence, divergence_path, "substitutions", config.check_order)
    divergence = restrict_divergence(divergence, sites)
    _diag(f"[Load] {len(divergence):,} substitutions on retained sites")

    stats = RunStats()
    with tables.open_source(vcf_path) as handle:
        spectrum = build_sfs(sites, divergence, handle, mode, config=config, stats=stats, source=str(vcf_path))
    _diag(
        f"[Done] {spectrum.sites:,} sites ({spectrum.segregating:,} segregating, "
        f"{spectrum.divergent:,} divergent) from {stats.lines:,} VCF lines"
    )
    return spectrum, stats


def format_elapsed(seconds: float) -> str | None:
    """Elapsed-time summary line; ``None`` for runs of five seconds or less."""
    total = int(seconds)
    minutes = total // 60
    hours = total // 3600
    if hours > 0:
        return f"Run finished in {hours} h, {minutes - hours * 60} min & {total - minutes * 60} sec"
    if minutes > 0:
        return f"Run finished in {minutes} min & {total - minutes * 60} sec"
    if total > 5:
        return f"Run finished in {total} sec"
    return None
