"""Command line entrypoint for the DAF and DFE-alpha SFS analyses."""

from __future__ import annotations

import argparse
import contextlib
import sys
import time
from typing import Sequence

from . import logging_utils
from . import run
from .aggregate import summarize_daf
from .classify import Mode
from .tables import ParseError, ResourceError


def _gc_mode(value: str) -> Mode:
    try:
        return Mode.parse(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc


def _non_negative_int(value: str) -> int:
    try:
        parsed = int(value)
    except ValueError as exc:  # pragma: no cover - argparse sanitises this path in tests
        raise argparse.ArgumentTypeError("Expected an integer value") from exc
    if parsed < 0:
        raise argparse.ArgumentTypeError("Value must be zero or a positive integer")
    return parsed


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--coord",
        required=True,
        help="Coordinates file produced by MUMmer 'show-coords' (use settings -H -T).",
    )
    parser.add_argument(
        "--div",
        required=True,
        help="Substitution file produced by MUMmer 'show-snps' (use settings -C -I -H -T).",
    )
    parser.add_argument("--vcf", required=True, help="VCF file sorted by chromosome and position.")
    parser.add_argument(
        "--gc",
        type=_gc_mode,
        default=Mode.ALL,
        help="GC class: 0 [all], 1 [WS], 2 [SW], 3 [SS], 4 [WW], 5 [SS+WW]. Names are accepted too.",
    )
    parser.add_argument(
        "--assume-reference-ancestral",
        action=argparse.BooleanOptionalAction,
        default=None,
        help=(
            "Treat the reference allele as ancestral at sites without a substitution record. "
            "With --no-assume-reference-ancestral such sites are skipped."
        ),
    )
    parser.add_argument(
        "--check-order",
        action="store_true",
        default=None,
        help="Verify that every coordinate table is sorted before joining.",
    )
    parser.add_argument(
        "--progress-every",
        type=_non_negative_int,
        help="Print a progress line every N VCF lines (0 disables).",
    )
    parser.add_argument(
        "--log-dir",
        type=str,
        help="Also write diagnostics to <log-dir>/<command>.log.",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description=(
            "Derived allele frequencies and DFE-alpha site frequency spectra for GC-biased "
            "substitution classes. All inputs must be sorted by chromosome and position, "
            "with numeric chromosome names (1, not chr1)."
        ),
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    daf = subparsers.add_parser("daf", help="Per-gene derived allele frequencies.")
    _add_common_arguments(daf)
    daf.add_argument(
        "--genes",
        required=True,
        help="Tab-delimited file with name, chromosome, start and end for each gene.",
    )

    sfs = subparsers.add_parser("sfs", help="SFS and divergence counts for DFE-alpha.")
    _add_common_arguments(sfs)
    sfs.add_argument(
        "--sites",
        required=True,
        help="Tab-delimited file with chromosome and position (e.g. 0-fold or 4-fold sites).",
    )
    sfs.add_argument(
        "--region",
        help="Tab-delimited file with chromosome, start and end of regions to use (optional).",
    )
    return parser


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    return build_parser().parse_args(argv)


def apply_cli_configuration(args: argparse.Namespace) -> run.RunConfig:
    """Merge CLI flags over the environment and module defaults."""
    return run.get_run_config(
        {
            "assume_reference_ancestral": getattr(args, "assume_reference_ancestral", None),
            "check_order": getattr(args, "check_order", None),
            "progress_every": getattr(args, "progress_every", None),
            "log_directory": getattr(args, "log_dir", None),
        }
    )


def _echo_parameters(args: argparse.Namespace) -> None:
    lines = ["", "Parameters:"]
    for flag in ("coord", "div", "sites", "vcf", "genes", "region"):
        value = getattr(args, flag, None)
        if value is not None:
            lines.append(f"\t--{flag} {value}")
    lines.append(f"\t--gc {int(args.gc)} [{args.gc.label}]")
    lines.append("")
    print("\n".join(lines), file=sys.stderr, flush=True)


def _execute(args: argparse.Namespace, config: run.RunConfig) -> None:
    if args.command == "daf":
        rows, _stats = run.run_daf(
            genes_path=args.genes,
            coords_path=args.coord,
            divergence_path=args.div,
            vcf_path=args.vcf,
            mode=args.gc,
            config=config,
        )
        summarize_daf(rows).to_csv(sys.stdout, sep="\t", index=False, float_format="%f", na_rep="nan")
    else:
        spectrum, _stats = run.run_sfs(
            coords_path=args.coord,
            divergence_path=args.div,
            sites_path=args.sites,
            vcf_path=args.vcf,
            targets_path=args.region,
            mode=args.gc,
            config=config,
        )
        sys.stdout.write("\n".join(spectrum.format_lines()) + "\n")
    sys.stdout.flush()


def main(argv: Sequence[str] | None = None) -> int:
    started = time.time()
    args = parse_args(argv)
    config = apply_cli_configuration(args)

    if config.log_directory:
        log_context = logging_utils.run_logging(args.command, config.log_directory)
    else:
        log_context = contextlib.nullcontext()

    with log_context:
        _echo_parameters(args)
        try:
            _execute(args, config)
        except (ResourceError, ParseError) as exc:
            print(f"\nERROR: {exc}\n", file=sys.stderr, flush=True)
            return 1
        message = run.format_elapsed(time.time() - started)
        if message:
            print(message, file=sys.stderr, flush=True)
    return 0


def _main_with(command: str) -> None:
    sys.exit(main([command, *sys.argv[1:]]))


def daf_main() -> None:  # pragma: no cover - console script
    _main_with("daf")


def sfs_main() -> None:  # pragma: no cover - console script
    _main_with("sfs")


if __name__ == "__main__":  # pragma: no cover - CLI execution
    sys.exit(main())
