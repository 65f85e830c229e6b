"""
===========================================================
cli.py
Author: Veronica Scerra
Last Updated: 2026-03-24
===========================================================

Description:
    Command line entry point: line list CSV -> fitted incubation
    period table.

Example Usage:
    incubation-fit data/linelist.csv --family weibull --n-boot 500 --seed 1
    incubation-fit data/linelist.csv --family erlang --method mcmc \
        --reference-epoch 2018-12-01 --out erlang.csv
    incubation-fit data/linelist.csv --compare --n-boot 200
-----------------------------------------------------------
License: MIT
===========================================================
"""
from __future__ import annotations
import argparse
import sys
from typing import List, Optional

from dataio.linelist import LinelistConfig, load_linelist, subset_linelist, to_case_records

from .analysis import compare_families, estimate_incubation
from .cases import censoring_summary
from .config import EstimationConfig
from .errors import IncubationError
from .reporting import DEFAULT_QUANTILES


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="incubation-fit",
        description="Estimate the incubation period distribution from a line list "
                    "of exposure and symptom onset windows.",
    )
    parser.add_argument("csv", help="line list CSV (path or URL)")
    parser.add_argument("--family", default="lognormal",
                        help="lognormal, gamma, weibull or erlang (default: lognormal)")
    parser.add_argument("--method", default="direct-optimization",
                        help="direct-optimization (MLE + bootstrap) or mcmc")
    parser.add_argument("--n-boot", type=int, default=1000, help="bootstrap replicates")
    parser.add_argument("--seed", type=int, default=None, help="random seed")
    parser.add_argument("--quantiles", type=float, nargs="+", default=list(DEFAULT_QUANTILES),
                        help="probabilities to report")
    parser.add_argument("--ci-level", type=float, default=0.95)
    parser.add_argument("--mcmc-iterations", type=int, default=10000)
    parser.add_argument("--burn-in", type=float, default=0.2, help="MCMC burn-in fraction")
    parser.add_argument("--n-jobs", type=int, default=1, help="bootstrap worker processes")
    parser.add_argument("--reference-epoch", default="2019-12-01",
                        help="date imputed for missing exposure starts (YYYY-MM-DD)")
    parser.add_argument("--fever-only", action="store_true", help="keep cases with fever only")
    parser.add_argument("--exclude-location", nargs="*", default=None,
                        help="drop cases from these locations")
    parser.add_argument("--drop-malformed", action="store_true",
                        help="drop invalid rows with a warning instead of failing")
    parser.add_argument("--compare", action="store_true",
                        help="fit all four families and rank by AIC")
    parser.add_argument("--progress", action="store_true")
    parser.add_argument("--out", default=None, help="write the estimate table to this CSV")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        cfg = EstimationConfig(
            family=args.family,
            method=args.method,
            n_boot=args.n_boot,
            seed=args.seed,
            quantiles=tuple(args.quantiles),
            ci_level=args.ci_level,
            mcmc_iterations=args.mcmc_iterations,
            mcmc_burn_in_fraction=args.burn_in,
            n_jobs=args.n_jobs,
            progress=args.progress,
        )
        linelist_cfg = LinelistConfig(reference_epoch=args.reference_epoch,
                                      drop_malformed=args.drop_malformed)
    except ValueError as e:
        print(f"incubation-fit: {e}", file=sys.stderr)
        return 2

    try:
        df = load_linelist(args.csv, linelist_cfg)
        df = subset_linelist(df, fever_only=args.fever_only, exclude=args.exclude_location)
        cases = to_case_records(df)
        print(f"Loaded {len(cases)} cases: {censoring_summary(cases)}")

        if args.compare:
            table = compare_families(cases, cfg)
            print(table.to_string(index=False))
        else:
            result = estimate_incubation(cases, cfg)
            print(result.summary())
            table = result.to_frame()
    except (IncubationError, KeyError, RuntimeError, FileNotFoundError) as e:
        print(f"incubation-fit: {e}", file=sys.stderr)
        return 1

    if args.out:
        table.to_csv(args.out, index=not args.compare)
        print(f"Wrote {args.out}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
