"""
===========================================================
reporting.py
Author: Veronica Scerra
Last Updated: 2026-03-18
===========================================================

Description:
    Turn fitted distributions into the standard estimate table:
    one row per parameter, the mean, and each requested quantile,
    with a point estimate and a confidence (bootstrap) or credible
    (MCMC) interval.

        name     point   ci_low   ci_high
        meanlog  ...
        sdlog    ...
        mean     ...
        p2.5     ...
        p50      ...

Example Usage:
    from incubation.reporting import report_bootstrap
    result = report_bootstrap(boot, quantiles=(0.025, 0.5, 0.975))
    result.to_frame()
    print(result.summary())

Notes:
    - Bootstrap: point from the fit to the original cases; interval
      from empirical percentiles over replicate fits (no normal
      approximation).
    - MCMC: point is the posterior median; interval from empirical
      quantiles of the retained draws.
-----------------------------------------------------------
License: MIT
===========================================================
"""
from __future__ import annotations
import numpy as np
import pandas as pd
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple
from scipy import special, stats

from .bootstrap import BootstrapResult
from .distributions import Distribution, Family
from .mcmc import McmcChain

DEFAULT_QUANTILES = (0.025, 0.05, 0.25, 0.5, 0.75, 0.95, 0.975)
# column names of the exported estimate table
RECORD_COLUMNS = ("parameter_or_quantile_name", "point_estimate", "ci_low", "ci_high")


@dataclass(frozen=True)
class EstimateRow:
    name: str
    point: float
    ci_low: float
    ci_high: float


def quantile_label(p: float) -> str:
    """0.025 -> 'p2.5', 0.5 -> 'p50'"""
    return f"p{100 * p:g}"


def check_quantiles(quantiles: Sequence[float]) -> Tuple[float, ...]:
    qs = tuple(float(q) for q in quantiles)
    if not qs:
        raise ValueError("at least one quantile is required")
    if any(not 0 < q < 1 for q in qs):
        raise ValueError(f"quantiles must lie in (0, 1), got {qs}")
    if any(b <= a for a, b in zip(qs, qs[1:])):
        raise ValueError(f"quantiles must be strictly increasing, got {qs}")
    return qs


def statistic_names(family: Family, quantiles: Sequence[float]) -> List[str]:
    return list(family.param_names) + ["mean"] + [quantile_label(q) for q in quantiles]


def statistics_matrix(family: Family, params: np.ndarray, quantiles: Sequence[float]) -> np.ndarray:
    """
    Parameters, mean and quantiles for many parameter pairs at once.

    params: (m, 2) array in family.param_names order.
    Returns an (m, 3 + len(quantiles)) array ordered as statistic_names.
    """
    family = Family.parse(family)
    params = np.asarray(params, dtype=float).reshape(-1, 2)
    a, b = params[:, :1], params[:, 1:]
    q = np.asarray(quantiles, dtype=float)[None, :]

    if family is Family.LOGNORMAL:
        mean = np.exp(a + 0.5 * b ** 2)
        qv = np.exp(a + b * special.ndtri(q))
    elif family is Family.WEIBULL:
        mean = b * special.gamma(1.0 + 1.0 / a)
        qv = b * (-np.log1p(-q)) ** (1.0 / a)
    else:
        mean = a * b
        qv = stats.gamma.ppf(q, a, scale=b)
    return np.hstack([params, mean, qv])


def _interval(values: np.ndarray, ci_level: float) -> Tuple[np.ndarray, np.ndarray]:
    alpha = 1.0 - ci_level
    lo, hi = np.quantile(values, [alpha / 2, 1 - alpha / 2], axis=0)
    return lo, hi


def _rows(names, point, lo, hi) -> Tuple[EstimateRow, ...]:
    return tuple(EstimateRow(n, float(p), float(l), float(h)) for n, p, l, h in zip(names, point, lo, hi))


@dataclass(frozen=True)
class FitResult:
    """Immutable outcome of one (cases, family, method) fit"""
    family: Family
    method: str
    params: Dict[str, float]
    log_likelihood: float
    n_cases: int
    estimates: Tuple[EstimateRow, ...]
    ci_level: float = 0.95
    n_replicates: int = 0
    n_failed: int = 0
    chain: Optional[McmcChain] = field(default=None, repr=False, compare=False)

    @property
    def n_used(self) -> int:
        return self.n_replicates - self.n_failed

    @property
    def aic(self) -> float:
        return 2 * len(self.params) - 2 * self.log_likelihood

    @property
    def bic(self) -> float:
        return len(self.params) * np.log(self.n_cases) - 2 * self.log_likelihood

    @property
    def distribution(self) -> Distribution:
        return Distribution(self.family, tuple(self.params.values()))

    def estimate(self, name: str) -> EstimateRow:
        for row in self.estimates:
            if row.name == name:
                return row
        raise KeyError(f"No estimate named {name!r}; available: {[r.name for r in self.estimates]}")

    def to_records(self) -> List[Dict[str, float]]:
        return [dict(zip(RECORD_COLUMNS, (r.name, r.point, r.ci_low, r.ci_high)))
                for r in self.estimates]

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame.from_records(self.to_records()).set_index(RECORD_COLUMNS[0])

    def summary(self) -> str:
        pct = f"{100 * self.ci_level:g}%"
        interval = "credible" if self.method == "mcmc" else "bootstrap"
        lines = [
            f"Incubation period: {self.family.label} ({self.method})",
            "=" * 50,
            f"Cases: {self.n_cases}",
            f"Log-likelihood: {self.log_likelihood:.3f}   AIC: {self.aic:.2f}   BIC: {self.bic:.2f}",
        ]
        if self.method == "mcmc":
            lines.append(f"Retained draws: {self.n_replicates}")
        else:
            lines.append(f"Replicates: {self.n_used} used of {self.n_replicates} ({self.n_failed} failed)")
        lines.append(f"{'':<10}{'estimate':>10}  {pct + ' ' + interval + ' interval':>28}")
        for r in self.estimates:
            lines.append(f"{r.name:<10}{r.point:>10.3f}  ({r.ci_low:>8.3f}, {r.ci_high:>8.3f})")
        return "\n".join(lines)


def report_bootstrap(boot: BootstrapResult,
                     quantiles: Sequence[float] = DEFAULT_QUANTILES,
                     ci_level: float = 0.95) -> FitResult:
    """Point estimates from the original fit, percentile intervals from the replicates"""
    qs = check_quantiles(quantiles)
    family = boot.family
    point = statistics_matrix(family, np.array([boot.fit.distribution.params]), qs)[0]
    if boot.n_used == 0:
        lo = hi = np.full_like(point, np.nan)
    else:
        lo, hi = _interval(statistics_matrix(family, boot.replicate_params(), qs), ci_level)
    return FitResult(
        family=family,
        method="direct-optimization",
        params=boot.fit.params,
        log_likelihood=boot.fit.log_likelihood,
        n_cases=boot.fit.n_cases,
        estimates=_rows(statistic_names(family, qs), point, lo, hi),
        ci_level=ci_level,
        n_replicates=boot.n_requested,
        n_failed=boot.n_failed,
    )


def report_chain(chain: McmcChain, log_likelihood: float, n_cases: int,
                 quantiles: Sequence[float] = DEFAULT_QUANTILES,
                 ci_level: float = 0.95) -> FitResult:
    """Posterior medians and equal-tailed credible intervals from the retained draws.

    log_likelihood is reported at the posterior-median parameters.
    """
    qs = check_quantiles(quantiles)
    draws = statistics_matrix(chain.family, chain.retained, qs)
    point = np.median(draws, axis=0)
    if chain.family is Family.ERLANG:
        point[0] = np.round(point[0])
    lo, hi = _interval(draws, ci_level)
    return FitResult(
        family=chain.family,
        method="mcmc",
        params=chain.point_estimate().param_dict(),
        log_likelihood=log_likelihood,
        n_cases=n_cases,
        estimates=_rows(statistic_names(chain.family, qs), point, lo, hi),
        ci_level=ci_level,
        n_replicates=chain.n_retained,
        n_failed=0,
        chain=chain,
    )
