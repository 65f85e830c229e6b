"""
===========================================================
estimation.py
Author: Veronica Scerra
Last Updated: 2026-03-09
===========================================================

Description:
    Maximum likelihood fit of an incubation period distribution
    to doubly interval-censored cases:
      1) moment-matched starting point from window midpoints
      2) scipy.optimize.minimize on the unconstrained scale
         (meanlog, log sdlog) or (log shape, log scale)
      3) optional random restarts around the starting point
    Erlang fits profile the likelihood over integer shapes with a
    bounded 1-D search of log scale for each shape.

Example Usage:
    from incubation.estimation import fit_mle
    fit = fit_mle(cases, "lognormal", random_restarts=2, seed=42)
    fit.distribution, fit.log_likelihood, fit.aic

Notes:
    - Seeding rule: d_i = (SL+SR)/2 - (EL+ER)/2 clipped below at
      MIN_MIDPOINT days; mean m of d; sd s of d (ddof=1, 0 for one
      case) floored at 0.25*m; start = from_moments(m, s).
    - Infeasible parameters get a large finite penalty so the
      simplex keeps moving.
    - Never returns a non-converged fit: raises OptimizationFailure.
-----------------------------------------------------------
License: MIT
===========================================================
"""
from __future__ import annotations
import time
import warnings
import numpy as np
from dataclasses import dataclass
from typing import Optional, Union
from scipy.optimize import minimize, minimize_scalar

from .cases import WIDTH_TOL, CaseInput, midpoint_incubation
from .distributions import MAX_ERLANG_SHAPE, Distribution, Family
from .errors import OptimizationFailure
from .likelihood import IntervalLikelihood

MIN_MIDPOINT = 0.1
SD_FLOOR_FRACTION = 0.25
RESTART_SD = 0.5
_PENALTY = 1e10
_BOUNDED_METHODS = {"Nelder-Mead", "L-BFGS-B", "Powell", "TNC", "SLSQP", "trust-constr"}


@dataclass(frozen=True)
class PointFit:
    """Maximum likelihood estimate for one family and dataset"""
    distribution: Distribution
    log_likelihood: float
    n_cases: int
    n_iterations: int = 0
    n_evaluations: int = 0
    message: str = ""

    @property
    def family(self) -> Family:
        return self.distribution.family

    @property
    def params(self):
        return self.distribution.param_dict()

    @property
    def aic(self) -> float:
        return 2 * 2 - 2 * self.log_likelihood

    @property
    def bic(self) -> float:
        return 2 * np.log(self.n_cases) - 2 * self.log_likelihood


class _BudgetExceeded(Exception):
    pass


def moment_seed(cases: Union[CaseInput, IntervalLikelihood], family,
                max_shape: int = MAX_ERLANG_SHAPE) -> Distribution:
    """Moment-matched starting distribution from midpoint incubation times"""
    bounds = cases.bounds if isinstance(cases, IntervalLikelihood) else cases
    d = np.maximum(midpoint_incubation(bounds), MIN_MIDPOINT)
    m = float(np.mean(d))
    s = float(np.std(d, ddof=1)) if len(d) > 1 else 0.0
    s = max(s, SD_FLOOR_FRACTION * m)
    return Distribution.from_moments(family, m, s, max_shape=max_shape)


def _deadline(time_budget: Optional[float]) -> Optional[float]:
    return None if time_budget is None else time.monotonic() + float(time_budget)


def _check_deadline(deadline: Optional[float]) -> None:
    if deadline is not None and time.monotonic() > deadline:
        raise _BudgetExceeded()


def fit_mle(
        cases: Union[CaseInput, IntervalLikelihood],
        family,
        width_tol: float = WIDTH_TOL,
        method: str = "Nelder-Mead",
        random_restarts: int = 0,
        seed: Optional[int] = None,
        max_iter: int = 5000,
        time_budget: Optional[float] = None,
        max_shape: int = MAX_ERLANG_SHAPE,
        initial: Optional[Distribution] = None,
) -> PointFit:
    """
    Maximize the coarse-data likelihood over one family's parameters.

    Args:
        cases: CaseRecords, (n, 4) bounds, or a prepared IntervalLikelihood.
        family: "lognormal", "gamma", "weibull" or "erlang" (or a Family).
        method: scipy.optimize.minimize method for the continuous families.
        random_restarts: extra starts perturbed around the moment seed.
        seed: seed for the restart perturbations.
        time_budget: wall-clock seconds; exceeding it is a failure.
        max_shape: upper bound of the Erlang shape search.
        initial: starting distribution overriding the moment seed.

    Returns:
        PointFit with the fitted distribution and achieved log-likelihood.

    Raises:
        OptimizationFailure: no converged, finite-likelihood optimum.
    """
    family = Family.parse(family)
    lik = cases if isinstance(cases, IntervalLikelihood) else IntervalLikelihood(cases, width_tol)
    n = lik.n_cases
    if n == 0:
        raise OptimizationFailure(family.value, 0, "no cases to fit")
    deadline = _deadline(time_budget)

    try:
        if family is Family.ERLANG:
            return _fit_erlang_profile(lik, max_shape, deadline)
        return _fit_continuous(lik, family, method, random_restarts, seed,
                               max_iter, deadline, initial)
    except _BudgetExceeded:
        raise OptimizationFailure(family.value, n, f"exceeded time budget of {time_budget}s") from None


def _fit_continuous(lik, family, method, random_restarts, seed, max_iter, deadline, initial) -> PointFit:
    n = lik.n_cases
    start = initial if initial is not None else moment_seed(lik, family)
    box = family.unconstrained_bounds()
    lo, hi = np.array(box).T
    x0 = np.clip(start.to_unconstrained(), lo, hi)

    def objective(x: np.ndarray) -> float:
        _check_deadline(deadline)
        if not np.all(np.isfinite(x)):
            return _PENALTY
        ll = lik.log_likelihood(Distribution.from_unconstrained(family, np.clip(x, lo, hi)))
        return -ll if np.isfinite(ll) else _PENALTY

    rng = np.random.default_rng(seed)
    starts = [x0]
    for _ in range(random_restarts):
        starts.append(np.clip(x0 + rng.normal(0.0, RESTART_SD, size=x0.shape), lo, hi))

    if method == "Nelder-Mead":
        options = {"maxiter": max_iter, "maxfev": 2 * max_iter, "xatol": 1e-6, "fatol": 1e-8}
    else:
        options = {"maxiter": max_iter}

    best = None
    messages = []
    for x in starts:
        if method in _BOUNDED_METHODS:
            res = minimize(objective, x, method=method, bounds=box, options=options)
        else:
            res = minimize(objective, x, method=method, options=options)
        messages.append(str(res.message))
        if not res.success or not np.isfinite(res.fun) or res.fun >= _PENALTY:
            continue
        if best is None or res.fun < best.fun:
            best = res

    if best is None:
        raise OptimizationFailure(family.value, n, "; ".join(sorted(set(messages))))

    x_best = np.clip(best.x, lo, hi)
    dist = Distribution.from_unconstrained(family, x_best)
    ll = lik.log_likelihood(dist)
    _warn_if_on_boundary(family, x_best, lo, hi, n)
    if not np.isfinite(ll):
        raise OptimizationFailure(family.value, n, "optimum has non-finite log-likelihood")
    return PointFit(dist, ll, n, int(getattr(best, "nit", 0)), int(getattr(best, "nfev", 0)),
                    str(best.message))


def _warn_if_on_boundary(family, x, lo, hi, n_cases) -> None:
    span = hi - lo
    at_edge = (x - lo < 1e-6 * span) | (hi - x < 1e-6 * span)
    if np.any(at_edge):
        names = [name for name, edge in zip(family.param_names, at_edge) if edge]
        warnings.warn(
            f"{family.label} fit to {n_cases} cases stopped at the parameter bound for "
            f"{', '.join(names)}; the likelihood may be unbounded (e.g. a lone exact case)"
        )


def profile_erlang(lik: IntervalLikelihood, max_shape: int = MAX_ERLANG_SHAPE,
                   deadline: Optional[float] = None):
    """Best log scale and log-likelihood for each integer shape 1..max_shape.

    Returns a list of (shape, scale, log_likelihood, n_evaluations).
    """
    seed_mean = moment_seed(lik, Family.GAMMA).mean()
    log_lo, log_hi = Family.ERLANG.unconstrained_bounds()[1]
    rows = []
    for k in range(1, max_shape + 1):
        centre = np.log(seed_mean / k)
        search = (max(centre - 5.0, log_lo), min(centre + 5.0, log_hi))

        def objective(log_scale: float) -> float:
            _check_deadline(deadline)
            ll = lik.log_likelihood(Distribution(Family.ERLANG, (k, np.exp(log_scale))))
            return -ll if np.isfinite(ll) else _PENALTY

        res = minimize_scalar(objective, bounds=search,
                              method="bounded", options={"xatol": 1e-8})
        ll = -res.fun if res.fun < _PENALTY else -np.inf
        rows.append((k, float(np.exp(res.x)), float(ll), int(res.nfev)))
    return rows


def _fit_erlang_profile(lik, max_shape, deadline) -> PointFit:
    if max_shape < 1:
        raise ValueError(f"max_shape must be at least 1, got {max_shape}")
    rows = profile_erlang(lik, max_shape, deadline)
    finite = [r for r in rows if np.isfinite(r[2])]
    if not finite:
        raise OptimizationFailure(Family.ERLANG.value, lik.n_cases,
                                  f"no finite log-likelihood for shapes 1..{max_shape}")
    k, scale, ll, _ = max(finite, key=lambda r: r[2])
    dist = Distribution(Family.ERLANG, (k, scale))
    return PointFit(dist, lik.log_likelihood(dist), lik.n_cases, max_shape,
                    sum(r[3] for r in rows), f"profile over shapes 1..{max_shape}")
