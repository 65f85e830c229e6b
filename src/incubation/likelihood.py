"""
===========================================================
likelihood.py
Author: Veronica Scerra
Last Updated: 2026-03-06
===========================================================
Coarse-data likelihood for the incubation period
============================================

Each case contributes the incubation density averaged over
every (exposure, onset) pair consistent with its bounds,
exposure and onset being uniform within their windows:

    doubly interval-censored (both windows wide):
        [G(SR-EL) - G(SR-ER) - G(SL-EL) + G(SL-ER)] / (wE * wS)
    singly interval-censored (one window is a point):
        [F(SR-E) - F(SL-E)] / wS      or      [F(S-EL) - F(S-ER)] / wE
    exact (both windows are points):
        f(S - E)

with F the CDF, f the density and G(x) = int_0^x F(u) du.
Cases centred beyond the median use H(x) = int_x^inf S(u) du in
place of G; the second difference is the same, without the
cancellation G suffers where G(x) ~ x - mean.
A window narrower than width_tol collapses to its midpoint, so
no branch ever divides by a near-zero width.

Notes:
    - A zero, negative or non-finite contribution makes the total
      log-likelihood -inf (infeasible parameters). It is never raised.
    - A density singularity at zero (shape < 1 with a zero-length
      exact case) also counts as infeasible.

License: MIT
===========================================================
"""
from __future__ import annotations
import numpy as np
from typing import Dict

from .cases import WIDTH_TOL, CaseInput, CensoringType, as_bounds
from .distributions import Distribution


class IntervalLikelihood:
    """
    Log-likelihood of doubly interval-censored exposure/onset data.

    The case bounds are validated once; the object can then be
    evaluated for any number of candidate distributions.
    """
    def __init__(self, cases: CaseInput, width_tol: float = WIDTH_TOL):
        """
        Parameters:
        cases: sequence of CaseRecord or (n, 4) array of EL, ER, SL, SR
        width_tol: float. Windows narrower than this (days) are treated as points
        """
        if width_tol < 0:
            raise ValueError(f"width_tol must be non-negative, got {width_tol}")
        self.bounds = as_bounds(cases)
        self.width_tol = float(width_tol)

        el, er, sl, sr = self.bounds.T
        self._el, self._er, self._sl, self._sr = el, er, sl, sr
        self._we = er - el
        self._ws = sr - sl
        self._e_mid = 0.5 * (el + er)
        self._s_mid = 0.5 * (sl + sr)

        exp_wide = self._we > self.width_tol
        ons_wide = self._ws > self.width_tol
        self._doubly = exp_wide & ons_wide
        self._onset_only = ~exp_wide & ons_wide
        self._exposure_only = exp_wide & ~ons_wide
        self._exact = ~exp_wide & ~ons_wide

    @property
    def n_cases(self) -> int:
        return len(self.bounds)

    def branch_counts(self) -> Dict[str, int]:
        return {
            CensoringType.DOUBLY_INTERVAL.value: int(self._doubly.sum()),
            CensoringType.SINGLY_INTERVAL.value: int((self._onset_only | self._exposure_only).sum()),
            CensoringType.EXACT.value: int(self._exact.sum()),
        }

    def _interval_terms(self, dist: Distribution) -> np.ndarray:
        """Contributions of the interval-censored cases; zeros on exact rows"""
        out = np.zeros(self.n_cases)
        m = self._doubly
        if m.any():
            # beyond the median use H = int_x^inf S, which differs from G by a linear term
            tail = m & (self._s_mid - self._e_mid > float(dist.ppf(0.5)))
            for sub, G in ((m & ~tail, dist.integrated_cdf), (tail, dist.integrated_sf)):
                if not sub.any():
                    continue
                el, er, sl, sr = self._el[sub], self._er[sub], self._sl[sub], self._sr[sub]
                num = G(sr - el) - G(sr - er) - G(sl - el) + G(sl - er)
                out[sub] = num / (self._we[sub] * self._ws[sub])
        m = self._onset_only
        if m.any():
            e = self._e_mid[m]
            out[m] = (dist.cdf(self._sr[m] - e) - dist.cdf(self._sl[m] - e)) / self._ws[m]
        m = self._exposure_only
        if m.any():
            s = self._s_mid[m]
            out[m] = (dist.cdf(s - self._el[m]) - dist.cdf(s - self._er[m])) / self._we[m]
        return out

    def contributions(self, dist: Distribution) -> np.ndarray:
        """Per-case likelihood contributions (not logged)"""
        with np.errstate(divide="ignore", invalid="ignore", over="ignore"):
            out = self._interval_terms(dist)
            m = self._exact
            if m.any():
                out[m] = dist.pdf(self._s_mid[m] - self._e_mid[m])
        return out

    def log_contributions(self, dist: Distribution) -> np.ndarray:
        """Per-case log contributions; infeasible cases are -inf"""
        with np.errstate(divide="ignore", invalid="ignore", over="ignore"):
            terms = self._interval_terms(dist)
            out = np.full(self.n_cases, -np.inf)
            interval = ~self._exact
            ok = interval & (terms > 0)
            out[ok] = np.log(terms[ok])
            m = self._exact
            if m.any():
                out[m] = dist.logpdf(self._s_mid[m] - self._e_mid[m])
        out[~np.isfinite(out)] = -np.inf
        return out

    def log_likelihood(self, dist: Distribution) -> float:
        """Total log-likelihood; -inf if any case is infeasible"""
        if self.n_cases == 0:
            return 0.0
        lc = self.log_contributions(dist)
        if np.any(np.isneginf(lc)):
            return -np.inf
        return float(np.sum(lc))

    def __call__(self, dist: Distribution) -> float:
        return self.log_likelihood(dist)


def log_likelihood(dist: Distribution, cases: CaseInput, width_tol: float = WIDTH_TOL) -> float:
    """Convenience wrapper: total log-likelihood of cases under dist"""
    return IntervalLikelihood(cases, width_tol=width_tol).log_likelihood(dist)


def case_contributions(dist: Distribution, cases: CaseInput, width_tol: float = WIDTH_TOL) -> np.ndarray:
    return IntervalLikelihood(cases, width_tol=width_tol).contributions(dist)
