"""
===========================================================
mcmc.py
Author: Veronica Scerra
Last Updated: 2026-03-12
===========================================================

Description:
    Random-walk Metropolis sampler for the incubation period
    distribution. Needed for Erlang, whose integer shape makes
    the likelihood surface a step function for a continuous
    optimizer; usable for every family.

    Each iteration updates the two parameters in turn:
        - Erlang shape: +/-1 with equal probability
        - everything else: Gaussian step on the unconstrained
          scale (meanlog, log sdlog, log shape, log scale)
    Prior: flat on the unconstrained scale inside the family's
    parameter box (shape in 1..max_shape for Erlang).

Example Usage:
    from incubation.mcmc import fit_mcmc
    chain = fit_mcmc(cases, "erlang", n_iter=20000, seed=1)
    chain.retained            # post burn-in draws, (n, 2)
    chain.diagnostics()       # arviz ESS / MCSE table

Notes:
    - No automatic convergence check: the full chain is kept so
      callers can run their own diagnostics (trace plots, ESS).
    - Starts from the maximum likelihood estimate when it exists.
-----------------------------------------------------------
License: MIT
===========================================================
"""
from __future__ import annotations
import threading
import warnings
import numpy as np
import pandas as pd
import arviz as az
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple, Union
from tqdm import tqdm

from .cases import WIDTH_TOL, CaseInput
from .distributions import MAX_ERLANG_SHAPE, Distribution, Family
from .errors import EstimationCancelled, OptimizationFailure
from .estimation import fit_mle, moment_seed
from .likelihood import IntervalLikelihood

ACCEPTANCE_RANGE = (0.1, 0.7)


@dataclass
class McmcChain:
    """Raw Metropolis chain for one family.

    Attributes:
    family: Family
    samples: ndarray (n_iter, 2). Natural-scale parameters at every iteration
    log_likelihood: ndarray (n_iter,). Log-likelihood of each sample
    burn_in: int. Number of leading iterations discarded from summaries
    acceptance: dict. Acceptance rate per parameter
    seed: int, optional. Seed the chain was run with
    """
    family: Family
    samples: np.ndarray
    log_likelihood: np.ndarray
    burn_in: int
    acceptance: Dict[str, float] = field(default_factory=dict)
    seed: Optional[int] = None

    @property
    def param_names(self) -> Tuple[str, str]:
        return self.family.param_names

    @property
    def retained(self) -> np.ndarray:
        return self.samples[self.burn_in:]

    @property
    def n_retained(self) -> int:
        return len(self.retained)

    def distributions(self) -> List[Distribution]:
        return [Distribution(self.family, tuple(row)) for row in self.retained]

    def point_estimate(self) -> Distribution:
        """Posterior median of each parameter (Erlang shape rounded to an integer)"""
        med = np.median(self.retained, axis=0)
        if self.family is Family.ERLANG:
            med[0] = np.round(med[0])
        return Distribution(self.family, tuple(med))

    def credible_interval(self, level: float = 0.95) -> Dict[str, Tuple[float, float]]:
        lo, hi = 0.5 * (1 - level), 0.5 * (1 + level)
        q = np.quantile(self.retained, [lo, hi], axis=0)
        return {name: (float(q[0, i]), float(q[1, i])) for i, name in enumerate(self.param_names)}

    def to_frame(self) -> pd.DataFrame:
        """All iterations, with a burn-in flag"""
        df = pd.DataFrame(self.samples, columns=list(self.param_names))
        df["log_likelihood"] = self.log_likelihood
        df["burn_in"] = np.arange(len(df)) < self.burn_in
        return df

    def to_inference_data(self) -> az.InferenceData:
        """Retained draws as a single-chain arviz InferenceData"""
        posterior = {name: self.retained[None, :, i] for i, name in enumerate(self.param_names)}
        sample_stats = {"lp": self.log_likelihood[None, self.burn_in:]}
        return az.from_dict(posterior=posterior, sample_stats=sample_stats)

    def diagnostics(self) -> pd.DataFrame:
        return az.summary(self.to_inference_data(), kind="diagnostics")


def _initial_state(lik, family, max_shape, initial) -> Distribution:
    if initial is not None:
        return initial
    try:
        return fit_mle(lik, family, max_shape=max_shape).distribution
    except OptimizationFailure:
        return moment_seed(lik, family, max_shape=max_shape)


def fit_mcmc(
        cases: Union[CaseInput, IntervalLikelihood],
        family,
        n_iter: int = 10000,
        burn_in_fraction: float = 0.2,
        step: float = 0.1,
        seed: Optional[int] = None,
        max_shape: int = MAX_ERLANG_SHAPE,
        initial: Optional[Distribution] = None,
        width_tol: float = WIDTH_TOL,
        cancel_event: Optional[threading.Event] = None,
        progress: bool = False,
) -> McmcChain:
    """
    Run a Metropolis chain over one family's parameters.

    Parameters
    ----------
    cases : CaseRecords, (n, 4) bounds or a prepared IntervalLikelihood
    family : distribution family name or Family
    n_iter : int
        Total iterations, burn-in included
    burn_in_fraction : float
        Leading fraction of iterations excluded from summaries, in [0, 1)
    step : float
        Proposal sd on the unconstrained scale for continuous parameters
    seed : int, optional
        Seed of the chain's random stream
    max_shape : int
        Upper bound of the Erlang shape
    cancel_event : threading.Event, optional
        Checked every iteration; when set the run stops with EstimationCancelled

    Returns
    -------
    McmcChain
    """
    family = Family.parse(family)
    if n_iter < 1:
        raise ValueError(f"n_iter must be positive, got {n_iter}")
    if not 0 <= burn_in_fraction < 1:
        raise ValueError(f"burn_in_fraction must be in [0, 1), got {burn_in_fraction}")
    if step <= 0:
        raise ValueError(f"step must be positive, got {step}")
    lik = cases if isinstance(cases, IntervalLikelihood) else IntervalLikelihood(cases, width_tol)
    if lik.n_cases == 0:
        raise OptimizationFailure(family.value, 0, "no cases to sample from")

    box = family.unconstrained_bounds()
    erlang = family is Family.ERLANG
    if erlang:
        if max_shape < 1:
            raise ValueError(f"max_shape must be at least 1, got {max_shape}")
        box[0] = (1, max_shape)

    start = _initial_state(lik, family, max_shape, initial)
    x = start.to_unconstrained()
    if erlang:
        x[0] = float(min(max(int(start.params[0]), 1), max_shape))
    x = np.clip(x, *np.array(box).T)

    def to_dist(u: np.ndarray) -> Distribution:
        if erlang:
            return Distribution(family, (int(u[0]), np.exp(u[1])))
        return Distribution.from_unconstrained(family, u)

    current = to_dist(x)
    current_ll = lik.log_likelihood(current)
    if not np.isfinite(current_ll):
        raise OptimizationFailure(family.value, lik.n_cases, "chain start has zero likelihood")

    rng = np.random.default_rng(seed)
    samples = np.empty((n_iter, 2))
    lls = np.empty(n_iter)
    accepted = np.zeros(2, dtype=int)

    iterator = tqdm(range(n_iter), disable=not progress, desc=f"MCMC {family.label}")
    for it in iterator:
        if cancel_event is not None and cancel_event.is_set():
            raise EstimationCancelled(f"MCMC cancelled after {it} of {n_iter} iterations")
        for j in range(2):
            proposal = x.copy()
            if erlang and j == 0:
                proposal[0] += rng.choice((-1.0, 1.0))
            else:
                proposal[j] += step * rng.normal()
            lo, hi = box[j]
            # flat prior: zero density outside the box
            if not lo <= proposal[j] <= hi:
                continue
            cand = to_dist(proposal)
            cand_ll = lik.log_likelihood(cand)
            if np.log(rng.random()) < cand_ll - current_ll:
                x, current, current_ll = proposal, cand, cand_ll
                accepted[j] += 1
        samples[it] = current.params
        lls[it] = current_ll

    acceptance = {name: float(a / n_iter) for name, a in zip(family.param_names, accepted)}
    for name, rate in acceptance.items():
        if not ACCEPTANCE_RANGE[0] <= rate <= ACCEPTANCE_RANGE[1]:
            warnings.warn(f"MCMC acceptance rate for {name} is {rate:.2f}; "
                          f"consider adjusting the proposal step")
    burn_in = int(np.floor(burn_in_fraction * n_iter))
    return McmcChain(family, samples, lls, burn_in, acceptance, seed)
