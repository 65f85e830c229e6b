"""
===========================================================
bootstrap.py
Author: Veronica Scerra
Last Updated: 2026-03-16
===========================================================

Description:
    Nonparametric bootstrap of the maximum likelihood fit:
    resample cases with replacement, refit each resample, and
    keep every replicate's fitted distribution for percentile
    confidence intervals (see reporting.py).

Example Usage:
    from incubation.bootstrap import bootstrap_fit
    boot = bootstrap_fit(cases, "gamma", n_boot=1000, seed=7, n_jobs=4)
    boot.n_used, boot.n_failed

Notes:
    - One generator seeded once draws the whole (n_boot x n) index
      matrix, then one optimizer seed per replicate. A replicate is a
      pure function of its row, so serial and joblib-parallel runs give
      identical results.
    - Retries draw fresh resamples from default_rng([seed, i, attempt]).
    - Failed replicates are discarded and counted; too many failures
      raise InsufficientReplicates.
-----------------------------------------------------------
License: MIT
===========================================================
"""
from __future__ import annotations
import threading
import warnings
import numpy as np
import pandas as pd
from dataclasses import dataclass, field
from typing import Dict, List, Literal, Optional, Tuple
from joblib import Parallel, delayed
from tqdm import tqdm

from .cases import WIDTH_TOL, CaseInput
from .distributions import MAX_ERLANG_SHAPE, Distribution, Family
from .errors import EstimationCancelled, InsufficientReplicates, OptimizationFailure
from .estimation import PointFit, fit_mle
from .likelihood import IntervalLikelihood

FailurePolicy = Literal["discard", "retry"]


@dataclass(frozen=True)
class ReplicateOutcome:
    index: int
    params: Optional[Tuple[float, float]]
    attempts: int = 1
    error: str = ""

    @property
    def failed(self) -> bool:
        return self.params is None


@dataclass
class BootstrapResult:
    """Original fit plus one outcome per requested replicate (in replicate order)"""
    fit: PointFit
    outcomes: List[ReplicateOutcome]
    seed: int
    max_failure_rate: float = 0.1
    failures: Dict[int, str] = field(default_factory=dict)

    @property
    def family(self) -> Family:
        return self.fit.family

    @property
    def n_requested(self) -> int:
        return len(self.outcomes)

    @property
    def n_failed(self) -> int:
        return sum(o.failed for o in self.outcomes)

    @property
    def n_used(self) -> int:
        return self.n_requested - self.n_failed

    @property
    def n_retried(self) -> int:
        return sum(o.attempts > 1 for o in self.outcomes)

    def replicate_params(self) -> np.ndarray:
        """(n_used, 2) fitted parameters of the successful replicates"""
        rows = [o.params for o in self.outcomes if not o.failed]
        return np.array(rows, dtype=float).reshape(len(rows), 2)

    def distributions(self) -> List[Distribution]:
        return [Distribution(self.family, p) for p in self.replicate_params()]

    def to_frame(self) -> pd.DataFrame:
        names = list(self.family.param_names)
        records = []
        for o in self.outcomes:
            a, b = o.params if o.params is not None else (np.nan, np.nan)
            records.append({"replicate": o.index, names[0]: a, names[1]: b,
                            "attempts": o.attempts, "failed": o.failed, "error": o.error})
        return pd.DataFrame.from_records(records)


@dataclass(frozen=True)
class _ReplicateJob:
    """Everything one replicate needs; pickled to worker processes"""
    bounds: np.ndarray
    family: Family
    seed: int
    width_tol: float = WIDTH_TOL
    method: str = "Nelder-Mead"
    random_restarts: int = 0
    max_shape: int = MAX_ERLANG_SHAPE
    time_budget: Optional[float] = None
    on_failure: FailurePolicy = "discard"
    max_retries: int = 3

    def run(self, index: int, indices: np.ndarray, restart_seed: int) -> ReplicateOutcome:
        n = len(self.bounds)
        attempt = 1
        while True:
            try:
                fit = fit_mle(self.bounds[indices], self.family, width_tol=self.width_tol,
                              method=self.method, random_restarts=self.random_restarts,
                              seed=restart_seed, time_budget=self.time_budget,
                              max_shape=self.max_shape)
                return ReplicateOutcome(index, fit.distribution.params, attempt)
            except OptimizationFailure as e:
                if self.on_failure != "retry" or attempt > self.max_retries:
                    return ReplicateOutcome(index, None, attempt, str(e))
            rng = np.random.default_rng([self.seed, index, attempt])
            indices = rng.integers(0, n, size=n)
            restart_seed = int(rng.integers(0, 2 ** 32))
            attempt += 1


def resample_indices(n_cases: int, n_boot: int, seed: int) -> Tuple[np.ndarray, np.ndarray]:
    """Index matrix (n_boot, n_cases) and per-replicate optimizer seeds from one stream"""
    rng = np.random.default_rng(seed)
    indices = rng.integers(0, n_cases, size=(n_boot, n_cases))
    restart_seeds = rng.integers(0, 2 ** 32, size=n_boot)
    return indices, restart_seeds


def bootstrap_fit(
        cases: CaseInput,
        family,
        n_boot: int = 1000,
        seed: Optional[int] = None,
        width_tol: float = WIDTH_TOL,
        method: str = "Nelder-Mead",
        random_restarts: int = 0,
        max_shape: int = MAX_ERLANG_SHAPE,
        on_failure: FailurePolicy = "discard",
        max_retries: int = 3,
        max_failure_rate: float = 0.1,
        time_budget: Optional[float] = None,
        n_jobs: int = 1,
        cancel_event: Optional[threading.Event] = None,
        progress: bool = False,
        original_fit: Optional[PointFit] = None,
) -> BootstrapResult:
    """
    Fit the original cases, then refit n_boot resamples.

    Args:
        n_boot: number of replicates requested.
        seed: seeds the single stream of resample draws (None: fresh entropy,
            recorded on the result).
        on_failure: "discard" drops failed replicates; "retry" draws up to
            max_retries fresh resamples for that replicate first.
        max_failure_rate: largest tolerated fraction of failed replicates.
        time_budget: wall-clock seconds per replicate fit.
        n_jobs: joblib workers (1 = serial, -1 = all cores).
        cancel_event: checked between replicates; when set, pending work is
            dropped and EstimationCancelled raised.
        original_fit: reuse an existing fit of the original cases.

    Raises:
        OptimizationFailure: the original cases cannot be fitted.
        InsufficientReplicates: failed fraction exceeds max_failure_rate.
        EstimationCancelled: cancel_event was set.
    """
    family = Family.parse(family)
    if n_boot < 1:
        raise ValueError(f"n_boot must be positive, got {n_boot}")
    if on_failure not in ("discard", "retry"):
        raise ValueError(f"on_failure must be 'discard' or 'retry', got {on_failure!r}")
    if not 0 <= max_failure_rate <= 1:
        raise ValueError(f"max_failure_rate must be in [0, 1], got {max_failure_rate}")
    if n_jobs == 0:
        raise ValueError("n_jobs must be non-zero (1 = serial, -1 = all cores)")

    if seed is None:
        seed = int(np.random.SeedSequence().entropy % (2 ** 63))
    if seed < 0:
        raise ValueError(f"seed must be non-negative, got {seed}")

    lik = IntervalLikelihood(cases, width_tol)
    if original_fit is None:
        original_fit = fit_mle(lik, family, method=method, random_restarts=random_restarts,
                               seed=seed, max_shape=max_shape)

    indices, restart_seeds = resample_indices(lik.n_cases, n_boot, seed)
    job = _ReplicateJob(lik.bounds, family, seed, width_tol, method, random_restarts,
                        max_shape, time_budget, on_failure, max_retries)
    outcomes: List[Optional[ReplicateOutcome]] = [None] * n_boot
    desc = f"Bootstrap {family.label}"

    if n_jobs == 1:
        for i in tqdm(range(n_boot), disable=not progress, desc=desc):
            if cancel_event is not None and cancel_event.is_set():
                raise EstimationCancelled(f"bootstrap cancelled after {i} of {n_boot} replicates")
            outcomes[i] = job.run(i, indices[i], int(restart_seeds[i]))
    else:
        runs = Parallel(n_jobs=n_jobs, return_as="generator")(
            delayed(job.run)(i, indices[i], int(restart_seeds[i])) for i in range(n_boot))
        for done, outcome in enumerate(tqdm(runs, total=n_boot, disable=not progress, desc=desc)):
            if cancel_event is not None and cancel_event.is_set():
                runs.close()    # aborts the pending joblib tasks
                raise EstimationCancelled(f"bootstrap cancelled after {done} of {n_boot} replicates")
            outcomes[outcome.index] = outcome

    result = BootstrapResult(original_fit, outcomes, seed, max_failure_rate,
                             {o.index: o.error for o in outcomes if o.failed})
    if result.n_failed:
        warnings.warn(f"{result.n_failed} of {n_boot} bootstrap replicates failed to fit "
                      f"({family.label}); intervals use the remaining {result.n_used}")
    if result.n_failed > max_failure_rate * n_boot:
        raise InsufficientReplicates(n_boot, result.n_failed, max_failure_rate)
    return result
