"""
===========================================================
config.py
Author: Veronica Scerra
Last Updated: 2026-03-18
===========================================================

Description:
    Options for one incubation period analysis run.

Example Usage:
    from incubation.config import EstimationConfig
    cfg = EstimationConfig(family="weibull", n_boot=500, seed=20200101)
    cfg = EstimationConfig.from_dict({"family": "erlang", "method": "mcmc"})

Notes:
    - "direct-optimization" and "mle" are the same method.
    - Erlang with direct optimization uses the profile likelihood
      over integer shapes.
-----------------------------------------------------------
License: MIT
===========================================================
"""
from __future__ import annotations
from dataclasses import asdict, dataclass, fields
from typing import Any, Dict, Literal, Mapping, Optional, Tuple

from .cases import WIDTH_TOL
from .distributions import MAX_ERLANG_SHAPE, Family
from .reporting import DEFAULT_QUANTILES, check_quantiles

Method = Literal["direct-optimization", "mcmc"]

_METHOD_ALIASES = {
    "direct-optimization": "direct-optimization",
    "direct_optimization": "direct-optimization",
    "mle": "direct-optimization",
    "optimization": "direct-optimization",
    "mcmc": "mcmc",
}


@dataclass
class EstimationConfig:
    """
    Configuration for fitting one distribution family
    """
    family: Family = Family.LOGNORMAL
    method: Method = "direct-optimization"
    # bootstrap (direct optimization)
    n_boot: int = 1000
    on_failure: Literal["discard", "retry"] = "discard"
    max_retries: int = 3
    max_failure_rate: float = 0.1
    replicate_time_budget: Optional[float] = None   # seconds per replicate fit
    n_jobs: int = 1                                 # joblib workers; -1 = all cores
    # reported quantities
    quantiles: Tuple[float, ...] = DEFAULT_QUANTILES
    ci_level: float = 0.95
    # reproducibility
    seed: Optional[int] = None
    # optimizer
    optimizer: str = "Nelder-Mead"
    random_restarts: int = 0
    # MCMC
    mcmc_iterations: int = 10000
    mcmc_burn_in_fraction: float = 0.2
    mcmc_step: float = 0.1           # proposal sd on the unconstrained scale
    # likelihood
    width_tol: float = WIDTH_TOL     # days; narrower windows collapse to a point
    max_erlang_shape: int = MAX_ERLANG_SHAPE
    progress: bool = False

    def __post_init__(self):
        self.family = Family.parse(self.family)
        key = str(self.method).strip().lower()
        if key not in _METHOD_ALIASES:
            raise ValueError(f"Unknown fitting method: {self.method!r}. "
                             f"Expected 'direct-optimization' or 'mcmc'")
        self.method = _METHOD_ALIASES[key]
        self.quantiles = check_quantiles(self.quantiles)

        if self.n_boot < 1:
            raise ValueError(f"n_boot must be a positive integer, got {self.n_boot}")
        if self.on_failure not in ("discard", "retry"):
            raise ValueError(f"on_failure must be 'discard' or 'retry', got {self.on_failure!r}")
        if self.max_retries < 0:
            raise ValueError(f"max_retries must be non-negative, got {self.max_retries}")
        if not 0 <= self.max_failure_rate <= 1:
            raise ValueError(f"max_failure_rate must be in [0, 1], got {self.max_failure_rate}")
        if self.replicate_time_budget is not None and self.replicate_time_budget <= 0:
            raise ValueError("replicate_time_budget must be positive when given")
        if self.n_jobs == 0:
            raise ValueError("n_jobs must be non-zero (1 = serial, -1 = all cores)")
        if not 0 < self.ci_level < 1:
            raise ValueError(f"ci_level must be in (0, 1), got {self.ci_level}")
        if self.seed is not None and self.seed < 0:
            raise ValueError(f"seed must be non-negative, got {self.seed}")
        if self.random_restarts < 0:
            raise ValueError(f"random_restarts must be non-negative, got {self.random_restarts}")
        if self.mcmc_iterations < 1:
            raise ValueError(f"mcmc_iterations must be positive, got {self.mcmc_iterations}")
        if not 0 <= self.mcmc_burn_in_fraction < 1:
            raise ValueError(f"mcmc_burn_in_fraction must be in [0, 1), got {self.mcmc_burn_in_fraction}")
        if self.mcmc_step <= 0:
            raise ValueError(f"mcmc_step must be positive, got {self.mcmc_step}")
        if self.width_tol < 0:
            raise ValueError(f"width_tol must be non-negative, got {self.width_tol}")
        if self.max_erlang_shape < 1:
            raise ValueError(f"max_erlang_shape must be at least 1, got {self.max_erlang_shape}")

    @classmethod
    def from_dict(cls, options: Mapping[str, Any]) -> "EstimationConfig":
        """Build from a plain mapping (parsed JSON, CLI arguments); unknown keys are an error"""
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(options) - known)
        if unknown:
            raise ValueError(f"Unknown configuration options: {unknown}")
        opts = dict(options)
        if "quantiles" in opts:
            opts["quantiles"] = tuple(opts["quantiles"])
        return cls(**opts)

    def to_dict(self) -> Dict[str, Any]:
        out = asdict(self)
        out["family"] = self.family.value
        out["quantiles"] = list(self.quantiles)
        return out
