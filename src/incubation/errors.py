"""
===========================================================
errors.py
Author: Veronica Scerra
Last Updated: 2026-03-02
===========================================================

Description:
    Exceptions raised by the incubation period estimators.

Notes:
    - Infeasible parameters are NOT an exception: the likelihood
      returns -inf and the optimizer/sampler moves on.
    - Only OptimizationFailure and InsufficientReplicates are fatal
      to a fitting run.
-----------------------------------------------------------
License: MIT
===========================================================
"""
from __future__ import annotations
from typing import Optional


class IncubationError(Exception):
    """Base class for estimation errors"""


class MalformedRecord(IncubationError, ValueError):
    """A case violates its bound ordering (left > right) or has non-finite bounds."""

    def __init__(self, case_id: Optional[str], reason: str):
        self.case_id = case_id
        self.reason = reason
        label = f"case {case_id!r}" if case_id is not None else "case"
        super().__init__(f"Malformed {label}: {reason}")


class OptimizationFailure(IncubationError):
    """The point estimator found no finite-likelihood optimum within its budget."""

    def __init__(self, family: str, n_cases: int, detail: str = ""):
        self.family = family
        self.n_cases = n_cases
        self.detail = detail
        msg = f"Failed to fit {family} distribution to {n_cases} cases"
        if detail:
            msg += f": {detail}"
        super().__init__(msg)


class InsufficientReplicates(IncubationError):
    """Too many bootstrap replicates failed for the intervals to be trusted."""

    def __init__(self, requested: int, failed: int, max_failure_rate: float):
        self.requested = requested
        self.failed = failed
        self.max_failure_rate = max_failure_rate
        super().__init__(
            f"{failed} of {requested} bootstrap replicates failed "
            f"(allowed failure rate {max_failure_rate:.0%})"
        )


class EstimationCancelled(IncubationError):
    """A bootstrap or MCMC run was cancelled; partial results are discarded."""
