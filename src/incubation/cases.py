"""
===========================================================
cases.py
Author: Veronica Scerra
Last Updated: 2026-03-02
===========================================================

Description:
    Case records for incubation period estimation. Each case
    carries bounds on exposure time and on symptom onset time,
    in days relative to a common (caller-chosen) epoch.

Example Usage:
    from incubation.cases import CaseRecord, as_bounds
    cases = [CaseRecord(0, 5, 5, 10), CaseRecord(1, 1, 4, 4)]
    bounds = as_bounds(cases)    # (n, 4) array: EL, ER, SL, SR

Notes:
    - Records are immutable; a bootstrap resample is a new array
      of rows taken (with repetition) from the original bounds.
    - Overlapping windows (ER > SL) and zero-width windows are valid.
-----------------------------------------------------------
License: MIT
===========================================================
"""
from __future__ import annotations
import numpy as np
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Sequence, Union

from .errors import MalformedRecord

# windows narrower than this (days) are treated as a single point
WIDTH_TOL = 1e-4

BOUND_COLUMNS = ("EL", "ER", "SL", "SR")


class CensoringType(Enum):
    """Which likelihood term a case contributes through"""
    DOUBLY_INTERVAL = "doubly_interval"
    SINGLY_INTERVAL = "singly_interval"
    EXACT = "exact"


@dataclass(frozen=True)
class CaseRecord:
    """Exposure and onset bounds for a single case.

    Attributes:
    exposure_left, exposure_right: float. Window in which exposure occurred
    onset_left, onset_right: float. Window in which symptoms began
    case_id: str, optional. Identifier used in error messages
    """
    exposure_left: float
    exposure_right: float
    onset_left: float
    onset_right: float
    case_id: Optional[str] = None

    def __post_init__(self):
        _check_row(self.bounds, self.case_id)

    @property
    def bounds(self) -> tuple:
        return (self.exposure_left, self.exposure_right, self.onset_left, self.onset_right)

    @property
    def exposure_width(self) -> float:
        return self.exposure_right - self.exposure_left

    @property
    def onset_width(self) -> float:
        return self.onset_right - self.onset_left

    @property
    def midpoint_incubation(self) -> float:
        """Onset midpoint minus exposure midpoint"""
        return 0.5 * (self.onset_left + self.onset_right) - 0.5 * (self.exposure_left + self.exposure_right)

    def censoring_type(self, width_tol: float = WIDTH_TOL) -> CensoringType:
        wide = (self.exposure_width > width_tol) + (self.onset_width > width_tol)
        return _TYPE_BY_WIDE_COUNT[int(wide)]


_TYPE_BY_WIDE_COUNT = {
    0: CensoringType.EXACT,
    1: CensoringType.SINGLY_INTERVAL,
    2: CensoringType.DOUBLY_INTERVAL,
}

CaseInput = Union[np.ndarray, Sequence[CaseRecord]]


def _check_row(row, case_id) -> None:
    el, er, sl, sr = (float(v) for v in row)
    if not np.all(np.isfinite([el, er, sl, sr])):
        raise MalformedRecord(case_id, f"non-finite bounds {(el, er, sl, sr)}")
    if el > er:
        raise MalformedRecord(case_id, f"exposure_left {el} > exposure_right {er}")
    if sl > sr:
        raise MalformedRecord(case_id, f"onset_left {sl} > onset_right {sr}")


def validate_bounds(bounds: np.ndarray, case_ids: Optional[Sequence] = None) -> None:
    """Raise MalformedRecord for the first row violating left <= right."""
    bounds = np.asarray(bounds, dtype=float)
    bad = ~np.all(np.isfinite(bounds), axis=1)
    bad |= bounds[:, 0] > bounds[:, 1]
    bad |= bounds[:, 2] > bounds[:, 3]
    if np.any(bad):
        i = int(np.flatnonzero(bad)[0])
        case_id = case_ids[i] if case_ids is not None else str(i)
        _check_row(bounds[i], case_id)


def as_bounds(cases: CaseInput) -> np.ndarray:
    """Return cases as a validated (n, 4) float array of EL, ER, SL, SR.

    Accepts a sequence of CaseRecord or an array-like of shape (n, 4).
    """
    if isinstance(cases, np.ndarray):
        bounds = np.asarray(cases, dtype=float)
        if bounds.ndim != 2 or bounds.shape[1] != 4:
            raise ValueError(f"bounds must have shape (n, 4), got {bounds.shape}")
        validate_bounds(bounds)
        return bounds
    records = list(cases)
    if records and not isinstance(records[0], CaseRecord):
        return as_bounds(np.asarray(records, dtype=float))
    # CaseRecord already validated itself on construction
    return np.array([r.bounds for r in records], dtype=float).reshape(len(records), 4)


def records_from_bounds(bounds: np.ndarray, case_ids: Optional[Sequence] = None) -> List[CaseRecord]:
    bounds = np.asarray(bounds, dtype=float)
    if case_ids is None:
        case_ids = [str(i) for i in range(len(bounds))]
    return [CaseRecord(*map(float, row), case_id=cid) for row, cid in zip(bounds, case_ids)]


def midpoint_incubation(bounds: np.ndarray) -> np.ndarray:
    bounds = np.asarray(bounds, dtype=float)
    return 0.5 * (bounds[:, 2] + bounds[:, 3]) - 0.5 * (bounds[:, 0] + bounds[:, 1])


def censoring_types(bounds: np.ndarray, width_tol: float = WIDTH_TOL) -> np.ndarray:
    """Vectorized censoring classification; returns an object array of CensoringType."""
    bounds = np.asarray(bounds, dtype=float)
    wide = ((bounds[:, 1] - bounds[:, 0]) > width_tol).astype(int)
    wide += ((bounds[:, 3] - bounds[:, 2]) > width_tol).astype(int)
    return np.array([_TYPE_BY_WIDE_COUNT[w] for w in wide], dtype=object)


def censoring_summary(cases: CaseInput, width_tol: float = WIDTH_TOL) -> Dict[str, int]:
    """Count cases by censoring type"""
    types = censoring_types(as_bounds(cases), width_tol)
    return {t.value: int(np.sum(types == t)) for t in CensoringType}
