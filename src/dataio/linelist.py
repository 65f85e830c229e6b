"""
===========================================================
linelist.py
Author: Veronica Scerra
Last Updated: 2026-03-22
===========================================================

Description:
   Preprocessing step to take a case line list (one row per
   case, calendar dates for exposure and symptom onset windows)
   to the elapsed-day bounds EL, ER, SL, SR used by the
   incubation period estimators.

   Default-filling rules for missing dates:
     - exposure start (EL) missing -> reference epoch
     - onset end (SR) missing      -> hospital presentation date
     - exposure end (ER) missing   -> onset end (SR)
     - onset start (SL) missing    -> exposure start (EL)

Example Usage:
    from dataio.linelist import LinelistConfig, load_linelist, to_case_records
    df = load_linelist("data/linelist.csv", LinelistConfig(reference_epoch="2018-12-01"))
    cases = to_case_records(subset_linelist(df, fever_only=True))

Notes:
    - Days are fractional days since the reference epoch.
    - The sensitivity analysis with an earlier epoch only changes
      `reference_epoch`; nothing downstream depends on the calendar.
-----------------------------------------------------------
License: MIT
===========================================================
"""

from __future__ import annotations
import io
import warnings
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional, Union
import numpy as np
import pandas as pd
import requests

from incubation.cases import BOUND_COLUMNS, CaseRecord
from incubation.errors import MalformedRecord

LinelistSource = Union[str, Path, pd.DataFrame]


@dataclass
class LinelistConfig:
    """
    Configuration for line list preprocessing
    """
    exposure_left_col: str = "exposure_start"
    exposure_right_col: str = "exposure_end"
    onset_left_col: str = "onset_start"
    onset_right_col: str = "onset_end"
    # fallback for a missing onset end
    hospital_col: Optional[str] = "hospital_visit"
    id_col: Optional[str] = "id"
    # optional subsetting columns, carried into the tidy frame when present
    fever_col: Optional[str] = "fever"
    location_col: Optional[str] = "location"
    # imputed exposure start for cases without one
    reference_epoch: Union[str, pd.Timestamp] = "2019-12-01"
    # reject ER > SR or EL > SL (incubation period bounded below by zero)
    require_nonnegative: bool = True
    # drop malformed rows with a warning instead of raising MalformedRecord
    drop_malformed: bool = False
    dayfirst: bool = False
    # output path to save tidy CSV. If None, do not save
    save_to: Optional[Path] = None
    # networking
    timeout_s: int = 30

    def __post_init__(self):
        # fail on an unparseable epoch before any file is read
        self.reference_epoch = pd.Timestamp(self.reference_epoch)
        if pd.isna(self.reference_epoch):
            raise ValueError("reference_epoch must be a calendar date")

# ---- Public API -----------------------------------------------------------

def load_linelist(
    source: LinelistSource,
    config: Optional[LinelistConfig] = None,
) -> pd.DataFrame:
    """
    Load a case line list and convert its dates to elapsed-day bounds.

    Parameters
    ----------
    source : str | Path | pd.DataFrame
        File path, URL or an already loaded frame.
    config : LinelistConfig
        Column names, reference epoch and validation options.

    Returns
    -------
    pd.DataFrame
        Tidy DataFrame with columns:
        - 'case_id' (string)
        - 'EL', 'ER', 'SL', 'SR' (float, days since the reference epoch)
        - 'fever', 'location' when the configured columns exist

    Raises
    ------
    MalformedRecord
        A row has left > right on either window, an onset end that cannot
        be filled, or (with require_nonnegative) a negative incubation bound.
    """
    cfg = config if config is not None else LinelistConfig()
    if isinstance(source, pd.DataFrame):
        df = _standardize_columns(source.copy())
    else:
        df = _read_csv_robust(source, cfg)
    df = _select_and_parse_dates(df, cfg)
    df = _fill_defaults(df, cfg)
    df = _to_elapsed_days(df, cfg)
    df = _validate_rows(df, cfg)
    if cfg.save_to:
        _ensure_parent(cfg.save_to)
        df.to_csv(cfg.save_to, index=False)
    return df


def to_case_records(df: pd.DataFrame) -> List[CaseRecord]:
    """Tidy frame from load_linelist -> list of CaseRecord"""
    ids = df["case_id"].astype(str) if "case_id" in df.columns else pd.Series(
        [str(i) for i in range(len(df))], index=df.index)
    return [CaseRecord(*map(float, row), case_id=cid)
            for row, cid in zip(df[list(BOUND_COLUMNS)].to_numpy(dtype=float), ids)]


def subset_linelist(
    df: pd.DataFrame,
    fever_only: bool = False,
    exclude: Optional[Iterable[str]] = None,
) -> pd.DataFrame:
    """
    Sensitivity subsets of a tidy line list.

    fever_only keeps cases whose fever flag is truthy; exclude drops cases
    whose location is in the given collection (e.g. the outbreak's origin).
    """
    out = df
    if fever_only:
        if "fever" not in out.columns:
            raise KeyError("fever_only requested but the line list has no 'fever' column")
        out = out.loc[_truthy(out["fever"])]
    if exclude:
        if "location" not in out.columns:
            raise KeyError("exclude requested but the line list has no 'location' column")
        drop = {str(x).strip().lower() for x in exclude}
        out = out.loc[~out["location"].astype(str).str.strip().str.lower().isin(drop)]
    return out.reset_index(drop=True)

# ---------- Robust CSV loader ----------------------------------------------

def _read_csv_robust(source: Union[str, Path], cfg: LinelistConfig) -> pd.DataFrame:
    """
    Read CSV from local path or URL; URLs go through requests so HTTP
    errors surface with a clear message.
    """
    src = str(source)

    p = Path(src)
    if p.exists():
        try:
            return _standardize_columns(pd.read_csv(p))
        except pd.errors.EmptyDataError as e:
            raise RuntimeError(f"File exists but is empty: {p}") from e

    if not src.lower().startswith(("http://", "https://")):
        raise FileNotFoundError(f"No such line list file: {src}")

    headers = {"User-Agent": "Mozilla/5.0 (incubation-linelist)"}
    try:
        resp = requests.get(src, headers=headers, timeout=cfg.timeout_s)
    except requests.RequestException as e:
        raise RuntimeError(f"Failed to fetch URL: {src}\n{e}") from e

    if resp.status_code != 200:
        raise RuntimeError(f"HTTP {resp.status_code} fetching {src}")

    try:
        df = pd.read_csv(io.BytesIO(resp.content or b""))
    except pd.errors.EmptyDataError as e:
        raise RuntimeError("Response contained no CSV data.") from e
    return _standardize_columns(df)

# ---- Internal helpers -----------------------------------------------------

def _standardize_columns(df: pd.DataFrame) -> pd.DataFrame:
    df.columns = pd.Index([str(c).strip() for c in df.columns])
    return df


def _find_col(columns, expected_name: str, required: bool = True) -> Optional[str]:
    """
    Tolerant column lookup (case, surrounding whitespace, space vs underscore).
    """
    names = [str(c) for c in columns]
    if expected_name in names:
        return expected_name
    exp = expected_name.strip().lower().replace(" ", "_")
    for name in names:
        if name.strip().lower().replace(" ", "_") == exp:
            return name
    if required:
        raise KeyError(f"Expected column '{expected_name}' not found. Available: {names}")
    return None


def _optional_col(df: pd.DataFrame, name: Optional[str]) -> Optional[str]:
    return None if name is None else _find_col(df.columns, name, required=False)


def _select_and_parse_dates(df: pd.DataFrame, cfg: LinelistConfig) -> pd.DataFrame:
    out = pd.DataFrame(index=df.index)
    id_col = _optional_col(df, cfg.id_col)
    out["case_id"] = df[id_col].astype(str) if id_col else [str(i) for i in range(len(df))]

    date_cols = {
        "EL": _find_col(df.columns, cfg.exposure_left_col),
        "ER": _find_col(df.columns, cfg.exposure_right_col),
        "SL": _find_col(df.columns, cfg.onset_left_col),
        "SR": _optional_col(df, cfg.onset_right_col),
        "hospital": _optional_col(df, cfg.hospital_col),
    }
    for key, col in date_cols.items():
        if col is None:
            out[key] = pd.NaT
        else:
            out[key] = pd.to_datetime(df[col], errors="coerce", dayfirst=cfg.dayfirst)

    fever_col = _optional_col(df, cfg.fever_col)
    if fever_col:
        out["fever"] = _truthy(df[fever_col])
    location_col = _optional_col(df, cfg.location_col)
    if location_col:
        out["location"] = df[location_col]
    return out.reset_index(drop=True)


def _fill_defaults(df: pd.DataFrame, cfg: LinelistConfig) -> pd.DataFrame:
    epoch = pd.Timestamp(cfg.reference_epoch)
    df = df.copy()
    df["EL"] = df["EL"].fillna(epoch)
    df["SR"] = df["SR"].fillna(df["hospital"])
    df["ER"] = df["ER"].fillna(df["SR"])
    df["SL"] = df["SL"].fillna(df["EL"])
    return df.drop(columns="hospital")


def _to_elapsed_days(df: pd.DataFrame, cfg: LinelistConfig) -> pd.DataFrame:
    epoch = pd.Timestamp(cfg.reference_epoch)
    df = df.copy()
    for col in BOUND_COLUMNS:
        df[col] = (df[col] - epoch) / pd.Timedelta(days=1)
    return df


def _row_problems(df: pd.DataFrame, cfg: LinelistConfig) -> pd.Series:
    """Reason string per row; empty for valid rows"""
    reasons = pd.Series("", index=df.index, dtype=object)

    def flag(mask, text):
        hit = mask & reasons.eq("")
        reasons[hit] = text

    flag(df[list(BOUND_COLUMNS)].isna().any(axis=1),
         "missing onset end and hospital presentation date")
    flag(df["EL"] > df["ER"], "exposure start after exposure end")
    flag(df["SL"] > df["SR"], "onset start after onset end")
    if cfg.require_nonnegative:
        flag(df["ER"] > df["SR"], "exposure end after onset end")
        flag(df["EL"] > df["SL"], "exposure start after onset start")
    return reasons


def _validate_rows(df: pd.DataFrame, cfg: LinelistConfig) -> pd.DataFrame:
    reasons = _row_problems(df, cfg)
    bad = reasons.ne("")
    if not bad.any():
        return df.reset_index(drop=True)
    if not cfg.drop_malformed:
        i = int(np.flatnonzero(bad.to_numpy())[0])
        raise MalformedRecord(df["case_id"].iloc[i], reasons.iloc[i])
    dropped = df.loc[bad, "case_id"].tolist()
    warnings.warn(f"Dropped {len(dropped)} malformed line list rows: {', '.join(dropped)}")
    return df.loc[~bad].reset_index(drop=True)


def _truthy(s: pd.Series) -> pd.Series:
    if s.dtype == bool:
        return s
    if pd.api.types.is_numeric_dtype(s):
        return s.fillna(0).ne(0)
    text = s.astype(str).str.strip().str.lower()
    return text.isin({"1", "true", "yes", "y", "t"})


def _ensure_parent(path: Path) -> None:
    Path(path).parent.mkdir(parents=True, exist_ok=True)
