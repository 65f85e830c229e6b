"""
===========================================================
plotting.py
Author: Veronica Scerra
Last Updated: 2026-03-24
===========================================================
Plots for incubation period fits
================================

Fitted CDF with an uncertainty band, the spread of a reported
statistic across bootstrap replicates or posterior draws, and
MCMC trace plots.

License: MIT
===========================================================
"""

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt
import seaborn as sns
from typing import Optional, Sequence, Union

from incubation.bootstrap import BootstrapResult
from incubation.cases import CaseInput, as_bounds, midpoint_incubation
from incubation.distributions import Distribution
from incubation.mcmc import McmcChain
from incubation.reporting import FitResult, statistic_names, statistics_matrix

sns.set_style("whitegrid")
sns.set_context("paper", font_scale=1.3)

COLORS = {
    "fitted": "#d62728",
    "band": "#ff9896",
    "observed": "#000000",
    "trace": "#1f77b4",
}


def _draws_of(source: Union[BootstrapResult, McmcChain]) -> np.ndarray:
    if isinstance(source, BootstrapResult):
        return source.replicate_params()
    return source.retained


def plot_fitted_cdf(
    result: FitResult,
    cases: Optional[CaseInput] = None,
    draws: Optional[Union[BootstrapResult, McmcChain]] = None,
    t_max: Optional[float] = None,
    ax: Optional[plt.Axes] = None,
    save_path: Optional[str] = None,
) -> plt.Axes:
    """Fitted incubation period CDF.

    Parameters:
    result: FitResult. Point fit to draw
    cases: optional. Cases whose midpoint incubation times are shown as an ECDF
    draws: BootstrapResult or McmcChain, optional. Pointwise band at result.ci_level
    t_max: float, optional. Right end of the time axis (days)
    """
    if ax is None:
        _, ax = plt.subplots(figsize=(8, 4.5))
    dist = result.distribution
    if t_max is None:
        t_max = float(dist.ppf(0.995))
    t = np.linspace(0.0, t_max, 300)

    if draws is not None:
        params = _draws_of(draws)
        if len(params):
            curves = np.array([Distribution(result.family, p).cdf(t) for p in params])
            alpha = 1.0 - result.ci_level
            lo, hi = np.quantile(curves, [alpha / 2, 1 - alpha / 2], axis=0)
            ax.fill_between(t, lo, hi, color=COLORS["band"], alpha=0.4,
                            label=f"{100 * result.ci_level:g}% interval")

    ax.plot(t, dist.cdf(t), lw=2, color=COLORS["fitted"], label=f"Fitted {result.family.label}")

    if cases is not None:
        mids = np.sort(np.maximum(midpoint_incubation(as_bounds(cases)), 0.0))
        ecdf = np.arange(1, len(mids) + 1) / len(mids)
        ax.step(mids, ecdf, where="post", color=COLORS["observed"], lw=1,
                label="Midpoint ECDF")

    ax.set_xlabel("Incubation period (days)")
    ax.set_ylabel("Cumulative probability")
    ax.set_title(f"Incubation period: {result.family.label}")
    ax.set_xlim(0, t_max)
    ax.set_ylim(0, 1)
    ax.legend()
    ax.grid(alpha=0.25)
    if save_path:
        ax.figure.savefig(save_path, bbox_inches="tight")
    return ax


def plot_replicate_statistic(
    source: Union[BootstrapResult, McmcChain],
    statistic: str = "mean",
    quantiles: Sequence[float] = (0.5,),
    ax: Optional[plt.Axes] = None,
) -> plt.Axes:
    """Kernel density of one reported statistic over replicates or posterior draws"""
    family = source.family
    names = statistic_names(family, quantiles)
    if statistic not in names:
        raise KeyError(f"Unknown statistic {statistic!r}; available: {names}")
    values = statistics_matrix(family, _draws_of(source), quantiles)[:, names.index(statistic)]

    if ax is None:
        _, ax = plt.subplots(figsize=(6, 4))
    sns.kdeplot(x=values, ax=ax, fill=True, color=COLORS["trace"])
    ax.axvline(np.median(values), color=COLORS["fitted"], linestyle="--", label="median")
    ax.set_xlabel(statistic)
    ax.set_title(f"{family.label}: {statistic} ({len(values)} draws)")
    ax.legend()
    return ax


def plot_trace(chain: McmcChain, save_path: Optional[str] = None) -> plt.Figure:
    """Trace of each parameter and the log-likelihood, burn-in shaded"""
    df = chain.to_frame()
    cols = list(chain.param_names) + ["log_likelihood"]
    fig, axes = plt.subplots(len(cols), 1, figsize=(10, 2.5 * len(cols)), sharex=True)
    for ax, col in zip(axes, cols):
        ax.plot(df.index, df[col], lw=0.6, color=COLORS["trace"])
        if chain.burn_in:
            ax.axvspan(0, chain.burn_in, color="grey", alpha=0.2)
        ax.set_ylabel(col)
    axes[-1].set_xlabel("Iteration")
    axes[0].set_title(f"MCMC trace: {chain.family.label}")
    fig.tight_layout()
    if save_path:
        fig.savefig(save_path, bbox_inches="tight")
    return fig


def estimates_table(results: Sequence[FitResult]) -> pd.DataFrame:
    """Side-by-side 'point (low, high)' strings for several fits"""
    cols = {}
    for res in results:
        cols[f"{res.family.label} ({res.method})"] = {
            r.name: f"{r.point:.2f} ({r.ci_low:.2f}, {r.ci_high:.2f})" for r in res.estimates
        }
    return pd.DataFrame(cols)
