"""
Visualisation utilities for prisoners_coin_flip.

Plotting is read-only with respect to numerical results: the figure
functions take result tables (or read existing CSVs under results/) and only
write figure files under results/figures/.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import numpy as np
import pandas as pd

from . import config
from .experiments import (
    POISSON_COLUMNS,
    SIMULATION_COLUMNS,
    exact_curve_table,
    optimal_strategy_path,
    poisson_limit_path,
    simulation_summary_path,
)
from .io_utils import mode_suffix, read_result_csv, results_root
from .optimize import OPTIMAL_COLUMNS

# Okabe-Ito palette, one colour per prisoner count (cycled)
PALETTE = [
    "#0072B2",  # blue
    "#D55E00",  # orange
    "#009E73",  # green
    "#CC79A7",  # purple
    "#E69F00",  # yellow
    "#56B4E9",  # sky
]
COLOURS = {
    "optimum": "#009E73",
    "limit": "#D55E00",
}


def _apply_style() -> None:
    import matplotlib as mpl

    mpl.rcParams.update(
        {
            "font.family": "serif",
            "font.size": 11,
            "axes.titlesize": 12,
            "axes.labelsize": 11,
            "xtick.labelsize": 10,
            "ytick.labelsize": 10,
            "legend.fontsize": 10,
            "axes.linewidth": 1.0,
            "lines.linewidth": 1.5,
            "grid.linewidth": 0.6,
        }
    )


def _col(df: pd.DataFrame, *names: str) -> str:
    for n in names:
        if n in df.columns:
            return n
    raise KeyError(f"Missing required column (tried: {names}); have: {list(df.columns)}")


def _read_csv_prefer_full(
    full_path: Path, *, fallback_path: Optional[Path] = None, label: str, columns: list[str]
) -> Optional[pd.DataFrame]:
    df = read_result_csv(full_path, columns=columns)
    if df is not None:
        return df
    if fallback_path is not None:
        df = read_result_csv(fallback_path, columns=columns)
        if df is not None:
            print(f"[WARN] Missing {label} at {full_path}; falling back to {fallback_path}")
            return df
    print(f"[WARN] Missing {label} CSV: {full_path}")
    return None


def _save(fig, out_path: Path) -> list[Path]:
    out_path.parent.mkdir(parents=True, exist_ok=True)
    png_path = out_path.with_suffix(".png")
    pdf_path = out_path.with_suffix(".pdf")
    fig.savefig(png_path, dpi=300, bbox_inches="tight")
    fig.savefig(pdf_path, bbox_inches="tight")
    return [png_path, pdf_path]


def plot_success_curves(
    exact_df: pd.DataFrame,
    simulated_df: Optional[pd.DataFrame],
    out_path: Path,
) -> list[Path]:
    """
    Success probability vs p, one exact line per n, simulated points overlaid.

    Returns the written figure paths (PNG and PDF).
    """
    import matplotlib.pyplot as plt

    _apply_style()
    fig, ax = plt.subplots(figsize=(9, 6))

    ns = sorted(int(n) for n in exact_df[_col(exact_df, "n")].unique())
    for i, n in enumerate(ns):
        colour = PALETTE[i % len(PALETTE)]
        d = exact_df[exact_df["n"] == n].sort_values("p")
        ax.plot(d["p"], d["exact"], color=colour, label=f"n = {n} (exact)")

        if simulated_df is not None and not simulated_df.empty:
            s = simulated_df[simulated_df["n"] == n]
            if not s.empty:
                ax.scatter(
                    s["p"],
                    s["success_rate"],
                    s=12,
                    alpha=0.7,
                    color=colour,
                    linewidths=0,
                )

    if simulated_df is not None and not simulated_df.empty:
        # Proxy artist so the legend explains the markers once
        ax.scatter([], [], s=12, color="#222222", label="simulated")

    ax.set_xlabel(r"$p$ (flip probability)")
    ax.set_ylabel("P(freedom)")
    ax.set_title("Success probability vs flip probability")
    ax.set_xlim(0.0, 1.0)
    ax.set_ylim(bottom=0.0)
    ax.grid(True, axis="y", alpha=0.20)
    ax.grid(False, axis="x")
    ax.legend(loc="upper right", frameon=False, fontsize=9)

    fig.tight_layout()
    paths = _save(fig, out_path)
    plt.close(fig)
    return paths


def plot_optimal_strategy(
    optimal_df: pd.DataFrame,
    poisson: Optional[pd.DataFrame],
    out_path: Path,
) -> list[Path]:
    """
    Two panels: optimal p vs n and optimal success probability vs n.

    If a Poisson-limit row is given, its asymptotes (lam*/n and the limiting
    probability) are drawn as dashed reference lines.
    """
    import matplotlib.pyplot as plt

    _apply_style()
    fig, (ax_p, ax_v) = plt.subplots(1, 2, figsize=(14, 5.5))

    d = optimal_df.copy()
    n_col = _col(d, "n")
    d[n_col] = pd.to_numeric(d[n_col], errors="coerce")
    d = d.dropna(subset=[n_col]).sort_values(n_col)
    x = d[n_col].to_numpy(dtype=float)

    lam_opt = None
    limit = None
    if poisson is not None and not poisson.empty:
        lam_opt = float(poisson.iloc[0][_col(poisson, "lam_opt")])
        limit = float(poisson.iloc[0][_col(poisson, "max_probability")])

    # Panel (A): optimal p
    ax_p.plot(x, d[_col(d, "p_opt")], "-o", markersize=3.5, color=COLOURS["optimum"], label=r"$p^*(n)$")
    if lam_opt is not None and len(x):
        ax_p.plot(x, lam_opt / x, "--", color=COLOURS["limit"], linewidth=1.0, label=rf"$\lambda^*/n$, $\lambda^*={lam_opt:.3f}$")
    ax_p.set_xlabel(r"$n$ (prisoners)")
    ax_p.set_ylabel(r"$p^*$")
    ax_p.set_title("(A) Optimal flip probability")
    ax_p.grid(True, axis="y", alpha=0.20)
    ax_p.legend(loc="upper right", frameon=False, fontsize=9)

    # Panel (B): optimal success probability
    ax_v.plot(
        x,
        d[_col(d, "max_probability")],
        "-o",
        markersize=3.5,
        color=COLOURS["optimum"],
        label="max P(freedom)",
    )
    if limit is not None:
        ax_v.axhline(limit, linestyle="--", color=COLOURS["limit"], linewidth=1.0, label=f"Poisson limit {limit:.4f}")
    ax_v.set_xlabel(r"$n$ (prisoners)")
    ax_v.set_ylabel("P(freedom) at $p^*$")
    ax_v.set_title("(B) Optimal success probability")
    ax_v.grid(True, axis="y", alpha=0.20)
    ax_v.legend(loc="upper right", frameon=False, fontsize=9)

    if len(x):
        ax_v.text(
            0.02,
            0.04,
            rf"Tested range: {int(np.nanmin(x))} ≤ n ≤ {int(np.nanmax(x))}",
            transform=ax_v.transAxes,
            fontsize=9,
            va="bottom",
            ha="left",
            bbox=dict(facecolor="white", edgecolor="none", alpha=0.70, pad=1.6),
        )

    fig.tight_layout()
    paths = _save(fig, out_path)
    plt.close(fig)
    return paths


def generate_figures(mode: str = "full") -> list[Path]:
    """
    Load existing CSV outputs and write the figures under results/figures/.

    Missing CSVs are reported and the corresponding figure is skipped; a CSV
    without the columns its sweep writes raises ValueError.
    """
    out_dir = results_root() / "figures"
    suffix = mode_suffix(mode)
    written: list[Path] = []

    df_sim = _read_csv_prefer_full(
        simulation_summary_path(mode),
        fallback_path=simulation_summary_path("quick") if mode == "full" else None,
        label="simulation_summary",
        columns=SIMULATION_COLUMNS,
    )
    df_opt = _read_csv_prefer_full(
        optimal_strategy_path(mode),
        fallback_path=optimal_strategy_path("quick") if mode == "full" else None,
        label="optimal_strategy",
        columns=OPTIMAL_COLUMNS,
    )
    df_poi = _read_csv_prefer_full(
        poisson_limit_path(mode),
        fallback_path=poisson_limit_path("quick") if mode == "full" else None,
        label="poisson_limit",
        columns=POISSON_COLUMNS,
    )

    if df_sim is None and df_opt is None:
        print("[WARN] No result CSVs found; skipping figure generation.")
        return written

    if df_sim is not None and not df_sim.empty:
        ns = sorted(int(n) for n in df_sim["n"].unique())
        exact_df = exact_curve_table(np.linspace(0.0, 1.0, 201), ns)
        written += plot_success_curves(exact_df, df_sim, out_dir / f"success_vs_p{suffix}")
    else:
        exact_df = exact_curve_table(np.linspace(0.0, 1.0, 201), config.N_VALUES)
        written += plot_success_curves(exact_df, None, out_dir / f"success_vs_p{suffix}")

    if df_opt is not None and not df_opt.empty:
        written += plot_optimal_strategy(df_opt, df_poi, out_dir / f"optimal_vs_n{suffix}")
    else:
        print("[WARN] optimal-strategy figure skipped (no data)")

    for path in written:
        print(f"[FIGURE] Saved {path}")
    return written
