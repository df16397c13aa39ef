from __future__ import annotations

from pathlib import Path
from typing import Callable, Optional, Sequence

import numpy as np
import pandas as pd
from tqdm import tqdm

from .exact import exact_success_probability
from .io_utils import atomic_write_csv, mode_suffix, results_root
from .model import check_prisoner_count, simulate_summary
from .optimize import PoissonOptimum, optimize_poisson_rate, sweep_optimal_strategy

SIMULATION_COLUMNS = ["p", "n", "success_rate", "n_trials", "std_err", "exact", "abs_error"]
POISSON_COLUMNS = ["lam_opt", "max_probability", "n_terms", "n_ref", "lam_ref", "max_probability_ref"]


def simulation_summary_path(mode: str) -> Path:
    return results_root() / "simulation" / f"simulation_summary{mode_suffix(mode)}.csv"


def optimal_strategy_path(mode: str) -> Path:
    return results_root() / "optimal" / f"optimal_strategy{mode_suffix(mode)}.csv"


def poisson_limit_path(mode: str) -> Path:
    return results_root() / "optimal" / f"poisson_limit{mode_suffix(mode)}.csv"


def _is_non_increasing(x: np.ndarray, *, tol: float = 1e-12) -> bool:
    return bool(np.all(np.diff(x) <= tol))


def exact_curve_table(p_values: Sequence[float], n_values: Sequence[int]) -> pd.DataFrame:
    """Long table (p, n, exact) for plotting the exact curves."""
    ps = np.asarray(list(p_values), dtype=float)
    frames = []
    for n in n_values:
        n = check_prisoner_count(n)
        frames.append(
            pd.DataFrame({"p": ps, "n": n, "exact": exact_success_probability(ps, n)})
        )
    if not frames:
        return pd.DataFrame(columns=["p", "n", "exact"])
    return pd.concat(frames, ignore_index=True)


def run_simulation_sweep(
    *,
    mode: str,
    n_trials: int,
    p_values: Sequence[float],
    n_values: Sequence[int],
    seed: Optional[int],
    n_workers: int,
    logger_warn: Callable[[str], None],
    logger_info: Callable[[str], None],
) -> pd.DataFrame:
    """Sweep 1: simulated vs exact success probability over the (p, n) grid."""
    out_path = simulation_summary_path(mode)
    logger_info(
        f"START simulation: n_trials={n_trials} |p|={len(p_values)} n in {list(n_values)} "
        f"seed={seed} workers={n_workers}"
    )

    df = simulate_summary(
        n_trials=n_trials,
        p_values=p_values,
        n_values=n_values,
        seed=seed,
        n_workers=n_workers,
        progress=True,
    )

    exact = np.empty(len(df), dtype=float)
    for n, idx in df.groupby("n").groups.items():
        exact[df.index.get_indexer(idx)] = exact_success_probability(
            df.loc[idx, "p"].to_numpy(dtype=float), int(n)
        )
    df["exact"] = exact
    df["abs_error"] = (df["success_rate"] - df["exact"]).abs()
    df = df[SIMULATION_COLUMNS]

    # Flag grid points more than ~4 standard errors away from the exact value.
    se = df["std_err"].to_numpy(dtype=float)
    floor = 1.0 / np.sqrt(df["n_trials"].to_numpy(dtype=float))
    outliers = df[df["abs_error"].to_numpy() > 4.0 * np.maximum(se, floor)]
    for row in outliers.itertuples(index=False):
        logger_warn(
            f"simulation: p={row.p:.4g} n={row.n} simulated={row.success_rate:.6g} "
            f"exact={row.exact:.6g} (abs_error={row.abs_error:.3g})"
        )

    atomic_write_csv(df, out_path)
    logger_info(
        f"simulation: wrote {out_path.name} ({len(df)} grid points, "
        f"max abs_error={float(df['abs_error'].max()) if len(df) else float('nan'):.4g})"
    )
    logger_info("END simulation")
    return df


def run_optimal_sweep(
    *,
    mode: str,
    n_min: int,
    n_max: int,
    logger_warn: Callable[[str], None],
    logger_info: Callable[[str], None],
) -> pd.DataFrame:
    """Sweep 2: optimal flip probability and success probability vs n."""
    n_min = check_prisoner_count(n_min)
    n_max = check_prisoner_count(n_max)
    if n_max < n_min:
        raise ValueError(f"n_max ({n_max}) must be >= n_min ({n_min})")

    out_path = optimal_strategy_path(mode)
    logger_info(f"START optimal: n in [{n_min}, {n_max}]")

    df = sweep_optimal_strategy(
        range(n_min, n_max + 1),
        progress=lambda ns: tqdm(ns, desc=f"optimal{mode_suffix(mode)}", leave=True),
    )

    if not _is_non_increasing(df["p_opt"].to_numpy(dtype=float)):
        logger_warn("optimal: p_opt is not monotonically decreasing in n")
    if not _is_non_increasing(df["max_probability"].to_numpy(dtype=float)):
        logger_warn("optimal: max_probability is not monotonically decreasing in n")

    drift = (df["p_opt"] - df["p_opt_closed_form"]).abs()
    if len(drift) and float(drift.max()) > 1e-6:
        logger_warn(f"optimal: numeric p_opt deviates from closed form by {float(drift.max()):.3g}")

    atomic_write_csv(df, out_path)
    last = df.iloc[-1]
    logger_info(
        f"optimal: n={int(last['n'])} p_opt={last['p_opt']:.6g} "
        f"max_probability={last['max_probability']:.6g}"
    )
    logger_info("END optimal")
    return df


def run_poisson_limit(
    *,
    mode: str,
    optimal_df: Optional[pd.DataFrame],
    n_terms: int,
    logger_warn: Callable[[str], None],
    logger_info: Callable[[str], None],
) -> PoissonOptimum:
    """
    Sweep 3: large-n limit with a Poisson flip count.

    When `optimal_df` is given, the limit is compared against the largest n
    in the finite sweep (lam vs n * p_opt, and the maximum probability).
    """
    out_path = poisson_limit_path(mode)
    logger_info(f"START poisson: n_terms={n_terms}")

    opt = optimize_poisson_rate(n_terms=n_terms)
    logger_info(f"poisson: lam_opt={opt.lam_opt:.6g} max_probability={opt.max_probability:.6g}")

    row = {
        "lam_opt": opt.lam_opt,
        "max_probability": opt.max_probability,
        "n_terms": opt.n_terms,
        "n_ref": float("nan"),
        "lam_ref": float("nan"),
        "max_probability_ref": float("nan"),
    }
    if optimal_df is not None and len(optimal_df) > 0:
        ref = optimal_df.sort_values("n").iloc[-1]
        row["n_ref"] = int(ref["n"])
        row["lam_ref"] = float(ref["n"] * ref["p_opt"])
        row["max_probability_ref"] = float(ref["max_probability"])
        if abs(row["lam_ref"] - opt.lam_opt) > 1e-2 or abs(row["max_probability_ref"] - opt.max_probability) > 1e-2:
            logger_warn(
                f"poisson: finite-n optimum at n={row['n_ref']} "
                f"(lam={row['lam_ref']:.4g}, max={row['max_probability_ref']:.4g}) "
                "is not yet within 1e-2 of the limit"
            )

    atomic_write_csv(pd.DataFrame([row], columns=POISSON_COLUMNS), out_path)
    logger_info("END poisson")
    return opt
