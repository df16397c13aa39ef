"""
Sanity-check / validation script.

This script does NOT write into prisoners_coin_flip/results/.
It checks the simulator against the exact probability at the four-prisoner
optimum and prints the closed-form landmarks to console.
"""

from __future__ import annotations

import numpy as np

from . import config
from .exact import exact_success_probability, optimal_flip_probability_closed_form, quartic_n4
from .model import aggregate_outcomes, simulate_grid
from .optimize import optimize_flip_probability, optimize_poisson_rate


def main() -> None:
    n_trials = 200_000
    p = 0.34
    n = 4
    seed = 123

    # ---- Simulation vs exact
    summary = aggregate_outcomes(
        simulate_grid(n_trials=n_trials, p_values=[p], n_values=[n], seed=seed)
    )
    row = summary.iloc[0]
    exact = exact_success_probability(p, n)
    print("[VALIDATION] simulation vs exact (single grid point)")
    print(f"n_trials={n_trials}, seed={seed}, p={p}, n={n}")
    print(f"simulated={row['success_rate']:.6f} ± {row['std_err']:.6f}")
    print(f"exact={exact:.6f}, |diff|={abs(row['success_rate'] - exact):.6f}")
    print("")

    # ---- Closed forms
    print("[VALIDATION] closed forms")
    grid = np.linspace(0.0, 1.0, 11)
    drift = float(np.max(np.abs(exact_success_probability(grid, 4) - quartic_n4(grid))))
    print(f"max |exact(p, 4) - quartic(p)| on 11 points: {drift:.3g}")
    print(f"exact(0, 10)={exact_success_probability(0.0, 10):.3g}, exact(1, 10)={exact_success_probability(1.0, 10):.6g}")
    print("")

    # ---- Optimiser
    print("[VALIDATION] optimiser vs closed-form stationary point")
    for n_i in (2, 4, 10, config.N_SWEEP_MAX):
        res = optimize_flip_probability(n_i)
        print(
            f"n={n_i}: p*={res.p_opt:.6f} (closed form {optimal_flip_probability_closed_form(n_i):.6f}), "
            f"max={res.max_probability:.6f}"
        )

    lim = optimize_poisson_rate()
    print(f"Poisson limit: lambda*={lim.lam_opt:.6f}, max={lim.max_probability:.6f}")
    print("")

    print("[VALIDATION COMPLETE]")


if __name__ == "__main__":
    main()
