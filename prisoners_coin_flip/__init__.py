"""
Prisoners' Coin-Flip Strategy

N prisoners each flip a fair coin with probability p or abstain; they go
free iff at least one coin is flipped and every flipped coin lands heads.
This package simulates the game over a (p, n) grid, evaluates the exact
success probability, finds the optimal p per n and its Poisson large-n
limit, and plots the results.
"""

from .config import (  # noqa: F401
    BASE_SEED,
    N_SWEEP_MAX,
    N_SWEEP_MIN,
    N_TRIALS,
    N_TRIALS_QUICK,
    N_VALUES,
    P_VALUES,
    P_VALUES_QUICK,
    POISSON_TERMS,
)
from .exact import exact_success_probability, poisson_success_probability  # noqa: F401
from .model import aggregate_outcomes, simulate_grid, simulate_summary  # noqa: F401
from .optimize import optimize_flip_probability, optimize_poisson_rate, sweep_optimal_strategy  # noqa: F401
