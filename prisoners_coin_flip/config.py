"""
Run parameters for the prisoners' coin-flip experiments.

The `quick` values drive `run_experiments --mode quick`; the CLI flags
`--trials` and `--seed` override N_TRIALS and BASE_SEED.
"""

import math

# Monte Carlo trials per (p, n) grid point
N_TRIALS = 100_000

# Quick mode (dev / smoke test)
N_TRIALS_QUICK = 5_000

# Sampling is done in chunks of at most this many trials per grid point
CHUNK_SIZE = 250_000

# Flip-probability grid
P_GRID_STEP = 0.01
P_GRID_STEP_QUICK = 0.05
P_VALUES = [round(i * P_GRID_STEP, 10) for i in range(int(round(1.0 / P_GRID_STEP)) + 1)]  # 0.0 → 1.0
P_VALUES_QUICK = [
    round(i * P_GRID_STEP_QUICK, 10) for i in range(int(round(1.0 / P_GRID_STEP_QUICK)) + 1)
]

# Prisoner counts for the simulated grid
N_VALUES = [2, 3, 4, 5, 10]

# Optimal-strategy sweep over prisoner counts (inclusive)
N_SWEEP_MIN = 2
N_SWEEP_MAX = 60

# Poisson large-n limit
POISSON_TERMS = 1000
LAMBDA_BOUNDS = (0.0, 10.0)
LAMBDA_OPT_THEORY = 2.0 * math.log(2.0)
POISSON_MAX_THEORY = 0.25

# Optimiser tolerance on the argument
OPTIMIZER_XATOL = 1e-10

# Randomness
BASE_SEED = 12345
