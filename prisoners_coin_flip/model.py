from __future__ import annotations

import itertools
import math
from concurrent.futures import ProcessPoolExecutor
from dataclasses import asdict, dataclass
from typing import Iterable, Iterator, Optional, Sequence, Union

import numpy as np
import pandas as pd
from tqdm import tqdm

from . import config

SUMMARY_COLUMNS = ["p", "n", "success_rate", "n_trials", "std_err"]


@dataclass(frozen=True)
class SummaryRecord:
    """Empirical success rate for one (p, n) grid point."""

    p: float
    n: int
    success_rate: float
    n_trials: int
    std_err: float  # binomial standard error of success_rate


def check_probability(p: float, *, name: str = "p") -> float:
    try:
        p_float = float(p)
    except (TypeError, ValueError):
        raise ValueError(f"{name} must be in [0, 1], got {p!r}") from None
    # NaN fails both comparisons.
    if not (0.0 <= p_float <= 1.0):
        raise ValueError(f"{name} must be in [0, 1], got {p!r}")
    return p_float


def check_positive_count(value: int, *, name: str) -> int:
    if isinstance(value, bool):
        raise ValueError(f"{name} must be a positive integer, got {value!r}")
    try:
        value_int = int(value)
    except (TypeError, ValueError, OverflowError):
        raise ValueError(f"{name} must be a positive integer, got {value!r}") from None
    if value_int != value or value_int <= 0:
        raise ValueError(f"{name} must be a positive integer, got {value!r}")
    return value_int


def check_prisoner_count(n: int) -> int:
    return check_positive_count(n, name="n")


def draw_trials(
    *,
    n_trials: int,
    p: float,
    n: int,
    rng: np.random.Generator,
) -> tuple[np.ndarray, np.ndarray]:
    """
    Draw `n_trials` independent trials for one grid point.

    - flips ~ Binomial(n, p): how many prisoners chose to flip
    - tails ~ Binomial(flips, 0.5): how many of the flipped coins landed tails
    """
    n_trials = check_positive_count(n_trials, name="n_trials")
    p = check_probability(p)
    n = check_prisoner_count(n)

    flips = rng.binomial(n, p, size=n_trials).astype(np.int64, copy=False)
    tails = rng.binomial(flips, 0.5).astype(np.int64, copy=False)
    return flips, tails


def trial_outcomes(flips: np.ndarray, tails: np.ndarray) -> np.ndarray:
    """Freedom iff somebody flipped and no flipped coin shows tails."""
    flips = np.asarray(flips)
    tails = np.asarray(tails)
    if flips.shape != tails.shape:
        raise ValueError(f"flips and tails shapes differ: {flips.shape} vs {tails.shape}")
    return (flips > 0) & (tails == 0)


def iter_parameter_grid(
    p_values: Iterable[float],
    n_values: Iterable[int],
) -> Iterator[tuple[float, int]]:
    """Lazily enumerate the (p, n) Cartesian product, n varying fastest."""
    ps = [check_probability(p) for p in p_values]
    ns = [check_prisoner_count(n) for n in n_values]
    return itertools.product(ps, ns)


def grid_seed_sequences(seed: Optional[int], n_points: int) -> list[np.random.SeedSequence]:
    """
    One independent child stream per grid point.

    Grid point i always gets child i, so draws do not depend on how the grid
    is split across workers.
    """
    return np.random.SeedSequence(seed).spawn(n_points)


def simulate_point(
    *,
    n_trials: int,
    p: float,
    n: int,
    rng: np.random.Generator,
    chunk_size: int = config.CHUNK_SIZE,
) -> Iterator[np.ndarray]:
    """Yield outcome arrays for one grid point, at most `chunk_size` trials each."""
    n_trials = check_positive_count(n_trials, name="n_trials")
    chunk_size = check_positive_count(chunk_size, name="chunk_size")

    remaining = n_trials
    while remaining > 0:
        size = min(chunk_size, remaining)
        flips, tails = draw_trials(n_trials=size, p=p, n=n, rng=rng)
        yield trial_outcomes(flips, tails)
        remaining -= size


def simulate_grid(
    *,
    n_trials: int,
    p_values: Sequence[float],
    n_values: Sequence[int],
    seed: Optional[int] = config.BASE_SEED,
    chunk_size: int = config.CHUNK_SIZE,
) -> Iterator[tuple[float, int, np.ndarray]]:
    """
    Lazily yield `(p, n, outcomes)` records over the whole parameter grid.

    Inputs are validated up front so a bad grid fails before any sampling.
    """
    n_trials = check_positive_count(n_trials, name="n_trials")
    chunk_size = check_positive_count(chunk_size, name="chunk_size")
    points = list(iter_parameter_grid(p_values, n_values))
    seqs = grid_seed_sequences(seed, len(points))

    def _records() -> Iterator[tuple[float, int, np.ndarray]]:
        for (p, n), seq in zip(points, seqs):
            rng = np.random.default_rng(seq)
            for outcomes in simulate_point(
                n_trials=n_trials, p=p, n=n, rng=rng, chunk_size=chunk_size
            ):
                yield p, n, outcomes

    return _records()


def _accumulate(
    records: Iterable[tuple[float, int, Union[np.ndarray, bool]]],
) -> dict[tuple[float, int], list[int]]:
    def _counts() -> Iterator[tuple[float, int, int, int]]:
        for p, n, outcomes in records:
            arr = np.asarray(outcomes, dtype=bool)
            yield p, n, int(np.count_nonzero(arr)), int(arr.size)

    return _pool_counts(_counts())


def _pool_counts(
    results: Iterable[tuple[float, int, int, int]],
) -> dict[tuple[float, int], list[int]]:
    """Sum (successes, trials) per (p, n); repeated grid points are pooled."""
    counts: dict[tuple[float, int], list[int]] = {}
    for p, n, successes, trials in results:
        acc = counts.setdefault((float(p), int(n)), [0, 0])
        acc[0] += successes
        acc[1] += trials
    return counts


def _summary_frame(counts: dict[tuple[float, int], list[int]]) -> pd.DataFrame:
    rows = []
    for (p, n), (successes, trials) in counts.items():
        if trials == 0:
            continue
        rate = successes / trials
        rows.append(
            SummaryRecord(
                p=p,
                n=n,
                success_rate=rate,
                n_trials=trials,
                std_err=math.sqrt(rate * (1.0 - rate) / trials),
            )
        )
    if not rows:
        return pd.DataFrame(columns=SUMMARY_COLUMNS)
    df = pd.DataFrame([asdict(r) for r in rows], columns=SUMMARY_COLUMNS)
    return df.sort_values(["n", "p"], ignore_index=True)


def aggregate_outcomes(
    records: Iterable[tuple[float, int, Union[np.ndarray, bool]]],
) -> pd.DataFrame:
    """
    Reduce `(p, n, outcomes)` records to one empirical success rate per (p, n).

    `outcomes` may be a boolean array (a chunk of trials) or a single bool.
    Repeated keys are pooled, so chunked output from `simulate_grid` can be
    fed straight in.
    """
    return _summary_frame(_accumulate(records))


def _simulate_point_counts(
    task: tuple[float, int, int, int, np.random.SeedSequence],
) -> tuple[float, int, int, int]:
    # Runs in a worker process; must stay module-level for pickling.
    p, n, n_trials, chunk_size, seq = task
    rng = np.random.default_rng(seq)
    successes = 0
    for outcomes in simulate_point(n_trials=n_trials, p=p, n=n, rng=rng, chunk_size=chunk_size):
        successes += int(np.count_nonzero(outcomes))
    return p, n, successes, n_trials


def simulate_summary(
    *,
    n_trials: int,
    p_values: Sequence[float],
    n_values: Sequence[int],
    seed: Optional[int] = config.BASE_SEED,
    n_workers: int = 1,
    chunk_size: int = config.CHUNK_SIZE,
    progress: bool = False,
) -> pd.DataFrame:
    """
    Simulate the full grid and aggregate it into summary rows.

    With `n_workers > 1` grid points are farmed out to a process pool. Every
    grid point owns its seed stream, so the result is identical to the serial
    run for the same seed.
    """
    n_trials = check_positive_count(n_trials, name="n_trials")
    n_workers = check_positive_count(n_workers, name="n_workers")
    chunk_size = check_positive_count(chunk_size, name="chunk_size")
    points = list(iter_parameter_grid(p_values, n_values))
    seqs = grid_seed_sequences(seed, len(points))
    tasks = [(p, n, n_trials, chunk_size, seq) for (p, n), seq in zip(points, seqs)]

    if n_workers == 1:
        results = map(_simulate_point_counts, tasks)
        if progress:
            results = tqdm(results, total=len(tasks), desc="simulate", leave=True)
        counts = _pool_counts(results)
    else:
        with ProcessPoolExecutor(max_workers=n_workers) as pool:
            results = pool.map(_simulate_point_counts, tasks)
            if progress:
                results = tqdm(results, total=len(tasks), desc="simulate", leave=True)
            counts = _pool_counts(results)

    return _summary_frame(counts)
