from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Callable, Iterable, Optional

import pandas as pd
from scipy.optimize import minimize_scalar

from . import config
from .exact import (
    exact_success_probability,
    optimal_flip_probability_closed_form,
    poisson_success_probability,
)
from .model import check_positive_count, check_prisoner_count

OPTIMAL_COLUMNS = ["n", "p_opt", "max_probability", "expected_flips", "p_opt_closed_form"]


@dataclass(frozen=True)
class OptimizationResult:
    n: int
    p_opt: float
    max_probability: float

    @property
    def expected_flips(self) -> float:
        return self.n * self.p_opt


@dataclass(frozen=True)
class PoissonOptimum:
    lam_opt: float
    max_probability: float
    n_terms: int


def _maximize(
    objective: Callable[[float], float],
    bounds: tuple[float, float],
    *,
    xatol: float,
    context: str,
) -> tuple[float, float]:
    """Bounded Brent search on -objective; returns (argmax, max)."""
    lo, hi = bounds
    if not (lo < hi):
        raise ValueError(f"bounds must satisfy lo < hi, got {bounds!r}")

    res = minimize_scalar(
        lambda x: -objective(x),
        bounds=(lo, hi),
        method="bounded",
        options={"xatol": xatol},
    )
    if not res.success:
        raise RuntimeError(f"optimiser failed [{context}]: {res.message}")

    x = float(res.x)
    best = -float(res.fun)

    # Bounded Brent never evaluates the endpoints; the maximum can sit there (n=1).
    for edge in (lo, hi):
        val = objective(edge)
        if val > best:
            x, best = float(edge), float(val)
    return x, best


def optimize_flip_probability(n: int, *, xatol: float = config.OPTIMIZER_XATOL) -> OptimizationResult:
    """Flip probability in [0, 1] that maximises the exact success probability."""
    n = check_prisoner_count(n)
    p_opt, best = _maximize(
        lambda p: exact_success_probability(p, n),
        (0.0, 1.0),
        xatol=xatol,
        context=f"n={n}",
    )
    return OptimizationResult(n=n, p_opt=p_opt, max_probability=best)


def sweep_optimal_strategy(
    n_values: Iterable[int],
    *,
    xatol: float = config.OPTIMIZER_XATOL,
    progress: Optional[Callable[[Iterable[int]], Iterable[int]]] = None,
) -> pd.DataFrame:
    """
    Optimise each prisoner count independently.

    `progress` may wrap the iterable (e.g. a tqdm partial).
    """
    ns = [check_prisoner_count(n) for n in n_values]
    it = progress(ns) if progress is not None else ns

    rows = []
    for n in it:
        res = optimize_flip_probability(n, xatol=xatol)
        row = asdict(res)
        row["expected_flips"] = res.expected_flips
        row["p_opt_closed_form"] = optimal_flip_probability_closed_form(n)
        rows.append(row)

    return pd.DataFrame(rows, columns=OPTIMAL_COLUMNS)


def optimize_poisson_rate(
    *,
    n_terms: int = config.POISSON_TERMS,
    lam_bounds: tuple[float, float] = config.LAMBDA_BOUNDS,
    xatol: float = config.OPTIMIZER_XATOL,
) -> PoissonOptimum:
    """Expected number of flippers that maximises the large-n success probability."""
    n_terms = check_positive_count(n_terms, name="n_terms")
    if lam_bounds[0] < 0.0:
        raise ValueError(f"lam_bounds must be non-negative, got {lam_bounds!r}")
    lam_opt, best = _maximize(
        lambda lam: poisson_success_probability(lam, n_terms),
        lam_bounds,
        xatol=xatol,
        context=f"poisson n_terms={n_terms}",
    )
    return PoissonOptimum(lam_opt=lam_opt, max_probability=best, n_terms=n_terms)
