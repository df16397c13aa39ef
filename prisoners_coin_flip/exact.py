"""
Closed-form success probabilities.

The group goes free when k >= 1 prisoners flip and all k coins land heads:

    P(p, n) = sum_{k=1..n} Binom(k; n, p) * 2^-k

Terms are evaluated in log space through scipy's binomial log-pmf so that
n in the thousands neither overflows C(n, k) nor underflows p^k.
"""

from __future__ import annotations

import math
from typing import Union

import numpy as np
from scipy.stats import binom, poisson

from . import config
from .model import check_positive_count, check_prisoner_count, check_probability

ArrayLike = Union[float, np.ndarray]

LOG2 = math.log(2.0)


def _as_probabilities(p: ArrayLike) -> tuple[np.ndarray, bool]:
    arr = np.asarray(p, dtype=np.float64)
    if arr.ndim == 0:
        check_probability(float(arr))
    elif not np.all((arr >= 0.0) & (arr <= 1.0)):
        raise ValueError("p must be in [0, 1] for every element")
    return np.atleast_1d(arr), arr.ndim == 0


def exact_success_probability(p: ArrayLike, n: int) -> ArrayLike:
    """
    Exact probability of freedom for flip probability `p` and `n` prisoners.

    `p` may be a scalar (returns float) or an array (returns an array of the
    same length). p=0 gives 0; p=1 gives 2^-n.
    """
    n = check_prisoner_count(n)
    ps, scalar = _as_probabilities(p)

    k = np.arange(1, n + 1, dtype=np.float64)[:, None]
    with np.errstate(divide="ignore"):
        log_terms = binom.logpmf(k, n, ps[None, :]) - k * LOG2
    total = np.exp(log_terms).sum(axis=0)

    if scalar:
        return float(total[0])
    return total


def closed_form_success_probability(p: ArrayLike, n: int) -> ArrayLike:
    """(1 - p/2)^n - (1 - p)^n, the binomial sum collapsed by the binomial theorem."""
    n = check_prisoner_count(n)
    ps, scalar = _as_probabilities(p)
    out = (1.0 - ps / 2.0) ** n - (1.0 - ps) ** n
    if scalar:
        return float(out[0])
    return out


def quartic_n4(p: ArrayLike) -> ArrayLike:
    """Success probability for four prisoners expanded as a polynomial in p."""
    ps, scalar = _as_probabilities(p)
    out = -15.0 / 16.0 * ps**4 + 3.5 * ps**3 - 4.5 * ps**2 + 2.0 * ps
    if scalar:
        return float(out[0])
    return out


def optimal_flip_probability_closed_form(n: int) -> float:
    """
    Stationary point of (1 - p/2)^n - (1 - p)^n.

    Setting the derivative to zero gives (1 - p) / (1 - p/2) = 2^(-1/(n-1)).
    A lone prisoner should always flip.
    """
    n = check_prisoner_count(n)
    if n == 1:
        return 1.0
    c = 2.0 ** (-1.0 / (n - 1))
    return (1.0 - c) / (1.0 - c / 2.0)


def poisson_success_probability(lam: ArrayLike, n_terms: int = config.POISSON_TERMS) -> ArrayLike:
    """
    Large-n limit: the flip count is Poisson(lam) with lam = n * p.

        sum_{k=1..K} Poisson(k; lam) * 2^-k

    K = `n_terms` truncates the series; the tail is negligible for K=1000.
    """
    n_terms = check_positive_count(n_terms, name="n_terms")
    arr = np.asarray(lam, dtype=np.float64)
    scalar = arr.ndim == 0
    lams = np.atleast_1d(arr)
    if not np.all(np.isfinite(lams)) or np.any(lams < 0.0):
        raise ValueError(f"lam must be finite and >= 0, got {lam!r}")

    k = np.arange(1, n_terms + 1, dtype=np.float64)[:, None]
    with np.errstate(divide="ignore"):
        log_terms = poisson.logpmf(k, lams[None, :]) - k * LOG2
    total = np.exp(log_terms).sum(axis=0)

    if scalar:
        return float(total[0])
    return total
