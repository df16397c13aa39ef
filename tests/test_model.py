"""Tests for the Monte Carlo simulator and the aggregator."""

import types

import numpy as np
import pandas as pd
import pytest

from prisoners_coin_flip.exact import exact_success_probability
from prisoners_coin_flip.model import (
    SUMMARY_COLUMNS,
    aggregate_outcomes,
    draw_trials,
    iter_parameter_grid,
    simulate_grid,
    simulate_point,
    simulate_summary,
    trial_outcomes,
)


# ── Trials and outcomes ────────────────────────────────────


class TestTrials:
    def test_shapes_and_ranges(self):
        rng = np.random.default_rng(0)
        flips, tails = draw_trials(n_trials=1000, p=0.4, n=6, rng=rng)
        assert flips.shape == tails.shape == (1000,)
        assert np.all((flips >= 0) & (flips <= 6))
        assert np.all((tails >= 0) & (tails <= flips))

    def test_nobody_flips(self):
        rng = np.random.default_rng(0)
        flips, tails = draw_trials(n_trials=500, p=0.0, n=4, rng=rng)
        assert not flips.any()
        assert not tails.any()

    def test_everybody_flips(self):
        rng = np.random.default_rng(0)
        flips, _ = draw_trials(n_trials=500, p=1.0, n=4, rng=rng)
        assert np.all(flips == 4)

    def test_outcome_rule(self):
        flips = np.array([0, 1, 3, 3, 2])
        tails = np.array([0, 0, 0, 1, 2])
        assert trial_outcomes(flips, tails).tolist() == [False, True, True, False, False]

    def test_outcome_shape_mismatch(self):
        with pytest.raises(ValueError, match="shapes differ"):
            trial_outcomes(np.zeros(3), np.zeros(4))

    def test_seeded_draws_reproducible(self):
        a = draw_trials(n_trials=100, p=0.3, n=5, rng=np.random.default_rng(7))
        b = draw_trials(n_trials=100, p=0.3, n=5, rng=np.random.default_rng(7))
        assert np.array_equal(a[0], b[0])
        assert np.array_equal(a[1], b[1])


class TestDomainErrors:
    @pytest.mark.parametrize("p", [-0.01, 1.5, float("nan")])
    def test_bad_probability(self, p):
        with pytest.raises(ValueError, match="p must be in"):
            draw_trials(n_trials=10, p=p, n=4, rng=np.random.default_rng(0))

    @pytest.mark.parametrize("n", [0, -1, 3.5])
    def test_bad_prisoner_count(self, n):
        with pytest.raises(ValueError, match="n must be a positive integer"):
            draw_trials(n_trials=10, p=0.5, n=n, rng=np.random.default_rng(0))

    @pytest.mark.parametrize("n_trials", [0, -5])
    def test_bad_trial_count(self, n_trials):
        with pytest.raises(ValueError, match="n_trials must be a positive integer"):
            draw_trials(n_trials=n_trials, p=0.5, n=4, rng=np.random.default_rng(0))

    def test_grid_fails_before_sampling(self):
        # Validation is eager: the error comes from the call, not from iteration.
        with pytest.raises(ValueError):
            simulate_grid(n_trials=10, p_values=[0.2, 1.2], n_values=[4])
        with pytest.raises(ValueError):
            simulate_grid(n_trials=0, p_values=[0.2], n_values=[4])

    def test_bad_chunk_size(self):
        with pytest.raises(ValueError, match="chunk_size"):
            simulate_grid(n_trials=10, p_values=[0.2], n_values=[4], chunk_size=0)

    def test_bad_worker_count(self):
        with pytest.raises(ValueError, match="n_workers"):
            simulate_summary(n_trials=10, p_values=[0.2], n_values=[4], n_workers=0)

    @pytest.mark.parametrize("n_trials", [float("inf"), None, "many", 2.5])
    def test_non_integer_trial_count(self, n_trials):
        with pytest.raises(ValueError, match="n_trials must be a positive integer"):
            simulate_summary(n_trials=n_trials, p_values=[0.2], n_values=[4])

    @pytest.mark.parametrize("p", [None, "half"])
    def test_non_numeric_probability(self, p):
        with pytest.raises(ValueError, match="p must be in"):
            simulate_summary(n_trials=10, p_values=[p], n_values=[4])

    @pytest.mark.parametrize("n", [None, float("inf")])
    def test_non_numeric_prisoner_count(self, n):
        with pytest.raises(ValueError, match="n must be a positive integer"):
            simulate_summary(n_trials=10, p_values=[0.2], n_values=[n])


# ── Parameter sweep ────────────────────────────────────────


class TestParameterGrid:
    def test_cartesian_product(self):
        points = list(iter_parameter_grid([0.1, 0.2], [2, 3, 4]))
        assert len(points) == 6
        assert points[0] == (0.1, 2)
        assert points[-1] == (0.2, 4)

    def test_grid_is_lazy(self):
        records = simulate_grid(n_trials=10, p_values=[0.5], n_values=[4], seed=1)
        assert isinstance(records, types.GeneratorType)

    def test_chunks_bound_memory(self):
        records = list(simulate_grid(n_trials=25, p_values=[0.5], n_values=[4], seed=1, chunk_size=10))
        assert [len(o) for _, _, o in records] == [10, 10, 5]

    def test_simulate_point_chunks(self):
        chunks = list(simulate_point(n_trials=7, p=0.3, n=3, rng=np.random.default_rng(0), chunk_size=3))
        assert [c.size for c in chunks] == [3, 3, 1]


# ── Aggregator ─────────────────────────────────────────────


class TestAggregator:
    def test_groups_and_means(self):
        records = [
            (0.5, 4, np.array([True, False, False, True])),
            (0.5, 4, np.array([True, True])),
            (0.2, 2, np.array([False, False, True, False])),
            (0.2, 2, True),
        ]
        df = aggregate_outcomes(records)
        assert list(df.columns) == SUMMARY_COLUMNS
        assert len(df) == 2
        # Sorted by (n, p)
        first, second = df.iloc[0], df.iloc[1]
        assert first["n"] == 2 and first["p"] == 0.2
        assert first["n_trials"] == 5
        assert abs(first["success_rate"] - 2 / 5) < 1e-12
        assert second["n_trials"] == 6
        assert abs(second["success_rate"] - 4 / 6) < 1e-12

    def test_standard_error(self):
        df = aggregate_outcomes([(0.3, 3, np.array([True] * 25 + [False] * 75))])
        assert abs(df.iloc[0]["std_err"] - np.sqrt(0.25 * 0.75 / 100)) < 1e-12

    def test_empty(self):
        df = aggregate_outcomes([])
        assert df.empty
        assert list(df.columns) == SUMMARY_COLUMNS

    def test_deterministic_for_fixed_seed(self):
        kw = dict(n_trials=2000, p_values=[0.1, 0.5], n_values=[2, 5], seed=99)
        a = aggregate_outcomes(simulate_grid(**kw))
        b = aggregate_outcomes(simulate_grid(**kw))
        pd.testing.assert_frame_equal(a, b)

    def test_different_seeds_differ(self):
        kw = dict(n_trials=2000, p_values=[0.5], n_values=[5])
        (_, _, a), = simulate_grid(seed=1, **kw)
        (_, _, b), = simulate_grid(seed=2, **kw)
        assert not np.array_equal(a, b)


# ── Convergence to the exact value ─────────────────────────


class TestConvergence:
    @pytest.mark.parametrize("seed", [0, 1, 2, 3, 4])
    def test_four_prisoners_near_optimum(self, seed):
        df = simulate_summary(n_trials=100_000, p_values=[0.34], n_values=[4], seed=seed)
        rate = df.iloc[0]["success_rate"]
        assert abs(rate - exact_success_probability(0.34, 4)) < 0.01

    def test_grid_tracks_exact(self):
        ps = [0.1, 0.3, 0.5, 0.7, 0.9]
        ns = [2, 3, 5]
        df = simulate_summary(n_trials=50_000, p_values=ps, n_values=ns, seed=2024)
        assert len(df) == len(ps) * len(ns)
        for row in df.itertuples(index=False):
            assert abs(row.success_rate - exact_success_probability(row.p, row.n)) < 0.015

    def test_error_shrinks_with_trials(self):
        exact = exact_success_probability(0.34, 4)
        errs = []
        for n_trials in (1_000, 400_000):
            runs = [
                simulate_summary(n_trials=n_trials, p_values=[0.34], n_values=[4], seed=s).iloc[0]["success_rate"]
                for s in range(5)
            ]
            errs.append(np.sqrt(np.mean((np.array(runs) - exact) ** 2)))
        assert errs[1] < errs[0]

    def test_degenerate_points(self):
        df = simulate_summary(n_trials=20_000, p_values=[0.0, 1.0], n_values=[1, 3], seed=5)
        zero = df[df["p"] == 0.0]
        assert (zero["success_rate"] == 0.0).all()
        one = df[(df["p"] == 1.0) & (df["n"] == 1)].iloc[0]
        assert abs(one["success_rate"] - 0.5) < 0.02


# ── Serial vs parallel ─────────────────────────────────────


class TestReproducibility:
    def test_summary_matches_streamed_grid(self):
        kw = dict(n_trials=3000, p_values=[0.2, 0.6], n_values=[3, 4], seed=11, chunk_size=1000)
        streamed = aggregate_outcomes(simulate_grid(**kw))
        summary = simulate_summary(**kw)
        pd.testing.assert_frame_equal(streamed, summary)

    def test_parallel_matches_serial(self):
        kw = dict(n_trials=5000, p_values=[0.1, 0.4, 0.8], n_values=[2, 4], seed=314)
        serial = simulate_summary(n_workers=1, **kw)
        parallel = simulate_summary(n_workers=2, **kw)
        pd.testing.assert_frame_equal(serial, parallel)

    def test_repeated_grid_points_are_pooled(self):
        kw = dict(n_trials=1000, p_values=[0.5, 0.5], n_values=[4], seed=3)
        streamed = aggregate_outcomes(simulate_grid(**kw))
        summary = simulate_summary(**kw)
        assert len(summary) == 1
        assert summary.iloc[0]["n_trials"] == 2000
        pd.testing.assert_frame_equal(streamed, summary)

    def test_repeated_grid_points_pooled_in_parallel(self):
        kw = dict(n_trials=1000, p_values=[0.3, 0.3, 0.6], n_values=[2], seed=8)
        serial = simulate_summary(n_workers=1, **kw)
        parallel = simulate_summary(n_workers=2, **kw)
        assert serial["n_trials"].tolist() == [2000, 1000]
        pd.testing.assert_frame_equal(serial, parallel)
