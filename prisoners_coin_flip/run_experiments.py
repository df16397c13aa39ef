from __future__ import annotations

import argparse
from typing import Optional, Sequence

import pandas as pd

from . import config
from .experiments import run_optimal_sweep, run_poisson_limit, run_simulation_sweep
from .io_utils import ensure_results_layout, get_logger
from .viz_utils import generate_figures


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Run prisoners' coin-flip strategy experiments.")
    p.add_argument(
        "--mode",
        choices=["full", "quick"],
        default="full",
        help="full: N_TRIALS on the fine p grid; quick: smaller dev run writing _quick outputs",
    )
    p.add_argument(
        "--only",
        choices=["simulation", "optimal", "poisson", "figures", "all"],
        default="all",
        help="Run only one stage (or 'all' for the default full pipeline).",
    )
    p.add_argument("--seed", type=int, default=config.BASE_SEED, help="Base random seed.")
    p.add_argument("--trials", type=int, default=None, help="Override trials per grid point.")
    p.add_argument("--workers", type=int, default=1, help="Worker processes for the simulation.")
    return p.parse_args(argv)


def _print_table(title: str, df: pd.DataFrame) -> None:
    print("")
    print(title)
    print(df.to_string(index=False, float_format=lambda v: f"{v:.6f}"))


def main(argv: Optional[Sequence[str]] = None) -> None:
    args = parse_args(argv)
    mode = args.mode
    only = args.only

    ensure_results_layout()
    logger = get_logger(mode=mode)

    if mode == "quick":
        n_trials = config.N_TRIALS_QUICK
        p_values = config.P_VALUES_QUICK
    else:
        n_trials = config.N_TRIALS
        p_values = config.P_VALUES
    if args.trials is not None:
        n_trials = args.trials

    logger.info(f"RUN START mode={mode} n_trials={n_trials} seed={args.seed} workers={args.workers}")
    if only != "all":
        logger.info(f"RUN CONFIG only={only}")

    warn = logger.warning
    info = logger.info

    if only in ("all", "simulation"):
        run_simulation_sweep(
            mode=mode,
            n_trials=n_trials,
            p_values=p_values,
            n_values=config.N_VALUES,
            seed=args.seed,
            n_workers=args.workers,
            logger_warn=warn,
            logger_info=info,
        )

    optimal_df = None
    if only in ("all", "optimal", "poisson"):
        optimal_df = run_optimal_sweep(
            mode=mode,
            n_min=config.N_SWEEP_MIN,
            n_max=config.N_SWEEP_MAX,
            logger_warn=warn,
            logger_info=info,
        )
        _print_table("Optimal strategy by number of prisoners", optimal_df)

    if only in ("all", "poisson"):
        opt = run_poisson_limit(
            mode=mode,
            optimal_df=optimal_df,
            n_terms=config.POISSON_TERMS,
            logger_warn=warn,
            logger_info=info,
        )
        print("")
        print(
            f"Poisson limit: lambda* = {opt.lam_opt:.6f} "
            f"(theory {config.LAMBDA_OPT_THEORY:.6f}), "
            f"max P(freedom) = {opt.max_probability:.6f} (theory {config.POISSON_MAX_THEORY})"
        )

    if only in ("all", "figures"):
        generate_figures(mode)

    logger.info("RUN END")


if __name__ == "__main__":
    main()
