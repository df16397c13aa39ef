from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Iterable, Optional
from uuid import uuid4

import pandas as pd

RESULTS_ENV_VAR = "PRISONERS_RESULTS_DIR"


def package_root() -> Path:
    """Return the package directory (repo-relative results live under this)."""
    return Path(__file__).resolve().parent


def results_root() -> Path:
    override = os.environ.get(RESULTS_ENV_VAR)
    if override:
        return Path(override).resolve()
    return package_root() / "results"


def mode_suffix(mode: str) -> str:
    return "" if mode == "full" else f"_{mode}"


def ensure_results_layout() -> None:
    root = results_root()
    (root / "simulation").mkdir(parents=True, exist_ok=True)
    (root / "optimal").mkdir(parents=True, exist_ok=True)
    (root / "figures").mkdir(parents=True, exist_ok=True)


LOGGER_NAME = "prisoners_coin_flip"
LOG_FORMAT = "%(asctime)s | %(levelname)s | %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"


def get_logger(*, mode: str = "full") -> logging.Logger:
    """
    Run logger for the experiment pipeline.

    Messages go to stderr and are appended to `diagnostics<suffix>.log` under
    the results root. Handlers are attached on the first call only; later
    calls return the same logger.
    """
    ensure_results_layout()
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.INFO)
    if getattr(logger, "_configured", False):
        return logger

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATEFMT)
    log_path = results_root() / f"diagnostics{mode_suffix(mode)}.log"
    for handler in (
        logging.FileHandler(log_path, mode="a", encoding="utf-8"),
        logging.StreamHandler(),
    ):
        handler.setLevel(logging.INFO)
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    logger.propagate = False
    logger._configured = True  # type: ignore[attr-defined]
    return logger


def atomic_write_csv(df: pd.DataFrame, path: Path) -> None:
    """Write `df` to a sibling temp file, then `os.replace` it over `path`."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + f".tmp.{os.getpid()}.{uuid4().hex}")
    df.to_csv(tmp, index=False)
    os.replace(tmp, path)


def read_result_csv(path: Path, *, columns: Iterable[str]) -> Optional[pd.DataFrame]:
    """
    Load a result table written by a sweep.

    Returns None when the sweep has not produced the file yet; a file that
    lacks any of `columns` raises ValueError naming them.
    """
    if not path.exists():
        return None
    df = pd.read_csv(path)
    missing = [c for c in columns if c not in df.columns]
    if missing:
        raise ValueError(f"{path.name} is missing result columns {missing}")
    return df
