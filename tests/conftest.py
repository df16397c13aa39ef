import matplotlib

matplotlib.use("Agg")

import pytest

from prisoners_coin_flip.io_utils import RESULTS_ENV_VAR


@pytest.fixture
def results_dir(tmp_path, monkeypatch):
    """Point results_root() at a per-test temporary directory."""
    root = tmp_path / "results"
    monkeypatch.setenv(RESULTS_ENV_VAR, str(root))
    return root


@pytest.fixture
def log_sink():
    """Collect (level, message) pairs from the logger_info / logger_warn hooks."""
    messages = []

    def info(msg):
        messages.append(("info", msg))

    def warn(msg):
        messages.append(("warn", msg))

    return messages, info, warn
