import os
from pathlib import Path

import pytest


def pytest_addoption(parser):
    parser.addoption(
        "--run-slow",
        action="store_true",
        default=False,
        help="Run slow tests (real filesystem watchers)",
    )


def pytest_configure(config):
    config.addinivalue_line(
        "markers", "slow: mark slow tests (use --run-slow)"
    )


def pytest_collection_modifyitems(config, items):
    # Slow tests - CLI flag or env var
    run_slow = (
        config.getoption("--run-slow")
        or os.getenv("MULTIBUFFER_RUN_SLOW_TESTS") == "1"
    )
    if not run_slow:
        skip_slow = pytest.mark.skip(
            reason="slow tests skipped (use --run-slow or MULTIBUFFER_RUN_SLOW_TESTS=1)"
        )
        for item in items:
            if "slow" in item.keywords:
                item.add_marker(skip_slow)


@pytest.fixture
def clean_environment(monkeypatch):
    """Ensure tests run without MULTIBUFFER_* overrides from the shell."""
    for k in [k for k in os.environ if k.startswith("MULTIBUFFER_")]:
        monkeypatch.delenv(k, raising=False)
    yield


@pytest.fixture
def make_workspace(tmp_path):
    """Create a workspace tree from a {relative_path: content} mapping."""

    def _make(files: dict[str, str]) -> Path:
        root = tmp_path / "workspace"
        root.mkdir(exist_ok=True)
        for rel, content in files.items():
            path = root / rel
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")
        return root.resolve()

    return _make
