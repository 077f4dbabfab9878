from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest

from goalloop.conf import settings
from goalloop.loop.metrics import reset_metrics_cache


@pytest.fixture(autouse=True)
def _isolate_goalloop_settings(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Keep tests hermetic: redirect goalloop paths to tmp_path + reset singletons."""

    log_dir = tmp_path / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)
    scenarios_file = tmp_path / ".goalloop" / "scenarios.yaml"

    monkeypatch.chdir(tmp_path)

    # Patch settings to point at tmp dirs
    monkeypatch.setattr(settings, "LOG_DIR", log_dir, raising=False)
    monkeypatch.setattr(settings, "SCENARIOS_FILE", scenarios_file, raising=False)
    monkeypatch.setattr(settings, "TRACE_LOG_ENABLED", False, raising=False)
    monkeypatch.setattr(settings, "CONSOLE_OUTPUT", False, raising=False)

    reset_metrics_cache()

    yield

    reset_metrics_cache()
