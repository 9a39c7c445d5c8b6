"""Shared test fixtures for lifegraph."""

import sys
from datetime import datetime
from pathlib import Path
from unittest.mock import MagicMock

import pytest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from memory.store import EntityStore  # noqa: E402
from observability import events, metrics  # noqa: E402

NOW = datetime(2026, 3, 2, 12, 0, 0)


@pytest.fixture(autouse=True)
def _reset_observability():
    """Metrics and the event buffer are process-wide singletons."""
    metrics.reset()
    events.clear()
    yield
    metrics.reset()
    events.clear()


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def store(tmp_path):
    return EntityStore(tmp_path / "memory.db")


@pytest.fixture
def provider():
    """LLM provider double; set `generate.return_value` / `side_effect` per test."""
    mock = MagicMock()
    mock.is_available.return_value = True
    return mock


@pytest.fixture(autouse=True)
def _no_llm_env(monkeypatch):
    """Keep tests from auto-detecting a real provider from the developer's shell."""
    for var in ("ANTHROPIC_API_KEY", "OPENAI_API_KEY", "OLLAMA_URL", "OLLAMA_MODEL"):
        monkeypatch.delenv(var, raising=False)
