# conftest.py
# Ensure the repository root is on sys.path so tests can import both
# apps.services.ranking_bot and libs.core the same way the runner does.

import random
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
ROOT_STR = str(ROOT)

if ROOT_STR not in sys.path:
    sys.path.insert(0, ROOT_STR)

from apps.services.ranking_bot.diagnostics import RecordingDiagnosticSink  # noqa: E402
from apps.services.ranking_bot.page_readiness import PageReadiness  # noqa: E402

from fakes import make_settings  # noqa: E402


@pytest.fixture
def settings():
    """Fast settings: tiny bounds, no screenshots."""
    return make_settings()


@pytest.fixture
def sink():
    return RecordingDiagnosticSink()


@pytest.fixture
def rng():
    return random.Random(1234)


@pytest.fixture
def readiness(settings, sink):
    return PageReadiness(settings, sink)
