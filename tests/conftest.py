import sys
from pathlib import Path

# Ensure package import for tests
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import pytest

from Chord_Scope.config import Config


@pytest.fixture(autouse=True)
def _restore_config(monkeypatch):
    """Reset :class:`Config` and endpoint variables around each test."""

    saved = Config.defaults()
    saved_file = Config.config_file
    for name in ("CHORD_WS_URL", "CHORD_WS_HOST", "CHORD_WS_PORT", "CHORD_SCOPE_CONFIG"):
        monkeypatch.delenv(name, raising=False)
    yield
    Config.restore(saved)
    Config.config_file = saved_file
