# ddui/conftest.py
import sys
import pytest
from pathlib import Path

from fastapi.testclient import TestClient

# Add project root to PYTHONPATH
PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from ddui.core.config import Settings
from ddui.core.metrics import METRICS
from ddui.models.entitlement import Entitlements, Features


@pytest.fixture(autouse=True)
def reset_metrics():
    """Each test starts from zeroed counters and gauges."""
    METRICS.reset()
    yield


@pytest.fixture
def make_settings(tmp_path):
    """
    Build Settings for a test without reading the real environment's scan root.

    Defaults point the scan root at tmp_path and the license file at a path
    that does not exist; run pacing is kept short.
    """
    def _make(**overrides):
        values = dict(
            ENV="test",
            SCAN_ROOT=str(tmp_path),
            LICENSE_PATH=str(tmp_path / "no-such-license"),
            RUN_MIN_INTERVAL_MS=20,
            RUN_BUFFER_SIZE=4,
        )
        values.update(overrides)
        return Settings(**values)

    return _make


@pytest.fixture
def community():
    return Entitlements.community()


@pytest.fixture
def no_ci_entitlements():
    """A paid-looking tier that nevertheless lacks the run capability."""
    return Entitlements(
        edition="Team",
        max_hosts=50,
        demo_stacks=None,
        features=Features(ci_api=False, wizards=True, history_days=90),
        org="acme",
    )


@pytest.fixture
def make_client(make_settings, community):
    """Return a TestClient for a freshly built app.

    Keyword arguments go to Settings; ``entitlements`` overrides the license.
    """
    from ddui.main import create_app

    def _make(entitlements=None, raise_server_exceptions=True, **settings_overrides):
        app = create_app(make_settings(**settings_overrides), entitlements=entitlements or community)
        return TestClient(app, raise_server_exceptions=raise_server_exceptions)

    return _make
