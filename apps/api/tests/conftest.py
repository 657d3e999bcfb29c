"""Shared fixtures for the time capsule API tests."""

import pytest

from main import app
from routers import rate_limit


@pytest.fixture(autouse=True)
def capsule_app_without_quotas():
    """Seal and reveal bursts in tests must not trip quotas; test_rate_limit.py mounts its own app."""
    was_disabled = getattr(app.state, "disable_rate_limits", False)
    app.state.disable_rate_limits = True
    rate_limit._local_counters.clear()
    try:
        yield app
    finally:
        rate_limit._local_counters.clear()
        app.state.disable_rate_limits = was_disabled
