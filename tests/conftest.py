"""
Root-level conftest for all tests.

Every test gets explicit settings that do not depend on a .env file, with
retry backoff shrunk so retry paths run in milliseconds.
"""

import pytest

from autoclaim.main.config import Settings, reset_settings, set_settings


@pytest.fixture
def test_settings() -> Settings:
    settings = Settings(
        queue_base_url="https://queue.test",
        queue_page_size=20,
        queue_retry_attempts=3,
        queue_retry_min_wait_seconds=0.01,
        queue_retry_max_wait_seconds=0.02,
        max_consecutive_list_failures=3,
        minimum_poll_interval_seconds=0.1,
        claim_queue_size_per_worker=2,
        default_task_type="audittask",
        default_claim_limit=10,
        default_poll_interval_seconds=1.0,
        default_concurrent_claims=10,
        shutdown_timeout_seconds=2.0,
        # Testing mode
        testing=True,
        dev=True,
    )
    set_settings(settings)
    return settings


@pytest.fixture(autouse=True)
def reset_settings_after_test():
    """Reset settings after each test to prevent state leakage."""
    yield
    reset_settings()
