"""
Root pytest configuration.
"""

from __future__ import annotations

import os
from collections.abc import Generator

import pytest


def get_test_timeout(base: float, max_multiplier: float = 5.0) -> float:
    """Apply CI timeout multiplier to a base timeout value.

    Args:
        base: Base timeout in seconds
        max_multiplier: Maximum allowed multiplier (default 5x)

    Returns:
        Scaled timeout value

    Environment:
        CI_TIMEOUT_MULTIPLIER: Multiplier for CI environments (default: 1.0)
    """
    raw = os.getenv("CI_TIMEOUT_MULTIPLIER", "1.0")
    try:
        multiplier = float(raw) if raw else 1.0
        multiplier = min(multiplier, max_multiplier)
    except ValueError:
        multiplier = 1.0
    return base * multiplier


# Register cwhook testing fixtures for all tests
pytest_plugins = ("cwhook.testing.fixtures",)


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers for test categorization."""
    config.addinivalue_line(
        "markers",
        "critical: Tests that must never fail - core functionality",
    )
    config.addinivalue_line(
        "markers",
        "integration: Tests exercising several components together",
    )
    config.addinivalue_line(
        "markers",
        "slow: Tests that take >1 second or depend on wall-clock timers",
    )
    config.addinivalue_line(
        "markers",
        "property: Property-based tests (may be slow)",
    )


@pytest.fixture(autouse=True)
def reset_diagnostics_cache() -> Generator[None, None, None]:
    """Reset the diagnostics toggle and rate limits before each test.

    The diagnostics module caches the `internal_logging_enabled` setting
    at first access; resetting keeps tests from inheriting cached state.
    """
    import cwhook.core.diagnostics as diag

    diag._internal_logging_enabled = None
    diag._reset_rate_limits()
    yield
    diag._internal_logging_enabled = None
    diag._reset_rate_limits()


@pytest.fixture(autouse=True)
def reset_level_registry() -> Generator[None, None, None]:
    from cwhook.core.levels import _reset_registry

    _reset_registry()
    yield
    _reset_registry()
