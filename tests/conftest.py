"""Pytest hooks and fixtures."""

import os

import pytest


def pytest_configure(config):
    """Register custom markers (also in pyproject.toml)."""
    config.addinivalue_line(
        "markers",
        "requires_engine: needs a reachable Qlik engine and QLIK_* credentials (skipped in CI)",
    )


def pytest_collection_modifyitems(config, items):
    """Skip requires_engine tests in CI or when no credentials are configured."""
    if os.environ.get("CI") != "true" and os.environ.get("QLIK_API_KEY") and os.environ.get("QLIK_APP_ID"):
        return
    skip = pytest.mark.skip(reason="Requires a live Qlik engine (QLIK_API_KEY, QLIK_TENANT_URL, QLIK_APP_ID)")
    for item in items:
        if "requires_engine" in item.keywords:
            item.add_marker(skip)
