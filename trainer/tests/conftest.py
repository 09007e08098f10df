"""Pytest configuration."""

import os
import pytest


def pytest_configure(config):
    config.addinivalue_line(
        "markers", "integration: mark test as requiring a live database (skipped unless RUN_INTEGRATION=1)"
    )


def pytest_collection_modifyitems(config, items):
    if os.environ.get("RUN_INTEGRATION") == "1":
        return
    skip = pytest.mark.skip(reason="set RUN_INTEGRATION=1 to run against a live database")
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip)


os.environ.setdefault("DATABASE_URL", "postgresql://localhost:5432/repertoire_trainer?user=postgres&password=postgres")
