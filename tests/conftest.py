"""Pytest configuration for test isolation.

Every test gets a clean environment: the ``CCR_*`` tolerance overrides are
removed so a developer's shell cannot change thresholds under the tests, and
the shared engine in ``db.client`` is reset so each test can bind its own
file-backed SQLite database through the ``database_url`` fixture.
"""

from __future__ import annotations

import os
from collections.abc import Iterator
from pathlib import Path

import pytest
from db.client import reset_engine

from tests.helpers.db import bootstrap_sqlite_db


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    for name in list(os.environ):
        if name.startswith("CCR_"):
            monkeypatch.delenv(name, raising=False)
    reset_engine()
    yield
    reset_engine()


@pytest.fixture
def database_url(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> str:
    """URL of a fresh SQLite database with the full schema."""

    url = bootstrap_sqlite_db(tmp_path / "db" / "test.sqlite3")
    monkeypatch.setenv("DATABASE_URL", url)
    return url
