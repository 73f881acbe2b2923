"""
Test configuration and fixtures.

This module sets up test environment and provides shared fixtures for all tests.
"""

import os
import tempfile
from datetime import date

import pytest

# Point the app at a throwaway SQLite file and disable background work.
# Must be set BEFORE any imports of database.connection or shared.config
_TEST_DB_DIR = tempfile.mkdtemp(prefix="chairbook-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TEST_DB_DIR}/test.db"
os.environ["REDIS_URL"] = "redis://localhost:6379/0"
os.environ["JWT_SECRET"] = "test-secret-for-staff-tokens"
os.environ["TIMEZONE"] = "Europe/Madrid"
os.environ["RECONCILIATION_ENABLED"] = "false"
os.environ["NOTIFICATIONS_REDIS_ENABLED"] = "false"

# A Monday far enough ahead that the same-day floor never applies
FUTURE_MONDAY = date(2030, 11, 18)
FUTURE_TUESDAY = date(2030, 11, 19)
FUTURE_SUNDAY = date(2030, 11, 24)


@pytest.fixture
def future_monday() -> date:
    return FUTURE_MONDAY


@pytest.fixture
def future_tuesday() -> date:
    return FUTURE_TUESDAY


@pytest.fixture
def future_sunday() -> date:
    return FUTURE_SUNDAY
