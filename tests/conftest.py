"""
Tomato Notes - Test Fixtures
============================

Shared pytest fixtures for all tests.
"""

import pytest

from tomato_notes.database import Database
from tomato_notes.logic.history_log import HistoryLog
from tomato_notes.logic.workspace import NotesWorkspace
from tomato_notes.models import Settings


# ==========================================================================
# Storage Fixtures
# ==========================================================================

@pytest.fixture
def db_path(tmp_path) -> str:
    """Path to a fresh SQLite store for each test."""
    return str(tmp_path / "tomato_notes_test.db")


@pytest.fixture
def db(db_path) -> Database:
    return Database(db_path)


# ==========================================================================
# Domain Fixtures
# ==========================================================================

@pytest.fixture
def settings() -> Settings:
    return Settings()


@pytest.fixture
def history(db) -> HistoryLog:
    return HistoryLog(db)


@pytest.fixture
def workspace(db) -> NotesWorkspace:
    return NotesWorkspace(db)
