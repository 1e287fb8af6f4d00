"""Fixtures for route tests: one router on a bare app, dependencies replaced."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from cardiva.db.connection import get_db
from cardiva.web.auth import get_current_user


@pytest.fixture
def db():
    """Stand-in session; services are patched at the route module."""
    session = MagicMock()
    session.execute = AsyncMock()
    return session


@pytest.fixture
def make_client(db):
    def _make(router, current_user=None, overrides=None) -> TestClient:
        app = FastAPI()
        app.include_router(router)
        app.dependency_overrides[get_db] = lambda: db
        app.dependency_overrides[get_current_user] = lambda: current_user
        for dependency, value in (overrides or {}).items():
            app.dependency_overrides[dependency] = value
        return TestClient(app)

    return _make
