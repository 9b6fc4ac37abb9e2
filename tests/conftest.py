"""
Pytest configuration and shared fixtures for EcoSort tests.
"""

import sys
from pathlib import Path
from typing import Any

import pytest
from fastapi.testclient import TestClient

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from ecosort.api import create_app
from ecosort.db import Database
from ecosort.points import PointsService
from ecosort.repository import UserRepo


@pytest.fixture
def db(tmp_path: Path) -> Database:
    """Fresh SQLite database per test."""
    return Database(tmp_path / "ecosort.db")


@pytest.fixture
def points(db: Database) -> PointsService:
    return PointsService(db)


@pytest.fixture
def users(db: Database) -> UserRepo:
    return UserRepo(db)


@pytest.fixture
def resident(users: UserRepo) -> dict[str, Any]:
    return users.get_or_create("resident-1", email="ana@example.org", username="ana")


@pytest.fixture
def admin(users: UserRepo) -> dict[str, Any]:
    users.get_or_create("admin-1", email="admin@example.org", username="admin")
    return users.set_role("admin-1", "admin")


@pytest.fixture
def sample_reward() -> dict[str, Any]:
    return {
        "name": "Reusable Tote Bag",
        "description": "Canvas bag made from recycled cotton",
        "category": "Merchandise",
        "cost": 100,
        "stock": 2,
    }


@pytest.fixture
def app(tmp_path: Path):
    return create_app(db_path=tmp_path / "api.db", rate_limit_db_path=tmp_path / "rate_limits.db")


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)


@pytest.fixture
def state(app):
    """Direct access to the repositories behind the app."""
    return app.state.state


@pytest.fixture
def admin_headers(state) -> dict[str, str]:
    state.users.get_or_create("admin-1", email="admin@example.org", username="admin")
    state.users.set_role("admin-1", "admin")
    return {"X-User-ID": "admin-1"}


@pytest.fixture
def resident_headers(state) -> dict[str, str]:
    state.users.get_or_create("resident-1", email="ana@example.org", username="ana")
    return {"X-User-ID": "resident-1"}


def credit(db: Database, user_id: str, amount: int) -> None:
    """Give a user points through the normal award path."""
    PointsService(db).award_points(user_id, amount, "Test credit", "admin-1")
