"""
EcoSort API package.

Public exports:
- create_app: FastAPI factory (run with `uvicorn --factory ecosort.api:create_app`)
- AppState: app.state container used by tests
"""

from __future__ import annotations

from ecosort.api.app import create_app
from ecosort.api.state import AppState

__all__ = ["AppState", "create_app"]
