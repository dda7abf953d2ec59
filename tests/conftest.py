"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest
import pytest_asyncio

# Sans DATABASE_URL l'application démarre en mode démo ; chaque test construit
# son propre moteur SQLite via ``build_engine``.
os.environ["DATABASE_URL"] = ""
os.environ.setdefault("SECRET_KEY", "secret-key")
os.environ.setdefault("FRONTEND_BASE_URL", "http://localhost:3000")

# Ensure the app package is importable when tests run from the repo root.
BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.append(str(BACKEND_ROOT))

from app.db.base import Base  # noqa: E402
from app.db.row_store import RowStore  # noqa: E402
from app.db.session import build_engine  # noqa: E402


@pytest_asyncio.fixture()
async def engine(tmp_path):
    # Fichier plutôt que ``:memory:`` : les requêtes lancées avec
    # ``asyncio.gather`` ouvrent chacune leur propre connexion.
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture()
def store(engine) -> RowStore:
    return RowStore(engine)


@pytest.fixture()
def offline_store() -> RowStore:
    return RowStore(None)
