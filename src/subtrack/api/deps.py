"""FastAPI dependencies for the subtrack API.

Route handlers depend on ``get_pool`` and ``get_config``. Both are stubs
that raise until ``init_dependencies`` (called from the app lifespan) or a
test overrides them via ``app.dependency_overrides``.
"""

from __future__ import annotations

import logging

import asyncpg
from fastapi import FastAPI

from subtrack.config import AppConfig
from subtrack.db import Database

logger = logging.getLogger(__name__)


def get_pool() -> asyncpg.Pool:
    """Dependency stub, overridden at app startup or in tests."""
    raise RuntimeError("Database pool not initialized")


def get_config() -> AppConfig:
    """Dependency stub, overridden at app startup or in tests."""
    raise RuntimeError("App config not initialized")


def wire_config(app: FastAPI, config: AppConfig) -> None:
    """Serve *config* from ``get_config`` for every request."""
    app.dependency_overrides[get_config] = lambda: config


async def init_dependencies(app: FastAPI, config: AppConfig) -> Database:
    """Provision and connect the database, then wire the pool into *app*.

    Returns the ``Database`` so the caller can close it on shutdown.
    """
    db = Database.from_env(config.db_name)
    await db.provision()
    pool = await db.connect()
    app.dependency_overrides[get_pool] = lambda: pool
    logger.info("Database pool ready for %s", config.db_name)
    return db


async def shutdown_dependencies(app: FastAPI, db: Database | None) -> None:
    """Close the pool opened by ``init_dependencies``."""
    app.dependency_overrides.pop(get_pool, None)
    if db is not None:
        await db.close()
