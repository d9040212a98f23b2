"""
SightEd Backend — Storage Package
===================================

What:  Builds the configured DocumentStore and exposes it to routes.
How:   create_store() runs once in the app lifespan and the result is kept on
       app.state.store. Routes receive it through the get_store dependency,
       and tests swap it by assigning app.state.store.
"""

import logging

from starlette.requests import Request

from sighted.config import Settings
from sighted.storage.base import DocumentStore
from sighted.storage.memory_store import MemoryDocumentStore
from sighted.storage.sql_store import SQLDocumentStore

logger = logging.getLogger(__name__)

__all__ = [
    "DocumentStore",
    "MemoryDocumentStore",
    "SQLDocumentStore",
    "create_store",
    "get_store",
]


async def create_store(config: Settings) -> DocumentStore:
    """Creates the backend named by STORAGE_BACKEND; no fallback between backends."""
    if config.storage_backend == "memory":
        logger.info("Using in-memory document store")
        return MemoryDocumentStore()

    store = SQLDocumentStore(database_url=config.database_url)
    if config.auto_create_tables:
        await store.create_tables()
    logger.info("Using SQL document store (%s)", store.dialect)
    return store


def get_store(request: Request) -> DocumentStore:
    """FastAPI dependency returning the store created at startup."""
    return request.app.state.store
