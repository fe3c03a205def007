"""Order store selection."""

import logging

from src.core.config import Settings
from src.stores.base import OrderStore
from src.stores.memory import MemoryOrderStore
from src.stores.sql import SqlOrderStore

logger = logging.getLogger(__name__)


async def build_order_store(settings: Settings) -> OrderStore:
    """Build the configured order store, creating SQL tables when missing."""
    if settings.order_store_backend == "memory":
        logger.warning("Using in-memory order store; data is lost on restart")
        return MemoryOrderStore()

    store = SqlOrderStore(
        settings.database_url,
        isolation_level=settings.database_isolation_level,
        echo=settings.database_echo,
    )
    await store.create_schema()
    logger.info("SQL order store ready (isolation=%s)", settings.database_isolation_level)
    return store
