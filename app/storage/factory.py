"""
Storage backend selection
"""

import logging
from decimal import Decimal

from app.storage.base import StorageBackend
from app.storage.memory import MemoryStorage

logger = logging.getLogger(__name__)


async def build_storage(settings) -> StorageBackend:
    """
    Create the configured storage backend.

    The SQL backend creates missing tables on first use.
    """
    balance = Decimal(settings.new_user_balance)
    if settings.storage_backend == "memory":
        logger.info("Using in-memory storage")
        return MemoryStorage(new_user_balance=balance)

    from app.db.session import AsyncSessionLocal, create_tables
    from app.storage.sql import SqlStorage

    await create_tables()
    logger.info("Using SQL storage")
    return SqlStorage(AsyncSessionLocal, new_user_balance=balance)
