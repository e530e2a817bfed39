import logging
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from peerflex.core.config import settings


logger = logging.getLogger(__name__)

_client: Optional[AsyncIOMotorClient] = None
_db: Optional[AsyncIOMotorDatabase] = None


async def connect_to_mongo(url: Optional[str] = None, db_name: Optional[str] = None) -> AsyncIOMotorDatabase:
    global _client, _db
    _client = AsyncIOMotorClient(url or settings.MONGODB_URL, tz_aware=True)
    _db = _client[db_name or settings.MONGODB_DB]
    logger.info("Connected to MongoDB database %s", _db.name)
    return _db


async def close_mongo_connection() -> None:
    global _client, _db
    if _client is not None:
        _client.close()
        logger.info("MongoDB connection closed")
    _client = None
    _db = None


def use_database(db: AsyncIOMotorDatabase) -> None:
    """Install an already-open database handle (used by tests and embedders)."""
    global _db
    _db = db


def get_database() -> AsyncIOMotorDatabase:
    if _db is None:
        raise RuntimeError("MongoDB is not connected; call connect_to_mongo() first")
    return _db


async def mongo_db_dependency() -> AsyncIOMotorDatabase:
    return get_database()
