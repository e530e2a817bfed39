import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

from bson import ObjectId
from bson.errors import InvalidId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import PyMongoError

from peerflex.core.errors import RemoteServiceError
from peerflex.utils.change_feed import DELETE, INSERT, UPDATE, ChangeFeed


logger = logging.getLogger(__name__)

Sort = Sequence[Tuple[str, int]]


def to_object_id(value: Any) -> Optional[ObjectId]:
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(str(value))
    except (InvalidId, TypeError):
        return None


def normalize(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Expose Mongo's ``_id`` as a string ``id`` for the service layer."""
    if doc is None:
        return None
    doc = dict(doc)
    if "_id" in doc:
        doc["id"] = str(doc.pop("_id"))
    return doc


class Repository:
    """One collection of the data service.

    Reads return normalized rows; every write publishes a change event for
    each affected row so subscribers see the same stream a hosted backend
    would push.
    """

    table: str = ""

    def __init__(self, db: AsyncIOMotorDatabase, feed: Optional[ChangeFeed] = None) -> None:
        self._db = db
        self._feed = feed

    @property
    def collection(self):
        return self._db[self.table]

    async def _publish(self, event_type: str, new: Optional[dict] = None, old: Optional[dict] = None) -> None:
        if self._feed is not None:
            await self._feed.publish(self.table, event_type, new=new, old=old)

    async def find(
        self,
        query: Dict[str, Any],
        sort: Optional[Sort] = None,
        skip: int = 0,
        limit: int = 0,
    ) -> List[Dict[str, Any]]:
        try:
            cursor = self.collection.find(query)
            if sort:
                cursor = cursor.sort(list(sort))
            if skip:
                cursor = cursor.skip(skip)
            if limit:
                cursor = cursor.limit(limit)
            items = await cursor.to_list(length=limit or None)
        except PyMongoError as exc:
            logger.error("Query on %s failed: %s", self.table, exc)
            raise RemoteServiceError(f"Failed to query {self.table}") from exc
        return [normalize(it) for it in items]

    async def find_one(self, query: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        try:
            doc = await self.collection.find_one(query)
        except PyMongoError as exc:
            logger.error("Lookup on %s failed: %s", self.table, exc)
            raise RemoteServiceError(f"Failed to query {self.table}") from exc
        return normalize(doc)

    async def get(self, row_id: Any) -> Optional[Dict[str, Any]]:
        oid = to_object_id(row_id)
        if oid is None:
            return None
        return await self.find_one({"_id": oid})

    async def get_many(self, row_ids: Sequence[Any]) -> Dict[str, Dict[str, Any]]:
        oids = [oid for oid in (to_object_id(r) for r in row_ids) if oid is not None]
        if not oids:
            return {}
        rows = await self.find({"_id": {"$in": oids}})
        return {row["id"]: row for row in rows}

    async def count(self, query: Dict[str, Any]) -> int:
        try:
            return await self.collection.count_documents(query)
        except PyMongoError as exc:
            logger.error("Count on %s failed: %s", self.table, exc)
            raise RemoteServiceError(f"Failed to count {self.table}") from exc

    async def insert(self, doc: Dict[str, Any]) -> Dict[str, Any]:
        doc = dict(doc)
        try:
            result = await self.collection.insert_one(doc)
        except PyMongoError as exc:
            logger.error("Insert into %s failed: %s", self.table, exc)
            raise RemoteServiceError(f"Failed to write {self.table}") from exc
        doc["_id"] = result.inserted_id
        row = normalize(doc)
        await self._publish(INSERT, new=row)
        return row

    async def update(self, query: Dict[str, Any], changes: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Apply a Mongo update document to every matching row; returns the new rows."""
        before = await self.find(query)
        if not before:
            return []
        oids = [to_object_id(row["id"]) for row in before]
        try:
            await self.collection.update_many({"_id": {"$in": oids}}, changes)
        except PyMongoError as exc:
            logger.error("Update on %s failed: %s", self.table, exc)
            raise RemoteServiceError(f"Failed to write {self.table}") from exc
        after = await self.get_many([row["id"] for row in before])
        updated = []
        for old in before:
            new = after.get(old["id"])
            if new is None:
                continue
            updated.append(new)
            await self._publish(UPDATE, new=new, old=old)
        return updated

    async def update_by_id(self, row_id: Any, changes: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        oid = to_object_id(row_id)
        if oid is None:
            return None
        rows = await self.update({"_id": oid}, changes)
        return rows[0] if rows else None

    async def delete(self, query: Dict[str, Any]) -> List[Dict[str, Any]]:
        before = await self.find(query)
        if not before:
            return []
        oids = [to_object_id(row["id"]) for row in before]
        try:
            await self.collection.delete_many({"_id": {"$in": oids}})
        except PyMongoError as exc:
            logger.error("Delete on %s failed: %s", self.table, exc)
            raise RemoteServiceError(f"Failed to write {self.table}") from exc
        for old in before:
            await self._publish(DELETE, old=old)
        return before

    async def delete_by_id(self, row_id: Any) -> bool:
        oid = to_object_id(row_id)
        if oid is None:
            return False
        return bool(await self.delete({"_id": oid}))
