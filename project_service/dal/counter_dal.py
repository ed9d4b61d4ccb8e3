from __future__ import annotations

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument
from pymongo.errors import PyMongoError

from project_service.db.mongo import COUNTERS
from project_service.errors import PersistenceError, SequenceError


class CounterDAL:
    """
    Named monotonic sequences.
    Collection: 'counter'  ({_id: <name>, seq: <int>})
    """

    def __init__(self, db: AsyncIOMotorDatabase):
        self.col = db[COUNTERS]

    async def next_seq(self, name: str) -> int:
        try:
            doc = await self.col.find_one_and_update(
                {"_id": name},
                {"$inc": {"seq": 1}},
                upsert=True,
                return_document=ReturnDocument.AFTER,
            )
        except PyMongoError as e:
            raise SequenceError(f"failed to get next sequence for {name}", detail=str(e)) from e
        return int(doc["seq"])

    async def delete(self, name: str) -> None:
        try:
            await self.col.delete_one({"_id": name})
        except PyMongoError as e:
            raise PersistenceError(f"failed to delete counter {name}", detail=str(e)) from e
