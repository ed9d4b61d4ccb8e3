from __future__ import annotations

from typing import List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import PyMongoError

from project_service.db.mongo import ENVIRONMENTS, RENDER_SETS
from project_service.dal.common import encode
from project_service.errors import PersistenceError
from project_service.models import Environment, RenderSet, STATUS_DELETING


class RenderSetDAL:
    """
    Versioned render sets (template variables).
    Collection: 'render_set'
    """

    def __init__(self, db: AsyncIOMotorDatabase):
        self.col = db[RENDER_SETS]

    async def create(self, render_set: RenderSet) -> RenderSet:
        try:
            await self.col.insert_one(encode(render_set))
        except PyMongoError as e:
            raise PersistenceError(f"failed to create render set {render_set.name}", detail=str(e)) from e
        return render_set

    async def find_default(self, product_name: str) -> Optional[RenderSet]:
        try:
            doc = await self.col.find_one(
                {"product_tmpl": product_name, "is_default": True},
                {"_id": 0},
                sort=[("revision", -1)],
            )
        except PyMongoError as e:
            raise PersistenceError(f"failed to find render set of {product_name}", detail=str(e)) from e
        return RenderSet.model_validate(doc) if doc else None

    async def delete_by_product(self, product_name: str) -> None:
        try:
            await self.col.delete_many({"product_tmpl": product_name})
        except PyMongoError as e:
            raise PersistenceError(f"failed to delete render sets of {product_name}", detail=str(e)) from e


class EnvironmentDAL:
    """
    Environments created from a project.
    Collection: 'product'
    """

    def __init__(self, db: AsyncIOMotorDatabase):
        self.col = db[ENVIRONMENTS]

    async def list(self, product_name: str) -> List[Environment]:
        try:
            cursor = self.col.find({"product_name": product_name}, {"_id": 0})
            return [Environment.model_validate(d) async for d in cursor]
        except PyMongoError as e:
            raise PersistenceError(f"failed to list environments of {product_name}", detail=str(e)) from e

    async def count(self, product_name: str) -> int:
        try:
            return await self.col.count_documents({"product_name": product_name})
        except PyMongoError as e:
            raise PersistenceError(f"failed to count environments of {product_name}", detail=str(e)) from e

    async def mark_deleting(self, env_name: str, product_name: str) -> None:
        try:
            await self.col.update_one(
                {"env_name": env_name, "product_name": product_name},
                {"$set": {"status": STATUS_DELETING}},
            )
        except PyMongoError as e:
            raise PersistenceError(f"failed to update environment {env_name}", detail=str(e)) from e

    async def delete_by_product(self, product_name: str) -> int:
        try:
            res = await self.col.delete_many({"product_name": product_name})
        except PyMongoError as e:
            raise PersistenceError(f"failed to delete environments of {product_name}", detail=str(e)) from e
        return res.deleted_count
