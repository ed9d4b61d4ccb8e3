from __future__ import annotations

from typing import Any, Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError, PyMongoError

from project_service.db.mongo import SERVICES
from project_service.dal.common import encode
from project_service.errors import PersistenceError
from project_service.models import DeployType, STATUS_DELETING, ServiceInfo, ServiceRecord, Visibility


class ServiceDAL:
    """
    Versioned service templates. Every revision is its own document; the current
    record of a (service_name, product_name, type) is its highest revision whose
    status is not 'deleting'.
    Collection: 'template_service'
    """

    def __init__(self, db: AsyncIOMotorDatabase):
        self.col = db[SERVICES]

    async def _current(self, match: Dict[str, Any]) -> List[ServiceRecord]:
        pipeline = [
            {"$match": {**match, "status": {"$ne": STATUS_DELETING}}},
            {"$sort": {"revision": -1}},
            {
                "$group": {
                    "_id": {"service_name": "$service_name", "product_name": "$product_name", "type": "$type"},
                    "doc": {"$first": "$$ROOT"},
                }
            },
            {"$replaceRoot": {"newRoot": "$doc"}},
            {"$sort": {"service_name": 1}},
        ]
        try:
            docs = await self.col.aggregate(pipeline).to_list(length=None)
        except PyMongoError as e:
            raise PersistenceError("failed to list services", detail=str(e)) from e
        return [ServiceRecord.model_validate(d) for d in docs]

    async def list_current(
        self,
        *,
        product_name: Optional[str] = None,
        type: Optional[DeployType] = None,
        visibility: Optional[Visibility] = None,
        in_services: Optional[List[ServiceInfo]] = None,
    ) -> List[ServiceRecord]:
        match: Dict[str, Any] = {}
        if product_name:
            match["product_name"] = product_name
        if type:
            match["type"] = type.value
        if visibility:
            match["visibility"] = visibility.value
        if in_services is not None:
            if not in_services:
                return []
            match["$or"] = [{"service_name": s.name, "product_name": s.owner} for s in in_services]
        return await self._current(match)

    async def list_current_by_product(self, product_name: str) -> List[ServiceRecord]:
        return await self.list_current(product_name=product_name)

    async def count(self, product_name: str) -> int:
        return len(await self.list_current(product_name=product_name))

    async def create(self, record: ServiceRecord) -> ServiceRecord:
        try:
            await self.col.insert_one(encode(record))
        except DuplicateKeyError as e:
            raise PersistenceError(
                f"service {record.service_name} revision {record.revision} already exists", detail=str(e)
            ) from e
        except PyMongoError as e:
            raise PersistenceError(f"failed to create service {record.service_name}", detail=str(e)) from e
        return record

    async def delete(
        self,
        service_name: str,
        type: Optional[DeployType],
        product_name: str,
        status: str,
        revision: int,
    ) -> int:
        """
        Delete matching revisions. Empty/zero arguments do not filter, so
        delete("", None, product, "", 0) removes every revision of the product.
        """
        query: Dict[str, Any] = {}
        if service_name:
            query["service_name"] = service_name
        if type:
            query["type"] = type.value
        if product_name:
            query["product_name"] = product_name
        if status:
            query["status"] = status
        if revision:
            query["revision"] = revision
        try:
            res = await self.col.delete_many(query)
        except PyMongoError as e:
            raise PersistenceError(f"failed to delete service {service_name or '*'}", detail=str(e)) from e
        return res.deleted_count

    async def delete_by_product(self, product_name: str) -> int:
        return await self.delete("", None, product_name, "", 0)
