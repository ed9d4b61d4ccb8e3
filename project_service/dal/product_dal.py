from __future__ import annotations

from typing import List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError, PyMongoError

from project_service.db.mongo import PRODUCT_TEMPLATES
from project_service.dal.common import encode, utcnow
from project_service.errors import PersistenceError, ValidationError
from project_service.models import DERIVED_FIELDS, ProductTemplate


def _to_doc(tmpl: ProductTemplate) -> dict:
    doc = encode(tmpl.model_dump(exclude=DERIVED_FIELDS))
    doc["update_time"] = utcnow()
    return doc


class ProductTemplateDAL:
    """
    CRUD for project templates.
    Collection: 'template_product'
    """

    def __init__(self, db: AsyncIOMotorDatabase):
        self.col = db[PRODUCT_TEMPLATES]

    async def find(self, product_name: str) -> Optional[ProductTemplate]:
        try:
            doc = await self.col.find_one({"product_name": product_name}, {"_id": 0})
        except PyMongoError as e:
            raise PersistenceError(f"failed to find project {product_name}", detail=str(e)) from e
        return ProductTemplate.model_validate(doc) if doc else None

    async def list(self, *, is_opensource: Optional[bool] = None) -> List[ProductTemplate]:
        filt = {}
        if is_opensource is not None:
            filt["is_opensource"] = is_opensource
        try:
            cursor = self.col.find(filt, {"_id": 0}).sort("product_name", 1)
            return [ProductTemplate.model_validate(d) async for d in cursor]
        except PyMongoError as e:
            raise PersistenceError("failed to list projects", detail=str(e)) from e

    async def create(self, tmpl: ProductTemplate) -> ProductTemplate:
        doc = _to_doc(tmpl)
        doc["create_time"] = doc["update_time"]
        try:
            await self.col.insert_one(doc)
        except DuplicateKeyError as e:
            raise ValidationError(f"project {tmpl.product_name} already exists") from e
        except PyMongoError as e:
            raise PersistenceError(f"failed to create project {tmpl.product_name}", detail=str(e)) from e
        return tmpl

    async def update(self, product_name: str, tmpl: ProductTemplate) -> None:
        doc = _to_doc(tmpl)
        doc.pop("create_time", None)
        doc.pop("product_name", None)
        try:
            await self.col.update_one({"product_name": product_name}, {"$set": doc})
        except PyMongoError as e:
            raise PersistenceError(f"failed to update project {product_name}", detail=str(e)) from e

    async def update_onboarding_status(self, product_name: str, status: int) -> None:
        try:
            await self.col.update_one(
                {"product_name": product_name},
                {"$set": {"onboarding_status": status, "update_time": utcnow()}},
            )
        except PyMongoError as e:
            raise PersistenceError(f"failed to update onboarding status of {product_name}", detail=str(e)) from e

    async def update_service_order(self, product_name: str, services: List[List[str]], update_by: str) -> None:
        try:
            await self.col.update_one(
                {"product_name": product_name},
                {"$set": {"services": services, "update_by": update_by, "update_time": utcnow()}},
            )
        except PyMongoError as e:
            raise PersistenceError(f"failed to update service order of {product_name}", detail=str(e)) from e

    async def delete(self, product_name: str) -> None:
        try:
            await self.col.delete_one({"product_name": product_name})
        except PyMongoError as e:
            raise PersistenceError(f"failed to delete project {product_name}", detail=str(e)) from e
