from __future__ import annotations

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING

from project_service.config import Settings

PRODUCT_TEMPLATES = "template_product"
SERVICES = "template_service"
COUNTERS = "counter"
RENDER_SETS = "render_set"
ENVIRONMENTS = "product"


def create_client(settings: Settings) -> AsyncIOMotorClient:
    return AsyncIOMotorClient(settings.mongo_uri)


def get_db(client: AsyncIOMotorClient, settings: Settings) -> AsyncIOMotorDatabase:
    """
    Return the database handle using configured DB name.
    """
    return client[settings.mongo_db]


async def init_indexes(db: AsyncIOMotorDatabase) -> None:
    """
    Create indexes for all project-service collections.
    Call this from FastAPI startup.
    """
    # project templates
    await db[PRODUCT_TEMPLATES].create_index("product_name", unique=True)
    await db[PRODUCT_TEMPLATES].create_index("is_opensource")

    # service templates: one document per (service, product, type, revision)
    await db[SERVICES].create_index(
        [("service_name", ASCENDING), ("product_name", ASCENDING), ("type", ASCENDING), ("revision", DESCENDING)],
        unique=True,
    )
    await db[SERVICES].create_index("product_name")
    await db[SERVICES].create_index("visibility")

    # render sets
    await db[RENDER_SETS].create_index([("name", ASCENDING), ("revision", DESCENDING)], unique=True)
    await db[RENDER_SETS].create_index("product_tmpl")

    # environments
    await db[ENVIRONMENTS].create_index([("env_name", ASCENDING), ("product_name", ASCENDING)], unique=True)
