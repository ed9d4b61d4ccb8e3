# project_service/main.py
from __future__ import annotations

import os
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from project_service.clients.permission_client import PermissionServiceClient
from project_service.clients.workflow_client import WorkflowServiceClient
from project_service.config import Settings, load_settings
from project_service.dal.counter_dal import CounterDAL
from project_service.dal.product_dal import ProductTemplateDAL
from project_service.dal.render_dal import EnvironmentDAL, RenderSetDAL
from project_service.dal.service_dal import ServiceDAL
from project_service.db.mongo import create_client, get_db, init_indexes
from project_service.events import RabbitBus
from project_service.logging_conf import setup_logging
from project_service.middleware import add_cors, install_request_logging, add_error_handlers
from project_service.routers import health_router, project_router
from project_service.services.cleanup import CleanupQueue
from project_service.services.product_service import ProductService

logger = logging.getLogger("project_service")


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or load_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Logging first
        setup_logging(settings.log_level)
        logger.info("Starting %s on %s:%s", settings.app_name, settings.host, settings.port)

        client = create_client(settings)
        db = get_db(client, settings)
        try:
            await init_indexes(db)
            logger.info("Mongo indexes initialized")
        except Exception as e:
            logger.exception("Failed to initialize Mongo indexes: %s", e)
            # Let the service start; routers may still function if collections exist.

        bus = RabbitBus(settings)
        try:
            await bus.connect()
        except Exception as e:
            logger.warning("RabbitMQ connect failed (will continue without bus): %s", e)

        permissions = PermissionServiceClient(
            settings.permission_api_base_url,
            settings.http_client_timeout_seconds,
            root_key=settings.permission_api_root_key,
            service_name_header=settings.service_name,
        )
        workflows = WorkflowServiceClient(
            settings.workflow_api_base_url,
            settings.http_client_timeout_seconds,
            root_key=settings.permission_api_root_key,
            service_name_header=settings.service_name,
        )
        cleanup = CleanupQueue(workers=settings.cleanup_workers, retain=settings.cleanup_job_retention)
        await cleanup.start()

        app.state.settings = settings
        app.state.cleanup_queue = cleanup
        app.state.product_service = ProductService(
            products=ProductTemplateDAL(db),
            services=ServiceDAL(db),
            counters=CounterDAL(db),
            render_sets=RenderSetDAL(db),
            environments=EnvironmentDAL(db),
            permissions=permissions,
            workflows=workflows,
            cleanup=cleanup,
            bus=bus,
            fanout_limit=settings.permission_fanout_limit,
        )

        yield

        # Shutdown
        await cleanup.stop()
        await permissions.aclose()
        await workflows.aclose()
        try:
            await bus.close()
        except Exception as e:
            logger.warning("RabbitMQ close failed: %s", e)
        client.close()
        logger.info("Shutdown complete")

    app = FastAPI(title=settings.app_name, lifespan=lifespan)

    # Middlewares
    add_cors(app, settings.cors_allow_origins)
    install_request_logging(app)
    add_error_handlers(app)

    # Routers
    app.include_router(health_router)
    app.include_router(project_router)

    @app.get("/")
    async def root():
        return {
            "service": settings.service_name,
            "name": settings.app_name,
            "status": "ok",
            "docs": "/docs",
            "openapi": "/openapi.json",
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = load_settings()
    reload_flag = os.getenv("RELOAD", "0") in ("1", "true", "True")
    uvicorn.run(
        "project_service.main:app",
        host=settings.host,
        port=settings.port,
        reload=reload_flag,
        log_level="info",
    )
