"""
Shared fixtures: a ProductService wired to in-memory DALs and clients.
"""

from unittest.mock import AsyncMock

import pytest

from fakes import (
    FakeCounterDAL,
    FakeEnvironmentDAL,
    FakePermissionClient,
    FakeProductDAL,
    FakeRenderSetDAL,
    FakeServiceDAL,
    FakeWorkflowClient,
)
from project_service.services.cleanup import CleanupQueue
from project_service.services.product_service import ProductService


@pytest.fixture
def products():
    return FakeProductDAL()


@pytest.fixture
def services():
    return FakeServiceDAL()


@pytest.fixture
def counters():
    return FakeCounterDAL()


@pytest.fixture
def render_sets():
    return FakeRenderSetDAL()


@pytest.fixture
def environments():
    return FakeEnvironmentDAL()


@pytest.fixture
def permissions():
    return FakePermissionClient()


@pytest.fixture
def workflows():
    return FakeWorkflowClient()


@pytest.fixture
def bus():
    return AsyncMock()


@pytest.fixture
def cleanup():
    return CleanupQueue(workers=1)


@pytest.fixture
def product_service(products, services, counters, render_sets, environments, permissions, workflows, cleanup, bus):
    return ProductService(
        products=products,
        services=services,
        counters=counters,
        render_sets=render_sets,
        environments=environments,
        permissions=permissions,
        workflows=workflows,
        cleanup=cleanup,
        bus=bus,
    )
