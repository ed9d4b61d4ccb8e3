from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from project_service.dependencies import Caller, get_caller, get_cleanup_queue, get_product_service
from project_service.middleware import get_correlation_id
from project_service.models import (
    CleanupJob,
    ImageSearchingRule,
    MatchRulesUpdate,
    ProductInfo,
    ProductTemplate,
    ServiceOrderUpdate,
)
from project_service.services.cleanup import CleanupQueue
from project_service.services.product_service import ProductService

router = APIRouter(prefix="/project", tags=["projects"])


@router.get("/products", response_model=List[ProductTemplate])
async def list_products(
    caller: Caller = Depends(get_caller),
    svc: ProductService = Depends(get_product_service),
):
    return await svc.list_enriched(caller.user_id, caller.is_super_user)


@router.get("/products/hierarchy", response_model=List[ProductInfo])
async def list_products_hierarchy(
    caller: Caller = Depends(get_caller),
    svc: ProductService = Depends(get_product_service),
):
    return await svc.list_templates_hierarchy(caller.user_name, caller.user_id, caller.is_super_user)


@router.get("/products/opensource", response_model=List[ProductTemplate])
async def list_open_source_products(svc: ProductService = Depends(get_product_service)):
    return await svc.list_open_source()


@router.get("/products/{name}", response_model=ProductTemplate)
async def get_product(name: str, svc: ProductService = Depends(get_product_service)):
    return await svc.get_template_services(name)


@router.post("/products", response_model=ProductTemplate)
async def create_product(
    payload: ProductTemplate,
    caller: Caller = Depends(get_caller),
    svc: ProductService = Depends(get_product_service),
):
    payload.update_by = caller.user_name
    return await svc.create_template(payload)


@router.put("/products/{name}", response_model=ProductTemplate)
async def update_product(
    name: str,
    payload: ProductTemplate,
    caller: Caller = Depends(get_caller),
    svc: ProductService = Depends(get_product_service),
):
    payload.update_by = caller.user_name
    return await svc.update_template(name, payload)


@router.put("/products/{name}/project", response_model=ProductTemplate)
async def update_project(
    name: str,
    payload: ProductTemplate,
    caller: Caller = Depends(get_caller),
    svc: ProductService = Depends(get_product_service),
):
    payload.update_by = caller.user_name
    return await svc.update_project(name, payload)


@router.put("/products/{name}/onboarding")
async def update_onboarding_status(
    name: str,
    status: str = Query(...),
    svc: ProductService = Depends(get_product_service),
):
    await svc.update_onboarding_status(name, status)
    return {"updated": True}


@router.put("/products/{name}/service-order")
async def update_service_order(
    name: str,
    payload: ServiceOrderUpdate,
    caller: Caller = Depends(get_caller),
    svc: ProductService = Depends(get_product_service),
):
    await svc.update_service_order(caller.user_name, name, payload.services)
    return {"updated": True}


@router.delete("/products/{name}", response_model=CleanupJob)
async def delete_product(
    name: str,
    request: Request,
    caller: Caller = Depends(get_caller),
    svc: ProductService = Depends(get_product_service),
):
    return await svc.delete_template(caller.user_name, name, get_correlation_id(request))


@router.get("/products/{name}/match-rules", response_model=List[ImageSearchingRule])
async def get_match_rules(name: str, svc: ProductService = Depends(get_product_service)):
    return await svc.get_custom_match_rules(name)


@router.put("/products/{name}/match-rules", response_model=List[ImageSearchingRule])
async def update_match_rules(
    name: str,
    payload: MatchRulesUpdate,
    caller: Caller = Depends(get_caller),
    svc: ProductService = Depends(get_product_service),
):
    return await svc.update_custom_match_rules(name, caller.user_name, payload.rules)


@router.get("/jobs/{job_id}", response_model=CleanupJob)
async def get_cleanup_job(job_id: str, queue: CleanupQueue = Depends(get_cleanup_queue)):
    job = queue.get(job_id)
    if not job:
        raise HTTPException(status_code=404, detail="Job not found")
    return job
