from __future__ import annotations

from typing import Optional

from fastapi import Header, Request
from pydantic import BaseModel

from project_service.services.cleanup import CleanupQueue
from project_service.services.product_service import ProductService


class Caller(BaseModel):
    user_id: int = 0
    user_name: str = ""
    is_super_user: bool = False


def get_caller(
    x_user_id: Optional[int] = Header(default=None),
    x_user_name: Optional[str] = Header(default=None),
    x_super_user: Optional[bool] = Header(default=None),
) -> Caller:
    """Identity headers set by the gateway after authentication."""
    return Caller(user_id=x_user_id or 0, user_name=x_user_name or "", is_super_user=bool(x_super_user))


def get_product_service(request: Request) -> ProductService:
    return request.app.state.product_service


def get_cleanup_queue(request: Request) -> CleanupQueue:
    return request.app.state.cleanup_queue
