from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field

from .product_models import KeyValue


class RenderSet(BaseModel):
    name: str
    revision: int = 0
    product_tmpl: str
    env_name: Optional[str] = None
    is_default: bool = False
    kvs: List[KeyValue] = Field(default_factory=list)
    update_by: Optional[str] = None


class Environment(BaseModel):
    env_name: str
    product_name: str
    status: str = ""
