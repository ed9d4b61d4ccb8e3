from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class DeployType(str, Enum):
    k8s = "k8s"
    helm = "helm"
    pm = "pm"
    external = "external"


class Visibility(str, Enum):
    public = "public"
    private = "private"


STATUS_DELETING = "deleting"


# ─────────────────────────────────────────────────────────────
# Containers derived from a service's configuration
# ─────────────────────────────────────────────────────────────
class ImagePath(BaseModel):
    """
    Absolute dotted paths inside values.yaml that produced a container image.
    Empty string means the rule did not use that component.
    """
    repo: str = ""
    image: str = ""
    tag: str = ""


class Container(BaseModel):
    name: str
    image: str
    image_path: Optional[ImagePath] = None


class HelmChart(BaseModel):
    name: str = ""
    repo: str = ""
    version: str = ""
    values_yaml: str = Field(default="", description="Raw values.yaml text of the chart.")


# ─────────────────────────────────────────────────────────────
# Versioned service record
# ─────────────────────────────────────────────────────────────
class ServiceRecord(BaseModel):
    service_name: str
    product_name: str
    type: DeployType
    revision: int = 0
    visibility: Visibility = Visibility.private
    status: str = ""
    helm_chart: Optional[HelmChart] = None
    containers: List[Container] = Field(default_factory=list)
    create_by: Optional[str] = None
    create_time: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def counter_key(self) -> str:
        return service_counter_key(self.service_name, self.product_name)


def service_counter_key(service_name: str, product_name: str) -> str:
    return f"service:{service_name}:{product_name}"
