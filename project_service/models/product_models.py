from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from .service_models import DeployType


# ─────────────────────────────────────────────────────────────
# Image searching (match) rules
# ─────────────────────────────────────────────────────────────
class ImageSearchingRule(BaseModel):
    """
    Dotted key paths into values.yaml. Paths are relative to whichever node the
    rule is matched at; the segment `$*` stands for any single key.
    """
    repo: str = ""
    image: str = ""
    tag: str = ""
    in_use: bool = False
    preset_id: int = 0

    def is_blank(self) -> bool:
        return not (self.repo or self.image or self.tag)


class CustomRule(BaseModel):
    """Naming templates for delivered images/tars, e.g. "{{.TIMESTAMP}}-{{.TASK_ID}}:{{.REPO_BRANCH}}"."""
    pr_rule: Optional[str] = None
    branch_rule: Optional[str] = None
    tag_rule: Optional[str] = None
    jenkins_rule: Optional[str] = None


# ─────────────────────────────────────────────────────────────
# Project template
# ─────────────────────────────────────────────────────────────
class KeyValue(BaseModel):
    key: str
    value: str = ""
    services: List[str] = Field(default_factory=list)


class EnvRenderKV(BaseModel):
    env_name: str
    vars: List[KeyValue] = Field(default_factory=list)


class ServiceInfo(BaseModel):
    name: str
    owner: str


class ProductFeature(BaseModel):
    deploy_type: DeployType = DeployType.k8s
    basic_facility: str = "kubernetes"


class ProductTemplate(BaseModel):
    product_name: str
    project_name: Optional[str] = None
    revision: int = 0
    description: Optional[str] = None
    team_id: Optional[int] = None
    user_ids: List[int] = Field(default_factory=list)

    services: List[List[str]] = Field(default_factory=list)
    shared_services: List[ServiceInfo] = Field(default_factory=list)

    # Render-set variables; filled on read, never stored on the template.
    vars: Optional[List[KeyValue]] = None
    env_vars: List[EnvRenderKV] = Field(default_factory=list)

    product_feature: Optional[ProductFeature] = None
    image_searching_rules: List[ImageSearchingRule] = Field(default_factory=list)
    custom_image_rule: Optional[CustomRule] = None
    custom_tar_rule: Optional[CustomRule] = None

    onboarding_status: int = 0
    is_opensource: bool = False

    create_time: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    update_time: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    update_by: Optional[str] = None

    # Derived per caller at listing time.
    role: Optional[str] = None
    permission_uuids: Optional[List[str]] = None
    show_project: Optional[bool] = None
    total_service_num: Optional[int] = None
    total_env_num: Optional[int] = None

    def is_helm(self) -> bool:
        return self.product_feature is not None and self.product_feature.deploy_type == DeployType.helm

    def all_service_infos(self) -> List[ServiceInfo]:
        """Own services (owner = this project) followed by shared ones."""
        shared = {s.name for s in self.shared_services}
        out = [
            ServiceInfo(name=name, owner=self.product_name)
            for group in self.services
            for name in group
            if name not in shared
        ]
        out.extend(self.shared_services)
        return out

    def shared_service_map(self) -> Dict[str, ServiceInfo]:
        return {s.name: s for s in self.shared_services}


# Fields of ProductTemplate that describe the caller, not the project.
DERIVED_FIELDS = {"vars", "role", "permission_uuids", "show_project", "total_service_num", "total_env_num"}


class ServiceOrderUpdate(BaseModel):
    services: List[List[str]]


class MatchRulesUpdate(BaseModel):
    rules: List[ImageSearchingRule] = Field(default_factory=list)
