from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class Role(BaseModel):
    id: int
    name: str = ""
    project_name: str = ""


class ContainerInfo(BaseModel):
    value: str
    label: str


class ServiceInfoView(BaseModel):
    value: str
    label: str
    containers: List[ContainerInfo] = Field(default_factory=list)


class ProductInfo(BaseModel):
    value: str
    label: str
    services: List[ServiceInfoView] = Field(default_factory=list)


class JobStatus(str, Enum):
    pending = "pending"
    running = "running"
    succeeded = "succeeded"
    failed = "failed"


class CleanupJob(BaseModel):
    id: str
    name: str
    status: JobStatus = JobStatus.pending
    error: Optional[str] = None
    submitted_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: Optional[datetime] = None
