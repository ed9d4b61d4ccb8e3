from __future__ import annotations

from typing import Optional

from project_service.clients.base import BaseServiceClient


class WorkflowServiceClient(BaseServiceClient):
    """
    Async client for the workflow/pipeline service; only the project-scoped
    deletes used by cascading project deletion.
    """

    service = "workflow-service"

    async def delete_test_modules(self, project_name: str, *, request_id: Optional[str] = None) -> None:
        await self._request(
            "DELETE", "/testing/test", params={"productName": project_name}, correlation_id=request_id
        )

    async def delete_workflows(self, project_name: str, *, request_id: Optional[str] = None) -> None:
        await self._request(
            "DELETE", "/workflow/workflow", params={"productName": project_name}, correlation_id=request_id
        )

    async def delete_pipelines(self, project_name: str, *, request_id: Optional[str] = None) -> None:
        await self._request(
            "DELETE", "/workflow/v2/pipelines", params={"productName": project_name}, correlation_id=request_id
        )
