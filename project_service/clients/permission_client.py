from __future__ import annotations

import logging
from typing import Dict, List, Optional

from project_service.clients.base import BaseServiceClient
from project_service.models import Role

logger = logging.getLogger("project_service.clients.permission")


class PermissionServiceClient(BaseServiceClient):
    """
    Async client for the authorization (user/role/permission) service.

    Endpoints used:
      - GET    /directory/userProject?userId=
      - GET    /directory/rolePermission?roleId=&productName=
      - GET    /directory/roles?productName=&userType=all-users
      - POST   /directory/productTeam
      - DELETE /directory/productTeam?productName=
    """

    service = "permission-service"

    async def get_user_projects(self, user_id: int) -> Dict[str, List[int]]:
        """
        Projects the user is explicitly associated with, mapped to their role ids
        in the order the service returns them.
        """
        items = await self._request("GET", "/directory/userProject", params={"userId": user_id})
        out: Dict[str, List[int]] = {}
        for item in items or []:
            out.setdefault(item["productName"], []).append(int(item["roleId"]))
        return out

    async def get_permission_uuids(self, role_id: int, project_name: str) -> List[str]:
        items = await self._request(
            "GET",
            "/directory/rolePermission",
            params={"roleId": role_id, "productName": project_name},
        )
        return [str(i["permissionUUID"]) if isinstance(i, dict) else str(i) for i in items or []]

    async def get_all_users_role(self, project_name: str) -> Optional[Role]:
        """The role granted to every user of the project, if the project defines one."""
        items = await self._request(
            "GET",
            "/directory/roles",
            params={"productName": project_name, "userType": "all-users"},
        )
        for item in items or []:
            return Role(id=int(item["id"]), name=item.get("name", ""), project_name=project_name)
        return None

    async def add_project_team(self, project_name: str, team_id: Optional[int], user_ids: List[int]) -> None:
        await self._request(
            "POST",
            "/directory/productTeam",
            json={"productName": project_name, "teamId": team_id or 0, "userIds": user_ids},
        )
        logger.info("Project team updated for %s (team=%s, users=%d)", project_name, team_id, len(user_ids))

    async def delete_project_team(self, project_name: str) -> None:
        await self._request("DELETE", "/directory/productTeam", params={"productName": project_name})
