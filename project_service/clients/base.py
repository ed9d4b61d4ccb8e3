from __future__ import annotations

from typing import Any, Dict, Optional

import httpx

from project_service.errors import ServiceUnavailableError


class BaseServiceClient:
    """
    Thin async JSON client. Transport failures and HTTP >= 400 both surface as
    ServiceUnavailableError so callers handle one error type per upstream.
    """

    service: str = "upstream"

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        *,
        root_key: str = "",
        service_name_header: str = "project-service",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or "").rstrip("/")
        if not self.base_url:
            raise ValueError(f"base url for {self.service} is not set")
        self.timeout = timeout
        self._root_key = root_key
        self._service_name_header = service_name_header
        self._client = httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout, transport=transport)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    # ─────────────────────────────────────────────────────────────
    # Low-level request helper
    # ─────────────────────────────────────────────────────────────
    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Any] = None,
        correlation_id: Optional[str] = None,
    ) -> Any:
        headers = {
            "Accept": "application/json",
            "X-Service-Name": self._service_name_header,
        }
        if self._root_key:
            headers["Authorization"] = f"X-ROOT-API-KEY {self._root_key}"
        if correlation_id:
            headers["X-Correlation-ID"] = correlation_id

        try:
            resp = await self._client.request(method, path, params=params, json=json, headers=headers)
        except httpx.HTTPError as e:
            raise ServiceUnavailableError(
                f"{self.service} request {method} {path} failed", service=self.service, detail=str(e)
            ) from e
        if resp.status_code >= 400:
            raise ServiceUnavailableError(
                f"{self.service} HTTP {resp.status_code}: {method} {path}",
                service=self.service,
                status=resp.status_code,
                detail=resp.text[:500],
            )
        if resp.headers.get("content-type", "").startswith("application/json"):
            return resp.json()
        return resp.text
