"""Async HTTP client for the family and activity endpoints."""
from __future__ import annotations

from typing import Any, Dict, List, Optional

import httpx

from ..schemas import Activity, ActivityType, Family


MAX_LIST_LIMIT = 500


class ApiError(RuntimeError):
    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(f"{message} (status={status_code})")
        self.status_code = status_code
        self.message = message


def _describe_response(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text or "<empty response>"
    if isinstance(body, dict):
        detail = body.get("detail") or body.get("error")
        if isinstance(detail, str):
            return detail
    return str(body)


class BabySyncApi:
    """Thin wrapper over the REST surface; every call raises :class:`ApiError` on non-2xx."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._client = httpx.AsyncClient(base_url=base_url.rstrip("/"), timeout=timeout, transport=transport)

    async def __aenter__(self) -> "BabySyncApi":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, action: str, **kwargs: Any) -> Any:
        try:
            resp = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            raise ApiError(0, f"{action} failed: {exc}") from exc
        if resp.status_code >= 400:
            raise ApiError(resp.status_code, f"{action} failed: {_describe_response(resp)}")
        return resp.json()

    async def health(self) -> Dict[str, Any]:
        return await self._request("GET", "/api/health", "Health check")

    async def create_family(self, baby_name: str = "Baby") -> Family:
        body = await self._request("POST", "/api/family", "Create family", json={"babyName": baby_name})
        return Family.model_validate(body)

    async def join_family(self, code: str) -> Family:
        body = await self._request("POST", "/api/family/join", "Join family", json={"code": code})
        return Family.model_validate(body)

    async def list_activities(self, family_id: str, *, today: bool = False, limit: int = 50) -> List[Activity]:
        params = {"today": "true" if today else "false", "limit": limit}
        body = await self._request("GET", f"/api/families/{family_id}/activities", "Fetch activities", params=params)
        return [Activity.model_validate(item) for item in body]

    async def add_activity(
        self,
        family_id: str,
        activity_type: ActivityType,
        data: Dict[str, Any],
        *,
        started_at: Optional[int] = None,
        ended_at: Optional[int] = None,
        created_by: Optional[str] = None,
    ) -> Activity:
        payload: Dict[str, Any] = {"type": ActivityType(activity_type).value, "data": data}
        if started_at is not None:
            payload["startedAt"] = started_at
        if ended_at is not None:
            payload["endedAt"] = ended_at
        if created_by is not None:
            payload["createdBy"] = created_by
        body = await self._request("POST", f"/api/families/{family_id}/activities", "Add activity", json=payload)
        return Activity.model_validate(body)

    async def update_activity(self, activity_id: str, updates: Dict[str, Any], *, device_id: Optional[str] = None) -> Activity:
        """``updates`` uses wire keys: ``data`` and/or ``endedAt`` (``None`` reopens)."""
        payload = {key: value for key, value in updates.items() if key in {"data", "endedAt"}}
        if device_id is not None:
            payload["deviceId"] = device_id
        body = await self._request("PUT", f"/api/activities/{activity_id}", "Update activity", json=payload)
        return Activity.model_validate(body)

    async def delete_activity(self, activity_id: str, *, device_id: Optional[str] = None) -> None:
        params = {"deviceId": device_id} if device_id else None
        await self._request("DELETE", f"/api/activities/{activity_id}", "Delete activity", params=params)
