# fleetadmin/client/api.py

import logging
from typing import Any, Dict, List, Optional, Union

import httpx

from fleetadmin.core.errors import TransientConnectivityError, error_from_status
from fleetadmin.schemas.fleet import Vehicle
from fleetadmin.schemas.reminders import Reminder, UserRef

logger = logging.getLogger(__name__)

Reference = Union[int, str]


class ReminderApiClient:
    """
    Cliente HTTP de las rutas /api/fleet* y /api/user-profiles.
    Las respuestas no-2xx salen como errores de la taxonomía del motor.
    """

    def __init__(self, base_url: str = "", token: Optional[str] = None,
                 client: Optional[httpx.AsyncClient] = None, timeout: float = 15.0):
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        self._owns_client = client is None
        self.http = client or httpx.AsyncClient(base_url=base_url, headers=headers, timeout=timeout)

    async def aclose(self) -> None:
        if self._owns_client:
            await self.http.aclose()

    async def __aenter__(self) -> "ReminderApiClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    async def _request(self, method: str, path: str, json: Optional[Dict[str, Any]] = None) -> Any:
        try:
            res = await self.http.request(method, path, json=json)
        except httpx.TransportError as e:
            raise TransientConnectivityError(f"Cannot reach the server: {e}") from e

        if res.status_code == 204 or not res.content:
            payload = None
        else:
            try:
                payload = res.json()
            except ValueError:
                payload = res.text

        if res.is_success:
            return payload
        logger.debug("api: %s %s -> %s", method, path, res.status_code)
        raise error_from_status(res.status_code, payload)

    # -------------------------
    # Lecturas
    # -------------------------
    async def list_reminders(self, vehicle_ref: Reference) -> List[Reminder]:
        body = await self._request("GET", f"/api/fleet/{vehicle_ref}/reminder")
        return [Reminder.model_validate(r) for r in (body or {}).get("data", [])]

    async def get_vehicle(self, vehicle_ref: Reference) -> Vehicle:
        body = await self._request("GET", f"/api/fleet/{vehicle_ref}")
        return Vehicle.model_validate(body["data"])

    async def list_users(self) -> List[UserRef]:
        body = await self._request("GET", "/api/user-profiles")
        return [UserRef.model_validate(u) for u in (body or {}).get("data", [])]

    # -------------------------
    # Mutaciones
    # -------------------------
    async def create_reminder(self, vehicle_ref: Reference, payload: Dict[str, Any]) -> Reminder:
        body = await self._request("POST", f"/api/fleet/{vehicle_ref}/reminder", json=payload)
        return Reminder.model_validate(body["data"])

    async def update_reminder(self, reference: Reference, patch: Dict[str, Any]) -> Reminder:
        body = await self._request("PATCH", f"/api/fleet-reminder/{reference}", json=patch)
        return Reminder.model_validate(body["data"])

    async def delete_reminder(self, reference: Reference) -> None:
        await self._request("DELETE", f"/api/fleet-reminder/{reference}")

    async def toggle_active(self, reference: Reference) -> Reminder:
        body = await self._request("POST", f"/api/fleet-reminder/{reference}/toggle-active")
        return Reminder.model_validate(body["data"])

    async def toggle_completed(self, reference: Reference) -> Reminder:
        body = await self._request("POST", f"/api/fleet-reminder/{reference}/toggle-completed")
        return Reminder.model_validate(body["data"])
