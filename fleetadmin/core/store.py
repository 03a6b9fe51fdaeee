# fleetadmin/core/store.py

import logging
import re
from typing import Any, Dict, Iterable, List, Optional

from supabase import Client

from fleetadmin.core import config
from fleetadmin.core.errors import NotFoundError, UnknownBackendError, from_backend_exception

logger = logging.getLogger(__name__)


# Solo dígitos ASCII; int() rechaza "²" aunque isdigit() lo acepte
_NUMERIC = re.compile(r"[0-9]+")


def is_numeric_reference(value: Any) -> bool:
    return value is not None and _NUMERIC.fullmatch(str(value).strip()) is not None


class RecordStore:
    """
    Acceso al backend (Supabase/PostgREST) para recordatorios, vehículos y user-profiles.
    Todos los errores de transporte/PostgREST salen ya traducidos a la taxonomía del motor.
    Nota v2: NO encadenar .select() tras update(); se hace SELECT aparte.
    """

    def __init__(self, sb: Client):
        self.sb = sb

    # -------------------------
    # Helpers
    # -------------------------
    def _rows(self, query, context: str) -> List[Dict[str, Any]]:
        try:
            res = query.execute()
        except Exception as e:
            raise from_backend_exception(e, context) from e
        data = getattr(res, "data", None)
        if data is None:
            return []
        if isinstance(data, dict):
            return [data]
        return list(data)

    def _first(self, query, context: str) -> Optional[Dict[str, Any]]:
        rows = self._rows(query, context)
        return rows[0] if rows else None

    def _reminders(self):
        return self.sb.table(config.REMINDERS_TABLE)

    # ===========================
    # Recordatorios
    # ===========================
    def get_reminder_by_id(self, reminder_id: int) -> Optional[Dict[str, Any]]:
        q = self._reminders().select("*").eq("id", int(reminder_id)).limit(1)
        return self._first(q, "reminders.get_by_id")

    def get_reminder_by_document_id(self, document_id: str) -> Optional[Dict[str, Any]]:
        # Lookup directo vía RPC; si el despliegue no lo tiene, sale UnsupportedQueryError
        q = self.sb.rpc(config.REMINDER_BY_DOCUMENT_ID_RPC, {"p_document_id": document_id})
        return self._first(q, "reminders.rpc_by_document_id")

    def find_reminders_by_document_id(self, document_id: str) -> List[Dict[str, Any]]:
        q = self._reminders().select("*").eq("document_id", document_id).limit(1)
        return self._rows(q, "reminders.filter_document_id")

    def find_reminders_by_any_id(self, value: str) -> List[Dict[str, Any]]:
        """Consulta disyuntiva id/document_id (best effort)."""
        value = str(value).strip()
        if is_numeric_reference(value):
            cond = f"id.eq.{int(value)},document_id.eq.{value}"
        else:
            cond = f"document_id.eq.{value}"
        q = self._reminders().select("*").or_(cond).limit(1)
        return self._rows(q, "reminders.any_id")

    def list_reminders_page(self, page: int, page_size: int) -> List[Dict[str, Any]]:
        start = (page - 1) * page_size
        end = start + page_size - 1
        q = self._reminders().select("*").order("id", desc=False).range(start, end)
        return self._rows(q, f"reminders.page_{page}")

    def list_vehicle_reminders(self, vehicle_id: int) -> List[Dict[str, Any]]:
        q = (
            self._reminders()
            .select("*")
            .eq("type", "reminder")
            .eq("fleet_vehicle_id", int(vehicle_id))
            .order("next_trigger", desc=False)
        )
        return self._rows(q, "reminders.by_vehicle")

    def list_recent_reminders(self, limit: int) -> List[Dict[str, Any]]:
        q = (
            self._reminders()
            .select("*")
            .eq("type", "reminder")
            .order("created_at", desc=True)
            .limit(limit)
        )
        return self._rows(q, "reminders.recent")

    def find_reminders_by_title(self, vehicle_id: int, title: str) -> List[Dict[str, Any]]:
        q = (
            self._reminders()
            .select("*")
            .eq("type", "reminder")
            .eq("fleet_vehicle_id", int(vehicle_id))
            .eq("title", title)
            .order("created_at", desc=True)
        )
        return self._rows(q, "reminders.by_title")

    def insert_reminder(self, row: Dict[str, Any]) -> Dict[str, Any]:
        created = self._first(self._reminders().insert(row), "reminders.insert")
        if not created:
            raise UnknownBackendError("Insert failed")
        return created

    def replace_reminder(self, reminder_id: int, row: Dict[str, Any]) -> Dict[str, Any]:
        upd = self._rows(self._reminders().update(row).eq("id", int(reminder_id)), "reminders.update")
        if not upd:
            raise NotFoundError("Reminder not found or not updated")
        fresh = self.get_reminder_by_id(reminder_id)
        if not fresh:
            raise NotFoundError("Reminder not found after update")
        return fresh

    def delete_reminder(self, reminder_id: int) -> None:
        deleted = self._rows(self._reminders().delete().eq("id", int(reminder_id)), "reminders.delete")
        if not deleted:
            raise NotFoundError("Reminder not found")

    # ===========================
    # Vehículos
    # ===========================
    def find_vehicle(self, reference: str) -> Optional[Dict[str, Any]]:
        ref = str(reference).strip()
        q = self.sb.table(config.VEHICLES_TABLE).select("*")
        if is_numeric_reference(ref):
            q = q.or_(f"id.eq.{int(ref)},document_id.eq.{ref}")
        else:
            q = q.eq("document_id", ref)
        return self._first(q.limit(1), "fleets.find")

    def get_vehicle_by_id(self, vehicle_id: int) -> Optional[Dict[str, Any]]:
        q = self.sb.table(config.VEHICLES_TABLE).select("*").eq("id", int(vehicle_id)).limit(1)
        return self._first(q, "fleets.get_by_id")

    def set_vehicle_maintenance_date(self, vehicle_id: int, value: Optional[str]) -> None:
        q = (
            self.sb.table(config.VEHICLES_TABLE)
            .update({"next_maintenance_date": value})
            .eq("id", int(vehicle_id))
        )
        self._rows(q, "fleets.maintenance_date")

    # ===========================
    # User profiles
    # ===========================
    def list_user_profiles(self) -> List[Dict[str, Any]]:
        q = self.sb.table(config.USER_PROFILES_TABLE).select("*").order("display_name", desc=False)
        return self._rows(q, "user_profiles.list")

    def get_user_profiles_by_ids(self, ids: Iterable[int]) -> List[Dict[str, Any]]:
        ids = [int(i) for i in ids]
        if not ids:
            return []
        q = self.sb.table(config.USER_PROFILES_TABLE).select("*").in_("id", ids)
        return self._rows(q, "user_profiles.by_ids")

    def get_user_profiles_by_document_ids(self, document_ids: Iterable[str]) -> List[Dict[str, Any]]:
        document_ids = [str(d) for d in document_ids]
        if not document_ids:
            return []
        q = self.sb.table(config.USER_PROFILES_TABLE).select("*").in_("document_id", document_ids)
        return self._rows(q, "user_profiles.by_document_ids")

    def find_user_profile_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        q = self.sb.table(config.USER_PROFILES_TABLE).select("*").eq("email", email).limit(1)
        return self._first(q, "user_profiles.by_email")
