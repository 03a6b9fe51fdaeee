# fleetadmin/reminders/service.py

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from fleetadmin.api.models.user import CallerIdentity
from fleetadmin.core import config
from fleetadmin.core.errors import AuthContextError, NotFoundError, ValidationError
from fleetadmin.core.store import RecordStore
from fleetadmin.reminders.assignment import aggregate_or_raise, canonical_user_id
from fleetadmin.reminders.propagation import PropagationAction, propagate_maintenance_date
from fleetadmin.reminders.recurrence import compute_next_trigger
from fleetadmin.reminders.redirect import OccurrenceRedirector
from fleetadmin.reminders.resolver import ReminderResolver
from fleetadmin.schemas.fleet import Vehicle
from fleetadmin.schemas.reminders import (
    Reminder,
    ReminderCreate,
    ReminderPatch,
    UserRef,
    validate_schedule,
)

logger = logging.getLogger(__name__)

Defer = Callable[..., Any]

# Campos que cambian la serie y obligan a recalcular next_trigger
_SCHEDULE_FIELDS = {"scheduled_date", "reminder_type", "recurrence_pattern", "recurrence_end_date"}


def _run_inline(fn: Callable[..., Any], *args: Any, **kwargs: Any) -> None:
    fn(*args, **kwargs)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _timestamp(value: Optional[datetime]) -> float:
    if value is None:
        return float("inf")
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.timestamp()


def _is_newer(candidate: Reminder, existing: Reminder) -> bool:
    if candidate.id > existing.id:
        return True
    if candidate.created_at and existing.created_at:
        return _timestamp(candidate.created_at) > _timestamp(existing.created_at)
    return False


def _user_ref(row: Dict[str, Any]) -> UserRef:
    return UserRef.model_validate(row)


class ReminderService:
    """
    Flujo de cada acción:
      resolver -> redirector (update/delete/toggle) -> mutación -> recurrencia -> propagación (diferida)
    Los pasos son secuenciales; la propagación se entrega a `defer` y nunca afecta la respuesta.
    """

    def __init__(
        self,
        store: RecordStore,
        defer: Optional[Defer] = None,
        clock: Optional[Callable[[], datetime]] = None,
        resolver: Optional[ReminderResolver] = None,
    ):
        self.store = store
        self.defer = defer or _run_inline
        self.clock = clock
        self.resolver = resolver or ReminderResolver(store)
        self.redirector = OccurrenceRedirector(store)

    # ===========================
    # Lecturas
    # ===========================
    def get_vehicle(self, vehicle_ref: Any) -> Vehicle:
        row = self.store.find_vehicle(str(vehicle_ref))
        if not row:
            raise NotFoundError("Vehicle not found")
        return Vehicle.model_validate(row)

    def list_users(self) -> List[UserRef]:
        return [_user_ref(r) for r in self.store.list_user_profiles()]

    def list_reminders(self, vehicle_ref: Any) -> List[Reminder]:
        vehicle = self.get_vehicle(vehicle_ref)
        rows = self.store.list_vehicle_reminders(vehicle.id)
        reminders = [r for r in (Reminder.model_validate(x) for x in rows) if self._is_listed(r, vehicle)]

        if not reminders:
            # Búsqueda amplia: registros sin relación fleet_vehicle_id pero con tags.vehicleId
            recent = self.store.list_recent_reminders(config.LIST_FALLBACK_PAGE_SIZE)
            reminders = [r for r in (Reminder.model_validate(x) for x in recent) if self._is_listed(r, vehicle)]
            if reminders:
                logger.info("list: vehicle %s matched %d reminders via tags fallback", vehicle.id, len(reminders))

        unique = self._dedupe(reminders)
        unique.sort(key=lambda r: _timestamp(r.next_trigger or r.scheduled_date))
        return self._populate(unique)

    def _is_listed(self, reminder: Reminder, vehicle: Vehicle) -> bool:
        # Las ocurrencias individuales (parentReminderId o recipient) no son recordatorios
        if reminder.is_occurrence or reminder.recipient_id is not None:
            return False
        if reminder.fleet_vehicle_id == vehicle.id:
            return True
        tagged = reminder.tags.get("vehicleId")
        if tagged is None:
            return False
        return str(tagged) in {str(vehicle.id), str(vehicle.document_id)}

    def _dedupe(self, reminders: List[Reminder]) -> List[Reminder]:
        by_document: Dict[str, Reminder] = {}
        by_key: Dict[str, Reminder] = {}
        for r in reminders:
            if r.document_id:
                if r.document_id in by_document:
                    continue
                by_document[r.document_id] = r
            key = f"{r.title.strip()}-{r.fleet_vehicle_id or r.tags.get('vehicleId') or 'unknown'}"
            existing = by_key.get(key)
            if existing is None or _is_newer(r, existing):
                by_key[key] = r
        return list(by_key.values())

    def _populate(self, reminders: List[Reminder]) -> List[Reminder]:
        """Agrega assigned_users y author desde el directorio (solo presentación)."""
        if not reminders:
            return reminders
        user_ids = {uid for r in reminders for uid in r.assigned_user_ids}
        author_ids = {r.author_document_id for r in reminders if r.author_document_id}
        try:
            by_id = {row["id"]: _user_ref(row) for row in self.store.get_user_profiles_by_ids(user_ids)}
            by_doc = {
                row["document_id"]: _user_ref(row)
                for row in self.store.get_user_profiles_by_document_ids(author_ids)
            }
        except Exception:
            logger.warning("populate: could not load user profiles", exc_info=True)
            return reminders

        populated = []
        for r in reminders:
            populated.append(r.model_copy(update={
                "assigned_users": [by_id[uid] for uid in r.assigned_user_ids if uid in by_id],
                "author": by_doc.get(r.author_document_id) if r.author_document_id else None,
            }))
        return populated

    def _directory_for(self, values: List[Any]) -> Dict[str, int]:
        opaque = [str(v).strip() for v in values if canonical_user_id(v) is None and str(v).strip()]
        if not opaque:
            return {}
        rows = self.store.get_user_profiles_by_document_ids(opaque)
        return {row["document_id"]: int(row["id"]) for row in rows if row.get("id") is not None}

    def _recipients(self, values: List[Any], module: Optional[str], vehicle: Optional[Vehicle]) -> List[int]:
        directory = self._directory_for(values)
        return aggregate_or_raise(values, vehicle if module == "fleet" else None, directory)

    def _next_trigger(self, reminder_type: str, scheduled: datetime, pattern: Optional[str],
                      end: Optional[datetime]) -> Optional[datetime]:
        if reminder_type != "recurring":
            return scheduled
        after = self.clock() if self.clock else None
        return compute_next_trigger(scheduled, pattern, end, after=after)

    def _propagate(self, reminder: Reminder, action: PropagationAction, vehicle_id: Optional[int] = None) -> None:
        self.defer(propagate_maintenance_date, self.store, reminder, action, vehicle_id)

    def _target(self, reference: Any) -> Reminder:
        return self.redirector.redirect_target(self.resolver.resolve(reference))

    # ===========================
    # Crear
    # ===========================
    def create_reminder(self, vehicle_ref: Any, payload: ReminderCreate,
                        caller: Optional[CallerIdentity] = None) -> Reminder:
        title = (payload.title or "").strip()
        validate_schedule(title, payload.scheduled_date, payload.reminder_type, payload.recurrence_pattern)

        author = payload.author_document_id or (caller.author_document_id if caller else None)
        if not author:
            raise AuthContextError("Could not resolve the current user. Please sign in again.")

        vehicle = self.get_vehicle(vehicle_ref)
        assigned = self._recipients(list(payload.assigned_user_ids), payload.module, vehicle)

        # Idempotencia: mismo título + mismo vehículo devuelve el existente
        for row in self.store.find_reminders_by_title(vehicle.id, title):
            existing = Reminder.model_validate(row)
            if not existing.is_occurrence:
                logger.warning("create: duplicate reminder %r on vehicle %s, returning %s",
                               title, vehicle.id, existing.reference)
                return self._populate([existing])[0]

        pattern = payload.recurrence_pattern if payload.reminder_type == "recurring" else None
        next_trigger = self._next_trigger(payload.reminder_type, payload.scheduled_date, pattern,
                                          payload.recurrence_end_date)
        tags: Dict[str, Any] = {"module": payload.module, "vehicleId": vehicle.id}
        if payload.is_maintenance:
            tags["isMaintenance"] = True

        row = {
            "title": title,
            "description": (payload.description or "").strip() or None,
            "type": "reminder",
            "module": payload.module,
            "reminder_type": payload.reminder_type,
            "scheduled_date": _iso(payload.scheduled_date),
            "recurrence_pattern": pattern,
            "recurrence_end_date": _iso(payload.recurrence_end_date),
            "next_trigger": _iso(next_trigger),
            "is_active": True,
            "is_completed": False,
            "author_document_id": author,
            "fleet_vehicle_id": vehicle.id,
            "assigned_user_ids": assigned,
            "tags": tags,
        }
        created = Reminder.model_validate(self.store.insert_reminder(row))
        if created.is_occurrence:
            logger.error("create: store returned an occurrence (%s) instead of a parent reminder", created.reference)
        logger.info("create: reminder %s on vehicle %s (%d recipients)", created.reference, vehicle.id, len(assigned))

        self._propagate(created, "create", vehicle.id)
        return self._populate([created])[0]

    # ===========================
    # Actualizar
    # ===========================
    def update_reminder(self, reference: Any, patch: ReminderPatch) -> Reminder:
        changes = patch.model_dump(exclude_unset=True)
        # null explícito en campos obligatorios = "sin cambio"
        for key in ("reminder_type", "scheduled_date", "is_active", "is_completed", "is_maintenance"):
            if key in changes and changes[key] is None:
                changes.pop(key)
        if "title" in changes and not (changes["title"] or "").strip():
            raise ValidationError("Title is required")
        if "assigned_user_ids" in changes and changes["assigned_user_ids"] is None:
            changes["assigned_user_ids"] = []

        target = self._target(reference)

        merged = target.model_dump(include={
            "title", "description", "reminder_type", "scheduled_date", "recurrence_pattern",
            "recurrence_end_date", "next_trigger", "is_active", "is_completed", "assigned_user_ids",
        })
        tags = dict(target.tags)
        if "is_maintenance" in changes:
            if changes.pop("is_maintenance"):
                tags["isMaintenance"] = True
            else:
                tags.pop("isMaintenance", None)
        merged.update(changes)
        if merged.get("description") is not None:
            merged["description"] = merged["description"].strip() or None
        if merged["reminder_type"] != "recurring":
            merged["recurrence_pattern"] = None

        validate_schedule(merged["title"], merged["scheduled_date"], merged["reminder_type"],
                          merged["recurrence_pattern"])

        if "assigned_user_ids" in changes:
            vehicle = None
            if target.module == "fleet" and target.fleet_vehicle_id is not None:
                row = self.store.get_vehicle_by_id(target.fleet_vehicle_id)
                vehicle = Vehicle.model_validate(row) if row else None
            merged["assigned_user_ids"] = self._recipients(list(changes["assigned_user_ids"]), target.module, vehicle)

        if _SCHEDULE_FIELDS & changes.keys() and "next_trigger" not in changes:
            merged["next_trigger"] = self._next_trigger(
                merged["reminder_type"], merged["scheduled_date"],
                merged["recurrence_pattern"], merged["recurrence_end_date"],
            )

        row = {
            "title": merged["title"].strip(),
            "description": merged["description"],
            "reminder_type": merged["reminder_type"],
            "scheduled_date": _iso(merged["scheduled_date"]),
            "recurrence_pattern": merged["recurrence_pattern"],
            "recurrence_end_date": _iso(merged["recurrence_end_date"]),
            "next_trigger": _iso(merged["next_trigger"]),
            "is_active": merged["is_active"],
            "is_completed": merged["is_completed"],
            "assigned_user_ids": merged["assigned_user_ids"],
            "tags": tags,
        }
        updated = Reminder.model_validate(self.store.replace_reminder(target.id, row))
        logger.info("update: reminder %s (%s)", updated.reference, ", ".join(sorted(changes)) or "no changes")

        self._propagate(updated, "update")
        return self._populate([updated])[0]

    # ===========================
    # Eliminar
    # ===========================
    def delete_reminder(self, reference: Any) -> Reminder:
        target = self._target(reference)
        self.store.delete_reminder(target.id)
        logger.info("delete: reminder %s", target.reference)
        self._propagate(target, "delete", target.fleet_vehicle_id)
        return target

    # ===========================
    # Toggles
    # ===========================
    def toggle_active(self, reference: Any) -> Reminder:
        target = self._target(reference)
        row = self.store.replace_reminder(target.id, {"is_active": not target.is_active})
        updated = Reminder.model_validate(row)
        logger.info("toggle-active: reminder %s -> %s", updated.reference, updated.is_active)
        self._propagate(updated, "toggle_active")
        return self._populate([updated])[0]

    def toggle_completed(self, reference: Any) -> Reminder:
        target = self._target(reference)
        row = self.store.replace_reminder(target.id, {"is_completed": not target.is_completed})
        updated = Reminder.model_validate(row)
        logger.info("toggle-completed: reminder %s -> %s", updated.reference, updated.is_completed)
        return self._populate([updated])[0]
