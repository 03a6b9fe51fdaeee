# fleetadmin/client/sync.py

import asyncio
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set, Union

from fleetadmin.client.api import ReminderApiClient
from fleetadmin.client.events import ReminderEvent, ReminderEventBus, ReminderEventKind
from fleetadmin.core import config
from fleetadmin.core.errors import NotFoundError, ReminderEngineError
from fleetadmin.reminders.assignment import aggregate_or_raise
from fleetadmin.reminders.propagation import is_maintenance_reminder
from fleetadmin.schemas.fleet import Vehicle
from fleetadmin.schemas.reminders import Reminder, ReminderCreate, UserRef, validate_schedule

logger = logging.getLogger(__name__)

Reference = Union[int, str]
VehicleCallback = Callable[[Vehicle], Awaitable[Any]]

# Eventos de otras vistas que disparan recarga; "deleted" no (la vista que borra ya recarga)
_RELOAD_ON = {
    ReminderEventKind.CREATED,
    ReminderEventKind.UPDATED,
    ReminderEventKind.TOGGLED_ACTIVE,
    ReminderEventKind.TOGGLED_COMPLETED,
}

_ACTIONS = ("save", "delete", "toggle_active", "toggle_completed")


class ActionState(str, Enum):
    IDLE = "idle"
    SUBMITTING = "submitting"
    SUCCESS = "success"
    FAILURE = "failure"


class VehicleReminderList:
    """
    Lista local de recordatorios de un vehículo para una vista montada.

    - Una acción en vuelo por tipo (save/delete/toggle_*): el asyncio.Lock es la única guarda;
      una segunda llamada mientras la primera está en vuelo devuelve None sin tocar la red.
    - Tras cada mutación exitosa: evento en el bus + recarga desde el servidor
      (con una espera de asentamiento antes de leer datos dependientes).
    - Tras unmount(), las respuestas tardías se ignoran.
    """

    def __init__(
        self,
        api: ReminderApiClient,
        bus: ReminderEventBus,
        vehicle_ref: Reference,
        on_vehicle_changed: Optional[VehicleCallback] = None,
        settle_delay: Optional[float] = None,
        current_user_document_id: Optional[str] = None,
        name: Optional[str] = None,
    ):
        self.api = api
        self.bus = bus
        self.vehicle_ref = vehicle_ref
        self.on_vehicle_changed = on_vehicle_changed
        self.settle_delay = config.SYNC_SETTLE_DELAY_SECONDS if settle_delay is None else settle_delay
        self.current_user_document_id = current_user_document_id
        self.name = name or f"vehicle-{vehicle_ref}-{id(self):x}"

        self.reminders: List[Reminder] = []
        self.users: List[UserRef] = []
        self.vehicle: Optional[Vehicle] = None
        self.editing: Optional[Reminder] = None
        self.error: Optional[str] = None

        self.states: Dict[str, ActionState] = {a: ActionState.IDLE for a in _ACTIONS}
        self.outcomes: Dict[str, Optional[ActionState]] = {a: None for a in _ACTIONS}
        self._locks: Dict[str, asyncio.Lock] = {a: asyncio.Lock() for a in _ACTIONS}

        self._mounted = False
        self._unsubscribe: Optional[Callable[[], None]] = None
        self._tasks: Set[asyncio.Task] = set()

    # ===========================
    # Ciclo de vida
    # ===========================
    @property
    def mounted(self) -> bool:
        return self._mounted

    async def mount(self) -> None:
        self._mounted = True
        if self._unsubscribe is None:
            self._unsubscribe = self.bus.subscribe(self._on_event)

        reminders, users, vehicle = await asyncio.gather(
            self.api.list_reminders(self.vehicle_ref),
            self.api.list_users(),
            self.api.get_vehicle(self.vehicle_ref),
            return_exceptions=True,
        )
        if not self._mounted:
            return

        if isinstance(users, BaseException):
            logger.warning("sync[%s]: could not load user directory: %s", self.name, users)
            users = []
        if isinstance(vehicle, BaseException):
            logger.warning("sync[%s]: could not load vehicle: %s", self.name, vehicle)
            vehicle = None
        self.users = users
        self.vehicle = vehicle

        if isinstance(reminders, BaseException):
            self.error = str(reminders)
            raise reminders
        self.reminders = reminders

    def unmount(self) -> None:
        self._mounted = False
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        for task in list(self._tasks):
            task.cancel()

    async def reload(self) -> None:
        reminders = await self.api.list_reminders(self.vehicle_ref)
        if not self._mounted:
            logger.debug("sync[%s]: late reload ignored (unmounted)", self.name)
            return
        self.reminders = reminders

    async def _reload_quietly(self) -> None:
        try:
            await self.reload()
        except ReminderEngineError as e:
            logger.warning("sync[%s]: background reload failed: %s", self.name, e)

    async def _refresh_vehicle(self) -> None:
        try:
            vehicle = await self.api.get_vehicle(self.vehicle_ref)
        except ReminderEngineError as e:
            logger.warning("sync[%s]: could not refresh vehicle: %s", self.name, e)
            return
        if not self._mounted:
            return
        self.vehicle = vehicle
        if self.on_vehicle_changed is not None:
            await self.on_vehicle_changed(vehicle)

    # ===========================
    # Eventos
    # ===========================
    def _emit(self, kind: ReminderEventKind, reminder: Optional[Reminder] = None,
              reminder_id: Optional[str] = None, state: Optional[bool] = None) -> None:
        self.bus.publish(ReminderEvent(kind=kind, reminder=reminder, reminder_id=reminder_id,
                                       state=state, source=self.name))

    def _on_event(self, event: ReminderEvent) -> None:
        if not self._mounted or event.source == self.name:
            return
        if event.kind not in _RELOAD_ON:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("sync[%s]: no running loop, skipping reload for %s", self.name, event.kind.value)
            return
        task = loop.create_task(self._reload_quietly())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    # ===========================
    # Helpers
    # ===========================
    def _begin(self, action: str) -> None:
        self.states[action] = ActionState.SUBMITTING
        self.error = None

    def _finish(self, action: str, outcome: ActionState, error: Optional[Exception] = None) -> None:
        self.outcomes[action] = outcome
        if error is not None:
            self.error = str(error)
        self.states[action] = ActionState.IDLE

    def _find_local(self, reference: Reference) -> Optional[Reminder]:
        for r in self.reminders:
            if r.matches(reference):
                return r
        return None

    def _replace_local(self, reference: Reference, updated: Reminder) -> None:
        self.reminders = [
            updated if (r.matches(reference) or r.id == updated.id
                        or (r.document_id is not None and r.document_id == updated.document_id))
            else r
            for r in self.reminders
        ]

    def _directory(self) -> Dict[str, int]:
        return {u.document_id: u.id for u in self.users if u.document_id and u.id is not None}

    async def _prepare(self, form: ReminderCreate) -> Dict[str, Any]:
        # Validación y agregación local: un error aquí nunca llega a la red
        validate_schedule(form.title, form.scheduled_date, form.reminder_type, form.recurrence_pattern)
        vehicle = None
        if form.module == "fleet":
            if self.vehicle is None:
                await self._refresh_vehicle()
            vehicle = self.vehicle
        assigned = aggregate_or_raise(form.assigned_user_ids, vehicle, self._directory())

        payload = form.model_dump(mode="json")
        payload["title"] = form.title.strip()
        payload["assigned_user_ids"] = assigned
        if not payload.get("author_document_id") and self.current_user_document_id:
            payload["author_document_id"] = self.current_user_document_id
        return payload

    # ===========================
    # Acciones
    # ===========================
    async def save(self, form: ReminderCreate, reference: Optional[Reference] = None) -> Optional[Reminder]:
        """Crea (sin reference) o actualiza el recordatorio. None si ya hay un guardado en vuelo."""
        lock = self._locks["save"]
        if lock.locked():
            logger.debug("sync[%s]: duplicate save ignored", self.name)
            return None
        async with lock:
            self._begin("save")
            try:
                payload = await self._prepare(form)
                if reference is None:
                    saved = await self.api.create_reminder(self.vehicle_ref, payload)
                    kind = ReminderEventKind.CREATED
                else:
                    patch = {k: v for k, v in payload.items()
                             if k not in ("module", "author_document_id", "is_all_day")}
                    saved = await self.api.update_reminder(reference, patch)
                    kind = ReminderEventKind.UPDATED
            except ReminderEngineError as e:
                self._finish("save", ActionState.FAILURE, e)
                raise

            self.editing = None
            self._emit(kind, reminder=saved, reminder_id=saved.reference)
            await self._reload_quietly()
            await asyncio.sleep(self.settle_delay)
            if is_maintenance_reminder(saved):
                await self._refresh_vehicle()
            self._finish("save", ActionState.SUCCESS)
            return saved

    async def delete(self, reference: Reference) -> Optional[bool]:
        lock = self._locks["delete"]
        if lock.locked():
            logger.debug("sync[%s]: duplicate delete ignored", self.name)
            return None
        async with lock:
            self._begin("delete")
            local = self._find_local(reference)
            try:
                await self.api.delete_reminder(reference)
            except ReminderEngineError as e:
                # La lista local no se toca si el borrado falla
                self._finish("delete", ActionState.FAILURE, e)
                raise

            def _gone(r: Reminder) -> bool:
                if r.matches(reference):
                    return True
                return local is not None and (
                    r.id == local.id or (local.document_id is not None and r.document_id == local.document_id)
                )

            self.reminders = [r for r in self.reminders if not _gone(r)]
            deleted_id = local.reference if local is not None else str(reference)
            self._emit(ReminderEventKind.DELETED, reminder_id=deleted_id)

            await asyncio.sleep(self.settle_delay)
            await self._reload_quietly()
            if local is not None and is_maintenance_reminder(local):
                await self._refresh_vehicle()
            self._finish("delete", ActionState.SUCCESS)
            return True

    async def toggle_active(self, reference: Reference) -> Optional[Reminder]:
        lock = self._locks["toggle_active"]
        if lock.locked():
            return None
        async with lock:
            self._begin("toggle_active")
            try:
                updated = await self.api.toggle_active(reference)
            except ReminderEngineError as e:
                self._finish("toggle_active", ActionState.FAILURE, e)
                raise

            self._replace_local(reference, updated)
            self._emit(ReminderEventKind.TOGGLED_ACTIVE, reminder=updated,
                       reminder_id=updated.reference, state=updated.is_active)
            if updated.is_active and is_maintenance_reminder(updated):
                await asyncio.sleep(self.settle_delay)
                await self._refresh_vehicle()
            self._finish("toggle_active", ActionState.SUCCESS)
            return updated

    async def toggle_completed(self, reference: Reference) -> Optional[Reminder]:
        lock = self._locks["toggle_completed"]
        if lock.locked():
            return None
        async with lock:
            self._begin("toggle_completed")
            try:
                updated = await self.api.toggle_completed(reference)
            except NotFoundError as e:
                # Sin recarga automática: un fallo de resolución transitorio no debe vaciar la lista
                logger.warning("sync[%s]: toggle-completed on missing reminder %s", self.name, reference)
                self._finish("toggle_completed", ActionState.FAILURE, e)
                raise
            except ReminderEngineError as e:
                self._finish("toggle_completed", ActionState.FAILURE, e)
                raise

            self._replace_local(reference, updated)
            self._emit(ReminderEventKind.TOGGLED_COMPLETED, reminder=updated,
                       reminder_id=updated.reference, state=updated.is_completed)
            self._finish("toggle_completed", ActionState.SUCCESS)
            return updated

    def edit(self, reminder: Reminder) -> ReminderCreate:
        """
        Carga un recordatorio en el formulario de edición.
        Usuarios con solo documentId se convierten a id numérico con el directorio cargado;
        los que no se resuelven se descartan.
        """
        directory = self._directory()
        ids: List[int] = []
        sources = reminder.assigned_users or [UserRef(id=i) for i in reminder.assigned_user_ids]
        for user in sources:
            uid = user.id
            if uid is None and user.document_id:
                uid = directory.get(user.document_id)
            if uid is None:
                logger.debug("sync[%s]: dropping unresolved user %s", self.name, user.document_id)
                continue
            if uid not in ids:
                ids.append(uid)

        self.editing = reminder
        return ReminderCreate(
            title=reminder.title,
            description=reminder.description,
            reminder_type=reminder.reminder_type,
            scheduled_date=reminder.scheduled_date,
            recurrence_pattern=reminder.recurrence_pattern,
            recurrence_end_date=reminder.recurrence_end_date,
            module=reminder.module or "fleet",
            assigned_user_ids=ids,
            author_document_id=reminder.author_document_id,
            is_maintenance=reminder.tags.get("isMaintenance") is True,
        )
