# fleetadmin/reminders/propagation.py

import logging
from typing import Literal, Optional

from fleetadmin.core import config
from fleetadmin.core.store import RecordStore
from fleetadmin.reminders.recurrence import next_trigger_for
from fleetadmin.schemas.reminders import Reminder

logger = logging.getLogger(__name__)

PropagationAction = Literal["create", "update", "toggle_active", "delete"]


def is_maintenance_reminder(reminder: Reminder) -> bool:
    if reminder.tags.get("isMaintenance") is True:
        return True
    title = (reminder.title or "").strip().lower()
    return any(k in title for k in config.MAINTENANCE_TITLE_KEYWORDS)


def maintenance_date_for(reminder: Reminder, action: PropagationAction) -> Optional[str]:
    if action == "delete":
        return None
    due = next_trigger_for(reminder)
    return due.isoformat() if due is not None else None


def propagate_maintenance_date(
    store: RecordStore,
    reminder: Reminder,
    action: PropagationAction,
    vehicle_id: Optional[int] = None,
) -> bool:
    """
    Proyecta la próxima fecha del recordatorio de mantenimiento en fleets.next_maintenance_date.
    Best effort: se ejecuta fuera de la respuesta y los fallos solo se registran.
    Devuelve True si se escribió el vehículo.
    """
    vehicle_id = vehicle_id if vehicle_id is not None else reminder.fleet_vehicle_id
    if vehicle_id is None or not is_maintenance_reminder(reminder):
        return False
    # desactivar NO limpia la fecha; solo delete la limpia
    if action == "toggle_active" and not reminder.is_active:
        return False

    value = maintenance_date_for(reminder, action)
    if value is None and action != "delete":
        logger.info("propagation: reminder %s has no next trigger; vehicle %s untouched", reminder.reference, vehicle_id)
        return False

    try:
        store.set_vehicle_maintenance_date(vehicle_id, value)
    except Exception:
        logger.warning(
            "propagation: could not update next_maintenance_date of vehicle %s (reminder %s, %s)",
            vehicle_id, reminder.reference, action, exc_info=True,
        )
        return False

    logger.info("propagation: vehicle %s next_maintenance_date=%s (%s)", vehicle_id, value, action)
    return True
