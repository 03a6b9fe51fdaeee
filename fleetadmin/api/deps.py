# fleetadmin/api/deps.py

from fastapi import BackgroundTasks, Depends, Request

from fleetadmin.core.store import RecordStore
from fleetadmin.core.supabase_client import get_supabase_for_request
from fleetadmin.reminders.service import ReminderService


def get_record_store(request: Request) -> RecordStore:
    return RecordStore(get_supabase_for_request(request))


def get_reminder_service(
    background_tasks: BackgroundTasks,
    store: RecordStore = Depends(get_record_store),
) -> ReminderService:
    # La propagación al vehículo corre después de enviar la respuesta
    return ReminderService(store, defer=background_tasks.add_task)
