# fleetadmin/api/routers/fleet_reminders.py
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Response

from fleetadmin.api.deps import get_reminder_service
from fleetadmin.api.models.user import CallerIdentity
from fleetadmin.core.auth import get_caller_identity
from fleetadmin.reminders.service import ReminderService
from fleetadmin.schemas.fleet import VehicleOut
from fleetadmin.schemas.reminders import ReminderCreate, ReminderListOut, ReminderOut, ReminderPatch

router = APIRouter(tags=["Fleet reminders"])

Service = Annotated[ReminderService, Depends(get_reminder_service)]


# ===========================
# Por vehículo
# ===========================
@router.get("/fleet/{vehicle_ref}", response_model=VehicleOut)
def read_vehicle(vehicle_ref: str, service: Service):
    return {"data": service.get_vehicle(vehicle_ref)}


@router.get("/fleet/{vehicle_ref}/reminder", response_model=ReminderListOut)
def list_reminders(vehicle_ref: str, service: Service):
    return {"data": service.list_reminders(vehicle_ref)}


@router.post("/fleet/{vehicle_ref}/reminder", response_model=ReminderOut, status_code=201)
def create_reminder(
    vehicle_ref: str,
    body: ReminderCreate,
    service: Service,
    caller: Annotated[Optional[CallerIdentity], Depends(get_caller_identity)],
):
    return {"data": service.create_reminder(vehicle_ref, body, caller)}


# ===========================
# Por recordatorio (id numérico o documentId)
# ===========================
@router.patch("/fleet-reminder/{reference}", response_model=ReminderOut)
def update_reminder(reference: str, body: ReminderPatch, service: Service):
    return {"data": service.update_reminder(reference, body)}


@router.delete("/fleet-reminder/{reference}", status_code=204)
def delete_reminder(reference: str, service: Service):
    service.delete_reminder(reference)
    return Response(status_code=204)


@router.post("/fleet-reminder/{reference}/toggle-active", response_model=ReminderOut)
def toggle_active(reference: str, service: Service):
    return {"data": service.toggle_active(reference)}


@router.post("/fleet-reminder/{reference}/toggle-completed", response_model=ReminderOut)
def toggle_completed(reference: str, service: Service):
    return {"data": service.toggle_completed(reference)}
