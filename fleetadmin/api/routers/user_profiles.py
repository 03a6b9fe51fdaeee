# fleetadmin/api/routers/user_profiles.py
from typing import List

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from fleetadmin.api.deps import get_reminder_service
from fleetadmin.reminders.service import ReminderService
from fleetadmin.schemas.reminders import UserRef

router = APIRouter(prefix="/user-profiles", tags=["User profiles"])


class UserListOut(BaseModel):
    data: List[UserRef]


@router.get("", response_model=UserListOut)
def list_user_profiles(service: ReminderService = Depends(get_reminder_service)):
    return {"data": service.list_users()}
