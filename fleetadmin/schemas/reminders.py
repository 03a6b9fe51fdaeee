import json
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from fleetadmin.core.errors import ValidationError

ReminderType = Literal["unique", "recurring"]
RecurrencePattern = Literal["daily", "weekly", "biweekly", "monthly", "yearly"]

RECURRENCE_PATTERNS = ("daily", "weekly", "biweekly", "monthly", "yearly")


def parse_tags(raw: Any) -> Dict[str, Any]:
    # tags es un blob jsonb; algunos registros viejos lo traen serializado como string
    if raw is None:
        return {}
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError:
            return {}
    return dict(raw) if isinstance(raw, dict) else {}


# ===========================
# Usuarios (directorio)
# ===========================

class UserRef(BaseModel):
    id: Optional[int] = None
    document_id: Optional[str] = None
    display_name: Optional[str] = None
    email: Optional[str] = None
    avatar_url: Optional[str] = None


# ===========================
# Registro canónico
# ===========================

class Reminder(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int
    document_id: Optional[str] = None
    title: str
    description: Optional[str] = None
    reminder_type: ReminderType = "unique"
    module: Optional[str] = None
    scheduled_date: datetime
    recurrence_pattern: Optional[RecurrencePattern] = None
    recurrence_end_date: Optional[datetime] = None
    next_trigger: Optional[datetime] = None
    last_triggered: Optional[datetime] = None
    is_active: bool = True
    is_completed: bool = False
    author_document_id: Optional[str] = None
    fleet_vehicle_id: Optional[int] = None
    recipient_id: Optional[int] = None

    # Referencia débil ocurrencia -> recordatorio padre (se valida desde tags)
    parent_reminder_id: Optional[str] = None
    tags: Dict[str, Any] = Field(default_factory=dict)

    assigned_user_ids: List[int] = Field(default_factory=list)
    assigned_users: List[UserRef] = Field(default_factory=list)
    author: Optional[UserRef] = None

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @model_validator(mode="before")
    @classmethod
    def _lift_parent_reference(cls, values: Any) -> Any:
        if not isinstance(values, dict):
            return values
        values = dict(values)
        tags = parse_tags(values.get("tags"))
        values["tags"] = tags
        parent = values.get("parent_reminder_id")
        if parent is None:
            parent = tags.get("parentReminderId")
        if parent is not None and str(parent).strip() != "":
            values["parent_reminder_id"] = str(parent).strip()
        else:
            values["parent_reminder_id"] = None
        if values.get("assigned_user_ids") is None:
            values["assigned_user_ids"] = []
        return values

    @property
    def is_occurrence(self) -> bool:
        return self.parent_reminder_id is not None

    @property
    def reference(self) -> str:
        """Identificador preferido para referencias entre requests."""
        return self.document_id or str(self.id)

    def matches(self, reference: Union[str, int]) -> bool:
        ref = str(reference)
        return str(self.id) == ref or (self.document_id is not None and self.document_id == ref)


# ===========================
# Requests
# ===========================

class ReminderCreate(BaseModel):
    title: str
    description: Optional[str] = None
    reminder_type: ReminderType = "unique"
    scheduled_date: Optional[datetime] = None
    recurrence_pattern: Optional[RecurrencePattern] = None
    recurrence_end_date: Optional[datetime] = None
    module: str = "fleet"
    # ids numéricos o documentIds opacos del directorio de usuarios
    assigned_user_ids: List[Union[int, str]] = Field(default_factory=list)
    author_document_id: Optional[str] = None
    is_all_day: bool = False
    is_maintenance: bool = False

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "title": "Mantenimiento completo del vehículo",
            "reminder_type": "recurring",
            "scheduled_date": "2025-01-10T09:00:00",
            "recurrence_pattern": "monthly",
            "assigned_user_ids": [3],
        }
    })


class ReminderPatch(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    reminder_type: Optional[ReminderType] = None
    scheduled_date: Optional[datetime] = None
    recurrence_pattern: Optional[RecurrencePattern] = None
    recurrence_end_date: Optional[datetime] = None
    next_trigger: Optional[datetime] = None
    is_active: Optional[bool] = None
    is_completed: Optional[bool] = None
    assigned_user_ids: Optional[List[Union[int, str]]] = None
    is_maintenance: Optional[bool] = None

    @field_validator("title")
    @classmethod
    def _strip_title(cls, v: Optional[str]) -> Optional[str]:
        return v.strip() if v is not None else v


# ===========================
# Responses
# ===========================

class ReminderOut(BaseModel):
    data: Reminder


class ReminderListOut(BaseModel):
    data: List[Reminder]


# ===========================
# Validación (antes de cualquier llamada de red)
# ===========================

def validate_schedule(title: Optional[str], scheduled_date: Optional[datetime],
                      reminder_type: Optional[str], recurrence_pattern: Optional[str]) -> None:
    if not title or not title.strip():
        raise ValidationError("Title is required")
    if scheduled_date is None:
        raise ValidationError("Scheduled date is required")
    if reminder_type not in ("unique", "recurring"):
        raise ValidationError("Invalid reminder type")
    if reminder_type == "recurring" and recurrence_pattern not in RECURRENCE_PATTERNS:
        raise ValidationError("Recurring reminders need a recurrence pattern")
