from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


class Vehicle(BaseModel):
    id: int
    document_id: Optional[str] = None
    name: Optional[str] = None
    next_maintenance_date: Optional[datetime] = None
    responsable_ids: List[int] = Field(default_factory=list)
    assigned_driver_ids: List[int] = Field(default_factory=list)

    @field_validator("responsable_ids", "assigned_driver_ids", mode="before")
    @classmethod
    def _none_as_empty(cls, v):
        return v or []


class VehicleOut(BaseModel):
    data: Vehicle
