# fleetadmin/api/models/user.py

from typing import Optional

from pydantic import BaseModel, EmailStr

from fleetadmin.schemas.reminders import UserRef


class CallerIdentity(BaseModel):
    """
    Identidad del que llama, resuelta desde la sesión.
    `profile` es None cuando la sesión es válida pero no hay user-profile asociado.
    """
    user_id: str
    email: Optional[EmailStr] = None
    profile: Optional[UserRef] = None

    class Config:
        from_attributes = True

    @property
    def author_document_id(self) -> Optional[str]:
        return self.profile.document_id if self.profile else None
