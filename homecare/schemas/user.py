from datetime import datetime

from pydantic import BaseModel, EmailStr

from homecare.db.models.user import UserRole


class UserResponse(BaseModel):
    id: int
    email: EmailStr
    full_name: str | None
    role: UserRole
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}
