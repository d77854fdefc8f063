from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict


class UserPayload(BaseModel):
    # Présence vérifiée dans les routes (400 et non 422)
    name: Optional[str] = None
    email: Optional[str] = None

    def is_complete(self) -> bool:
        return bool(self.name) and bool(self.email)


class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    email: str
    created_at: Optional[datetime] = None


class MessageResponse(BaseModel):
    message: str


class ErrorResponse(BaseModel):
    error: str
