"""Booking record."""

import re
from datetime import datetime
from typing import Any, Dict, Optional
from pydantic import Field, field_validator

from devevent.models.event import TrackedModel


EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")


def is_valid_email(email: str) -> bool:
    return EMAIL_PATTERN.match(email) is not None


class Booking(TrackedModel):
    """A reservation of a spot at an event, identified by e-mail address."""

    id: Optional[int] = None
    event_id: int = Field(..., description="ID of the booked event")
    email: str = Field(..., min_length=1)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("email")
    @classmethod
    def _normalize_email(cls, value: str) -> str:
        value = value.strip().lower()
        if not is_valid_email(value):
            raise ValueError("Invalid email format")
        return value

    def to_response(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")
