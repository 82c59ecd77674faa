from pydantic import BaseModel, Field, field_validator
from typing import List, Optional

MAX_TRIP_DAYS = 30


class TravelRequirements(BaseModel):
    destination: str = Field(min_length=1)
    days: int = Field(ge=1, le=MAX_TRIP_DAYS)
    budget: Optional[float] = None
    travelers: int = Field(default=1, ge=1)
    preferences: List[str] = []
    restrictions: List[str] = []
    start_date: Optional[str] = None

    @field_validator("destination")
    @classmethod
    def _strip_destination(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("destination must not be blank")
        return value

    @field_validator("preferences", "restrictions")
    @classmethod
    def _drop_blank_tags(cls, tags: List[str]) -> List[str]:
        return [t.strip() for t in tags if t and t.strip()]
