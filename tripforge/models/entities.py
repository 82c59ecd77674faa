# tripforge/models/entities.py
from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import List, Literal, Optional

EventCategory = Literal["attraction", "restaurant", "hotel", "transportation", "entertainment", "shopping"]
EVENT_CATEGORIES = ("attraction", "restaurant", "hotel", "transportation", "entertainment", "shopping")

ItineraryStatus = Literal["draft", "confirmed", "completed"]
Stage = Literal["generating", "validating", "enriching", "finalizing", "complete", "error"]


# --- LLM draft (unverified) ---

def _lenient_number(value):
    """Estimates are advisory: anything that is not a number becomes None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


class RawEvent(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    time: Optional[str] = None
    category: EventCategory = Field(alias="type")
    name: str = Field(min_length=1)
    description: str = ""
    estimated_duration: Optional[float] = Field(default=None, alias="estimatedDuration")
    estimated_cost: Optional[float] = Field(default=None, alias="estimatedCost")

    @field_validator("estimated_duration", "estimated_cost", mode="before")
    @classmethod
    def _coerce_estimates(cls, value):
        return _lenient_number(value)

    @field_validator("category", mode="before")
    @classmethod
    def _normalize_category(cls, value):
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("event name must not be blank")
        return value

    @field_validator("description", mode="before")
    @classmethod
    def _none_description(cls, value):
        return "" if value is None else value


class RawDay(BaseModel):
    model_config = ConfigDict(frozen=True)

    date: Optional[str] = None
    events: List[RawEvent] = []


class Advisory(BaseModel):
    """Transportation or accommodation advice carried through unchanged."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    type: str = ""
    details: str = ""
    estimated_cost: Optional[float] = Field(default=None, alias="estimatedCost")

    @field_validator("estimated_cost", mode="before")
    @classmethod
    def _coerce_cost(cls, value):
        return _lenient_number(value)

    @field_validator("type", "details", mode="before")
    @classmethod
    def _none_text(cls, value):
        return "" if value is None else str(value)


class RawItinerary(BaseModel):
    model_config = ConfigDict(frozen=True)

    days: List[RawDay]
    transportation: Optional[Advisory] = None
    accommodation: Optional[Advisory] = None


# --- Places ---

class Coordinates(BaseModel):
    model_config = ConfigDict(frozen=True)

    longitude: float
    latitude: float

    def as_location(self) -> str:
        return f"{self.longitude},{self.latitude}"


def parse_location(location: Optional[str]) -> Optional[Coordinates]:
    """Parse a "lng,lat" string; returns None when it is not a valid pair."""
    if not location:
        return None
    parts = location.split(",")
    if len(parts) != 2:
        return None
    try:
        return Coordinates(longitude=float(parts[0]), latitude=float(parts[1]))
    except ValueError:
        return None


class CandidatePlace(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    category: str = ""
    address: str = ""
    location: str = ""
    distance: Optional[float] = None
    phone: Optional[str] = None

    @property
    def coordinates(self) -> Optional[Coordinates]:
        return parse_location(self.location)


class ResolutionOutcome(BaseModel):
    model_config = ConfigDict(frozen=True)

    place: Optional[CandidatePlace] = None
    reason: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.place is not None

    @classmethod
    def accepted(cls, place: CandidatePlace) -> "ResolutionOutcome":
        return cls(place=place)

    @classmethod
    def rejected(cls, reason: str) -> "ResolutionOutcome":
        return cls(reason=reason)


# --- Verified itinerary ---

class VerifiedEvent(BaseModel):
    order: int = 0
    category: EventCategory
    name: str
    description: str = ""
    start_time: Optional[str] = None
    estimated_duration: Optional[float] = None
    estimated_cost: Optional[float] = None
    location_name: Optional[str] = None
    address: Optional[str] = None
    coordinates: Optional[Coordinates] = None
    place_id: Optional[str] = None
    is_primary: bool = True
    sub_events: List[VerifiedEvent] = []


class ItineraryDay(BaseModel):
    day_number: int = Field(ge=1)
    date: Optional[str] = None
    events: List[VerifiedEvent] = []


class FinalItinerary(BaseModel):
    title: str
    destination: str
    owner_id: Optional[str] = None
    start_date: Optional[str] = None
    days: List[ItineraryDay] = []
    travelers: int = 1
    budget: Optional[float] = None
    preferences: List[str] = []
    status: ItineraryStatus = "draft"
    transportation: Optional[Advisory] = None
    accommodation: Optional[Advisory] = None


class ProgressUpdate(BaseModel):
    stage: Stage
    progress: int
    data: Optional[FinalItinerary] = None
    error: Optional[str] = None
