from typing import List, Optional
from pydantic import BaseModel, Field

from tripforge.config import ApiCredentials
from tripforge.models.entities import FinalItinerary, ItineraryDay, RawItinerary
from tripforge.models.trip_requirements import TravelRequirements


class RunState(BaseModel):
    """Working state of one generation run; never shared between runs."""

    requirements: TravelRequirements
    owner_id: Optional[str] = None
    credentials: Optional[ApiCredentials] = None
    raw_itinerary: Optional[RawItinerary] = None
    days: List[ItineraryDay] = Field(default_factory=list)
    itinerary: Optional[FinalItinerary] = None
