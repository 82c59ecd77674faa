import pytest
from typing import Dict, List, Optional

from tripforge.integrations.errors import UpstreamAPIError
from tripforge.models.entities import CandidatePlace, ItineraryDay, VerifiedEvent, Coordinates
from tripforge.models.trip_requirements import TravelRequirements


def make_place(name: str, place_id: Optional[str] = None, lng: float = 116.397, lat: float = 39.916,
               distance: Optional[float] = None, category: str = "tourist_attraction") -> CandidatePlace:
    return CandidatePlace(
        id=place_id or f"id-{name}",
        name=name,
        category=category,
        address=f"{name} Road 1",
        location=f"{lng},{lat}",
        distance=distance,
    )


def make_event(name: str, order: int = 0, coordinates: bool = True, category: str = "attraction",
               duration: Optional[float] = 120) -> VerifiedEvent:
    return VerifiedEvent(
        order=order,
        category=category,
        name=name,
        start_time="09:00",
        estimated_duration=duration,
        location_name=name,
        address=f"{name} Road 1",
        coordinates=Coordinates(longitude=116.397, latitude=39.916) if coordinates else None,
        place_id=f"id-{name}",
        is_primary=True,
    )


class FakeLLM:
    """Scripted stand-in for LLMClient; each call pops the next reply."""

    def __init__(self, replies=None):
        self.replies = list(replies or [])
        self.calls = []

    def complete(self, system_prompt, user_prompt, credentials=None):
        self.calls.append({"system": system_prompt, "user": user_prompt, "credentials": credentials})
        if not self.replies:
            raise AssertionError("FakeLLM ran out of scripted replies")
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


class FakePlaces:
    """In-memory places index keyed by exact search text."""

    def __init__(self, index: Optional[Dict[str, List[CandidatePlace]]] = None,
                 nearby: Optional[Dict[str, List[CandidatePlace]]] = None):
        self.index = index or {}
        self.nearby = nearby or {}
        self.text_calls = []
        self.nearby_calls = []
        self.area_calls = []

    def search_text(self, keywords, region, credentials=None):
        self.text_calls.append((keywords, region, credentials))
        result = self.index.get(keywords, [])
        if isinstance(result, Exception):
            raise result
        return list(result)

    def search_nearby(self, origin, category_codes, radius=1000, credentials=None):
        self.area_calls.append((origin, list(category_codes), radius, credentials))
        result = self.nearby.get("*", [])
        if isinstance(result, Exception):
            raise result
        return list(result)

    def nearby_for_category(self, origin, category, credentials=None):
        self.nearby_calls.append((origin, category, credentials))
        result = self.nearby.get(category, self.nearby.get("*", []))
        if isinstance(result, Exception):
            raise result
        return list(result)


class SleepRecorder:
    def __init__(self):
        self.delays = []

    def __call__(self, seconds):
        self.delays.append(seconds)


@pytest.fixture
def sleeper():
    return SleepRecorder()


@pytest.fixture
def requirements():
    return TravelRequirements(
        destination="Beijing",
        days=2,
        budget=5000,
        travelers=2,
        preferences=["history", "food"],
        restrictions=["no Great Wall"],
    )


@pytest.fixture
def gateway_error():
    return UpstreamAPIError("connection reset")


@pytest.fixture
def sample_day():
    return ItineraryDay(day_number=1, date="Day 1", events=[make_event("Forbidden City", 0), make_event("Jingshan Park", 1)])
