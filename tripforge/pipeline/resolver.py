import time
import logging
from typing import Callable, List, Optional

from tripforge.config import ApiCredentials
from tripforge.integrations.google_places_client import GooglePlacesClient
from tripforge.models.entities import CandidatePlace, ResolutionOutcome

logger = logging.getLogger(__name__)

KEYWORD_LENGTH = 4

# Generic trailing words a model tends to tack onto place names.
# Longer entries come first so "Scenic Area" wins over "Area"-like overlaps.
GENERIC_SUFFIXES = [
    "Pedestrian Street", "Shopping District", "Exhibition Hall", "Memorial Hall",
    "Tourist Area", "Scenic Area", "Scenic Spot", "Food Street",
    "Night Tour", "Boat Tour", "Museum", "Plaza", "Square", "Store",
    "Park", "Tour", "Shop", "Hall",
    "风景区", "旅游区", "美食街", "步行街", "纪念馆", "博物馆", "展览馆",
    "景区", "公园", "夜游", "游船", "游览", "商圈", "广场",
    "店", "馆",
]


def strip_generic_suffix(name: str) -> Optional[str]:
    """Remove exactly one known trailing suffix, or None if there is none to remove."""
    lowered = name.lower()
    for suffix in GENERIC_SUFFIXES:
        if not lowered.endswith(suffix.lower()):
            continue
        head = name[:len(name) - len(suffix)]
        # Latin suffixes must be whole words: "Whitehall" keeps its "hall"
        if suffix.isascii() and head and head[-1].isalnum():
            continue
        stripped = head.rstrip(" -,")
        return stripped or None
    return None


class LocationResolver:
    """Verifies a free-text place name against the places index."""

    def __init__(
        self,
        places: GooglePlacesClient,
        retry_delay: float = 0.2,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.places = places
        self.retry_delay = retry_delay
        self.sleep = sleep

    def _search(self, keywords: str, region: str, credentials: Optional[ApiCredentials]) -> List[CandidatePlace]:
        return self.places.search_text(keywords, region, credentials)

    def resolve(self, name: str, region: str, credentials: Optional[ApiCredentials] = None) -> ResolutionOutcome:
        """
        Try exact, then suffix-stripped, then keyword-truncated lookups.

        The first candidate of the first non-empty lookup is accepted. Every
        retry waits retry_delay first so the provider's rate limit holds.
        """
        candidates = self._search(name, region, credentials)
        if candidates:
            return ResolutionOutcome.accepted(candidates[0])

        stripped = strip_generic_suffix(name)
        if stripped:
            logger.info(f"Fuzzy search: retrying '{name}' without suffix as '{stripped}'")
            self.sleep(self.retry_delay)
            candidates = self._search(stripped, region, credentials)
            if candidates:
                logger.info(f"Fuzzy search matched: {candidates[0].name}")
                return ResolutionOutcome.accepted(candidates[0])

        if len(name) > KEYWORD_LENGTH:
            keyword = name[:KEYWORD_LENGTH]
            logger.info(f"Fuzzy search: retrying '{name}' with keyword '{keyword}'")
            self.sleep(self.retry_delay)
            candidates = self._search(keyword, region, credentials)
            if candidates:
                logger.info(f"Fuzzy search matched: {candidates[0].name}")
                return ResolutionOutcome.accepted(candidates[0])

        return ResolutionOutcome.rejected(
            f"Place '{name}' not found in region '{region}' (fuzzy search attempts exhausted)"
        )
