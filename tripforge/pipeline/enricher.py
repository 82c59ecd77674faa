import time
import logging
from typing import Callable, List, Optional

from tripforge.config import ApiCredentials
from tripforge.integrations.errors import UpstreamAPIError
from tripforge.integrations.google_places_client import GooglePlacesClient
from tripforge.integrations.llm_client import LLMClient
from tripforge.models.entities import CandidatePlace, ItineraryDay, VerifiedEvent
from tripforge.pipeline.errors import MalformedResponse
from tripforge.pipeline.utils import extract_json_array

logger = logging.getLogger(__name__)

MAX_SATELLITES = 3
PREFERRED_DISTANCE = 500  # metres
DEFAULT_TIME_BUDGET = 60  # minutes


def _format_distance(distance: Optional[float]) -> str:
    return "?" if distance is None else f"{distance:g}"


class SatelliteSelector:
    """Asks the LLM which nearby places fit alongside a primary event."""

    def __init__(self, llm: LLMClient):
        self.llm = llm

    def build_prompt(self, primary: VerifiedEvent, candidates: List[CandidatePlace]) -> str:
        duration = primary.estimated_duration or DEFAULT_TIME_BUDGET
        listing = "\n".join(
            f"{i}. {c.name} (type: {c.category or 'unknown'}, distance: {_format_distance(c.distance)} m, address: {c.address})"
            for i, c in enumerate(candidates, 1)
        )
        return f"""
Main event: {primary.name} (type: {primary.category})
Time: {primary.start_time or 'not specified'}
Planned duration: {duration:g} minutes

Nearby places (closest first):
{listing}

Pick 1-{MAX_SATELLITES} of these nearby places that fit well as side stops. Consider:
1. Distance (prefer places within {PREFERRED_DISTANCE} m)
2. Complementary type (e.g. a restaurant or cafe next to a sightseeing stop)
3. Whether the time budget of the main event leaves room

Reply with a JSON array of the chosen names, copied exactly from the list, and no other text:
["Place name 1", "Place name 2"]

If nothing fits, reply with an empty array: []
"""

    def select(
        self, primary: VerifiedEvent, candidates: List[CandidatePlace], credentials: Optional[ApiCredentials] = None
    ) -> List[str]:
        if not candidates:
            return []
        response = self.llm.complete(None, self.build_prompt(primary, candidates), credentials)
        names = extract_json_array(response)
        if not isinstance(names, list):
            logger.warning(f"Satellite selection for '{primary.name}' returned no JSON array")
            return []
        return [n.strip() for n in names if isinstance(n, str) and n.strip()]


def _satellite(primary: VerifiedEvent, place: CandidatePlace, order: int) -> VerifiedEvent:
    return VerifiedEvent(
        order=order,
        category="restaurant",
        name=place.name,
        description=f"~{_format_distance(place.distance)} m from {primary.name}",
        location_name=place.name,
        address=place.address,
        coordinates=place.coordinates,
        place_id=place.id,
        is_primary=False,
        sub_events=[],
    )


def _satellite_key(event: VerifiedEvent):
    return (event.place_id, event.name)


class ItineraryEnricher:
    """Attaches nearby satellite events to each verified primary event."""

    def __init__(
        self,
        places: GooglePlacesClient,
        selector: SatelliteSelector,
        request_delay: float = 0.2,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.places = places
        self.selector = selector
        self.request_delay = request_delay
        self.sleep = sleep

    def _pick_satellites(
        self, primary: VerifiedEvent, credentials: Optional[ApiCredentials]
    ) -> List[CandidatePlace]:
        nearby = self.places.nearby_for_category(primary.coordinates, primary.category, credentials)
        if not nearby:
            logger.info(f"No nearby places around '{primary.name}'")
            return []

        chosen_names = self.selector.select(primary, nearby, credentials)
        by_name = {}
        for place in nearby:
            by_name.setdefault(place.name, place)

        picked: List[CandidatePlace] = []
        for name in chosen_names:
            place = by_name.get(name)
            if place is None:
                logger.info(f"Ignoring satellite '{name}' for '{primary.name}': not among nearby places")
                continue
            if place in picked or place.id == primary.place_id:
                continue
            picked.append(place)
            if len(picked) == MAX_SATELLITES:
                break
        return picked

    def enrich(self, days: List[ItineraryDay], credentials: Optional[ApiCredentials] = None) -> List[ItineraryDay]:
        """
        Add satellites after each primary event and renumber the day's events.

        A day's flat list becomes primary, its satellites, next primary, ...;
        satellites are also grouped under primary.sub_events. Other non-primary
        events keep their place in the list. Events without coordinates keep
        an empty satellite list. A failed lookup or LLM call only costs that
        event its satellites.
        """
        lookups = 0
        for day in days:
            # satellites from an earlier pass are re-emitted after their primary
            owned = {
                _satellite_key(s) for e in day.events if e.is_primary for s in e.sub_events
            }
            flat: List[VerifiedEvent] = []
            for event in day.events:
                if not event.is_primary:
                    if _satellite_key(event) not in owned:
                        event.order = len(flat)
                        flat.append(event)
                    continue

                primary = event
                primary.order = len(flat)
                flat.append(primary)

                if primary.sub_events:
                    satellites = primary.sub_events
                elif primary.coordinates is None:
                    satellites = []
                else:
                    if lookups:
                        self.sleep(self.request_delay)
                    lookups += 1
                    try:
                        picked = self._pick_satellites(primary, credentials)
                    except (UpstreamAPIError, MalformedResponse) as e:
                        logger.warning(f"Enrichment skipped for '{primary.name}': {e}")
                        picked = []
                    satellites = [_satellite(primary, place, 0) for place in picked]

                for satellite in satellites:
                    satellite.order = len(flat)
                    satellite.sub_events = []
                    flat.append(satellite)
                primary.sub_events = satellites
                if satellites:
                    logger.info(f"Added {len(satellites)} satellites to '{primary.name}'")

            day.events = flat
        return days
