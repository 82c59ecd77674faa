import time
import logging
from typing import Callable, List, Optional

from tripforge.config import ApiCredentials
from tripforge.models.entities import ItineraryDay, RawEvent, RawItinerary, VerifiedEvent
from tripforge.pipeline.resolver import LocationResolver

logger = logging.getLogger(__name__)


def _verified_event(raw: RawEvent, place, order: int) -> VerifiedEvent:
    return VerifiedEvent(
        order=order,
        category=raw.category,
        name=place.name,
        description=raw.description,
        start_time=raw.time,
        estimated_duration=raw.estimated_duration,
        estimated_cost=raw.estimated_cost,
        location_name=place.name,
        address=place.address,
        coordinates=place.coordinates,
        place_id=place.id,
        is_primary=True,
        sub_events=[],
    )


class ItineraryValidator:
    """
    Keeps only the events whose place can be verified.

    Unverifiable events are dropped, days left empty are dropped too, and the
    surviving days are renumbered 1..N in their original order. Nothing here
    raises on a miss; the reasons only go to the log.
    """

    def __init__(
        self,
        resolver: LocationResolver,
        request_delay: float = 0.3,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.resolver = resolver
        self.request_delay = request_delay
        self.sleep = sleep

    def validate(
        self, raw: RawItinerary, region: str, credentials: Optional[ApiCredentials] = None
    ) -> List[ItineraryDay]:
        validated_days: List[ItineraryDay] = []
        first_lookup = True
        logger.info(f"Validating {len(raw.days)} days of places in {region}")

        for day_idx, day in enumerate(raw.days, 1):
            events: List[VerifiedEvent] = []
            for event in day.events:
                if not first_lookup:
                    self.sleep(self.request_delay)
                first_lookup = False

                outcome = self.resolver.resolve(event.name, region, credentials)
                if outcome.ok:
                    place = outcome.place
                    events.append(_verified_event(event, place, len(events)))
                    logger.info(f"Verified '{event.name}' as '{place.name}' ({place.address})")
                else:
                    logger.warning(f"Dropped '{event.name}' from draft day {day_idx}: {outcome.reason}")

            logger.info(f"Draft day {day_idx}: {len(events)}/{len(day.events)} places verified")
            if not events:
                logger.warning(f"Draft day {day_idx} ({day.date}) dropped: no verifiable places")
                continue

            validated_days.append(ItineraryDay(day_number=len(validated_days) + 1, date=day.date, events=events))

        dropped = len(raw.days) - len(validated_days)
        logger.info(f"Validation kept {len(validated_days)} of {len(raw.days)} days ({dropped} dropped)")
        return validated_days
