"""
Google Places integration for TripForge.

Text search is used to verify that a place the LLM proposed really exists in
the destination; nearby search feeds the satellite selection step. Provider
failures degrade to an empty result list so callers treat them as "not found".
"""

import math
import time
import logging
import threading
from typing import Any, Callable, Dict, List, Optional, Sequence

import googlemaps
from googlemaps.exceptions import ApiError, Timeout, TransportError

from tripforge.config import ApiCredentials, RuntimeKeyStore, Settings, load_settings, resolve_credentials
from tripforge.integrations.errors import ConfigurationError
from tripforge.models.entities import CandidatePlace, Coordinates

logger = logging.getLogger(__name__)

TEXT_SEARCH_LIMIT = 10
NEARBY_LIMIT = 20
NEARBY_RADIUS = 1000  # metres

# Event category to Google place types used for nearby suggestions
CATEGORY_PLACE_TYPES = {
    "attraction": ["tourist_attraction", "travel_agency"],
    "restaurant": ["restaurant", "cafe"],
    "entertainment": ["amusement_park", "movie_theater", "spa"],
    "shopping": ["shopping_mall", "store"],
}
DEFAULT_PLACE_TYPES = ["restaurant", "tourist_attraction"]

EARTH_RADIUS_M = 6371000.0


def haversine_distance(a: Coordinates, b: Coordinates) -> float:
    """Great-circle distance in metres."""
    lat1, lat2 = math.radians(a.latitude), math.radians(b.latitude)
    dlat = lat2 - lat1
    dlng = math.radians(b.longitude - a.longitude)
    h = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlng / 2) ** 2
    return 2 * EARTH_RADIUS_M * math.asin(math.sqrt(h))


def _to_candidate(place: Dict[str, Any], origin: Optional[Coordinates] = None) -> Optional[CandidatePlace]:
    place_id = place.get("place_id")
    name = place.get("name")
    if not place_id or not name:
        return None

    loc = (place.get("geometry") or {}).get("location") or {}
    location = ""
    distance = None
    if "lat" in loc and "lng" in loc:
        coords = Coordinates(longitude=float(loc["lng"]), latitude=float(loc["lat"]))
        location = coords.as_location()
        if origin is not None:
            distance = round(haversine_distance(origin, coords))

    types = place.get("types") or []
    return CandidatePlace(
        id=place_id,
        name=name,
        category=types[0] if types else "",
        address=place.get("formatted_address") or place.get("vicinity") or "",
        location=location,
        distance=distance,
        phone=place.get("formatted_phone_number"),
    )


class GooglePlacesClient:
    """Google Places client returning CandidatePlace lists"""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        runtime_keys: Optional[RuntimeKeyStore] = None,
        client_factory: Callable[..., Any] = googlemaps.Client,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.settings = settings or load_settings()
        self.runtime_keys = runtime_keys
        self.client_factory = client_factory
        self.sleep = sleep
        self._clients: Dict[str, Any] = {}
        self._clients_lock = threading.Lock()

    def _client(self, credentials: Optional[ApiCredentials]):
        runtime = self.runtime_keys.snapshot() if self.runtime_keys else None
        effective = resolve_credentials(credentials, runtime, self.settings)
        if not effective.places_api_key:
            raise ConfigurationError("Places API key not configured")
        key = effective.places_api_key
        with self._clients_lock:
            client = self._clients.get(key)
            if client is None:
                try:
                    client = self.client_factory(key=key, timeout=self.settings.places_timeout)
                except ValueError as e:
                    # googlemaps rejects malformed keys at construction time
                    raise ConfigurationError(f"Invalid places API key: {e}") from e
                self._clients[key] = client
        return client

    def search_text(
        self, keywords: str, region: str, credentials: Optional[ApiCredentials] = None
    ) -> List[CandidatePlace]:
        """
        Search places by free text inside a region.

        Args:
            keywords: Place name or keyword (e.g. 'Forbidden City')
            region: Destination the search is scoped to (e.g. 'Beijing')

        Returns:
            Candidates in provider relevance order; empty on zero results or
            any provider/transport failure.
        """
        client = self._client(credentials)
        logger.info(f"Places text search: '{keywords}' in {region}")
        try:
            result = client.places(query=f"{keywords} {region}")
        except (ApiError, TransportError, Timeout) as e:
            logger.warning(f"Places text search failed for '{keywords}' in {region}: {e}")
            return []

        candidates = []
        for place in (result or {}).get("results", [])[:TEXT_SEARCH_LIMIT]:
            candidate = _to_candidate(place)
            if candidate:
                candidates.append(candidate)

        if candidates:
            logger.info(f"Places text search found {len(candidates)} results, top: {candidates[0].name}")
        else:
            logger.info(f"Places text search: no results for '{keywords}' ({(result or {}).get('status')})")
        return candidates

    def search_nearby(
        self,
        origin: Coordinates,
        category_codes: Sequence[str],
        radius: int = NEARBY_RADIUS,
        credentials: Optional[ApiCredentials] = None,
    ) -> List[CandidatePlace]:
        """Places of the given types around origin, closest first, at most 20."""
        client = self._client(credentials)
        all_places: List[CandidatePlace] = []

        for i, place_type in enumerate(category_codes):
            if i > 0:
                self.sleep(self.settings.places_request_delay)
            try:
                places_result = client.places_nearby(
                    location=(origin.latitude, origin.longitude),
                    radius=radius,
                    type=place_type,
                )
            except (ApiError, TransportError, Timeout) as e:
                logger.warning(f"Nearby search failed for type {place_type}: {e}")
                continue

            for place in (places_result or {}).get("results", []):
                candidate = _to_candidate(place, origin)
                if candidate:
                    all_places.append(candidate)

        # Remove duplicates based on place id
        unique_places = []
        seen_ids = set()
        for place in all_places:
            if place.id not in seen_ids:
                seen_ids.add(place.id)
                unique_places.append(place)

        unique_places.sort(key=lambda p: p.distance if p.distance is not None else float("inf"))
        logger.info(f"Nearby search found {len(unique_places)} unique places around {origin.as_location()}")
        return unique_places[:NEARBY_LIMIT]

    def nearby_for_category(
        self, origin: Coordinates, category: str, credentials: Optional[ApiCredentials] = None
    ) -> List[CandidatePlace]:
        place_types = CATEGORY_PLACE_TYPES.get(category, DEFAULT_PLACE_TYPES)
        return self.search_nearby(origin, place_types, NEARBY_RADIUS, credentials)
