import json
import logging
from typing import Optional

from pydantic import ValidationError

from tripforge.config import ApiCredentials
from tripforge.integrations.errors import ConfigurationError, UpstreamAPIError
from tripforge.integrations.llm_client import LLMClient
from tripforge.models.entities import EVENT_CATEGORIES, RawItinerary
from tripforge.models.trip_requirements import TravelRequirements
from tripforge.pipeline.errors import GenerationFailure, MalformedResponse
from tripforge.pipeline.utils import extract_json_object

logger = logging.getLogger(__name__)

ITINERARY_SCHEMA = """
{
  "days": [
    {
      "date": "Day 1",
      "events": [
        {
          "time": "09:00",
          "type": "attraction",
          "name": "Forbidden City",
          "description": "Short description",
          "estimatedDuration": 120,
          "estimatedCost": 60
        }
      ]
    }
  ],
  "transportation": {
    "type": "flight/train/car",
    "details": "How to get there and around",
    "estimatedCost": 3000
  },
  "accommodation": {
    "type": "hotel/guesthouse",
    "details": "Where to stay",
    "estimatedCost": 2000
  }
}
"""

REQUIREMENTS_SCHEMA = """
{
  "destination": "city",
  "days": 3,
  "budget": null,
  "travelers": 1,
  "preferences": ["seafood"],
  "restrictions": ["no visit to Weizhou Island"]
}
"""


def build_itinerary_prompt(requirements: TravelRequirements) -> str:
    r = requirements
    lines = [f"Create a detailed {r.days}-day travel plan.", "", f"- Destination: {r.destination}"]
    if r.budget:
        lines.append(f"- Budget: {r.budget:g}")
    if r.travelers:
        lines.append(f"- Travelers: {r.travelers}")
    if r.preferences:
        lines.append(f"- Preferences: {', '.join(r.preferences)}")

    if r.restrictions:
        lines += ["", "HARD CONSTRAINTS (must be followed strictly, they override every other rule):"]
        lines += [f"  - {need}" for need in r.restrictions]

    rules = []
    if r.restrictions:
        rules.append(
            "First principle: obey every hard constraint above. Violating one is not allowed; "
            "never schedule a place or activity the traveler has ruled out."
        )
    rules += [
        "Plan 2-4 main events per day (sights, restaurants, entertainment).",
        "Use only real, existing places, with precise and minimal names. "
        "Good: 'Forbidden City', 'Tiananmen', 'Qinhuai River'. "
        "Bad: 'Forbidden City Scenic Area Tour', 'Tiananmen Square Visit', 'Qinhuai River Night Tour'. "
        "Do not append words like 'scenic area', 'night tour' or 'food street'; the name is looked up on a map as written.",
        "Give sensible times in 24-hour format, e.g. 09:00.",
        "Estimate each event's duration in minutes and its cost.",
        "Include transportation and accommodation advice.",
        "Favour the traveler's preferences.",
    ]
    lines += ["", "Requirements:"]
    lines += [f"{i}. {rule}" for i, rule in enumerate(rules, 1)]

    lines += [
        "",
        "Reply with JSON only, exactly in this shape, with no other text:",
        ITINERARY_SCHEMA.strip(),
        "",
        f"\"type\" must be one of: {', '.join(EVENT_CATEGORIES)}.",
    ]
    return "\n".join(lines)


def parse_raw_itinerary(text: str) -> RawItinerary:
    """Pull the itinerary object out of an LLM reply and validate its shape."""
    payload = extract_json_object(text)
    if not isinstance(payload, dict):
        raise MalformedResponse("No JSON object found in LLM response")
    if not isinstance(payload.get("days"), list):
        raise MalformedResponse("LLM response has no 'days' array")
    try:
        return RawItinerary.model_validate(payload)
    except ValidationError as e:
        raise MalformedResponse(f"LLM itinerary does not match the expected schema: {e}") from e


class ItineraryDrafter:
    """Turns trip requirements into an unverified day-by-day draft."""

    def __init__(self, llm: LLMClient):
        self.llm = llm

    def _ask(self, prompt: str, credentials: Optional[ApiCredentials]) -> str:
        try:
            return self.llm.complete(None, prompt, credentials)
        except ConfigurationError:
            raise
        except UpstreamAPIError as e:
            raise GenerationFailure(str(e)) from e

    def draft(self, requirements: TravelRequirements, credentials: Optional[ApiCredentials] = None) -> RawItinerary:
        logger.info(f"Drafting {requirements.days}-day itinerary for {requirements.destination}")
        response = self._ask(build_itinerary_prompt(requirements), credentials)

        try:
            raw = parse_raw_itinerary(response)
        except MalformedResponse:
            logger.error(f"Failed to parse itinerary, raw response: {response[:2000]}")
            raise

        for idx, day in enumerate(raw.days, 1):
            logger.info(f"Draft day {idx} ({day.date}): " + ", ".join(f"{e.name} ({e.category})" for e in day.events))
        return raw

    def parse_requirements(self, user_input: str, credentials: Optional[ApiCredentials] = None) -> TravelRequirements:
        """Extract structured requirements from a free-text travel request."""
        prompt = f"""
Extract the key facts from this travel request. Pay close attention to anything
the traveler does not want.

Request: {user_input}

Reply with JSON only, in this shape:
{REQUIREMENTS_SCHEMA.strip()}

Notes:
- preferences: what the traveler likes (food, history, shopping, nature...).
- restrictions: limits and refusals. Phrases like "don't want", "avoid",
  "not going to", "can't", "no ..." become restrictions, as do physical,
  dietary and time limits.
- travelers defaults to 1, budget to null when not mentioned.

Example:
Request: "3 days in Beihai, but I don't want to go to Weizhou Island, I love seafood"
Reply: {json.dumps({"destination": "Beihai", "days": 3, "budget": None, "travelers": 1,
                    "preferences": ["seafood"], "restrictions": ["no visit to Weizhou Island"]})}
"""
        response = self._ask(prompt, credentials)
        payload = extract_json_object(response)
        if not isinstance(payload, dict):
            raise MalformedResponse("No JSON object found in requirements response")
        if payload.get("travelers") is None:
            payload["travelers"] = 1
        payload = {k: v for k, v in payload.items() if v is not None}
        try:
            return TravelRequirements.model_validate(payload)
        except ValidationError as e:
            raise MalformedResponse(f"Could not read travel requirements: {e}") from e
