from fastapi import FastAPI, Header, HTTPException
from fastapi.responses import StreamingResponse
from fastapi.middleware.cors import CORSMiddleware
from datetime import datetime, timezone
from typing import Iterator, Optional
from pydantic import BaseModel
import logging
import json
import re

from tripforge.config import ApiCredentials, RuntimeKeyStore, load_settings
from tripforge.integrations.google_places_client import NEARBY_RADIUS
from tripforge.integrations.errors import ConfigurationError, UpstreamAPIError
from tripforge.models.entities import parse_location
from tripforge.models.trip_requirements import TravelRequirements
from tripforge.pipeline.errors import PipelineError
from tripforge.pipeline.orchestrator import ItineraryOrchestrator, build_pipeline

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class GenerateRequest(BaseModel):
    input: Optional[str] = None
    requirements: Optional[TravelRequirements] = None


class LocationSearch(BaseModel):
    keywords: Optional[str] = None
    city: Optional[str] = None


class LocationValidate(BaseModel):
    name: Optional[str] = None
    city: Optional[str] = None


class KeysUpdate(BaseModel):
    llm_api_key: Optional[str] = None
    llm_base_url: Optional[str] = None
    places_api_key: Optional[str] = None


def _format_sse(data: dict) -> str:
    """Format a dict as an SSE event line"""
    return f"data: {json.dumps(data, default=str, ensure_ascii=False)}\n\n"


def _override_from_headers(llm_key: Optional[str], llm_url: Optional[str], places_key: Optional[str]) -> Optional[ApiCredentials]:
    if not (llm_key or llm_url or places_key):
        return None
    return ApiCredentials(llm_api_key=llm_key, llm_base_url=llm_url, places_api_key=places_key)


def _stream_itinerary(
    pipeline: ItineraryOrchestrator,
    requirements: TravelRequirements,
    owner_id: Optional[str],
    credentials: Optional[ApiCredentials],
) -> Iterator[str]:
    """Forward pipeline updates as SSE; a failure becomes one final error event."""
    try:
        for update in pipeline.generate(requirements, owner_id, credentials):
            logger.info(f"Sending update: {update.stage} ({update.progress}%)")
            yield _format_sse(update.model_dump(mode="json", exclude_none=True))
    except Exception as e:
        logger.exception("Itinerary generation failed")
        yield _format_sse({"stage": "error", "progress": 0, "error": str(e)})


def create_app(pipeline: Optional[ItineraryOrchestrator] = None, runtime_keys: Optional[RuntimeKeyStore] = None) -> FastAPI:
    settings = load_settings()
    runtime_keys = runtime_keys or RuntimeKeyStore()
    pipeline = pipeline or build_pipeline(settings, runtime_keys)

    app = FastAPI(
        title="TripForge Backend API",
        description="LLM itinerary drafting with map-verified places",
        version="1.0.0",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure this properly for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health")
    def health():
        return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}

    @app.post("/itinerary/generate")
    def generate_itinerary(
        request: GenerateRequest,
        x_llm_api_key: Optional[str] = Header(default=None),
        x_llm_api_url: Optional[str] = Header(default=None),
        x_places_api_key: Optional[str] = Header(default=None),
        x_user_id: Optional[str] = Header(default=None),
    ):
        """
        Stream an itinerary as server-sent events.

        - **input**: free-text request, parsed into requirements first
        - **requirements**: structured requirements, used as-is
        """
        credentials = _override_from_headers(x_llm_api_key, x_llm_api_url, x_places_api_key)

        if request.requirements is not None:
            requirements = request.requirements
        elif request.input and request.input.strip():
            try:
                requirements = pipeline.drafter.parse_requirements(request.input, credentials)
            except ConfigurationError as e:
                raise HTTPException(status_code=503, detail=str(e))
            except (PipelineError, UpstreamAPIError) as e:
                logger.error(f"Requirement parsing failed: {e}")
                raise HTTPException(status_code=502, detail=f"Failed to parse travel requirements: {e}")
        else:
            raise HTTPException(status_code=400, detail="Input or requirements are required")

        logger.info(
            f"Travel requirements: {requirements.destination}, {requirements.days} days, "
            f"preferences={requirements.preferences or 'none'}, restrictions={requirements.restrictions or 'none'}"
        )
        return StreamingResponse(
            _stream_itinerary(pipeline, requirements, x_user_id, credentials),
            media_type="text/event-stream",
            headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
        )

    resolver = pipeline.validator.resolver
    places = resolver.places

    @app.post("/location/search")
    def search_location(
        request: LocationSearch,
        x_places_api_key: Optional[str] = Header(default=None),
    ):
        """Text search for a place inside a city."""
        if not (request.keywords and request.keywords.strip() and request.city and request.city.strip()):
            raise HTTPException(status_code=400, detail="Keywords and city are required")
        credentials = _override_from_headers(None, None, x_places_api_key)
        try:
            pois = places.search_text(request.keywords.strip(), request.city.strip(), credentials)
        except ConfigurationError as e:
            raise HTTPException(status_code=503, detail=str(e))
        return {"pois": [p.model_dump() for p in pois]}

    @app.post("/location/validate")
    def validate_location(
        request: LocationValidate,
        x_places_api_key: Optional[str] = Header(default=None),
    ):
        """Check that a place exists, with the same fuzzy retries the pipeline uses."""
        if not (request.name and request.name.strip() and request.city and request.city.strip()):
            raise HTTPException(status_code=400, detail="Name and city are required")
        credentials = _override_from_headers(None, None, x_places_api_key)
        try:
            outcome = resolver.resolve(request.name.strip(), request.city.strip(), credentials)
        except ConfigurationError as e:
            raise HTTPException(status_code=503, detail=str(e))
        if outcome.ok:
            return {"valid": True, "poi": outcome.place.model_dump()}
        return {"valid": False, "message": outcome.reason}

    @app.get("/location/nearby")
    def nearby_locations(
        location: Optional[str] = None,
        types: Optional[str] = None,
        radius: int = NEARBY_RADIUS,
        x_places_api_key: Optional[str] = Header(default=None),
    ):
        """
        Places around a point, closest first.

        - **location**: "lng,lat"
        - **types**: place types separated by "|" or ","
        """
        if not location or not types:
            raise HTTPException(status_code=400, detail="Location and types are required")
        origin = parse_location(location)
        if origin is None:
            raise HTTPException(status_code=400, detail=f"Invalid location '{location}', expected 'lng,lat'")
        place_types = [t.strip() for t in re.split(r"[|,]", types) if t.strip()]
        if not place_types:
            raise HTTPException(status_code=400, detail="Location and types are required")
        credentials = _override_from_headers(None, None, x_places_api_key)
        try:
            pois = places.search_nearby(origin, place_types, radius, credentials)
        except ConfigurationError as e:
            raise HTTPException(status_code=503, detail=str(e))
        return {"pois": [p.model_dump() for p in pois]}

    @app.post("/config/keys")
    def set_keys(update: KeysUpdate):
        """Store keys in memory; they reset when the server restarts."""
        runtime_keys.set_keys(**update.model_dump())
        logger.info("Runtime API keys updated")
        return {"success": True, "configured": runtime_keys.status(settings)}

    @app.get("/config/status")
    def config_status():
        return {
            "configured": runtime_keys.status(settings),
            "note": "Runtime keys reset on server restart. Environment variables persist.",
        }

    return app


app = create_app()
