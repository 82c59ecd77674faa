"""
Itinerary orchestrator.

Runs draft -> validate -> enrich -> finalize as a sequential LangGraph and
reports progress as typed updates:

    generating 10, validating 40, enriching 70, finalizing 90, complete 100

Each update is emitted just before its stage starts; the last one carries the
assembled itinerary. Errors from any stage propagate to whoever consumes the
updates. Turning them into an error event is the transport's job.
"""

import logging
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout
from typing import Callable, Dict, Iterator, Optional

from langgraph.graph import StateGraph, END

from tripforge.config import ApiCredentials, RuntimeKeyStore, Settings, load_settings
from tripforge.integrations.google_places_client import GooglePlacesClient
from tripforge.integrations.llm_client import LLMClient
from tripforge.models.entities import FinalItinerary, ProgressUpdate
from tripforge.models.trip_requirements import TravelRequirements
from tripforge.pipeline.drafter import ItineraryDrafter
from tripforge.pipeline.enricher import ItineraryEnricher, SatelliteSelector
from tripforge.pipeline.errors import StageTimeoutError
from tripforge.pipeline.resolver import LocationResolver
from tripforge.pipeline.state import RunState
from tripforge.pipeline.validator import ItineraryValidator

logger = logging.getLogger(__name__)

# node name -> (stage announced once that node has finished, progress)
NEXT_STAGE = {
    "draft": ("validating", 40),
    "validate": ("enriching", 70),
    "enrich": ("finalizing", 90),
}


def itinerary_title(requirements: TravelRequirements) -> str:
    return f"{requirements.destination} {requirements.days}-day trip"


def _with_deadline(stage: str, fn: Callable[[RunState], Dict], timeout: Optional[float]):
    """Wrap a node so it fails with StageTimeoutError after `timeout` seconds."""
    if not timeout:
        return fn

    def node(state: RunState) -> Dict:
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"stage-{stage}")
        future = executor.submit(fn, state)
        try:
            return future.result(timeout=timeout)
        except FutureTimeout:
            # The worker thread is abandoned; its remote call may still finish
            raise StageTimeoutError(stage, timeout)
        finally:
            executor.shutdown(wait=False)

    return node


def finalize_itinerary(state: RunState) -> FinalItinerary:
    r = state.requirements
    raw = state.raw_itinerary
    return FinalItinerary(
        title=itinerary_title(r),
        destination=r.destination,
        owner_id=state.owner_id,
        start_date=r.start_date,
        days=state.days,
        travelers=r.travelers or 1,
        budget=r.budget,
        preferences=r.preferences,
        status="draft",
        transportation=raw.transportation if raw else None,
        accommodation=raw.accommodation if raw else None,
    )


class ItineraryOrchestrator:
    def __init__(
        self,
        drafter: ItineraryDrafter,
        validator: ItineraryValidator,
        enricher: ItineraryEnricher,
        stage_timeout: Optional[float] = None,
    ):
        self.drafter = drafter
        self.validator = validator
        self.enricher = enricher
        self.stage_timeout = stage_timeout
        self.graph = self._build_graph()

    def _draft(self, state: RunState) -> Dict:
        return {"raw_itinerary": self.drafter.draft(state.requirements, state.credentials)}

    def _validate(self, state: RunState) -> Dict:
        days = self.validator.validate(state.raw_itinerary, state.requirements.destination, state.credentials)
        return {"days": days}

    def _enrich(self, state: RunState) -> Dict:
        return {"days": self.enricher.enrich(state.days, state.credentials)}

    def _finalize(self, state: RunState) -> Dict:
        return {"itinerary": finalize_itinerary(state)}

    def _build_graph(self):
        g = StateGraph(RunState)

        g.add_node("draft", _with_deadline("generating", self._draft, self.stage_timeout))
        g.add_node("validate", _with_deadline("validating", self._validate, self.stage_timeout))
        g.add_node("enrich", _with_deadline("enriching", self._enrich, self.stage_timeout))
        g.add_node("finalize", _with_deadline("finalizing", self._finalize, self.stage_timeout))

        g.set_entry_point("draft")
        g.add_edge("draft", "validate")
        g.add_edge("validate", "enrich")
        g.add_edge("enrich", "finalize")
        g.add_edge("finalize", END)

        return g.compile()

    def generate(
        self,
        requirements: TravelRequirements,
        owner_id: Optional[str] = None,
        credentials: Optional[ApiCredentials] = None,
    ) -> Iterator[ProgressUpdate]:
        """
        Lazily run the pipeline, yielding one update per stage.

        The iterator is single-use. Stopping consumption early means later
        stages never start; a remote call already in flight is not aborted.
        """
        logger.info(f"Starting itinerary generation for {requirements.destination} ({requirements.days} days)")
        state = RunState(requirements=requirements, owner_id=owner_id, credentials=credentials)

        yield ProgressUpdate(stage="generating", progress=10)

        itinerary: Optional[FinalItinerary] = None
        for chunk in self.graph.stream(state, stream_mode="updates"):
            for node, update in chunk.items():
                if node in NEXT_STAGE:
                    stage, progress = NEXT_STAGE[node]
                    logger.info(f"Stage '{node}' finished, moving to {stage}")
                    yield ProgressUpdate(stage=stage, progress=progress)
                elif node == "finalize":
                    itinerary = update["itinerary"]

        if itinerary is None:
            raise RuntimeError("Pipeline finished without assembling an itinerary")

        logger.info(f"Itinerary complete: {len(itinerary.days)} days for {itinerary.destination}")
        yield ProgressUpdate(stage="complete", progress=100, data=itinerary)

    def run(
        self,
        requirements: TravelRequirements,
        listener: Callable[[ProgressUpdate], None],
        owner_id: Optional[str] = None,
        credentials: Optional[ApiCredentials] = None,
    ) -> FinalItinerary:
        """Push every update to `listener` and return the final itinerary."""
        final = None
        for update in self.generate(requirements, owner_id, credentials):
            listener(update)
            final = update.data or final
        return final


def build_pipeline(settings: Optional[Settings] = None, runtime_keys: Optional[RuntimeKeyStore] = None) -> ItineraryOrchestrator:
    """Wire the production clients into an orchestrator."""
    settings = settings or load_settings()
    llm = LLMClient(settings, runtime_keys)
    places = GooglePlacesClient(settings, runtime_keys)
    resolver = LocationResolver(places, retry_delay=settings.places_request_delay)
    return ItineraryOrchestrator(
        drafter=ItineraryDrafter(llm),
        validator=ItineraryValidator(resolver, request_delay=settings.validation_request_delay),
        enricher=ItineraryEnricher(places, SatelliteSelector(llm), request_delay=settings.places_request_delay),
        stage_timeout=settings.stage_timeout,
    )
