"""
Itinerary pipeline: draft with an LLM, verify places, add nearby satellites.
"""

from .orchestrator import ItineraryOrchestrator, build_pipeline
from .errors import GenerationFailure, MalformedResponse, PipelineError, StageTimeoutError

__all__ = [
    'ItineraryOrchestrator',
    'build_pipeline',
    'GenerationFailure',
    'MalformedResponse',
    'PipelineError',
    'StageTimeoutError',
]
