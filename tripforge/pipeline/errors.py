class PipelineError(RuntimeError):
    """Base class for itinerary pipeline failures."""


class GenerationFailure(PipelineError):
    """The LLM could not be reached while drafting."""


class MalformedResponse(PipelineError):
    """The LLM replied, but without a usable structured payload."""


class StageTimeoutError(PipelineError):
    """A pipeline stage ran past its configured deadline."""

    def __init__(self, stage: str, timeout: float):
        super().__init__(f"Stage '{stage}' exceeded its {timeout:g}s deadline")
        self.stage = stage
        self.timeout = timeout
