class IntegrationError(RuntimeError):
    """Base class for failures talking to a remote provider."""


class ConfigurationError(IntegrationError):
    """Raised when no credential is available for a required remote service."""


class UpstreamAPIError(IntegrationError):
    """Raised when an upstream provider call fails (network, auth, 4xx/5xx, empty reply)."""
