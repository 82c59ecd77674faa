"""
Configuration for TripForge.

Settings come from the environment (optionally a .env file). API credentials
follow a three-level precedence: a per-request override beats keys set at
runtime through the config endpoint, which beat the environment defaults.
"""

import os
import logging
import threading
from typing import Optional, Dict

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict

load_dotenv()

logger = logging.getLogger(__name__)


class ApiCredentials(BaseModel):
    """Key bundle threaded through every remote call."""

    model_config = ConfigDict(frozen=True)

    llm_api_key: Optional[str] = None
    llm_base_url: Optional[str] = None
    places_api_key: Optional[str] = None


class Settings(BaseModel):
    model_config = ConfigDict(frozen=True)

    openai_api_key: Optional[str] = None
    openai_base_url: Optional[str] = None
    llm_model: str = "gpt-4o-mini"
    llm_temperature: float = 0.7
    llm_timeout: float = 60.0
    google_places_api_key: Optional[str] = None
    places_timeout: float = 10.0
    places_request_delay: float = 0.2
    validation_request_delay: float = 0.3
    stage_timeout: Optional[float] = None

    def default_credentials(self) -> ApiCredentials:
        return ApiCredentials(
            llm_api_key=self.openai_api_key,
            llm_base_url=self.openai_base_url,
            places_api_key=self.google_places_api_key,
        )


def _float_env(name: str, default: Optional[float]) -> Optional[float]:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"Ignoring non-numeric {name}={raw!r}, using {default}")
        return default


def load_settings() -> Settings:
    """Build settings from environment variables."""
    return Settings(
        openai_api_key=os.getenv("OPENAI_API_KEY"),
        openai_base_url=os.getenv("OPENAI_BASE_URL"),
        llm_model=os.getenv("LLM_MODEL", "gpt-4o-mini"),
        llm_temperature=_float_env("LLM_TEMPERATURE", 0.7),
        llm_timeout=_float_env("LLM_TIMEOUT", 60.0),
        google_places_api_key=os.getenv("GOOGLE_PLACES_API_KEY"),
        places_timeout=_float_env("PLACES_TIMEOUT", 10.0),
        places_request_delay=_float_env("PLACES_REQUEST_DELAY", 0.2),
        validation_request_delay=_float_env("VALIDATION_REQUEST_DELAY", 0.3),
        stage_timeout=_float_env("STAGE_TIMEOUT", None),
    )


def effective_value(override: Optional[str], runtime: Optional[str], default: Optional[str]) -> Optional[str]:
    """Return the first non-blank of override, runtime and default."""
    for candidate in (override, runtime, default):
        if candidate is not None and candidate.strip():
            return candidate
    return None


def resolve_credentials(
    override: Optional[ApiCredentials],
    runtime: Optional[ApiCredentials],
    settings: Settings,
) -> ApiCredentials:
    """Merge the three credential sources field by field."""
    override = override or ApiCredentials()
    runtime = runtime or ApiCredentials()
    defaults = settings.default_credentials()
    return ApiCredentials(
        **{
            field: effective_value(
                getattr(override, field), getattr(runtime, field), getattr(defaults, field)
            )
            for field in ApiCredentials.model_fields
        }
    )


class RuntimeKeyStore:
    """
    Keys configured while the service is running.

    Values live in memory only and reset on restart. Readers get an immutable
    snapshot, so an in-flight generation never sees a half-applied update.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._credentials = ApiCredentials()

    def set_keys(self, **keys: Optional[str]) -> None:
        unknown = set(keys) - set(ApiCredentials.model_fields)
        if unknown:
            raise ValueError(f"Unknown credential fields: {sorted(unknown)}")
        with self._lock:
            merged = self._credentials.model_dump()
            merged.update({k: v for k, v in keys.items() if v is not None and v.strip()})
            self._credentials = ApiCredentials(**merged)

    def clear(self, name: Optional[str] = None) -> None:
        with self._lock:
            if name is None:
                self._credentials = ApiCredentials()
            elif name not in ApiCredentials.model_fields:
                raise ValueError(f"Unknown credential field: {name}")
            else:
                self._credentials = self._credentials.model_copy(update={name: None})

    def snapshot(self) -> ApiCredentials:
        with self._lock:
            return self._credentials

    def status(self, settings: Settings) -> Dict[str, bool]:
        """Report which keys are available, never their values."""
        effective = resolve_credentials(None, self.snapshot(), settings)
        return {
            "llm_api_key": bool(effective.llm_api_key),
            "places_api_key": bool(effective.places_api_key),
        }
