import logging
from typing import Optional

from openai import OpenAI, OpenAIError

from tripforge.config import ApiCredentials, RuntimeKeyStore, Settings, load_settings, resolve_credentials
from tripforge.integrations.errors import ConfigurationError, UpstreamAPIError

logger = logging.getLogger(__name__)

DEFAULT_SYSTEM_PROMPT = (
    "You are a professional travel planning assistant with deep knowledge of "
    "destinations, attractions and local food around the world."
)


class LLMClient:
    """Chat-completion gateway for any OpenAI-compatible endpoint."""

    def __init__(self, settings: Optional[Settings] = None, runtime_keys: Optional[RuntimeKeyStore] = None):
        self.settings = settings or load_settings()
        self.runtime_keys = runtime_keys

    def _client(self, credentials: ApiCredentials) -> OpenAI:
        kwargs = {
            "api_key": credentials.llm_api_key,
            "timeout": self.settings.llm_timeout,
            "max_retries": 0,
        }
        if credentials.llm_base_url:
            kwargs["base_url"] = credentials.llm_base_url
        return OpenAI(**kwargs)

    def complete(
        self,
        system_prompt: Optional[str],
        user_prompt: str,
        credentials: Optional[ApiCredentials] = None,
    ) -> str:
        """
        Send one system + user exchange and return the reply text.

        Raises:
            ConfigurationError: no LLM key in override, runtime config or env.
            UpstreamAPIError: the provider could not be reached or replied with nothing.
        """
        runtime = self.runtime_keys.snapshot() if self.runtime_keys else None
        effective = resolve_credentials(credentials, runtime, self.settings)
        if not effective.llm_api_key:
            raise ConfigurationError("LLM API key not configured")

        messages = [
            {"role": "system", "content": system_prompt or DEFAULT_SYSTEM_PROMPT},
            {"role": "user", "content": user_prompt},
        ]
        try:
            resp = self._client(effective).chat.completions.create(
                model=self.settings.llm_model,
                messages=messages,
                temperature=self.settings.llm_temperature,
            )
        except OpenAIError as e:
            logger.error(f"LLM call failed: {e}")
            raise UpstreamAPIError(f"LLM call failed: {e}") from e

        content = resp.choices[0].message.content if resp.choices else None
        if not content:
            raise UpstreamAPIError("LLM returned an empty response")
        return content
