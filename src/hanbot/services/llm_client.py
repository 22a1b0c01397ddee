"""Client for an OpenAI-compatible chat completions API (Groq by default)."""
import logging
import time
from typing import Any, List, Optional

import httpx

from hanbot.config import LLMSettings
from hanbot.exceptions import ConfigurationError, RemoteServiceError
from hanbot.models.chat_models import ChatMessage
from hanbot.monitoring import model_call_duration, model_calls

logger = logging.getLogger(__name__)

MISSING_KEY_MESSAGE = (
    "GROQ_API_KEY is not set. Add it to .env (see .env.example). "
    "Get a key at https://console.groq.com"
)
INVALID_KEY_MESSAGE = (
    "Invalid Groq API key. Check GROQ_API_KEY in .env and get a valid key at https://console.groq.com"
)


class LLMClient:
    """Sends chat messages to the model and returns the reply text."""

    def __init__(
        self,
        config: Optional[LLMSettings] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.config = config or LLMSettings()
        self._client = http_client
        self._owns_client = http_client is None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.config.timeout)
        return self._client

    async def close(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def chat(self, messages: List[ChatMessage], model: Optional[str] = None) -> str:
        """Send the messages and return the text of the first choice."""
        api_key = (self.config.api_key or "").strip()
        if not api_key:
            raise ConfigurationError(MISSING_KEY_MESSAGE)

        payload = {
            "model": model or self.config.model,
            "messages": [message.to_dict() for message in messages],
            "max_tokens": self.config.max_tokens,
        }
        headers = {"Authorization": f"Bearer {api_key}"}

        started = time.perf_counter()
        try:
            response = await self.client.post(self.config.api_url, json=payload, headers=headers)
        except httpx.HTTPError as e:
            model_calls.labels(outcome="error").inc()
            logger.error(f"Model request failed: {e}")
            raise RemoteServiceError(f"Model request failed: {e}") from e
        finally:
            model_call_duration.observe(time.perf_counter() - started)

        if response.status_code >= 400:
            model_calls.labels(outcome="error").inc()
            body = response.text
            logger.error(f"Model API error: {response.status_code} {body[:500]}")
            if response.status_code == 401:
                raise RemoteServiceError(INVALID_KEY_MESSAGE, status_code=401, body=body)
            raise RemoteServiceError(
                f"Model API error: {response.status_code}",
                status_code=response.status_code,
                body=body,
            )

        model_calls.labels(outcome="ok").inc()
        try:
            data = response.json()
        except ValueError as e:
            raise RemoteServiceError(
                "Model API returned invalid JSON",
                status_code=response.status_code,
                body=response.text,
            ) from e
        content = self._extract_content(data)
        if content is None:
            raise RemoteServiceError(
                "Model API returned an unexpected body",
                status_code=response.status_code,
                body=response.text,
            )
        logger.debug(f"Model reply ({len(content)} chars)")
        return content

    @staticmethod
    def _extract_content(data: Any) -> Optional[str]:
        """Text of the first choice; None when the body has the wrong shape."""
        if not isinstance(data, dict):
            return None
        choices = data.get("choices") or [{}]
        if not isinstance(choices, list) or not isinstance(choices[0], dict):
            return None
        message = choices[0].get("message") or {}
        if not isinstance(message, dict):
            return None
        content = message.get("content") or ""
        return content if isinstance(content, str) else None
