# synax/ollama_client.py

import logging
import re
from contextlib import contextmanager
from typing import List, Optional

import httpx
import ollama

from synax.errors import InferenceError, NetworkError, ProtocolError

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://localhost:11434"
DEFAULT_MODEL = "mistral"
DEFAULT_TIMEOUT_SECONDS = 60
DEFAULT_OPTIONS = {"temperature": 0.7, "top_p": 0.9, "top_k": 40}
EMPTY_REPLY_TEXT = "No response received"

_THINK_BLOCK = re.compile(r'<think>.*?</think>', re.DOTALL)


def clean_response(text: str) -> str:
    """Strips reasoning tags like <think>...</think> from the model output."""
    if not text:
        return ""
    return _THINK_BLOCK.sub('', text).strip()


def _model_name(entry) -> Optional[str]:
    # Newer ollama releases expose `model`, older ones `name`.
    if isinstance(entry, dict):
        return entry.get('model') or entry.get('name')
    return getattr(entry, 'model', None) or getattr(entry, 'name', None)


class OllamaClient:
    """Talks to the Ollama HTTP API (/api/generate and /api/tags)."""

    def __init__(self, base_url: str = DEFAULT_BASE_URL, model: str = DEFAULT_MODEL,
                 timeout: float = DEFAULT_TIMEOUT_SECONDS, options: Optional[dict] = None,
                 client=None):
        self.base_url = base_url
        self.model = model
        self.timeout = timeout
        self.options = dict(DEFAULT_OPTIONS if options is None else options)
        self._client = client or ollama.AsyncClient(host=base_url, timeout=timeout)

    @classmethod
    def from_config(cls, config: dict, base_url: Optional[str] = None, model: Optional[str] = None) -> "OllamaClient":
        ollama_config = config.get("ollama", {})
        return cls(
            base_url=base_url or ollama_config.get("base_url", DEFAULT_BASE_URL),
            model=model or ollama_config.get("default_model", DEFAULT_MODEL),
            timeout=ollama_config.get("request_timeout_seconds", DEFAULT_TIMEOUT_SECONDS),
            options=ollama_config.get("options"),
        )

    @contextmanager
    def _endpoint_errors(self, action: str):
        try:
            yield
        except ollama.ResponseError as e:
            logger.error(f"Ollama returned an error during {action}: {e.status_code} - {e.error}")
            raise ProtocolError(f"HTTP Error: {e.status_code} - {e.error}", status_code=e.status_code) from e
        except httpx.TimeoutException as e:
            logger.warning(f"Timeout during {action} after {self.timeout}s: {e}")
            raise NetworkError("Timeout - the model takes too long to answer. Try a simpler question.") from e
        except (ConnectionError, httpx.RequestError) as e:
            logger.warning(f"Ollama unreachable at {self.base_url} during {action}: {e}")
            raise NetworkError(
                f"Unable to connect to Ollama at {self.base_url}. "
                f"Verify that Ollama is running and that the model '{self.model}' is installed."
            ) from e
        except (KeyError, TypeError, ValueError) as e:
            logger.error(f"Malformed response from Ollama during {action}: {e}", exc_info=True)
            raise ProtocolError(f"Malformed response from the model server: {e}") from e

    async def generate(self, prompt: str) -> str:
        """
        Sends a composed prompt to /api/generate with streaming disabled.

        Args:
            prompt (str): Pre-prompt, history and the current user turn.

        Returns:
            str: The reply text with reasoning blocks removed.

        Raises:
            NetworkError: The server is unreachable or timed out.
            ProtocolError: Non-2xx status or an unusable body.
        """
        logger.info(f"Sending prompt to model '{self.model}' ({len(prompt)} chars).")
        with self._endpoint_errors("generate"):
            response = await self._client.generate(
                model=self.model,
                prompt=prompt,
                stream=False,
                options=self.options,
            )
            text = response['response']
        cleaned = clean_response(text or "")
        if not cleaned:
            logger.warning("Model returned an empty reply.")
            return EMPTY_REPLY_TEXT
        return cleaned

    async def list_models(self) -> List[str]:
        """Returns the sorted model names reported by /api/tags."""
        with self._endpoint_errors("list"):
            response = await self._client.list()
            entries = response['models'] or []
        return sorted(name for name in (_model_name(m) for m in entries) if name)

    async def detect_model(self, fallback: str = DEFAULT_MODEL) -> str:
        """
        First model the server reports, or `fallback` when it reports none.

        Raises:
            InferenceError: The server could not be queried.
        """
        try:
            with self._endpoint_errors("list"):
                response = await self._client.list()
                entries = response['models'] or []
        except InferenceError as e:
            logger.warning(f"Could not detect a model, using '{fallback}': {e}")
            raise
        for entry in entries:
            name = _model_name(entry)
            if name:
                logger.info(f"Detected model '{name}'.")
                return name
        logger.info(f"No model reported by the server, using '{fallback}'.")
        return fallback
