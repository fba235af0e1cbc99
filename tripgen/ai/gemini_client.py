"""Gemini client with ordered model fallback."""
import logging
from typing import Any, Dict, List, Optional, Protocol

import httpx

from tripgen.errors import ModelCallError, ModelExhaustedError

logger = logging.getLogger("gemini-client")


class LLMProvider(Protocol):
    async def generate(self, model: str, prompt: str, sampling: Dict[str, Any]) -> Dict[str, Any]:
        ...


class GeminiProvider:
    """Issues a single generateContent call against the Gemini REST API."""

    def __init__(
        self,
        api_key: str,
        api_base: str = "https://generativelanguage.googleapis.com/v1",
        timeout: float = 120.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.api_key = api_key
        self.api_base = api_base.rstrip("/")
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = client is None

        if api_key and not api_key.startswith("AIza"):
            logger.warning("Gemini API key format may be incorrect. Expected format: AIza...")

    async def generate(self, model: str, prompt: str, sampling: Dict[str, Any]) -> Dict[str, Any]:
        if not self.api_key:
            raise ModelCallError(model, "Gemini API key not found. Please set GEMINI_API_KEY")

        response = await self._client.post(
            f"{self.api_base}/models/{model}:generateContent",
            params={"key": self.api_key},
            json={
                "contents": [{"parts": [{"text": prompt}]}],
                "generationConfig": sampling,
            },
        )

        if response.status_code != 200:
            body = response.text
            raise ModelCallError(
                model,
                f"API Error with {model}: {response.status_code} - {body[:300]}",
                status_code=response.status_code,
                body=body,
            )

        try:
            return response.json()
        except ValueError:
            raise ModelCallError(model, f"Non-JSON response from {model}", response.status_code, response.text)

    async def aclose(self):
        if self._owns_client:
            await self._client.aclose()


def extract_response_text(payload: Any) -> Optional[str]:
    """Pull the generated text out of any of the known response envelopes."""
    if not isinstance(payload, dict):
        return None

    candidates = payload.get("candidates") or []
    if candidates and isinstance(candidates[0], dict):
        content = candidates[0].get("content")
        if isinstance(content, dict):
            parts = content.get("parts") or []
            texts = [p.get("text") for p in parts if isinstance(p, dict) and isinstance(p.get("text"), str)]
            if texts:
                return "".join(texts)
        elif isinstance(content, str) and content:
            return content

    for key in ("text", "response"):
        value = payload.get(key)
        if isinstance(value, str) and value:
            return value

    return None


def is_truncated(payload: Any) -> bool:
    if not isinstance(payload, dict):
        return False
    candidates = payload.get("candidates") or []
    return bool(candidates) and isinstance(candidates[0], dict) and candidates[0].get("finishReason") == "MAX_TOKENS"


class ModelClient:
    """Sends a prompt to each candidate model in order until one gives a usable answer.

    Every call is an independent request; no chat history is kept between
    prompts.
    """

    def __init__(
        self,
        provider: LLMProvider,
        models: List[str],
        sampling: Dict[str, Any],
        min_response_chars: int = 500,
    ):
        self.provider = provider
        self.models = list(models)
        self.sampling = dict(sampling)
        self.min_response_chars = min_response_chars

    async def send(self, prompt: str) -> str:
        """
        Send a fully substituted prompt and return the model's text.

        Args:
            prompt: Prompt text with every template variable filled in

        Returns:
            Text of the first acceptable response

        Raises:
            ModelExhaustedError: If every candidate model failed
        """
        attempts: List[str] = []
        last_error: Optional[Exception] = None

        for model in self.models:
            attempts.append(model)
            logger.info(f"Trying with model: {model}")

            try:
                payload = await self.provider.generate(model, prompt, dict(self.sampling))
            except Exception as e:
                last_error = e
                logger.warning(f"Model {model} failed: {e}")
                continue

            if is_truncated(payload):
                # Truncated output is still handed to the JSON extractor for repair
                logger.warning(f"Response truncated due to token limit for {model}")

            text = extract_response_text(payload)
            if not text:
                last_error = ModelCallError(model, f"Unexpected API response structure from {model}")
                logger.error(f"Unexpected response structure from {model}: {str(payload)[:200]}")
                continue

            if len(text) < self.min_response_chars:
                last_error = ModelCallError(model, f"Response too short for {model} ({len(text)} chars)")
                logger.warning(f"Response too short ({len(text)} chars). Trying next model...")
                continue

            logger.info(f"Successfully used model: {model} ({len(text)} chars)")
            return text

        raise ModelExhaustedError(attempts, last_error)
