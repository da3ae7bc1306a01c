"""
Generation provider clients.

Two interchangeable backends implement the same capability interface
(``generate_text`` / ``generate_image``). Which one serves a request is
decided by settings, not by the caller.
"""
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional

import requests

from domain.errors import ProviderError, ProviderResponseError
from settings import settings

logger = logging.getLogger(__name__)
_session = requests.Session()

ANTHROPIC_VERSION = "2023-06-01"
DEFAULT_IMAGE_SIZE = "1024x1024"


class GenerationProvider:
    """Capability interface for text and image generation."""

    name = "base"

    def generate_text(self, prompt: str, json_mode: bool = False) -> str:
        raise NotImplementedError

    def generate_image(self, prompt: str, size: str = DEFAULT_IMAGE_SIZE) -> str:
        """Return a ``data:image/png;base64,...`` URL or a remote image URL."""
        raise NotImplementedError


def _post_json(
    url: str,
    *,
    payload: Dict[str, Any],
    headers: Dict[str, str],
    timeout: float,
    provider: str,
) -> Dict[str, Any]:
    """POST a JSON body and return the decoded JSON response, raising ProviderError on any failure."""
    try:
        resp = _session.post(url, json=payload, headers=headers, timeout=timeout)
        resp.raise_for_status()
    except requests.RequestException as exc:
        raise ProviderError(f"{provider} request failed", {"url": url, "error": str(exc)}) from exc
    try:
        return resp.json()
    except ValueError as exc:
        raise ProviderResponseError(f"{provider} returned a non-JSON body", resp.text or "") from exc


class OpenAIProvider(GenerationProvider):
    """OpenAI-compatible chat completions + images endpoints."""

    name = "openai"

    def __init__(
        self,
        api_key: str,
        base_url: str,
        text_model: str,
        image_model: str,
        timeout: float = 120.0,
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.text_model = text_model
        self.image_model = image_model
        self.timeout = timeout

    @property
    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.api_key}"}

    def generate_text(self, prompt: str, json_mode: bool = False) -> str:
        payload: Dict[str, Any] = {
            "model": self.text_model,
            "messages": [{"role": "user", "content": prompt}],
        }
        if json_mode:
            payload["response_format"] = {"type": "json_object"}
        logger.debug("openai chat request model=%s json_mode=%s chars=%d", self.text_model, json_mode, len(prompt))
        data = _post_json(
            f"{self.base_url}/chat/completions",
            payload=payload,
            headers=self._headers,
            timeout=self.timeout,
            provider=self.name,
        )
        try:
            return data["choices"][0]["message"]["content"] or ""
        except (KeyError, IndexError, TypeError) as exc:
            raise ProviderResponseError("openai chat response missing content", str(data)) from exc

    def generate_image(self, prompt: str, size: str = DEFAULT_IMAGE_SIZE) -> str:
        payload = {"model": self.image_model, "prompt": prompt, "n": 1, "size": size}
        logger.debug("openai image request model=%s size=%s", self.image_model, size)
        data = _post_json(
            f"{self.base_url}/images/generations",
            payload=payload,
            headers=self._headers,
            timeout=self.timeout,
            provider=self.name,
        )
        items = data.get("data") or []
        first = items[0] if items else {}
        if first.get("b64_json"):
            return f"data:image/png;base64,{first['b64_json']}"
        if first.get("url"):
            return first["url"]
        raise ProviderResponseError("No image data returned from openai", str(data))


class AnthropicProvider(GenerationProvider):
    """Anthropic messages endpoint. Text only."""

    name = "anthropic"

    def __init__(
        self,
        api_key: str,
        base_url: str,
        model: str,
        max_tokens: int = 8192,
        timeout: float = 120.0,
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.max_tokens = max_tokens
        self.timeout = timeout

    def generate_text(self, prompt: str, json_mode: bool = False) -> str:
        # No JSON response mode here; the prompt itself asks for JSON.
        payload = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "messages": [{"role": "user", "content": prompt}],
        }
        headers = {
            "x-api-key": self.api_key,
            "anthropic-version": ANTHROPIC_VERSION,
        }
        logger.debug("anthropic messages request model=%s chars=%d", self.model, len(prompt))
        data = _post_json(
            f"{self.base_url}/v1/messages",
            payload=payload,
            headers=headers,
            timeout=self.timeout,
            provider=self.name,
        )
        blocks = data.get("content") or []
        texts = [b.get("text", "") for b in blocks if isinstance(b, dict) and b.get("type") == "text"]
        if not texts:
            raise ProviderResponseError("anthropic response has no text block", str(data))
        return "".join(texts)

    def generate_image(self, prompt: str, size: str = DEFAULT_IMAGE_SIZE) -> str:
        raise ProviderError("anthropic does not support image generation")


def _openai_from_settings() -> OpenAIProvider:
    return OpenAIProvider(
        api_key=settings.OPENAI_API_KEY,
        base_url=settings.OPENAI_BASE_URL,
        text_model=settings.OPENAI_TEXT_MODEL,
        image_model=settings.OPENAI_IMAGE_MODEL,
        timeout=settings.PROVIDER_TIMEOUT_SECONDS,
    )


def _anthropic_from_settings() -> AnthropicProvider:
    return AnthropicProvider(
        api_key=settings.ANTHROPIC_API_KEY,
        base_url=settings.ANTHROPIC_BASE_URL,
        model=settings.ANTHROPIC_MODEL,
        max_tokens=settings.ANTHROPIC_MAX_TOKENS,
        timeout=settings.PROVIDER_TIMEOUT_SECONDS,
    )


PROVIDER_FACTORIES: Dict[str, Callable[[], GenerationProvider]] = {
    "openai": _openai_from_settings,
    "anthropic": _anthropic_from_settings,
}


def get_provider(name: str) -> GenerationProvider:
    factory = PROVIDER_FACTORIES.get((name or "").lower())
    if factory is None:
        raise ValueError(f"Unknown generation provider: {name!r}")
    return factory()


def get_text_provider(name: Optional[str] = None) -> GenerationProvider:
    return get_provider(name or settings.TEXT_PROVIDER)


def get_image_provider(name: Optional[str] = None) -> GenerationProvider:
    return get_provider(name or settings.IMAGE_PROVIDER)
