"""HTTP adapters around the hosted model providers (OpenAI / Gemini)."""

from __future__ import annotations

import http.client
import json
from dataclasses import dataclass, field
from typing import Callable, List, Literal, Optional, Sequence, Tuple
from urllib.error import HTTPError, URLError
from urllib.parse import quote
from urllib.request import Request, urlopen

from ..config import ConfigurationError, LLMConfig
from ..logging import get_logger
from ..models import ApiKeys, ChatMessage

Provider = Literal["openai", "gemini"]

PROVIDER_PREFERENCE: Tuple[Provider, ...] = ("openai", "gemini")

logger = get_logger("llm.gateway")


class ModelError(RuntimeError):
    """Raised when a provider call fails or returns nothing usable."""

    def __init__(
        self, message: str, *, provider: str | None = None, status: int | None = None
    ) -> None:
        super().__init__(message)
        self.provider = provider
        self.status = status


@dataclass(frozen=True)
class GenerationContext:
    """Optional framing passed alongside a message."""

    system: Optional[str] = None
    project_path: Optional[str] = None


@dataclass
class LLMRequest:
    """Represents one provider call after model and endpoint resolution."""

    provider: str
    model: str
    prompt: str
    system: Optional[str]
    history: List[ChatMessage] = field(default_factory=list)
    api_key: str = ""
    base_url: str = ""
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    request_timeout: Optional[float] = None


def select_provider(api_keys: ApiKeys) -> Tuple[Provider, str]:
    """Return the preferred provider and its credential."""
    for provider in PROVIDER_PREFERENCE:
        credential = getattr(api_keys, provider)
        if credential:
            return provider, credential
    raise ConfigurationError("No API keys configured")


class ModelGateway:
    """Sends chat-style prompts to the selected provider and returns the reply text."""

    DEFAULT_BASE_URLS = {
        "openai": "https://api.openai.com/v1",
        "gemini": "https://generativelanguage.googleapis.com/v1beta",
    }

    def __init__(
        self,
        config: LLMConfig | None = None,
        *,
        runner: Callable[[LLMRequest], str] | None = None,
    ) -> None:
        self.config = config or LLMConfig()
        self._runner = runner

    def generate(
        self,
        message: str,
        history: Sequence[ChatMessage],
        provider: str,
        credential: str,
        context: GenerationContext | None = None,
    ) -> str:
        """Send ``message`` with ``history`` to ``provider`` and return its text reply."""
        if not credential:
            raise ConfigurationError(f"No API key configured for {provider}")
        request = LLMRequest(
            provider=provider,
            model=self._model_for(provider),
            prompt=message,
            system=context.system if context else None,
            history=list(history),
            api_key=credential,
            base_url=self._base_url_for(provider),
            temperature=self.config.temperature,
            max_tokens=self.config.max_tokens,
            request_timeout=self.config.request_timeout,
        )
        logger.debug(
            "Calling %s model %s (%d history message(s))",
            provider,
            request.model,
            len(request.history),
        )
        if self._runner is not None:
            try:
                return self._runner(request)
            except ModelError:
                raise
            except Exception as exc:
                raise ModelError(str(exc) or exc.__class__.__name__, provider=provider) from exc
        if provider == "openai":
            return self._openai_runner(request)
        if provider == "gemini":
            return self._gemini_runner(request)
        raise ModelError(f"Unsupported AI model: {provider}", provider=provider)

    def _model_for(self, provider: str) -> str:
        if provider == "gemini":
            return self.config.gemini_model
        return self.config.openai_model

    def _base_url_for(self, provider: str) -> str:
        configured = (
            self.config.gemini_base_url if provider == "gemini" else self.config.openai_base_url
        )
        base = configured or self.DEFAULT_BASE_URLS.get(provider, "")
        return base.rstrip("/")

    @staticmethod
    def _openai_runner(request: LLMRequest) -> str:
        endpoint = f"{request.base_url}/chat/completions"
        payload: dict[str, object] = {
            "model": request.model,
            "messages": ModelGateway._build_openai_messages(request),
        }
        if request.temperature is not None:
            payload["temperature"] = request.temperature
        if request.max_tokens is not None:
            payload["max_tokens"] = request.max_tokens
        headers = {"Authorization": f"Bearer {request.api_key}"}
        response_payload = _post_json(request, endpoint, payload, headers)

        content = ModelGateway._extract_openai_content(response_payload)
        if not content:
            raise ModelError("OpenAI returned an empty response", provider=request.provider)
        return content.strip()

    @staticmethod
    def _gemini_runner(request: LLMRequest) -> str:
        endpoint = (
            f"{request.base_url}/models/{quote(request.model, safe='')}:generateContent"
            f"?key={quote(request.api_key, safe='')}"
        )
        system_parts = [request.system] if request.system else []
        contents: list[dict[str, object]] = []
        for item in request.history:
            if item.role == "system":
                system_parts.append(item.content)
                continue
            role = "model" if item.role == "assistant" else "user"
            contents.append({"role": role, "parts": [{"text": item.content}]})
        contents.append({"role": "user", "parts": [{"text": request.prompt}]})

        payload: dict[str, object] = {"contents": contents}
        if system_parts:
            payload["systemInstruction"] = {"parts": [{"text": "\n\n".join(system_parts)}]}
        generation_config: dict[str, object] = {}
        if request.temperature is not None:
            generation_config["temperature"] = request.temperature
        if request.max_tokens is not None:
            generation_config["maxOutputTokens"] = request.max_tokens
        if generation_config:
            payload["generationConfig"] = generation_config

        response_payload = _post_json(request, endpoint, payload, {})
        content = ModelGateway._extract_gemini_content(response_payload)
        if not content:
            raise ModelError("Gemini returned an empty response", provider=request.provider)
        return content.strip()

    @staticmethod
    def _build_openai_messages(request: LLMRequest) -> list[dict[str, str]]:
        messages: list[dict[str, str]] = []
        if request.system:
            messages.append({"role": "system", "content": request.system})
        for item in request.history:
            messages.append({"role": item.role, "content": item.content})
        messages.append({"role": "user", "content": request.prompt})
        return messages

    @staticmethod
    def _extract_openai_content(payload: dict[str, object]) -> str:
        choices = payload.get("choices")
        if not isinstance(choices, list) or not choices:
            return ""
        first = choices[0]
        if not isinstance(first, dict):
            return ""
        message = first.get("message")
        if isinstance(message, dict):
            content = message.get("content")
            if isinstance(content, str):
                return content
        text = first.get("text")
        if isinstance(text, str):
            return text
        return ""

    @staticmethod
    def _extract_gemini_content(payload: dict[str, object]) -> str:
        candidates = payload.get("candidates")
        if not isinstance(candidates, list) or not candidates:
            return ""
        first = candidates[0]
        if not isinstance(first, dict):
            return ""
        content = first.get("content")
        if not isinstance(content, dict):
            return ""
        parts = content.get("parts")
        if not isinstance(parts, list):
            return ""
        texts = [part["text"] for part in parts if isinstance(part, dict) and isinstance(part.get("text"), str)]
        return "".join(texts)


def _post_json(
    request: LLMRequest,
    endpoint: str,
    payload: dict[str, object],
    extra_headers: dict[str, str],
) -> dict[str, object]:
    data = json.dumps(payload).encode("utf-8")
    headers = {"Content-Type": "application/json", **extra_headers}
    http_request = Request(endpoint, data=data, headers=headers, method="POST")

    try:
        with urlopen(http_request, timeout=request.request_timeout) as response:  # type: ignore[arg-type]
            raw = response.read()
    except HTTPError as exc:
        detail = exc.read().decode("utf-8", errors="ignore") if hasattr(exc, "read") else ""
        message = _error_message(detail) or str(exc.reason)
        raise ModelError(
            f"{request.provider} request failed with status {exc.code}: {message}",
            provider=request.provider,
            status=exc.code,
        ) from exc
    except URLError as exc:
        raise ModelError(
            f"{request.provider} request failed: {exc.reason}", provider=request.provider
        ) from exc
    except TimeoutError as exc:
        raise ModelError(f"{request.provider} request timed out", provider=request.provider) from exc
    except (OSError, http.client.HTTPException) as exc:
        raise ModelError(
            f"{request.provider} request failed: {str(exc) or exc.__class__.__name__}",
            provider=request.provider,
        ) from exc

    try:
        response_payload = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise ModelError(f"{request.provider} returned invalid JSON", provider=request.provider) from exc
    if not isinstance(response_payload, dict):
        raise ModelError(f"{request.provider} returned an unexpected payload", provider=request.provider)
    return response_payload


def _error_message(detail: str) -> str:
    """Pull ``error.message`` out of a provider error body when present."""
    detail = detail.strip()
    if not detail:
        return ""
    try:
        body = json.loads(detail)
    except json.JSONDecodeError:
        return detail
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and isinstance(error.get("message"), str):
            return error["message"]
    return detail


__all__ = [
    "GenerationContext",
    "LLMRequest",
    "ModelError",
    "ModelGateway",
    "PROVIDER_PREFERENCE",
    "Provider",
    "select_provider",
]
