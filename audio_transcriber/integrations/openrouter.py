from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

import httpx
from openai import APIConnectionError, APIError, APIStatusError, AsyncOpenAI

from audio_transcriber.core.config import AppSettings


logger = logging.getLogger(__name__)

_COMPLETION_OPTIONS: tuple[str, ...] = ("temperature", "max_tokens")


class CompletionRequestError(RuntimeError):
    """Raised when the completion API rejects a request or cannot be reached."""

    def __init__(self, detail: str, *, status_code: int | None = None) -> None:
        super().__init__(detail)
        self.detail = detail
        self.status_code = status_code


class OpenRouterClient:
    """Thin wrapper around the OpenRouter chat completion API.

    The wire contract of the upstream service is not under our control, so
    payloads are passed through as plain mappings and the response is only
    probed for the first choice's text.
    """

    def __init__(
        self,
        settings: AppSettings,
        *,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        api_key = (
            settings.openrouter_api_key.get_secret_value()
            if settings.openrouter_api_key
            else ""
        )
        self._configured = settings.is_api_key_configured
        self._client = AsyncOpenAI(
            api_key=api_key,
            base_url=settings.openrouter_base_url,
            timeout=settings.request_timeout_seconds,
            max_retries=0,
            default_headers={
                "HTTP-Referer": settings.http_referer,
                "X-Title": settings.app_title,
            },
            http_client=http_client,
        )

    @property
    def is_configured(self) -> bool:
        return self._configured

    async def complete(self, payload: Mapping[str, Any]) -> str | None:
        """Send one chat completion request and return the first choice's text."""
        options = {key: payload[key] for key in _COMPLETION_OPTIONS if key in payload}
        try:
            response = await self._client.chat.completions.create(
                model=payload["model"],
                messages=payload["messages"],
                **options,
            )
        except APIStatusError as exc:
            raise CompletionRequestError(
                _response_text(exc.response) or str(exc),
                status_code=exc.status_code,
            ) from exc
        except APIConnectionError as exc:
            raise CompletionRequestError(str(exc) or exc.__class__.__name__) from exc
        except APIError as exc:
            raise CompletionRequestError(str(exc)) from exc

        return _first_choice_text(response)

    async def list_model_ids(self) -> list[str]:
        """Return the identifiers of every model the API key can see."""
        try:
            page = await self._client.models.list()
        except APIStatusError as exc:
            raise CompletionRequestError(
                _response_text(exc.response) or str(exc),
                status_code=exc.status_code,
            ) from exc
        except APIConnectionError as exc:
            raise CompletionRequestError(str(exc) or exc.__class__.__name__) from exc
        except APIError as exc:
            raise CompletionRequestError(str(exc)) from exc

        model_ids: list[str] = []
        for model in getattr(page, "data", None) or []:
            model_id = getattr(model, "id", None)
            if isinstance(model_id, str):
                model_ids.append(model_id)
        return model_ids

    async def aclose(self) -> None:
        await self._client.close()


def _first_choice_text(response: Any) -> str | None:
    choices = getattr(response, "choices", None)
    if not choices:
        logger.debug("Completion response carried no choices.")
        return None
    message = getattr(choices[0], "message", None)
    content = getattr(message, "content", None)
    if isinstance(content, str) and content.strip():
        return content
    return None


def _response_text(response: httpx.Response | None) -> str | None:
    if response is None:
        return None
    try:
        return response.text
    except httpx.ResponseNotRead:
        return None
