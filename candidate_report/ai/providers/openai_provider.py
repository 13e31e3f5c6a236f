from __future__ import annotations

import logging
from typing import Any, Sequence

import openai
from openai import AsyncOpenAI

from candidate_report.ai.config import AIConfig
from candidate_report.ai.errors import (
    AuthError,
    RateLimitError,
    ReportServiceError,
    TransientServiceError,
    UnknownError,
)
from candidate_report.ai.types import ChatMessage, Completion

logger = logging.getLogger(__name__)


def _retry_after_seconds(exc: openai.APIStatusError) -> float | None:
    try:
        raw = exc.response.headers.get("retry-after")
    except AttributeError:
        return None
    if not raw:
        return None
    try:
        return max(0.0, float(raw))
    except ValueError:
        return None


def classify_openai_error(exc: Exception) -> ReportServiceError:
    """Map an openai SDK exception onto the report-service error taxonomy."""
    if isinstance(exc, ReportServiceError):
        return exc
    if isinstance(exc, (openai.AuthenticationError, openai.PermissionDeniedError)):
        return AuthError(exc.message, status_code=exc.status_code)
    if isinstance(exc, openai.RateLimitError):
        return RateLimitError(exc.message, status_code=exc.status_code, retry_after_s=_retry_after_seconds(exc))
    if isinstance(exc, openai.InternalServerError):
        return TransientServiceError(exc.message, status_code=exc.status_code)
    if isinstance(exc, openai.APIStatusError):
        if exc.status_code >= 500:
            return TransientServiceError(exc.message, status_code=exc.status_code)
        return UnknownError(f"API error ({exc.status_code}): {exc.message}", status_code=exc.status_code)
    if isinstance(exc, openai.APIConnectionError):
        return TransientServiceError(str(exc) or "connection to the report service failed")
    if isinstance(exc, openai.APIResponseValidationError):
        return TransientServiceError(f"malformed response: {exc.message}")
    return UnknownError(str(exc) or exc.__class__.__name__)


class OpenAIProvider:
    def __init__(self, config: AIConfig, client: AsyncOpenAI | None = None):
        if not config.api_key:
            raise RuntimeError("LLM_API_KEY is missing")
        self._config = config
        # retries are owned by ReportClient
        self._client = client or AsyncOpenAI(
            api_key=config.api_key,
            base_url=config.base_url or None,
            timeout=config.request_timeout_s,
            max_retries=0,
        )

    @property
    def model(self) -> str:
        return self._config.model

    def _create_kwargs(self, messages: Sequence[ChatMessage]) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "model": self._config.model,
            "messages": [{"role": m.role, "content": m.content} for m in messages],
            "temperature": self._config.temperature,
            "max_tokens": self._config.max_output_tokens,
        }
        if self._config.top_p is not None:
            kwargs["top_p"] = self._config.top_p
        if self._config.top_k is not None:
            kwargs["extra_body"] = {"top_k": self._config.top_k}
        return kwargs

    async def complete(self, messages: Sequence[ChatMessage]) -> Completion:
        try:
            response = await self._client.chat.completions.create(**self._create_kwargs(messages))
        except Exception as exc:
            classified = classify_openai_error(exc)
            logger.warning(
                "openai_completion_failed model=%s kind=%s status=%s",
                self._config.model,
                classified.code,
                classified.status_code,
            )
            raise classified from exc

        choices = getattr(response, "choices", None) or []
        content = choices[0].message.content if choices and choices[0].message else None
        if not content or not str(content).strip():
            raise TransientServiceError("malformed response: no report content received")

        request_id = getattr(response, "_request_id", None) or getattr(response, "id", None)
        return Completion(
            text=str(content),
            model=getattr(response, "model", None) or self._config.model,
            request_id=request_id,
        )
