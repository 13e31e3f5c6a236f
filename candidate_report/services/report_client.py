from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Awaitable, Callable

from candidate_report.ai.errors import ReportServiceError, ReportTimeoutError, UnknownError
from candidate_report.ai.types import AIClient
from candidate_report.schemas.report import GeneratedReport
from candidate_report.services.prompt import AssembledPrompt

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _strip_code_fence(text: str) -> str:
    stripped = text.strip()
    if not stripped.startswith("```"):
        return stripped
    first_newline = stripped.find("\n")
    if first_newline == -1:
        return stripped
    body = stripped[first_newline + 1 :]
    if body.rstrip().endswith("```"):
        body = body.rstrip()[:-3]
    return body.strip()


class ReportClient:
    """Sends an assembled prompt to the text-generation service and returns one complete report.

    Rate-limit and transient failures are retried with capped exponential backoff;
    auth and unknown failures surface immediately. The whole submission, retries
    included, runs under one deadline.
    """

    def __init__(
        self,
        provider: AIClient,
        *,
        model: str,
        timeout_s: float = 240.0,
        max_attempts: int = 3,
        backoff_base_s: float = 1.0,
        backoff_max_s: float = 8.0,
        sleep: Sleep = asyncio.sleep,
    ):
        self._provider = provider
        self._model = model
        self._timeout_s = timeout_s
        self._max_attempts = max(1, max_attempts)
        self._backoff_base_s = backoff_base_s
        self._backoff_max_s = backoff_max_s
        self._sleep = sleep

    def backoff_delay(self, attempt: int, error: ReportServiceError) -> float:
        delay = self._backoff_base_s * (2 ** (attempt - 1))
        if error.retry_after_s is not None:
            delay = max(delay, error.retry_after_s)
        return min(delay, self._backoff_max_s)

    async def submit(self, prompt: AssembledPrompt) -> GeneratedReport:
        started = time.perf_counter()
        try:
            report = await asyncio.wait_for(self._submit_with_retry(prompt), timeout=self._timeout_s)
        except asyncio.TimeoutError as exc:
            logger.warning(
                "report_submit_timeout fingerprint=%s timeout_s=%s", prompt.fingerprint[:12], self._timeout_s
            )
            raise ReportTimeoutError(f"no response within {self._timeout_s:g}s") from exc
        logger.info(
            "report_submit_ok fingerprint=%s chars=%s latency_ms=%s",
            prompt.fingerprint[:12],
            len(report.raw_text),
            int((time.perf_counter() - started) * 1000),
        )
        return report

    async def _submit_with_retry(self, prompt: AssembledPrompt) -> GeneratedReport:
        attempt = 0
        while True:
            attempt += 1
            try:
                completion = await self._provider.complete(prompt.messages())
            except ReportServiceError as exc:
                if not exc.retryable or attempt >= self._max_attempts:
                    logger.warning(
                        "report_submit_failed attempt=%s kind=%s status=%s", attempt, exc.code, exc.status_code
                    )
                    raise
                delay = self.backoff_delay(attempt, exc)
                logger.info(
                    "report_submit_retry attempt=%s kind=%s delay_s=%.2f", attempt, exc.code, delay
                )
                await self._sleep(delay)
                continue
            except asyncio.TimeoutError:
                raise
            except Exception as exc:
                raise UnknownError(str(exc) or exc.__class__.__name__) from exc

            return GeneratedReport(
                raw_text=_strip_code_fence(completion.text),
                received_at=_utc_now(),
                source_request_id=completion.request_id,
                model=completion.model or self._model,
                prompt_fingerprint=prompt.fingerprint,
            )
