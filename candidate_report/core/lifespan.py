from contextlib import asynccontextmanager
import asyncio
import logging

from candidate_report.ai.factory import get_ai_client
from candidate_report.core.config import settings, validate_settings
from candidate_report.core.template_config import get_match_weights, get_theme_palette
from candidate_report.services.report_client import ReportClient
from candidate_report.services.session import SessionStore

logger = logging.getLogger(__name__)

_PURGE_INTERVAL_S = 300


def build_report_client() -> ReportClient:
    validate_settings(settings)
    return ReportClient(
        get_ai_client(settings),
        model=settings.llm_model,
        timeout_s=settings.report_timeout_s,
        max_attempts=settings.report_max_attempts,
        backoff_base_s=settings.report_backoff_base_s,
        backoff_max_s=settings.report_backoff_max_s,
    )


@asynccontextmanager
async def lifespan(app):
    # tests install their own store before startup
    store: SessionStore | None = getattr(app.state, "sessions", None)
    if store is None:
        get_match_weights()
        get_theme_palette()
        store = SessionStore(
            build_report_client(),
            max_upload_bytes=settings.max_upload_bytes,
            idle_ttl_s=settings.session_idle_ttl_s,
        )
        app.state.sessions = store
    logger.info("service_started model=%s", settings.llm_model)

    stop_event = asyncio.Event()

    async def periodic_purge() -> None:
        while not stop_event.is_set():
            try:
                purged = await store.purge_idle()
                if purged:
                    logger.info("idle_session_purge purged=%s remaining=%s", purged, len(store))
            except Exception as exc:  # pragma: no cover
                logger.warning("idle_session_purge_failed: %s", exc)
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=_PURGE_INTERVAL_S)
            except asyncio.TimeoutError:
                continue

    purge_task = asyncio.create_task(periodic_purge())
    yield
    stop_event.set()
    if not purge_task.done():
        purge_task.cancel()
        await asyncio.wait([purge_task])
    await store.close_all()
