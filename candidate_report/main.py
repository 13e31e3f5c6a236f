import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import sentry_sdk

from candidate_report.api.v1.health import router as health_router
from candidate_report.api.v1.reports import router as reports_router
from candidate_report.core.cors import cors_allow_origin_regex, cors_allowed_origins
from candidate_report.core.config import settings
from dotenv import load_dotenv
from candidate_report.core.lifespan import lifespan

load_dotenv()
logging.basicConfig(level=settings.log_level, format="%(message)s")
if settings.sentry_dsn:
    sentry_sdk.init(dsn=settings.sentry_dsn)

app = FastAPI(title="Candidate Report API", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_allowed_origins(),
    allow_origin_regex=cors_allow_origin_regex(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health_router, prefix="/v1", tags=["Health"])
app.include_router(reports_router, prefix="/v1", tags=["Reports"])
