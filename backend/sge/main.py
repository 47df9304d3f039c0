"""
main.py — FastAPI Application Entrypoint

Purpose:
- Initialize application services (logging, config, error handlers).
- Register API routers.
- Provide `app` object used by ASGI server (uvicorn).

This file should stay clean: no business logic here.
"""

import time

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from sge import __version__
from sge.api import chat, dashboard, health, onboarding, webhooks
from sge.core.config import settings
from sge.core.errors import register_exception_handlers
from sge.core.logging import configure_logging, get_logger

# -----------------------------------------------------------------------------
# App Initialization
# -----------------------------------------------------------------------------

configure_logging(settings.LOG_LEVEL)  # Set logging defaults at startup
logger = get_logger(__name__)

app = FastAPI(
    title="SGE Backend",
    description="Multi-tenant chat + onboarding backend on Supabase",
    version=__version__,
)

register_exception_handlers(app)

# -----------------------------------------------------------------------------
# CORS
# -----------------------------------------------------------------------------

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "x-client-info", "apikey", "X-Org-Id"],
)

# -----------------------------------------------------------------------------
# Request Logging
# -----------------------------------------------------------------------------

@app.middleware("http")
async def log_requests(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - started) * 1000
    logger.info("%s %s -> %d (%.1f ms)", request.method, request.url.path, response.status_code, elapsed_ms)
    return response

# -----------------------------------------------------------------------------
# Router Registration
# -----------------------------------------------------------------------------

app.include_router(health.router)
app.include_router(webhooks.router)
app.include_router(onboarding.router)
app.include_router(chat.router)
app.include_router(dashboard.router)


if __name__ == "__main__":
    uvicorn.run("sge.main:app", host="0.0.0.0", port=settings.PORT)
