"""
health.py — Liveness & Diagnostic Endpoints (no auth)

    • GET /            → liveness
    • GET /api/healthz → liveness + which upstreams are configured
"""

from datetime import datetime, timezone

from fastapi import APIRouter

from sge import __version__
from sge.core.config import settings

router = APIRouter(tags=["health"])


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.get("/")
def root():
    return {
        "status": "ok",
        "message": "Service is healthy",
        "timestamp": _now(),
        "environment": settings.ENVIRONMENT,
    }


@router.get("/api/healthz")
def healthz():
    # Configuration only; no upstream calls are made here.
    return {
        "status": "ok",
        "version": __version__,
        "timestamp": _now(),
        "environment": settings.ENVIRONMENT,
        "upstreams": {
            "supabase": settings.supabase_configured,
            "llm": settings.llm_configured,
        },
    }
