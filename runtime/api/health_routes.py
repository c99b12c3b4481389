"""Health endpoints for uptime monitoring.

- GET /health       -> service info, LLM reachability, session store info
- GET /health/simple -> liveness check for load balancers
- GET /health/ai     -> model reachability only
"""

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from configs.settings import settings
from core.api.llm_client import LLMBackend

from ..store.session_store import SessionStore


logger = logging.getLogger(__name__)

router = APIRouter()

SERVICE_NAME = "Learning Platform Chat Backend"
SERVICE_VERSION = "1.0.0"
LLM_HEALTH_TIMEOUT_SECONDS = 5.0

_SESSION_STORE: Optional[SessionStore] = None
_LLM_CLIENT: Optional[LLMBackend] = None
_STARTED_AT = time.monotonic()


def init_routes(session_store: SessionStore, llm_client: LLMBackend) -> None:
    """Initialize module-level references used by the route handlers."""
    global _SESSION_STORE, _LLM_CLIENT
    _SESSION_STORE = session_store
    _LLM_CLIENT = llm_client


def _worse(current: str, candidate: str) -> str:
    order = {"healthy": 0, "degraded": 1, "unhealthy": 2}
    return candidate if order[candidate] > order[current] else current


async def _check_llm() -> Dict[str, Any]:
    if _LLM_CLIENT is None:
        return {"status": "unhealthy", "error": "LLM client is not configured on the server."}
    try:
        result = await asyncio.wait_for(_LLM_CLIENT.health_check(), timeout=LLM_HEALTH_TIMEOUT_SECONDS)
    except asyncio.TimeoutError:
        return {"status": "unhealthy", "error": "AI health check timeout"}
    return {
        "status": result.get("status", "unhealthy"),
        "response_time": f"{result.get('response_time', 0)}ms",
        "model": result.get("model"),
    }


def _check_sessions() -> Dict[str, Any]:
    if _SESSION_STORE is None:
        return {"status": "degraded", "error": "SessionStore is not configured on the server."}
    info = _SESSION_STORE.health_info()
    return {"status": "healthy", **info}


@router.get("")
async def health() -> JSONResponse:
    """
    Full health report. Returns 200 when healthy or degraded, 503 when
    the model is unreachable.
    """
    start = time.monotonic()
    status = "healthy"
    checks: Dict[str, Any] = {
        "service": {
            "name": SERVICE_NAME,
            "version": SERVICE_VERSION,
            "environment": settings.app_env,
            "uptime": round(time.monotonic() - _STARTED_AT, 3),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
    }

    checks["ai_service"] = await _check_llm()
    if checks["ai_service"]["status"] == "degraded":
        status = _worse(status, "degraded")
    elif checks["ai_service"]["status"] != "healthy":
        status = _worse(status, "unhealthy")

    checks["session_service"] = _check_sessions()
    status = _worse(status, checks["session_service"]["status"])

    checks["configuration"] = {
        "llm_api_key": settings.has_llm_api_key,
        "cors_configured": bool(settings.cors_origins),
    }
    if not settings.has_llm_api_key:
        status = _worse(status, "degraded")
        checks["configuration"]["warnings"] = ["LLM_API_KEY not configured"]

    elapsed = int((time.monotonic() - start) * 1000)
    checks["performance"] = {
        "health_check_time": f"{elapsed}ms",
        "status": "good" if elapsed < 1000 else "slow",
    }

    logger.info("[HEALTH] Health check completed status=%s time=%dms", status, elapsed)

    return JSONResponse(
        status_code=503 if status == "unhealthy" else 200,
        content={
            "status": status,
            "checks": checks,
            "summary": {
                "healthy": status == "healthy",
                "degraded": status == "degraded",
                "unhealthy": status == "unhealthy",
            },
        },
    )


@router.get("/simple")
def simple():
    """
    Liveness endpoint for load balancers. Does not contact the model.
    """
    return {"status": "OK", "timestamp": datetime.now(timezone.utc).isoformat()}


@router.get("/ai")
async def ai_health() -> JSONResponse:
    """Model reachability only. 200 when healthy, 503 otherwise."""
    check = await _check_llm()
    return JSONResponse(
        status_code=200 if check["status"] == "healthy" else 503,
        content={
            "service": "AI Service",
            **check,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
    )
