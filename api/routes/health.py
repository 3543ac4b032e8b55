"""Health check endpoints."""
import sqlite3
import subprocess
from datetime import datetime
from fastapi import APIRouter
from pydantic import BaseModel
from typing import Dict, Any

from api.database import get_connection, get_db_path
from core.config import get_config

router = APIRouter()

# Version info - updated on build/deploy
APP_VERSION = "1.0.0"
BUILD_TIME = datetime.utcnow().isoformat() + "Z"


def get_git_info() -> Dict[str, str]:
    """Get git commit info for version tracking."""
    try:
        git_sha = subprocess.check_output(
            ["git", "rev-parse", "--short", "HEAD"],
            stderr=subprocess.DEVNULL
        ).decode().strip()
        return {"sha": git_sha}
    except (OSError, subprocess.CalledProcessError):
        return {"sha": "unknown"}


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    version: str
    git_sha: str
    build_time: str
    checks: Dict[str, Any]


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """
    Health check endpoint.

    Returns system health status including:
    - Database connectivity
    - Member feed configuration
    """
    checks = {}
    overall_status = "ok"

    try:
        with get_connection() as conn:
            conn.execute("SELECT 1 FROM profiles LIMIT 1")
        checks["database"] = {"status": "ok", "path": str(get_db_path())}
    except sqlite3.Error as e:
        checks["database"] = {"status": "error", "error": type(e).__name__}
        overall_status = "degraded"

    feed_errors = get_config().feed.validate()
    checks["feed"] = {
        "configured": not feed_errors,
        "cache_ttl_seconds": get_config().feed.cache_ttl_seconds,
    }
    if feed_errors:
        overall_status = "degraded"

    return HealthResponse(
        status=overall_status,
        version=APP_VERSION,
        git_sha=get_git_info()["sha"],
        build_time=BUILD_TIME,
        checks=checks,
    )


@router.get("/ready")
async def readiness_check():
    """Readiness check for k8s/docker."""
    return {"ready": True}


@router.get("/live")
async def liveness_check():
    """Liveness check for k8s/docker."""
    return {"alive": True}
