"""
Health check and log endpoints.
"""

import time
from typing import Any, Optional

from fastapi import APIRouter, Query, Request

from switchyard import __version__
from switchyard.api.deps import get_engine
from switchyard.lib.logger import get_log_buffer

router = APIRouter()

# Server start time for uptime calculation
_start_time = time.time()


@router.get("/health")
async def health_check(
    request: Request,
    detailed: bool = Query(False, description="Include detailed information"),
) -> dict[str, Any]:
    """
    Health check endpoint.

    Returns basic status, or detailed info if requested.
    """
    basic = {
        "status": "ok",
        "timestamp": int(time.time() * 1000),
    }

    if not detailed:
        return basic

    engine = get_engine(request)
    return {
        **basic,
        "sources": [
            {**entry.to_dict(), "exists": entry.path.exists()} for entry in engine.registry
        ],
        "bundle_root": {
            "path": str(engine.bundle_root),
            "exists": engine.bundle_root.is_dir(),
        },
        "counts": {"servers": len(engine.definitions), "skills": len(engine.bundles)},
        "queues": {
            "mutation": {"pending": engine.mutations.pending, "processed": engine.mutations.processed},
            "status": {"pending": engine.status_queue.pending, "processed": engine.status_queue.processed},
        },
        "watching": engine.watcher is not None,
        "uptime": time.time() - _start_time,
        "version": __version__,
    }


@router.get("/logs")
async def recent_logs(
    limit: int = Query(100, ge=1, le=1000),
    level: Optional[str] = Query(None, description="Only entries at this level"),
    subject: Optional[str] = Query(None, description="Only entries about this server or skill"),
    code: Optional[str] = Query(None, description="Only failures with this error code"),
) -> dict[str, Any]:
    """Most recent log entries kept in memory."""
    return {"entries": get_log_buffer().get_recent(limit, level, subject=subject, code=code)}
