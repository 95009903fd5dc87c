"""
Infrastructure Monitoring Router
Health checks, error statistics and effective configuration
"""

from fastapi import APIRouter, Depends
from datetime import datetime

from api.deps import get_runtime
from services.runtime import Runtime

router = APIRouter(prefix="/api/infrastructure", tags=["Infrastructure"])


# Lazy import keeps the tracker the one the handlers write to
def get_error_tracker():
    from infrastructure import error_tracker
    return error_tracker


# ============================================
# HEALTH CHECKS
# ============================================

@router.get("/health")
async def health_check(runtime: Runtime = Depends(get_runtime)):
    """
    Basic health check - returns 200 if API is running.
    Use for load balancer health checks.
    """
    return {
        "status": "healthy",
        "timestamp": datetime.now().isoformat(),
        "version": runtime.config.version,
        "inFlightScans": runtime.orchestrator.in_flight,
        "uptimeSeconds": _get_uptime(),
    }


# ============================================
# ERRORS
# ============================================

@router.get("/errors")
async def get_error_stats():
    """Handled error counts and the most recent entries"""
    return get_error_tracker().get_stats()


# ============================================
# CONFIGURATION
# ============================================

@router.get("/config")
async def get_configuration(runtime: Runtime = Depends(get_runtime)):
    """
    Effective configuration (secrets hidden).
    """
    return {
        **runtime.config.to_dict(),
        "timestamp": datetime.now().isoformat(),
    }


# ============================================
# HELPERS
# ============================================

_start_time = datetime.now()


def _get_uptime() -> float:
    """Get application uptime in seconds"""
    return (datetime.now() - _start_time).total_seconds()
