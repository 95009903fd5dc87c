"""
Global Error Handling for YieldHunter
Structured exception handling for the scan orchestrator and strategy engine

Features:
- Custom exception classes mapped to HTTP status codes
- Automatic error logging
- Structured JSON error responses
- Error tracking and aggregation
"""

import logging
import traceback
from datetime import datetime
from typing import Any, Dict, List
from enum import Enum

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger("ErrorHandler")


# ============================================
# ERROR CODES
# ============================================

class ErrorCode(str, Enum):
    # Client errors (4xx)
    BAD_REQUEST = "BAD_REQUEST"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    CAPACITY_EXCEEDED = "CAPACITY_EXCEEDED"
    NOT_ENABLED = "NOT_ENABLED"
    NO_AVAILABLE_AGENTS = "NO_AVAILABLE_AGENTS"

    # Server errors (5xx)
    INTERNAL_ERROR = "INTERNAL_ERROR"
    SCAN_TASK_FAILED = "SCAN_TASK_FAILED"


# ============================================
# CUSTOM EXCEPTIONS
# ============================================

class YieldHunterError(Exception):
    """Base exception for YieldHunter"""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        status_code: int = 500,
        details: Dict = None
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}
        self.timestamp = datetime.now()

    def to_dict(self) -> Dict:
        return {
            "success": False,
            "error": {
                "code": self.code.value,
                "message": self.message,
                "details": self.details,
                "timestamp": self.timestamp.isoformat()
            }
        }


class ValidationError(YieldHunterError):
    """Input validation error"""
    def __init__(self, message: str, details: Dict = None):
        super().__init__(message, ErrorCode.VALIDATION_ERROR, 400, details)


class NotFoundError(YieldHunterError):
    """Resource not found"""
    def __init__(self, resource: str, identifier: Any = None):
        message = f"{resource} not found"
        if identifier is not None:
            message = f"{resource} '{identifier}' not found"
        super().__init__(message, ErrorCode.NOT_FOUND, 404, {"resource": resource})


class CapacityExceededError(YieldHunterError):
    """Agent count for a configuration would exceed maxAgents"""
    def __init__(self, limit: int, current: int):
        super().__init__(
            f"Maximum number of agents ({limit}) for this configuration would be exceeded",
            ErrorCode.CAPACITY_EXCEEDED,
            400,
            {"limit": limit, "current": current}
        )


class NotEnabledError(YieldHunterError):
    """Feature disabled on the target configuration"""
    def __init__(self, feature: str, hint: str = None):
        details = {"feature": feature}
        if hint:
            details["hint"] = hint
        super().__init__(f"{feature} not enabled", ErrorCode.NOT_ENABLED, 400, details)


class NoAvailableAgentsError(YieldHunterError):
    """Every agent under the configuration is busy"""
    def __init__(self, configuration_id: int):
        super().__init__(
            "No available agents",
            ErrorCode.NO_AVAILABLE_AGENTS,
            400,
            {"configuration_id": configuration_id, "hint": "All agents are currently busy"}
        )


class ScanTaskError(YieldHunterError):
    """
    Failure raised inside a background scan task.
    Never reaches an HTTP caller: the dispatching request has already returned,
    so the orchestrator records it on the agent as status=error.
    """
    def __init__(self, agent_id: int, message: str = "Scan task failed"):
        super().__init__(message, ErrorCode.SCAN_TASK_FAILED, 500, {"agent_id": agent_id})


# ============================================
# ERROR TRACKING
# ============================================

class ErrorTracker:
    """Tracks and aggregates errors for monitoring"""

    def __init__(self, max_errors: int = 1000):
        self.errors: list = []
        self.max_errors = max_errors
        self.error_counts: Dict[str, int] = {}

    def track(self, error: Exception, request_path: str = None):
        """Track an error"""
        error_type = type(error).__name__

        self.error_counts[error_type] = self.error_counts.get(error_type, 0) + 1

        error_info = {
            "type": error_type,
            "message": str(error),
            "path": request_path,
            "timestamp": datetime.now().isoformat(),
            "traceback": traceback.format_exc() if not isinstance(error, YieldHunterError) else None
        }

        if isinstance(error, YieldHunterError):
            error_info["code"] = error.code.value
            error_info["details"] = error.details

        self.errors.append(error_info)

        if len(self.errors) > self.max_errors:
            self.errors = self.errors[-self.max_errors:]

        if not isinstance(error, YieldHunterError) or error.status_code >= 500:
            logger.error(f"Error tracked: {error_type} - {str(error)[:200]}")

    def get_stats(self) -> Dict:
        """Get error statistics"""
        return {
            "total_errors": len(self.errors),
            "error_counts": self.error_counts,
            "recent_errors": self.errors[-10:],
            "timestamp": datetime.now().isoformat()
        }

    def clear(self):
        """Clear error history"""
        self.errors.clear()
        self.error_counts.clear()


# Global error tracker
error_tracker = ErrorTracker()


def _field_errors(exc: RequestValidationError) -> List[Dict[str, str]]:
    fields = []
    for err in exc.errors():
        # Drop the "body"/"query" prefix FastAPI puts in front of the field path
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")]
        fields.append({"field": ".".join(loc) or "body", "message": err.get("msg", "invalid")})
    return fields


# ============================================
# FASTAPI EXCEPTION HANDLERS
# ============================================

async def yieldhunter_exception_handler(request: Request, exc: YieldHunterError) -> JSONResponse:
    """Handle YieldHunterError exceptions"""
    error_tracker.track(exc, str(request.url.path))
    logger.warning(f"{exc.code.value} on {request.url.path}: {exc.message}")

    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict()
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed request bodies are a 400 with the offending fields listed"""
    error = ValidationError("Invalid request", {"fields": _field_errors(exc)})
    error_tracker.track(error, str(request.url.path))

    return JSONResponse(
        status_code=error.status_code,
        content=error.to_dict()
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Handle FastAPI HTTPExceptions"""
    error_tracker.track(exc, str(request.url.path))

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "success": False,
            "error": {
                "code": ErrorCode.BAD_REQUEST.value if exc.status_code < 500 else ErrorCode.INTERNAL_ERROR.value,
                "message": exc.detail,
                "timestamp": datetime.now().isoformat()
            }
        }
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions"""
    error_tracker.track(exc, str(request.url.path))

    logger.error(f"Unhandled exception: {traceback.format_exc()}")

    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": {
                "code": ErrorCode.INTERNAL_ERROR.value,
                "message": str(exc) or "An unexpected error occurred",
                "timestamp": datetime.now().isoformat()
            }
        }
    )


def register_exception_handlers(app):
    """Register all exception handlers with FastAPI app"""
    app.add_exception_handler(YieldHunterError, yieldhunter_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    logger.info("Exception handlers registered")
