"""
YieldHunter Infrastructure Module
Errors, configuration, id allocation and logging
"""

from .errors import (
    YieldHunterError,
    ValidationError,
    NotFoundError,
    CapacityExceededError,
    NotEnabledError,
    NoAvailableAgentsError,
    ScanTaskError,
    ErrorCode,
    ErrorTracker,
    error_tracker,
    register_exception_handlers,
)

from .config import (
    YieldHunterConfig,
    Environment,
    ScanConfig,
    ExecutionConfig,
    FeatureFlags,
    config,
    get_config,
    reload_config,
)

from .id_allocator import IdAllocator
from .logging_config import configure_logging

__all__ = [
    # Errors
    "YieldHunterError",
    "ValidationError",
    "NotFoundError",
    "CapacityExceededError",
    "NotEnabledError",
    "NoAvailableAgentsError",
    "ScanTaskError",
    "ErrorCode",
    "ErrorTracker",
    "error_tracker",
    "register_exception_handlers",

    # Config
    "YieldHunterConfig",
    "Environment",
    "ScanConfig",
    "ExecutionConfig",
    "FeatureFlags",
    "config",
    "get_config",
    "reload_config",

    # Ids / logging
    "IdAllocator",
    "configure_logging",
]
