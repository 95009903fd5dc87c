"""
Sentry Error Monitoring Configuration
Error tracking for the YieldHunter backend; inert unless SENTRY_DSN is set
"""
import os
import logging
import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.starlette import StarletteIntegration
from sentry_sdk.integrations.logging import LoggingIntegration

logger = logging.getLogger("Sentry")


def filter_sensitive_data(event, hint):
    """Remove credential fields from Sentry events."""
    sensitive_keys = ['password', 'api_key', 'secret', 'token', 'authorization', 'sentry_dsn']

    if 'request' in event and 'data' in event['request']:
        data = event['request']['data']
        if isinstance(data, dict):
            for key in sensitive_keys:
                if key in data:
                    data[key] = '[FILTERED]'

    return event


def init_sentry(monitoring=None, environment: str = "development", version: str = "local") -> bool:
    """Initialize Sentry from MonitoringConfig (or SENTRY_DSN when none given)."""
    dsn = monitoring.sentry_dsn if monitoring is not None else os.getenv("SENTRY_DSN")

    if not dsn:
        logger.info("No SENTRY_DSN found - error tracking disabled")
        return False

    sample_rate = monitoring.sentry_traces_sample_rate if monitoring is not None else 0.2

    sentry_sdk.init(
        dsn=dsn,
        environment=environment,
        traces_sample_rate=sample_rate,
        integrations=[
            FastApiIntegration(transaction_style="endpoint"),
            StarletteIntegration(),
            LoggingIntegration(
                level=logging.INFO,
                event_level=logging.ERROR
            ),
        ],
        before_send=filter_sensitive_data,
        send_default_pii=False,
        release=f"yieldhunter-backend@{version}",
    )

    logger.info(f"Initialized for {environment} (release: {version})")
    return True


def capture_scan_breadcrumb(action: str, agent_id: int, details: dict = None):
    """Breadcrumb for scan dispatch/completion."""
    sentry_sdk.add_breadcrumb(
        category="scan",
        message=action,
        level="info",
        data={"agent_id": agent_id, **(details or {})}
    )


def capture_execution_breadcrumb(action: str, strategy_id: int, details: dict = None):
    """Breadcrumb for simulated strategy executions."""
    sentry_sdk.add_breadcrumb(
        category="transaction",
        message=action,
        level="info",
        data={"strategy_id": strategy_id, **(details or {})}
    )


def capture_scan_failure(exc: BaseException, agent_id: int):
    sentry_sdk.capture_exception(exc, tags={"agent_id": str(agent_id)})
