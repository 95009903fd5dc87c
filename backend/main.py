"""
YieldHunter API
Multi-agent yield scanning and automated strategy execution
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from infrastructure.config import YieldHunterConfig, get_config
from infrastructure.errors import register_exception_handlers
from infrastructure.logging_config import configure_logging
from sentry_config import init_sentry
from services.demo_data import seed_demo_data
from services.runtime import Runtime

from api.agent_router import router as agent_router
from api.catalog_router import router as catalog_router
from api.infrastructure_router import router as infrastructure_router
from api.strategy_router import router as strategy_router

logger = logging.getLogger("YieldHunter")


def create_app(config: YieldHunterConfig = None, runtime: Runtime = None) -> FastAPI:
    """
    Build the FastAPI application.

    A prebuilt runtime (tests) is used as-is; otherwise one is built from config.
    """
    config = config or (runtime.config if runtime else get_config())
    configure_logging(config.monitoring.log_level)
    init_sentry(config.monitoring, environment=config.environment.value, version=config.version)

    runtime = runtime or Runtime.build(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if config.features.is_enabled("seed_demo_data"):
            seed_demo_data(runtime)
        logger.info(f"YieldHunter {config.version} started ({config.environment.value})")
        yield
        await runtime.orchestrator.shutdown()
        logger.info("YieldHunter stopped")

    app = FastAPI(
        title="YieldHunter API",
        description="Multi-agent yield scanning and automated strategy execution",
        version=config.version,
        debug=config.debug,
        lifespan=lifespan,
    )
    app.state.runtime = runtime

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.security.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    app.include_router(agent_router)
    app.include_router(strategy_router)
    app.include_router(catalog_router)
    app.include_router(infrastructure_router)

    return app
