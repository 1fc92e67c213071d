"""FastAPI application factory"""

import logging
from contextlib import asynccontextmanager
from typing import Callable, Optional

from fastapi import FastAPI
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from sqlalchemy.orm import Session
from starlette.responses import Response

from nova_sandbox.api.middleware import ChaosMiddleware, MetricsMiddleware, RequestIDMiddleware
from nova_sandbox.api.v1 import accounts, compliance, fraud, loans, portfolio, risk, sandbox, transactions
from nova_sandbox.config import Settings, SimulationConfig, settings as default_settings
from nova_sandbox.domain.rng import SeededRandom
from nova_sandbox.infrastructure.database.session import SessionLocal, init_db
from nova_sandbox.infrastructure.observability.logging import setup_logging
from nova_sandbox.simulation.chaos import ChaosController
from nova_sandbox.simulation.engine import SimulationEngine, cycle_seed
from nova_sandbox.utils.clock import Clock, RepeatingTimer, SystemClock, ThreadingTimer

# Setup structured logging
setup_logging(default_settings.log_level)

logger = logging.getLogger(__name__)


def create_app(
    session_factory: Optional[Callable[[], Session]] = None,
    clock: Optional[Clock] = None,
    timer_factory: Callable[[], RepeatingTimer] = ThreadingTimer,
    app_settings: Optional[Settings] = None,
) -> FastAPI:
    """
    Create and configure FastAPI application.

    Tests pass their own session factory, clock and timer so cycles can be
    ticked deterministically; the defaults run against the configured store.
    """
    app_settings = app_settings or default_settings
    clock = clock or SystemClock()
    uses_default_store = session_factory is None

    config = SimulationConfig.from_settings(app_settings)
    chaos = ChaosController(
        mode=app_settings.chaos_mode,
        latency_ms=app_settings.chaos_latency_ms,
        failure_rate=app_settings.chaos_failure_rate,
        rng=SeededRandom(cycle_seed(config, clock.now())),
    )
    simulation = SimulationEngine(
        session_factory=session_factory or SessionLocal,
        config=config,
        clock=clock,
        timer_factory=timer_factory,
        chaos=chaos,
        app_settings=app_settings,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if uses_default_store:
            init_db()
        if app_settings.simulation_autostart:
            simulation.start()
        yield
        simulation.stop()

    app = FastAPI(
        title="Nova Banking Sandbox",
        description="Simulated bank with transaction lifecycle, living simulation and chaos testing",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.chaos = chaos
    app.state.simulation = simulation

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(ChaosMiddleware)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    @app.get("/")
    def root():
        return {"service": app_settings.service_name, "docs": "/docs"}

    # Health check endpoint
    @app.get("/health")
    def health_check():
        return {
            "status": "ok",
            "service": app_settings.service_name,
            "simulation_running": simulation.is_running,
            "chaos_mode": chaos.mode.value,
        }

    # Prometheus metrics endpoint
    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # Register API routers
    app.include_router(transactions.router, prefix="/v1", tags=["transactions"])
    app.include_router(accounts.router, prefix="/v1", tags=["accounts"])
    app.include_router(fraud.router, prefix="/v1", tags=["fraud"])
    app.include_router(risk.router, prefix="/v1", tags=["risk"])
    app.include_router(loans.router, prefix="/v1", tags=["loans"])
    app.include_router(portfolio.router, prefix="/v1", tags=["investments"])
    app.include_router(compliance.router, prefix="/v1", tags=["compliance"])
    app.include_router(sandbox.router, prefix="/v1", tags=["sandbox"])

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("nova_sandbox.api.main:app", host=default_settings.host, port=default_settings.port)
