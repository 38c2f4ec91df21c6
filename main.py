import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config import (
    CORS_ORIGINS,
    EXPIRATION_REMINDER_CRON,
    EXPIRATION_SWEEP_CRON,
    SCHEDULER_ENABLED,
)
from database import SessionLocal, check_connection
from dependencies import LedgerServices, build_services, get_services
from jobs import JobRunner, build_scheduler
from routers import credits_router, reports_router, transactions_router
from utils.logger import setup_logger

setup_logger()
logger = logging.getLogger(__name__)


def create_app(services: Optional[LedgerServices] = None, scheduler_enabled: bool = SCHEDULER_ENABLED) -> FastAPI:
    services = services or build_services(SessionLocal)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        scheduler = None
        if scheduler_enabled:
            runner = JobRunner(services.engine, sweeper=services.sweeper)
            scheduler = build_scheduler(
                runner,
                sweep_cron=EXPIRATION_SWEEP_CRON,
                reminder_cron=EXPIRATION_REMINDER_CRON,
                reminder_days=services.settings.reminder_days,
            )
            scheduler.start()
            logger.info("Credit expiration scheduler started")
        yield
        if scheduler is not None:
            scheduler.shutdown(wait=False)
            logger.info("Credit expiration scheduler stopped")
        services.close()

    # App instance
    app = FastAPI(title="Store Credit Ledger", lifespan=lifespan)
    app.state.ledger = services

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(credits_router)
    app.include_router(transactions_router)
    app.include_router(reports_router)

    @app.get("/health")
    def health(ledger: LedgerServices = Depends(get_services)):
        bind = ledger.store.session_factory.kw["bind"]
        database_ok = check_connection(bind)
        return JSONResponse(
            status_code=200 if database_ok else 503,
            content={"status": "ok" if database_ok else "degraded", "database": database_ok},
        )

    @app.get("/metrics")
    def metrics(ledger: LedgerServices = Depends(get_services)):
        return {
            name: {
                "count": stats.count,
                "failures": stats.failures,
                "avg_ms": round(stats.avg_ms, 2),
                "max_ms": round(stats.max_ms, 2),
                "slow_count": stats.slow_count,
            }
            for name, stats in ledger.metrics.snapshot().items()
        }

    # Unhandled errors fallback middleware
    @app.middleware("http")
    async def internal_error_middleware(request: Request, call_next):
        try:
            return await call_next(request)
        except Exception:
            logger.exception("Unhandled error on %s %s", request.method, request.url.path)
            return JSONResponse(status_code=500, content={"error": "Internal server error"})

    return app


app = create_app()

if __name__ == "__main__":
    port = int(os.getenv("PORT", 10000))
    uvicorn.run("main:app", host="0.0.0.0", port=port, reload=True)
