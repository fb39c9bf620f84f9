#!/usr/bin/env python3
"""FastAPI server for the DeFi Risk Sentinel backend"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from chain_reader import ChainReader
from config import config, configure_logging
from database import init_db
from errors import SentinelError
from realtime import RealtimeHub, router as realtime_router
from repository import Repository
from routers import (
    alerts_router,
    analysis_router,
    history_router,
    insights_router,
    metrics_router,
    positions_router,
    protocols_router,
    timeline_router,
)
from scheduler import ScanScheduler
from services.protocol_scanner import ProtocolScanner
from services.risk_scorer import RiskScorer

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Bind the realtime hub to the running loop and start scanning; undo both on shutdown"""
    hub: RealtimeHub = app.state.hub
    scan_scheduler: ScanScheduler = app.state.scan_scheduler

    hub.start()

    if app.state.scanner_enabled:
        try:
            block = await run_in_threadpool(app.state.chain_reader.get_current_block)
            logger.info(f"✅ Connected to Somnia Testnet - Block #{block}")
        except Exception as e:
            logger.warning(f"⚠️ Could not connect to Somnia RPC: {e}")
        scan_scheduler.start()
    else:
        logger.info("Scanner disabled (SCANNER_ENABLED=false)")

    yield

    scan_scheduler.stop()
    await hub.stop()


def create_app(repository: Repository = None, chain_reader: ChainReader = None,
               scorer: RiskScorer = None, hub: RealtimeHub = None,
               scanner_enabled: bool = None) -> FastAPI:
    """
    Build the application with its components on ``app.state``.

    Anything not passed in is built from config; tests pass doubles.
    """
    if repository is None:
        init_db()
        repository = Repository()
    chain_reader = chain_reader or ChainReader()
    scorer = scorer or RiskScorer()
    hub = hub or RealtimeHub()

    scanner = ProtocolScanner(repository, chain_reader, scorer, hub)

    app = FastAPI(
        title="DeFi Risk Sentinel API",
        description="AI risk monitoring for Somnia testnet liquidity pools",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.state.repository = repository
    app.state.chain_reader = chain_reader
    app.state.scorer = scorer
    app.state.hub = hub
    app.state.scanner = scanner
    app.state.scan_scheduler = ScanScheduler(scanner)
    app.state.scanner_enabled = config.SCANNER_ENABLED if scanner_enabled is None else scanner_enabled

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    for router in (
        metrics_router,
        protocols_router,
        insights_router,
        timeline_router,
        positions_router,
        alerts_router,
        analysis_router,
        history_router,
    ):
        app.include_router(router, prefix="/api")
    app.include_router(realtime_router)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content={"error": "Invalid request", "details": _json_safe_errors(exc)},
        )

    @app.exception_handler(SentinelError)
    async def sentinel_exception_handler(request: Request, exc: SentinelError):
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.get("/health")
    def health_check():
        """Component status and how recent the last risk sample is"""
        latest = repository.latest_timeline_sample()
        data_age_seconds = None
        data_status = "no_data"

        if latest:
            data_age_seconds = (datetime.utcnow() - latest.timestamp).total_seconds()
            interval_seconds = app.state.scan_scheduler.interval_minutes * 60

            if data_age_seconds < interval_seconds * 2:
                data_status = "fresh"
            elif data_age_seconds < interval_seconds * 8:
                data_status = "stale"
            else:
                data_status = "very_stale"

        return {
            "status": "healthy",
            "timestamp": datetime.utcnow().isoformat(),
            "components": {
                "rpc": chain_reader.is_connected(),
                "gemini": scorer.client.configured,
                "scheduler": app.state.scan_scheduler.running,
                "websocket_clients": hub.client_count,
            },
            "data_status": {
                "status": data_status,
                "latest_sample_age_seconds": data_age_seconds,
                "latest_sample_time": latest.timestamp.isoformat() if latest else None,
                "counts": repository.counts(),
            },
            "last_scan": app.state.scan_scheduler.last_summary,
        }

    return app


def _json_safe_errors(exc: RequestValidationError):
    return [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")}
        for err in exc.errors()
    ]


if __name__ == "__main__":
    import uvicorn

    configure_logging()
    try:
        config.validate()
    except ValueError as e:
        logger.warning(str(e))

    uvicorn.run(create_app(), host="0.0.0.0", port=8000)
