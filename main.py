"""
FastAPI app for the edge engine
v2.3 - Edge scores, result grading, analyst consensus, weakness triggers
"""

import logging
import os
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from core.error_responses import make_error, status_for_exception
from core.errors import DataStoreError, EngineError
from core.structured_logging import (
    RequestCorrelationMiddleware, configure_structured_logging, get_request_id,
)
from daily_scheduler import get_scheduler, init_scheduler, scheduler_router
from database import get_database_status, init_database
from env_config import Config
from routers import (
    consensus_router, edge_router, grader_router, performance_router, triggers_router,
)

configure_structured_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_database()
    Config.log_status()
    if Config.SCHEDULER_ENABLED:
        init_scheduler().start()
    yield
    scheduler = get_scheduler()
    if scheduler and scheduler.running:
        scheduler.stop()


app = FastAPI(
    title="Edge Engine API",
    description="Edge scores, grading, analyst consensus and weakness triggers",
    version=Config.ENGINE_VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestCorrelationMiddleware)


# ============================================
# ERROR HANDLERS
# ============================================

async def engine_exception_handler(request: Request, exc: Exception):
    status_code, code = status_for_exception(exc)
    if status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    else:
        logger.info("%s %s rejected: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=status_code,
        content=make_error(code, str(exc), request_id=get_request_id()),
    )


app.add_exception_handler(EngineError, engine_exception_handler)
app.add_exception_handler(DataStoreError, engine_exception_handler)


# ============================================
# ROUTERS
# ============================================

app.include_router(edge_router)
app.include_router(grader_router)
app.include_router(consensus_router)
app.include_router(triggers_router)
app.include_router(performance_router)
app.include_router(scheduler_router)


# ============================================
# SYSTEM STATUS
# ============================================

@app.get("/")
async def root():
    return {"status": "online", "message": "Edge Engine API", "version": Config.ENGINE_VERSION}


@app.get("/health")
async def health_check():
    scheduler = get_scheduler()
    return {
        "status": "healthy",
        "version": Config.ENGINE_VERSION,
        "database": get_database_status(),
        "scheduler": bool(scheduler and scheduler.running),
    }


if __name__ == "__main__":
    port = int(os.getenv("PORT", 8000))
    logger.info("Starting Edge Engine API v%s...", Config.ENGINE_VERSION)
    uvicorn.run(app, host="0.0.0.0", port=port, log_level="info")
