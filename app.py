"""
Lazy Pipeline Service

FastAPI app that evaluates declarative pipelines built from the lazy
combinators (take, drop, map, filter, filter_map, chain, take_while,
drop_while, enumerate, zip, elem_indices) and a terminal operation
(collect, reduce, fold, count).
"""

import logging
import os
from datetime import datetime
from contextlib import asynccontextmanager

import psutil
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from lazy import CollectError
from utils import (
    PipelineError,
    setup_logging,
    load_settings,
    run_pipeline,
    list_functions,
    get_performance_summary,
    clear_performance_metrics
)
from models import (
    PipelineRequest, PipelineResponse, FunctionRegistryResponse,
    HealthResponse, PerformanceSummary, StatusResponse, ErrorResponse
)

logger = logging.getLogger('itplus.app')

settings = load_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    setup_logging(settings.log_level)
    logger.info(f"Pipeline service starting (collect capacity {settings.collect_initial_capacity}, "
                f"max operations {settings.max_operations}, max items {settings.max_items})")
    yield
    logger.info("Pipeline service stopped")


app = FastAPI(
    title="Lazy Pipeline Service",
    description="Pull-based lazy iterator pipelines with composable combinators",
    version="1.0.0",
    lifespan=lifespan
)


@app.get("/", response_model=StatusResponse)
async def root():
    """Basic service banner."""
    return StatusResponse(
        ok=True,
        message="Lazy Pipeline Service operational - Features: lazy combinators, reduce/fold/collect terminals",
        timestamp=datetime.now()
    )


@app.get("/health", response_model=HealthResponse)
async def health_check():
    """Return process memory and pipeline metrics."""
    rss = psutil.Process(os.getpid()).memory_info().rss
    return HealthResponse(
        healthy=True,
        memory_rss_mb=rss / 1024 / 1024,
        performance=PerformanceSummary(**get_performance_summary()),
        settings=settings
    )


@app.get("/functions", response_model=FunctionRegistryResponse)
async def functions():
    """List the named functions pipelines may reference."""
    registry = list_functions()
    return FunctionRegistryResponse(
        functions=registry,
        total_functions=sum(len(names) for names in registry.values())
    )


@app.post("/pipeline", response_model=PipelineResponse)
async def evaluate_pipeline(request: PipelineRequest):
    """Build the pipeline lazily, then consume it with the requested terminal."""
    outcome = run_pipeline(request, settings)
    return PipelineResponse(**outcome)


@app.get("/metrics", response_model=PerformanceSummary)
async def metrics():
    """Aggregate timing/memory across evaluated pipelines."""
    return PerformanceSummary(**get_performance_summary())


@app.delete("/metrics", response_model=StatusResponse)
async def reset_metrics():
    clear_performance_metrics()
    return StatusResponse(ok=True, message="Performance metrics cleared", timestamp=datetime.now())


# Exception handlers for proper error responses
@app.exception_handler(PipelineError)
async def pipeline_error_handler(request: Request, exc: PipelineError):
    logger.warning(f"Rejected pipeline: {exc}")
    return JSONResponse(
        status_code=400,
        content=ErrorResponse(
            error=str(exc),
            error_type="PipelineError",
            timestamp=datetime.now()
        ).model_dump(mode="json")
    )


@app.exception_handler(CollectError)
async def collect_error_handler(request: Request, exc: CollectError):
    logger.error(f"Collect failed after {exc.collected} items: {exc}")
    return JSONResponse(
        status_code=507,
        content=ErrorResponse(
            error=str(exc),
            error_type="CollectError",
            timestamp=datetime.now()
        ).model_dump(mode="json")
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
