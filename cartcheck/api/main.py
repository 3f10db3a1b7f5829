"""FastAPI control application: start runs and watch their progress."""
import asyncio
import logging
from datetime import datetime
from typing import Optional

from fastapi import FastAPI, HTTPException, Depends
from fastapi.security import APIKeyHeader
from pydantic import BaseModel

from cartcheck.config import config
from cartcheck.errors import ConfigurationError
from cartcheck.jobs.metrics_exporter import read_recent_metrics
from cartcheck.jobs.runner import CheckRunner, RunSummary
from cartcheck.store.checkpoint import CheckpointStore

logger = logging.getLogger(__name__)

app = FastAPI(title="Cart Check API", version="0.1.0")

# API Key security (if configured)
API_KEY_HEADER = APIKeyHeader(name="X-API-KEY", auto_error=False)

# Replaced in tests
runner_factory = CheckRunner


def verify_api_key(api_key: str = Depends(API_KEY_HEADER)) -> bool:
    """Verify API key if configured."""
    expected_key = config.API_KEY
    if expected_key:
        if not api_key or api_key != expected_key:
            raise HTTPException(status_code=403, detail="Invalid API key")
    return True


class RunState:
    """The single run this process may have in flight."""

    def __init__(self):
        self.runner: Optional[CheckRunner] = None
        self.task: Optional[asyncio.Task] = None
        self.summary: Optional[RunSummary] = None
        self.error: Optional[str] = None
        self.started_at: Optional[datetime] = None

    @property
    def active(self) -> bool:
        return self.task is not None and not self.task.done()


run_state = RunState()


class RunRequest(BaseModel):
    """Request model for starting a run."""

    identifiers: Optional[list[str]] = None
    input_file: Optional[str] = None
    batch_size: Optional[int] = None
    mode: Optional[str] = None
    max_parallel_batches: Optional[int] = None
    resume: bool = True
    stop_after_minutes: Optional[float] = None


class RunResponse(BaseModel):
    """Response model describing a run."""

    run_id: Optional[str] = None
    running: bool
    started_at: Optional[datetime] = None
    total: Optional[int] = None
    recorded: Optional[int] = None
    completed: Optional[bool] = None
    failed_batches: list[int] = []
    stopped_reason: Optional[str] = None
    error: Optional[str] = None


def _describe() -> RunResponse:
    runner = run_state.runner
    summary = run_state.summary or (runner.summary if runner else None)
    return RunResponse(
        run_id=runner.run_id if runner else None,
        running=run_state.active,
        started_at=run_state.started_at,
        total=summary.total if summary else None,
        recorded=runner.metrics.processed if runner else None,
        completed=run_state.summary.completed if run_state.summary else None,
        failed_batches=list(summary.failed_batches) if summary else [],
        stopped_reason=summary.stopped_reason if summary else None,
        error=run_state.error,
    )


async def _run_in_background(runner: CheckRunner) -> None:
    try:
        run_state.summary = await runner.run()
    except ConfigurationError as e:
        logger.warning(f"Run {runner.run_id} did not start: {e}")
        run_state.error = str(e)
    except Exception as e:
        logger.error(f"Run {runner.run_id} crashed: {e}", exc_info=True)
        run_state.error = str(e)


@app.get("/health")
async def health():
    """Health check endpoint (no auth required)."""
    return {
        "status": "ok",
        "timestamp": datetime.utcnow().isoformat(),
        "run_active": run_state.active,
    }


@app.get("/progress")
async def progress(_: bool = Depends(verify_api_key)):
    """Checkpointed identifiers plus live counters of the current run."""
    runner = run_state.runner
    return {
        "checkpointed": CheckpointStore().count(),
        "run": _describe().model_dump(mode="json"),
        "metrics": runner.metrics.get_summary() if runner else None,
    }


@app.get("/metrics")
async def get_metrics(_: bool = Depends(verify_api_key)):
    """Get recent metrics snapshots (requires API key if configured)."""
    snapshots = read_recent_metrics(limit=100)
    if not snapshots:
        return {"error": "No metrics available"}
    return {"metrics": snapshots}


@app.get("/runs/current", response_model=RunResponse)
async def current_run(_: bool = Depends(verify_api_key)):
    """State of the current or last run."""
    return _describe()


@app.post("/runs", response_model=RunResponse, status_code=202)
async def start_run(request: RunRequest, _: bool = Depends(verify_api_key)):
    """Start a run in the background. Only one run at a time."""
    if run_state.active:
        raise HTTPException(status_code=409, detail="A run is already in progress")

    try:
        runner = runner_factory(
            identifiers=request.identifiers,
            input_file=request.input_file,
            batch_size=request.batch_size,
            mode=request.mode,
            max_parallel_batches=request.max_parallel_batches,
            resume=request.resume,
            stop_after_minutes=request.stop_after_minutes,
        )
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    run_state.runner = runner
    run_state.summary = None
    run_state.error = None
    run_state.started_at = datetime.utcnow()
    run_state.task = asyncio.create_task(_run_in_background(runner))
    logger.info(f"Started run {runner.run_id}")
    return _describe()


@app.post("/runs/stop", response_model=RunResponse)
async def stop_run(_: bool = Depends(verify_api_key)):
    """Ask the current run to stop taking new identifiers."""
    if not run_state.active:
        raise HTTPException(status_code=404, detail="No run in progress")
    run_state.runner.run_control.request_stop("Stopped via API")
    return _describe()


if __name__ == "__main__":
    import uvicorn
    from cartcheck.logging_conf import setup_logging

    setup_logging()
    config.validate()
    uvicorn.run(app, host="0.0.0.0", port=8000)
