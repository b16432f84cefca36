"""
FastAPI server for the Workbay HTTP API.

Exposes background jobs (start/status/stop), synchronous command runs and a
workspace health probe.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, Field

from .. import __version__
from ..config.schema import WorkbaySettings, get_settings
from ..errors import JobNotFoundError, ResourceExhaustedError, SpawnFailureError
from ..execution import ExecOptions, JobManager, JobStatus
from ..logging_config import get_logger

logger = get_logger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


# Request/Response Models
class ExecStartRequest(BaseModel):
    """Request to start a background job."""

    command: str = Field(min_length=1)
    timeout_ms: float | None = Field(default=None, gt=0)
    unbounded: bool = False
    cwd: str | None = None


class ExecBashRequest(BaseModel):
    """Request to run a command synchronously."""

    command: str = Field(min_length=1)
    timeout_ms: float | None = Field(default=None, gt=0)
    cwd: str | None = None


class ExecStartResponse(BaseModel):
    """Started job."""

    job_id: str


class JobStatusResponse(BaseModel):
    """Job status response model."""

    job_id: str
    command: str
    status: str
    duration_ms: float
    exit_code: int | None
    timed_out: bool
    stdout: str
    stderr: str
    stdout_truncated: bool
    stderr_truncated: bool

    @classmethod
    def from_status(cls, status: JobStatus) -> "JobStatusResponse":
        return cls(
            job_id=status.job_id,
            command=status.command,
            status=status.state.value,
            duration_ms=status.duration_ms,
            exit_code=status.exit_code,
            timed_out=status.timed_out,
            stdout=status.stdout,
            stderr=status.stderr,
            stdout_truncated=status.stdout_truncated,
            stderr_truncated=status.stderr_truncated,
        )


class JobSummary(BaseModel):
    """Job list entry."""

    job_id: str
    command: str
    status: str
    exit_code: int | None


class StopResponse(BaseModel):
    """Stop outcome."""

    success: bool
    message: str | None = None


class RunResultResponse(BaseModel):
    """Synchronous run result."""

    stdout: str
    stderr: str
    exit_code: int
    duration_ms: float
    timed_out: bool


def resolve_cwd(workspace: Path, requested: str | None) -> Path:
    """
    Resolve a requested working directory inside the workspace.

    Args:
        workspace: Workspace root
        requested: Path relative to the workspace (or absolute inside it)

    Returns:
        Resolved directory

    Raises:
        HTTPException: 400 if the path leaves the workspace
    """
    base = workspace.resolve()

    if not requested:
        return base

    target = (base / requested).resolve()

    if target != base and base not in target.parents:
        raise HTTPException(status_code=400, detail="Working directory must be inside the workspace")

    return target


def create_app(  # noqa: C901
    manager: JobManager | None = None,
    settings: WorkbaySettings | None = None,
) -> FastAPI:
    """
    Create FastAPI application.

    Args:
        manager: Optional job manager instance
        settings: Optional settings (global settings if None)

    Returns:
        Configured FastAPI app
    """
    settings = settings or get_settings()
    workspace = settings.server.workspace_path
    manager = manager or JobManager(settings.execution, workspace_root=workspace)
    default_timeout = manager.config.default_timeout_seconds

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        async with manager:
            logger.info(f"Workbay API ready (workspace {workspace})")
            yield

    app = FastAPI(
        title="Workbay API",
        description="Workspace command execution API",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.manager = manager

    async def verify_api_key(
        credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    ) -> None:
        api_key = settings.server.api_key
        if not api_key:
            return
        if credentials is None or credentials.credentials != api_key:
            raise HTTPException(status_code=401, detail="Unauthorized")

    @app.exception_handler(ResourceExhaustedError)
    async def resource_exhausted_handler(request: Request, exc: ResourceExhaustedError) -> JSONResponse:
        return JSONResponse(status_code=429, content={"detail": str(exc)})

    @app.exception_handler(SpawnFailureError)
    async def spawn_failure_handler(request: Request, exc: SpawnFailureError) -> JSONResponse:
        return JSONResponse(status_code=500, content={"detail": str(exc)})

    @app.exception_handler(JobNotFoundError)
    async def job_not_found_handler(request: Request, exc: JobNotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.get("/")
    async def root() -> dict[str, str]:
        """API root endpoint."""
        return {
            "name": "Workbay API",
            "version": __version__,
            "docs": "/docs",
        }

    @app.get("/health", dependencies=[Depends(verify_api_key)])
    async def health_check() -> dict[str, Any]:
        """
        Check that the workspace exists and is writable.

        Returns:
            Health status with workspace details
        """
        probe = workspace / ".workbay-health"
        try:
            probe.write_text("ok")
            probe.unlink()
        except OSError as e:
            logger.warning(f"Workspace health probe failed: {e}")
            return {
                "status": "error",
                "workspace": {"exists": workspace.is_dir(), "writable": False},
            }

        return {
            "status": "ok",
            "workspace": {"exists": True, "writable": True},
            "jobs": {"running": manager.running, "max_concurrent": manager.gate.capacity},
        }

    @app.post("/exec/start", dependencies=[Depends(verify_api_key)])
    async def start_job(request: ExecStartRequest) -> ExecStartResponse:
        """
        Start a background job.

        Args:
            request: Command and timeout options

        Returns:
            Job identifier
        """
        options = ExecOptions.from_request(
            cwd=resolve_cwd(workspace, request.cwd),
            timeout_ms=request.timeout_ms,
            unbounded=request.unbounded,
            default_timeout=default_timeout,
        )
        job_id = await manager.start(request.command, options)

        return ExecStartResponse(job_id=job_id)

    @app.get("/exec", dependencies=[Depends(verify_api_key)])
    async def list_jobs() -> list[JobSummary]:
        """List known jobs."""
        return [
            JobSummary(
                job_id=s.job_id,
                command=s.command,
                status=s.state.value,
                exit_code=s.exit_code,
            )
            for s in manager.list_jobs()
        ]

    @app.get("/exec/{job_id}/status", dependencies=[Depends(verify_api_key)])
    async def get_job_status(job_id: str) -> JobStatusResponse:
        """
        Get job status and captured output.

        Args:
            job_id: Job identifier

        Returns:
            Job status
        """
        return JobStatusResponse.from_status(manager.get_status(job_id))

    @app.post("/exec/{job_id}/stop", dependencies=[Depends(verify_api_key)])
    async def stop_job(job_id: str) -> StopResponse:
        """
        Request termination of a running job.

        Args:
            job_id: Job identifier

        Returns:
            Stop outcome
        """
        result = manager.stop(job_id)

        return StopResponse(success=result.success, message=result.message)

    @app.post("/exec/bash", dependencies=[Depends(verify_api_key)])
    async def run_bash(request: ExecBashRequest) -> RunResultResponse:
        """
        Run a short command and wait for it.

        Args:
            request: Command and timeout

        Returns:
            Output and exit code
        """
        options = ExecOptions.from_request(
            cwd=resolve_cwd(workspace, request.cwd),
            timeout_ms=request.timeout_ms,
            default_timeout=default_timeout,
        )
        result = await manager.run_sync(request.command, options)

        return RunResultResponse(
            stdout=result.stdout,
            stderr=result.stderr,
            exit_code=result.exit_code,
            duration_ms=result.duration_ms,
            timed_out=result.timed_out,
        )

    return app


def start_server(host: str | None = None, port: int | None = None) -> None:
    """
    Start Workbay API server.

    Args:
        host: Server host (settings if None)
        port: Server port (settings if None)
    """
    import uvicorn

    settings = get_settings()
    host = host or settings.server.host
    port = port or settings.server.port

    app = create_app(settings=settings)

    logger.info(f"Starting Workbay API server on {host}:{port}")

    uvicorn.run(app, host=host, port=port, log_level=settings.logging.level.lower())
