"""HTTP front end.

``create_app`` serves the process manager directly, or, when a host agent URL
is configured, relays every ``/api/*`` request to that agent unchanged. The
JSON contract is the same in both placements.
"""

import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from portsentinel.archive import ProcessArchive
from portsentinel.config import Settings
from portsentinel.errors import (
    ArchiveNotFoundError,
    CommandError,
    ForbiddenPidError,
    ProcessNotFoundError,
)
from portsentinel.manager import ProcessManager

logger = logging.getLogger(__name__)


class KillRequest(BaseModel):
    pid: int | None = None


class BulkKillRequest(BaseModel):
    pids: list[int] = []


def _error(status_code: int, error: str, details: str | None = None, **extra) -> JSONResponse:
    content = {"error": error}
    if details is not None:
        content["details"] = details
    content.update(extra)
    return JSONResponse(status_code=status_code, content=content)


def build_manager(settings: Settings) -> ProcessManager:
    """Create a manager configured from ``settings``."""
    archive = ProcessArchive(ttl=settings.archive_ttl, sweep_interval=settings.sweep_interval)
    return ProcessManager(
        archive=archive,
        command_timeout=settings.command_timeout,
        shutdown_grace=settings.shutdown_grace,
    )


def create_app(
    settings: Settings | None = None,
    manager: ProcessManager | None = None,
    client: httpx.AsyncClient | None = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Runtime settings; defaults are used when omitted.
        manager: Process manager to serve; built from ``settings`` if omitted.
        client: HTTP client used in forwarding mode.
    """
    settings = settings or Settings()
    if settings.forwarding:
        return _create_forwarding_app(settings, client)
    return _create_local_app(manager or build_manager(settings))


def _create_local_app(manager: ProcessManager) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        manager.start()
        logger.info("Monitoring processes directly (%s)", manager.platform.family)
        yield
        manager.stop()

    app = FastAPI(title="portsentinel", lifespan=lifespan)
    app.state.manager = manager

    @app.exception_handler(RequestValidationError)
    async def invalid_request(request: Request, exc: RequestValidationError) -> JSONResponse:
        return _error(400, "Invalid request body", str(exc.errors()))

    @app.exception_handler(ForbiddenPidError)
    async def forbidden(request: Request, exc: ForbiddenPidError) -> JSONResponse:
        return _error(403, str(exc))

    @app.get("/api/processes")
    async def list_processes():
        try:
            processes = await manager.list_processes()
        except CommandError as exc:
            logger.error("Error fetching processes: %s", exc)
            return _error(500, "Failed to fetch process list", str(exc))
        return [record.as_dict() for record in processes]

    @app.post("/api/kill")
    async def kill(body: KillRequest):
        if body.pid is None:
            return _error(400, "PID is required")
        try:
            message = await manager.kill_one(body.pid)
        except ProcessNotFoundError as exc:
            return _error(404, f"Failed to kill process {body.pid}", str(exc))
        except CommandError as exc:
            logger.error("Error killing process %s: %s", body.pid, exc)
            return _error(500, f"Failed to kill process {body.pid}", str(exc))
        return {"message": message}

    @app.post("/api/kill-bulk")
    async def kill_bulk(body: BulkKillRequest):
        if not body.pids:
            return _error(400, "Array of PIDs is required")
        result = await manager.kill_bulk(body.pids)
        return {"message": f"Processed {result.total} requests", "results": result.as_dict()}

    @app.post("/api/restart")
    async def restart(body: KillRequest):
        if body.pid is None:
            return _error(400, "PID is required")
        try:
            message = await manager.restart(body.pid)
        except ArchiveNotFoundError:
            return _error(404, "Process archive not found or expired")
        except CommandError as exc:
            return _error(500, "Failed to restart process", str(exc))
        return {"message": message}

    @app.post("/api/shutdown")
    async def shutdown():
        return {"message": await manager.shutdown()}

    @app.get("/health")
    async def health():
        return {"status": "ok", "platform": manager.platform.family, "pid": manager.self_pid}

    return app


def _create_forwarding_app(settings: Settings, client: httpx.AsyncClient | None) -> FastAPI:
    target = (settings.host_agent_url or "").rstrip("/")

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = client is None
        app.state.client = client or httpx.AsyncClient(timeout=settings.command_timeout)
        logger.info("Forwarding /api/* requests to %s", target)
        try:
            yield
        finally:
            if owned:
                await app.state.client.aclose()

    app = FastAPI(title="portsentinel", lifespan=lifespan)

    @app.api_route("/api/{path:path}", methods=["GET", "POST", "PUT", "PATCH", "DELETE"])
    async def forward(path: str, request: Request):
        url = f"{target}{request.url.path}"
        if request.url.query:
            url = f"{url}?{request.url.query}"
        body = await request.body()
        try:
            response = await request.app.state.client.request(
                request.method,
                url,
                content=body if request.method != "GET" else None,
                headers={"Content-Type": "application/json"},
            )
        except httpx.HTTPError as exc:
            logger.error("Forwarding %s %s failed: %s", request.method, url, exc)
            return _error(
                500,
                "Failed to connect to host agent",
                str(exc),
                hint="Make sure the host agent is running on your host machine",
            )
        try:
            content = response.json()
        except ValueError:
            return _error(502, "Invalid response from host agent", response.text)
        return JSONResponse(status_code=response.status_code, content=content)

    @app.get("/health")
    async def health():
        return {"status": "ok", "mode": "forwarding", "target": target}

    return app
