"""
HTTP surface for the scheduling service.

A thin FastAPI layer over SchedulingService: decode JSON, resolve the
client IP, delegate, and mirror the handler's status code.

Usage:
    uvicorn --factory intake_scheduling.api:create_app
"""

import logging
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from intake_scheduling.handlers import (
    HandlerResult,
    SchedulingService,
    client_ip_from_headers,
    create_service,
    error_result,
)

logger = logging.getLogger(__name__)


async def _read_json(request: Request) -> tuple[Any, Optional[HandlerResult]]:
    try:
        return await request.json(), None
    except ValueError:
        return None, error_result(400, "Request body must be valid JSON", "INVALID_REQUEST")


def _respond(result: HandlerResult) -> JSONResponse:
    return JSONResponse(status_code=result.status_code, content=result.body)


def create_app(service: Optional[SchedulingService] = None) -> FastAPI:
    """Build the FastAPI application around ``service`` (or a configured one)."""
    service = service or create_service()
    app = FastAPI(
        title="Intake Scheduling",
        description="Matches guardian availability preferences against clinician availability",
        version="0.1.0",
    )
    app.state.service = service

    @app.post("/api/interpret-scheduling")
    async def interpret_scheduling(request: Request) -> JSONResponse:
        body, invalid = await _read_json(request)
        if invalid is not None:
            return _respond(invalid)
        client_ip = client_ip_from_headers(request.headers)
        return _respond(await service.interpret_scheduling(body, client_ip))

    @app.post("/api/match-availability")
    async def match_availability(request: Request) -> JSONResponse:
        body, invalid = await _read_json(request)
        if invalid is not None:
            return _respond(invalid)
        client_ip = client_ip_from_headers(request.headers)
        return _respond(await run_in_threadpool(service.match_availability, body, client_ip))

    @app.get("/api/health")
    async def health() -> dict[str, Any]:
        return service.health()

    logger.info("HTTP app created with routes: %s", [route.path for route in app.routes])
    return app
