from __future__ import annotations

import logging

from fastapi import Depends, FastAPI, Request, status
from fastapi.responses import JSONResponse
import uvicorn

from agent.app.collector import Collector
from agent.app.config import settings
from agent.app.errors import CollectionError, SamplingError
from agent.app.schemas import (
    CPUUsage,
    ErrorResponse,
    HostSnapshot,
    MemoryUsage,
    NetworkUsage,
    PeerRecord,
    UptimeResponse,
)


logger = logging.getLogger(__name__)

_ERROR_RESPONSES = {status.HTTP_500_INTERNAL_SERVER_ERROR: {"model": ErrorResponse}}


def get_collector() -> Collector:
    return Collector(settings)


def _error_response(message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=ErrorResponse(error=message).model_dump(),
    )


def create_app() -> FastAPI:
    application = FastAPI(title=settings.app_name, version=settings.version, debug=settings.debug)

    @application.exception_handler(CollectionError)
    async def collection_failed(_request: Request, exc: CollectionError) -> JSONResponse:
        logger.error("Collection cycle failed: %s", exc)
        return _error_response(str(exc))

    @application.exception_handler(SamplingError)
    async def sampling_failed(_request: Request, exc: SamplingError) -> JSONResponse:
        logger.error("Measurement failed: %s", exc)
        return _error_response(str(exc))

    @application.get("/healthz", tags=["meta"])
    async def health() -> dict[str, str]:  # pragma: no cover - simple endpoint
        return {"status": "ok"}

    @application.get(
        "/",
        response_model=HostSnapshot,
        response_model_exclude_none=True,
        responses=_ERROR_RESPONSES,
    )
    async def snapshot(collector: Collector = Depends(get_collector)) -> HostSnapshot:
        result = await collector.collect()
        return result.snapshot

    @application.get("/uptime", response_model=UptimeResponse, responses=_ERROR_RESPONSES)
    async def uptime(collector: Collector = Depends(get_collector)) -> UptimeResponse:
        return UptimeResponse(uptime=await collector.collect_measurement("uptime"))

    @application.get("/cpu", response_model=CPUUsage, responses=_ERROR_RESPONSES)
    async def cpu(collector: Collector = Depends(get_collector)) -> CPUUsage:
        return await collector.collect_measurement("cpu")

    @application.get(
        "/memory",
        response_model=MemoryUsage,
        response_model_exclude_none=True,
        responses=_ERROR_RESPONSES,
    )
    async def memory(collector: Collector = Depends(get_collector)) -> MemoryUsage:
        return await collector.collect_measurement("memory")

    @application.get("/network", response_model=list[NetworkUsage], responses=_ERROR_RESPONSES)
    async def network(collector: Collector = Depends(get_collector)) -> list[NetworkUsage]:
        return await collector.collect_measurement("network")

    @application.get("/wireguard", response_model=list[PeerRecord], responses=_ERROR_RESPONSES)
    async def wireguard(collector: Collector = Depends(get_collector)) -> list[PeerRecord]:
        return await collector.collect_measurement("wireguard")

    return application


app = create_app()


def run() -> None:
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    uvicorn.run(
        app,
        host=settings.bind_host,
        port=settings.bind_port,
        log_level=settings.log_level.lower(),
    )
