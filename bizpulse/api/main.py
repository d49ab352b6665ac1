"""FastAPI application for client analytics dashboards."""

from __future__ import annotations

import asyncio
import contextlib
import functools
import logging
from datetime import date
from typing import Any, AsyncIterator

from dotenv import load_dotenv
from fastapi import Depends, FastAPI, Header, HTTPException, Query, WebSocket, WebSocketDisconnect
from fastapi.encoders import jsonable_encoder
from fastapi.responses import FileResponse, JSONResponse
from pydantic import BaseModel
from sqlalchemy.engine import Engine

from bizpulse.db.repository import AnalyticsRepository
from bizpulse.db.session import create_engine_from_env
from bizpulse.logic import constants
from bizpulse.logic.analytics import AnalyticsService
from bizpulse.logic.results import ErrorKind, Invalid, Ok
from bizpulse.realtime import AnalyticsBroadcaster, run_refresh_loop
from bizpulse.utils.logs import configure_logging

logger = logging.getLogger(__name__)

STATUS_BY_KIND = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.ACCESS_DENIED: 403,
    ErrorKind.FORBIDDEN: 403,
}

broadcaster = AnalyticsBroadcaster()


@functools.lru_cache(maxsize=1)
def get_engine() -> Engine:
    return create_engine_from_env()


def get_service(engine: Engine = Depends(get_engine)) -> AnalyticsService:
    return AnalyticsService(AnalyticsRepository(engine))


def get_broadcaster() -> AnalyticsBroadcaster:
    return broadcaster


@contextlib.asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    load_dotenv()
    configure_logging()
    stop_event = asyncio.Event()
    service = AnalyticsService(AnalyticsRepository(get_engine()))
    refresher = asyncio.create_task(run_refresh_loop(broadcaster, service, stop_event))
    try:
        yield
    finally:
        stop_event.set()
        await refresher


app = FastAPI(title="BizPulse Analytics API", lifespan=lifespan)


class CompareRequest(BaseModel):
    comparison_type: str
    business_id: int | None = None
    current_start: date | None = None
    current_end: date | None = None
    previous_start: date | None = None
    previous_end: date | None = None
    platform: str | None = None


class ShareRequest(BaseModel):
    dashboard_type: str
    business_id: int | None = None


class ShareResponse(BaseModel):
    token: str
    url: str


def unwrap(result: Ok | Invalid) -> Any:
    if isinstance(result, Invalid):
        raise HTTPException(status_code=STATUS_BY_KIND[result.kind], detail=result.as_dict())
    return result.value


def respond(result: Ok | Invalid) -> JSONResponse:
    return JSONResponse(jsonable_encoder(unwrap(result)))


@app.get("/analytics/overview")
async def overview(
    x_user_id: str | None = Header(default=None), service: AnalyticsService = Depends(get_service)
) -> JSONResponse:
    return respond(await service.get_overview(x_user_id))


@app.get("/analytics/views")
async def views_series(
    days: int = Query(constants.DEFAULT_ANALYTICS_DAYS),
    platform: str | None = None,
    x_user_id: str | None = Header(default=None),
    service: AnalyticsService = Depends(get_service),
) -> JSONResponse:
    return respond(await service.get_views_series(x_user_id, days, platform))


@app.get("/analytics/reviews")
async def reviews_series(
    days: int = Query(constants.DEFAULT_ANALYTICS_DAYS),
    x_user_id: str | None = Header(default=None),
    service: AnalyticsService = Depends(get_service),
) -> JSONResponse:
    return respond(await service.get_reviews_series(x_user_id, days))


@app.get("/analytics/charts/views")
async def views_chart(
    days: int = Query(constants.DEFAULT_ANALYTICS_DAYS),
    platform: str | None = None,
    x_user_id: str | None = Header(default=None),
    service: AnalyticsService = Depends(get_service),
) -> JSONResponse:
    return respond(await service.get_views_chart(x_user_id, days, platform))


@app.get("/analytics/charts/reviews")
async def reviews_chart(
    days: int = Query(constants.DEFAULT_ANALYTICS_DAYS),
    x_user_id: str | None = Header(default=None),
    service: AnalyticsService = Depends(get_service),
) -> JSONResponse:
    return respond(await service.get_reviews_chart(x_user_id, days))


@app.post("/analytics/compare")
async def compare(
    payload: CompareRequest,
    x_user_id: str | None = Header(default=None),
    service: AnalyticsService = Depends(get_service),
) -> JSONResponse:
    result = await service.compare(
        x_user_id,
        payload.comparison_type,
        business_id=payload.business_id,
        current=(payload.current_start, payload.current_end),
        previous=(payload.previous_start, payload.previous_end),
        platform=payload.platform,
    )
    return respond(result)


@app.get("/analytics/businesses/{business_id}")
async def business_analytics(
    business_id: int,
    x_user_id: str | None = Header(default=None),
    service: AnalyticsService = Depends(get_service),
) -> JSONResponse:
    return respond(await service.get_business_analytics(business_id, x_user_id))


@app.get("/analytics/businesses/{business_id}/growth")
async def growth_rates(
    business_id: int,
    current_days: int = Query(constants.DEFAULT_GROWTH_RATE_DAYS),
    previous_days: int = Query(constants.DEFAULT_GROWTH_RATE_DAYS),
    x_user_id: str | None = Header(default=None),
    service: AnalyticsService = Depends(get_service),
) -> JSONResponse:
    return respond(await service.get_growth_rates(business_id, x_user_id, current_days, previous_days))


@app.get("/analytics/businesses/{business_id}/trends")
async def trends(
    business_id: int,
    aggregation: str = Query("weekly"),
    months: int = Query(12),
    x_user_id: str | None = Header(default=None),
    service: AnalyticsService = Depends(get_service),
) -> JSONResponse:
    return respond(await service.get_trends(business_id, x_user_id, aggregation, months))


@app.get("/analytics/benchmarks")
async def benchmarks(
    category: str | None = None,
    x_user_id: str | None = Header(default=None),
    service: AnalyticsService = Depends(get_service),
) -> JSONResponse:
    return respond(await service.get_benchmarks(x_user_id, category))


@app.get("/analytics/competitors")
async def competitors(
    x_user_id: str | None = Header(default=None), service: AnalyticsService = Depends(get_service)
) -> JSONResponse:
    return respond(await service.get_competitors(x_user_id))


@app.get("/analytics/export.csv")
async def export_csv(
    x_user_id: str | None = Header(default=None), service: AnalyticsService = Depends(get_service)
) -> FileResponse:
    path = unwrap(await service.export_overview_csv(x_user_id))
    return FileResponse(path, media_type="text/csv", filename=path.name)


@app.post("/analytics/share", response_model=ShareResponse)
async def share(
    payload: ShareRequest,
    x_user_id: str | None = Header(default=None),
    service: AnalyticsService = Depends(get_service),
) -> ShareResponse:
    token = unwrap(await service.create_share_link(x_user_id, payload.dashboard_type, payload.business_id))
    return ShareResponse(token=token, url=f"/shared/{token}")


@app.get("/shared/{token}")
async def shared_dashboard(token: str, service: AnalyticsService = Depends(get_service)) -> JSONResponse:
    return respond(await service.get_shared_dashboard(token))


@app.websocket("/ws/analytics")
async def analytics_socket(
    websocket: WebSocket,
    user_id: str = Query(...),
    hub: AnalyticsBroadcaster = Depends(get_broadcaster),
) -> None:
    await websocket.accept()
    queue = hub.subscribe(user_id)
    tasks = {
        asyncio.create_task(_forward_updates(websocket, queue)),
        asyncio.create_task(_wait_for_close(websocket)),
    }
    try:
        done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        for task in done:
            exc = task.exception()
            if exc is None or isinstance(exc, WebSocketDisconnect):
                logger.info("Realtime subscriber %s disconnected", user_id)
            else:
                logger.error("Realtime socket for %s failed", user_id, exc_info=exc)
    finally:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        hub.unsubscribe(user_id, queue)


async def _forward_updates(websocket: WebSocket, queue: asyncio.Queue) -> None:
    while True:
        await websocket.send_json(await queue.get())


async def _wait_for_close(websocket: WebSocket) -> None:
    # Client messages are ignored; receiving surfaces the disconnect.
    while True:
        await websocket.receive_text()
