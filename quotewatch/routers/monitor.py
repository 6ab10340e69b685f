# quotewatch/routers/monitor.py
from __future__ import annotations

from fastapi import APIRouter, Query, Request

from quotewatch.scheduler import MonitoringScheduler
from quotewatch.schemas import (
    QuoteRecord,
    RefreshRequest,
    StartMonitoringRequest,
    StartMonitoringResponse,
)

router = APIRouter(tags=["monitor"])


def _scheduler(request: Request) -> MonitoringScheduler:
    return request.app.state.scheduler


@router.post("/start-monitoring", response_model=StartMonitoringResponse)
async def start_monitoring(request: Request, body: StartMonitoringRequest | None = None):
    """
    Poll `symbol` every `minutes*60 + seconds` seconds. A second call for the same
    symbol replaces the running job (new interval, fresh schedule).
    """
    body = body or StartMonitoringRequest()
    interval = body.minutes * 60 + body.seconds
    sym = _scheduler(request).start_monitoring(body.symbol, interval)
    return StartMonitoringResponse(symbol=sym)


@router.get("/history", response_model=list[QuoteRecord])
def history(request: Request, symbol: str | None = Query(None, description="Ticker (e.g., AAPL)")):
    return _scheduler(request).get_history(symbol)


@router.post("/refresh", response_model=QuoteRecord)
async def refresh(request: Request, body: RefreshRequest | None = None):
    body = body or RefreshRequest()
    return await _scheduler(request).refresh(body.symbol)
