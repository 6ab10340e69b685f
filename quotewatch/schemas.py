from datetime import datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr


# --- Quote record (what the history store holds) ---
class QuoteRecord(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    symbol: str
    open: float | None = None
    high: float | None = None
    low: float | None = None
    close: float | None = None
    previous_close: float | None = Field(default=None, alias="previousClose")
    fetched_at: datetime = Field(alias="fetchedAt")


# --- Inbound payloads ---
# Fields are optional at the schema level so a missing symbol reaches the
# scheduler and fails as INVALID_INPUT rather than a framework error.
class StartMonitoringRequest(BaseModel):
    symbol: StrictStr | None = None
    minutes: StrictInt = Field(default=0, ge=0)
    seconds: StrictInt = Field(default=0, ge=0)


class RefreshRequest(BaseModel):
    symbol: StrictStr | None = None


class StartMonitoringResponse(BaseModel):
    message: str = "Monitoring started"
    symbol: str


# --- Health / version payloads ---
class JobStatus(BaseModel):
    symbol: str
    interval_s: float
    started_at: datetime
    ticks_fired: int


class HealthResponse(BaseModel):
    status: Literal["ok"] = "ok"
    as_of: str
    service: str = "quotewatch"
    monitored: list[str] = Field(default_factory=list)
    jobs: list[JobStatus] = Field(default_factory=list)
    inflight_ticks: int = 0
    history_symbols: list[str] = Field(default_factory=list)


class VersionResponse(BaseModel):
    service: str  # "quotewatch:0.1.0"
    build_time: str  # UTC ISO


# --- Error taxonomy ---
class ErrorCode(str, Enum):
    INVALID_INPUT = "INVALID_INPUT"
    INVALID_INTERVAL = "INVALID_INTERVAL"
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    TRANSPORT_ERROR = "TRANSPORT_ERROR"
    UNKNOWN_SYMBOL = "UNKNOWN_SYMBOL"
    UPSTREAM_PARSE_ERROR = "UPSTREAM_PARSE_ERROR"
    NOT_FOUND = "NOT_FOUND"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class ErrorDetail(BaseModel):
    code: ErrorCode
    message: str
    hint: str | None = None


class ErrorResponse(BaseModel):
    error: ErrorDetail
