from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    detail: str


class WorkerMetrics(BaseModel):
    started: bool
    stopped: bool
    ticks_total: int
    candidates_total: int
    succeeded_total: int
    failed_total: int
    already_claimed_total: int
    already_done_total: int
    errors_total: int


class HealthResponse(BaseModel):
    status: str
    role: str
    holder_id: str
    mode: str


class ReadyResponse(BaseModel):
    status: str
    role: str
    holder_id: str
    mode: str
    worker_loop_enabled: bool
    worker_loop_ready: bool
    worker_metrics: WorkerMetrics


class LedgerEntryResponse(BaseModel):
    file_id: str
    gen_key: str
    holder_id: str
    action: str
    written_at: datetime


class LedgerEntriesResponse(BaseModel):
    file_id: str = Field(min_length=1, max_length=256)
    items: list[LedgerEntryResponse]
