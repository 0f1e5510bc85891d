from __future__ import annotations

from contextlib import asynccontextmanager
import asyncio
from collections.abc import Awaitable, Callable
import logging

from fastapi import FastAPI, HTTPException

from pdfpost.api.schemas import (
    ErrorResponse,
    HealthResponse,
    LedgerEntriesResponse,
    LedgerEntryResponse,
    ReadyResponse,
    WorkerMetrics,
)
from pdfpost.domain.contracts import LedgerStore
from pdfpost.domain.errors import InfrastructureError
from pdfpost.workers.loop import WorkerLoop
from pdfpost.workers.runner import (
    WorkerRuntimeSettings,
    WorkerRuntimeState,
    run_worker_until_stopped,
    worker_runtime_settings_from_env,
)


def build_app(
    role: str,
    run_id: str,
    holder_id: str,
    ledger: LedgerStore,
    worker_loop: WorkerLoop | None = None,
    worker_runtime_settings: WorkerRuntimeSettings | None = None,
    mode: str = "skeleton",
    on_startup: Callable[[], Awaitable[None]] | None = None,
    on_shutdown: Callable[[], Awaitable[None]] | None = None,
) -> FastAPI:
    logger = logging.getLogger("runtime")
    worker_state: WorkerRuntimeState | None = None
    worker_task: asyncio.Task[None] | None = None

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        nonlocal worker_task, worker_state
        del app
        stop_event: asyncio.Event | None = None

        logger.info(
            "role started",
            extra={"role": role, "service": role, "run_id": run_id, "holder_id": holder_id},
        )

        if on_startup is not None:
            await on_startup()

        if worker_loop is not None:
            settings = worker_runtime_settings or worker_runtime_settings_from_env()
            worker_state = WorkerRuntimeState()
            stop_event = asyncio.Event()
            worker_task = asyncio.create_task(
                run_worker_until_stopped(
                    worker_loop=worker_loop,
                    role=role,
                    run_id=run_id,
                    stop_event=stop_event,
                    settings=settings,
                    logger=logger,
                    state=worker_state,
                )
            )

        yield

        # The loop only observes the stop event between scans, so an
        # in-flight pipeline finishes and releases its claim first.
        if stop_event is not None and worker_task is not None:
            stop_event.set()
            await worker_task

        if on_shutdown is not None:
            await on_shutdown()

        logger.info(
            "role stopped",
            extra={"role": role, "service": role, "run_id": run_id, "holder_id": holder_id},
        )

    app = FastAPI(title="pdfpost", version="0.1.0", lifespan=lifespan)

    @app.get("/health", response_model=HealthResponse, tags=["System"])
    async def health() -> HealthResponse:
        return HealthResponse(status="ok", role=role, holder_id=holder_id, mode=mode)

    @app.get("/ready", response_model=ReadyResponse, tags=["System"])
    async def ready() -> ReadyResponse:
        worker_loop_enabled = worker_loop is not None
        worker_loop_ready = True
        state = WorkerRuntimeState()
        if worker_loop_enabled:
            worker_loop_ready = (
                worker_state is not None
                and worker_state.started
                and worker_task is not None
                and not worker_task.done()
            )
            if worker_state is not None:
                state = worker_state

        return ReadyResponse(
            status="ready",
            role=role,
            holder_id=holder_id,
            mode=mode,
            worker_loop_enabled=worker_loop_enabled,
            worker_loop_ready=worker_loop_ready,
            worker_metrics=WorkerMetrics(
                started=state.started,
                stopped=state.stopped,
                ticks_total=state.ticks_total,
                candidates_total=state.candidates_total,
                succeeded_total=state.succeeded_total,
                failed_total=state.failed_total,
                already_claimed_total=state.already_claimed_total,
                already_done_total=state.already_done_total,
                errors_total=state.errors_total,
            ),
        )

    @app.get(
        "/ledger/{file_id}",
        response_model=LedgerEntriesResponse,
        responses={404: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
        tags=["Ledger"],
    )
    async def ledger_entries(file_id: str) -> LedgerEntriesResponse:
        try:
            entries = await ledger.list_entries(file_id=file_id.strip())
        except InfrastructureError as exc:
            raise HTTPException(status_code=503, detail=str(exc)) from exc
        if not entries:
            raise HTTPException(status_code=404, detail=f"no ledger entries for {file_id}")
        return LedgerEntriesResponse(
            file_id=file_id.strip(),
            items=[
                LedgerEntryResponse(
                    file_id=entry.file_id,
                    gen_key=entry.gen_key,
                    holder_id=entry.holder_id,
                    action=entry.action,
                    written_at=entry.written_at,
                )
                for entry in entries
            ],
        )

    return app
