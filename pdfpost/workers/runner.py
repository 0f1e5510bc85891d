from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from pdfpost.config import env_int
from pdfpost.domain.models import CandidateOutcome
from pdfpost.workers.loop import WorkerLoop


@dataclass(frozen=True)
class WorkerRuntimeSettings:
    poll_interval_ms: int = 3000
    error_backoff_ms: int = 5000
    claim_stale_seconds: int = 900
    step_timeout_seconds: int = 300
    run_timeout_seconds: int = 600
    clock_skew_minutes: int = 5
    initial_lookback_minutes: int = 1440


@dataclass
class WorkerRuntimeState:
    started: bool = False
    stopped: bool = False
    ticks_total: int = 0
    candidates_total: int = 0
    succeeded_total: int = 0
    failed_total: int = 0
    already_claimed_total: int = 0
    already_done_total: int = 0
    errors_total: int = 0


def worker_runtime_settings_from_env() -> WorkerRuntimeSettings:
    return WorkerRuntimeSettings(
        poll_interval_ms=env_int("WORKER_POLL_INTERVAL_MS", 3000),
        error_backoff_ms=env_int("WORKER_ERROR_BACKOFF_MS", 5000),
        claim_stale_seconds=env_int("PDFPOST_CLAIM_STALE_SECONDS", 900),
        step_timeout_seconds=env_int("PDFPOST_STEP_TIMEOUT_SECONDS", 300),
        run_timeout_seconds=env_int("PDFPOST_RUN_TIMEOUT_SECONDS", 600),
        clock_skew_minutes=env_int("PDFPOST_CLOCK_SKEW_MINUTES", 5),
        initial_lookback_minutes=env_int("PDFPOST_INITIAL_LOOKBACK_MINUTES", 1440),
    )


async def run_worker_until_stopped(
    *,
    worker_loop: WorkerLoop,
    role: str,
    run_id: str,
    stop_event: asyncio.Event,
    settings: WorkerRuntimeSettings,
    logger: logging.Logger,
    state: WorkerRuntimeState | None = None,
) -> None:
    if state is not None:
        state.started = True

    logger.info(
        "worker loop started",
        extra={"role": role, "service": role, "run_id": run_id, "holder_id": worker_loop.holder_id},
    )

    try:
        await worker_loop.announce_startup()
    except Exception:
        logger.exception(
            "worker startup announcement failed",
            extra={"role": role, "service": role, "run_id": run_id, "holder_id": worker_loop.holder_id},
        )

    while not stop_event.is_set():
        delay_ms = settings.poll_interval_ms
        try:
            summary = await worker_loop.run_once()
            if state is not None:
                state.ticks_total += 1
                state.candidates_total += summary.candidates_total
                state.succeeded_total += summary.outcomes[CandidateOutcome.SUCCEEDED]
                state.failed_total += summary.outcomes[CandidateOutcome.FAILED]
                state.already_claimed_total += summary.outcomes[CandidateOutcome.ALREADY_CLAIMED]
                state.already_done_total += summary.outcomes[CandidateOutcome.ALREADY_DONE]
            logger.info(
                "worker tick",
                extra={
                    "role": role,
                    "service": role,
                    "run_id": run_id,
                    "action": worker_loop.action,
                    "detail": f"{summary.candidates_total} candidates",
                },
            )
        except Exception:
            if state is not None:
                state.ticks_total += 1
                state.errors_total += 1
            delay_ms = settings.error_backoff_ms
            logger.exception(
                "worker tick error",
                extra={"role": role, "service": role, "run_id": run_id, "action": worker_loop.action},
            )

        try:
            await asyncio.wait_for(stop_event.wait(), timeout=delay_ms / 1000)
        except TimeoutError:
            continue

    logger.info(
        "worker loop stopped",
        extra={"role": role, "service": role, "run_id": run_id, "holder_id": worker_loop.holder_id},
    )
    if state is not None:
        state.stopped = True
