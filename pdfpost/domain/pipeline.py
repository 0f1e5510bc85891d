from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass
import logging

from pdfpost.domain.claims import held_claim
from pdfpost.domain.contracts import ClaimStore, LedgerStore
from pdfpost.domain.errors import DomainInvariantError
from pdfpost.domain.models import Claim, JobCandidate, PipelineRun, RunOutcome, StepResult

StepFn = Callable[[PipelineRun], Awaitable[Mapping[str, object] | None]]
logger = logging.getLogger("runtime")


@dataclass(frozen=True)
class PipelineStep:
    name: str
    run: StepFn


@dataclass
class PipelineRunner:
    """Runs an ordered step list for one claimed candidate.

    Steps run strictly in sequence and the first failure aborts the rest.
    Finalization happens exactly once per run: on success the ledger entry is
    written, then the claim is released whatever the outcome. A failed run
    leaves no ledger entry, so the next poll offers the file again.

    ``run_timeout_seconds`` bounds the whole step sequence. It must stay below
    the stale-claim age, otherwise another worker could reclaim a live claim.
    """

    action: str
    steps: Sequence[PipelineStep]
    ledger: LedgerStore
    claim_store: ClaimStore
    step_timeout_seconds: float = 300.0
    run_timeout_seconds: float = 600.0

    async def run(self, candidate: JobCandidate, claim: Claim) -> PipelineRun:
        if claim.file_id != candidate.file_id:
            raise DomainInvariantError(f"claim for {claim.file_id} does not cover {candidate.file_id}")

        run = PipelineRun(candidate=candidate, claim=claim)
        async with held_claim(self.claim_store, claim):
            try:
                await asyncio.wait_for(self._run_steps(run), timeout=self.run_timeout_seconds)
            except TimeoutError:
                self._fail(run, run.active_step or "pipeline", f"run timed out after {self.run_timeout_seconds:g}s")
            if run.outcome == RunOutcome.SUCCEEDED:
                await self.ledger.record(
                    file_id=candidate.file_id,
                    gen_key=candidate.gen_key,
                    holder_id=claim.holder_id,
                    action=self.action,
                )
                logger.info(
                    "ledger entry written",
                    extra={"file_id": candidate.file_id, "holder_id": claim.holder_id, "action": self.action},
                )

        if run.outcome == RunOutcome.SUCCEEDED:
            logger.info(
                "processing complete",
                extra={"file_id": candidate.file_id, "action": self.action, "outcome": run.outcome.value},
            )
        else:
            failed = run.failed_step
            logger.warning(
                "processing failed - will retry",
                extra={
                    "file_id": candidate.file_id,
                    "action": self.action,
                    "outcome": RunOutcome.FAILED.value,
                    "step": failed.name if failed else None,
                    "detail": failed.detail if failed else None,
                },
            )
        return run

    async def _run_steps(self, run: PipelineRun) -> None:
        for step in self.steps:
            run.active_step = step.name
            try:
                output = await asyncio.wait_for(step.run(run), timeout=self.step_timeout_seconds)
            except TimeoutError:
                detail = f"timed out after {self.step_timeout_seconds:g}s"
            except Exception as exc:
                detail = str(exc) or type(exc).__name__
            else:
                if output:
                    run.context.update(output)
                run.step_results.append(StepResult(name=step.name, ok=True))
                logger.info(
                    "step done",
                    extra={"file_id": run.candidate.file_id, "action": self.action, "step": step.name},
                )
                continue

            self._fail(run, step.name, detail)
            return

        run.active_step = None
        run.outcome = RunOutcome.SUCCEEDED

    def _fail(self, run: PipelineRun, step_name: str, detail: str) -> None:
        run.active_step = None
        run.step_results.append(StepResult(name=step_name, ok=False, detail=detail))
        run.outcome = RunOutcome.FAILED
        logger.warning(
            "step failed",
            extra={"file_id": run.candidate.file_id, "action": self.action, "step": step_name, "detail": detail},
        )
