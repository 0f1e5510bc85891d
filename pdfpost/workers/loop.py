from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import timedelta
import logging

from pdfpost.domain.contracts import ClaimStore, LedgerStore
from pdfpost.domain.coordinator import Coordinator
from pdfpost.domain.errors import ConfigurationError, DomainInvariantError
from pdfpost.domain.models import CandidateOutcome
from pdfpost.domain.poller import Poller

logger = logging.getLogger("runtime")


@dataclass
class ScanSummary:
    outcomes: Counter[CandidateOutcome] = field(default_factory=Counter)

    def add(self, outcome: CandidateOutcome) -> None:
        self.outcomes[outcome] += 1

    @property
    def candidates_total(self) -> int:
        return sum(self.outcomes.values())


@dataclass
class WorkerLoop:
    role: str
    holder_id: str
    poller: Poller
    coordinator: Coordinator
    claim_store: ClaimStore
    ledger: LedgerStore
    claim_stale_seconds: int = 900
    _scan_active: bool = field(default=False, init=False, repr=False)

    def __post_init__(self) -> None:
        # A claim must outlive the longest run it can cover.
        run_timeout = self.coordinator.runner.run_timeout_seconds
        if run_timeout >= self.claim_stale_seconds:
            raise ConfigurationError(
                f"run timeout {run_timeout:g}s must be shorter than the stale claim age {self.claim_stale_seconds}s"
            )

    @property
    def action(self) -> str:
        return self.coordinator.runner.action

    async def announce_startup(self) -> None:
        # A freshly started process cannot be mid-pipeline, so any claim still
        # recorded under this holder was left behind by a previous crash.
        dropped = await self.claim_store.release_held_by(holder_id=self.holder_id)
        await self.ledger.record_startup(holder_id=self.holder_id, process_name=self.role)
        logger.info(
            "start monitoring",
            extra={"role": self.role, "holder_id": self.holder_id, "detail": f"{dropped} leftover claims dropped"},
        )

    async def reclaim_stale_claims(self) -> int:
        reclaimed = await self.claim_store.reclaim_stale(older_than=timedelta(seconds=self.claim_stale_seconds))
        for claim in reclaimed:
            logger.warning(
                "stale claim reclaimed",
                extra={
                    "file_id": claim.file_id,
                    "holder_id": claim.holder_id,
                    "detail": f"acquired at {claim.acquired_at.isoformat()}",
                },
            )
        return len(reclaimed)

    async def run_once(self) -> ScanSummary:
        """Run one full scan, handling every candidate before returning."""
        if self._scan_active:
            raise DomainInvariantError("a scan is already in progress for this worker")
        self._scan_active = True
        try:
            await self.reclaim_stale_claims()
            marker = await self.poller.current_marker()
            summary = ScanSummary()
            async for candidate in self.poller.next_batch(marker):
                summary.add(await self.coordinator.handle(candidate))
            return summary
        finally:
            self._scan_active = False
