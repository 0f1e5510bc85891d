from __future__ import annotations

from dataclasses import dataclass
import logging

from pdfpost.domain.claims import release_claim
from pdfpost.domain.contracts import ClaimStore, LedgerStore
from pdfpost.domain.models import AlreadyClaimed, CandidateOutcome, JobCandidate, RunOutcome
from pdfpost.domain.pipeline import PipelineRunner

logger = logging.getLogger("runtime")


@dataclass
class Coordinator:
    """Drives one candidate through Seen -> Claimed -> (AlreadyDone | Running) -> Released."""

    holder_id: str
    process_kind: str
    claim_store: ClaimStore
    ledger: LedgerStore
    runner: PipelineRunner

    async def handle(self, candidate: JobCandidate) -> CandidateOutcome:
        acquired = await self.claim_store.acquire(
            file_id=candidate.file_id,
            holder_id=self.holder_id,
            process_kind=self.process_kind,
        )
        if isinstance(acquired, AlreadyClaimed):
            logger.info(
                "already claimed",
                extra={
                    "file_id": candidate.file_id,
                    "holder_id": self.holder_id,
                    "outcome": CandidateOutcome.ALREADY_CLAIMED.value,
                    "detail": acquired.holder_id,
                },
            )
            return CandidateOutcome.ALREADY_CLAIMED

        claim = acquired
        logger.info(
            "claim acquired",
            extra={"file_id": candidate.file_id, "holder_id": self.holder_id, "action": self.runner.action},
        )

        # Checked only once the claim is held: a previous holder may have
        # written the ledger entry and died before releasing its claim.
        try:
            processed = await self.ledger.has_processed(file_id=candidate.file_id, action=self.runner.action)
        except Exception:
            await release_claim(self.claim_store, claim)
            raise

        if processed:
            logger.info(
                "already processed - releasing claim",
                extra={
                    "file_id": candidate.file_id,
                    "holder_id": self.holder_id,
                    "action": self.runner.action,
                    "outcome": CandidateOutcome.ALREADY_DONE.value,
                },
            )
            await release_claim(self.claim_store, claim)
            return CandidateOutcome.ALREADY_DONE

        run = await self.runner.run(candidate, claim)
        if run.outcome == RunOutcome.SUCCEEDED:
            return CandidateOutcome.SUCCEEDED
        return CandidateOutcome.FAILED
