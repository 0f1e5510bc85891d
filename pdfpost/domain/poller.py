from __future__ import annotations

from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
import logging

from pdfpost.domain.contracts import CandidateFeed, LedgerStore
from pdfpost.domain.jde_time import adjust_by_minutes
from pdfpost.domain.models import JobCandidate, LedgerEntry, PollMarker

logger = logging.getLogger("runtime")


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


def parse_allow_list(raw: str | None) -> frozenset[str]:
    if not raw:
        return frozenset()
    return frozenset(item.strip() for item in raw.split(",") if item.strip())


def matches_allow_list(candidate: JobCandidate, allow_list: frozenset[str]) -> bool:
    return candidate.job_name in allow_list


def compute_marker(
    latest: LedgerEntry | None,
    *,
    clock_skew_minutes: int,
    initial_lookback_minutes: int,
    now: datetime,
) -> PollMarker:
    """Lower bound for the feed query.

    The newest ledger timestamp is moved back by the clock skew so that a file
    completing while the previous scan ran is still picked up. An empty ledger
    starts ``initial_lookback_minutes`` in the past.
    """
    if latest is None:
        base = now
        offset = -initial_lookback_minutes
    else:
        base = latest.written_at
        offset = -clock_skew_minutes
    jde_date, jde_time = adjust_by_minutes(base, offset)
    return PollMarker(at=base + timedelta(minutes=offset), jde_date=jde_date, jde_time=jde_time)


@dataclass
class Poller:
    feed: CandidateFeed
    ledger: LedgerStore
    action: str
    config_id: str
    static_allow_list: frozenset[str] = frozenset()
    clock_skew_minutes: int = 5
    initial_lookback_minutes: int = 1440
    clock: Callable[[], datetime] = _utcnow
    lookup_batch_size: int = 50
    previous_first: str | None = field(default=None, init=False)

    async def current_marker(self) -> PollMarker:
        latest = await self.ledger.latest_entry(action=self.action)
        return compute_marker(
            latest,
            clock_skew_minutes=self.clock_skew_minutes,
            initial_lookback_minutes=self.initial_lookback_minutes,
            now=self.clock(),
        )

    async def allow_list(self) -> frozenset[str]:
        if self.static_allow_list:
            return self.static_allow_list
        return await self.feed.allowed_job_types(config_id=self.config_id)

    async def next_batch(self, marker: PollMarker) -> AsyncIterator[JobCandidate]:
        """Yield unprocessed, allow-listed candidates in arrival order.

        The sequence is lazy: every call issues a fresh feed query, so a
        drained or abandoned batch is restarted by calling again. Candidates
        are checked against the ledger ``lookup_batch_size`` at a time.
        """
        allow_list = await self.allow_list()
        if not allow_list:
            logger.warning("allow-list is empty", extra={"action": self.action, "detail": self.config_id})
            return

        first = True
        pending: list[JobCandidate] = []
        async for candidate in self.feed.query_candidates_since(marker=marker, allow_list=allow_list):
            if not matches_allow_list(candidate, allow_list):
                continue
            if first:
                first = False
                self._note_first(candidate)
            pending.append(candidate)
            if len(pending) >= self.lookup_batch_size:
                for unprocessed in await self._drop_processed(pending):
                    yield unprocessed
                pending = []
        for unprocessed in await self._drop_processed(pending):
            yield unprocessed

    async def _drop_processed(self, candidates: list[JobCandidate]) -> list[JobCandidate]:
        if not candidates:
            return []
        done = await self.ledger.processed_among(
            file_ids=[candidate.file_id for candidate in candidates],
            action=self.action,
        )
        return [candidate for candidate in candidates if candidate.file_id not in done]

    def _note_first(self, candidate: JobCandidate) -> None:
        if candidate.file_id != self.previous_first:
            logger.info(
                "change detected",
                extra={"file_id": candidate.file_id, "action": self.action, "detail": self.previous_first},
            )
        self.previous_first = candidate.file_id
