from __future__ import annotations

from collections.abc import AsyncIterator, Callable, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

from pdfpost.domain.mail_options import DEFAULT_VERSION
from pdfpost.domain.models import (
    STARTUP_ACTION,
    STARTUP_FILE_ID,
    AlreadyClaimed,
    Claim,
    JobCandidate,
    LedgerEntry,
    MailOption,
    PollMarker,
)


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


@dataclass
class InMemoryClaimStore:
    """Non-network claim store with deterministic behavior for skeleton mode.

    Every mutation completes without awaiting, so within one event loop the
    insert-if-absent and delete-if-match checks are atomic.
    """

    clock: Callable[[], datetime] = _utcnow
    claims: dict[str, Claim] = field(default_factory=dict)
    acquire_calls: list[tuple[str, str]] = field(default_factory=list)
    release_calls: list[tuple[str, str]] = field(default_factory=list)

    async def acquire(self, *, file_id: str, holder_id: str, process_kind: str) -> Claim | AlreadyClaimed:
        self.acquire_calls.append((file_id, holder_id))
        existing = self.claims.get(file_id)
        if existing is not None:
            return AlreadyClaimed(file_id=file_id, holder_id=existing.holder_id)
        claim = Claim(file_id=file_id, holder_id=holder_id, acquired_at=self.clock(), process_kind=process_kind)
        self.claims[file_id] = claim
        return claim

    async def release(self, *, file_id: str, holder_id: str) -> bool:
        self.release_calls.append((file_id, holder_id))
        existing = self.claims.get(file_id)
        if existing is None or existing.holder_id != holder_id:
            return False
        del self.claims[file_id]
        return True

    async def reclaim_stale(self, *, older_than: timedelta) -> list[Claim]:
        cutoff = self.clock() - older_than
        stale = [claim for claim in self.claims.values() if claim.acquired_at < cutoff]
        for claim in stale:
            del self.claims[claim.file_id]
        return stale

    async def release_held_by(self, *, holder_id: str) -> int:
        held = [file_id for file_id, claim in self.claims.items() if claim.holder_id == holder_id]
        for file_id in held:
            del self.claims[file_id]
        return len(held)


@dataclass
class InMemoryLedgerStore:
    clock: Callable[[], datetime] = _utcnow
    entries: list[LedgerEntry] = field(default_factory=list)

    async def has_processed(self, *, file_id: str, action: str) -> bool:
        return any(entry.file_id == file_id and entry.action == action for entry in self.entries)

    async def processed_among(self, *, file_ids: Sequence[str], action: str) -> set[str]:
        wanted = set(file_ids)
        return {entry.file_id for entry in self.entries if entry.action == action and entry.file_id in wanted}

    async def record(self, *, file_id: str, gen_key: str, holder_id: str, action: str) -> LedgerEntry:
        for entry in self.entries:
            if entry.file_id == file_id and entry.action == action and entry.gen_key == gen_key:
                return entry
        entry = LedgerEntry(
            file_id=file_id,
            gen_key=gen_key,
            holder_id=holder_id,
            action=action,
            written_at=self.clock(),
        )
        self.entries.append(entry)
        return entry

    async def latest_entry(self, *, action: str) -> LedgerEntry | None:
        matching = [entry for entry in self.entries if entry.action == action and entry.file_id != STARTUP_FILE_ID]
        if not matching:
            return None
        return max(matching, key=lambda entry: entry.written_at)

    async def list_entries(self, *, file_id: str) -> list[LedgerEntry]:
        return sorted(
            (entry for entry in self.entries if entry.file_id == file_id),
            key=lambda entry: entry.written_at,
        )

    async def record_startup(self, *, holder_id: str, process_name: str) -> None:
        now = self.clock()
        self.entries.append(
            LedgerEntry(
                file_id=STARTUP_FILE_ID,
                gen_key=f"{process_name} {now.isoformat()}",
                holder_id=holder_id,
                action=STARTUP_ACTION,
                written_at=now,
            )
        )

    def count(self, *, file_id: str, action: str) -> int:
        return sum(1 for entry in self.entries if entry.file_id == file_id and entry.action == action)


@dataclass
class InMemoryCandidateFeed:
    candidates: list[JobCandidate] = field(default_factory=list)
    job_types: dict[str, frozenset[str]] = field(default_factory=dict)
    queries: list[PollMarker] = field(default_factory=list)

    async def query_candidates_since(
        self,
        *,
        marker: PollMarker,
        allow_list: frozenset[str],
    ) -> AsyncIterator[JobCandidate]:
        self.queries.append(marker)
        eligible = [
            candidate
            for candidate in self.candidates
            if candidate.created_date >= marker.jde_date and candidate.job_name in allow_list
        ]
        for candidate in sorted(eligible, key=lambda item: item.arrival_key):
            yield candidate

    async def allowed_job_types(self, *, config_id: str) -> frozenset[str]:
        return self.job_types.get(config_id, frozenset())


@dataclass
class InMemoryMailConfigSource:
    options: dict[tuple[str, str], list[MailOption]] = field(default_factory=dict)

    async def fetch_mail_options(self, *, report_name: str, version_name: str) -> list[MailOption]:
        return list(self.options.get((report_name, version_name or DEFAULT_VERSION), []))
