from __future__ import annotations

from collections.abc import AsyncIterator, Sequence
from datetime import timedelta
from email.message import EmailMessage
from pathlib import Path
from typing import Protocol, runtime_checkable

from pdfpost.domain.models import AlreadyClaimed, Claim, JobCandidate, LedgerEntry, MailOption, PollMarker


CLAIM_SQL_CONTRACT = "INSERT ... ON CONFLICT (file_id) DO NOTHING"


@runtime_checkable
class ClaimStore(Protocol):
    """Exclusive per-file ownership shared by all worker processes.

    Exclusivity must come from the backing store's per-key uniqueness
    (insert-if-absent / delete-if-match), never from in-process locks.
    """

    async def acquire(self, *, file_id: str, holder_id: str, process_kind: str) -> Claim | AlreadyClaimed: ...

    async def release(self, *, file_id: str, holder_id: str) -> bool: ...

    async def reclaim_stale(self, *, older_than: timedelta) -> list[Claim]: ...

    async def release_held_by(self, *, holder_id: str) -> int: ...


@runtime_checkable
class LedgerStore(Protocol):
    """Append-only record of completed work, the source of truth for idempotence."""

    async def has_processed(self, *, file_id: str, action: str) -> bool: ...

    async def processed_among(self, *, file_ids: Sequence[str], action: str) -> set[str]: ...

    async def record(self, *, file_id: str, gen_key: str, holder_id: str, action: str) -> LedgerEntry: ...

    async def latest_entry(self, *, action: str) -> LedgerEntry | None: ...

    async def list_entries(self, *, file_id: str) -> list[LedgerEntry]: ...

    async def record_startup(self, *, holder_id: str, process_name: str) -> None: ...


@runtime_checkable
class CandidateFeed(Protocol):
    def query_candidates_since(
        self,
        *,
        marker: PollMarker,
        allow_list: frozenset[str],
    ) -> AsyncIterator[JobCandidate]: ...

    async def allowed_job_types(self, *, config_id: str) -> frozenset[str]: ...


@runtime_checkable
class MailConfigSource(Protocol):
    async def fetch_mail_options(self, *, report_name: str, version_name: str) -> list[MailOption]: ...


@runtime_checkable
class StampTool(Protocol):
    async def stamp(self, *, input_path: Path, output_path: Path) -> None: ...


@runtime_checkable
class MailTransport(Protocol):
    async def send(self, message: EmailMessage) -> None: ...


@runtime_checkable
class FileOps(Protocol):
    async def make_dirs(self, path: Path) -> None: ...

    async def copy(self, src: Path, dst: Path) -> None: ...

    async def replace(self, src: Path, dst: Path) -> None: ...

    async def read_bytes(self, path: Path) -> bytes: ...

    async def exists(self, path: Path) -> bool: ...
