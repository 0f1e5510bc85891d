from __future__ import annotations

from collections.abc import AsyncIterator, Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import timedelta
from typing import Any

import asyncpg

from pdfpost.domain.errors import InfrastructureError
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
from pdfpost.repositories.sql_loader import load_sql


SQL_CLAIM_ACQUIRE = load_sql("claim_acquire.sql")
SQL_CLAIM_OWNER = load_sql("claim_owner.sql")
SQL_CLAIM_RELEASE = load_sql("claim_release.sql")
SQL_CLAIM_RECLAIM_STALE = load_sql("claim_reclaim_stale.sql")
SQL_CLAIM_RELEASE_HELD_BY = load_sql("claim_release_held_by.sql")
SQL_LEDGER_HAS_PROCESSED = load_sql("ledger_has_processed.sql")
SQL_LEDGER_PROCESSED_AMONG = load_sql("ledger_processed_among.sql")
SQL_LEDGER_RECORD = load_sql("ledger_record.sql")
SQL_LEDGER_GET = load_sql("ledger_get.sql")
SQL_LEDGER_LATEST = load_sql("ledger_latest.sql")
SQL_LEDGER_LIST = load_sql("ledger_list.sql")
SQL_FEED_CANDIDATES_PAGE = load_sql("feed_candidates_page.sql")
SQL_FEED_ALLOWED_JOB_TYPES = load_sql("feed_allowed_job_types.sql")
SQL_MAIL_OPTIONS = load_sql("mail_options.sql")

MAIL_CONFIG_ID = "PDFMAILER"

_STORE_ERRORS = (OSError, TimeoutError, asyncpg.PostgresError, asyncpg.InterfaceError)


@contextmanager
def _store_errors(operation: str) -> Iterator[None]:
    try:
        yield
    except _STORE_ERRORS as exc:
        raise InfrastructureError(f"{operation} failed: {exc}") from exc


@dataclass
class AsyncpgPoolManager:
    dsn: str
    min_size: int = 1
    max_size: int = 5
    pool: Any | None = None

    async def startup(self) -> None:
        with _store_errors("postgres connect"):
            self.pool = await asyncpg.create_pool(dsn=self.dsn, min_size=self.min_size, max_size=self.max_size)

    async def shutdown(self) -> None:
        if self.pool is None:
            return
        await self.pool.close()
        self.pool = None

    def get(self) -> Any:
        if self.pool is None:
            raise RuntimeError("postgres pool is not initialized")
        return self.pool


@dataclass
class PostgresClaimStore:
    pool_manager: AsyncpgPoolManager

    async def acquire(self, *, file_id: str, holder_id: str, process_kind: str) -> Claim | AlreadyClaimed:
        pool = self.pool_manager.get()
        with _store_errors("claim acquire"):
            async with pool.acquire() as conn:
                row = await conn.fetchrow(SQL_CLAIM_ACQUIRE, file_id, holder_id, process_kind)
                if row is None:
                    owner = await conn.fetchval(SQL_CLAIM_OWNER, file_id)
                    return AlreadyClaimed(file_id=file_id, holder_id=owner)
        return _claim_from_row(row)

    async def release(self, *, file_id: str, holder_id: str) -> bool:
        pool = self.pool_manager.get()
        with _store_errors("claim release"):
            async with pool.acquire() as conn:
                row = await conn.fetchrow(SQL_CLAIM_RELEASE, file_id, holder_id)
        return row is not None

    async def reclaim_stale(self, *, older_than: timedelta) -> list[Claim]:
        pool = self.pool_manager.get()
        with _store_errors("claim reclaim"):
            async with pool.acquire() as conn:
                rows = await conn.fetch(SQL_CLAIM_RECLAIM_STALE, older_than.total_seconds())
        return [_claim_from_row(row) for row in rows]

    async def release_held_by(self, *, holder_id: str) -> int:
        pool = self.pool_manager.get()
        with _store_errors("claim release by holder"):
            async with pool.acquire() as conn:
                rows = await conn.fetch(SQL_CLAIM_RELEASE_HELD_BY, holder_id)
        return len(rows)


@dataclass
class PostgresLedgerStore:
    pool_manager: AsyncpgPoolManager

    async def has_processed(self, *, file_id: str, action: str) -> bool:
        pool = self.pool_manager.get()
        with _store_errors("ledger lookup"):
            async with pool.acquire() as conn:
                exists = await conn.fetchval(SQL_LEDGER_HAS_PROCESSED, file_id, action)
        return bool(exists)

    async def processed_among(self, *, file_ids: Sequence[str], action: str) -> set[str]:
        if not file_ids:
            return set()
        pool = self.pool_manager.get()
        with _store_errors("ledger lookup"):
            async with pool.acquire() as conn:
                rows = await conn.fetch(SQL_LEDGER_PROCESSED_AMONG, action, list(file_ids))
        return {row["file_id"] for row in rows}

    async def record(self, *, file_id: str, gen_key: str, holder_id: str, action: str) -> LedgerEntry:
        pool = self.pool_manager.get()
        with _store_errors("ledger write"):
            async with pool.acquire() as conn:
                row = await conn.fetchrow(SQL_LEDGER_RECORD, file_id, gen_key, holder_id, action)
                if row is None:
                    row = await conn.fetchrow(SQL_LEDGER_GET, file_id, action, gen_key)
        if row is None:
            raise InfrastructureError(f"ledger write for {file_id} returned no row")
        return _entry_from_row(row)

    async def latest_entry(self, *, action: str) -> LedgerEntry | None:
        pool = self.pool_manager.get()
        with _store_errors("ledger latest"):
            async with pool.acquire() as conn:
                row = await conn.fetchrow(SQL_LEDGER_LATEST, action, STARTUP_FILE_ID)
        return _entry_from_row(row) if row is not None else None

    async def list_entries(self, *, file_id: str) -> list[LedgerEntry]:
        pool = self.pool_manager.get()
        with _store_errors("ledger list"):
            async with pool.acquire() as conn:
                rows = await conn.fetch(SQL_LEDGER_LIST, file_id)
        return [_entry_from_row(row) for row in rows]

    async def record_startup(self, *, holder_id: str, process_name: str) -> None:
        pool = self.pool_manager.get()
        with _store_errors("ledger startup write"):
            async with pool.acquire() as conn:
                started_at = await conn.fetchval("SELECT now()")
                await conn.fetchrow(
                    SQL_LEDGER_RECORD,
                    STARTUP_FILE_ID,
                    f"{process_name} {started_at.isoformat()}",
                    holder_id,
                    STARTUP_ACTION,
                )


@dataclass
class PostgresCandidateFeed:
    pool_manager: AsyncpgPoolManager
    page_size: int = 50

    async def query_candidates_since(
        self,
        *,
        marker: PollMarker,
        allow_list: frozenset[str],
    ) -> AsyncIterator[JobCandidate]:
        # Keyset pages keep each query short instead of holding a cursor
        # open while candidates are being processed.
        pool = self.pool_manager.get()
        programs = sorted(allow_list)
        after: tuple[int, int, str] = (0, 0, "")
        while True:
            with _store_errors("feed query"):
                async with pool.acquire() as conn:
                    rows = await conn.fetch(
                        SQL_FEED_CANDIDATES_PAGE,
                        marker.jde_date,
                        programs,
                        after[0],
                        after[1],
                        after[2],
                        self.page_size,
                    )
            for row in rows:
                yield JobCandidate(
                    file_id=row["file_id"],
                    created_date=row["created_date"],
                    created_time=row["created_time"],
                    process_id=row["process_id"],
                )
            if len(rows) < self.page_size:
                return
            last = rows[-1]
            after = (last["created_date"], last["created_time"], last["file_id"])

    async def allowed_job_types(self, *, config_id: str) -> frozenset[str]:
        pool = self.pool_manager.get()
        with _store_errors("allow-list query"):
            async with pool.acquire() as conn:
                rows = await conn.fetch(SQL_FEED_ALLOWED_JOB_TYPES, config_id)
        return frozenset(row["program"] for row in rows if row["program"])


@dataclass
class PostgresMailConfigSource:
    pool_manager: AsyncpgPoolManager
    config_id: str = MAIL_CONFIG_ID

    async def fetch_mail_options(self, *, report_name: str, version_name: str) -> list[MailOption]:
        pool = self.pool_manager.get()
        with _store_errors("mail config query"):
            async with pool.acquire() as conn:
                rows = await conn.fetch(SQL_MAIL_OPTIONS, self.config_id, report_name, version_name or DEFAULT_VERSION)
        return [
            MailOption(option_type=row["option_type"].strip(), value=row["option_value"].strip())
            for row in rows
        ]


def _claim_from_row(row: Any) -> Claim:
    return Claim(
        file_id=row["file_id"],
        holder_id=row["holder_id"],
        acquired_at=row["acquired_at"],
        process_kind=row["process_kind"],
    )


def _entry_from_row(row: Any) -> LedgerEntry:
    return LedgerEntry(
        file_id=row["file_id"],
        gen_key=row["gen_key"],
        holder_id=row["holder_id"],
        action=row["action"],
        written_at=row["written_at"],
    )
