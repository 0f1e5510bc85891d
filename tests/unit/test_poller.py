import asyncio
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime
import logging

import pytest

from pdfpost.domain.models import JobCandidate, LedgerAction, LedgerEntry, PollMarker
from pdfpost.domain.poller import Poller, compute_marker, parse_allow_list
from pdfpost.repositories.stub import InMemoryCandidateFeed, InMemoryLedgerStore
from tests.unit.worker_seed import FakeClock

LOGO = LedgerAction.PROCESSED_LOGO.value
NOW = datetime(2015, 9, 2, 12, 0, 0)


@dataclass
class CountingLedger(InMemoryLedgerStore):
    lookups: list[list[str]] = field(default_factory=list)
    single_lookups: int = 0

    async def has_processed(self, *, file_id: str, action: str) -> bool:
        self.single_lookups += 1
        return await super().has_processed(file_id=file_id, action=action)

    async def processed_among(self, *, file_ids: Sequence[str], action: str) -> set[str]:
        self.lookups.append(list(file_ids))
        return await super().processed_among(file_ids=file_ids, action=action)


def _candidate(file_id: str, created_date: int = 115245, created_time: int = 103000) -> JobCandidate:
    return JobCandidate(file_id=file_id, created_date=created_date, created_time=created_time)


async def _collect(poller: Poller, marker: PollMarker) -> list[str]:
    return [candidate.file_id async for candidate in poller.next_batch(marker)]


@pytest.mark.unit
def test_parse_allow_list_trims_and_drops_blanks() -> None:
    assert parse_allow_list(" R5542565, R0006P ,,") == frozenset({"R5542565", "R0006P"})
    assert parse_allow_list(None) == frozenset()
    assert parse_allow_list("") == frozenset()


@pytest.mark.unit
def test_marker_for_empty_ledger_uses_initial_lookback() -> None:
    marker = compute_marker(None, clock_skew_minutes=5, initial_lookback_minutes=1440, now=NOW)

    assert marker.at == datetime(2015, 9, 1, 12, 0, 0)
    assert (marker.jde_date, marker.jde_time) == (115244, 120000)


@pytest.mark.unit
def test_marker_subtracts_clock_skew_from_latest_entry() -> None:
    latest = LedgerEntry(
        file_id="R5542565_FRZS5M10A_182678",
        gen_key="115245 103000",
        holder_id="host-A",
        action=LOGO,
        written_at=datetime(2015, 9, 2, 10, 32, 0),
    )

    marker = compute_marker(latest, clock_skew_minutes=5, initial_lookback_minutes=1440, now=NOW)

    assert marker.at == datetime(2015, 9, 2, 10, 27, 0)
    assert (marker.jde_date, marker.jde_time) == (115245, 102700)


@pytest.mark.unit
def test_startup_entries_do_not_move_the_marker() -> None:
    clock = FakeClock(now=NOW)
    ledger = InMemoryLedgerStore(clock=clock)
    poller = Poller(feed=InMemoryCandidateFeed(), ledger=ledger, action=LOGO, config_id="PDFHANDLER", clock=clock)

    async def _run() -> PollMarker:
        await ledger.record_startup(holder_id="host-A", process_name="worker-logo")
        return await poller.current_marker()

    assert asyncio.run(_run()).jde_date == 115244


@pytest.mark.unit
def test_next_batch_yields_unprocessed_allow_listed_candidates_in_arrival_order() -> None:
    feed = InMemoryCandidateFeed(
        candidates=[
            _candidate("R5542565_B_2", created_time=110000),
            _candidate("R0010P_A_9", created_time=90000),
            _candidate("R5542565_A_1", created_time=100000),
            _candidate("R5542565_C_3", created_time=120000),
            _candidate("R5542565_OLD_0", created_date=115200),
        ]
    )
    ledger = InMemoryLedgerStore()
    poller = Poller(
        feed=feed,
        ledger=ledger,
        action=LOGO,
        config_id="PDFHANDLER",
        static_allow_list=frozenset({"R5542565"}),
    )
    marker = PollMarker(at=NOW, jde_date=115244, jde_time=0)

    async def _run() -> list[str]:
        await ledger.record(file_id="R5542565_B_2", gen_key="115245 110000", holder_id="host-A", action=LOGO)
        return await _collect(poller, marker)

    assert asyncio.run(_run()) == ["R5542565_A_1", "R5542565_C_3"]


@pytest.mark.unit
def test_allow_list_falls_back_to_feed_registry() -> None:
    feed = InMemoryCandidateFeed(
        candidates=[_candidate("R5542565_A_1"), _candidate("R0006P_A_2")],
        job_types={"PDFMAILER": frozenset({"R0006P"})},
    )
    poller = Poller(feed=feed, ledger=InMemoryLedgerStore(), action="PROCESSED - MAIL", config_id="PDFMAILER")
    marker = PollMarker(at=NOW, jde_date=115244, jde_time=0)

    assert asyncio.run(_collect(poller, marker)) == ["R0006P_A_2"]


@pytest.mark.unit
def test_empty_allow_list_yields_nothing(caplog: pytest.LogCaptureFixture) -> None:
    feed = InMemoryCandidateFeed(candidates=[_candidate("R5542565_A_1")])
    poller = Poller(feed=feed, ledger=InMemoryLedgerStore(), action=LOGO, config_id="PDFHANDLER")
    marker = PollMarker(at=NOW, jde_date=115244, jde_time=0)

    assert asyncio.run(_collect(poller, marker)) == []
    assert feed.queries == []
    assert "allow-list is empty" in caplog.messages


@pytest.mark.unit
def test_change_detected_is_logged_once_per_new_first_candidate(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO, logger="runtime")
    feed = InMemoryCandidateFeed(candidates=[_candidate("R5542565_A_1")])
    poller = Poller(
        feed=feed,
        ledger=InMemoryLedgerStore(),
        action=LOGO,
        config_id="PDFHANDLER",
        static_allow_list=frozenset({"R5542565"}),
    )
    marker = PollMarker(at=NOW, jde_date=115244, jde_time=0)

    async def _run() -> None:
        await _collect(poller, marker)
        await _collect(poller, marker)
        feed.candidates.insert(0, _candidate("R5542565_A_0", created_time=90000))
        await _collect(poller, marker)

    asyncio.run(_run())

    assert caplog.messages.count("change detected") == 2
    assert poller.previous_first == "R5542565_A_0"


@pytest.mark.unit
def test_processed_lookup_is_one_query_per_chunk_of_candidates() -> None:
    feed = InMemoryCandidateFeed(
        candidates=[_candidate(f"R5542565_A_{index}", created_time=100000 + index) for index in range(5)]
    )
    ledger = CountingLedger()
    poller = Poller(
        feed=feed,
        ledger=ledger,
        action=LOGO,
        config_id="PDFHANDLER",
        static_allow_list=frozenset({"R5542565"}),
        lookup_batch_size=2,
    )
    marker = PollMarker(at=NOW, jde_date=115244, jde_time=0)

    async def _run() -> list[str]:
        await ledger.record(file_id="R5542565_A_1", gen_key="115245 100001", holder_id="host-A", action=LOGO)
        await ledger.record(file_id="R5542565_A_4", gen_key="115245 100004", holder_id="host-A", action=LOGO)
        return await _collect(poller, marker)

    assert asyncio.run(_run()) == ["R5542565_A_0", "R5542565_A_2", "R5542565_A_3"]
    assert ledger.lookups == [
        ["R5542565_A_0", "R5542565_A_1"],
        ["R5542565_A_2", "R5542565_A_3"],
        ["R5542565_A_4"],
    ]
    assert ledger.single_lookups == 0
