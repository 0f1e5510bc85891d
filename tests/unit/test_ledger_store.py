import asyncio

import pytest

from pdfpost.domain.contracts import LedgerStore
from pdfpost.domain.models import STARTUP_ACTION, STARTUP_FILE_ID, LedgerAction
from pdfpost.repositories.stub import InMemoryLedgerStore
from tests.unit.worker_seed import FILE_ID, FakeClock

LOGO = LedgerAction.PROCESSED_LOGO.value
MAIL = LedgerAction.PROCESSED_MAIL.value


@pytest.mark.unit
def test_in_memory_ledger_satisfies_protocol() -> None:
    assert isinstance(InMemoryLedgerStore(), LedgerStore)


@pytest.mark.unit
def test_duplicate_record_is_a_no_op() -> None:
    ledger = InMemoryLedgerStore()

    async def _run() -> None:
        first = await ledger.record(file_id=FILE_ID, gen_key="115245 103000", holder_id="host-A", action=LOGO)
        again = await ledger.record(file_id=FILE_ID, gen_key="115245 103000", holder_id="host-B", action=LOGO)
        assert again == first

    asyncio.run(_run())

    assert ledger.count(file_id=FILE_ID, action=LOGO) == 1
    assert ledger.entries[0].holder_id == "host-A"


@pytest.mark.unit
def test_has_processed_is_scoped_to_action() -> None:
    ledger = InMemoryLedgerStore()

    async def _run() -> tuple[bool, bool]:
        await ledger.record(file_id=FILE_ID, gen_key="115245 103000", holder_id="host-A", action=LOGO)
        return (
            await ledger.has_processed(file_id=FILE_ID, action=LOGO),
            await ledger.has_processed(file_id=FILE_ID, action=MAIL),
        )

    assert asyncio.run(_run()) == (True, False)


@pytest.mark.unit
def test_processed_among_returns_the_recorded_subset_for_the_action() -> None:
    ledger = InMemoryLedgerStore()

    async def _run() -> tuple[set[str], set[str], set[str]]:
        await ledger.record(file_id=FILE_ID, gen_key="115245 103000", holder_id="host-A", action=LOGO)
        await ledger.record(file_id="R1_A_1", gen_key="115245 1", holder_id="host-A", action=MAIL)
        return (
            await ledger.processed_among(file_ids=[FILE_ID, "R1_A_1", "R1_A_2"], action=LOGO),
            await ledger.processed_among(file_ids=[FILE_ID, "R1_A_1"], action=MAIL),
            await ledger.processed_among(file_ids=[], action=LOGO),
        )

    assert asyncio.run(_run()) == ({FILE_ID}, {"R1_A_1"}, set())


@pytest.mark.unit
def test_latest_entry_ignores_startup_rows_and_other_actions() -> None:
    clock = FakeClock()
    ledger = InMemoryLedgerStore(clock=clock)

    async def _run():
        await ledger.record(file_id="R1_A_1", gen_key="115245 90000", holder_id="host-A", action=LOGO)
        clock.advance(minutes=1)
        await ledger.record(file_id="R1_A_2", gen_key="115245 91000", holder_id="host-A", action=MAIL)
        clock.advance(minutes=1)
        await ledger.record_startup(holder_id="host-A", process_name="worker-logo")
        return await ledger.latest_entry(action=LOGO)

    latest = asyncio.run(_run())

    assert latest is not None
    assert latest.file_id == "R1_A_1"
    startup = [entry for entry in ledger.entries if entry.file_id == STARTUP_FILE_ID]
    assert len(startup) == 1
    assert startup[0].action == STARTUP_ACTION
    assert startup[0].gen_key.startswith("worker-logo ")


@pytest.mark.unit
def test_latest_entry_is_none_for_empty_ledger() -> None:
    assert asyncio.run(InMemoryLedgerStore().latest_entry(action=LOGO)) is None
