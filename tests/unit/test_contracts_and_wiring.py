from pathlib import Path

import pytest

from pdfpost.domain.contracts import (
    CLAIM_SQL_CONTRACT,
    CandidateFeed,
    ClaimStore,
    LedgerStore,
    MailConfigSource,
)
from pdfpost.domain.errors import ConfigurationError
from pdfpost.repositories.postgres import PostgresClaimStore, PostgresLedgerStore
from pdfpost.repositories.sql_loader import load_sql
from pdfpost.repositories.stub import InMemoryClaimStore, InMemoryLedgerStore
from pdfpost.roles import validate_role
from pdfpost.services.bootstrap import build_runtime_container
from pdfpost.workers.loop import WorkerLoop
from pdfpost.workers.runner import WorkerRuntimeSettings


@pytest.mark.unit
def test_claim_contract_documents_insert_uniqueness() -> None:
    assert "ON CONFLICT (file_id) DO NOTHING" in CLAIM_SQL_CONTRACT
    assert "ON CONFLICT (file_id) DO NOTHING" in load_sql("claim_acquire.sql")


@pytest.mark.unit
def test_load_sql_rejects_unknown_statement() -> None:
    with pytest.raises(FileNotFoundError):
        load_sql("no_such_statement.sql")


@pytest.mark.unit
def test_runtime_container_wires_skeleton_mode_without_database(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("DATABASE_URL", raising=False)

    container = build_runtime_container(
        validate_role("worker-logo"),
        holder_id="host-A",
        runtime_settings=WorkerRuntimeSettings(step_timeout_seconds=42),
    )

    assert container.mode == "skeleton"
    assert isinstance(container.worker_loop, WorkerLoop)
    assert isinstance(container.claim_store, InMemoryClaimStore)
    assert isinstance(container.ledger, InMemoryLedgerStore)
    assert isinstance(container.feed, CandidateFeed)
    assert isinstance(container.mail_config, MailConfigSource)
    assert container.worker_loop.holder_id == "host-A"
    assert container.worker_loop.action == "PROCESSED - LOGO"
    assert container.worker_loop.coordinator.runner.step_timeout_seconds == 42
    assert container.worker_loop.coordinator.runner.run_timeout_seconds == 600
    assert container.on_startup is None


@pytest.mark.unit
def test_runtime_container_uses_postgres_when_database_url_is_set(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DATABASE_URL", "postgres://app:app@db:5432/app")
    monkeypatch.setenv("DIR_JDEPDF", "/srv/pdf")

    container = build_runtime_container(validate_role("worker-mail"), holder_id="host-B")

    assert container.mode == "postgres"
    assert isinstance(container.claim_store, PostgresClaimStore)
    assert isinstance(container.ledger, PostgresLedgerStore)
    assert isinstance(container.claim_store, ClaimStore)
    assert isinstance(container.ledger, LedgerStore)
    assert container.pipeline_deps.settings.pdf_dir == Path("/srv/pdf")
    assert container.worker_loop.action == "PROCESSED - MAIL"
    assert container.on_startup is not None
    assert container.on_shutdown is not None


@pytest.mark.unit
def test_default_run_timeout_stays_below_stale_claim_age() -> None:
    defaults = WorkerRuntimeSettings()

    assert defaults.run_timeout_seconds < defaults.claim_stale_seconds


@pytest.mark.unit
def test_runtime_container_rejects_run_timeout_longer_than_stale_age(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("DATABASE_URL", raising=False)

    with pytest.raises(ConfigurationError, match="must be shorter than the stale claim age 900s"):
        build_runtime_container(
            validate_role("worker-logo"),
            holder_id="host-A",
            runtime_settings=WorkerRuntimeSettings(claim_stale_seconds=900, run_timeout_seconds=1200),
        )
