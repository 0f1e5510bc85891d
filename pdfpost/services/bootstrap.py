from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
import os

from pdfpost.clients.files import LocalFileOps
from pdfpost.clients.mail import ReportMailComposer, SmtpMailTransport
from pdfpost.clients.stamp import SubprocessStampTool
from pdfpost.config import PipelineSettings, pipeline_settings_from_env
from pdfpost.domain.contracts import CandidateFeed, ClaimStore, LedgerStore, MailConfigSource
from pdfpost.domain.coordinator import Coordinator
from pdfpost.domain.pipeline import PipelineRunner
from pdfpost.domain.poller import Poller
from pdfpost.repositories.postgres import (
    AsyncpgPoolManager,
    PostgresCandidateFeed,
    PostgresClaimStore,
    PostgresLedgerStore,
    PostgresMailConfigSource,
)
from pdfpost.repositories.stub import (
    InMemoryCandidateFeed,
    InMemoryClaimStore,
    InMemoryLedgerStore,
    InMemoryMailConfigSource,
)
from pdfpost.roles import RuntimeRole
from pdfpost.workers.loop import WorkerLoop
from pdfpost.workers.pipelines.deps import PipelineDeps
from pdfpost.workers.pipelines.factory import build_pipeline_steps
from pdfpost.workers.runner import WorkerRuntimeSettings, worker_runtime_settings_from_env


@dataclass
class RuntimeContainer:
    mode: str
    claim_store: ClaimStore
    ledger: LedgerStore
    feed: CandidateFeed
    mail_config: MailConfigSource
    pipeline_deps: PipelineDeps
    worker_loop: WorkerLoop
    runtime_settings: WorkerRuntimeSettings
    on_startup: Callable[[], Awaitable[None]] | None
    on_shutdown: Callable[[], Awaitable[None]] | None


def build_runtime_container(
    role: RuntimeRole,
    *,
    holder_id: str,
    runtime_settings: WorkerRuntimeSettings | None = None,
    pipeline_settings: PipelineSettings | None = None,
) -> RuntimeContainer:
    runtime_settings = runtime_settings or worker_runtime_settings_from_env()
    pipeline_settings = pipeline_settings or pipeline_settings_from_env()

    database_url = os.getenv("DATABASE_URL")
    on_startup: Callable[[], Awaitable[None]] | None = None
    on_shutdown: Callable[[], Awaitable[None]] | None = None
    claim_store: ClaimStore
    ledger: LedgerStore
    feed: CandidateFeed
    mail_config: MailConfigSource
    if database_url:
        mode = "postgres"
        pool_manager = AsyncpgPoolManager(dsn=database_url)
        claim_store = PostgresClaimStore(pool_manager=pool_manager)
        ledger = PostgresLedgerStore(pool_manager=pool_manager)
        feed = PostgresCandidateFeed(pool_manager=pool_manager)
        mail_config = PostgresMailConfigSource(pool_manager=pool_manager)
        on_startup = pool_manager.startup
        on_shutdown = pool_manager.shutdown
    else:
        mode = "skeleton"
        claim_store = InMemoryClaimStore()
        ledger = InMemoryLedgerStore()
        feed = InMemoryCandidateFeed()
        mail_config = InMemoryMailConfigSource()

    file_ops = LocalFileOps()
    pipeline_deps = PipelineDeps(
        settings=pipeline_settings,
        file_ops=file_ops,
        stamp_tool=SubprocessStampTool(
            command=pipeline_settings.stamp_command,
            timeout_seconds=pipeline_settings.stamp_timeout_seconds,
        ),
        mail_composer=ReportMailComposer(
            config_source=mail_config,
            file_ops=file_ops,
            pdf_dir=pipeline_settings.pdf_dir,
            default_sender=pipeline_settings.mail_from,
        ),
        mail_transport=SmtpMailTransport(host=pipeline_settings.smtp_host, port=pipeline_settings.smtp_port),
    )

    runner = PipelineRunner(
        action=role.action.value,
        steps=build_pipeline_steps(role.kind, pipeline_deps),
        ledger=ledger,
        claim_store=claim_store,
        step_timeout_seconds=runtime_settings.step_timeout_seconds,
        run_timeout_seconds=runtime_settings.run_timeout_seconds,
    )
    worker_loop = WorkerLoop(
        role=role.name,
        holder_id=holder_id,
        poller=Poller(
            feed=feed,
            ledger=ledger,
            action=role.action.value,
            config_id=role.config_id,
            static_allow_list=pipeline_settings.allow_list,
            clock_skew_minutes=runtime_settings.clock_skew_minutes,
            initial_lookback_minutes=runtime_settings.initial_lookback_minutes,
        ),
        coordinator=Coordinator(
            holder_id=holder_id,
            process_kind=role.kind.value,
            claim_store=claim_store,
            ledger=ledger,
            runner=runner,
        ),
        claim_store=claim_store,
        ledger=ledger,
        claim_stale_seconds=runtime_settings.claim_stale_seconds,
    )

    return RuntimeContainer(
        mode=mode,
        claim_store=claim_store,
        ledger=ledger,
        feed=feed,
        mail_config=mail_config,
        pipeline_deps=pipeline_deps,
        worker_loop=worker_loop,
        runtime_settings=runtime_settings,
        on_startup=on_startup,
        on_shutdown=on_shutdown,
    )
