from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum


# Ledger rows written when a worker starts use this reserved file id.
STARTUP_FILE_ID = "pdfmonitor"
STARTUP_ACTION = "Start Monitoring"


class PipelineKind(StrEnum):
    LOGO = "logo"
    MAIL = "mail"


class LedgerAction(StrEnum):
    PROCESSED_LOGO = "PROCESSED - LOGO"
    PROCESSED_MAIL = "PROCESSED - MAIL"


class RunOutcome(StrEnum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class CandidateOutcome(StrEnum):
    ALREADY_CLAIMED = "already_claimed"
    ALREADY_DONE = "already_done"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class JobCandidate:
    file_id: str
    created_date: int
    created_time: int
    process_id: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "file_id", self.file_id.strip())

    @property
    def arrival_key(self) -> tuple[int, int]:
        return (self.created_date, self.created_time)

    @property
    def gen_key(self) -> str:
        return f"{self.created_date} {self.created_time}"

    @property
    def job_name(self) -> str:
        return self.file_id.split("_", maxsplit=1)[0].strip()

    @property
    def version_name(self) -> str:
        tokens = self.file_id.split("_")
        return tokens[1].strip() if len(tokens) > 1 else ""


@dataclass(frozen=True)
class Claim:
    file_id: str
    holder_id: str
    acquired_at: datetime
    process_kind: str


@dataclass(frozen=True)
class AlreadyClaimed:
    file_id: str
    holder_id: str | None = None


@dataclass(frozen=True)
class LedgerEntry:
    file_id: str
    gen_key: str
    holder_id: str
    action: str
    written_at: datetime


@dataclass(frozen=True)
class PollMarker:
    at: datetime
    jde_date: int
    jde_time: int


@dataclass(frozen=True)
class StepResult:
    name: str
    ok: bool
    detail: str = ""


@dataclass
class PipelineRun:
    candidate: JobCandidate
    claim: Claim
    context: dict[str, object] = field(default_factory=dict)
    step_results: list[StepResult] = field(default_factory=list)
    outcome: RunOutcome | None = None
    active_step: str | None = None

    @property
    def failed_step(self) -> StepResult | None:
        for result in self.step_results:
            if not result.ok:
                return result
        return None


@dataclass(frozen=True)
class MailOption:
    option_type: str
    value: str
