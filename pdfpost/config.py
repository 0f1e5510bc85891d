from __future__ import annotations

from dataclasses import dataclass
import os
from pathlib import Path

from pdfpost.clients.stamp import DEFAULT_STAMP_COMMAND, parse_command
from pdfpost.domain.errors import ConfigurationError
from pdfpost.domain.poller import parse_allow_list


@dataclass(frozen=True)
class PipelineSettings:
    pdf_dir: Path = Path("/home/pdfdata")
    shared_dir: Path = Path("/home/shareddata")
    stamp_command: tuple[str, ...] = tuple(DEFAULT_STAMP_COMMAND.split())
    stamp_timeout_seconds: int = 240
    smtp_host: str = "localhost"
    smtp_port: int = 25
    mail_from: str = "no.reply@localhost"
    allow_list: frozenset[str] = frozenset()

    @property
    def work_dir(self) -> Path:
        return self.shared_dir / "wrkdir"


def pipeline_settings_from_env() -> PipelineSettings:
    return PipelineSettings(
        pdf_dir=Path(env_str("DIR_JDEPDF", "/home/pdfdata")),
        shared_dir=Path(env_str("DIR_SHAREDDATA", "/home/shareddata")),
        stamp_command=parse_command(env_str("PDFPOST_STAMP_COMMAND", DEFAULT_STAMP_COMMAND)),
        stamp_timeout_seconds=env_int("PDFPOST_STAMP_TIMEOUT_SECONDS", 240),
        smtp_host=env_str("PDFPOST_SMTP_HOST", "localhost"),
        smtp_port=env_int("PDFPOST_SMTP_PORT", 25),
        mail_from=env_str("PDFPOST_MAIL_FROM", "no.reply@localhost"),
        allow_list=parse_allow_list(os.getenv("PDFPOST_ALLOW_LIST")),
    )


def require_holder_id() -> str:
    """Return this worker's holder identity (its container hostname).

    Claims and ledger entries are attributed to it, so running without one is
    refused.
    """
    holder_id = (os.getenv("HOSTNAME") or "").strip()
    if not holder_id:
        raise ConfigurationError("environment variable HOSTNAME must identify this worker")
    return holder_id


def env_str(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip()


def env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default

    try:
        parsed = int(value)
    except ValueError:
        return default

    return parsed if parsed > 0 else default
