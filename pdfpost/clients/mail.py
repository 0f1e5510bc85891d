from __future__ import annotations

import asyncio
from dataclasses import dataclass
from email.message import EmailMessage
import logging
from pathlib import Path
import smtplib

from pdfpost.domain.contracts import FileOps, MailConfigSource
from pdfpost.domain.errors import StepFailedError
from pdfpost.domain.mail_options import (
    DEFAULT_VERSION,
    EMAIL_BCC,
    EMAIL_CC,
    EMAIL_FROM,
    EMAIL_SUBJECT,
    EMAIL_TEXT,
    EMAIL_TO,
    first_value,
    merge_mail_options,
    values_of,
)
from pdfpost.domain.models import JobCandidate, MailOption

logger = logging.getLogger("runtime")


@dataclass(frozen=True)
class ReportMailComposer:
    """Builds the outbound message for one report file.

    Recipients and texts come from the report's ``*ALL`` options merged with
    the options registered for its version.
    """

    config_source: MailConfigSource
    file_ops: FileOps
    pdf_dir: Path
    default_sender: str

    async def resolve_options(self, candidate: JobCandidate) -> list[MailOption]:
        report_options = await self.config_source.fetch_mail_options(
            report_name=candidate.job_name,
            version_name=DEFAULT_VERSION,
        )
        version_options: list[MailOption] = []
        if candidate.version_name:
            version_options = await self.config_source.fetch_mail_options(
                report_name=candidate.job_name,
                version_name=candidate.version_name,
            )
        return merge_mail_options(report_options, version_options)

    async def build(self, candidate: JobCandidate) -> EmailMessage:
        options = await self.resolve_options(candidate)
        recipients = values_of(options, EMAIL_TO)
        if not recipients:
            raise StepFailedError(f"no mail recipients configured for {candidate.job_name}/{candidate.version_name}")

        message = EmailMessage()
        message["From"] = first_value(options, EMAIL_FROM, self.default_sender)
        message["To"] = ", ".join(recipients)
        cc = values_of(options, EMAIL_CC)
        if cc:
            message["Cc"] = ", ".join(cc)
        bcc = values_of(options, EMAIL_BCC)
        if bcc:
            message["Bcc"] = ", ".join(bcc)
        message["Subject"] = first_value(options, EMAIL_SUBJECT, f"JDE Report {candidate.file_id}")
        message.set_content(first_value(options, EMAIL_TEXT, f"Please find attached report {candidate.file_id}."))

        payload = await self.file_ops.read_bytes(self.pdf_dir / candidate.file_id)
        message.add_attachment(
            payload,
            maintype="application",
            subtype="pdf",
            filename=f"{candidate.file_id}.pdf",
        )
        return message


@dataclass(frozen=True)
class SmtpMailTransport:
    host: str
    port: int = 25
    timeout_seconds: float = 60.0

    async def send(self, message: EmailMessage) -> None:
        await asyncio.to_thread(self._send_sync, message)

    def _send_sync(self, message: EmailMessage) -> None:
        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout_seconds) as server:
                server.send_message(message)
        except smtplib.SMTPRecipientsRefused as exc:
            logger.error("mail recipients refused", extra={"detail": str(exc.recipients)})
            raise StepFailedError(f"recipients refused: {exc.recipients}") from exc
        except smtplib.SMTPException as exc:
            raise StepFailedError(f"smtp error: {exc}") from exc
        except OSError as exc:
            raise StepFailedError(f"smtp relay {self.host}:{self.port} unreachable: {exc}") from exc
