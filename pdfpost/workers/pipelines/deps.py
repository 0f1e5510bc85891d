from __future__ import annotations

from dataclasses import dataclass

from pdfpost.clients.mail import ReportMailComposer
from pdfpost.config import PipelineSettings
from pdfpost.domain.contracts import FileOps, MailTransport, StampTool


@dataclass(frozen=True)
class PipelineDeps:
    settings: PipelineSettings
    file_ops: FileOps
    stamp_tool: StampTool
    mail_composer: ReportMailComposer
    mail_transport: MailTransport
