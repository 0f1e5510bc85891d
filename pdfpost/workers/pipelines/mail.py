from __future__ import annotations

from collections.abc import Mapping
from email.message import EmailMessage

from pdfpost.domain.models import PipelineRun
from pdfpost.domain.pipeline import PipelineStep
from pdfpost.workers.pipelines.deps import PipelineDeps


def build_steps(deps: PipelineDeps) -> list[PipelineStep]:
    async def build_message(run: PipelineRun) -> Mapping[str, object]:
        message = await deps.mail_composer.build(run.candidate)
        return {"message": message}

    async def send_message(run: PipelineRun) -> None:
        message: EmailMessage = run.context["message"]  # type: ignore[assignment]
        await deps.mail_transport.send(message)

    return [
        PipelineStep("build_message", build_message),
        PipelineStep("send_message", send_message),
    ]
