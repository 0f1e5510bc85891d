from __future__ import annotations

from collections.abc import Callable

from pdfpost.domain.models import PipelineKind
from pdfpost.domain.pipeline import PipelineStep
from pdfpost.workers.pipelines import logo, mail
from pdfpost.workers.pipelines.deps import PipelineDeps


def build_pipeline_steps(kind: PipelineKind, deps: PipelineDeps) -> list[PipelineStep]:
    builders: dict[PipelineKind, Callable[[PipelineDeps], list[PipelineStep]]] = {
        PipelineKind.LOGO: logo.build_steps,
        PipelineKind.MAIL: mail.build_steps,
    }
    builder = builders.get(kind)
    if builder is None:
        raise ValueError(f"No pipeline for kind '{kind}'")
    return builder(deps)
