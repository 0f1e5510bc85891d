from __future__ import annotations

from collections.abc import Mapping

from pdfpost.domain.models import PipelineRun
from pdfpost.domain.pipeline import PipelineStep
from pdfpost.workers.pipelines.deps import PipelineDeps


def build_steps(deps: PipelineDeps) -> list[PipelineStep]:
    """Stamp logos onto a print-queue PDF, keeping the untouched original in the work directory."""
    settings = deps.settings
    work_dir = settings.work_dir

    async def ensure_work_dir(run: PipelineRun) -> Mapping[str, object]:
        await deps.file_ops.make_dirs(work_dir)
        return {"work_dir": work_dir}

    async def backup_original(run: PipelineRun) -> Mapping[str, object]:
        file_id = run.candidate.file_id
        source = settings.pdf_dir / file_id
        backup = work_dir / f"{file_id}_ORIGINAL"
        # A retry after a stamped replace must not back up the stamped file.
        if not await deps.file_ops.exists(backup):
            await deps.file_ops.copy(source, backup)
        return {"source_path": source, "backup_path": backup}

    async def apply_logo(run: PipelineRun) -> Mapping[str, object]:
        stamped = work_dir / run.candidate.file_id
        await deps.stamp_tool.stamp(input_path=run.context["backup_path"], output_path=stamped)
        return {"stamped_path": stamped}

    async def replace_original(run: PipelineRun) -> None:
        await deps.file_ops.replace(run.context["stamped_path"], run.context["source_path"])

    return [
        PipelineStep("ensure_work_dir", ensure_work_dir),
        PipelineStep("backup_original", backup_original),
        PipelineStep("apply_logo", apply_logo),
        PipelineStep("replace_original", replace_original),
    ]
