from __future__ import annotations

import asyncio
from collections.abc import Sequence
from dataclasses import dataclass
import logging
from pathlib import Path
import shlex

from pdfpost.domain.errors import StepFailedError

logger = logging.getLogger("runtime")

DEFAULT_STAMP_COMMAND = "node ./src/pdfaddlogo.js"


def parse_command(raw: str) -> tuple[str, ...]:
    return tuple(shlex.split(raw))


@dataclass(frozen=True)
class SubprocessStampTool:
    """Runs the external logo stamper as ``<command...> <input> <output>``."""

    command: Sequence[str]
    timeout_seconds: float = 240.0
    cwd: Path | None = None

    async def stamp(self, *, input_path: Path, output_path: Path) -> None:
        argv = [*self.command, str(input_path), str(output_path)]
        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=str(self.cwd) if self.cwd is not None else None,
            )
        except OSError as exc:
            raise StepFailedError(f"stamp tool could not start: {exc}") from exc

        try:
            _, stderr = await asyncio.wait_for(process.communicate(), self.timeout_seconds)
        except TimeoutError:
            await _stop(process)
            raise StepFailedError(f"stamp tool timed out after {self.timeout_seconds:g}s") from None
        except asyncio.CancelledError:
            await _stop(process)
            raise

        if process.returncode != 0:
            message = stderr.decode("utf-8", errors="replace").strip()[-2000:]
            logger.debug("stamp tool stderr", extra={"detail": message})
            raise StepFailedError(f"stamp tool exited with {process.returncode}: {message}")


async def _stop(process: asyncio.subprocess.Process) -> None:
    if process.returncode is not None:
        return
    process.terminate()
    try:
        await asyncio.wait_for(process.wait(), 5)
    except TimeoutError:
        process.kill()
        await process.wait()
