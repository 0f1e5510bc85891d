from __future__ import annotations

import asyncio
from dataclasses import dataclass
import os
from pathlib import Path
import shutil

from pdfpost.domain.errors import StepFailedError


@dataclass(frozen=True)
class LocalFileOps:
    """Filesystem primitives run off the event loop.

    No partial-state guarantee beyond the underlying filesystem: ``replace``
    is atomic only when source and destination share a filesystem.
    """

    async def make_dirs(self, path: Path) -> None:
        try:
            await asyncio.to_thread(path.mkdir, parents=True, exist_ok=True)
        except OSError as exc:
            raise StepFailedError(f"mkdir {path} failed: {exc}") from exc

    async def copy(self, src: Path, dst: Path) -> None:
        try:
            await asyncio.to_thread(shutil.copy2, src, dst)
        except OSError as exc:
            raise StepFailedError(f"copy {src} -> {dst} failed: {exc}") from exc

    async def replace(self, src: Path, dst: Path) -> None:
        try:
            await asyncio.to_thread(os.replace, src, dst)
        except OSError as exc:
            raise StepFailedError(f"replace {dst} with {src} failed: {exc}") from exc

    async def read_bytes(self, path: Path) -> bytes:
        try:
            return await asyncio.to_thread(path.read_bytes)
        except OSError as exc:
            raise StepFailedError(f"read {path} failed: {exc}") from exc

    async def exists(self, path: Path) -> bool:
        try:
            return await asyncio.to_thread(path.exists)
        except OSError as exc:
            raise StepFailedError(f"stat {path} failed: {exc}") from exc
