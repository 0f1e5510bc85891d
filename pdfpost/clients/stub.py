from __future__ import annotations

from dataclasses import dataclass, field
from email.message import EmailMessage
from pathlib import Path

from pdfpost.domain.errors import StepFailedError


@dataclass
class StubFileOps:
    """In-memory filesystem; ``failures`` holds operation names that should fail."""

    files: dict[Path, bytes] = field(default_factory=dict)
    dirs: set[Path] = field(default_factory=set)
    failures: set[str] = field(default_factory=set)
    calls: list[tuple[str, str]] = field(default_factory=list)

    def _check(self, operation: str, target: Path) -> None:
        self.calls.append((operation, str(target)))
        if operation in self.failures:
            raise StepFailedError(f"{operation} {target} failed")

    async def make_dirs(self, path: Path) -> None:
        self._check("make_dirs", path)
        self.dirs.add(path)

    async def copy(self, src: Path, dst: Path) -> None:
        self._check("copy", dst)
        if src not in self.files:
            raise StepFailedError(f"copy source is missing: {src}")
        self.files[dst] = self.files[src]

    async def replace(self, src: Path, dst: Path) -> None:
        self._check("replace", dst)
        if src not in self.files:
            raise StepFailedError(f"replace source is missing: {src}")
        self.files[dst] = self.files.pop(src)

    async def read_bytes(self, path: Path) -> bytes:
        self._check("read_bytes", path)
        payload = self.files.get(path)
        if payload is None:
            raise StepFailedError(f"file is missing: {path}")
        return payload

    async def exists(self, path: Path) -> bool:
        self._check("exists", path)
        return path in self.files


@dataclass
class StubStampTool:
    file_ops: StubFileOps | None = None
    fail: bool = False
    calls: list[tuple[Path, Path]] = field(default_factory=list)

    async def stamp(self, *, input_path: Path, output_path: Path) -> None:
        self.calls.append((input_path, output_path))
        if self.fail:
            raise StepFailedError("stamp tool exited with 1")
        if self.file_ops is not None:
            original = await self.file_ops.read_bytes(input_path)
            self.file_ops.files[output_path] = b"LOGO:" + original


@dataclass
class StubMailTransport:
    fail: bool = False
    sent: list[EmailMessage] = field(default_factory=list)

    async def send(self, message: EmailMessage) -> None:
        if self.fail:
            raise StepFailedError("smtp relay unreachable")
        self.sent.append(message)
