"""Value types shared by the orchestrator, classifier and discovery service."""

from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from arduino_panda.errors import CompileFailed, UploadFailed


class CompileMode(str, Enum):
    """How a sketch is handed to the toolchain."""
    SINGLE = "single"  # copy the file into an isolated staging folder
    MULTI = "multi"    # compile the sketch folder in place

    @classmethod
    def parse(cls, value: str | CompileMode) -> CompileMode:
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(f"Unknown compile mode: {value!r} (expected 'single' or 'multi')") from None


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"


@dataclass(frozen=True)
class BuildRequest:
    """One compile/flash invocation."""
    source_path: Path
    fqbn: str
    output_directory: Path
    port: str | None = None
    compile_mode: CompileMode = CompileMode.SINGLE

    def __post_init__(self) -> None:
        object.__setattr__(self, "source_path", Path(self.source_path))
        object.__setattr__(self, "output_directory", Path(self.output_directory))
        object.__setattr__(self, "compile_mode", CompileMode.parse(self.compile_mode))

    @property
    def sketch_name(self) -> str:
        return self.source_path.stem


@dataclass(frozen=True)
class Workspace:
    root_path: Path
    staged_source_path: Path
    build_output_path: Path
    is_temporary: bool


@dataclass(frozen=True)
class Diagnostic:
    """One classified error/warning line from toolchain output."""
    severity: Severity
    message: str
    source_file: str | None = None
    line: int | None = None
    column: int | None = None

    def format(self, relative_to: Path | str | None = None) -> str:
        """Render as ``[file:line] message``, the way the output panel shows it."""
        if not self.source_file:
            return self.message
        location = self.source_file
        if relative_to is not None:
            try:
                location = os.path.relpath(self.source_file, relative_to)
            except ValueError:
                pass  # different drive on Windows
        if self.line is not None:
            location = f"{location}:{self.line}"
        return f"[{location}] {self.message}"

    def to_dict(self) -> dict:
        return {
            "file": self.source_file,
            "line": self.line,
            "column": self.column,
            "severity": self.severity.value,
            "message": self.message,
        }


@dataclass(frozen=True)
class ProgressEvent:
    stage: str
    increment: int


@dataclass(frozen=True)
class OperationResult:
    """Terminal value of one orchestrator run."""
    operation: str
    succeeded: bool
    diagnostics: tuple[Diagnostic, ...] = ()
    raw_stdout: str = ""
    raw_stderr: str = ""
    artifact_path: Path | None = None
    exit_code: int | None = None
    failure_reason: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "diagnostics", tuple(self.diagnostics))

    @property
    def errors(self) -> list[Diagnostic]:
        return [d for d in self.diagnostics if d.severity is Severity.ERROR]

    @property
    def warnings(self) -> list[Diagnostic]:
        return [d for d in self.diagnostics if d.severity is Severity.WARNING]

    @property
    def error_count(self) -> int:
        return len(self.errors)

    def raise_for_status(self) -> None:
        """Raise CompileFailed/UploadFailed if the operation did not succeed."""
        if self.succeeded:
            return
        if self.operation == "compile":
            message = f"Compilation failed with {self.error_count} error(s)"
            exc_type = CompileFailed
        else:
            message = f"Upload failed with {self.error_count} error(s)"
            exc_type = UploadFailed
        if self.failure_reason:
            message = f"{message}: {self.failure_reason}"
        raise exc_type(message, self)

    def to_dict(self) -> dict:
        return {
            "operation": self.operation,
            "succeeded": self.succeeded,
            "error_count": self.error_count,
            "diagnostics": [d.to_dict() for d in self.diagnostics],
            "artifact_path": str(self.artifact_path) if self.artifact_path else None,
            "exit_code": self.exit_code,
            "failure_reason": self.failure_reason,
        }


@dataclass(frozen=True)
class PortInfo:
    address: str
    description: str | None = None

    def to_dict(self) -> dict:
        return {"address": self.address, "description": self.description}


@dataclass(frozen=True)
class BoardInfo:
    name: str
    fqbn: str

    def to_dict(self) -> dict:
        return {"name": self.name, "fqbn": self.fqbn}
