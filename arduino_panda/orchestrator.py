"""Compile/flash orchestration.

One Orchestrator runs one request through::

    IDLE -> PREPARING -> RUNNING -> CLASSIFYING -> CLEANING_UP -> SUCCEEDED | FAILED

The staging workspace is released on every path out of PREPARING,
including exceptions raised while the toolchain runs.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from enum import Enum
from pathlib import Path
from typing import Iterator, Sequence

from arduino_panda.classifier import OutputClassifier
from arduino_panda.commands import ArduinoCli, render, validate_fqbn, validate_port
from arduino_panda.config import DEFAULT_COMPLETION_MARKERS
from arduino_panda.discovery import check_toolchain
from arduino_panda.errors import ProcessExecutionError
from arduino_panda.models import BuildRequest, OperationResult, ProgressEvent, Severity, Workspace
from arduino_panda.process import CompletedCommand, ProcessRunner
from arduino_panda.report import Reporter
from arduino_panda.workspace import WorkspaceManager

logger = logging.getLogger(__name__)

IMAGE_SUFFIXES = (".hex", ".bin", ".uf2", ".elf")

COMPILE = "compile"
FLASH = "flash"
COMPILE_AND_FLASH = "compile-and-flash"

_HEADERS = {
    COMPILE: "compile",
    FLASH: "upload",
    COMPILE_AND_FLASH: "compile and upload",
}


class State(str, Enum):
    IDLE = "idle"
    PREPARING = "preparing"
    RUNNING = "running"
    CLASSIFYING = "classifying"
    CLEANING_UP = "cleaning-up"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


def is_firmware_image(path: Path | str) -> bool:
    return Path(path).suffix.lower() in IMAGE_SUFFIXES


class Orchestrator:
    """Runs a single compile, flash, or compile-and-flash request."""

    def __init__(
        self,
        runner: ProcessRunner | None = None,
        cli: ArduinoCli | None = None,
        workspaces: WorkspaceManager | None = None,
        classifier: OutputClassifier | None = None,
        reporter: Reporter | None = None,
        completion_markers: Sequence[str] = DEFAULT_COMPLETION_MARKERS,
        validate_toolchain: bool = True,
    ) -> None:
        self.runner = runner or ProcessRunner()
        self.cli = cli or ArduinoCli()
        self.workspaces = workspaces or WorkspaceManager()
        self.classifier = classifier or OutputClassifier()
        self.reporter = reporter or Reporter()
        if isinstance(completion_markers, str):
            completion_markers = [completion_markers]
        self.completion_markers = tuple(completion_markers)
        self.validate_toolchain = validate_toolchain
        self.state = State.IDLE

    # -- Operations -----------------------------------------------------------

    def compile(self, request: BuildRequest) -> OperationResult:
        return self._execute(COMPILE, request)

    def flash(self, request: BuildRequest) -> OperationResult:
        return self._execute(FLASH, request)

    def compile_and_flash(self, request: BuildRequest) -> OperationResult:
        return self._execute(COMPILE_AND_FLASH, request)

    # -- State machine --------------------------------------------------------

    def _execute(self, operation: str, request: BuildRequest) -> OperationResult:
        if self.state is not State.IDLE:
            raise RuntimeError(f"Orchestrator already ran a request (state: {self.state.value})")

        result = None
        try:
            validate_fqbn(request.fqbn)
            if operation != COMPILE:
                validate_port(request.port)
            if self.validate_toolchain:
                check_toolchain(self.runner, self.cli)

            self._report_header(operation, request)
            with self._workspace(operation, request) as workspace:
                args = self._arguments(operation, request, workspace)
                self.state = State.RUNNING
                self.reporter.log(render(args))
                completed = self._run(args)

                self.state = State.CLASSIFYING
                result = self._classify(operation, request, workspace, completed)
        finally:
            self.state = State.SUCCEEDED if result is not None and result.succeeded else State.FAILED

        self._report_summary(result, request)
        return result

    @contextmanager
    def _workspace(self, operation: str, request: BuildRequest) -> Iterator[Workspace]:
        self.state = State.PREPARING
        self.reporter.progress(ProgressEvent(stage="Preparing", increment=10))
        if operation == FLASH and is_firmware_image(request.source_path):
            workspace = self.workspaces.prepare_image(request.source_path)
        else:
            workspace = self.workspaces.prepare(request)
        try:
            yield workspace
        finally:
            self.state = State.CLEANING_UP
            self.workspaces.cleanup(workspace)

    def _arguments(self, operation: str, request: BuildRequest, workspace: Workspace) -> list[str]:
        if operation == COMPILE:
            return self.cli.compile(workspace.staged_source_path, request.fqbn, workspace.build_output_path)
        if operation == COMPILE_AND_FLASH:
            return self.cli.compile(
                workspace.staged_source_path, request.fqbn, workspace.build_output_path,
                upload=True, port=request.port,
            )
        if is_firmware_image(workspace.staged_source_path):
            return self.cli.upload(request.fqbn, request.port, input_file=workspace.staged_source_path)
        return self.cli.upload(
            request.fqbn, request.port,
            sketch=workspace.staged_source_path, input_dir=workspace.build_output_path,
        )

    def _run(self, args: list[str]) -> CompletedCommand:
        try:
            return self.runner.run(args)
        except ProcessExecutionError as e:
            # Diagnostics usually come with the non-zero exit; classify them.
            logger.debug("toolchain exited with %s", e.result.exit_code)
            return e.result

    def _classify(
        self,
        operation: str,
        request: BuildRequest,
        workspace: Workspace,
        completed: CompletedCommand,
    ) -> OperationResult:
        for line in completed.stdout.splitlines():
            self.reporter.log(line)
            event = self.classifier.classify_progress(line)
            if event is not None:
                self.reporter.progress(event)
        for line in completed.stderr.splitlines():
            if line.strip():
                self.reporter.log(line)

        diagnostics = self.classifier.diagnostics(completed.stderr)
        has_errors = any(d.severity is Severity.ERROR for d in diagnostics)

        # Diagnostics take precedence over the exit status.
        failure_reason = None
        if has_errors:
            failure_reason = "toolchain reported errors"
        elif not completed.ok:
            failure_reason = f"arduino-cli exited with code {completed.exit_code}"
        elif operation == COMPILE_AND_FLASH and not self._saw_completion_marker(completed):
            failure_reason = "no upload completion marker in toolchain output"

        succeeded = failure_reason is None
        artifact = None
        if succeeded and operation != FLASH:
            artifact = self._find_artifact(workspace.build_output_path, request.sketch_name)
        if succeeded and operation == COMPILE_AND_FLASH:
            self.reporter.progress(ProgressEvent(stage="Done", increment=100))

        return OperationResult(
            operation=operation,
            succeeded=succeeded,
            diagnostics=diagnostics,
            raw_stdout=completed.stdout,
            raw_stderr=completed.stderr,
            artifact_path=artifact,
            exit_code=completed.exit_code,
            failure_reason=failure_reason,
        )

    def _saw_completion_marker(self, completed: CompletedCommand) -> bool:
        output = completed.stdout + "\n" + completed.stderr
        return any(marker in output for marker in self.completion_markers)

    @staticmethod
    def _find_artifact(build_path: Path, sketch_name: str) -> Path | None:
        for suffix in IMAGE_SUFFIXES:
            candidate = build_path / f"{sketch_name}.ino{suffix}"
            if candidate.is_file():
                return candidate
        return None

    # -- Reporting ------------------------------------------------------------

    def _report_header(self, operation: str, request: BuildRequest) -> None:
        log = self.reporter.log
        log(f"[{_HEADERS[operation]}] {request.source_path}")
        log(f"[board] {request.fqbn}")
        if operation != COMPILE:
            log(f"[port] {request.port}")
        log(f"[build path] {request.output_directory}")
        log("-------------------")

    def _report_summary(self, result: OperationResult, request: BuildRequest) -> None:
        log = self.reporter.log
        if result.diagnostics:
            log("")
            log("Errors/warnings:")
            log("-------------------")
            for diagnostic in result.diagnostics:
                log(diagnostic.format(relative_to=request.source_path.parent))
        log("")
        if result.succeeded:
            log(f"[OK] {_HEADERS[result.operation]} succeeded")
            if result.artifact_path:
                log(f"[artifact] {result.artifact_path}")
        else:
            log(f"[!!] {_HEADERS[result.operation]} failed ({result.error_count} error(s)): {result.failure_reason}")


def compile_sketch(request: BuildRequest, **kwargs) -> OperationResult:
    """Compile with a fresh Orchestrator."""
    return Orchestrator(**kwargs).compile(request)


def flash(request: BuildRequest, **kwargs) -> OperationResult:
    return Orchestrator(**kwargs).flash(request)


def compile_and_flash(request: BuildRequest, **kwargs) -> OperationResult:
    return Orchestrator(**kwargs).compile_and_flash(request)
