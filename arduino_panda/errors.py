"""Error taxonomy for arduino-panda."""

from __future__ import annotations


class PandaError(Exception):
    """Structured error with exit code."""

    exit_code = 1

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        self.message = message
        if exit_code is not None:
            self.exit_code = exit_code

    def to_dict(self) -> dict:
        return {"error": self.message, "exit_code": self.exit_code}


class ToolchainUnavailableError(PandaError):
    """arduino-cli is missing or does not answer a version query."""

    exit_code = 2


class ToolchainQueryError(PandaError):
    """A list/enumerate query failed or returned unparsable output."""

    exit_code = 3


class WorkspaceError(PandaError):
    """The staging directory could not be created, copied into, or located."""

    exit_code = 4


class ProcessLaunchError(PandaError):
    """The external process could not be started."""

    exit_code = 5


class ProcessExecutionError(PandaError):
    """The external process exited non-zero.

    ``result`` holds the captured output so callers can still classify it.
    """

    exit_code = 6

    def __init__(self, message: str, result):
        super().__init__(message)
        self.result = result

    @property
    def stdout(self) -> str:
        return self.result.stdout

    @property
    def stderr(self) -> str:
        return self.result.stderr


class InvalidTargetError(PandaError, ValueError):
    """A board, port or platform identifier is malformed."""

    exit_code = 7


class OperationFailed(PandaError):
    """A build or flash finished with errors."""

    def __init__(self, message: str, result):
        super().__init__(message)
        self.result = result

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["result"] = self.result.to_dict()
        return data


class CompileFailed(OperationFailed):
    pass


class UploadFailed(OperationFailed):
    pass


class ConfigError(PandaError):
    """panda.toml holds a value of the wrong type."""

    exit_code = 8
