"""Run the external toolchain and capture its output."""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

from arduino_panda.errors import ProcessExecutionError, ProcessLaunchError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CompletedCommand:
    args: tuple[str, ...]
    exit_code: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


class ProcessRunner:
    """Execute one command line per call, synchronously, without a shell."""

    def run(self, args: Sequence[str], cwd: Path | str | None = None) -> CompletedCommand:
        """Run ``args`` and return the captured output.

        Raises ProcessLaunchError if the binary cannot be started and
        ProcessExecutionError (carrying the output) on a non-zero exit.
        """
        argv = tuple(str(a) for a in args)
        logger.debug("exec: %s", argv)
        try:
            proc = subprocess.run(
                argv, cwd=cwd, capture_output=True,
                text=True, encoding="utf-8", errors="replace",
            )
        except FileNotFoundError as e:
            raise ProcessLaunchError(f"Executable not found: {argv[0]}") from e
        except PermissionError as e:
            raise ProcessLaunchError(f"Permission denied running {argv[0]}") from e
        except OSError as e:
            raise ProcessLaunchError(f"Could not start {argv[0]}: {e}") from e

        result = CompletedCommand(
            args=argv,
            exit_code=proc.returncode,
            stdout=proc.stdout or "",
            stderr=proc.stderr or "",
        )
        if not result.ok:
            raise ProcessExecutionError(
                f"{argv[0]} exited with code {result.exit_code}", result,
            )
        return result
