"""Shared fixtures: a scripted stand-in for the arduino-cli process runner."""

import json

import pytest

from arduino_panda.errors import ProcessExecutionError, ProcessLaunchError
from arduino_panda.process import CompletedCommand
from arduino_panda.report import Reporter


class FakeRunner:
    """Answers arduino-cli invocations from a table of subcommand prefixes.

    ``on("board", "list", stdout=...)`` matches any call whose arguments
    after the binary start with ``board list``. The first matching rule wins.
    """

    def __init__(self):
        self.calls: list[list[str]] = []
        self._rules = []

    def on(self, *prefix, stdout="", stderr="", exit_code=0, raises=None, before=None):
        if not isinstance(stdout, str):
            stdout = json.dumps(stdout)
        self._rules.append((list(prefix), stdout, stderr, exit_code, raises, before))
        return self

    def run(self, args, cwd=None):
        args = [str(a) for a in args]
        self.calls.append(args)
        for prefix, stdout, stderr, exit_code, raises, before in self._rules:
            if args[1:1 + len(prefix)] != prefix:
                continue
            if before is not None:
                before(args)
            if raises is not None:
                raise raises
            result = CompletedCommand(tuple(args), exit_code, stdout, stderr)
            if exit_code != 0:
                raise ProcessExecutionError(f"{args[0]} exited with code {exit_code}", result)
            return result
        raise ProcessLaunchError(f"unexpected command: {args}")

    def subcommands(self):
        return [call[1] for call in self.calls]


class RecordingReporter(Reporter):
    """Collects log lines and progress events in memory."""

    def __init__(self):
        self.lines = []
        self.events = []
        super().__init__(log=self.lines.append, progress=self.events.append)


@pytest.fixture
def runner():
    fake = FakeRunner()
    fake.on("version", stdout="arduino-cli  Version: 1.0.4 Commit: 1234\n")
    return fake


@pytest.fixture
def sketch(tmp_path):
    src = tmp_path / "project" / "Blink.ino"
    src.parent.mkdir()
    src.write_text("void setup() {}\nvoid loop() {}\n")
    return src
