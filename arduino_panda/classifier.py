"""Per-line classifier for arduino-cli compile/upload output."""

from __future__ import annotations

import re

from arduino_panda.models import Diagnostic, ProgressEvent, Severity

# path:line:col: error: message
# The path group is non-greedy so Windows drive letters (C:\...) stay in it.
_DIAGNOSTIC_RE = re.compile(
    r"^(?P<file>.+?):(?P<line>\d+):(?P<col>\d+):\s*"
    r"(?P<severity>(?:fatal )?error|warning):\s*(?P<message>.*)$"
)

# First match wins.
PROGRESS_TRIGGERS: tuple[tuple[str, int], ...] = (
    ("Compiling", 30),
    ("Linking", 60),
    ("Building", 80),
    ("Uploading", 90),
)


class OutputClassifier:
    """Turn raw toolchain lines into diagnostics and progress events.

    Diagnostic and progress classification are independent: the same line
    can produce both, either, or neither.
    """

    def __init__(self, progress_triggers: tuple[tuple[str, int], ...] = PROGRESS_TRIGGERS) -> None:
        self.progress_triggers = progress_triggers

    def classify_line(self, line: str) -> Diagnostic | None:
        line = line.strip()
        if not line:
            return None

        m = _DIAGNOSTIC_RE.match(line)
        if m:
            severity_text = m.group("severity")
            severity = Severity.WARNING if severity_text == "warning" else Severity.ERROR
            return Diagnostic(
                severity=severity,
                message=f"{severity_text}: {m.group('message')}",
                source_file=m.group("file"),
                line=int(m.group("line")),
                column=int(m.group("col")),
            )

        if "error:" in line:
            return Diagnostic(severity=Severity.ERROR, message=line)
        if "warning:" in line:
            return Diagnostic(severity=Severity.WARNING, message=line)
        return None

    def classify_progress(self, line: str) -> ProgressEvent | None:
        for trigger, increment in self.progress_triggers:
            if trigger in line:
                return ProgressEvent(stage=trigger, increment=increment)
        return None

    def diagnostics(self, text: str) -> list[Diagnostic]:
        """Classify every line of ``text``, keeping order."""
        found = []
        for line in text.splitlines():
            diagnostic = self.classify_line(line)
            if diagnostic is not None:
                found.append(diagnostic)
        return found

    def progress(self, text: str) -> list[ProgressEvent]:
        events = []
        for line in text.splitlines():
            event = self.classify_progress(line)
            if event is not None:
                events.append(event)
        return events
