"""Reporting surface: where build output and progress go."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

import click

from arduino_panda.models import ProgressEvent


def _discard(_value) -> None:
    pass


@dataclass
class Reporter:
    """A line-oriented log sink plus a progress sink.

    The caller owns the reporter and passes it to each Orchestrator.
    """
    log: Callable[[str], None] = _discard
    progress: Callable[[ProgressEvent], None] = _discard

    @classmethod
    def for_click(cls, show_progress: bool = True, err: bool = False) -> Reporter:
        def log(line: str) -> None:
            click.echo(line, err=err)

        def progress(event: ProgressEvent) -> None:
            click.echo(click.style(f"[{event.increment:>3}%] {event.stage}", dim=True), err=True)

        return cls(log=log, progress=progress if show_progress else _discard)
