"""Port and board discovery through arduino-cli."""

from __future__ import annotations

import json
import logging

from arduino_panda.commands import ArduinoCli
from arduino_panda.errors import (
    ProcessExecutionError,
    ProcessLaunchError,
    ToolchainQueryError,
    ToolchainUnavailableError,
)
from arduino_panda.models import BoardInfo, PortInfo
from arduino_panda.process import ProcessRunner

logger = logging.getLogger(__name__)


def check_toolchain(runner: ProcessRunner, cli: ArduinoCli) -> str:
    """Return the ``arduino-cli version`` text, or raise ToolchainUnavailableError."""
    try:
        result = runner.run(cli.version())
    except ProcessLaunchError as e:
        raise ToolchainUnavailableError(
            f"arduino-cli not found at {cli.path!r}. Install from https://arduino.github.io/arduino-cli/"
        ) from e
    except ProcessExecutionError as e:
        raise ToolchainUnavailableError(
            f"arduino-cli at {cli.path!r} did not answer a version query (exit code {e.result.exit_code})"
        ) from e
    return result.stdout.strip()


def _unwrap(data, key: str):
    """Newer arduino-cli releases wrap list results in an object."""
    if isinstance(data, dict) and isinstance(data.get(key), list):
        return data[key]
    return data


class DiscoveryService:
    """Enumerate connected ports and installed boards.

    Every call queries arduino-cli afresh; nothing is cached.
    """

    def __init__(self, runner: ProcessRunner | None = None, cli: ArduinoCli | None = None) -> None:
        self.runner = runner or ProcessRunner()
        self.cli = cli or ArduinoCli()

    def check_toolchain(self) -> str:
        return check_toolchain(self.runner, self.cli)

    def list_ports(self) -> list[PortInfo]:
        self.check_toolchain()
        data = _unwrap(self._query(self.cli.board_list()), "detected_ports")
        if not isinstance(data, list):
            return []

        ports: list[PortInfo] = []
        for entry in data:
            port = entry.get("port") if isinstance(entry, dict) else None
            if not isinstance(port, dict) or not port.get("address"):
                continue

            description = port.get("protocol_label") or ""
            props = port.get("properties") or {}
            vid = props.get("vid")
            pid = props.get("pid")
            if vid and pid:
                description += f" (VID:{vid} PID:{pid})"
            ports.append(PortInfo(address=port["address"], description=description.strip() or None))
        return ports

    def list_boards(self) -> list[BoardInfo]:
        self.check_toolchain()
        platforms = _unwrap(self._query(self.cli.core_list()), "platforms")
        if not isinstance(platforms, list):
            return []

        boards: list[BoardInfo] = []
        for platform in platforms:
            platform_id = platform.get("id") if isinstance(platform, dict) else None
            try:
                if not platform_id:
                    raise ToolchainQueryError(f"platform entry without id: {platform!r}")
                data = self._query(self.cli.board_listall(platform_id))
            except Exception as e:
                logger.warning("Skipping boards of platform %s: %s", platform_id, e)
                continue

            entries = data.get("boards") if isinstance(data, dict) else None
            if not isinstance(entries, list):
                continue
            for board in entries:
                if not isinstance(board, dict):
                    continue
                name = board.get("name")
                fqbn = board.get("fqbn")
                if name and fqbn:
                    boards.append(BoardInfo(name=name, fqbn=fqbn))
        return boards

    def _query(self, args: list[str]):
        try:
            result = self.runner.run(args)
        except ProcessLaunchError as e:
            raise ToolchainQueryError(f"Could not run {' '.join(args[1:])}: {e.message}") from e
        except ProcessExecutionError as e:
            detail = e.result.stderr.strip() or e.message
            raise ToolchainQueryError(f"{' '.join(args[1:])} failed: {detail}") from e
        try:
            return json.loads(result.stdout)
        except json.JSONDecodeError as e:
            raise ToolchainQueryError(f"Unparsable output from {' '.join(args[1:])}: {e}") from e
