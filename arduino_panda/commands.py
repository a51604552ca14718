"""Argument-list builders for arduino-cli subcommands."""

from __future__ import annotations

import re
import shlex
from pathlib import Path

from arduino_panda.errors import InvalidTargetError

# vendor:arch:board with an optional options segment, e.g.
# esp32:esp32:esp32:UploadSpeed=115200,CPUFreq=240
_FQBN_RE = re.compile(r"^[A-Za-z0-9_.-]+:[A-Za-z0-9_.-]+:[A-Za-z0-9_.-]+(:[A-Za-z0-9_.=,-]+)?$")

# vendor:arch
_PLATFORM_RE = re.compile(r"^[A-Za-z0-9_.-]+:[A-Za-z0-9_.-]+$")

_PORT_FORBIDDEN_RE = re.compile(r"[\s\x00-\x1f\x7f]")


def validate_fqbn(fqbn: str) -> str:
    if not isinstance(fqbn, str) or not _FQBN_RE.match(fqbn):
        raise InvalidTargetError(f"Invalid board identifier (FQBN): {fqbn!r}")
    return fqbn


def validate_port(port: str | None) -> str:
    if not port:
        raise InvalidTargetError("No serial port specified")
    if not isinstance(port, str):
        raise InvalidTargetError(f"Invalid serial port: {port!r} (expected a string)")
    if port.startswith("-") or _PORT_FORBIDDEN_RE.search(port):
        raise InvalidTargetError(f"Invalid serial port: {port!r}")
    return port


def validate_platform_id(platform_id: str) -> str:
    if not isinstance(platform_id, str) or not _PLATFORM_RE.match(platform_id):
        raise InvalidTargetError(f"Invalid platform id: {platform_id!r}")
    return platform_id


def render(args: list[str]) -> str:
    """Quote an argument list for display in the log."""
    return shlex.join(str(a) for a in args)


class ArduinoCli:
    """Builds arduino-cli argument lists. Nothing here runs a process."""

    def __init__(self, path: str = "arduino-cli") -> None:
        self.path = path

    def version(self) -> list[str]:
        return [self.path, "version"]

    def board_list(self) -> list[str]:
        return [self.path, "board", "list", "--format", "json"]

    def core_list(self) -> list[str]:
        return [self.path, "core", "list", "--format", "json"]

    def board_listall(self, platform_id: str) -> list[str]:
        return [self.path, "board", "listall", validate_platform_id(platform_id), "--format", "json"]

    def compile(
        self,
        sketch: Path,
        fqbn: str,
        build_path: Path,
        upload: bool = False,
        port: str | None = None,
    ) -> list[str]:
        args = [self.path, "compile"]
        if upload:
            args.append("-u")
        args += ["--build-path", str(build_path)]
        if upload:
            args += ["-p", validate_port(port)]
        args += ["--fqbn", validate_fqbn(fqbn), str(sketch)]
        return args

    def upload(
        self,
        fqbn: str,
        port: str,
        sketch: Path | None = None,
        input_file: Path | None = None,
        input_dir: Path | None = None,
    ) -> list[str]:
        if (sketch is None) == (input_file is None):
            raise ValueError("upload needs exactly one of sketch or input_file")
        args = [self.path, "upload"]
        if input_file is not None:
            args += ["-i", str(input_file)]
        args += ["-p", validate_port(port), "--fqbn", validate_fqbn(fqbn)]
        if sketch is not None:
            if input_dir is not None:
                args += ["--input-dir", str(input_dir)]
            args.append(str(sketch))
        return args
