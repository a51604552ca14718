"""Project configuration (panda.toml) for arduino-panda."""

from __future__ import annotations

import re
import tomllib
from dataclasses import dataclass, field
from pathlib import Path

from arduino_panda.errors import ConfigError

CONFIG_FILENAME = "panda.toml"
WORKSPACE_PLACEHOLDER = "${workspaceFolder}"
DEFAULT_BUILD_PATH = f"{WORKSPACE_PLACEHOLDER}/build"
DEFAULT_COMPLETION_MARKERS = ["Device responded", "avrdude done", "Upload complete"]

_LIST_KEYS = {"upload.completion_markers"}


@dataclass
class ToolchainConfig:
    cli_path: str = "arduino-cli"


@dataclass
class BuildConfig:
    path: str = DEFAULT_BUILD_PATH
    compile_mode: str = "single"


@dataclass
class UploadConfig:
    completion_markers: list[str] = field(default_factory=lambda: list(DEFAULT_COMPLETION_MARKERS))


@dataclass
class ProjectConfig:
    toolchain: ToolchainConfig = field(default_factory=ToolchainConfig)
    build: BuildConfig = field(default_factory=BuildConfig)
    upload: UploadConfig = field(default_factory=UploadConfig)
    board: str | None = None
    port: str | None = None


def _read_toml(project_dir: Path | str) -> dict | None:
    toml_path = Path(project_dir) / CONFIG_FILENAME
    if not toml_path.exists():
        return None
    with open(toml_path, "rb") as f:
        return tomllib.load(f)


def _section(data: dict, name: str) -> dict:
    value = data.get(name, {})
    if not isinstance(value, dict):
        raise ConfigError(f"[{name}] in {CONFIG_FILENAME} must be a table")
    return value


def _as_str(value, key: str) -> str | None:
    """Accept strings, and numbers written without quotes (``port = 3``)."""
    if value is None or isinstance(value, str):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    raise ConfigError(f"{key} in {CONFIG_FILENAME} must be a string, got {type(value).__name__}")


def _as_str_list(value, key: str) -> list[str]:
    """A bare string is one entry; empty entries are rejected."""
    if isinstance(value, str):
        value = [value]
    if isinstance(value, list) and value and all(isinstance(v, str) and v for v in value):
        return list(value)
    raise ConfigError(f"{key} in {CONFIG_FILENAME} must be a non-empty string or list of non-empty strings")


def load_project_config(project_dir: Path | str) -> ProjectConfig:
    """Parse panda.toml and return a typed ProjectConfig.

    Raises FileNotFoundError when the file is absent and ConfigError when a
    known key holds a value of the wrong type.
    """
    data = _read_toml(project_dir)
    if data is None:
        raise FileNotFoundError(f"{CONFIG_FILENAME} not found in {project_dir}")

    toolchain_data = _section(data, "toolchain")
    build_data = _section(data, "build")
    upload_data = _section(data, "upload")

    return ProjectConfig(
        toolchain=ToolchainConfig(
            cli_path=_as_str(toolchain_data.get("cli_path", "arduino-cli"), "toolchain.cli_path"),
        ),
        build=BuildConfig(
            path=_as_str(build_data.get("path", DEFAULT_BUILD_PATH), "build.path"),
            compile_mode=_as_str(build_data.get("compile_mode", "single"), "build.compile_mode"),
        ),
        upload=UploadConfig(
            completion_markers=_as_str_list(
                upload_data.get("completion_markers", DEFAULT_COMPLETION_MARKERS),
                "upload.completion_markers",
            ),
        ),
        board=_as_str(_section(data, "board").get("fqbn"), "board.fqbn"),
        port=_as_str(_section(data, "serial").get("port"), "serial.port"),
    )


def load_project_config_or_default(project_dir: Path | str) -> ProjectConfig:
    try:
        return load_project_config(project_dir)
    except FileNotFoundError:
        return ProjectConfig()


def expand_build_path(template: str, workspace_folder: Path | str | None) -> Path:
    """Substitute ${workspaceFolder} in a build path template."""
    if workspace_folder is not None:
        template = template.replace(WORKSPACE_PLACEHOLDER, str(workspace_folder))
    return Path(template)


def get_config_value(project_dir: Path | str, key: str):
    """Dotted key lookup, e.g. 'board.fqbn', 'build.compile_mode'."""
    data = _read_toml(project_dir)
    if data is None:
        return None

    parts = key.split(".", 1)
    if len(parts) == 2:
        section, k = parts
        return data.get(section, {}).get(k)
    return data.get(key)


def _quote(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def set_config_value(project_dir: Path | str, key: str, value) -> None:
    """Write a value to panda.toml using line-based editing."""
    toml_path = Path(project_dir) / CONFIG_FILENAME

    parts = key.split(".", 1)
    if len(parts) != 2:
        raise ValueError(f"Key must be dotted (section.key), got: {key}")
    section, k = parts

    # Strings are written as given, so a port named "3" stays a string.
    if key in _LIST_KEYS and isinstance(value, str):
        value = [value]

    if isinstance(value, bool):
        val_str = str(value).lower()
    elif isinstance(value, int):
        val_str = str(value)
    elif isinstance(value, str):
        val_str = _quote(value)
    elif isinstance(value, (list, tuple)):
        val_str = "[" + ", ".join(_quote(str(v)) for v in value) + "]"
    else:
        val_str = str(value)

    lines = toml_path.read_text().splitlines(keepends=True) if toml_path.exists() else []

    section_header = f"[{section}]"
    section_idx = None
    key_idx = None
    next_section_idx = None

    for i, line in enumerate(lines):
        stripped = line.strip()
        if stripped == section_header:
            section_idx = i
        elif section_idx is not None and next_section_idx is None:
            if stripped.startswith("[") and stripped.endswith("]"):
                next_section_idx = i
            elif re.match(rf"^{re.escape(k)}\s*=", stripped):
                key_idx = i

    if key_idx is not None:
        lines[key_idx] = f"{k} = {val_str}\n"
    elif section_idx is not None:
        insert_at = next_section_idx if next_section_idx is not None else len(lines)
        if insert_at == len(lines) and lines and not lines[-1].endswith("\n"):
            lines[-1] += "\n"
        lines.insert(insert_at, f"{k} = {val_str}\n")
    else:
        if lines and not lines[-1].endswith("\n"):
            lines.append("\n")
        if lines:
            lines.append("\n")
        lines.append(f"{section_header}\n")
        lines.append(f"{k} = {val_str}\n")

    toml_path.write_text("".join(lines))


def list_config(project_dir: Path | str) -> dict:
    """Return a flat dotted-key dict of all config values."""
    data = _read_toml(project_dir)
    if data is None:
        return {}

    result = {}
    for section, values in data.items():
        if isinstance(values, dict):
            for k, v in values.items():
                result[f"{section}.{k}"] = v
        else:
            result[section] = values
    return result
