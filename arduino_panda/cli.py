"""CLI entry point for arduino-panda."""

import json as jsonmod
import logging
from pathlib import Path

import click
from serial.tools.list_ports import comports

from arduino_panda import __version__
from arduino_panda.commands import ArduinoCli
from arduino_panda.config import (
    CONFIG_FILENAME,
    expand_build_path,
    get_config_value,
    list_config,
    load_project_config_or_default,
    set_config_value,
)
from arduino_panda.discovery import DiscoveryService
from arduino_panda.errors import OperationFailed, PandaError
from arduino_panda.models import BuildRequest, CompileMode
from arduino_panda.orchestrator import Orchestrator
from arduino_panda.process import ProcessRunner
from arduino_panda.report import Reporter

_SKIP_DIRS = {"tmp", "build", ".git", "node_modules"}


@click.group()
@click.version_option(__version__, prog_name="arduino-panda")
@click.option("-v", "--verbose", is_flag=True, help="Log debug output.")
def main(verbose):
    """Compile and flash Arduino sketches with arduino-cli."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


def _fail(error: PandaError, use_json: bool = False):
    if use_json:
        click.echo(jsonmod.dumps(error.to_dict(), indent=2), err=True)
    else:
        click.echo(f"Error: {error.message}", err=True)
    raise SystemExit(error.exit_code)


def _discovery(project_dir: Path) -> DiscoveryService:
    config = load_project_config_or_default(project_dir)
    return DiscoveryService(ProcessRunner(), ArduinoCli(config.toolchain.cli_path))


def _find_sketch(project_dir: Path) -> Path:
    """Pick the sketch to build when none is given on the command line."""
    sketches = []
    for path in sorted(project_dir.rglob("*.ino")):
        if any(part in _SKIP_DIRS for part in path.relative_to(project_dir).parts[:-1]):
            continue
        sketches.append(path)

    if not sketches:
        raise click.UsageError("No Arduino sketches (.ino) found in this directory.")
    if len(sketches) == 1:
        return sketches[0]

    click.echo("Multiple sketches found:\n")
    for i, path in enumerate(sketches, 1):
        click.echo(f"  {i}. {path.relative_to(project_dir)}")
    click.echo()
    choice = click.prompt("Which sketch?", type=int)
    if choice < 1 or choice > len(sketches):
        click.echo("Invalid choice.")
        raise SystemExit(1)
    return sketches[choice - 1]


def _build_request(project_dir, sketch, board, port, mode, build_path, config, need_port):
    board = board or config.board
    if not board:
        raise click.UsageError(f"No board specified. Use --board or set board.fqbn in {CONFIG_FILENAME}")
    port = port or config.port
    if need_port and not port:
        raise click.UsageError(f"No serial port specified. Use --port or set serial.port in {CONFIG_FILENAME}")
    try:
        compile_mode = CompileMode.parse(mode or config.build.compile_mode)
    except ValueError as e:
        raise click.UsageError(str(e))

    return BuildRequest(
        source_path=Path(sketch).resolve() if sketch else _find_sketch(project_dir),
        fqbn=board,
        port=port,
        compile_mode=compile_mode,
        output_directory=expand_build_path(build_path or config.build.path, project_dir).resolve(),
    )


def _run_operation(operation, sketch, board, port, mode, build_path, use_json, need_port):
    project_dir = Path.cwd()
    try:
        config = load_project_config_or_default(project_dir)
    except PandaError as e:
        _fail(e, use_json)
    request = _build_request(project_dir, sketch, board, port, mode, build_path, config, need_port)

    orchestrator = Orchestrator(
        runner=ProcessRunner(),
        cli=ArduinoCli(config.toolchain.cli_path),
        reporter=Reporter() if use_json else Reporter.for_click(),
        completion_markers=config.upload.completion_markers,
    )
    try:
        result = getattr(orchestrator, operation)(request)
    except PandaError as e:
        _fail(e, use_json)

    if use_json:
        click.echo(jsonmod.dumps(result.to_dict(), indent=2))
    try:
        result.raise_for_status()
    except OperationFailed as e:
        if not use_json:
            click.echo(f"Error: {e.message}", err=True)
        raise SystemExit(e.exit_code)


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------

@main.command()
@click.option("--json", "use_json", is_flag=True, help="Output JSON.")
def ports(use_json):
    """List serial ports seen by arduino-cli."""
    try:
        found = _discovery(Path.cwd()).list_ports()
    except PandaError as e:
        _fail(e, use_json)

    if use_json:
        click.echo(jsonmod.dumps([p.to_dict() for p in found], indent=2))
        return
    if not found:
        click.echo("No serial ports found.")
        return
    for p in found:
        click.echo(f"  {p.address:<25} {p.description or ''}".rstrip())


@main.command()
@click.option("--json", "use_json", is_flag=True, help="Output JSON.")
def boards(use_json):
    """List boards of all installed platforms."""
    try:
        found = _discovery(Path.cwd()).list_boards()
    except PandaError as e:
        _fail(e, use_json)

    if use_json:
        click.echo(jsonmod.dumps([b.to_dict() for b in found], indent=2))
        return
    if not found:
        click.echo("No boards found. Install a platform with 'arduino-cli core install <vendor:arch>'.")
        return
    click.echo(f"Installed boards ({len(found)}):\n")
    for b in found:
        click.echo(f"  {b.fqbn:<35} {b.name}")


# ---------------------------------------------------------------------------
# Build and flash
# ---------------------------------------------------------------------------

_mode_option = click.option(
    "--mode", type=click.Choice([m.value for m in CompileMode]), default=None,
    help="single: build an isolated copy of the file; multi: build the sketch folder in place.",
)
_build_path_option = click.option(
    "--build-path", type=str, default=None,
    help="Build output directory. ${workspaceFolder} expands to the current directory.",
)


@main.command("compile")
@click.argument("sketch", required=False, type=click.Path(dir_okay=False))
@click.option("--board", type=str, help="Fully qualified board name, e.g. arduino:avr:uno.")
@_mode_option
@_build_path_option
@click.option("--json", "use_json", is_flag=True, help="Output JSON.")
def compile_cmd(sketch, board, mode, build_path, use_json):
    """Compile a sketch."""
    _run_operation("compile", sketch, board, None, mode, build_path, use_json, need_port=False)


@main.command()
@click.argument("file", type=click.Path(dir_okay=False))
@click.option("--board", type=str, help="Fully qualified board name.")
@click.option("--port", type=str, help="Serial port (e.g. /dev/ttyUSB0, COM3).")
@_mode_option
@_build_path_option
@click.option("--json", "use_json", is_flag=True, help="Output JSON.")
def upload(file, board, port, mode, build_path, use_json):
    """Upload a compiled sketch or a firmware image (.hex, .bin)."""
    _run_operation("flash", file, board, port, mode, build_path, use_json, need_port=True)


@main.command()
@click.argument("sketch", required=False, type=click.Path(dir_okay=False))
@click.option("--board", type=str, help="Fully qualified board name.")
@click.option("--port", type=str, help="Serial port (e.g. /dev/ttyUSB0, COM3).")
@_mode_option
@_build_path_option
@click.option("--json", "use_json", is_flag=True, help="Output JSON.")
def flash(sketch, board, port, mode, build_path, use_json):
    """Compile a sketch and upload it in one step."""
    _run_operation("compile_and_flash", sketch, board, port, mode, build_path, use_json, need_port=True)


# ---------------------------------------------------------------------------
# Environment
# ---------------------------------------------------------------------------

@main.command()
def doctor():
    """Check that arduino-cli and a serial port are available."""
    ok = True

    try:
        version = _discovery(Path.cwd()).check_toolchain()
        click.echo(f"[OK] arduino-cli: {version}")
    except PandaError as e:
        click.echo(f"[!!] {e.message}")
        ok = False

    devices = list(comports())
    if devices:
        click.echo("[OK] Serial ports found:")
        for p in devices:
            click.echo(f"     {p.device:<25} {p.description}")
    else:
        click.echo("[!!] No serial ports detected. Is a board connected via USB?")
        ok = False

    if ok:
        click.echo("\nAll checks passed.")
    else:
        click.echo("\nSome checks failed. Fix the issues above.")
        raise SystemExit(1)


@main.command("config")
@click.argument("key", required=False)
@click.argument("value", required=False)
@click.option("--list", "show_list", is_flag=True, help="Show all config values.")
def config_cmd(key, value, show_list):
    """Get or set panda.toml configuration values."""
    project_dir = Path.cwd()

    if show_list:
        values = list_config(project_dir)
        if not values:
            click.echo("No configuration found.")
            return
        for k, v in sorted(values.items()):
            click.echo(f"  {k} = {v}")
        return

    if key and value:
        try:
            set_config_value(project_dir, key, value)
        except ValueError as e:
            raise click.UsageError(str(e))
        click.echo(f"Set {key} = {value}")
        return

    if key:
        val = get_config_value(project_dir, key)
        if val is None:
            click.echo(f"{key} is not set.")
        else:
            click.echo(f"{key} = {val}")
        return

    click.echo("Usage: arduino-panda config <KEY> [VALUE] or arduino-panda config --list")
