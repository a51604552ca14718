"""Ephemeral build workspaces."""

from __future__ import annotations

import logging
import shutil
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from arduino_panda.errors import WorkspaceError
from arduino_panda.models import BuildRequest, CompileMode, Workspace

logger = logging.getLogger(__name__)

STAGING_DIRNAME = "tmp"


class WorkspaceManager:
    """Stages sketches for a single build and removes the staging tree afterwards.

    In single-file mode the sketch is copied to
    ``<source dir>/<staging>/<name>/<name>.ino`` so arduino-cli sees a sketch
    folder containing only that file. Two concurrent requests for the same
    source file share that tree; only one build at a time is expected.
    """

    def __init__(self, staging_dirname: str = STAGING_DIRNAME) -> None:
        self.staging_dirname = staging_dirname

    def staging_root(self, source_path: Path) -> Path:
        return Path(source_path).parent / self.staging_dirname

    def prepare(self, request: BuildRequest) -> Workspace:
        source = request.source_path
        if not source.is_file():
            raise WorkspaceError(f"Sketch not found: {source}")

        build_path = request.output_directory
        try:
            build_path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise WorkspaceError(f"Could not create build directory {build_path}: {e}") from e

        if request.compile_mode is CompileMode.MULTI:
            return Workspace(
                root_path=source.parent,
                staged_source_path=source,
                build_output_path=build_path,
                is_temporary=False,
            )

        root = self.staging_root(source)
        sketch_dir = root / request.sketch_name
        staged = sketch_dir / f"{request.sketch_name}.ino"
        try:
            if root.exists():
                # Leftover from an interrupted run.
                shutil.rmtree(root)
            sketch_dir.mkdir(parents=True)
            shutil.copyfile(source, staged)
        except OSError as e:
            self._remove(root)
            raise WorkspaceError(f"Could not stage {source} into {sketch_dir}: {e}") from e

        logger.debug("staged %s -> %s", source, staged)
        return Workspace(
            root_path=root,
            staged_source_path=staged,
            build_output_path=build_path,
            is_temporary=True,
        )

    def prepare_image(self, image_path: Path | str) -> Workspace:
        """Copy a firmware image into a fresh temp directory for flashing."""
        image = Path(image_path)
        if not image.is_file():
            raise WorkspaceError(f"Firmware image not found: {image}")
        try:
            root = Path(tempfile.mkdtemp(prefix="arduino-panda-"))
        except OSError as e:
            raise WorkspaceError(f"Could not create a temporary directory: {e}") from e
        staged = root / f"temp{image.suffix}"
        try:
            shutil.copyfile(image, staged)
        except OSError as e:
            self._remove(root)
            raise WorkspaceError(f"Could not copy {image} into {root}: {e}") from e
        return Workspace(
            root_path=root,
            staged_source_path=staged,
            build_output_path=root,
            is_temporary=True,
        )

    def cleanup(self, workspace: Workspace) -> None:
        """Remove the staging tree. Never raises."""
        if workspace.is_temporary:
            self._remove(workspace.root_path)

    @contextmanager
    def staged(self, request: BuildRequest) -> Iterator[Workspace]:
        workspace = self.prepare(request)
        try:
            yield workspace
        finally:
            self.cleanup(workspace)

    def _remove(self, path: Path) -> None:
        if not path.exists():
            return
        try:
            shutil.rmtree(path)
            logger.debug("removed staging directory %s", path)
        except OSError as e:
            logger.warning("Failed to remove staging directory %s: %s", path, e)
