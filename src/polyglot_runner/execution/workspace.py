from __future__ import annotations

import shutil
import tempfile
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path

from ..errors import CleanupError
from ..languages import ToolchainSpec
from ..log import get_logger
from .java_source import rewrite_java_source

WORKSPACE_PREFIX = "polyglot-"


@dataclass(frozen=True, slots=True)
class Workspace:
    """Ephemeral per-execution directory plus the files placed in it.

    Example:
        ```python
        ws = Workspace(Path("/tmp/polyglot-1"), Path("/tmp/polyglot-1/main_1.py"), None, "main_1")
        ```
    """

    directory: Path
    source_path: Path
    artifact_path: Path | None
    base_name: str

    def template_values(self) -> dict[str, str]:
        """Return the placeholder values used to render toolchain commands.

        Example:
            ```python
            argv = spec.render_run(workspace.template_values())
            ```
        """
        return {
            "source": str(self.source_path),
            "artifact": str(self.artifact_path) if self.artifact_path is not None else "",
            "workdir": str(self.directory),
            "class_name": self.base_name,
        }


class WorkspaceManager:
    """Create and destroy uniquely named execution workspaces.

    Example:
        ```python
        manager = WorkspaceManager(root="/tmp/sandbox")
        ```
    """

    def __init__(self, root: str | Path | None = None) -> None:
        """Bind the manager to a base directory (system temp dir by default).

        Example:
            ```python
            manager = WorkspaceManager()
            ```
        """
        self._root = Path(root) if root else Path(tempfile.gettempdir())
        self._logger = get_logger("workspace")

    @property
    def root(self) -> Path:
        """Return the directory under which workspaces are created.

        Example:
            ```python
            print(manager.root)
            ```
        """
        return self._root

    def create(self, spec: ToolchainSpec, code: str) -> Workspace:
        """Create a fresh workspace and write the source file into it.

        Example:
            ```python
            ws = manager.create(resolve("python"), "print('hi')")
            ```
        """
        token = uuid.uuid4().hex
        directory = self._root / f"{WORKSPACE_PREFIX}{token}"
        self._root.mkdir(parents=True, exist_ok=True)
        directory.mkdir(mode=0o700)

        if spec.language_id == "java":
            base_name = f"Main_{token[:12]}"
            source_text = rewrite_java_source(code, base_name)
        else:
            base_name = f"main_{token[:12]}"
            source_text = code

        artifact_path = None
        if spec.needs_compile:
            artifact_path = directory / f"{base_name}{spec.artifact_extension}"
        workspace = Workspace(
            directory=directory,
            source_path=directory / f"{base_name}{spec.source_extension}",
            artifact_path=artifact_path,
            base_name=base_name,
        )
        try:
            workspace.source_path.write_text(source_text, encoding="utf-8")
        except OSError:
            self.destroy(workspace)
            raise
        self._logger.debug("Created workspace %s", directory)
        return workspace

    def destroy(self, workspace: Workspace) -> None:
        """Remove every file of the workspace; failures are logged, never raised.

        Example:
            ```python
            manager.destroy(ws)
            ```
        """
        try:
            shutil.rmtree(workspace.directory)
        except OSError as exc:
            error = CleanupError(f"Failed to remove workspace {workspace.directory}: {exc}")
            self._logger.warning("%s", error)
            return
        self._logger.debug("Removed workspace %s", workspace.directory)

    @asynccontextmanager
    async def open(self, spec: ToolchainSpec, code: str) -> AsyncIterator[Workspace]:
        """Yield a workspace that is destroyed on every exit path.

        Example:
            ```python
            async with manager.open(spec, code) as ws:
                ...
            ```
        """
        workspace = self.create(spec, code)
        try:
            yield workspace
        finally:
            self.destroy(workspace)
