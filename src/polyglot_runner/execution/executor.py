from __future__ import annotations

from ..languages import ToolchainSpec
from .process import TimeoutGuard
from .types import ProcessResult
from .workspace import Workspace


async def run_program(
    workspace: Workspace,
    spec: ToolchainSpec,
    guard: TimeoutGuard,
    *,
    max_output_bytes: int,
    sample_interval_s: float | None = None,
) -> ProcessResult:
    """Run the interpreter or compiled artifact for a prepared workspace.

    Every language is started from a file in the workspace, never through `-c`/`-e`.

    Example:
        ```python
        result = await run_program(ws, resolve("python"), guard, max_output_bytes=131072)
        ```
    """
    argv = spec.render_run(workspace.template_values())
    return await guard.run(
        argv,
        cwd=workspace.directory,
        max_output_bytes=max_output_bytes,
        sample_interval_s=sample_interval_s,
    )
