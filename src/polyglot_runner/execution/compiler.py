from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from ..errors import CompilationError
from ..languages import ToolchainSpec
from .normalizer import clean_diagnostics
from .process import TimeoutGuard
from .types import ProcessResult
from .workspace import Workspace

COMPILATION_FAILED = "Compilation failed"


@dataclass(frozen=True, slots=True)
class CompileResult:
    """Successful compiler invocation and the artifact it produced.

    Example:
        ```python
        compiled = CompileResult(Path("/tmp/polyglot-1/main_1"), process_result)
        ```
    """

    artifact_path: Path
    process: ProcessResult


async def compile_source(
    workspace: Workspace,
    spec: ToolchainSpec,
    guard: TimeoutGuard,
    *,
    max_output_bytes: int,
    surface_diagnostics: bool = True,
) -> CompileResult:
    """Compile the workspace source, raising `CompilationError` on any non-zero exit.

    The compiler runs under the same guard as the program, so a hung compiler
    times out like a hung program.

    Example:
        ```python
        compiled = await compile_source(ws, resolve("c"), guard, max_output_bytes=131072)
        ```
    """
    if not spec.needs_compile or workspace.artifact_path is None:
        raise ValueError(f"{spec.language_id} does not have a compile stage")

    argv = spec.render_compile(workspace.template_values())
    result = await guard.run(argv, cwd=workspace.directory, max_output_bytes=max_output_bytes)
    if result.returncode != 0:
        message = COMPILATION_FAILED
        if surface_diagnostics:
            diagnostics = clean_diagnostics(
                result.stderr.strip() or result.stdout.strip(), workspace.directory
            )
            if diagnostics:
                message = f"{COMPILATION_FAILED}\n{diagnostics}"
        raise CompilationError(message, result)
    return CompileResult(artifact_path=workspace.artifact_path, process=result)
