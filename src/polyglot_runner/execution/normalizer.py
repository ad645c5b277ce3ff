from __future__ import annotations

import os
import re
import time
from pathlib import Path
from typing import Any

from ..errors import (
    AdmissionRejectedError,
    CompilationError,
    ExecutionCancelledError,
    ExecutionTimeoutError,
    UnsupportedLanguageError,
)
from ..log import get_logger
from .types import ExecutionOutcome, ExecutionStage, ExecutionStatus, ProcessResult

NO_OUTPUT = "No output"
NOT_MEASURED = "0MB"
UNSAMPLED = "n/a"

_ANSI_ESCAPE = re.compile(r"\x1b\[[0-9;?]*[A-Za-z]")
_BYTES_PER_MB = 1024 * 1024
_logger = get_logger("normalizer")


def clean_diagnostics(text: str, workspace_dir: Path | None = None) -> str:
    """Strip ANSI colour codes and hide the absolute workspace path.

    Example:
        ```python
        clean_diagnostics("/tmp/polyglot-1/main.c:1: error", Path("/tmp/polyglot-1"))
        ```
    """
    cleaned = _ANSI_ESCAPE.sub("", text)
    if workspace_dir is not None:
        directory = str(workspace_dir)
        cleaned = cleaned.replace(directory + os.sep, "").replace(directory, ".")
    return cleaned


def format_memory(peak_bytes: int | None) -> str:
    """Render a sampled peak RSS, or `n/a` when no sample was taken.

    Example:
        ```python
        format_memory(5 * 1024 * 1024)
        ```
    """
    if peak_bytes is None:
        return UNSAMPLED
    return f"{peak_bytes / _BYTES_PER_MB:.1f}MB"


def elapsed_ms(started_at: float) -> int:
    """Milliseconds elapsed since a `time.monotonic()` reading.

    Example:
        ```python
        ms = elapsed_ms(started_at)
        ```
    """
    return int(round((time.monotonic() - started_at) * 1000))


def _failure_status(error: BaseException) -> tuple[ExecutionStatus, str]:
    """Map a sandbox exception onto the outcome taxonomy and a message.

    Example:
        ```python
        status, message = _failure_status(ExecutionTimeoutError(10))
        ```
    """
    if isinstance(error, UnsupportedLanguageError):
        return ExecutionStatus.UNSUPPORTED_LANGUAGE, str(error)
    if isinstance(error, CompilationError):
        return ExecutionStatus.COMPILATION_ERROR, str(error)
    if isinstance(error, ExecutionTimeoutError):
        return ExecutionStatus.TIMEOUT, str(error)
    if isinstance(error, ExecutionCancelledError):
        return ExecutionStatus.CANCELLED, str(error)
    if isinstance(error, AdmissionRejectedError):
        return ExecutionStatus.REJECTED, str(error)
    if isinstance(error, OSError):
        return ExecutionStatus.RUNTIME_ERROR, str(error)
    return ExecutionStatus.RUNTIME_ERROR, f"Internal sandbox error: {error}"


def normalize(
    stage: ExecutionStage,
    *,
    started_at: float,
    result: ProcessResult | None = None,
    error: BaseException | None = None,
    error_on_stderr: bool = False,
    workspace_dir: Path | None = None,
    language: str | None = None,
    correlation_id: str | None = None,
) -> ExecutionOutcome:
    """Turn the last stage's result or failure into one `ExecutionOutcome`.

    Exactly one of `result` (a finished run) or `error` must be given. The wall
    clock is read at call time, so call this after workspace teardown.

    Example:
        ```python
        outcome = normalize(ExecutionStage.RUNNING, started_at=t0, result=run_result)
        ```
    """
    if error is not None and result is None:
        status, message = _failure_status(error)
        exit_code = error.result.returncode if isinstance(error, CompilationError) else None
        outcome = ExecutionOutcome(
            status=status,
            stdout="",
            stderr=message,
            wall_clock_ms=elapsed_ms(started_at),
            memory_estimate=NOT_MEASURED,
            exit_code=exit_code,
            language=language,
            correlation_id=correlation_id,
        )
    elif result is not None and error is None:
        stderr = clean_diagnostics(result.stderr, workspace_dir)
        error_text: str | None = stderr if stderr.strip() else None
        failed = result.returncode != 0 or (error_on_stderr and error_text is not None)
        if result.returncode != 0 and error_text is None:
            error_text = f"Process exited with code {result.returncode}"
        if result.stdout:
            stdout = result.stdout
        else:
            stdout = "" if error_text is not None else NO_OUTPUT
        outcome = ExecutionOutcome(
            status=ExecutionStatus.RUNTIME_ERROR if failed else ExecutionStatus.SUCCESS,
            stdout=stdout,
            stderr=error_text,
            wall_clock_ms=elapsed_ms(started_at),
            memory_estimate=format_memory(result.peak_rss_bytes),
            exit_code=result.returncode,
            language=language,
            correlation_id=correlation_id,
        )
    else:
        raise ValueError("normalize() needs exactly one of 'result' or 'error'")

    _logger.debug(
        "Execution %s ended at stage %s with %s",
        correlation_id or "-",
        stage.value,
        outcome.status.value,
    )
    return outcome


def to_response(outcome: ExecutionOutcome) -> dict[str, Any]:
    """Render an outcome in the external two-status response shape.

    Example:
        ```python
        payload = to_response(outcome)
        ```
    """
    return {
        "output": outcome.stdout,
        "error": outcome.stderr,
        "executionTime": f"{outcome.wall_clock_ms}ms",
        "memory": outcome.memory_estimate,
        "status": "success" if outcome.ok else "error",
    }


def error_response(message: str, started_at: float) -> dict[str, Any]:
    """Build an error response for requests rejected before execution.

    Example:
        ```python
        payload = error_response("Code is required", time.monotonic())
        ```
    """
    return {
        "output": "",
        "error": message,
        "executionTime": f"{elapsed_ms(started_at)}ms",
        "memory": NOT_MEASURED,
        "status": "error",
    }
