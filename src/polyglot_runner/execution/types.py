from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

from ..errors import InvalidRequestError

DEFAULT_LANGUAGE = "python"


class ExecutionStatus(str, Enum):
    """Internal outcome taxonomy; collapses to success/error externally.

    Example:
        ```python
        ExecutionStatus.TIMEOUT.is_success
        ```
    """

    SUCCESS = "success"
    RUNTIME_ERROR = "runtime_error"
    COMPILATION_ERROR = "compilation_error"
    TIMEOUT = "timeout"
    UNSUPPORTED_LANGUAGE = "unsupported_language"
    CANCELLED = "cancelled"
    REJECTED = "rejected"

    @property
    def is_success(self) -> bool:
        """Return whether the status maps to the external `success` value.

        Example:
            ```python
            assert ExecutionStatus.SUCCESS.is_success
            ```
        """
        return self is ExecutionStatus.SUCCESS


class ExecutionStage(str, Enum):
    """Per-execution lifecycle stage used for logging and normalization.

    Example:
        ```python
        stage = ExecutionStage.COMPILING
        ```
    """

    PENDING = "pending"
    COMPILING = "compiling"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    TIMEOUT = "timeout"


@dataclass(frozen=True, slots=True)
class ExecutionRequest:
    """One request to execute a snippet of source code.

    Example:
        ```python
        req = ExecutionRequest(code="print(1)", language="python", correlation_id="s-1")
        ```
    """

    code: str
    language: str = DEFAULT_LANGUAGE
    correlation_id: str | None = None

    def __post_init__(self) -> None:
        """Reject empty or non-string code.

        Example:
            ```python
            ExecutionRequest(code="print(1)")
            ```
        """
        if not isinstance(self.code, str) or not self.code.strip():
            raise InvalidRequestError("Code is required")

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "ExecutionRequest":
        """Build a request from the collaborator payload shape.

        Reads `code`, `language` (default `python`) and `sessionId`.

        Example:
            ```python
            req = ExecutionRequest.from_payload({"code": "print(1)", "sessionId": "abc"})
            ```
        """
        language = payload.get("language")
        session_id = payload.get("sessionId")
        return cls(
            code=payload.get("code", ""),
            language=DEFAULT_LANGUAGE if language is None else language,
            correlation_id=None if session_id is None else str(session_id),
        )


@dataclass(frozen=True, slots=True)
class ProcessResult:
    """Raw result of one guarded child process (compile or run).

    Example:
        ```python
        res = ProcessResult(["python3", "main.py"], "hi\\n", "", 0, 0.02)
        ```
    """

    argv: list[str]
    stdout: str
    stderr: str
    returncode: int
    duration_s: float
    peak_rss_bytes: int | None = None
    stdout_truncated: bool = False
    stderr_truncated: bool = False


@dataclass(frozen=True, slots=True)
class ExecutionOutcome:
    """Normalized, immutable result of one execution request.

    Example:
        ```python
        out = ExecutionOutcome(ExecutionStatus.SUCCESS, "hi\\n", None, 42, "3.1MB")
        ```
    """

    status: ExecutionStatus
    stdout: str
    stderr: str | None
    wall_clock_ms: int
    memory_estimate: str
    exit_code: int | None = None
    language: str | None = None
    correlation_id: str | None = None

    @property
    def ok(self) -> bool:
        """Return whether the execution succeeded.

        Example:
            ```python
            if outcome.ok:
                print(outcome.stdout)
            ```
        """
        return self.status.is_success
