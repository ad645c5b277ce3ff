from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .execution.types import ProcessResult


class SandboxError(Exception):
    """Base class for every error raised by the sandbox.

    Example:
        ```python
        try:
            registry.resolve("ruby")
        except SandboxError as exc:
            print(exc)
        ```
    """


class InvalidRequestError(SandboxError, ValueError):
    """Raised when an execution request is malformed (for example empty code).

    Example:
        ```python
        raise InvalidRequestError("Code is required")
        ```
    """


class UnsupportedLanguageError(SandboxError, LookupError):
    """Raised when a language identifier is not in the registry.

    Example:
        ```python
        raise UnsupportedLanguageError("ruby", ["python", "java"])
        ```
    """

    def __init__(self, language: str, supported: list[str]) -> None:
        """Store the rejected identifier and the supported set.

        Example:
            ```python
            err = UnsupportedLanguageError("ruby", ["python"])
            ```
        """
        self.language = language
        self.supported = list(supported)
        super().__init__(
            f"Unsupported language: {language!r}. Supported: {', '.join(self.supported)}"
        )


class CompilationError(SandboxError):
    """Raised when a compiler exits with a non-zero status.

    Example:
        ```python
        raise CompilationError("Compilation failed", result)
        ```
    """

    def __init__(self, message: str, result: ProcessResult) -> None:
        """Keep the compiler process result next to the message.

        Example:
            ```python
            err = CompilationError("Compilation failed", result)
            ```
        """
        self.result = result
        super().__init__(message)


class ExecutionTimeoutError(SandboxError, TimeoutError):
    """Raised when the wall-clock ceiling expires in the compile or run phase.

    Example:
        ```python
        raise ExecutionTimeoutError(10)
        ```
    """

    def __init__(self, timeout_seconds: int) -> None:
        """Format the user-facing timeout message.

        Example:
            ```python
            err = ExecutionTimeoutError(10)
            ```
        """
        self.timeout_seconds = timeout_seconds
        super().__init__(f"Execution timeout ({timeout_seconds}s limit)")


class ExecutionCancelledError(SandboxError):
    """Raised when an in-flight execution is cancelled by its caller.

    Example:
        ```python
        raise ExecutionCancelledError("Execution cancelled")
        ```
    """


class ToolchainNotFoundError(SandboxError, OSError):
    """Raised when a compiler or interpreter binary cannot be spawned.

    Example:
        ```python
        raise ToolchainNotFoundError("gcc")
        ```
    """

    def __init__(self, command: str) -> None:
        """Format the spawn failure for the given command name.

        Example:
            ```python
            err = ToolchainNotFoundError("javac")
            ```
        """
        self.command = command
        super().__init__(f"Failed to start '{command}': command not found")


class AdmissionRejectedError(SandboxError):
    """Raised when the admission queue is full.

    Example:
        ```python
        raise AdmissionRejectedError("Execution queue is full; retry later")
        ```
    """


class CleanupError(SandboxError):
    """Raised internally when workspace teardown fails; always logged, never propagated.

    Example:
        ```python
        raise CleanupError("could not remove /tmp/polyglot-abc")
        ```
    """
