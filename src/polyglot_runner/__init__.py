from .errors import (
    AdmissionRejectedError,
    CompilationError,
    ExecutionCancelledError,
    ExecutionTimeoutError,
    InvalidRequestError,
    SandboxError,
    ToolchainNotFoundError,
    UnsupportedLanguageError,
)
from .execution.types import ExecutionOutcome, ExecutionRequest, ExecutionStatus
from .languages import DEFAULT_REGISTRY, LanguageRegistry, ToolchainSpec
from .log import configure_logging
from .policy import SandboxPolicy
from .runner import CodeSandbox, run_code

__all__ = [
    "AdmissionRejectedError",
    "CodeSandbox",
    "CompilationError",
    "DEFAULT_REGISTRY",
    "ExecutionCancelledError",
    "ExecutionOutcome",
    "ExecutionRequest",
    "ExecutionStatus",
    "ExecutionTimeoutError",
    "InvalidRequestError",
    "LanguageRegistry",
    "SandboxError",
    "SandboxPolicy",
    "ToolchainNotFoundError",
    "ToolchainSpec",
    "UnsupportedLanguageError",
    "configure_logging",
    "run_code",
]
