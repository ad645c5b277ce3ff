from .capabilities import ToolchainCapabilities, probe_toolchains
from .types import (
    ExecutionOutcome,
    ExecutionRequest,
    ExecutionStage,
    ExecutionStatus,
    ProcessResult,
)

__all__ = [
    "ExecutionOutcome",
    "ExecutionRequest",
    "ExecutionStage",
    "ExecutionStatus",
    "ProcessResult",
    "ToolchainCapabilities",
    "probe_toolchains",
]
