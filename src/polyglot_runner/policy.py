from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any


def _default_policy_path() -> Path:
    """Return bundled default policy TOML path.

    Example:
        ```python
        path = _default_policy_path()
        ```
    """
    return Path(__file__).with_name("default_policy.toml")


def _read_policy_toml(path: Path) -> dict[str, Any]:
    """Read policy TOML and return the policy table.

    Example:
        ```python
        raw = _read_policy_toml(Path("/tmp/policy.toml"))
        ```
    """
    if not path.exists():
        return {
            "timeout_seconds": 10,
            "max_concurrency": 0,
            "max_queued": 0,
            "max_output_kb": 128,
            "memory_sample_interval_ms": 50,
            "error_on_stderr": False,
            "surface_compiler_diagnostics": True,
            "workspace_root": "",
        }
    raw = tomllib.loads(path.read_text(encoding="utf-8"))
    policy_obj = raw.get("policy", raw)
    if not isinstance(policy_obj, dict):
        raise ValueError("Policy config must be a TOML table")
    return policy_obj


def _int_field(raw: dict[str, Any], name: str, default: int) -> int:
    """Read an integer policy field, rejecting booleans and other types.

    Example:
        ```python
        timeout = _int_field({"timeout_seconds": 5}, "timeout_seconds", 10)
        ```
    """
    value = raw.get(name, default)
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"'{name}' must be an integer")
    return value


def _bool_field(raw: dict[str, Any], name: str, default: bool) -> bool:
    """Read a boolean policy field.

    Example:
        ```python
        strict = _bool_field({"error_on_stderr": True}, "error_on_stderr", False)
        ```
    """
    value = raw.get(name, default)
    if not isinstance(value, bool):
        raise ValueError(f"'{name}' must be a boolean")
    return value


_DEFAULT_POLICY_RAW = _read_policy_toml(_default_policy_path())
DEFAULT_TIMEOUT_SECONDS = _int_field(_DEFAULT_POLICY_RAW, "timeout_seconds", 10)
DEFAULT_MAX_CONCURRENCY = _int_field(_DEFAULT_POLICY_RAW, "max_concurrency", 0)
DEFAULT_MAX_QUEUED = _int_field(_DEFAULT_POLICY_RAW, "max_queued", 0)
DEFAULT_MAX_OUTPUT_KB = _int_field(_DEFAULT_POLICY_RAW, "max_output_kb", 128)
DEFAULT_MEMORY_SAMPLE_INTERVAL_MS = _int_field(
    _DEFAULT_POLICY_RAW, "memory_sample_interval_ms", 50
)
DEFAULT_ERROR_ON_STDERR = _bool_field(_DEFAULT_POLICY_RAW, "error_on_stderr", False)
DEFAULT_SURFACE_COMPILER_DIAGNOSTICS = _bool_field(
    _DEFAULT_POLICY_RAW, "surface_compiler_diagnostics", True
)
DEFAULT_WORKSPACE_ROOT = str(_DEFAULT_POLICY_RAW.get("workspace_root", ""))


@dataclass(slots=True)
class SandboxPolicy:
    """Execution limits and behaviour switches for the sandbox.

    Example:
        ```python
        policy = SandboxPolicy(timeout_seconds=5, max_concurrency=2)
        ```
    """

    timeout_seconds: int = DEFAULT_TIMEOUT_SECONDS
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY
    max_queued: int = DEFAULT_MAX_QUEUED
    max_output_kb: int = DEFAULT_MAX_OUTPUT_KB
    memory_sample_interval_ms: int = DEFAULT_MEMORY_SAMPLE_INTERVAL_MS
    error_on_stderr: bool = DEFAULT_ERROR_ON_STDERR
    surface_compiler_diagnostics: bool = DEFAULT_SURFACE_COMPILER_DIAGNOSTICS
    workspace_root: str = DEFAULT_WORKSPACE_ROOT
    config_path: str | None = None

    def __post_init__(self) -> None:
        """Validate numeric limits after dataclass initialization.

        Example:
            ```python
            SandboxPolicy(timeout_seconds=1)
            ```
        """
        if self.timeout_seconds < 1:
            raise ValueError("timeout_seconds must be at least 1")
        if self.max_concurrency < 0:
            raise ValueError("max_concurrency must be 0 (auto) or positive")
        if self.max_queued < 0:
            raise ValueError("max_queued must be 0 (unbounded) or positive")
        if self.max_output_kb < 1:
            raise ValueError("max_output_kb must be at least 1")
        if self.memory_sample_interval_ms < 1:
            raise ValueError("memory_sample_interval_ms must be at least 1")

    @property
    def effective_concurrency(self) -> int:
        """Return the admission limit, resolving 0 to a host-derived default.

        Example:
            ```python
            slots = SandboxPolicy(max_concurrency=0).effective_concurrency
            ```
        """
        if self.max_concurrency:
            return self.max_concurrency
        return min(os.cpu_count() or 1, 4)

    @property
    def max_output_bytes(self) -> int:
        """Return the per-stream capture cap in bytes.

        Example:
            ```python
            cap = SandboxPolicy(max_output_kb=1).max_output_bytes
            ```
        """
        return self.max_output_kb * 1024

    @classmethod
    def from_file(cls, config_path: str) -> "SandboxPolicy":
        """Create a policy instance from a TOML file.

        Example:
            ```python
            policy = SandboxPolicy.from_file("/tmp/policy.toml")
            ```
        """
        raw = _read_policy_toml(Path(config_path))
        workspace_root = raw.get("workspace_root", DEFAULT_WORKSPACE_ROOT)
        if not isinstance(workspace_root, str):
            raise ValueError("'workspace_root' must be a string")
        return cls(
            timeout_seconds=_int_field(raw, "timeout_seconds", DEFAULT_TIMEOUT_SECONDS),
            max_concurrency=_int_field(raw, "max_concurrency", DEFAULT_MAX_CONCURRENCY),
            max_queued=_int_field(raw, "max_queued", DEFAULT_MAX_QUEUED),
            max_output_kb=_int_field(raw, "max_output_kb", DEFAULT_MAX_OUTPUT_KB),
            memory_sample_interval_ms=_int_field(
                raw, "memory_sample_interval_ms", DEFAULT_MEMORY_SAMPLE_INTERVAL_MS
            ),
            error_on_stderr=_bool_field(raw, "error_on_stderr", DEFAULT_ERROR_ON_STDERR),
            surface_compiler_diagnostics=_bool_field(
                raw, "surface_compiler_diagnostics", DEFAULT_SURFACE_COMPILER_DIAGNOSTICS
            ),
            workspace_root=workspace_root,
            config_path=config_path,
        )


def resolve_policy(policy: SandboxPolicy | None, policy_file: str | None) -> SandboxPolicy:
    """Resolve the effective policy object from either argument.

    Example:
        ```python
        policy = resolve_policy(None, "/tmp/policy.toml")
        ```
    """
    if policy is not None and policy_file is not None:
        raise ValueError("Provide either 'policy' or 'policy_file', not both")
    if policy is None and policy_file is not None:
        return SandboxPolicy.from_file(policy_file)
    if policy is None:
        return SandboxPolicy()
    if policy.config_path is not None:
        return SandboxPolicy.from_file(policy.config_path)
    return policy
