from __future__ import annotations

import asyncio
import time
import uuid
from collections.abc import Mapping
from typing import Any

from .errors import (
    AdmissionRejectedError,
    InvalidRequestError,
    SandboxError,
    UnsupportedLanguageError,
)
from .execution.admission import AdmissionController
from .execution.compiler import compile_source
from .execution.executor import run_program
from .execution.normalizer import error_response, normalize, to_response
from .execution.process import TimeoutGuard
from .execution.types import (
    DEFAULT_LANGUAGE,
    ExecutionOutcome,
    ExecutionRequest,
    ExecutionStage,
    ExecutionStatus,
    ProcessResult,
)
from .execution.workspace import WorkspaceManager
from .languages import DEFAULT_REGISTRY, LanguageRegistry, ToolchainSpec
from .log import get_logger
from .policy import SandboxPolicy, resolve_policy

_TERMINAL_STAGES = {
    ExecutionStatus.SUCCESS: ExecutionStage.COMPLETED,
    ExecutionStatus.TIMEOUT: ExecutionStage.TIMEOUT,
}


class CodeSandbox:
    """Build and run untrusted snippets in ephemeral workspaces.

    One instance is meant to be shared by every request of a process: it owns the
    admission limit and the registry of in-flight executions that can be cancelled.

    Example:
        ```python
        sandbox = CodeSandbox(policy=SandboxPolicy(timeout_seconds=5))
        outcome = await sandbox.execute(ExecutionRequest(code="print(1)", language="python"))
        ```
    """

    def __init__(
        self,
        *,
        policy: SandboxPolicy | None = None,
        policy_file: str | None = None,
        registry: LanguageRegistry | None = None,
    ) -> None:
        """Resolve the policy and prepare the workspace and admission components.

        Example:
            ```python
            sandbox = CodeSandbox(policy_file="/etc/polyglot/policy.toml")
            ```
        """
        self._policy = resolve_policy(policy, policy_file)
        self._registry = registry or DEFAULT_REGISTRY
        self._workspaces = WorkspaceManager(self._policy.workspace_root or None)
        self._admission = AdmissionController(
            self._policy.effective_concurrency, self._policy.max_queued
        )
        self._cancel_events: dict[str, set[asyncio.Event]] = {}
        self._logger = get_logger("sandbox")

    @property
    def policy(self) -> SandboxPolicy:
        """Return the effective policy.

        Example:
            ```python
            sandbox.policy.timeout_seconds
            ```
        """
        return self._policy

    @property
    def registry(self) -> LanguageRegistry:
        """Return the language registry used for lookups.

        Example:
            ```python
            sandbox.registry.supported()
            ```
        """
        return self._registry

    @property
    def workspaces(self) -> WorkspaceManager:
        """Return the workspace manager.

        Example:
            ```python
            sandbox.workspaces.root
            ```
        """
        return self._workspaces

    @property
    def admission(self) -> AdmissionController:
        """Return the admission controller.

        Example:
            ```python
            sandbox.admission.in_flight
            ```
        """
        return self._admission

    async def execute(self, request: ExecutionRequest) -> ExecutionOutcome:
        """Execute one request and return its normalized outcome; never raises for user code.

        Example:
            ```python
            request = ExecutionRequest(code="int main(){return 0;}", language="c")
            outcome = await sandbox.execute(request)
            ```
        """
        started_at = time.monotonic()
        execution_id = uuid.uuid4().hex[:8]
        language = str(request.language)
        self._logger.info(
            "[%s] Accepted %s request (correlation=%s)",
            execution_id,
            language,
            request.correlation_id or "-",
        )
        try:
            spec = self._registry.resolve(request.language)
        except UnsupportedLanguageError as exc:
            self._logger.info("[%s] %s", execution_id, exc)
            return normalize(
                ExecutionStage.PENDING,
                started_at=started_at,
                error=exc,
                language=language,
                correlation_id=request.correlation_id,
            )

        cancel_event = self._register(request.correlation_id)
        try:
            async with self._admission.slot():
                outcome = await self._execute_admitted(
                    request, spec, execution_id, started_at, cancel_event
                )
        except AdmissionRejectedError as exc:
            outcome = normalize(
                ExecutionStage.PENDING,
                started_at=started_at,
                error=exc,
                language=spec.language_id,
                correlation_id=request.correlation_id,
            )
        finally:
            self._unregister(request.correlation_id, cancel_event)

        self._logger.info(
            "[%s] Finished %s with %s in %sms",
            execution_id,
            spec.language_id,
            outcome.status.value,
            outcome.wall_clock_ms,
        )
        return outcome

    async def handle(self, payload: Mapping[str, Any]) -> dict[str, Any]:
        """Collaborator boundary: payload in, external response dict out, never raises.

        Example:
            ```python
            response = await sandbox.handle({"code": "console.log(1)", "language": "javascript"})
            ```
        """
        started_at = time.monotonic()
        try:
            request = ExecutionRequest.from_payload(payload)
        except InvalidRequestError as exc:
            return error_response(str(exc), started_at)
        return to_response(await self.execute(request))

    def cancel(self, correlation_id: str) -> bool:
        """Cancel every in-flight execution carrying `correlation_id`.

        Example:
            ```python
            sandbox.cancel("session-42")
            ```
        """
        events = self._cancel_events.get(correlation_id)
        if not events:
            return False
        for event in events:
            event.set()
        self._logger.info("Cancellation requested for %s", correlation_id)
        return True

    async def _execute_admitted(
        self,
        request: ExecutionRequest,
        spec: ToolchainSpec,
        execution_id: str,
        started_at: float,
        cancel_event: asyncio.Event | None,
    ) -> ExecutionOutcome:
        """Run the workspace, compile and run stages for an admitted request.

        Example:
            ```python
            outcome = await sandbox._execute_admitted(request, spec, "ab12cd34", t0, None)
            ```
        """
        policy = self._policy
        guard = TimeoutGuard(policy.timeout_seconds, cancel_event)
        stage = ExecutionStage.PENDING
        result: ProcessResult | None = None
        failure: BaseException | None = None
        workspace_dir = None
        try:
            async with self._workspaces.open(spec, request.code) as workspace:
                workspace_dir = workspace.directory
                if spec.needs_compile:
                    stage = self._advance(execution_id, stage, ExecutionStage.COMPILING)
                    await compile_source(
                        workspace,
                        spec,
                        guard,
                        max_output_bytes=policy.max_output_bytes,
                        surface_diagnostics=policy.surface_compiler_diagnostics,
                    )
                stage = self._advance(execution_id, stage, ExecutionStage.RUNNING)
                result = await run_program(
                    workspace,
                    spec,
                    guard,
                    max_output_bytes=policy.max_output_bytes,
                    sample_interval_s=policy.memory_sample_interval_ms / 1000,
                )
        except (SandboxError, OSError) as exc:
            failure = exc
        except Exception as exc:
            self._logger.exception("[%s] Unexpected failure during %s", execution_id, stage.value)
            failure = exc

        outcome = normalize(
            stage,
            started_at=started_at,
            result=result,
            error=failure,
            error_on_stderr=policy.error_on_stderr,
            workspace_dir=workspace_dir,
            language=spec.language_id,
            correlation_id=request.correlation_id,
        )
        self._advance(
            execution_id, stage, _TERMINAL_STAGES.get(outcome.status, ExecutionStage.FAILED)
        )
        return outcome

    def _advance(
        self, execution_id: str, current: ExecutionStage, target: ExecutionStage
    ) -> ExecutionStage:
        """Log a state-machine transition and return the new stage.

        Example:
            ```python
            stage = sandbox._advance("ab12cd34", ExecutionStage.PENDING, ExecutionStage.RUNNING)
            ```
        """
        self._logger.debug("[%s] %s -> %s", execution_id, current.value, target.value)
        return target

    def _register(self, correlation_id: str | None) -> asyncio.Event | None:
        """Track a cancellation event for a correlated request.

        Example:
            ```python
            event = sandbox._register("session-42")
            ```
        """
        if correlation_id is None:
            return None
        event = asyncio.Event()
        self._cancel_events.setdefault(correlation_id, set()).add(event)
        return event

    def _unregister(self, correlation_id: str | None, event: asyncio.Event | None) -> None:
        """Forget the cancellation event of a finished request.

        Example:
            ```python
            sandbox._unregister("session-42", event)
            ```
        """
        if correlation_id is None or event is None:
            return
        events = self._cancel_events.get(correlation_id)
        if events is None:
            return
        events.discard(event)
        if not events:
            del self._cancel_events[correlation_id]


def run_code(
    code: str,
    language: str = DEFAULT_LANGUAGE,
    *,
    correlation_id: str | None = None,
    policy: SandboxPolicy | None = None,
    policy_file: str | None = None,
    registry: LanguageRegistry | None = None,
) -> ExecutionOutcome:
    """Execute one snippet synchronously on a fresh event loop.

    Example:
        ```python
        from polyglot_runner import run_code
        outcome = run_code("print(2 + 2)", "python")
        ```
    """
    sandbox = CodeSandbox(policy=policy, policy_file=policy_file, registry=registry)
    request = ExecutionRequest(code=code, language=language, correlation_id=correlation_id)
    return asyncio.run(sandbox.execute(request))
