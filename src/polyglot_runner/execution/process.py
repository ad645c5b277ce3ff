from __future__ import annotations

import asyncio
import os
import signal
import subprocess
import time
from dataclasses import dataclass, field
from pathlib import Path

import psutil

from ..errors import ExecutionCancelledError, ExecutionTimeoutError, ToolchainNotFoundError
from ..log import get_logger
from .types import ProcessResult

_IS_POSIX = os.name == "posix"
_READ_CHUNK = 64 * 1024
_REAP_GRACE_SECONDS = 5.0
_PIPE_GRACE_SECONDS = 0.5
_EXIT_POLL_SECONDS = 0.02
TRUNCATION_MARKER = "\n[output truncated]"

_logger = get_logger("process")


class _StreamCapture:
    """Accumulate one pipe incrementally up to a byte cap.

    Example:
        ```python
        capture = _StreamCapture(limit_bytes=1024)
        ```
    """

    def __init__(self, limit_bytes: int) -> None:
        """Create an empty buffer bounded by `limit_bytes`.

        Example:
            ```python
            capture = _StreamCapture(4096)
            ```
        """
        self._limit = limit_bytes
        self._buffer = bytearray()
        self.truncated = False

    async def drain(self, stream: asyncio.StreamReader | None) -> None:
        """Read the stream to EOF, keeping at most the configured number of bytes.

        Example:
            ```python
            await capture.drain(process.stdout)
            ```
        """
        if stream is None:
            return
        while True:
            chunk = await stream.read(_READ_CHUNK)
            if not chunk:
                return
            room = self._limit - len(self._buffer)
            if room > 0:
                self._buffer.extend(chunk[:room])
            if len(chunk) > room:
                self.truncated = True

    def text(self) -> str:
        """Decode the captured bytes, appending a marker when output was cut.

        Example:
            ```python
            stdout = capture.text()
            ```
        """
        decoded = self._buffer.decode("utf-8", errors="replace")
        return decoded + TRUNCATION_MARKER if self.truncated else decoded


class _PeakMemorySampler:
    """Poll the resident set size of a process tree and keep the peak.

    Example:
        ```python
        sampler = _PeakMemorySampler(pid=1234, interval_s=0.05)
        ```
    """

    def __init__(self, pid: int, interval_s: float) -> None:
        """Bind the sampler to a root pid.

        Example:
            ```python
            sampler = _PeakMemorySampler(process.pid, 0.05)
            ```
        """
        self._pid = pid
        self._interval = interval_s
        self.peak_bytes: int | None = None

    async def run(self) -> None:
        """Sample until cancelled or until the root process disappears.

        Example:
            ```python
            task = asyncio.ensure_future(sampler.run())
            ```
        """
        try:
            root = psutil.Process(self._pid)
        except psutil.Error:
            return
        while True:
            if not self._sample(root):
                return
            await asyncio.sleep(self._interval)

    def _sample(self, root: psutil.Process) -> bool:
        """Take one RSS reading of the tree; return False once the root is gone.

        Example:
            ```python
            alive = sampler._sample(psutil.Process(pid))
            ```
        """
        try:
            procs = [root, *root.children(recursive=True)]
        except psutil.Error:
            return False
        total = 0
        for proc in procs:
            try:
                total += proc.memory_info().rss
            except psutil.Error:
                continue
        if total:
            self.peak_bytes = max(self.peak_bytes or 0, total)
        return True


def _kill_process_group(pid: int) -> None:
    """Kill every remaining member of the session started for `pid` (POSIX only).

    Example:
        ```python
        _kill_process_group(process.pid)
        ```
    """
    if not _IS_POSIX:
        return
    try:
        os.killpg(pid, signal.SIGKILL)
    except ProcessLookupError:
        return
    except PermissionError as exc:
        _logger.warning("Could not kill process group %s: %s", pid, exc)


def kill_tree(pid: int) -> None:
    """Force-kill a live process, its process group and every descendant.

    Example:
        ```python
        kill_tree(process.pid)
        ```
    """
    try:
        root = psutil.Process(pid)
        procs = [*root.children(recursive=True), root]
    except psutil.Error:
        procs = []
    _kill_process_group(pid)
    for proc in procs:
        try:
            proc.kill()
        except psutil.Error:
            continue


async def _spawn(argv: list[str], cwd: Path) -> asyncio.subprocess.Process:
    """Start a child in its own session with piped stdout/stderr.

    Example:
        ```python
        process = await _spawn(["python3", "main.py"], Path("/tmp/w"))
        ```
    """
    kwargs: dict[str, object] = {}
    if _IS_POSIX:
        kwargs["start_new_session"] = True
    else:
        kwargs["creationflags"] = subprocess.CREATE_NEW_PROCESS_GROUP
    try:
        return await asyncio.create_subprocess_exec(
            *argv,
            cwd=str(cwd),
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            **kwargs,
        )
    except FileNotFoundError as exc:
        raise ToolchainNotFoundError(argv[0]) from exc


async def _reap(process: asyncio.subprocess.Process) -> None:
    """Wait briefly for a killed child so it does not linger as a zombie.

    Example:
        ```python
        await _reap(process)
        ```
    """
    try:
        await asyncio.wait_for(process.wait(), timeout=_REAP_GRACE_SECONDS)
    except asyncio.TimeoutError:
        _logger.warning("Process %s did not exit after kill", process.pid)


async def _wait_exit(process: asyncio.subprocess.Process) -> int:
    """Poll until the root child has been reaped, ignoring the state of its pipes.

    `Process.wait()` also waits for the pipes to close, which never happens while a
    background descendant still holds them.

    Example:
        ```python
        returncode = await _wait_exit(process)
        ```
    """
    while process.returncode is None:
        await asyncio.sleep(_EXIT_POLL_SECONDS)
    return process.returncode


@dataclass(slots=True)
class TimeoutGuard:
    """Race guarded child processes against one shared deadline.

    The deadline starts when the guard is created, so consecutive phases (compile
    then run) share the same budget. An optional event cancels the execution early.

    Example:
        ```python
        guard = TimeoutGuard(timeout_seconds=10)
        result = await guard.run(["python3", "main.py"], cwd=Path("/tmp/w"), max_output_bytes=65536)
        ```
    """

    timeout_seconds: int
    cancel_event: asyncio.Event | None = None
    started_at: float = field(default_factory=time.monotonic)

    def remaining(self) -> float:
        """Return the seconds left before the deadline (never negative).

        Example:
            ```python
            guard.remaining()
            ```
        """
        return max(0.0, self.started_at + self.timeout_seconds - time.monotonic())

    @property
    def cancelled(self) -> bool:
        """Return whether cancellation was requested.

        Example:
            ```python
            if guard.cancelled:
                ...
            ```
        """
        return self.cancel_event is not None and self.cancel_event.is_set()

    def check(self) -> None:
        """Raise if the execution was cancelled or the deadline already passed.

        Example:
            ```python
            guard.check()
            ```
        """
        if self.cancelled:
            raise ExecutionCancelledError("Execution cancelled")
        if self.remaining() <= 0:
            raise ExecutionTimeoutError(self.timeout_seconds)

    async def run(
        self,
        argv: list[str],
        *,
        cwd: Path,
        max_output_bytes: int,
        sample_interval_s: float | None = None,
    ) -> ProcessResult:
        """Run one child to completion unless the deadline or cancellation wins.

        Completion means the root child exited; descendants it left behind get a short
        grace period to close the pipes and are then killed. On expiry the
        whole tree is killed, partial output is dropped and `ExecutionTimeoutError`
        is raised; on cancellation `ExecutionCancelledError` is raised instead.

        Example:
            ```python
            result = await guard.run(["node", "main.js"], cwd=ws.directory, max_output_bytes=131072)
            ```
        """
        self.check()
        start = time.monotonic()
        process = await _spawn(argv, cwd)
        _logger.debug("Spawned pid %s: %s", process.pid, argv)

        stdout = _StreamCapture(max_output_bytes)
        stderr = _StreamCapture(max_output_bytes)
        completion = asyncio.ensure_future(self._complete(process, stdout, stderr))
        helpers: list[asyncio.Future[object]] = []
        cancel_waiter: asyncio.Future[object] | None = None
        if self.cancel_event is not None:
            cancel_waiter = asyncio.ensure_future(self.cancel_event.wait())
            helpers.append(cancel_waiter)
        sampler = None
        if sample_interval_s is not None:
            sampler = _PeakMemorySampler(process.pid, sample_interval_s)
            helpers.append(asyncio.ensure_future(sampler.run()))

        try:
            done, _ = await asyncio.wait(
                {completion, *([cancel_waiter] if cancel_waiter is not None else [])},
                timeout=self.remaining(),
                return_when=asyncio.FIRST_COMPLETED,
            )
        except asyncio.CancelledError:
            kill_tree(process.pid)
            completion.cancel()
            raise
        finally:
            for helper in helpers:
                helper.cancel()
            await asyncio.gather(*helpers, return_exceptions=True)

        if completion in done:
            try:
                returncode = completion.result()
            except Exception:
                kill_tree(process.pid)
                await _reap(process)
                raise
            _kill_process_group(process.pid)
            return ProcessResult(
                argv=list(argv),
                stdout=stdout.text(),
                stderr=stderr.text(),
                returncode=returncode,
                duration_s=time.monotonic() - start,
                peak_rss_bytes=sampler.peak_bytes if sampler is not None else None,
                stdout_truncated=stdout.truncated,
                stderr_truncated=stderr.truncated,
            )

        kill_tree(process.pid)
        completion.cancel()
        await asyncio.gather(completion, return_exceptions=True)
        await _reap(process)
        if cancel_waiter is not None and cancel_waiter in done:
            _logger.info("Cancelled pid %s after %.2fs", process.pid, time.monotonic() - start)
            raise ExecutionCancelledError("Execution cancelled")
        _logger.warning(
            "Killed pid %s after exceeding %ss limit", process.pid, self.timeout_seconds
        )
        raise ExecutionTimeoutError(self.timeout_seconds)

    @staticmethod
    async def _complete(
        process: asyncio.subprocess.Process,
        stdout: _StreamCapture,
        stderr: _StreamCapture,
    ) -> int:
        """Wait for the root child to exit, then collect whatever its pipes still hold.

        Descendants that keep a pipe open past the grace period are killed with the
        process group; output they never flushed is dropped.

        Example:
            ```python
            code = await TimeoutGuard._complete(process, out, err)
            ```
        """
        drains = asyncio.ensure_future(
            asyncio.gather(stdout.drain(process.stdout), stderr.drain(process.stderr))
        )
        try:
            returncode = await _wait_exit(process)
            done, _ = await asyncio.wait({drains}, timeout=_PIPE_GRACE_SECONDS)
            if not done:
                _logger.info(
                    "Pid %s exited with descendants still holding its pipes; killing group",
                    process.pid,
                )
                _kill_process_group(process.pid)
                done, _ = await asyncio.wait({drains}, timeout=_PIPE_GRACE_SECONDS)
            if done:
                drains.result()
            else:
                _logger.warning("Pipes of pid %s stayed open after kill", process.pid)
            return returncode
        finally:
            drains.cancel()
            await asyncio.gather(drains, return_exceptions=True)
