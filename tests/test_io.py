import shutil
from pathlib import Path

import pytest

from polyglot_runner import SandboxPolicy, run_code

pytestmark = pytest.mark.skipif(shutil.which("python3") is None, reason="python3 not on PATH")


def test_stdout_capture(tmp_path: Path) -> None:
    """Verify multi-line print output is captured verbatim."""
    code = """
print("Hello")
print("World")
"""
    result = run_code(code, policy=SandboxPolicy(workspace_root=str(tmp_path)))

    assert result.ok
    assert result.stdout == "Hello\nWorld\n"


def test_unicode_output(tmp_path: Path) -> None:
    """Verify non-ASCII output survives decoding."""
    code = "import sys\nsys.stdout.buffer.write('héllo ✓\\n'.encode('utf-8'))"
    result = run_code(code, policy=SandboxPolicy(workspace_root=str(tmp_path)))

    assert result.ok
    assert result.stdout == "héllo ✓\n"


def test_large_output_is_truncated(tmp_path: Path) -> None:
    """Verify output beyond the per-stream cap is cut with a marker."""
    policy = SandboxPolicy(workspace_root=str(tmp_path), max_output_kb=1)
    result = run_code("print('y' * 10000)", policy=policy)

    assert result.ok
    assert result.stdout.startswith("y" * 1024)
    assert result.stdout.endswith("[output truncated]")


def test_stdout_kept_alongside_failure(tmp_path: Path) -> None:
    """Verify output printed before a crash is still reported."""
    code = "print('partial')\nraise SystemExit('fatal')"
    result = run_code(code, policy=SandboxPolicy(workspace_root=str(tmp_path)))

    assert not result.ok
    assert result.stdout == "partial\n"
    assert result.stderr == "fatal\n"


def test_memory_estimate_is_reported(tmp_path: Path) -> None:
    """Verify a sampled program reports its peak memory in MB."""
    code = "import time\ntime.sleep(0.3)\nprint('done')"
    result = run_code(code, policy=SandboxPolicy(workspace_root=str(tmp_path)))

    assert result.ok
    assert result.memory_estimate.endswith("MB")
