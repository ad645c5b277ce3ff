from pathlib import Path

import pytest

from polyglot_runner import SandboxPolicy
from polyglot_runner.policy import resolve_policy


def test_default_policy_matches_bundled_toml() -> None:
    policy = SandboxPolicy()
    assert policy.timeout_seconds == 10
    assert policy.max_queued == 0
    assert policy.max_output_kb == 128
    assert policy.error_on_stderr is False
    assert policy.surface_compiler_diagnostics is True
    assert policy.workspace_root == ""


def test_auto_concurrency_is_bounded() -> None:
    policy = SandboxPolicy(max_concurrency=0)
    assert 1 <= policy.effective_concurrency <= 4
    assert SandboxPolicy(max_concurrency=7).effective_concurrency == 7


def test_max_output_bytes_is_derived_from_kb() -> None:
    assert SandboxPolicy(max_output_kb=2).max_output_bytes == 2048


@pytest.mark.parametrize(
    "kwargs",
    [
        {"timeout_seconds": 0},
        {"max_concurrency": -1},
        {"max_queued": -1},
        {"max_output_kb": 0},
        {"memory_sample_interval_ms": 0},
    ],
)
def test_invalid_limits_are_rejected(kwargs: dict[str, int]) -> None:
    with pytest.raises(ValueError):
        SandboxPolicy(**kwargs)


def test_policy_file_overrides_defaults(tmp_path: Path) -> None:
    policy_file = tmp_path / "policy.toml"
    policy_file.write_text(
        (
            "[policy]\n"
            "timeout_seconds = 3\n"
            "max_concurrency = 2\n"
            "max_queued = 5\n"
            "error_on_stderr = true\n"
            f"workspace_root = \"{tmp_path.as_posix()}\"\n"
        ),
        encoding="utf-8",
    )

    policy = SandboxPolicy.from_file(str(policy_file))

    assert policy.timeout_seconds == 3
    assert policy.max_concurrency == 2
    assert policy.max_queued == 5
    assert policy.error_on_stderr is True
    assert policy.workspace_root == tmp_path.as_posix()
    assert policy.max_output_kb == 128
    assert policy.config_path == str(policy_file)


def test_policy_file_rejects_wrong_types(tmp_path: Path) -> None:
    policy_file = tmp_path / "policy.toml"
    policy_file.write_text("[policy]\ntimeout_seconds = \"ten\"\n", encoding="utf-8")
    with pytest.raises(ValueError, match="timeout_seconds"):
        SandboxPolicy.from_file(str(policy_file))

    policy_file.write_text("[policy]\nerror_on_stderr = 1\n", encoding="utf-8")
    with pytest.raises(ValueError, match="error_on_stderr"):
        SandboxPolicy.from_file(str(policy_file))

    policy_file.write_text("[policy]\ntimeout_seconds = true\n", encoding="utf-8")
    with pytest.raises(ValueError, match="timeout_seconds"):
        SandboxPolicy.from_file(str(policy_file))


def test_resolve_policy_rejects_both_sources(tmp_path: Path) -> None:
    with pytest.raises(ValueError, match="not both"):
        resolve_policy(SandboxPolicy(), str(tmp_path / "policy.toml"))


def test_resolve_policy_reloads_config_path(tmp_path: Path) -> None:
    policy_file = tmp_path / "policy.toml"
    policy_file.write_text("[policy]\ntimeout_seconds = 4\n", encoding="utf-8")

    resolved = resolve_policy(SandboxPolicy(config_path=str(policy_file)), None)

    assert resolved.timeout_seconds == 4


def test_resolve_policy_defaults_when_nothing_given() -> None:
    assert resolve_policy(None, None) == SandboxPolicy()
