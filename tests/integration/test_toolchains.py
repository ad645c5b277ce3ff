import shutil
import time
from pathlib import Path

import psutil
import pytest

from polyglot_runner import ExecutionStatus, SandboxPolicy, run_code

pytestmark = pytest.mark.integration


def _needs(*binaries: str) -> pytest.MarkDecorator:
    missing = [name for name in binaries if shutil.which(name) is None]
    return pytest.mark.skipif(bool(missing), reason=f"missing toolchain: {', '.join(missing)}")


HELLO = {
    "python": ('print("Hello, World!")', ("python3",)),
    "javascript": ('console.log("Hello, World!");', ("node",)),
    "typescript": ('const greeting: string = "Hello, World!";\nconsole.log(greeting);', ("npx", "ts-node")),
    "c": ('#include <stdio.h>\nint main(void) { printf("Hello, World!\\n"); return 0; }', ("gcc",)),
    "cpp": ('#include <iostream>\nint main() { std::cout << "Hello, World!" << std::endl; }', ("g++",)),
    "java": (
        'public class Main {\n    public static void main(String[] args) {\n'
        '        System.out.println("Hello, World!");\n    }\n}\n',
        ("javac", "java"),
    ),
}


@pytest.mark.parametrize(
    "language",
    [pytest.param(name, marks=_needs(*binaries)) for name, (_, binaries) in HELLO.items()],
)
def test_hello_world_in_every_language(language: str, tmp_path: Path) -> None:
    code, _ = HELLO[language]
    outcome = run_code(code, language, policy=SandboxPolicy(workspace_root=str(tmp_path)))

    assert outcome.status is ExecutionStatus.SUCCESS, outcome.stderr
    assert outcome.stdout == "Hello, World!\n"
    assert list(tmp_path.iterdir()) == []


LOOPS = {
    "python": ("while True:\n    pass", ("python3",)),
    "javascript": ("while (true) {}", ("node",)),
    "typescript": ("while (true) {}", ("npx", "ts-node")),
    "c": ("int main(void) { for (;;) {} }", ("gcc",)),
    "cpp": ("int main() { for (;;) {} }", ("g++",)),
    "java": (
        "public class Main {\n    public static void main(String[] args) {\n"
        "        while (true) {}\n    }\n}\n",
        ("javac", "java"),
    ),
}

BROKEN = {
    "c": ("int main(void) { return 0 }", ("gcc",)),
    "cpp": ("int main() { return 0 }", ("g++",)),
    "java": (
        "public class Solution {\n    public static void main(String[] args) {\n"
        "        int x = 1\n    }\n}\n",
        ("javac", "java"),
    ),
}


def _processes_under(root: Path, settle_seconds: float = 5) -> list[psutil.Process]:
    deadline = time.monotonic() + settle_seconds
    while True:
        survivors = [
            proc
            for proc in psutil.process_iter(["cmdline", "status"])
            if proc.info["status"] != psutil.STATUS_ZOMBIE
            and any(str(root) in part for part in proc.info["cmdline"] or [])
        ]
        if not survivors or time.monotonic() > deadline:
            return survivors
        time.sleep(0.1)


@pytest.mark.parametrize(
    "language",
    [pytest.param(name, marks=_needs(*binaries)) for name, (_, binaries) in LOOPS.items()],
)
def test_infinite_loop_times_out_in_every_language(language: str, tmp_path: Path) -> None:
    code, _ = LOOPS[language]
    policy = SandboxPolicy(workspace_root=str(tmp_path), timeout_seconds=3)
    outcome = run_code(code, language, policy=policy)

    assert outcome.status is ExecutionStatus.TIMEOUT
    assert outcome.stderr == "Execution timeout (3s limit)"
    assert outcome.wall_clock_ms < 3000 + 5000
    assert list(tmp_path.iterdir()) == []
    assert _processes_under(tmp_path) == []


@pytest.mark.parametrize(
    "language",
    [pytest.param(name, marks=_needs(*binaries)) for name, (_, binaries) in BROKEN.items()],
)
def test_syntax_error_is_compilation_error(language: str, tmp_path: Path) -> None:
    code, _ = BROKEN[language]
    outcome = run_code(code, language, policy=SandboxPolicy(workspace_root=str(tmp_path)))

    assert outcome.status is ExecutionStatus.COMPILATION_ERROR
    assert (outcome.stderr or "").startswith("Compilation failed")
    assert str(tmp_path) not in (outcome.stderr or "")
    assert list(tmp_path.iterdir()) == []


@_needs("python3", "sleep")
def test_background_process_does_not_turn_success_into_timeout(tmp_path: Path) -> None:
    code = "import subprocess\nsubprocess.Popen(['sleep', '30'])\nprint('done')"
    policy = SandboxPolicy(workspace_root=str(tmp_path), timeout_seconds=5)
    outcome = run_code(code, "python", policy=policy)

    assert outcome.status is ExecutionStatus.SUCCESS, outcome.stderr
    assert outcome.stdout == "done\n"
    assert outcome.wall_clock_ms < 4000


@_needs("g++")
def test_cpp_alias_and_runtime_failure(tmp_path: Path) -> None:
    code = "#include <cstdlib>\nint main() { std::abort(); }"
    outcome = run_code(code, "C++", policy=SandboxPolicy(workspace_root=str(tmp_path)))

    assert outcome.status is ExecutionStatus.RUNTIME_ERROR
    assert outcome.language == "cpp"


@_needs("javac", "java")
def test_java_any_class_name_and_bare_statements(tmp_path: Path) -> None:
    policy = SandboxPolicy(workspace_root=str(tmp_path))
    named = run_code(
        "public class Solution {\n"
        "    public static void main(String[] args) {\n"
        "        System.out.println(new Solution().getClass().getSimpleName().startsWith(\"Main_\"));\n"
        "    }\n"
        "}\n",
        "java",
        policy=policy,
    )
    bare = run_code(
        "import java.util.List;\nSystem.out.println(List.of(1, 2, 3));", "java", policy=policy
    )
    commented = run_code(
        "// scratch\nimport java.util.*;\nList<Integer> xs = new ArrayList<>(List.of(4));\nSystem.out.println(xs);",
        "java",
        policy=policy,
    )

    assert named.stdout == "true\n", named.stderr
    assert bare.stdout == "[1, 2, 3]\n", bare.stderr
    assert commented.stdout == "[4]\n", commented.stderr


@_needs("javac", "java")
def test_java_uncaught_exception_is_runtime_error(tmp_path: Path) -> None:
    code = (
        "public class Main {\n"
        "    public static void main(String[] args) {\n"
        "        throw new IllegalStateException(\"nope\");\n"
        "    }\n"
        "}\n"
    )
    outcome = run_code(code, "java", policy=SandboxPolicy(workspace_root=str(tmp_path)))

    assert outcome.status is ExecutionStatus.RUNTIME_ERROR
    assert "IllegalStateException: nope" in (outcome.stderr or "")


@_needs("node")
def test_javascript_uncaught_error_is_runtime_error(tmp_path: Path) -> None:
    outcome = run_code(
        "throw new Error('boom')", "javascript", policy=SandboxPolicy(workspace_root=str(tmp_path))
    )

    assert outcome.status is ExecutionStatus.RUNTIME_ERROR
    assert "Error: boom" in (outcome.stderr or "")
