import sys
from pathlib import Path

import pytest

from polyglot_runner.languages import DEFAULT_TOOLCHAINS, LanguageRegistry, ToolchainSpec

_FAKE_COMPILER = """\
import shutil
import sys
import time

source, artifact = sys.argv[1], sys.argv[2]
with open(source, encoding="utf-8") as handle:
    text = handle.read()
if "COMPILE_SLEEP" in text:
    time.sleep(0.8)
if "COMPILE_HANG" in text:
    time.sleep(60)
if "SYNTAX_ERROR" in text:
    sys.stderr.write(source + ":1: error: expected ';'\\n")
    sys.exit(1)
shutil.copyfile(source, artifact)
"""

@pytest.fixture()
def fake_registry(tmp_path_factory: pytest.TempPathFactory) -> LanguageRegistry:
    """Registry with a compiled language whose compiler and runtime are the test interpreter."""
    script = tmp_path_factory.mktemp("toolchain") / "fake_compiler.py"
    script.write_text(_FAKE_COMPILER, encoding="utf-8")
    fake = ToolchainSpec(
        language_id="fake",
        source_extension=".fake",
        needs_compile=True,
        compile_command=(sys.executable, str(script), "{source}", "{artifact}"),
        run_command=(sys.executable, "{artifact}"),
        artifact_extension=".py",
    )
    missing = ToolchainSpec(
        language_id="ghost",
        source_extension=".ghost",
        needs_compile=False,
        run_command=("polyglot-no-such-interpreter", "{source}"),
    )
    return LanguageRegistry([*DEFAULT_TOOLCHAINS, fake, missing])


@pytest.fixture()
def workspace_root(tmp_path: Path) -> Path:
    root = tmp_path / "workspaces"
    root.mkdir()
    return root
