import asyncio
import os
import stat
import tempfile
from pathlib import Path

import pytest

from polyglot_runner.execution.workspace import WORKSPACE_PREFIX, WorkspaceManager
from polyglot_runner.languages import resolve


def test_create_writes_source_in_unique_directory(tmp_path: Path) -> None:
    manager = WorkspaceManager(root=tmp_path)
    first = manager.create(resolve("python"), "print('hi')")
    second = manager.create(resolve("python"), "print('hi')")

    assert first.directory != second.directory
    assert first.directory.parent == tmp_path
    assert first.directory.name.startswith(WORKSPACE_PREFIX)
    assert first.source_path.suffix == ".py"
    assert first.source_path.read_text(encoding="utf-8") == "print('hi')"
    assert first.artifact_path is None


@pytest.mark.skipif(os.name != "posix", reason="POSIX permissions")
def test_workspace_directory_is_private(tmp_path: Path) -> None:
    workspace = WorkspaceManager(root=tmp_path).create(resolve("c"), "int main(){return 0;}")
    mode = stat.S_IMODE(workspace.directory.stat().st_mode)
    assert mode & 0o077 == 0


def test_compiled_language_gets_artifact_path(tmp_path: Path) -> None:
    workspace = WorkspaceManager(root=tmp_path).create(resolve("cpp"), "int main(){}")
    assert workspace.artifact_path is not None
    assert workspace.artifact_path.parent == workspace.directory
    assert workspace.source_path.suffix == ".cpp"
    assert not workspace.artifact_path.exists()


def test_java_source_is_renamed_to_workspace_class(tmp_path: Path) -> None:
    workspace = WorkspaceManager(root=tmp_path).create(
        resolve("java"), "public class Main { public static void main(String[] a) {} }"
    )
    assert workspace.base_name.startswith("Main_")
    assert workspace.source_path.name == f"{workspace.base_name}.java"
    text = workspace.source_path.read_text(encoding="utf-8")
    assert f"public class {workspace.base_name} " in text
    assert workspace.template_values()["class_name"] == workspace.base_name


def test_destroy_removes_everything(tmp_path: Path) -> None:
    manager = WorkspaceManager(root=tmp_path)
    workspace = manager.create(resolve("c"), "int main(){return 0;}")
    (workspace.directory / "extra.o").write_bytes(b"\x00")

    manager.destroy(workspace)

    assert not workspace.directory.exists()
    assert list(tmp_path.iterdir()) == []


def test_destroy_twice_only_logs(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    manager = WorkspaceManager(root=tmp_path)
    workspace = manager.create(resolve("python"), "print(1)")
    manager.destroy(workspace)

    with caplog.at_level("WARNING", logger="polyglot_runner.workspace"):
        manager.destroy(workspace)

    assert "Failed to remove workspace" in caplog.text


def test_open_destroys_workspace_when_body_raises(tmp_path: Path) -> None:
    manager = WorkspaceManager(root=tmp_path)
    seen: list[Path] = []

    async def _body() -> None:
        async with manager.open(resolve("javascript"), "console.log(1)") as workspace:
            seen.append(workspace.directory)
            assert workspace.directory.exists()
            raise RuntimeError("boom")

    with pytest.raises(RuntimeError, match="boom"):
        asyncio.run(_body())

    assert seen and not seen[0].exists()


def test_template_values_cover_all_placeholders(tmp_path: Path) -> None:
    workspace = WorkspaceManager(root=tmp_path).create(resolve("c"), "int main(){return 0;}")
    values = workspace.template_values()
    assert set(values) == {"source", "artifact", "workdir", "class_name"}
    assert values["workdir"] == str(workspace.directory)
    assert values["artifact"] == str(workspace.artifact_path)


def test_default_root_is_system_temp_dir() -> None:
    assert WorkspaceManager().root == Path(tempfile.gettempdir())
