from pathlib import Path

import pytest

from docverify_core.errors import SandboxSetupError
from docverify_core.languages import get_recipe
from docverify_core.schemas import CodeExample
from sandbox.workspace import SandboxWorkspace, wrap_go_source


def _example(code: str, language: str) -> CodeExample:
    return CodeExample(
        id="d-1",
        document_id="d",
        document_path="d.md",
        language=language,
        code=code,
        line_start=1,
        line_end=1,
    )


def test_go_statements_are_wrapped_in_main() -> None:
    wrapped = wrap_go_source('fmt.Println("hi")')

    assert wrapped.startswith("package main\n")
    assert 'import "fmt"' in wrapped
    assert 'func main() {\n\tfmt.Println("hi")\n}' in wrapped


def test_go_without_fmt_has_no_unused_import() -> None:
    wrapped = wrap_go_source("x := 1\n_ = x")

    assert "import" not in wrapped
    assert "\tx := 1\n\t_ = x\n" in wrapped


def test_go_full_program_is_untouched() -> None:
    program = 'package main\n\nimport "fmt"\n\nfunc main() { fmt.Println(1) }\n'

    assert wrap_go_source(program) == program


def test_go_main_without_package_gets_package_clause() -> None:
    snippet = 'import "fmt"\n\nfunc main() {\n\tfmt.Println(1)\n}'

    wrapped = wrap_go_source(snippet)

    assert wrapped.startswith("package main\n\n")
    assert wrapped.count("func main()") == 1


def test_workspace_is_removed_on_exit(tmp_path: Path) -> None:
    with SandboxWorkspace(tmp_path) as workspace:
        source = workspace.materialize(_example("print(1)", "python"), get_recipe("python"))
        assert source.read_text() == "print(1)\n"
        assert workspace.path.parent == tmp_path

    assert not workspace.path.exists()


def test_workspace_is_removed_when_block_raises(tmp_path: Path) -> None:
    with pytest.raises(RuntimeError):
        with SandboxWorkspace(tmp_path) as workspace:
            (workspace.path / "leftover.txt").write_text("data")
            raise RuntimeError("boom")

    assert list(tmp_path.iterdir()) == []


def test_workspaces_are_unique(tmp_path: Path) -> None:
    with SandboxWorkspace(tmp_path) as first, SandboxWorkspace(tmp_path) as second:
        assert first.path != second.path


def test_typescript_gets_tsconfig(tmp_path: Path) -> None:
    with SandboxWorkspace(tmp_path) as workspace:
        workspace.materialize(_example("const x: number = 1", "typescript"), get_recipe("typescript"))
        assert (workspace.path / "script.ts").exists()
        assert (workspace.path / "tsconfig.json").exists()


def test_go_source_is_wrapped_on_disk(tmp_path: Path) -> None:
    with SandboxWorkspace(tmp_path) as workspace:
        source = workspace.materialize(_example('fmt.Println("go")', "go"), get_recipe("go"))
        assert source.name == "main.go"
        assert source.read_text().startswith("package main")


def test_root_that_cannot_be_created_raises_setup_error(tmp_path: Path) -> None:
    blocker = tmp_path / "file"
    blocker.write_text("x")

    with pytest.raises(SandboxSetupError):
        with SandboxWorkspace(blocker / "root"):
            pass


@pytest.mark.parametrize("mode", [0o555, 0o000])
def test_locked_subdirectory_is_still_removed(tmp_path: Path, mode: int) -> None:
    with SandboxWorkspace(tmp_path) as workspace:
        locked = workspace.path / "locked" / "deeper"
        locked.mkdir(parents=True)
        (locked / "f").write_text("data")
        (workspace.path / "locked" / "g").write_text("data")
        locked.chmod(mode)
        (workspace.path / "locked").chmod(mode)

    assert not workspace.path.exists()
    assert list(tmp_path.iterdir()) == []


def test_symlinked_directory_outside_is_left_alone(tmp_path: Path) -> None:
    outside = tmp_path / "outside"
    outside.mkdir()
    outside.chmod(0o755)
    (outside / "keep.txt").write_text("keep")
    root = tmp_path / "root"

    with SandboxWorkspace(root) as workspace:
        (workspace.path / "link").symlink_to(outside, target_is_directory=True)
        (workspace.path / "ro").mkdir()
        (workspace.path / "ro" / "f").write_text("x")
        (workspace.path / "ro").chmod(0o555)

    assert not workspace.path.exists()
    assert (outside / "keep.txt").read_text() == "keep"
    assert outside.stat().st_mode & 0o777 == 0o755
