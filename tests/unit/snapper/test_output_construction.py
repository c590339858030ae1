from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import pytest

from snapper import output_construction
from snapper.config import SkipReason, TransformConfig
from snapper.exceptions import ConfigError, OutputExistsError
from snapper.output_construction import render_entry, split_artifact_path, write_artifacts, write_snapshot
from snapper.settings import SnapSettings

if TYPE_CHECKING:
    from pytest_mock import MockerFixture


def _touch(root: Path, rel: str, text: str) -> Path:
    path = root / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def _settings(root: Path, *patterns: str, **kw: object) -> SnapSettings:
    return SnapSettings(root=root, output=Path("snapshot.txt"), patterns=list(patterns), no_git=True, **kw)


@pytest.fixture
def project(tmp_path: Path) -> Path:
    root = tmp_path / "project"
    root.mkdir()
    return root


@pytest.mark.unit
@pytest.mark.parametrize(
    ("base", "index", "expected"),
    [
        ("out/snapshot.txt", 1, "out/snapshot.txt"),
        ("out/snapshot.txt", 2, "out/snapshot-2.txt"),
        ("out/snapshot", 3, "out/snapshot-3"),
        ("dir.d/snapshot", 2, "dir.d/snapshot-2"),
    ],
)
def test_split_artifact_path(base: str, index: int, expected: str) -> None:
    assert split_artifact_path(Path(base), index) == Path(expected)


@pytest.mark.unit
def test_render_entry_content_and_tree_modes() -> None:
    assert render_entry("src/a.py", b"x = 1\n") == b"src/a.py\n```python\nx = 1\n```\n\n"
    assert render_entry("notes", b"no newline") == b"notes\n```\nno newline\n```\n\n"
    assert render_entry("empty.go", b"") == b"empty.go\n```go\n```\n\n"
    assert render_entry("src/a.py", None) == b"src/a.py\n"


@pytest.mark.unit
def test_write_artifacts_always_creates_base(tmp_path: Path) -> None:
    base = tmp_path / "snap.txt"

    written = write_artifacts(base, [], split=3)

    assert written == [base]
    assert base.read_bytes() == b""


@pytest.mark.unit
def test_write_snapshot_strips_go_comment(project: Path) -> None:
    _touch(project, "a.go", "package a\n// comment\nfunc f() {}\n")

    metrics = write_snapshot(_settings(project, "*.go", remove_comments=True))

    assert metrics.included == 1
    out = (project / "snapshot.txt").read_text(encoding="utf-8")
    assert out == "a.go\n```go\npackage a\nfunc f() {}\n```\n\n"


@pytest.mark.unit
def test_write_snapshot_split_one_file_per_artifact(project: Path) -> None:
    _touch(project, "x.py", "a = 1\nb = 2\nc = 3\nd = 4\ne = 5\n")
    _touch(project, "y.md", "# y\n\ntext\n")

    metrics = write_snapshot(_settings(project, "*", split=1))

    assert metrics.artifacts == [project / "snapshot.txt", project / "snapshot-2.txt"]
    first = (project / "snapshot.txt").read_text(encoding="utf-8")
    second = (project / "snapshot-2.txt").read_text(encoding="utf-8")
    assert first == "x.py\n```python\na = 1\nb = 2\nc = 3\nd = 4\ne = 5\n```\n\n"
    assert second == "y.md\n```markdown\n# y\n\ntext\n```\n\n"


@pytest.mark.unit
@pytest.mark.parametrize(("count", "split"), [(7, 3), (6, 3), (2, 5)])
def test_split_counts(project: Path, count: int, split: int) -> None:
    for i in range(count):
        _touch(project, f"f{i:02d}.txt", f"{i}\n")

    metrics = write_snapshot(_settings(project, "*.txt", split=split, jobs=2))

    expected_artifacts = -(-count // split)
    assert len(metrics.artifacts) == expected_artifacts
    sizes = [a.read_text(encoding="utf-8").count("```\n\n") for a in metrics.artifacts]
    assert sizes[:-1] == [split] * (expected_artifacts - 1)
    assert sizes[-1] == (count % split or split)


@pytest.mark.unit
def test_write_snapshot_orders_entries_and_counts_skips(project: Path, mocker: MockerFixture) -> None:
    _touch(project, "b.py", "b\n")
    _touch(project, "a.py", "a\n")
    _touch(project, "a_test.py", "t\n")
    _touch(project, "big.py", "x" * 3000)
    _touch(project, "logo.py", "pretend binary")
    _touch(project, "README.md", "readme\n")
    real = output_construction.is_text_file
    mocker.patch.object(
        output_construction,
        "is_text_file",
        side_effect=lambda p: p.name != "logo.py" and real(p),
    )

    metrics = write_snapshot(_settings(project, "*.py", exclude=["*_test.py"], max_kb=2))

    out = (project / "snapshot.txt").read_text(encoding="utf-8")
    assert out == "a.py\n```python\na\n```\n\nb.py\n```python\nb\n```\n\n"
    assert metrics.included == 2
    assert metrics.by_extension == {"py": 2}
    assert metrics.skipped == {
        SkipReason.EXCLUDED: 1,
        SkipReason.SIZE: 1,
        SkipReason.BINARY: 1,
        SkipReason.NO_MATCH: 1,
    }


@pytest.mark.unit
def test_tree_only_lists_paths_without_reading(project: Path, mocker: MockerFixture) -> None:
    _touch(project, "src/a.py", "a\n")
    _touch(project, "src/b.py", "x" * 5000)
    sniff = mocker.patch.object(output_construction, "is_text_file", return_value=False)
    transform = mocker.patch.object(output_construction, "transform_content")

    metrics = write_snapshot(_settings(project, "*.py", tree_only=True, max_kb=1, remove_comments=True))

    assert (project / "snapshot.txt").read_text(encoding="utf-8") == "src/a.py\nsrc/b.py\n"
    assert metrics.included == 2
    sniff.assert_not_called()
    transform.assert_not_called()


@pytest.mark.unit
def test_existing_output_requires_force(project: Path) -> None:
    _touch(project, "a.py", "a\n")
    existing = _touch(project, "snapshot.txt", "keep me")

    with pytest.raises(OutputExistsError):
        write_snapshot(_settings(project, "*.py"))
    assert existing.read_text(encoding="utf-8") == "keep me"

    metrics = write_snapshot(_settings(project, "*", force=True))
    assert metrics.included == 1
    assert "keep me" not in existing.read_text(encoding="utf-8")


@pytest.mark.unit
def test_configuration_errors(project: Path, tmp_path: Path) -> None:
    with pytest.raises(ConfigError):
        write_snapshot(_settings(project))
    with pytest.raises(ConfigError):
        write_snapshot(_settings(tmp_path / "missing", "*.py"))


@pytest.mark.unit
def test_parallel_and_serial_output_identical(project: Path) -> None:
    for i in range(12):
        _touch(project, f"pkg/m{i:02d}.go", f"package pkg // {i}\n\nvar X{i} = {i}\n")

    write_snapshot(_settings(project, "*.go", jobs=0, remove_comments=True, remove_blanks=True))
    serial = (project / "snapshot.txt").read_bytes()
    write_snapshot(_settings(project, "*.go", jobs=4, remove_comments=True, remove_blanks=True, force=True))
    parallel = (project / "snapshot.txt").read_bytes()

    assert serial == parallel
    assert b"package pkg\nvar X0 = 0\n```" in serial


@pytest.mark.unit
def test_rerun_after_split_ignores_previous_artifacts(project: Path) -> None:
    for name in ("a.txt", "b.txt", "c.txt"):
        _touch(project, name, f"{name}\n")
    write_snapshot(_settings(project, "*.txt", split=1))
    assert (project / "snapshot-3.txt").is_file()

    metrics = write_snapshot(_settings(project, "*.txt", force=True))

    assert metrics.included == 3
    out = (project / "snapshot.txt").read_text(encoding="utf-8")
    assert "snapshot" not in out
    assert out.count("```") == 6


@pytest.mark.unit
def test_rerun_with_fewer_artifacts_removes_stale_siblings(project: Path) -> None:
    for name in ("a.txt", "b.txt", "c.txt", "d.txt"):
        _touch(project, name, f"{name}\n")
    write_snapshot(_settings(project, "*.txt", split=1))
    assert (project / "snapshot-4.txt").is_file()

    metrics = write_snapshot(_settings(project, "*.txt", split=2, force=True))

    assert metrics.artifacts == [project / "snapshot.txt", project / "snapshot-2.txt"]
    assert not (project / "snapshot-3.txt").exists()
    assert not (project / "snapshot-4.txt").exists()


@pytest.mark.unit
def test_existing_numbered_sibling_requires_force(project: Path) -> None:
    _touch(project, "a.py", "a\n")
    sibling = _touch(project, "snapshot-2.txt", "keep me")

    with pytest.raises(OutputExistsError) as exc_info:
        write_snapshot(_settings(project, "*.py"))

    assert exc_info.value.path == sibling
    assert sibling.read_text(encoding="utf-8") == "keep me"
    assert not (project / "snapshot.txt").exists()


@pytest.mark.unit
def test_previous_artifacts_stop_at_first_gap(tmp_path: Path) -> None:
    base = tmp_path / "snap.txt"
    for name in ("snap.txt", "snap-2.txt", "snap-4.txt"):
        (tmp_path / name).write_text("x", encoding="utf-8")

    assert output_construction.previous_artifacts(base) == [base, tmp_path / "snap-2.txt"]


@pytest.mark.unit
def test_render_file_skips_transform_when_disabled(project: Path, mocker: MockerFixture) -> None:
    _touch(project, "a.py", "x = 1  # note\n")
    transform = mocker.patch.object(output_construction, "transform_content")

    entry = output_construction.render_file(project, "a.py", TransformConfig())

    transform.assert_not_called()
    assert entry == b"a.py\n```python\nx = 1  # note\n```\n\n"
