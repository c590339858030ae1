from pathlib import Path

import pytest
from pytest_mock import MockerFixture

from snapper import cli

FILES = {
    "README.md": "# Project\n\nSome *markdown* text.\n",
    "src/main.go": "package main\n\nimport \"fmt\"\n\nfunc main() {\n\tfmt.Println(\"hi\")\n}\n",
    "src/util/helpers.py": "def helper(x):\n    return x * 2\n\n\n# trailing comment\n",
    "config/settings.yaml": "key: value\nlist:\n  - a\n  - b\n",
    "scripts/run.sh": "#!/bin/sh\necho 'run'   \n",
    "empty.txt": "",
}


@pytest.fixture(autouse=True)
def _no_env_defaults(mocker: MockerFixture) -> None:
    mocker.patch.object(cli, "load_env_config", return_value={})


def _make_project(root: Path) -> None:
    for rel, text in FILES.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
    (root / "node_modules" / "dep").mkdir(parents=True)
    (root / "node_modules" / "dep" / "index.js").write_text("module.exports = 1\n", encoding="utf-8")


def test_end_to_end_round_trip(tmp_path: Path) -> None:
    project = tmp_path / "project"
    project.mkdir()
    _make_project(project)
    snapshot = tmp_path / "snapshot.txt"

    assert cli.main(["snap", "-C", str(project), "--no-git", "-m", "0", "-o", str(snapshot), "*"]) == 0
    restore = tmp_path / "restore"
    assert cli.main(["build", "-i", str(snapshot), "-C", str(restore), "-p"]) == 0

    rebuilt = {str(p.relative_to(restore)).replace("\\", "/") for p in restore.rglob("*") if p.is_file()}
    assert rebuilt == set(FILES)
    for rel, text in FILES.items():
        assert (restore / rel).read_bytes() == text.encode("utf-8")


def test_end_to_end_split_chain_round_trip(tmp_path: Path) -> None:
    project = tmp_path / "project"
    project.mkdir()
    _make_project(project)
    snapshot = tmp_path / "snap"

    assert cli.main(["snap", "-C", str(project), "--no-git", "-s", "2", "-j", "3", "-o", str(snapshot), "*"]) == 0
    parts = [snapshot, tmp_path / "snap-2", tmp_path / "snap-3"]
    assert all(p.exists() for p in parts)
    assert not (tmp_path / "snap-4").exists()

    restore = tmp_path / "restore"
    args = ["build", "-C", str(restore), "-p"]
    for part in parts:
        args.extend(["-i", str(part)])
    assert cli.main(args) == 0

    for rel, text in FILES.items():
        assert (restore / rel).read_text(encoding="utf-8") == text


def test_end_to_end_stripped_snapshot(tmp_path: Path) -> None:
    project = tmp_path / "project"
    project.mkdir()
    _make_project(project)
    snapshot = tmp_path / "snapshot.txt"

    code = cli.main(
        ["snap", "-C", str(project), "--no-git", "-r", "-w", "-e", "/empty.txt", "-o", str(snapshot), "*.py", "*.md"],
    )

    assert code == 0
    text = snapshot.read_text(encoding="utf-8")
    assert text == (
        "README.md\n```markdown\n# Project\nSome *markdown* text.\n```\n\n"
        "src/util/helpers.py\n```python\ndef helper(x):\n    return x * 2\n```\n\n"
    )
