from __future__ import annotations

import os
import shutil
import stat
import subprocess  # noqa: S404
from pathlib import Path

from snapper.config import DEFAULT_IGNORE_DIRS
from snapper.exceptions import GitCommandError, NotAGitRepositoryError
from snapper.logging import logger


def relpath(path: Path, root: Path) -> str:
    """Send the relative path of path from root.

    Args:
        path (Path): the path to "relativise"
        root (Path): the root to relativise from

    Returns:
        str: the relative path from root to path, with POSIX separators.
            If path is not under root, returns the original path as a string.
    """
    try:
        return str(path.relative_to(root)).replace("\\", "/")
    except ValueError:
        return str(path)


def is_regular_file(path: Path) -> bool:
    """Check if a file is regular.

    Args:
        path (Path): path to test.

    Returns:
        bool: True if the file is regular, False otherwise.
    """
    try:
        st = path.stat()
    except OSError:
        return False
    return stat.S_ISREG(st.st_mode)


def git_ls_files(repo: Path) -> list[str]:
    """List tracked and untracked, non-ignored files with ``git ls-files``.

    Args:
        repo (Path): the directory to list from; it may be anywhere inside a work tree

    Raises:
        NotAGitRepositoryError: if git is not installed or `repo` is not inside a work tree.
        GitCommandError: if the listing itself fails.

    Returns:
        list[str]: paths relative to `repo`, in git's output order
    """
    git = shutil.which("git")
    if git is None:
        raise NotAGitRepositoryError(folder=repo, message="git is not installed")
    probe = subprocess.run(  # noqa: S603
        [git, "rev-parse", "--is-inside-work-tree"],
        cwd=str(repo),
        text=True,
        capture_output=True,
        check=False,
    )
    if probe.returncode != 0 or probe.stdout.strip() != "true":
        raise NotAGitRepositoryError(folder=repo)

    # -z keeps non-ASCII and special characters unquoted.
    cmd = [git, "ls-files", "-z", "-co", "--exclude-standard"]
    out = subprocess.run(  # noqa: S603
        cmd,
        cwd=str(repo),
        encoding="utf-8",
        errors="surrogateescape",
        capture_output=True,
        check=False,
    )
    if out.returncode != 0:
        raise GitCommandError(command=" ".join(cmd[1:]), returncode=out.returncode, stderr=out.stderr)
    return [name for name in out.stdout.split("\0") if name]


def walk_files(repo: Path, *, use_default_ignores: bool = True) -> list[str]:
    """Walk the directory tree rooted at `repo` and return every file found.

    Directories named in `DEFAULT_IGNORE_DIRS` are pruned unless
    `use_default_ignores` is False.

    Args:
        repo (Path): the root directory to walk
        use_default_ignores (bool, optional): prune the default ignore set. Defaults to True.

    Returns:
        list[str]: slash-separated paths relative to `repo`
    """
    results: list[str] = []
    for root, dirs, files in os.walk(repo):
        if use_default_ignores:
            dirs[:] = [d for d in dirs if d not in DEFAULT_IGNORE_DIRS]
        base = Path(root)
        results.extend(relpath(base / f, repo) for f in files)
    return results


def list_candidates(repo: Path, *, use_git: bool = True, use_default_ignores: bool = True) -> list[str]:
    """Enumerate candidate files under `repo`, deduplicated and sorted.

    Git is preferred because it honors ignore rules; any git failure falls
    back to a filesystem walk. Entries that are not regular files (deleted
    tracked files, sockets...) are dropped.

    Args:
        repo (Path): the project root
        use_git (bool, optional): try ``git ls-files`` first. Defaults to True.
        use_default_ignores (bool, optional): prune default directories in the walk. Defaults to True.

    Returns:
        list[str]: sorted relative candidate paths
    """
    files: list[str] | None = None
    if use_git:
        try:
            files = git_ls_files(repo)
        except (NotAGitRepositoryError, GitCommandError, OSError) as e:
            logger.info("falling back to filesystem walk", reason=str(e))
    if files is None:
        files = walk_files(repo, use_default_ignores=use_default_ignores)

    unique = {f.removeprefix("./") for f in files}
    return sorted(f for f in unique if is_regular_file(repo / f))


def sniff_mime(path: Path) -> str | None:
    """Ask the ``file`` utility for the MIME type of `path`.

    Args:
        path (Path): the file to inspect

    Returns:
        str | None: the reported MIME string, "" if the tool failed on this
            file, or None if the tool is not installed
    """
    tool = shutil.which("file")
    if tool is None:
        return None
    try:
        out = subprocess.run(  # noqa: S603
            [tool, "-b", "--mime", str(path)],
            text=True,
            capture_output=True,
            check=True,
        )
    except (subprocess.CalledProcessError, OSError) as e:
        logger.debug("mime sniff failed", path=str(path), error=str(e))
        return ""
    return out.stdout.strip()


def is_text_file(path: Path) -> bool:
    """Classify a file as text (snapshot it) or binary (always skipped).

    A file is text when its MIME type starts with ``text/`` or carries a
    ``charset``. Without the ``file`` utility every file counts as text.

    Args:
        path (Path): the file to classify

    Returns:
        bool: True if the file should be treated as text
    """
    mime = sniff_mime(path)
    if mime is None:
        return True
    return mime.startswith("text/") or "charset" in mime
