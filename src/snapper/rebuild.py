"""Rebuild a file tree from one or more chained snapshots.

The parser is a two-state machine fed one line at a time. Its state lives for
the whole build, so ``cat snapshot.txt snapshot-2.txt`` and two separate
inputs parse identically.

State table (after stripping a trailing CR):

=============  ======================  =========================================
state          line                    action
=============  ======================  =========================================
AWAITING_PATH  starts with ```         open block for the pending path
AWAITING_PATH  empty                   separator, forget pending path
AWAITING_PATH  anything else           becomes the pending path
IN_CODE_BLOCK  exactly ```             close block, write file
IN_CODE_BLOCK  anything else           append to buffer
=============  ======================  =========================================

Anomalies never stop the stream; they are counted as parse errors: a block
opened with no pending path, a path line never followed by a block, a path
that escapes the build root, and a block still open at end of input (its
content is discarded).
"""

from __future__ import annotations

import sys
from enum import StrEnum, auto
from pathlib import Path, PurePosixPath
from typing import TYPE_CHECKING, BinaryIO

from snapper.config import BuildMetrics
from snapper.exceptions import ConfigError
from snapper.logging import logger

if TYPE_CHECKING:
    from collections.abc import Iterable

    from snapper.settings import BuildSettings

FENCE = b"```"
STDIN = "-"


class ParserState(StrEnum):
    AWAITING_PATH = auto()
    IN_CODE_BLOCK = auto()


class Rebuilder:
    """Snapshot parser that materializes each closed block under `root`."""

    def __init__(self, root: Path, *, force: bool = False) -> None:
        self.root = root
        self.force = force
        self.state = ParserState.AWAITING_PATH
        self.current_path = ""
        self.buffer = bytearray()
        self.metrics = BuildMetrics()

    def feed_line(self, line: bytes) -> None:
        """Consume one snapshot line (with or without its line terminator)."""
        line = line.removesuffix(b"\n").removesuffix(b"\r")

        if self.state is ParserState.IN_CODE_BLOCK:
            if line == FENCE:
                self._close_block()
            else:
                self.buffer += line + b"\n"
            return

        if line.startswith(FENCE):
            if not self.current_path:
                self._anomaly("fence without path")
            self.state = ParserState.IN_CODE_BLOCK
            self.buffer.clear()
        elif not line:
            self._drop_pending_path()
        else:
            self._drop_pending_path()
            self.current_path = line.decode("utf-8", errors="surrogateescape")

    def feed(self, stream: Iterable[bytes]) -> None:
        for line in stream:
            self.feed_line(line)

    def finish(self) -> BuildMetrics:
        """Signal end of input and return the accumulated metrics."""
        if self.state is ParserState.IN_CODE_BLOCK:
            self._anomaly("unterminated code block", path=self.current_path)
            self.state = ParserState.AWAITING_PATH
            self.current_path = ""
            self.buffer.clear()
        self._drop_pending_path()
        return self.metrics

    def _drop_pending_path(self) -> None:
        if self.current_path:
            self._anomaly("path without code block", path=self.current_path)
        self.current_path = ""

    def _anomaly(self, event: str, **kw: str) -> None:
        self.metrics.parse_errors += 1
        logger.warning(event, **kw)

    def _resolve_target(self, rel: str) -> Path | None:
        pure = PurePosixPath(rel)
        if pure.is_absolute() or ".." in pure.parts:
            return None
        return self.root / pure

    def _close_block(self) -> None:
        rel = self.current_path
        content = bytes(self.buffer)
        self.state = ParserState.AWAITING_PATH
        self.current_path = ""
        self.buffer.clear()

        if not rel:
            return
        target = self._resolve_target(rel)
        if target is None:
            self._anomaly("path escapes build root", path=rel)
            return
        self._write(rel, target, content)

    def _write(self, rel: str, target: Path, content: bytes) -> None:
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            existed = target.exists()
            if existed and not self.force:
                self.metrics.skipped_exists += 1
                logger.info("skip (exists)", path=rel)
                return
            target.write_bytes(content)
        except OSError as e:
            self.metrics.write_errors += 1
            logger.error("write failed", path=rel, error=str(e))
            return
        if existed:
            self.metrics.overwritten += 1
        else:
            self.metrics.created += 1
        logger.info("overwritten" if existed else "created", path=rel)


def rebuild(streams: Iterable[Iterable[bytes]], root: Path, *, force: bool = False) -> BuildMetrics:
    """Parse the concatenation of `streams` and rebuild the files under `root`.

    Args:
        streams (Iterable[Iterable[bytes]]): snapshot line sources, in chain order
        root (Path): the existing directory to build into
        force (bool, optional): overwrite existing files. Defaults to False.

    Returns:
        BuildMetrics: created/overwritten/skipped/error counters
    """
    rebuilder = Rebuilder(root, force=force)
    for stream in streams:
        rebuilder.feed(stream)
    return rebuilder.finish()


def _open_inputs(inputs: list[str], stdin: BinaryIO) -> Iterable[Iterable[bytes]]:
    for name in inputs:
        if name == STDIN:
            yield stdin
        else:
            with Path(name).open("rb") as fh:
                yield fh


def build_from_settings(settings: BuildSettings, stdin: BinaryIO | None = None) -> BuildMetrics:
    """Run a ``build`` invocation.

    Args:
        settings (BuildSettings): the validated ``build`` settings
        stdin (BinaryIO | None, optional): the stream read for ``-``. Defaults to ``sys.stdin.buffer``.

    Raises:
        ConfigError: if no input is given, an input file is missing, or the build
            root does not exist (and `mkdir` is not set) or cannot be created.

    Returns:
        BuildMetrics: the rebuild counters
    """
    if not settings.inputs:
        raise ConfigError("input snapshot is required (-i <path>)")
    inputs = [name if name == STDIN else str(Path(name).resolve()) for name in settings.inputs]
    for name in inputs:
        if name != STDIN and not Path(name).is_file():
            raise ConfigError(f"snapshot not found: {name}")

    root = settings.root
    if not root.is_dir():
        if not settings.mkdir:
            raise ConfigError(f"cannot cd to build root: {root} (use -p to create it)")
        try:
            root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ConfigError(f"cannot create build root: {root}") from e

    source = stdin if stdin is not None else sys.stdin.buffer
    return rebuild(_open_inputs(inputs, source), root.resolve(), force=settings.force)
