"""Byte-level content transforms applied to files before they are fenced.

Both passes are naive lexical scanners: they know nothing about string
literals, so a ``//`` or ``#`` inside a string is treated as a comment.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from snapper.config import DOCUMENT_EXTENSIONS, extension_key

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path

    from snapper.config import TransformConfig

BLOCK_OPEN = b"/*"
BLOCK_CLOSE = b"*/"
LINE_COMMENT = b"//"
HASH = ord("#")


def iter_lines(content: bytes) -> Iterator[bytes]:
    """Yield the lines of `content` without their ``\\n`` terminators.

    A trailing newline does not start an extra empty line; a final line
    without newline is still yielded.
    """
    if not content:
        return
    lines = content.split(b"\n")
    if lines[-1] == b"":
        lines.pop()
    yield from lines


def join_lines(lines: list[bytes]) -> bytes:
    return b"".join(line + b"\n" for line in lines)


def strip_hash_for(path: str | Path) -> bool:
    """Whether ``#`` starts a comment for this file (False for document formats)."""
    return extension_key(path) not in DOCUMENT_EXTENSIONS


class CommentStripper:
    """Line scanner removing ``//``, ``/* */`` and optionally ``#`` comments.

    The only state carried between lines is whether a block comment is open,
    so one instance must not be shared between files.
    """

    def __init__(self, *, strip_hash: bool) -> None:
        self.strip_hash = strip_hash
        self.in_block = False

    def scan_line(self, line: bytes) -> bytes:
        out = bytearray()
        i = 0
        n = len(line)
        while i < n:
            if self.in_block:
                if line.startswith(BLOCK_CLOSE, i):
                    self.in_block = False
                    i += 2
                else:
                    i += 1
                continue
            if line.startswith(BLOCK_OPEN, i):
                self.in_block = True
                i += 2
                continue
            if line.startswith(LINE_COMMENT, i):
                break
            if self.strip_hash and line[i] == HASH:
                break
            out.append(line[i])
            i += 1
        return bytes(out)

    def strip(self, content: bytes) -> bytes:
        kept: list[bytes] = []
        for line in iter_lines(content):
            scanned = self.scan_line(line)
            # Blank input lines survive as empty lines; comment-only lines vanish.
            if not line.strip():
                kept.append(b"")
                continue
            scanned = scanned.rstrip()
            if scanned:
                kept.append(scanned)
        return join_lines(kept)


def strip_comments(content: bytes, *, strip_hash: bool) -> bytes:
    """Remove comments from `content`.

    Args:
        content (bytes): the raw file bytes
        strip_hash (bool): also treat ``#`` as a line comment

    Returns:
        bytes: the stripped content, every line newline-terminated
    """
    return CommentStripper(strip_hash=strip_hash).strip(content)


def compact_blank_lines(content: bytes) -> bytes:
    """Right-trim every line and drop the ones that end up empty.

    Args:
        content (bytes): the file bytes

    Returns:
        bytes: the compacted content, every line newline-terminated
    """
    return join_lines([s for s in (line.rstrip() for line in iter_lines(content)) if s])


def transform_content(content: bytes, path: str | Path, config: TransformConfig) -> bytes:
    """Apply the configured transforms in order: comments first, then blank lines.

    Args:
        content (bytes): the raw file bytes
        path (str | Path): the file path, used for the ``#`` policy
        config (TransformConfig): which transforms are enabled

    Returns:
        bytes: the transformed content (unchanged when no transform is enabled)
    """
    if config.tree_only:
        return content
    if config.strip_comments:
        content = strip_comments(content, strip_hash=strip_hash_for(path))
    if config.strip_blank_lines:
        content = compact_blank_lines(content)
    return content
