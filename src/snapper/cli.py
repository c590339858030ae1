# /// script
# requires-python = ">=3.11"
# dependencies = [
#     "pydantic",
#     "python-dotenv",
#     "pyyaml",
#     "structlog",
# ]
# ///
"""
snapper - snapshot text files for LLM prompts and rebuild them from the snapshot.

Overview
--------
``snap`` scans a project and writes a condensed, text-only snapshot of the
selected files: each file's relative path followed by its fenced content.
``build`` recreates the files and directories from one or more snapshots.

It prefers ``git ls-files -co --exclude-standard`` (to honor ignores), and
falls back to a filesystem walk that prunes common tool directories
(``.git``, ``node_modules``, ``vendor``, ``dist``...). Binaries are always
skipped.

Patterns
--------
    Globs (path or basename):    *.go   **/*.md   src/**/*.go
    Explicit project-root path:  /README.md  /docs/INSTALL.md
``**`` is treated like ``*``; patterns without ``/`` match basenames.

Usage
-----
    - Go and Markdown files in one snapshot:
        snapper snap -f -o snapshot.txt '*.go' '**/*.md'

    - Strip comments and blank lines, skip tests:
        snapper snap -r -w -e '*_test.go' -o snapshot.txt '*.go'

    - Ten files per artifact (snapshot.txt, snapshot-2.txt, ...):
        snapper snap -s 10 -o snapshot.txt '*.py'

    - Rebuild from a chain of snapshots:
        cat snapshot.txt snapshot-2.txt | snapper build -C /tmp/restore -p -i -
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from snapper import __version__
from snapper.config import DEFAULT_JOBS, DEFAULT_MAX_KB, NO_EXTENSION, BuildMetrics, SkipReason, SnapMetrics
from snapper.exceptions import ConfigError, OutputExistsError, SnapperError
from snapper.logging import set_quiet, setup_logging
from snapper.output_construction import resolve_output, write_snapshot
from snapper.rebuild import build_from_settings
from snapper.settings import BuildSettings, SnapSettings, load_env_config, load_file_config

if TYPE_CHECKING:
    from collections.abc import Sequence

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_OUTPUT_EXISTS = 3


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="snapper",
        description="Snapshot text files for LLM prompts (snap) and rebuild them (build).",
    )
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    sub = p.add_subparsers(dest="command", required=True)

    snap = sub.add_parser("snap", help="Write a text-only snapshot of selected files.")
    snap.add_argument("patterns", nargs="*", help="Include patterns (globs or /rooted/paths).")
    snap.add_argument("-o", dest="output", default="", help="Output snapshot to write.")
    snap.add_argument("-C", dest="root", default=".", help="Project root to scan from.")
    snap.add_argument(
        "-m",
        dest="max_kb",
        type=int,
        default=None,
        help=f"Max size per file, in KB (default {DEFAULT_MAX_KB}; 0 = no limit).",
    )
    snap.add_argument("-s", dest="split", type=int, default=0, help="Files per artifact (0 = no split).")
    snap.add_argument("-t", dest="tree_only", action="store_true", help="Tree-only mode: paths, no content.")
    snap.add_argument("-r", dest="remove_comments", action="store_true", default=None, help="Remove comments.")
    snap.add_argument(
        "-w",
        dest="remove_blanks",
        action="store_true",
        default=None,
        help="Remove blank lines and trailing whitespace.",
    )
    snap.add_argument(
        "-j",
        dest="jobs",
        type=int,
        default=None,
        help=f"Parallel jobs (default {DEFAULT_JOBS}; 0 = no parallelization).",
    )
    snap.add_argument("-e", dest="exclude", action="append", default=[], help="Exclude pattern (repeatable).")
    snap.add_argument(
        "-a",
        dest="all_dirs",
        action="store_true",
        help="Include all dirs (disable default ignores).",
    )
    snap.add_argument("-q", dest="quiet", action="store_true", help="Quiet progress/skips.")
    snap.add_argument("-f", dest="force", action="store_true", help="Overwrite the output snapshot.")
    snap.add_argument("--no-git", action="store_true", help="Do not use git ls-files.")
    snap.add_argument("--log-file", type=str, default="", help="Log file path.")

    build = sub.add_parser("build", help="Recreate files from a snapshot produced by 'snap'.")
    build.add_argument(
        "-i",
        dest="inputs",
        action="append",
        default=[],
        help="Input snapshot (repeatable, chained in order; '-' = stdin).",
    )
    build.add_argument("-C", dest="root", default=".", help="Target root directory to build into.")
    build.add_argument("-f", dest="force", action="store_true", help="Overwrite existing files.")
    build.add_argument("-p", dest="mkdir", action="store_true", help="Create the build root if missing.")
    build.add_argument("-q", dest="quiet", action="store_true", help="Quiet progress.")
    build.add_argument("--log-file", type=str, default="", help="Log file path.")
    return p


def snap_settings_from_args(args: argparse.Namespace) -> SnapSettings:
    """Merge defaults: built-ins < ``.snapper.yml`` < environment < command line."""
    root = Path(args.root)
    values: dict[str, Any] = {}
    if root.is_dir():
        values.update(load_file_config(root))
    values.update(load_env_config())

    cli_exclude = list(args.exclude)
    values["exclude"] = [*values.get("exclude", []), *cli_exclude]
    for key in ("max_kb", "jobs", "remove_comments", "remove_blanks"):
        value = getattr(args, key)
        if value is not None:
            values[key] = value
    if args.all_dirs:
        values["use_default_ignores"] = False

    return SnapSettings(
        root=root,
        output=Path(args.output),
        patterns=list(args.patterns),
        split=args.split,
        tree_only=args.tree_only,
        no_git=args.no_git,
        quiet=args.quiet,
        force=args.force,
        log_file=args.log_file,
        **values,
    )


def parse_args(argv: Sequence[str] | None = None) -> SnapSettings | BuildSettings:
    args = build_parser().parse_args(argv)
    if args.command == "snap":
        if not args.output:
            raise ConfigError("output snapshot is required (-o <path>)")
        return snap_settings_from_args(args)
    return BuildSettings(
        inputs=list(args.inputs),
        root=Path(args.root),
        force=args.force,
        mkdir=args.mkdir,
        quiet=args.quiet,
        log_file=args.log_file,
    )


def format_snap_report(settings: SnapSettings, metrics: SnapMetrics) -> list[str]:
    root = settings.root.resolve()
    lines = [
        "== snapper snap metrics ==",
        f"version: {__version__}",
        f"project_root: {root}",
        f"output: {resolve_output(root, settings.output)} (and subsequent numbered files if split)",
        f"files {'listed' if settings.tree_only else 'written'}: {metrics.included}",
    ]
    if settings.remove_comments:
        lines.append("comments: removed")
    if settings.remove_blanks:
        lines.append("blank lines: removed")
    if settings.jobs > 0:
        lines.append(f"parallel jobs: {settings.jobs}")
    if metrics.by_extension:
        lines.append("by extension:")
        for ext, count in metrics.extension_report():
            label = ext if ext == NO_EXTENSION else f".{ext}"
            lines.append(f"{label}: {count}")
    skipped = metrics.skipped
    lines.append(
        f"skipped: size={skipped[SkipReason.SIZE]} binary={skipped[SkipReason.BINARY]} "
        f"excluded={skipped[SkipReason.EXCLUDED]} no_match={skipped[SkipReason.NO_MATCH]}",
    )
    return lines


def format_build_report(settings: BuildSettings, metrics: BuildMetrics) -> list[str]:
    snapshots = ", ".join("/dev/stdin" if i == "-" else str(Path(i).resolve()) for i in settings.inputs)
    return [
        "== snapper build metrics ==",
        f"version: {__version__}",
        f"build_root: {settings.root.resolve()}",
        f"snapshot: {snapshots}",
        f"created: {metrics.created} overwritten: {metrics.overwritten} "
        f"skipped_exists: {metrics.skipped_exists} parse_errors: {metrics.parse_errors} "
        f"write_errors: {metrics.write_errors}",
    ]


def run(settings: SnapSettings | BuildSettings) -> list[str]:
    if settings.log_file:
        setup_logging(settings.log_file)
    set_quiet(quiet=settings.quiet)
    if isinstance(settings, SnapSettings):
        return format_snap_report(settings, write_snapshot(settings))
    return format_build_report(settings, build_from_settings(settings))


def main(argv: Sequence[str] | None = None) -> int:
    try:
        report = run(parse_args(argv))
    except OutputExistsError as e:
        print(f"error: {e}", file=sys.stderr)
        return EXIT_OUTPUT_EXISTS
    except (SnapperError, ValidationError, OSError) as e:
        print(f"error: {e}", file=sys.stderr)
        return EXIT_FAILURE
    print("\n".join(report))
    return EXIT_OK


def entrypoint() -> None:
    raise SystemExit(main())


if __name__ == "__main__":
    entrypoint()
