"""Command-line interface for rendering ELK JSON graphs to SVG."""
from __future__ import annotations

import argparse
import asyncio
import json
import os
import sys
import traceback
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional, Union

from .batch import render_directory
from .errors import ElkSvgError, GraphParseError, LayoutFailedError, LayoutUnavailableError
from .layout import locate_engine
from .model import parse_graph_text
from .palette import palette_keys
from .render import render_graph

HELP_EPILOG = f"""\
Colors: {", ".join(palette_keys())}
Node fields: id, width, height, label, color, subtitle, fontSize, children, containerColor
Edge fields: id, sources, targets, labels, edgeColor, dashed, strokeWidth
Graph fields: title, legend (false hides the legend), layoutOptions

Environment: ELKSVG_ELKJS (elkjs package dir), ELKSVG_NODE (node binary), ELKSVG_DEBUG=1
"""


@dataclass
class CliError(Exception):
    code: str
    message: str
    hint: Optional[str] = None
    exit_code: int = 1
    file: Optional[str] = None
    line: Optional[int] = None
    column: Optional[int] = None
    retryable: bool = False


class UsageError(Exception):
    pass


class FriendlyArgumentParser(argparse.ArgumentParser):
    def error(self, message: str) -> None:  # pragma: no cover - argparse callback
        raise UsageError(message)


def _build_parser() -> argparse.ArgumentParser:
    parser = FriendlyArgumentParser(
        prog="elksvg",
        description="Lay out an ELK JSON graph with elkjs and render it to SVG.",
        epilog=HELP_EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("input", nargs="?", help="Input .json graph ('-' or omitted reads stdin)")
    parser.add_argument("output", nargs="?", help="Output .svg path (omitted writes to stdout)")
    parser.add_argument("--dir", metavar="FOLDER", help="Render every .json in FOLDER into FOLDER/svg/")
    parser.add_argument("--png", action="store_true", help="With --dir, also convert each SVG to PNG")
    parser.add_argument(
        "--no-layout",
        action="store_true",
        help="Input already carries coordinates; skip the elkjs layout pass",
    )
    parser.add_argument("--no-legend", action="store_true", help="Never draw the colour legend")
    parser.add_argument("--error-format", choices=["text", "json"], default="text")
    parser.add_argument("--debug", action="store_true")
    return parser


def _read_input(path: Optional[str]) -> tuple[Union[str, bytes], str]:
    if path and path != "-":
        input_path = Path(path)
        if not input_path.exists():
            raise CliError(
                "E_IO_READ",
                f"input file not found: {input_path}",
                exit_code=2,
                file=str(input_path),
            )
        try:
            return input_path.read_bytes(), str(input_path)
        except OSError as exc:
            raise CliError(
                "E_IO_READ",
                f"failed to read input file: {input_path}",
                hint=str(exc),
                exit_code=2,
                file=str(input_path),
            )

    if path is None and sys.stdin.isatty():
        raise CliError(
            "E_ARGS",
            "no input provided",
            hint="Pass an input .json file, '-' for stdin, or --dir FOLDER.",
            exit_code=2,
        )
    return sys.stdin.read(), "<stdin>"


def _write_text(path: Path, content: str) -> None:
    try:
        path.write_text(content, encoding="utf-8")
    except OSError as exc:
        raise CliError(
            "E_IO_WRITE",
            f"failed to write output file: {path}",
            hint=str(exc),
            exit_code=4,
            file=str(path),
        )


def _error_from_exception(exc: Exception, source_name: Optional[str] = None) -> CliError:
    if isinstance(exc, CliError):
        return exc
    if isinstance(exc, LayoutUnavailableError):
        return CliError(
            exc.code,
            str(exc),
            hint="elkjs is looked up in ELKSVG_ELKJS, ./node_modules and common global npm/bun prefixes.",
            exit_code=1,
        )
    if isinstance(exc, GraphParseError):
        return CliError(
            exc.code,
            str(exc),
            hint="Input must be a single JSON object in ELK graph format.",
            exit_code=2,
            file=source_name,
            line=exc.line,
            column=exc.column,
        )
    if isinstance(exc, LayoutFailedError):
        return CliError(
            exc.code,
            str(exc),
            hint="Check layoutOptions and that edge sources/targets name existing nodes.",
            exit_code=3,
            file=source_name,
        )
    if isinstance(exc, ElkSvgError):
        return CliError(exc.code, str(exc), exit_code=1, file=source_name)
    return CliError(
        "E_INTERNAL",
        str(exc) or exc.__class__.__name__,
        hint="Re-run with --debug to see traceback.",
        exit_code=1,
    )


def _emit_error(err: CliError, *, error_format: str) -> None:
    if error_format == "json":
        payload = {
            "ok": False,
            "code": err.code,
            "message": err.message,
            "file": err.file,
            "line": err.line,
            "column": err.column,
            "hint": err.hint,
            "retryable": err.retryable,
        }
        sys.stderr.write(json.dumps(payload) + "\n")
        return

    sys.stderr.write(f"error[{err.code}]: {err.message}\n")
    if err.hint:
        sys.stderr.write(f"hint: {err.hint}\n")


def _legend_override(args: argparse.Namespace) -> Optional[bool]:
    return False if args.no_legend else None


def _handle_single(args: argparse.Namespace) -> int:
    if args.png:
        raise CliError(
            "E_ARGS",
            "--png can only be used with --dir",
            hint="Use: elksvg --dir FOLDER --png",
            exit_code=2,
        )

    engine = None if args.no_layout else locate_engine()
    source, source_name = _read_input(args.input)
    try:
        data = parse_graph_text(source)
        svg_text = asyncio.run(render_graph(data, engine, legend=_legend_override(args)))
    except ElkSvgError as exc:
        raise _error_from_exception(exc, source_name) from exc

    if not args.output:
        sys.stdout.write(svg_text)
        return 0

    output_path = Path(args.output)
    _write_text(output_path, svg_text)
    print(f"Wrote {output_path}")
    return 0


def _handle_batch(args: argparse.Namespace) -> int:
    if args.input or args.output:
        raise CliError(
            "E_ARGS",
            "--dir cannot be combined with input/output paths",
            hint="Use either INPUT [OUTPUT] or --dir FOLDER.",
            exit_code=2,
        )
    folder = Path(args.dir)
    if not folder.is_dir():
        raise CliError(
            "E_IO_READ",
            f"directory not found: {folder}",
            exit_code=2,
            file=str(folder),
        )

    engine = None if args.no_layout else locate_engine()
    report = asyncio.run(
        render_directory(folder, engine, png=args.png, legend=_legend_override(args))
    )
    return 1 if report.failed else 0


def main(argv: Optional[Iterable[str]] = None) -> int:
    raw_argv = list(argv) if argv is not None else sys.argv[1:]
    parser = _build_parser()

    debug_enabled = "--debug" in raw_argv or os.getenv("ELKSVG_DEBUG") == "1"
    error_format = "text"
    if "--error-format" in raw_argv:
        idx = raw_argv.index("--error-format")
        if idx + 1 < len(raw_argv):
            error_format = raw_argv[idx + 1]

    try:
        args = parser.parse_args(raw_argv)
        error_format = args.error_format
        if args.dir:
            return _handle_batch(args)
        return _handle_single(args)
    except UsageError as exc:
        err = CliError(
            "E_ARGS",
            str(exc),
            hint=parser.format_usage().strip(),
            exit_code=2,
        )
        _emit_error(err, error_format=error_format)
        return err.exit_code
    except Exception as exc:  # pragma: no cover - exercised in integration tests
        err = _error_from_exception(exc)
        _emit_error(err, error_format=error_format)
        if debug_enabled:
            traceback.print_exc(file=sys.stderr)
        return err.exit_code


if __name__ == "__main__":
    raise SystemExit(main())
