"""Directory mode: render every graph in a folder, optionally to PNG too."""
from __future__ import annotations

import shutil
import subprocess
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, List, Optional

from .errors import RasterConversionError
from .model import parse_graph_text
from .render import render_graph

OUTPUT_SUBDIR = "svg"


@dataclass
class FileOutcome:
    source: Path
    svg_path: Optional[Path] = None
    png_path: Optional[Path] = None
    error: Optional[str] = None
    png_error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class BatchReport:
    output_dir: Path
    outcomes: List[FileOutcome] = field(default_factory=list)

    @property
    def succeeded(self) -> List[FileOutcome]:
        return [outcome for outcome in self.outcomes if outcome.ok]

    @property
    def failed(self) -> List[FileOutcome]:
        return [outcome for outcome in self.outcomes if not outcome.ok]


def discover_inputs(folder: Path) -> List[Path]:
    """JSON graphs in folder, skipping package manifests like package.json."""
    return sorted(
        path
        for path in folder.iterdir()
        if path.is_file() and path.suffix == ".json" and not path.name.startswith("package")
    )


def _raster_commands(svg_path: Path, png_path: Path) -> List[List[str]]:
    return [
        ["sips", "-s", "format", "png", str(svg_path), "--out", str(png_path)],
        ["rsvg-convert", "-f", "png", "-o", str(png_path), str(svg_path)],
        ["resvg", str(svg_path), str(png_path)],
        ["inkscape", str(svg_path), "--export-type=png", f"--export-filename={png_path}"],
    ]


def convert_to_png(svg_path: Path, png_path: Path) -> str:
    """Rasterize svg_path with the first conversion tool on PATH; returns the tool name."""
    for command in _raster_commands(svg_path, png_path):
        tool = shutil.which(command[0])
        if not tool:
            continue
        try:
            proc = subprocess.run(
                [tool, *command[1:]],
                text=True,
                capture_output=True,
                check=False,
            )
        except OSError as exc:
            raise RasterConversionError(f"failed to execute {command[0]}: {exc}") from exc
        if proc.returncode != 0:
            detail = (proc.stderr or "").strip()
            if len(detail) > 240:
                detail = detail[:240] + "..."
            raise RasterConversionError(f"{command[0]} failed: {detail or 'unknown error'}")
        return command[0]
    raise RasterConversionError("no PNG conversion tool found (tried sips, rsvg-convert, resvg, inkscape)")


def _write_stderr(line: str) -> None:
    sys.stderr.write(line + "\n")


async def render_directory(
    folder: Path,
    engine: Any,
    *,
    png: bool = False,
    legend: Optional[bool] = None,
    out: Callable[[str], None] = print,
    err: Callable[[str], None] = _write_stderr,
) -> BatchReport:
    """Render folder/*.json into folder/svg/, one file at a time.

    A file that fails is reported on err and skipped; the rest of the batch
    still runs. Progress lines go to out.
    """
    output_dir = folder / OUTPUT_SUBDIR
    output_dir.mkdir(parents=True, exist_ok=True)
    inputs = discover_inputs(folder)
    report = BatchReport(output_dir=output_dir)
    out(f"Rendering {len(inputs)} diagram(s) from {folder}")

    for source in inputs:
        outcome = FileOutcome(source=source)
        report.outcomes.append(outcome)
        svg_path = output_dir / source.with_suffix(".svg").name
        try:
            data = parse_graph_text(source.read_bytes())
            svg_text = await render_graph(data, engine, legend=legend)
            svg_path.write_text(svg_text, encoding="utf-8")
        except Exception as exc:  # isolated per file
            outcome.error = str(exc) or exc.__class__.__name__
            err(f"  FAILED {source.name}: {outcome.error}")
            continue
        outcome.svg_path = svg_path

        if not png:
            out(f"  ok {source.name} -> {OUTPUT_SUBDIR}/{svg_path.name}")
            continue
        png_path = svg_path.with_suffix(".png")
        try:
            convert_to_png(svg_path, png_path)
        except RasterConversionError as exc:
            outcome.png_error = str(exc)
            out(f"  ok {source.name} -> {OUTPUT_SUBDIR}/{svg_path.name}")
            err(f"  PNG conversion failed for {svg_path.name}: {exc}")
            continue
        outcome.png_path = png_path
        out(f"  ok {source.name} -> {OUTPUT_SUBDIR}/{svg_path.name} + {OUTPUT_SUBDIR}/{png_path.name}")

    out(f"Done: {len(report.succeeded)} rendered, {len(report.failed)} failed. Output in {output_dir}/")
    return report
