"""Run the elkjs layout engine under Node.js."""
from __future__ import annotations

import asyncio
import json
import os
import shutil
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from .errors import LayoutFailedError, LayoutUnavailableError
from .resources import bridge_script

ELKJS_PACKAGE = "elkjs"


def fallback_module_dirs(home: Optional[Path] = None) -> List[Path]:
    """Global node_modules locations searched when elkjs is not installed locally."""
    home = home if home is not None else Path.home()
    return [
        Path("/opt/homebrew/lib/node_modules"),  # macOS Homebrew ARM
        Path("/usr/local/lib/node_modules"),  # macOS Homebrew Intel / Linux
        home / ".bun/install/global/node_modules",
        home / ".npm-global/lib/node_modules",
        home / ".local/lib/node_modules",
    ]


def find_elkjs(
    start: Optional[Path] = None,
    fallbacks: Optional[Iterable[Path]] = None,
) -> Optional[Path]:
    override = os.getenv("ELKSVG_ELKJS")
    if override:
        candidate = Path(override).expanduser()
        return candidate if candidate.is_dir() else None

    here = (start or Path.cwd()).resolve()
    for directory in (here, *here.parents):
        candidate = directory / "node_modules" / ELKJS_PACKAGE
        if candidate.is_dir():
            return candidate

    for directory in fallbacks if fallbacks is not None else fallback_module_dirs():
        candidate = Path(directory) / ELKJS_PACKAGE
        if candidate.is_dir():
            return candidate
    return None


def find_node() -> Optional[str]:
    override = os.getenv("ELKSVG_NODE")
    if override:
        return override if Path(override).is_file() else shutil.which(override)
    return shutil.which("node")


def locate_engine() -> "ElkLayout":
    """Find node and elkjs, or raise LayoutUnavailableError."""
    node_path = find_node()
    if not node_path:
        raise LayoutUnavailableError("node executable not found; install Node.js or set ELKSVG_NODE")
    elkjs_path = find_elkjs()
    if elkjs_path is None:
        raise LayoutUnavailableError(
            "elkjs not found; install it (e.g. npm install -g elkjs) or set ELKSVG_ELKJS"
        )
    return ElkLayout(node_path, elkjs_path)


class ElkLayout:
    """Lays out ELK JSON graphs by piping them through elkjs."""

    def __init__(self, node_path: str, elkjs_path: Path) -> None:
        self.node_path = node_path
        self.elkjs_path = elkjs_path

    async def layout(self, graph: Dict[str, Any]) -> Dict[str, Any]:
        payload = json.dumps(graph).encode("utf-8")
        with bridge_script() as script:
            try:
                proc = await asyncio.create_subprocess_exec(
                    self.node_path,
                    str(script),
                    str(self.elkjs_path),
                    stdin=asyncio.subprocess.PIPE,
                    stdout=asyncio.subprocess.PIPE,
                    stderr=asyncio.subprocess.PIPE,
                )
            except OSError as exc:
                raise LayoutFailedError(f"failed to execute node: {exc}") from exc
            stdout, stderr = await proc.communicate(payload)

        if proc.returncode != 0:
            detail = stderr.decode("utf-8", errors="replace").strip()
            if len(detail) > 240:
                detail = detail[:240] + "..."
            raise LayoutFailedError(f"elkjs layout failed: {detail or 'unknown error'}")
        try:
            laid_out = json.loads(stdout.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise LayoutFailedError(f"elkjs returned unreadable output: {exc}") from exc
        if not isinstance(laid_out, dict):
            raise LayoutFailedError("elkjs returned a non-object graph")
        return laid_out
