"""Error types raised by elksvg."""
from __future__ import annotations

from typing import Optional


class ElkSvgError(Exception):
    """Base error with a stable code for CLI mapping."""

    code = "E_INTERNAL"

    def __init__(self, message: str, *, code: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code

    def __str__(self) -> str:
        return self.message


class GraphParseError(ElkSvgError, ValueError):
    """Raised when graph input is not a JSON object."""

    code = "E_PARSE_JSON"

    def __init__(self, message: str, *, line: Optional[int] = None, column: Optional[int] = None) -> None:
        super().__init__(message)
        self.line = line
        self.column = column


class LayoutUnavailableError(ElkSvgError):
    """Raised when node or the elkjs package cannot be located."""

    code = "E_LAYOUT_UNAVAILABLE"


class LayoutFailedError(ElkSvgError):
    code = "E_LAYOUT_FAILED"


class RasterConversionError(ElkSvgError):
    code = "E_PNG_CONVERT"
