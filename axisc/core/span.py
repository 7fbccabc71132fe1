# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Source span attached to diagnostics and constraint origins.

The parser hands us `Located(line, column)`; richer front-ends can pass any
object with `line`/`column` (and optionally `file`) attributes.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional


@dataclass(frozen=True, order=True)
class Span:
	"""Best-effort file/line/column location (all None means unknown)."""

	file: Optional[str] = None
	line: Optional[int] = None
	column: Optional[int] = None

	@classmethod
	def from_loc(cls, loc: Any, *, file: Optional[str] = None) -> "Span":
		if loc is None:
			return cls(file=file)
		if isinstance(loc, cls):
			return loc if file is None or loc.file is not None else cls(file, loc.line, loc.column)
		return cls(
			file=getattr(loc, "file", None) or file,
			line=getattr(loc, "line", None),
			column=getattr(loc, "column", None),
		)

	@property
	def known(self) -> bool:
		return self.line is not None

	def sort_key(self) -> tuple[str, int, int]:
		return (self.file or "", self.line or 0, self.column or 0)

	def __str__(self) -> str:
		if self.line is None:
			return self.file or "<unknown>"
		prefix = f"{self.file}:" if self.file else ""
		return f"{prefix}{self.line}:{self.column or 0}"


__all__ = ["Span"]
