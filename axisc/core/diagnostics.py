# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Diagnostics produced by the resolution core.

The core never prints; every pass appends `Diagnostic` records to a list that
the driver renders (plain text or JSON). Each error kind has a stable code so
tests and tooling can match on it instead of on message text.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, List, Optional

from .span import Span


class ErrorKind(str, Enum):
	MUTABILITY_CONFLICT = "E-MUT-CONFLICT"
	STAGING_CONFLICT = "E-STAGE-CONFLICT"
	STATIC_STAGE_CONFLICT = "E-STATIC-STAGE"
	INVALID_RUNTIME_COERCION = "E-RUNTIME-COERCION"
	EXTERN_STAGING_VIOLATION = "E-EXTERN-STAGE"
	HETEROGENEOUS_ARRAY_MUTABILITY = "E-ARRAY-MUT"
	UNRESOLVABLE_CONFLICT_PROPAGATION = "E-CONFLICT-PROPAGATION"
	SLICE_METADATA_TOO_NARROW = "E-SLICE-META"
	UNKNOWN_NAME = "E-UNKNOWN-NAME"
	SHAPE_MISMATCH = "E-SHAPE"
	PARSE_ERROR = "E-PARSE"


@dataclass
class Diagnostic:
	"""A single compiler diagnostic (error/warning/note)."""

	message: str
	code: Optional[str] = None
	# Pass that produced the diagnostic: parser, collect, resolve, monomorphize, slices.
	phase: Optional[str] = None
	severity: str = "error"
	span: Span = field(default_factory=Span)
	notes: List[str] = field(default_factory=list)

	def __post_init__(self) -> None:
		if self.span is None:  # type: ignore[unreachable]
			self.span = Span()

	@property
	def kind(self) -> Optional[ErrorKind]:
		try:
			return ErrorKind(self.code) if self.code else None
		except ValueError:
			return None

	def render(self) -> str:
		lines = [f"{self.span}: {self.severity}[{self.code or '-'}]: {self.message}"]
		lines.extend(f"  note: {note}" for note in self.notes)
		return "\n".join(lines)

	def to_json(self) -> dict:
		return {
			"phase": self.phase,
			"code": self.code,
			"message": self.message,
			"severity": self.severity,
			"file": self.span.file,
			"line": self.span.line,
			"column": self.span.column,
			"notes": list(self.notes),
		}


def error(
	kind: ErrorKind,
	message: str,
	*,
	phase: str,
	span: Optional[Span] = None,
	notes: Iterable[str] = (),
) -> Diagnostic:
	"""Build an error diagnostic for one of the core's error kinds."""
	return Diagnostic(
		message=message,
		code=kind.value,
		phase=phase,
		span=span or Span(),
		notes=list(notes),
	)


def has_errors(diagnostics: Iterable[Diagnostic]) -> bool:
	return any(d.severity == "error" for d in diagnostics)


__all__ = ["ErrorKind", "Diagnostic", "error", "has_errors"]
