# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class GenericKind(str, Enum):
	FUNCTION = "fn"
	ADT = "adt"
	# An anonymous compound type occurrence, keyed by its skeleton.
	TERM = "term"


@dataclass(frozen=True, order=True)
class GenericId:
	"""
	Stable identity of something the monomorphizer instantiates.

	Functions and ADTs are named within a module; anonymous terms use their
	skeleton string as the name so identical shapes share instantiations.
	"""

	kind: GenericKind
	module: str
	name: str


def generic_symbol(gid: GenericId) -> str:
	"""Return a stable, human-readable symbol for a generic."""
	if gid.kind is GenericKind.TERM:
		return f"term<{gid.name}>"
	base = gid.name if gid.module == "main" else f"{gid.module}::{gid.name}"
	return f"{gid.kind.value} {base}"


__all__ = ["GenericKind", "GenericId", "generic_symbol"]
