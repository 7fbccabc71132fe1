# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Target profile: the only process-wide configuration the core consumes.

The profile is immutable and established once before any unit is resolved.
Only `isize`/`usize` monomorphization reads it.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass

from .types_core import FLOAT_WIDTHS, INT_WIDTHS, SIZED_INTS, Adt, Array, Function, Pointer, Primitive, Tuple, TypeTerm

SUPPORTED_WORD_BITS = (16, 32, 64)


def host_word_bits() -> int:
	"""Return the host pointer width in bits."""
	return struct.calcsize("P") * 8


@dataclass(frozen=True)
class TargetProfile:
	word_bits: int = 64

	def __post_init__(self) -> None:
		if self.word_bits not in SUPPORTED_WORD_BITS:
			supported = ", ".join(str(b) for b in SUPPORTED_WORD_BITS)
			raise ValueError(f"unsupported target pointer width {self.word_bits} (expected one of {supported})")

	@classmethod
	def host(cls) -> "TargetProfile":
		return cls(word_bits=host_word_bits())

	def width_of(self, name: str) -> int:
		"""Bit width of an integer/float primitive on this target."""
		if name in SIZED_INTS:
			return self.word_bits
		if name in INT_WIDTHS:
			return INT_WIDTHS[name]
		if name in FLOAT_WIDTHS:
			return FLOAT_WIDTHS[name]
		raise KeyError(f"'{name}' has no numeric width")

	def unsigned_max(self, name: str) -> int:
		return (1 << self.width_of(name)) - 1


def bind_widths(term: TypeTerm, target: TargetProfile) -> TypeTerm:
	"""Give every `isize`/`usize` in `term` the target's pointer width."""
	if isinstance(term, Primitive):
		if term.name in SIZED_INTS and term.bits != target.word_bits:
			return term.with_bits(target.word_bits)
		return term
	if isinstance(term, Pointer):
		return Pointer(term.ptr_mut, term.ptr_stage, bind_widths(term.pointee, target))
	if isinstance(term, Array):
		return Array(term.length, term.elem_mut, term.elem_stage, bind_widths(term.elem, target))
	if isinstance(term, Tuple):
		return Tuple(tuple(bind_widths(e, target) for e in term.elements))
	if isinstance(term, Function):
		return Function(tuple(bind_widths(p, target) for p in term.params), bind_widths(term.ret, target))
	if isinstance(term, Adt):
		return Adt(term.adt_kind, term.name, tuple((n, bind_widths(t, target)) for n, t in term.fields))
	return term


__all__ = ["SUPPORTED_WORD_BITS", "host_word_bits", "TargetProfile", "bind_widths"]
