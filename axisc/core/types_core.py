# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Type terms with lattice-valued mutability/staging slots.

A `TypeTerm` is created once per syntactic type occurrence and is immutable.
Qualified terms (primitives, pointers, arrays, `type` and `literal` values)
expose a *top qualifier*: the mutability/staging pair of the value itself.
Tuples, ADTs, functions and unit carry no qualifier of their own; qualifier
operations distribute over their elements.

Array invariant: when the element term has a top qualifier, it must be the
array's `(elem_mut, elem_stage)` pair, so a single pair covers every element.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import List, Optional, Sequence

from .lattice import (
	Axis,
	COMPILETIME,
	Concrete,
	LatticeValue,
	Mutability,
)

INT_WIDTHS = {
	"u8": 8,
	"u16": 16,
	"u32": 32,
	"u64": 64,
	"i8": 8,
	"i16": 16,
	"i32": 32,
	"i64": 64,
}
FLOAT_WIDTHS = {"f32": 32, "f64": 64}
SIZED_INTS = frozenset({"isize", "usize"})
PRIMITIVE_NAMES = frozenset({*INT_WIDTHS, *FLOAT_WIDTHS, *SIZED_INTS, "bool"})
UNSIGNED_NAMES = frozenset({"u8", "u16", "u32", "u64", "usize"})


class TypeKind(Enum):
	PRIMITIVE = auto()
	POINTER = auto()
	ARRAY = auto()
	TUPLE = auto()
	TYPE_VALUE = auto()
	LITERAL = auto()
	UNIT = auto()
	FUNCTION = auto()
	ADT = auto()


class TypeTerm:
	"""Base class for all type terms."""

	kind: TypeKind

	def top(self) -> Optional[tuple[LatticeValue, LatticeValue]]:
		"""Return the (mutability, staging) pair of the value itself, if any."""
		return None

	def __str__(self) -> str:
		return term_str(self)


@dataclass(frozen=True, eq=True)
class Primitive(TypeTerm):
	name: str
	mut: LatticeValue
	stage: LatticeValue
	# Width in bits for `isize`/`usize`; bound by the monomorphizer.
	bits: Optional[int] = None

	kind = TypeKind.PRIMITIVE

	def top(self) -> tuple[LatticeValue, LatticeValue]:
		return (self.mut, self.stage)

	def with_bits(self, bits: int) -> "Primitive":
		return Primitive(self.name, self.mut, self.stage, bits)


@dataclass(frozen=True, eq=True)
class Pointer(TypeTerm):
	ptr_mut: LatticeValue
	ptr_stage: LatticeValue
	pointee: TypeTerm

	kind = TypeKind.POINTER

	def top(self) -> tuple[LatticeValue, LatticeValue]:
		return (self.ptr_mut, self.ptr_stage)


@dataclass(frozen=True, eq=True)
class Array(TypeTerm):
	length: Optional[int]
	elem_mut: LatticeValue
	elem_stage: LatticeValue
	elem: TypeTerm

	kind = TypeKind.ARRAY

	def __post_init__(self) -> None:
		elem_top = self.elem.top()
		if elem_top is not None and elem_top != (self.elem_mut, self.elem_stage):
			raise ValueError(
				f"array element qualifier {elem_top[0]}/{elem_top[1]} does not match "
				f"array qualifier {self.elem_mut}/{self.elem_stage}"
			)
		if self.length is not None and self.length < 0:
			raise ValueError(f"negative array length {self.length}")

	def top(self) -> tuple[LatticeValue, LatticeValue]:
		return (self.elem_mut, self.elem_stage)

	@classmethod
	def of(cls, length: Optional[int], elem: TypeTerm) -> "Array":
		"""Build an array whose uniform qualifier is the element's own top qualifier."""
		elem_top = elem.top()
		if elem_top is None:
			raise ValueError("Array.of needs a qualified element; pass elem_mut/elem_stage for tuple elements")
		return cls(length, elem_top[0], elem_top[1], elem)

	def with_length(self, length: Optional[int]) -> "Array":
		return Array(length, self.elem_mut, self.elem_stage, self.elem)


@dataclass(frozen=True, eq=True)
class Tuple(TypeTerm):
	elements: tuple[TypeTerm, ...]

	kind = TypeKind.TUPLE


@dataclass(frozen=True, eq=True)
class TypeValue(TypeTerm):
	mut: LatticeValue
	stage: LatticeValue = COMPILETIME

	kind = TypeKind.TYPE_VALUE

	def top(self) -> tuple[LatticeValue, LatticeValue]:
		return (self.mut, self.stage)


@dataclass(frozen=True, eq=True)
class LiteralType(TypeTerm):
	mut: LatticeValue
	stage: LatticeValue = COMPILETIME
	# Surface literal kind ("int", "float", "char", "bool", "string") when known.
	literal_kind: Optional[str] = None

	kind = TypeKind.LITERAL

	def top(self) -> tuple[LatticeValue, LatticeValue]:
		return (self.mut, self.stage)


@dataclass(frozen=True, eq=True)
class Unit(TypeTerm):
	kind = TypeKind.UNIT


@dataclass(frozen=True, eq=True)
class Function(TypeTerm):
	params: tuple[TypeTerm, ...]
	ret: TypeTerm

	kind = TypeKind.FUNCTION


@dataclass(frozen=True, eq=True)
class Adt(TypeTerm):
	"""A `struct` or `union` instance; fields carry independent qualifiers."""

	adt_kind: str
	name: str
	fields: tuple[tuple[str, TypeTerm], ...]

	kind = TypeKind.ADT

	def field(self, name: str) -> Optional[TypeTerm]:
		for fname, fterm in self.fields:
			if fname == name:
				return fterm
		return None


class HeterogeneousArrayMutabilityError(ValueError):
	"""
	Raised when array elements carry two different explicit mutabilities.

	A single mutability applies to every element of an array; per-slot
	mutability needs a tuple element type instead.
	"""

	def __init__(self, message: str, *, loc: object | None = None) -> None:
		super().__init__(message)
		self.loc = loc


def homogeneous_mutability(elements: Sequence[TypeTerm], *, loc: object | None = None) -> Optional[Mutability]:
	"""
	Return the single explicit element mutability of an array, if any.

	Elements without a top qualifier (tuples, ADTs) are exempt: their slots are
	independent by construction.
	"""
	seen: List[Mutability] = []
	for elem in elements:
		top = elem.top()
		if top is None:
			continue
		mut = top[0]
		if isinstance(mut, Concrete) and mut.value not in seen:
			seen.append(mut.value)  # type: ignore[arg-type]
	if len(seen) > 1:
		values = ", ".join(v.value for v in seen)
		raise HeterogeneousArrayMutabilityError(
			f"array elements have mixed mutabilities ({values}); wrap elements in a tuple for per-slot mutability",
			loc=loc,
		)
	return seen[0] if seen else None


def top_slots(term: TypeTerm, axis: Axis) -> List[LatticeValue]:
	"""
	Return the slots that qualify the value `term` describes, on one axis.

	Qualifiers distribute over tuple elements and ADT fields. Arrays of
	unqualified elements contribute their own pair plus the elements' tops.
	"""
	pick = 0 if axis is Axis.MUTABILITY else 1
	top = term.top()
	if isinstance(term, Array):
		out = [top[pick]]  # type: ignore[index]
		if term.elem.top() is None:
			out.extend(top_slots(term.elem, axis))
		return out
	if top is not None:
		return [top[pick]]
	if isinstance(term, Tuple):
		out: List[LatticeValue] = []
		for elem in term.elements:
			out.extend(top_slots(elem, axis))
		return out
	if isinstance(term, Adt):
		out = []
		for _, fterm in term.fields:
			out.extend(top_slots(fterm, axis))
		return out
	return []


def uses_sized_int(term: TypeTerm) -> bool:
	"""True when `term` mentions `isize`/`usize` anywhere."""
	if isinstance(term, Primitive):
		return term.name in SIZED_INTS
	return any(uses_sized_int(child) for child in children(term))


def children(term: TypeTerm) -> tuple[TypeTerm, ...]:
	if isinstance(term, Pointer):
		return (term.pointee,)
	if isinstance(term, Array):
		return (term.elem,)
	if isinstance(term, Tuple):
		return term.elements
	if isinstance(term, Function):
		return (*term.params, term.ret)
	if isinstance(term, Adt):
		return tuple(fterm for _, fterm in term.fields)
	return ()


def _qual(mut: LatticeValue, stage: LatticeValue) -> str:
	return f"{mut} {stage}"


def term_str(term: TypeTerm) -> str:
	"""Render a term in a surface-like notation, with both qualifiers spelled out."""
	if isinstance(term, Primitive):
		name = term.name if term.bits is None or term.name not in SIZED_INTS else f"{term.name}:{term.bits}"
		return f"{_qual(term.mut, term.stage)} {name}"
	if isinstance(term, Pointer):
		return f"{_qual(term.ptr_mut, term.ptr_stage)} *{term_str(term.pointee)}"
	if isinstance(term, Array):
		length = "_" if term.length is None else str(term.length)
		if term.elem.top() is None:
			return f"{_qual(term.elem_mut, term.elem_stage)} [{length} {term_str(term.elem)}]"
		return f"[{length} {term_str(term.elem)}]"
	if isinstance(term, Tuple):
		return "(" + ", ".join(term_str(e) for e in term.elements) + ")"
	if isinstance(term, TypeValue):
		return f"{_qual(term.mut, term.stage)} type"
	if isinstance(term, LiteralType):
		return f"{_qual(term.mut, term.stage)} literal"
	if isinstance(term, Unit):
		return "()"
	if isinstance(term, Function):
		params = ", ".join(term_str(p) for p in term.params)
		return f"fn({params}) -> {term_str(term.ret)}"
	if isinstance(term, Adt):
		fields = ", ".join(f"{n}: {term_str(t)}" for n, t in term.fields)
		return f"{term.adt_kind} {term.name} {{{fields}}}"
	raise TypeError(f"unknown type term {term!r}")


def skeleton_str(term: TypeTerm) -> str:
	"""Render the shape of a term with every slot replaced by `_`."""
	if isinstance(term, Primitive):
		return f"_ _ {term.name}"
	if isinstance(term, Pointer):
		return f"_ _ *{skeleton_str(term.pointee)}"
	if isinstance(term, Array):
		length = "_" if term.length is None else str(term.length)
		if term.elem.top() is None:
			return f"_ _ [{length} {skeleton_str(term.elem)}]"
		return f"[{length} {skeleton_str(term.elem)}]"
	if isinstance(term, Tuple):
		return "(" + ", ".join(skeleton_str(e) for e in term.elements) + ")"
	if isinstance(term, TypeValue):
		return "_ _ type"
	if isinstance(term, LiteralType):
		return "_ _ literal"
	if isinstance(term, Unit):
		return "()"
	if isinstance(term, Function):
		return "fn(" + ", ".join(skeleton_str(p) for p in term.params) + f") -> {skeleton_str(term.ret)}"
	if isinstance(term, Adt):
		return f"{term.adt_kind} {term.name}"
	raise TypeError(f"unknown type term {term!r}")


def same_shape(a: TypeTerm, b: TypeTerm) -> bool:
	"""Structural shape equality, ignoring slots (unknown array lengths match any)."""
	if type(a) is not type(b):
		return False
	if isinstance(a, Primitive):
		return a.name == b.name  # type: ignore[attr-defined]
	if isinstance(a, Array):
		if a.length is not None and b.length is not None and a.length != b.length:  # type: ignore[attr-defined]
			return False
	if isinstance(a, Adt) and (a.name != b.name or len(a.fields) != len(b.fields)):  # type: ignore[attr-defined]
		return False
	ca, cb = children(a), children(b)
	return len(ca) == len(cb) and all(same_shape(x, y) for x, y in zip(ca, cb))


__all__ = [
	"INT_WIDTHS",
	"FLOAT_WIDTHS",
	"SIZED_INTS",
	"PRIMITIVE_NAMES",
	"UNSIGNED_NAMES",
	"TypeKind",
	"TypeTerm",
	"Primitive",
	"Pointer",
	"Array",
	"Tuple",
	"TypeValue",
	"LiteralType",
	"Unit",
	"Function",
	"Adt",
	"HeterogeneousArrayMutabilityError",
	"homogeneous_mutability",
	"top_slots",
	"uses_sized_int",
	"children",
	"term_str",
	"skeleton_str",
	"same_shape",
]
