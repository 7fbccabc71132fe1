# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Lattice values for the two implicit type axes.

Every qualified type slot carries one value per axis:

  - mutability: `const` / `mut`
  - staging:    `compiletime` / `runtime`

A slot is either `Concrete(value)` or `Variable(var)`, where `var` is an
unresolved generic parameter owned by one compilation unit. `anymut` (and an
omitted mutability fragment) is not a third domain value; it simply mints a
fresh `Variable`.

Variables are plain ids. The resolver never mutates a slot in place; it
produces a write-once binding table keyed by `VarId`.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterator, Optional, Tuple, Union


class Axis(str, Enum):
	"""The two orthogonal generic axes of every type."""

	MUTABILITY = "mutability"
	STAGING = "staging"

	@property
	def short(self) -> str:
		return "m" if self is Axis.MUTABILITY else "s"


class Mutability(str, Enum):
	CONST = "const"
	MUT = "mut"


class Staging(str, Enum):
	COMPILETIME = "compiletime"
	RUNTIME = "runtime"


AxisValue = Union[Mutability, Staging]


def axis_of(value: AxisValue) -> Axis:
	"""Return the axis an axis value belongs to."""
	if isinstance(value, Mutability):
		return Axis.MUTABILITY
	if isinstance(value, Staging):
		return Axis.STAGING
	raise TypeError(f"not an axis value: {value!r}")


def parse_axis_value(text: str) -> AxisValue:
	"""Map a surface keyword (`const`, `mut`, `compiletime`, `runtime`) to its value."""
	for enum_cls in (Mutability, Staging):
		try:
			return enum_cls(text)
		except ValueError:
			continue
	raise ValueError(f"unknown axis keyword: {text!r}")


def join_staging(a: Staging, b: Staging) -> Staging:
	"""Least upper bound on the staging axis (runtime dominates)."""
	if a is Staging.RUNTIME or b is Staging.RUNTIME:
		return Staging.RUNTIME
	return Staging.COMPILETIME


@dataclass(frozen=True, order=True)
class VarId:
	"""Identity of one unresolved axis parameter within a compilation unit."""

	axis: Axis
	index: int

	def __str__(self) -> str:
		return f"?{self.axis.short}{self.index}"


@dataclass(frozen=True)
class Concrete:
	value: AxisValue

	@property
	def axis(self) -> Axis:
		return axis_of(self.value)

	def __str__(self) -> str:
		return self.value.value


@dataclass(frozen=True)
class Variable:
	var: VarId

	@property
	def axis(self) -> Axis:
		return self.var.axis

	def __str__(self) -> str:
		return str(self.var)


LatticeValue = Union[Concrete, Variable]

CONST = Concrete(Mutability.CONST)
MUT = Concrete(Mutability.MUT)
COMPILETIME = Concrete(Staging.COMPILETIME)
RUNTIME = Concrete(Staging.RUNTIME)


class VarSupply:
	"""
	Per-unit allocator of fresh variables.

	Indices are dense and monotonically increasing per axis, so two runs over
	the same AST produce identical ids.
	"""

	def __init__(self) -> None:
		self._next: Dict[Axis, int] = {Axis.MUTABILITY: 0, Axis.STAGING: 0}

	def fresh(self, axis: Axis) -> Variable:
		idx = self._next[axis]
		self._next[axis] = idx + 1
		return Variable(VarId(axis, idx))

	def fresh_mut(self) -> Variable:
		return self.fresh(Axis.MUTABILITY)

	def fresh_stage(self) -> Variable:
		return self.fresh(Axis.STAGING)

	def count(self, axis: Axis) -> int:
		return self._next[axis]

	def all_vars(self) -> Iterator[VarId]:
		for axis in (Axis.MUTABILITY, Axis.STAGING):
			for idx in range(self._next[axis]):
				yield VarId(axis, idx)


@dataclass(frozen=True)
class UnifyOutcome:
	"""
	Result of unifying two lattice values.

	- `binding` is set when one side is a variable (var -> other side).
	- `conflict` holds the two distinct concrete values when unification fails.
	- `alias` holds two distinct variables that must join one class.
	"""

	binding: Optional[Tuple[VarId, Concrete]] = None
	alias: Optional[Tuple[VarId, VarId]] = None
	conflict: Optional[Tuple[AxisValue, AxisValue]] = None

	@property
	def ok(self) -> bool:
		return self.conflict is None


def unify_values(a: LatticeValue, b: LatticeValue) -> UnifyOutcome:
	"""
	Unify two lattice values on the same axis.

	There is no occurs-check: axis values never nest, only carrier types do.
	"""
	if a.axis is not b.axis:
		raise ValueError(f"cannot unify values of different axes: {a} / {b}")
	if isinstance(a, Concrete) and isinstance(b, Concrete):
		if a.value == b.value:
			return UnifyOutcome()
		return UnifyOutcome(conflict=(a.value, b.value))
	if isinstance(a, Variable) and isinstance(b, Variable):
		if a.var == b.var:
			return UnifyOutcome()
		return UnifyOutcome(alias=(a.var, b.var))
	if isinstance(a, Variable):
		return UnifyOutcome(binding=(a.var, b))  # type: ignore[arg-type]
	return UnifyOutcome(binding=(b.var, a))  # type: ignore[union-attr]


__all__ = [
	"Axis",
	"Mutability",
	"Staging",
	"AxisValue",
	"axis_of",
	"parse_axis_value",
	"join_staging",
	"VarId",
	"Concrete",
	"Variable",
	"LatticeValue",
	"CONST",
	"MUT",
	"COMPILETIME",
	"RUNTIME",
	"VarSupply",
	"UnifyOutcome",
	"unify_values",
]
