# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Constraint records emitted by the collector and consumed by the resolver.

Every constraint relates one lattice slot (`lhs`) to either another slot or a
concrete value (`rhs`). Kinds fall into three priority classes:

  - hard: applied first by unification; two distinct concrete values reaching
    one class is a conflict.
  - default: only consulted for classes the hard constraints left open.
  - check: evaluated after every slot is resolved; a failure marks the class
    conflicted.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, Iterator, List, Mapping, Optional

from axisc.core.lattice import (
	COMPILETIME,
	MUT,
	RUNTIME,
	Axis,
	Concrete,
	LatticeValue,
	Variable,
	VarId,
)
from axisc.core.span import Span


class ConstraintKind(str, Enum):
	WRITE_THROUGH = "write_through"
	EXPLICIT_COERCION = "explicit_coercion"
	EXTERN_BOUNDARY = "extern_boundary"
	UNIFY = "unify"
	POINTER_METADATA = "pointer_metadata"
	LITERAL_DEFAULT = "literal_default"
	STAGE_FLOW = "stage_flow"
	RUNTIME_HINT = "runtime_hint"
	STATIC_STORAGE = "static_storage"
	RUNTIME_ELIGIBILITY = "runtime_eligibility"


class Priority(str, Enum):
	HARD = "hard"
	DEFAULT = "default"
	CHECK = "check"


PRIORITY: Dict[ConstraintKind, Priority] = {
	ConstraintKind.WRITE_THROUGH: Priority.HARD,
	ConstraintKind.EXPLICIT_COERCION: Priority.HARD,
	ConstraintKind.EXTERN_BOUNDARY: Priority.HARD,
	ConstraintKind.UNIFY: Priority.HARD,
	ConstraintKind.POINTER_METADATA: Priority.HARD,
	ConstraintKind.LITERAL_DEFAULT: Priority.DEFAULT,
	ConstraintKind.STAGE_FLOW: Priority.DEFAULT,
	ConstraintKind.RUNTIME_HINT: Priority.DEFAULT,
	ConstraintKind.STATIC_STORAGE: Priority.CHECK,
	ConstraintKind.RUNTIME_ELIGIBILITY: Priority.CHECK,
}


@dataclass(frozen=True)
class ConstraintOrigin:
	"""Where a constraint came from (used as resolver evidence)."""

	kind: str
	span: Span = field(default_factory=Span)
	note: Optional[str] = None

	def label(self) -> str:
		base = f"{self.kind} at {self.span}"
		return f"{base} ({self.note})" if self.note else base


@dataclass(frozen=True)
class Constraint:
	kind: ConstraintKind
	lhs: LatticeValue
	# Concrete target for fixes/defaults, source slot for flows, peer slot for
	# unifications, None for checks.
	rhs: Optional[LatticeValue]
	origin: ConstraintOrigin

	def __post_init__(self) -> None:
		if self.rhs is not None and self.rhs.axis is not self.lhs.axis:
			raise ValueError(f"constraint {self.kind.value} relates slots of different axes: {self.lhs} / {self.rhs}")

	@property
	def priority(self) -> Priority:
		return PRIORITY[self.kind]

	@property
	def axis(self) -> Axis:
		return self.lhs.axis

	def vars(self) -> List[VarId]:
		out: List[VarId] = []
		for slot in (self.lhs, self.rhs):
			if isinstance(slot, Variable) and slot.var not in out:
				out.append(slot.var)
		return out

	def substituted(self, mapping: Mapping[VarId, LatticeValue]) -> "Constraint":
		"""Return this constraint with variables renamed through `mapping`."""

		def sub(slot: Optional[LatticeValue]) -> Optional[LatticeValue]:
			if isinstance(slot, Variable):
				return mapping.get(slot.var, slot)
			return slot

		lhs = sub(self.lhs)
		assert lhs is not None
		return Constraint(self.kind, lhs, sub(self.rhs), self.origin)

	def __str__(self) -> str:
		if self.rhs is None:
			return f"{self.kind.value}({self.lhs})"
		return f"{self.kind.value}({self.lhs}, {self.rhs})"


class ConstraintSet:
	"""
	Ordered collection of constraints for one compilation unit (or one scheme).

	Order is kept only for readable dumps; the resolver does not depend on it.
	"""

	def __init__(self, constraints: Iterable[Constraint] = ()) -> None:
		self._items: List[Constraint] = list(constraints)

	def add(self, constraint: Constraint) -> None:
		self._items.append(constraint)

	def extend(self, constraints: Iterable[Constraint]) -> None:
		self._items.extend(constraints)

	def fix(self, kind: ConstraintKind, slot: LatticeValue, value: Concrete, origin: ConstraintOrigin) -> None:
		self.add(Constraint(kind, slot, value, origin))

	def write(self, slot: LatticeValue, origin: ConstraintOrigin) -> None:
		self.fix(ConstraintKind.WRITE_THROUGH, slot, MUT, origin)

	def literal_default(self, slot: LatticeValue, origin: ConstraintOrigin) -> None:
		self.fix(ConstraintKind.LITERAL_DEFAULT, slot, COMPILETIME, origin)

	def extern_boundary(self, slot: LatticeValue, origin: ConstraintOrigin) -> None:
		self.fix(ConstraintKind.EXTERN_BOUNDARY, slot, RUNTIME, origin)

	def runtime_hint(self, slot: LatticeValue, origin: ConstraintOrigin) -> None:
		self.fix(ConstraintKind.RUNTIME_HINT, slot, RUNTIME, origin)

	def unify(self, a: LatticeValue, b: LatticeValue, origin: ConstraintOrigin, *, kind: ConstraintKind = ConstraintKind.UNIFY) -> None:
		if a == b:
			return
		self.add(Constraint(kind, a, b, origin))

	def flow(self, dst: LatticeValue, src: LatticeValue, origin: ConstraintOrigin) -> None:
		if dst == src:
			return
		self.add(Constraint(ConstraintKind.STAGE_FLOW, dst, src, origin))

	def check(self, kind: ConstraintKind, slot: LatticeValue, origin: ConstraintOrigin) -> None:
		if PRIORITY[kind] is not Priority.CHECK:
			raise ValueError(f"{kind.value} is not a check constraint")
		self.add(Constraint(kind, slot, None, origin))

	def of_kind(self, *kinds: ConstraintKind) -> List[Constraint]:
		return [c for c in self._items if c.kind in kinds]

	def of_priority(self, priority: Priority) -> List[Constraint]:
		return [c for c in self._items if c.priority is priority]

	def substituted(self, mapping: Mapping[VarId, LatticeValue]) -> List[Constraint]:
		return [c.substituted(mapping) for c in self._items]

	def __iter__(self) -> Iterator[Constraint]:
		return iter(self._items)

	def __len__(self) -> int:
		return len(self._items)

	def counts(self) -> Dict[str, int]:
		out: Dict[str, int] = {}
		for c in self._items:
			out[c.kind.value] = out.get(c.kind.value, 0) + 1
		return dict(sorted(out.items()))


__all__ = [
	"ConstraintKind",
	"Priority",
	"PRIORITY",
	"ConstraintOrigin",
	"Constraint",
	"ConstraintSet",
]
