# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Resolver: unification plus defaulting over one unit's constraint set.

Both axes share one union-find over `VarId`s (ids carry their axis, so
classes never mix axes). Each class collects the concrete values hard
constraints assert for it, together with the evidence; a class that collects
two distinct values is conflicted. Because classes hold *sets* of values, the
result does not depend on the order constraints are applied in.

Resolution order:

  1. hard constraints (unify / fix);
  2. literal defaults: unresolved literal classes become compiletime;
  3. staging flows: least fixpoint of the join over resolved sources;
  4. runtime hints for still-open classes, then flows again;
  5. fallback: mutability -> const, staging -> compiletime;
  6. post checks: static storage, runtime eligibility, runtime-into-compiletime
     flows.

Defaults never override a conflict; conflicted classes stay conflicted and
every variable in them is reported through the binding table.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, Optional, Set, Tuple

from axisc.constraints import Constraint, ConstraintKind, ConstraintSet, Priority
from axisc.core.diagnostics import Diagnostic, ErrorKind, error
from axisc.core.lattice import (
	COMPILETIME,
	CONST,
	Axis,
	AxisValue,
	Concrete,
	LatticeValue,
	Staging,
	Variable,
	VarId,
	VarSupply,
	join_staging,
	unify_values,
)
from axisc.core.span import Span
from axisc.core.type_subst import slots, with_slots
from axisc.core.types_core import TypeTerm

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConflictRecord:
	"""
	Why a class of variables has no value.

	`root` is the class representative (None when two concrete values clashed
	directly, without any variable involved).
	"""

	kind: ErrorKind
	axis: Axis
	values: tuple[str, ...]
	evidence: tuple[str, ...]
	root: Optional[VarId] = None
	span: Span = field(default_factory=Span)

	def describe(self) -> str:
		subject = f"'{self.root}'" if self.root is not None else "a fixed slot"
		if self.kind is ErrorKind.STATIC_STAGE_CONFLICT:
			return f"static storage {subject} resolves to compiletime"
		if self.kind is ErrorKind.INVALID_RUNTIME_COERCION:
			return f"'runtime' applied to {subject}, which is compiletime and has no literal origin"
		if self.kind is ErrorKind.EXTERN_STAGING_VIOLATION:
			return f"compiletime value reaches an extern boundary through {subject}"
		values = " and ".join(self.values)
		return f"{self.axis.value} conflict: {subject} must be both {values}"

	def to_json(self) -> dict:
		return {
			"kind": self.kind.value,
			"axis": self.axis.value,
			"values": list(self.values),
			"evidence": list(self.evidence),
			"root": str(self.root) if self.root is not None else None,
		}


class ConflictedBindingError(ValueError):
	"""Raised when a conflicted variable is asked for its value."""

	def __init__(self, var: VarId, record: ConflictRecord) -> None:
		super().__init__(f"{var} is conflicted: {record.describe()}")
		self.var = var
		self.record = record


class BindingTable:
	"""
	Write-once map from `VarId` to a concrete value or a conflict record.

	Binding an entry twice raises; the table is frozen from the moment the
	resolver returns it.
	"""

	def __init__(self) -> None:
		self._values: Dict[VarId, Concrete] = {}
		self._conflicts: Dict[VarId, ConflictRecord] = {}

	def bind(self, var: VarId, value: Concrete) -> None:
		if var in self._values or var in self._conflicts:
			raise ValueError(f"variable {var} is already bound")
		if value.axis is not var.axis:
			raise ValueError(f"cannot bind {var} to a {value.axis.value} value")
		self._values[var] = value

	def mark_conflicted(self, var: VarId, record: ConflictRecord) -> None:
		if var in self._values or var in self._conflicts:
			raise ValueError(f"variable {var} is already bound")
		self._conflicts[var] = record

	def __contains__(self, var: object) -> bool:
		return var in self._values or var in self._conflicts

	def __len__(self) -> int:
		return len(self._values) + len(self._conflicts)

	def value(self, var: VarId) -> Optional[Concrete]:
		return self._values.get(var)

	def conflict(self, var: VarId) -> Optional[ConflictRecord]:
		return self._conflicts.get(var)

	def is_conflicted(self, var: VarId) -> bool:
		return var in self._conflicts

	def resolve(self, slot: LatticeValue) -> Concrete:
		"""Concrete value of a slot; raises ConflictedBindingError for conflicts."""
		if isinstance(slot, Concrete):
			return slot
		if slot.var in self._conflicts:
			raise ConflictedBindingError(slot.var, self._conflicts[slot.var])
		try:
			return self._values[slot.var]
		except KeyError:
			raise KeyError(f"unbound variable {slot.var}") from None

	def apply(self, term: TypeTerm) -> TypeTerm:
		"""Substitute every slot of `term` with its resolved value."""
		return with_slots(term, [self.resolve(slot) for slot in slots(term)])

	def conflicted_vars(self, term: TypeTerm) -> List[VarId]:
		out: List[VarId] = []
		for slot in slots(term):
			if isinstance(slot, Variable) and slot.var in self._conflicts and slot.var not in out:
				out.append(slot.var)
		return out

	def items(self) -> Iterator[tuple[VarId, object]]:
		"""All entries in VarId order; values are Concrete or ConflictRecord."""
		for var in sorted(set(self._values) | set(self._conflicts)):
			yield var, self._values.get(var) or self._conflicts[var]

	def to_json(self) -> dict:
		out: Dict[str, object] = {}
		for var, entry in self.items():
			if isinstance(entry, Concrete):
				out[str(var)] = str(entry)
			else:
				out[str(var)] = {"conflict": entry.kind.value}  # type: ignore[union-attr]
		return out

	def dumps(self) -> str:
		return json.dumps(self.to_json(), sort_keys=True, indent=2)


@dataclass
class ResolveResult:
	bindings: BindingTable
	conflicts: List[ConflictRecord]
	diagnostics: List[Diagnostic]


class _Classes:
	"""Union-find over VarIds with per-class concrete values and evidence."""

	def __init__(self) -> None:
		self._parent: Dict[VarId, VarId] = {}
		self.values: Dict[VarId, Dict[AxisValue, List[Constraint]]] = {}
		self.evidence: Dict[VarId, List[Constraint]] = {}

	def find(self, var: VarId) -> VarId:
		parent = self._parent.setdefault(var, var)
		if parent == var:
			return var
		root = self.find(parent)
		self._parent[var] = root
		return root

	def union(self, a: VarId, b: VarId, because: Constraint) -> None:
		ra, rb = self.find(a), self.find(b)
		if ra == rb:
			self.evidence.setdefault(ra, []).append(because)
			return
		# The smaller id is the canonical representative.
		root, child = (ra, rb) if ra < rb else (rb, ra)
		self._parent[child] = root
		values = self.values.setdefault(root, {})
		for value, why in self.values.pop(child, {}).items():
			values.setdefault(value, []).extend(why)
		ev = self.evidence.setdefault(root, [])
		ev.extend(self.evidence.pop(child, []))
		ev.append(because)

	def assert_value(self, var: VarId, value: AxisValue, because: Constraint) -> None:
		root = self.find(var)
		self.values.setdefault(root, {}).setdefault(value, []).append(because)
		self.evidence.setdefault(root, []).append(because)

	def hard_value(self, var: VarId) -> Optional[AxisValue]:
		values = self.values.get(self.find(var), {})
		if len(values) == 1:
			return next(iter(values))
		return None

	def conflicted(self, var: VarId) -> bool:
		return len(self.values.get(self.find(var), {})) > 1


def _evidence_labels(constraints: Iterable[Constraint]) -> tuple[str, ...]:
	return tuple(sorted({f"{c.kind.value}: {c.origin.label()}" for c in constraints}))


def _first_span(constraints: Iterable[Constraint]) -> Span:
	spans = sorted((c.origin.span for c in constraints), key=Span.sort_key)
	return spans[0] if spans else Span()


class Resolver:
	"""Solve one unit's constraints into a write-once BindingTable."""

	def __init__(self, constraints: ConstraintSet | Iterable[Constraint], supply: VarSupply) -> None:
		self.constraints: List[Constraint] = list(constraints)
		self.supply = supply
		self._classes = _Classes()
		# Values chosen by the soft steps, keyed by class root.
		self._soft: Dict[VarId, AxisValue] = {}
		self._conflicts: Dict[VarId, ConflictRecord] = {}
		self._direct: List[ConflictRecord] = []

	def resolve(self) -> ResolveResult:
		hard = [c for c in self.constraints if c.priority is Priority.HARD]
		for c in hard:
			self._apply_hard(c)
		for var in self.supply.all_vars():
			self._classes.find(var)
		self._collect_hard_conflicts()

		self._apply_defaults(ConstraintKind.LITERAL_DEFAULT)
		flows = [c for c in self.constraints if c.kind is ConstraintKind.STAGE_FLOW]
		self._propagate(flows)
		self._apply_defaults(ConstraintKind.RUNTIME_HINT)
		self._propagate(flows)
		self._post_checks(flows)

		table = self._build_table()
		conflicts = self._direct + [self._conflicts[root] for root in sorted(self._conflicts)]
		diagnostics = [self._diagnostic(rec) for rec in conflicts]
		logger.debug(
			"resolved %d vars: %d conflicts (%d hard constraints, %d flows)",
			len(table),
			len(conflicts),
			len(hard),
			len(flows),
		)
		return ResolveResult(bindings=table, conflicts=conflicts, diagnostics=diagnostics)

	# ---- step 1 ----

	def _apply_hard(self, c: Constraint) -> None:
		assert c.rhs is not None, f"hard constraint without a target: {c}"
		outcome = unify_values(c.lhs, c.rhs)
		if outcome.conflict is not None:
			self._direct.append(self._record(c.axis, set(outcome.conflict), [c], root=None))
		elif outcome.alias is not None:
			self._classes.union(outcome.alias[0], outcome.alias[1], c)
		elif outcome.binding is not None:
			var, value = outcome.binding
			self._classes.assert_value(var, value.value, c)

	def _collect_hard_conflicts(self) -> None:
		for root, values in sorted(self._classes.values.items()):
			if len(values) > 1:
				evidence = self._classes.evidence.get(root, [])
				self._conflicts[root] = self._record(root.axis, set(values), evidence, root=root)

	def _record(
		self,
		axis: Axis,
		values: Set[AxisValue],
		evidence: List[Constraint],
		*,
		root: Optional[VarId],
		kind: Optional[ErrorKind] = None,
	) -> ConflictRecord:
		if kind is None:
			if axis is Axis.MUTABILITY:
				kind = ErrorKind.MUTABILITY_CONFLICT
			elif any(c.kind is ConstraintKind.EXTERN_BOUNDARY for c in evidence):
				kind = ErrorKind.EXTERN_STAGING_VIOLATION
			else:
				kind = ErrorKind.STAGING_CONFLICT
		return ConflictRecord(
			kind=kind,
			axis=axis,
			values=tuple(sorted(v.value for v in values)),
			evidence=_evidence_labels(evidence),
			root=root,
			span=_first_span(evidence),
		)

	# ---- steps 2-5 ----

	def _current(self, slot: LatticeValue) -> Optional[AxisValue]:
		"""Value of a slot so far (None while open or conflicted)."""
		if isinstance(slot, Concrete):
			return slot.value
		root = self._classes.find(slot.var)
		if root in self._conflicts:
			return None
		value = self._classes.hard_value(root)
		if value is not None:
			return value
		return self._soft.get(root)

	def _open(self, var: VarId) -> bool:
		root = self._classes.find(var)
		return root not in self._conflicts and self._classes.hard_value(root) is None and root not in self._soft

	def _apply_defaults(self, kind: ConstraintKind) -> None:
		for c in self.constraints:
			if c.kind is not kind or not isinstance(c.lhs, Variable):
				continue
			if self._open(c.lhs.var):
				assert isinstance(c.rhs, Concrete)
				self._soft[self._classes.find(c.lhs.var)] = c.rhs.value

	def _propagate(self, flows: List[Constraint]) -> None:
		"""Least fixpoint of `dst >= src` over classes no hard value decides."""
		flow_roots: Set[VarId] = set()
		for c in flows:
			if isinstance(c.lhs, Variable):
				root = self._classes.find(c.lhs.var)
				if root not in self._conflicts and self._classes.hard_value(root) is None:
					flow_roots.add(root)
		changed = True
		while changed:
			changed = False
			for c in flows:
				if not isinstance(c.lhs, Variable):
					continue
				root = self._classes.find(c.lhs.var)
				if root not in flow_roots:
					continue
				assert c.rhs is not None
				src = self._current(c.rhs)
				if src is None:
					continue
				old = self._soft.get(root)
				new = src if old is None else join_staging(old, src)  # type: ignore[arg-type]
				if new != old:
					self._soft[root] = new
					changed = True

	def _fallback(self, var: VarId) -> Concrete:
		return CONST if var.axis is Axis.MUTABILITY else COMPILETIME

	# ---- step 6 ----

	def _post_checks(self, flows: List[Constraint]) -> None:
		def resolved(slot: LatticeValue) -> Optional[AxisValue]:
			if isinstance(slot, Variable) and self._classes.find(slot.var) in self._conflicts:
				return None
			value = self._current(slot)
			if value is None and isinstance(slot, Variable):
				return self._fallback(slot.var).value
			return value

		failures: Dict[VarId, Tuple[ErrorKind, List[Constraint]]] = {}
		direct: List[ConflictRecord] = []

		def fail(slot: LatticeValue, kind: ErrorKind, c: Constraint) -> None:
			if isinstance(slot, Concrete):
				direct.append(self._record(slot.axis, {slot.value}, [c], root=None, kind=kind))
				return
			root = self._classes.find(slot.var)
			entry = failures.setdefault(root, (kind, []))
			entry[1].append(c)

		for c in self.constraints:
			if c.kind is ConstraintKind.STATIC_STORAGE and resolved(c.lhs) is Staging.COMPILETIME:
				fail(c.lhs, ErrorKind.STATIC_STAGE_CONFLICT, c)
			elif c.kind is ConstraintKind.RUNTIME_ELIGIBILITY and resolved(c.lhs) is Staging.COMPILETIME:
				fail(c.lhs, ErrorKind.INVALID_RUNTIME_COERCION, c)
		for c in flows:
			assert c.rhs is not None
			dst, src = resolved(c.lhs), resolved(c.rhs)
			if dst is Staging.COMPILETIME and src is Staging.RUNTIME:
				fail(c.lhs, ErrorKind.STAGING_CONFLICT, c)

		for root, (kind, why) in sorted(failures.items(), key=lambda item: item[0]):
			assert root is not None
			evidence = list(self._classes.evidence.get(root, [])) + why
			values = {Staging.COMPILETIME, Staging.RUNTIME} if kind is ErrorKind.STAGING_CONFLICT else {Staging.COMPILETIME}
			self._conflicts[root] = self._record(root.axis, values, evidence, root=root, kind=kind)
		self._direct.extend(direct)

	# ---- output ----

	def _build_table(self) -> BindingTable:
		table = BindingTable()
		for var in self.supply.all_vars():
			root = self._classes.find(var)
			if root in self._conflicts:
				table.mark_conflicted(var, self._conflicts[root])
				continue
			value = self._current(Variable(var))
			table.bind(var, Concrete(value) if value is not None else self._fallback(var))
		return table

	def _diagnostic(self, record: ConflictRecord) -> Diagnostic:
		return error(
			record.kind,
			record.describe(),
			phase="resolve",
			span=record.span,
			notes=record.evidence,
		)


def resolve_constraints(constraints: ConstraintSet | Iterable[Constraint], supply: VarSupply) -> ResolveResult:
	"""Resolve a unit's constraints over every variable `supply` has minted."""
	return Resolver(constraints, supply).resolve()


__all__ = [
	"ConflictRecord",
	"ConflictedBindingError",
	"BindingTable",
	"ResolveResult",
	"Resolver",
	"resolve_constraints",
]
