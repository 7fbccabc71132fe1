# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

import pytest

from axisc.constraints import ConstraintKind, ConstraintOrigin, ConstraintSet
from axisc.core.diagnostics import ErrorKind
from axisc.core.lattice import COMPILETIME, CONST, MUT, RUNTIME, Concrete, VarSupply
from axisc.core.types_core import Pointer, Primitive
from axisc.resolver import BindingTable, ConflictedBindingError, resolve_constraints

O = ConstraintOrigin("test")


def test_unconstrained_slots_fall_back() -> None:
	supply = VarSupply()
	m, s = supply.fresh_mut(), supply.fresh_stage()
	result = resolve_constraints(ConstraintSet(), supply)
	assert result.bindings.resolve(m) == CONST
	assert result.bindings.resolve(s) == COMPILETIME
	assert result.diagnostics == []


def test_write_marks_whole_class_mut() -> None:
	supply = VarSupply()
	a, b, c = supply.fresh_mut(), supply.fresh_mut(), supply.fresh_mut()
	cs = ConstraintSet()
	cs.unify(a, b, O)
	cs.unify(b, c, O)
	cs.write(c, O)
	bindings = resolve_constraints(cs, supply).bindings
	assert [bindings.resolve(v) for v in (a, b, c)] == [MUT, MUT, MUT]


def test_flows_join_toward_runtime() -> None:
	supply = VarSupply()
	lit, rt, dst = supply.fresh_stage(), supply.fresh_stage(), supply.fresh_stage()
	cs = ConstraintSet()
	cs.literal_default(lit, O)
	cs.fix(ConstraintKind.EXPLICIT_COERCION, rt, RUNTIME, O)
	cs.flow(dst, lit, O)
	cs.flow(dst, rt, O)
	bindings = resolve_constraints(cs, supply).bindings
	assert bindings.resolve(lit) == COMPILETIME
	assert bindings.resolve(dst) == RUNTIME


def test_flow_chains_reach_fixpoint() -> None:
	supply = VarSupply()
	chain = [supply.fresh_stage() for _ in range(5)]
	cs = ConstraintSet()
	# Listed back to front so a single pass would not be enough.
	for dst, src in reversed(list(zip(chain[1:], chain))):
		cs.flow(dst, src, O)
	cs.fix(ConstraintKind.EXPLICIT_COERCION, chain[0], RUNTIME, O)
	bindings = resolve_constraints(cs, supply).bindings
	assert all(bindings.resolve(v) == RUNTIME for v in chain)


def test_hard_value_beats_literal_default() -> None:
	supply = VarSupply()
	s = supply.fresh_stage()
	cs = ConstraintSet()
	cs.literal_default(s, O)
	cs.fix(ConstraintKind.EXPLICIT_COERCION, s, RUNTIME, O)
	assert resolve_constraints(cs, supply).bindings.resolve(s) == RUNTIME


def test_runtime_hint_only_fills_open_classes() -> None:
	supply = VarSupply()
	open_slot, lit = supply.fresh_stage(), supply.fresh_stage()
	cs = ConstraintSet()
	cs.runtime_hint(open_slot, O)
	cs.literal_default(lit, O)
	cs.runtime_hint(lit, O)
	bindings = resolve_constraints(cs, supply).bindings
	assert bindings.resolve(open_slot) == RUNTIME
	assert bindings.resolve(lit) == COMPILETIME


def test_mutability_conflict_marks_every_member() -> None:
	supply = VarSupply()
	a, b = supply.fresh_mut(), supply.fresh_mut()
	cs = ConstraintSet()
	cs.unify(a, b, O)
	cs.fix(ConstraintKind.EXPLICIT_COERCION, a, CONST, O)
	cs.write(b, O)
	result = resolve_constraints(cs, supply)
	assert [d.code for d in result.diagnostics] == [ErrorKind.MUTABILITY_CONFLICT.value]
	assert result.bindings.is_conflicted(a.var) and result.bindings.is_conflicted(b.var)
	with pytest.raises(ConflictedBindingError):
		result.bindings.resolve(b)
	assert result.conflicts[0].values == ("const", "mut")


def test_conflicts_do_not_depend_on_constraint_order() -> None:
	def run(reverse: bool) -> list:
		supply = VarSupply()
		a, b = supply.fresh_stage(), supply.fresh_stage()
		cs = ConstraintSet()
		cs.fix(ConstraintKind.EXPLICIT_COERCION, a, RUNTIME, O)
		cs.unify(a, b, O)
		cs.fix(ConstraintKind.EXPLICIT_COERCION, b, COMPILETIME, O)
		items = list(cs)
		if reverse:
			items.reverse()
		return [d.to_json() for d in resolve_constraints(items, supply).diagnostics]

	assert run(False) == run(True)


def test_extern_evidence_changes_conflict_kind() -> None:
	supply = VarSupply()
	s = supply.fresh_stage()
	cs = ConstraintSet()
	cs.fix(ConstraintKind.EXPLICIT_COERCION, s, COMPILETIME, O)
	cs.extern_boundary(s, ConstraintOrigin("extern"))
	result = resolve_constraints(cs, supply)
	assert [d.code for d in result.diagnostics] == [ErrorKind.EXTERN_STAGING_VIOLATION.value]


def test_static_storage_must_be_runtime() -> None:
	supply = VarSupply()
	ok, bad = supply.fresh_stage(), supply.fresh_stage()
	cs = ConstraintSet()
	cs.fix(ConstraintKind.EXPLICIT_COERCION, ok, RUNTIME, O)
	cs.check(ConstraintKind.STATIC_STORAGE, ok, O)
	cs.check(ConstraintKind.STATIC_STORAGE, bad, O)
	result = resolve_constraints(cs, supply)
	assert [d.code for d in result.diagnostics] == [ErrorKind.STATIC_STAGE_CONFLICT.value]
	assert result.bindings.is_conflicted(bad.var)
	assert result.bindings.resolve(ok) == RUNTIME


def test_runtime_into_compiletime_flow_is_a_conflict() -> None:
	supply = VarSupply()
	dst, src = supply.fresh_stage(), supply.fresh_stage()
	cs = ConstraintSet()
	cs.fix(ConstraintKind.EXPLICIT_COERCION, dst, COMPILETIME, O)
	cs.fix(ConstraintKind.EXPLICIT_COERCION, src, RUNTIME, O)
	cs.flow(dst, src, O)
	result = resolve_constraints(cs, supply)
	assert [d.code for d in result.diagnostics] == [ErrorKind.STAGING_CONFLICT.value]


def test_binding_table_is_write_once() -> None:
	supply = VarSupply()
	m = supply.fresh_mut()
	table = BindingTable()
	table.bind(m.var, CONST)
	with pytest.raises(ValueError):
		table.bind(m.var, MUT)
	with pytest.raises(ValueError):
		table.bind(supply.fresh_mut().var, Concrete(RUNTIME.value))


def test_apply_substitutes_whole_terms() -> None:
	supply = VarSupply()
	term = Pointer(supply.fresh_mut(), supply.fresh_stage(), Primitive("u8", supply.fresh_mut(), supply.fresh_stage()))
	cs = ConstraintSet()
	cs.write(term.pointee.mut, O)  # type: ignore[attr-defined]
	bindings = resolve_constraints(cs, supply).bindings
	assert str(bindings.apply(term)) == "const compiletime *mut compiletime u8"
	assert bindings.dumps() == bindings.dumps()
