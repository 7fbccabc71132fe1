# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

import pytest

from axisc.constraints import Constraint, ConstraintKind, ConstraintOrigin, ConstraintSet, Priority
from axisc.core.lattice import COMPILETIME, MUT, RUNTIME, VarSupply
from axisc.core.span import Span


def _origin(kind: str = "test") -> ConstraintOrigin:
	return ConstraintOrigin(kind, Span("t.ax", 3, 7))


def test_helpers_record_kinds_and_priorities() -> None:
	supply = VarSupply()
	m, s, t = supply.fresh_mut(), supply.fresh_stage(), supply.fresh_stage()
	cs = ConstraintSet()
	cs.write(m, _origin())
	cs.literal_default(s, _origin())
	cs.flow(t, s, _origin())
	cs.extern_boundary(t, _origin())
	cs.check(ConstraintKind.STATIC_STORAGE, t, _origin())
	assert [c.kind for c in cs] == [
		ConstraintKind.WRITE_THROUGH,
		ConstraintKind.LITERAL_DEFAULT,
		ConstraintKind.STAGE_FLOW,
		ConstraintKind.EXTERN_BOUNDARY,
		ConstraintKind.STATIC_STORAGE,
	]
	assert len(cs.of_priority(Priority.HARD)) == 2
	assert cs.of_kind(ConstraintKind.WRITE_THROUGH)[0].rhs == MUT
	assert cs.counts()["stage_flow"] == 1


def test_trivial_unify_and_flow_are_dropped() -> None:
	supply = VarSupply()
	s = supply.fresh_stage()
	cs = ConstraintSet()
	cs.unify(s, s, _origin())
	cs.flow(s, s, _origin())
	assert len(cs) == 0


def test_mixed_axes_are_rejected() -> None:
	supply = VarSupply()
	with pytest.raises(ValueError):
		Constraint(ConstraintKind.UNIFY, supply.fresh_mut(), supply.fresh_stage(), _origin())


def test_check_only_accepts_check_kinds() -> None:
	supply = VarSupply()
	with pytest.raises(ValueError):
		ConstraintSet().check(ConstraintKind.UNIFY, supply.fresh_stage(), _origin())


def test_substituted_renames_both_sides() -> None:
	supply = VarSupply()
	a, b = supply.fresh_stage(), supply.fresh_stage()
	c = Constraint(ConstraintKind.STAGE_FLOW, a, b, _origin())
	renamed = c.substituted({a.var: RUNTIME})
	assert renamed.lhs == RUNTIME
	assert renamed.rhs == b
	assert str(c) == f"stage_flow({a}, {b})"
	assert c.vars() == [a.var, b.var]


def test_origin_label() -> None:
	assert ConstraintOrigin("let", Span("t.ax", 3, 7), "x").label() == "let at t.ax:3:7 (x)"
	assert ConstraintOrigin("literal").label() == "literal at <unknown>"
	assert COMPILETIME != RUNTIME
