# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

import pytest

from axisc.core.lattice import (
	COMPILETIME,
	CONST,
	MUT,
	RUNTIME,
	Axis,
	Mutability,
	Staging,
	VarId,
	VarSupply,
	join_staging,
	parse_axis_value,
	unify_values,
)


def test_supply_is_dense_per_axis() -> None:
	supply = VarSupply()
	a = supply.fresh_mut()
	b = supply.fresh_stage()
	c = supply.fresh_mut()
	assert a.var == VarId(Axis.MUTABILITY, 0)
	assert b.var == VarId(Axis.STAGING, 0)
	assert c.var == VarId(Axis.MUTABILITY, 1)
	assert supply.count(Axis.MUTABILITY) == 2
	assert list(supply.all_vars()) == [a.var, c.var, b.var]


def test_var_ids_render_with_axis_prefix() -> None:
	assert str(VarId(Axis.MUTABILITY, 3)) == "?m3"
	assert str(VarId(Axis.STAGING, 0)) == "?s0"


@pytest.mark.parametrize(
	"a,b,expected",
	[
		(Staging.COMPILETIME, Staging.COMPILETIME, Staging.COMPILETIME),
		(Staging.COMPILETIME, Staging.RUNTIME, Staging.RUNTIME),
		(Staging.RUNTIME, Staging.COMPILETIME, Staging.RUNTIME),
		(Staging.RUNTIME, Staging.RUNTIME, Staging.RUNTIME),
	],
)
def test_join_runtime_dominates(a: Staging, b: Staging, expected: Staging) -> None:
	assert join_staging(a, b) is expected


def test_unify_concrete_values() -> None:
	assert unify_values(CONST, CONST).ok
	outcome = unify_values(CONST, MUT)
	assert not outcome.ok
	assert set(outcome.conflict or ()) == {Mutability.CONST, Mutability.MUT}


def test_unify_variable_binds_or_aliases() -> None:
	supply = VarSupply()
	a = supply.fresh_stage()
	b = supply.fresh_stage()
	assert unify_values(a, RUNTIME).binding == (a.var, RUNTIME)
	assert unify_values(COMPILETIME, a).binding == (a.var, COMPILETIME)
	assert unify_values(a, b).alias == (a.var, b.var)
	assert unify_values(a, a) == unify_values(CONST, CONST)


def test_unify_rejects_mixed_axes() -> None:
	supply = VarSupply()
	with pytest.raises(ValueError):
		unify_values(supply.fresh_mut(), RUNTIME)


def test_parse_axis_keywords() -> None:
	assert parse_axis_value("mut") is Mutability.MUT
	assert parse_axis_value("runtime") is Staging.RUNTIME
	with pytest.raises(ValueError):
		parse_axis_value("anymut")
