# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

from typing import List

import pytest

from axisc.core.lattice import COMPILETIME, CONST, MUT, Variable, VarSupply
from axisc.core.type_resolve_common import UnknownTypeError, lower_type_expr
from axisc.core.types_core import (
	Adt,
	Array,
	HeterogeneousArrayMutabilityError,
	LiteralType,
	Pointer,
	Primitive,
	Tuple,
	TypeValue,
	Unit,
)
from axisc.parser import parse_type_expr


def _lower(src: str, supply: VarSupply | None = None, **kwargs: object):
	return lower_type_expr(parse_type_expr(src), supply or VarSupply(), **kwargs)  # type: ignore[arg-type]


def test_omitted_prefix_is_a_fresh_variable() -> None:
	term = _lower("u8")
	assert isinstance(term, Primitive)
	assert isinstance(term.mut, Variable)
	assert isinstance(term.stage, Variable)


def test_anymut_behaves_like_omitted_prefix() -> None:
	supply = VarSupply()
	a = _lower("anymut u8", supply)
	b = _lower("u8", supply)
	assert isinstance(a.mut, Variable) and isinstance(b.mut, Variable)  # type: ignore[attr-defined]
	assert a.mut != b.mut  # type: ignore[attr-defined]


def test_explicit_prefixes_are_concrete() -> None:
	assert _lower("const u8").mut == CONST  # type: ignore[attr-defined]
	assert _lower("mut i64").mut == MUT  # type: ignore[attr-defined]


def test_type_and_literal_are_compiletime_only() -> None:
	assert isinstance(_lower("type"), TypeValue)
	lit = _lower("literal")
	assert isinstance(lit, LiteralType)
	assert lit.stage == COMPILETIME


def test_pointer_prefix_applies_to_the_pointer_only() -> None:
	term = _lower("mut *u8")
	assert isinstance(term, Pointer)
	assert term.ptr_mut == MUT
	assert isinstance(term.pointee.mut, Variable)  # type: ignore[attr-defined]


def test_array_prefix_distributes_to_elements() -> None:
	term = _lower("mut [3 u8]")
	assert isinstance(term, Array)
	assert term.length == 3
	assert term.elem_mut == MUT
	assert term.elem.mut == MUT  # type: ignore[attr-defined]


def test_array_with_conflicting_element_prefix_is_rejected() -> None:
	with pytest.raises(HeterogeneousArrayMutabilityError):
		_lower("const [3 mut u8]")


def test_inferred_length_is_none() -> None:
	term = _lower("[_ u8]")
	assert isinstance(term, Array)
	assert term.length is None


def test_tuple_elements_keep_their_own_prefix() -> None:
	term = _lower("const (u8, mut u8)")
	assert isinstance(term, Tuple)
	assert [e.mut for e in term.elements] == [CONST, MUT]  # type: ignore[attr-defined]


def test_empty_tuple_is_unit() -> None:
	assert _lower("()") == Unit()


def test_unknown_type_name() -> None:
	with pytest.raises(UnknownTypeError) as info:
		_lower("Nope")
	assert "Nope" in str(info.value)


def test_adt_use_instantiates_fresh_fields_and_reports_use() -> None:
	supply = VarSupply()
	adt = Adt("struct", "P", (("x", Primitive("u8", supply.fresh_mut(), supply.fresh_stage())),))
	seen: List[str] = []

	def hook(name: str, mapping: object, inst: Adt, loc: object) -> None:
		seen.append(name)

	inst = _lower("const P", supply, adts={"P": adt}, on_adt_use=hook)
	assert isinstance(inst, Adt)
	assert seen == ["P"]
	field = inst.field("x")
	assert isinstance(field, Primitive)
	assert field.mut == CONST
	assert field.stage != adt.fields[0][1].stage  # type: ignore[attr-defined]
