# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

from typing import List

import pytest

from axisc.constraints import ConstraintKind, ConstraintOrigin, ConstraintSet
from axisc.core.diagnostics import Diagnostic, ErrorKind
from axisc.core.lattice import CONST, RUNTIME, VarSupply
from axisc.core.target import TargetProfile
from axisc.core.types_core import Array, Pointer, Primitive, Tuple
from axisc.resolver import resolve_constraints
from axisc.wide_ptr import (
	annotation_fits,
	BoundsWindow,
	SliceShapeError,
	SliceSite,
	finalize_slice,
	is_wide_pointer,
	slice_element,
	synthesize_slice,
)

O = ConstraintOrigin("slice")


def _array(supply: VarSupply, length: int) -> Array:
	return Array.of(length, Primitive("u8", supply.fresh_mut(), supply.fresh_stage()))


def test_window_arithmetic() -> None:
	window = BoundsWindow(0, 4)
	moved = window.shifted(1)
	assert moved == BoundsWindow(-1, 3)
	assert moved.contains(-1)
	assert not moved.contains(3)
	assert moved.length == 4
	assert BoundsWindow().contains(10_000)
	assert BoundsWindow().length is None


def test_slice_element_sources() -> None:
	supply = VarSupply()
	arr = _array(supply, 4)
	assert slice_element(arr) == (arr.elem, 4)
	assert slice_element(Pointer(CONST, RUNTIME, arr)) == (arr.elem, 4)
	wide = Tuple((Pointer(CONST, RUNTIME, arr.elem), Primitive("usize", CONST, RUNTIME)))
	assert is_wide_pointer(wide)
	assert slice_element(wide) == (arr.elem, None)
	with pytest.raises(SliceShapeError):
		slice_element(arr.elem)


def test_synthesized_pointer_shares_element_and_links_stages() -> None:
	supply = VarSupply()
	arr = _array(supply, 4)
	cs = ConstraintSet()
	term, length, annotation = synthesize_slice(arr, supply, cs, O)
	ptr, meta = term.elements
	assert isinstance(ptr, Pointer) and ptr.pointee is arr.elem
	assert isinstance(meta, Primitive) and meta.name == "usize"
	assert (length, annotation) == (4, None)
	assert len(cs.of_kind(ConstraintKind.UNIFY)) == 1
	assert len(cs.of_kind(ConstraintKind.POINTER_METADATA)) == 1


def test_expected_metadata_annotation_is_kept() -> None:
	supply = VarSupply()
	arr = _array(supply, 4)
	expected = Tuple((Pointer(CONST, RUNTIME, arr.elem), Primitive("u16", CONST, RUNTIME)))
	term, _, annotation = synthesize_slice(arr, supply, ConstraintSet(), O, expected=expected)
	assert annotation == "u16"
	assert term.elements[1].name == "u16"  # type: ignore[attr-defined]


def _finalize(length: int, word_bits: int, expected_meta: str | None = None) -> tuple:
	supply = VarSupply()
	arr = _array(supply, length)
	cs = ConstraintSet()
	expected = None
	if expected_meta is not None:
		expected = Tuple((Pointer(CONST, RUNTIME, arr.elem), Primitive(expected_meta, CONST, RUNTIME)))
	term, backing, annotation = synthesize_slice(arr, supply, cs, O, expected=expected)
	bindings = resolve_constraints(cs, supply).bindings
	diags: List[Diagnostic] = []
	info = finalize_slice(SliceSite("s", term, backing, annotation), bindings.apply, TargetProfile(word_bits), diags)
	return info, diags


def test_metadata_width_follows_target() -> None:
	info, diags = _finalize(4, 32)
	assert diags == []
	assert (info.metadata, info.metadata_bits) == ("usize", 32)
	assert info.window == BoundsWindow(0, 4)
	assert str(info.term.elements[1]) == "const compiletime usize:32"


def test_backing_length_too_large_for_target() -> None:
	info, diags = _finalize(70000, 16)
	assert [d.code for d in diags] == [ErrorKind.SLICE_METADATA_TOO_NARROW.value]
	assert info.metadata_bits == 16


def test_narrow_annotation_falls_back_to_usize() -> None:
	info, diags = _finalize(300, 64, expected_meta="u8")
	assert [d.code for d in diags] == [ErrorKind.SLICE_METADATA_TOO_NARROW.value]
	assert info.metadata == "usize"
	assert info.term.elements[1].name == "usize"


def test_wide_enough_annotation_is_kept() -> None:
	info, diags = _finalize(300, 64, expected_meta="u16")
	assert diags == []
	assert (info.metadata, info.metadata_bits) == ("u16", 16)


def test_fixed_width_annotation_too_narrow_is_widened_at_synthesis() -> None:
	supply = VarSupply()
	arr = _array(supply, 300)
	expected = Tuple((Pointer(CONST, RUNTIME, arr.elem), Primitive("u8", CONST, RUNTIME)))
	term, length, annotation = synthesize_slice(arr, supply, ConstraintSet(), O, expected=expected)
	assert (length, annotation) == (300, "u8")
	assert term.elements[1].name == "usize"  # type: ignore[attr-defined]
	assert annotation_fits("u16", 300)
	assert annotation_fits("usize", 1 << 40)
	assert annotation_fits("u8", None)
