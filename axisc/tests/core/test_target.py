# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

import pytest

from axisc.core.lattice import CONST, RUNTIME
from axisc.core.target import SUPPORTED_WORD_BITS, TargetProfile, bind_widths, host_word_bits
from axisc.core.types_core import Pointer, Primitive, Tuple


@pytest.mark.parametrize("bits", SUPPORTED_WORD_BITS)
def test_sized_ints_follow_word_bits(bits: int) -> None:
	target = TargetProfile(bits)
	assert target.width_of("usize") == bits
	assert target.width_of("isize") == bits
	assert target.width_of("u8") == 8
	assert target.unsigned_max("usize") == (1 << bits) - 1


def test_unsupported_word_bits() -> None:
	with pytest.raises(ValueError):
		TargetProfile(24)


def test_host_profile() -> None:
	assert TargetProfile.host().word_bits == host_word_bits()


def test_non_numeric_has_no_width() -> None:
	with pytest.raises(KeyError):
		TargetProfile().width_of("bool")


def test_bind_widths_reaches_nested_sized_ints() -> None:
	term = Tuple((Pointer(CONST, RUNTIME, Primitive("isize", CONST, RUNTIME)), Primitive("usize", CONST, RUNTIME)))
	bound = bind_widths(term, TargetProfile(16))
	ptr, meta = bound.elements
	assert ptr.pointee.bits == 16
	assert meta.bits == 16
	assert bind_widths(Primitive("u8", CONST, RUNTIME), TargetProfile(16)).bits is None
