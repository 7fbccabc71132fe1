# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

from axisc.core.generic_id import GenericId, GenericKind, generic_symbol
from axisc.core.lattice import Mutability, Staging
from axisc.core.target import TargetProfile
from axisc.instantiation import (
	TargetFlags,
	build_instantiation_key,
	instantiation_key_hash,
	instantiation_key_str,
)

GID = GenericId(GenericKind.FUNCTION, "main", "f")


def test_target_flags_only_for_sized_ints() -> None:
	values = (Mutability.CONST, Staging.RUNTIME)
	plain = build_instantiation_key(GID, values, target=TargetProfile(32), uses_sized_int=False)
	sized = build_instantiation_key(GID, values, target=TargetProfile(32), uses_sized_int=True)
	assert plain.target is None
	assert sized.target == TargetFlags(32)
	assert plain != sized
	assert instantiation_key_str(sized) == "fn f|const,runtime|word_bits=32"


def test_hash_is_stable_and_short() -> None:
	key = build_instantiation_key(GID, (Mutability.MUT,), target=TargetProfile(64), uses_sized_int=False)
	again = build_instantiation_key(GID, (Mutability.MUT,), target=TargetProfile(64), uses_sized_int=False)
	assert instantiation_key_hash(key) == instantiation_key_hash(again)
	assert len(instantiation_key_hash(key)) == 16


def test_generic_symbols() -> None:
	assert generic_symbol(GenericId(GenericKind.ADT, "geo", "P")) == "adt geo::P"
	assert generic_symbol(GenericId(GenericKind.TERM, "main", "_ _ u8")) == "term<_ _ u8>"
