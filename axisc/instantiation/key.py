# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

import hashlib
from dataclasses import dataclass
from typing import Optional

from axisc.core.generic_id import GenericId, generic_symbol
from axisc.core.lattice import AxisValue
from axisc.core.target import TargetProfile


@dataclass(frozen=True)
class TargetFlags:
	word_bits: int


@dataclass(frozen=True)
class InstantiationKey:
	generic_id: GenericId
	bindings: tuple[AxisValue, ...]
	# Only set for generics that mention isize/usize.
	target: Optional[TargetFlags]


def build_instantiation_key(
	gid: GenericId,
	bindings: tuple[AxisValue, ...],
	*,
	target: TargetProfile,
	uses_sized_int: bool,
) -> InstantiationKey:
	flags = TargetFlags(word_bits=target.word_bits) if uses_sized_int else None
	return InstantiationKey(generic_id=gid, bindings=tuple(bindings), target=flags)


def instantiation_key_str(key: InstantiationKey) -> str:
	base = generic_symbol(key.generic_id)
	args = ",".join(v.value for v in key.bindings)
	target = f"word_bits={key.target.word_bits}" if key.target is not None else "-"
	return f"{base}|{args}|{target}"


def instantiation_key_hash(key: InstantiationKey) -> str:
	digest = hashlib.blake2b(instantiation_key_str(key).encode("utf-8"), digest_size=8).digest()
	return digest.hex()
