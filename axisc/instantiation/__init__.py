# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""Generic instantiation helpers."""

from .key import InstantiationKey, TargetFlags, build_instantiation_key, instantiation_key_hash, instantiation_key_str

__all__ = [
	"InstantiationKey",
	"TargetFlags",
	"build_instantiation_key",
	"instantiation_key_hash",
	"instantiation_key_str",
]
