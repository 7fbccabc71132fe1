# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Monomorphization: one concrete term per (generic, resolved binding tuple).

This pass only materializes. It reads the resolver's binding table, builds an
`InstantiationKey` for every recorded instance and memoizes the concrete term
per key, so asking twice for the same key returns the very same object.
`isize`/`usize` receive the target's pointer width here.

An instance whose slots include a conflicted variable is refused with a
diagnostic that points back at the originating conflict.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional

from axisc.collector import GenericDef, Instance
from axisc.core.diagnostics import Diagnostic, ErrorKind, error
from axisc.core.generic_id import GenericId, generic_symbol
from axisc.core.target import TargetProfile, bind_widths
from axisc.core.type_subst import slots
from axisc.core.types_core import TypeTerm, uses_sized_int
from axisc.instantiation import InstantiationKey, build_instantiation_key, instantiation_key_hash, instantiation_key_str
from axisc.resolver import BindingTable

logger = logging.getLogger(__name__)


def materialize(term: TypeTerm, bindings: BindingTable, target: TargetProfile) -> TypeTerm:
	"""Fully concrete copy of `term`; raises ConflictedBindingError on conflicts."""
	return bind_widths(bindings.apply(term), target)


def conflict_notes(bindings: BindingTable, term: TypeTerm) -> List[str]:
	notes: List[str] = []
	for var in bindings.conflicted_vars(term):
		record = bindings.conflict(var)
		assert record is not None
		notes.append(f"{var} comes from: {record.describe()} at {record.span}")
	return notes


@dataclass
class MonoTable:
	"""Concrete terms keyed by instantiation key, plus which site used which key."""

	entries: Dict[InstantiationKey, TypeTerm] = field(default_factory=dict)
	sites: List[tuple[str, InstantiationKey]] = field(default_factory=list)

	def lookup(self, key: InstantiationKey) -> Optional[TypeTerm]:
		return self.entries.get(key)

	def for_site(self, site: str, gid: Optional[GenericId] = None) -> Optional[TypeTerm]:
		for label, key in self.sites:
			if label == site and (gid is None or key.generic_id == gid):
				return self.entries[key]
		return None

	def keys_for(self, gid: GenericId) -> List[InstantiationKey]:
		return sorted((k for k in self.entries if k.generic_id == gid), key=instantiation_key_str)

	def __len__(self) -> int:
		return len(self.entries)

	def to_json(self) -> dict:
		entries = {}
		for key, term in self.entries.items():
			entries[instantiation_key_str(key)] = {
				"hash": instantiation_key_hash(key),
				"type": str(term),
			}
		sites = sorted([label, instantiation_key_str(key)] for label, key in self.sites)
		return {"entries": dict(sorted(entries.items())), "sites": sites}


class Monomorphizer:
	def __init__(
		self,
		generics: Mapping[GenericId, GenericDef],
		bindings: BindingTable,
		target: TargetProfile,
	) -> None:
		self.generics = generics
		self.bindings = bindings
		self.target = target
		self.table = MonoTable()
		self.diagnostics: List[Diagnostic] = []
		self._memo: Dict[InstantiationKey, TypeTerm] = self.table.entries

	def key_for(self, instance: Instance) -> InstantiationKey:
		gdef = self.generics[instance.gid]
		inst_slots = slots(instance.term)
		values = tuple(self.bindings.resolve(inst_slots[i]).value for i in gdef.param_positions)
		return build_instantiation_key(
			instance.gid,
			values,
			target=self.target,
			uses_sized_int=uses_sized_int(gdef.template),
		)

	def instantiate(self, instance: Instance) -> Optional[TypeTerm]:
		"""Concrete term for one instance, or None when it depends on a conflict."""
		notes = conflict_notes(self.bindings, instance.term)
		if notes:
			self.diagnostics.append(
				error(
					ErrorKind.UNRESOLVABLE_CONFLICT_PROPAGATION,
					f"cannot instantiate {generic_symbol(instance.gid)} at {instance.site}: it depends on a conflicted slot",
					phase="monomorphize",
					span=instance.span,
					notes=notes,
				)
			)
			return None
		key = self.key_for(instance)
		self.table.sites.append((instance.site, key))
		hit = self._memo.get(key)
		if hit is not None:
			logger.debug("memo hit %s (%s)", instantiation_key_str(key), instance.site)
			return hit
		concrete = materialize(instance.term, self.bindings, self.target)
		self._memo[key] = concrete
		return concrete

	def request(self, key: InstantiationKey) -> TypeTerm:
		"""Return the memoized term for a key that was already instantiated."""
		try:
			return self._memo[key]
		except KeyError:
			raise KeyError(f"no instantiation for {instantiation_key_str(key)}") from None

	def run(self, instances: Iterable[Instance]) -> MonoTable:
		for instance in instances:
			self.instantiate(instance)
		logger.debug("monomorphized %d entries from %d sites", len(self.table.entries), len(self.table.sites))
		return self.table


def monomorphize(
	generics: Mapping[GenericId, GenericDef],
	instances: Iterable[Instance],
	bindings: BindingTable,
	target: TargetProfile,
) -> tuple[MonoTable, List[Diagnostic]]:
	mono = Monomorphizer(generics, bindings, target)
	table = mono.run(instances)
	return table, mono.diagnostics


__all__ = [
	"materialize",
	"conflict_notes",
	"MonoTable",
	"Monomorphizer",
	"monomorphize",
]
