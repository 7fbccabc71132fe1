# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Slot traversal and substitution helpers for type terms.

All helpers agree on one canonical slot order (pre-order, mutability before
staging), so a term can be taken apart with `slots()` and rebuilt with
`with_slots()`. An array whose element is qualified shares its pair with the
element and therefore contributes it only once.
"""
from __future__ import annotations

from typing import Dict, Iterator, List, Mapping, Optional, Sequence

from .lattice import Axis, Concrete, LatticeValue, Variable, VarId, VarSupply
from .types_core import (
	Adt,
	Array,
	Function,
	LiteralType,
	Pointer,
	Primitive,
	Tuple,
	TypeTerm,
	TypeValue,
	Unit,
)


def slots(term: TypeTerm) -> List[LatticeValue]:
	"""Return every lattice slot of `term` in canonical order."""
	out: List[LatticeValue] = []
	_collect_slots(term, out)
	return out


def _collect_slots(term: TypeTerm, out: List[LatticeValue]) -> None:
	if isinstance(term, (Primitive, TypeValue, LiteralType)):
		out.append(term.mut)
		out.append(term.stage)
	elif isinstance(term, Pointer):
		out.append(term.ptr_mut)
		out.append(term.ptr_stage)
		_collect_slots(term.pointee, out)
	elif isinstance(term, Array):
		if term.elem.top() is None:
			out.append(term.elem_mut)
			out.append(term.elem_stage)
		_collect_slots(term.elem, out)
	elif isinstance(term, Tuple):
		for elem in term.elements:
			_collect_slots(elem, out)
	elif isinstance(term, Function):
		for param in term.params:
			_collect_slots(param, out)
		_collect_slots(term.ret, out)
	elif isinstance(term, Adt):
		for _, fterm in term.fields:
			_collect_slots(fterm, out)
	elif isinstance(term, Unit):
		return
	else:
		raise TypeError(f"unknown type term {term!r}")


def with_slots(term: TypeTerm, values: Sequence[LatticeValue]) -> TypeTerm:
	"""Rebuild `term` with its slots replaced, position by position."""
	it = iter(values)
	rebuilt = _rebuild(term, it)
	if next(it, None) is not None:
		raise ValueError("too many slot values for term")
	return rebuilt


def _take(it: Iterator[LatticeValue]) -> LatticeValue:
	try:
		return next(it)
	except StopIteration:
		raise ValueError("too few slot values for term") from None


def _rebuild(term: TypeTerm, it: Iterator[LatticeValue]) -> TypeTerm:
	if isinstance(term, Primitive):
		return Primitive(term.name, _take(it), _take(it), term.bits)
	if isinstance(term, TypeValue):
		return TypeValue(_take(it), _take(it))
	if isinstance(term, LiteralType):
		return LiteralType(_take(it), _take(it), term.literal_kind)
	if isinstance(term, Pointer):
		ptr_mut = _take(it)
		ptr_stage = _take(it)
		return Pointer(ptr_mut, ptr_stage, _rebuild(term.pointee, it))
	if isinstance(term, Array):
		if term.elem.top() is None:
			elem_mut = _take(it)
			elem_stage = _take(it)
			return Array(term.length, elem_mut, elem_stage, _rebuild(term.elem, it))
		return Array.of(term.length, _rebuild(term.elem, it))
	if isinstance(term, Tuple):
		return Tuple(tuple(_rebuild(e, it) for e in term.elements))
	if isinstance(term, Function):
		params = tuple(_rebuild(p, it) for p in term.params)
		return Function(params, _rebuild(term.ret, it))
	if isinstance(term, Adt):
		return Adt(term.adt_kind, term.name, tuple((n, _rebuild(t, it)) for n, t in term.fields))
	if isinstance(term, Unit):
		return term
	raise TypeError(f"unknown type term {term!r}")


def free_vars(term: TypeTerm, axis: Optional[Axis] = None) -> List[VarId]:
	"""Ordered, de-duplicated free variables of `term` (optionally one axis only)."""
	seen: Dict[VarId, None] = {}
	for slot in slots(term):
		if isinstance(slot, Variable) and (axis is None or slot.axis is axis):
			seen.setdefault(slot.var, None)
	return list(seen)


def is_concrete(term: TypeTerm) -> bool:
	return all(isinstance(slot, Concrete) for slot in slots(term))


def substitute(term: TypeTerm, mapping: Mapping[VarId, LatticeValue]) -> TypeTerm:
	"""Replace variables found in `mapping`; other slots are kept."""
	if not mapping:
		return term
	values = [
		mapping.get(slot.var, slot) if isinstance(slot, Variable) else slot
		for slot in slots(term)
	]
	return with_slots(term, values)


def rename_fresh(term: TypeTerm, supply: VarSupply, mapping: Dict[VarId, LatticeValue]) -> TypeTerm:
	"""
	Instantiate `term` with fresh variables.

	`mapping` is shared across calls so variables that occur in several terms
	of one scheme are renamed consistently. Concrete slots are kept.
	"""
	values: List[LatticeValue] = []
	for slot in slots(term):
		if isinstance(slot, Variable):
			if slot.var not in mapping:
				mapping[slot.var] = supply.fresh(slot.axis)
			values.append(mapping[slot.var])
		else:
			values.append(slot)
	return with_slots(term, values)


def copy_value_shape(term: TypeTerm, supply: VarSupply) -> TypeTerm:
	"""
	Describe a by-value copy of a value of type `term`.

	The copy is new storage, so every by-value slot is fresh; memory reached
	through pointers is shared, so pointees are kept as-is. Forced
	compiletime slots of `type`/`literal` annotations stay forced.
	"""
	if isinstance(term, Primitive):
		return Primitive(term.name, supply.fresh_mut(), supply.fresh_stage(), term.bits)
	if isinstance(term, TypeValue):
		stage = term.stage if isinstance(term.stage, Concrete) else supply.fresh_stage()
		return TypeValue(supply.fresh_mut(), stage)
	if isinstance(term, LiteralType):
		stage = term.stage if isinstance(term.stage, Concrete) else supply.fresh_stage()
		return LiteralType(supply.fresh_mut(), stage, term.literal_kind)
	if isinstance(term, Pointer):
		return Pointer(supply.fresh_mut(), supply.fresh_stage(), term.pointee)
	if isinstance(term, Array):
		elem = copy_value_shape(term.elem, supply)
		if elem.top() is None:
			return Array(term.length, supply.fresh_mut(), supply.fresh_stage(), elem)
		return Array.of(term.length, elem)
	if isinstance(term, Tuple):
		return Tuple(tuple(copy_value_shape(e, supply) for e in term.elements))
	if isinstance(term, Adt):
		return Adt(term.adt_kind, term.name, tuple((n, copy_value_shape(t, supply)) for n, t in term.fields))
	if isinstance(term, (Function, Unit)):
		return term
	raise TypeError(f"unknown type term {term!r}")


__all__ = [
	"slots",
	"with_slots",
	"free_vars",
	"is_concrete",
	"substitute",
	"rename_fresh",
	"copy_value_shape",
]
