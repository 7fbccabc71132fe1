# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Lowering of syntactic `TypeExpr` annotations into `TypeTerm`s.

Each call creates the term for exactly one syntactic occurrence, minting fresh
variables for every slot that the annotation leaves open:

  - `const` / `mut` prefixes give concrete mutability;
  - `anymut` and an omitted prefix give a fresh variable;
  - staging is never written in annotations, so every staging slot is fresh,
    except for `type` and `literal`, which are compiletime-only.

A prefix on a tuple or array distributes to elements that have no prefix of
their own. ADT names instantiate the ADT's field template with fresh
variables; the caller is told about every such use through `on_adt_use`.
"""

from __future__ import annotations

from typing import Callable, Dict, List, Mapping, Optional

from .lattice import CONST, COMPILETIME, MUT, Axis, Concrete, LatticeValue, Variable, VarId, VarSupply
from .type_subst import rename_fresh, substitute
from .types_core import (
	Adt,
	Array,
	Function,
	HeterogeneousArrayMutabilityError,
	LiteralType,
	PRIMITIVE_NAMES,
	Pointer,
	Primitive,
	Tuple,
	TypeTerm,
	TypeValue,
	Unit,
	top_slots,
)

AdtUseHook = Callable[[str, Dict[VarId, LatticeValue], Adt, object], None]


class UnknownTypeError(ValueError):
	"""Raised for a named type that is neither builtin nor a declared ADT."""

	def __init__(self, message: str, *, loc: object | None = None) -> None:
		super().__init__(message)
		self.loc = loc


def _prefix_value(prefix: Optional[str], inherited: Optional[LatticeValue], supply: VarSupply) -> LatticeValue:
	if prefix == "const":
		return CONST
	if prefix == "mut":
		return MUT
	if prefix == "anymut":
		return supply.fresh_mut()
	if prefix is None:
		return inherited if inherited is not None else supply.fresh_mut()
	raise ValueError(f"unknown mutability prefix {prefix!r}")


def lower_type_expr(
	texpr: object,
	supply: VarSupply,
	*,
	adts: Mapping[str, Adt] | None = None,
	on_adt_use: AdtUseHook | None = None,
	inherited: Optional[LatticeValue] = None,
) -> TypeTerm:
	"""
	Lower one TypeExpr-like node (duck typed on kind/name/args/mutability/length).
	"""
	kind = getattr(texpr, "kind")
	prefix = getattr(texpr, "mutability", None)
	loc = getattr(texpr, "loc", None)
	args: List[object] = list(getattr(texpr, "args", []) or [])
	adts = adts or {}

	if kind == "named":
		name = getattr(texpr, "name")
		if name in adts:
			mapping: Dict[VarId, LatticeValue] = {}
			inst = rename_fresh(adts[name], supply, mapping)
			assert isinstance(inst, Adt)
			pin = CONST if prefix == "const" else MUT if prefix == "mut" else None
			if pin is None and prefix is None and isinstance(inherited, Concrete):
				pin = inherited
			if pin is not None:
				inst = _distribute_mut(inst, pin, mapping)
			if on_adt_use is not None:
				on_adt_use(name, mapping, inst, loc)
			return inst
		mut = _prefix_value(prefix, inherited, supply)
		if name in PRIMITIVE_NAMES:
			return Primitive(name, mut, supply.fresh_stage())
		if name == "type":
			return TypeValue(mut, COMPILETIME)
		if name == "literal":
			return LiteralType(mut, COMPILETIME)
		raise UnknownTypeError(f"unknown type '{name}'", loc=loc)

	if kind == "pointer":
		mut = _prefix_value(prefix, inherited, supply)
		pointee = lower_type_expr(args[0], supply, adts=adts, on_adt_use=on_adt_use)
		return Pointer(mut, supply.fresh_stage(), pointee)

	if kind == "array":
		length = getattr(texpr, "length", None)
		elem_expr = args[0]
		elem_prefix = getattr(elem_expr, "mutability", None)
		mut = _prefix_value(prefix, inherited, supply)
		if isinstance(mut, Concrete) and elem_prefix in {"const", "mut"} and elem_prefix != mut.value.value:
			raise HeterogeneousArrayMutabilityError(
				f"array declared '{mut}' but its elements are declared '{elem_prefix}'",
				loc=loc,
			)
		elem_inherited = mut if (prefix is not None or inherited is not None) else None
		elem = lower_type_expr(elem_expr, supply, adts=adts, on_adt_use=on_adt_use, inherited=elem_inherited)
		if elem.top() is not None:
			return Array.of(length, elem)
		return Array(length, mut, supply.fresh_stage(), elem)

	if kind == "tuple":
		if not args:
			return Unit()
		elem_inherited = None
		if prefix in {"const", "mut"}:
			elem_inherited = _prefix_value(prefix, None, supply)
		elif prefix is None:
			elem_inherited = inherited
		return Tuple(
			tuple(
				lower_type_expr(a, supply, adts=adts, on_adt_use=on_adt_use, inherited=elem_inherited)
				for a in args
			)
		)

	if kind == "fn":
		if not args:
			raise ValueError("function type without a return type")
		params = tuple(lower_type_expr(a, supply, adts=adts, on_adt_use=on_adt_use) for a in args[:-1])
		return Function(params, lower_type_expr(args[-1], supply, adts=adts, on_adt_use=on_adt_use))

	raise ValueError(f"unknown type expression kind {kind!r}")


def _distribute_mut(inst: Adt, mut: Concrete, mapping: Dict[VarId, LatticeValue]) -> Adt:
	"""Pin the top mutability of every field of a fresh ADT instance to `mut`."""
	pins: Dict[VarId, LatticeValue] = {}
	for slot in top_slots(inst, Axis.MUTABILITY):
		if isinstance(slot, Variable):
			pins[slot.var] = mut
	for template_var, fresh in list(mapping.items()):
		if isinstance(fresh, Variable) and fresh.var in pins:
			mapping[template_var] = mut
	out = substitute(inst, pins)
	assert isinstance(out, Adt)
	return out


__all__ = ["AdtUseHook", "UnknownTypeError", "lower_type_expr"]
