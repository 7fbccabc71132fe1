# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Constraint collection for one compilation unit.

The collector walks ADT definitions, statics, functions and top-level
statements, computes a term for every expression and records how values are
used:

  - writes mark the mutability of the written place;
  - explicit `const`/`mut`/`compiletime`/`runtime` keywords fix an axis;
  - literals default to compiletime;
  - by-value copies propagate staging (a join; runtime dominates);
  - pointers alias their pointee slots;
  - extern signatures pin staging to runtime;
  - statics are checked against compiletime residency after resolution.

Functions are generic in every slot their signature and body leave open. Each
function's constraints form a scheme, collected in call-graph order (callees
first). A call site replays the callee's scheme under fresh variables; calls
inside one recursive component reuse the template variables instead.

Nothing is solved here. The result is a `ConstraintSet` plus the bookkeeping
(generics, instances, slices, per-scope binding terms) that later passes need.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Sequence, Set

from axisc.constraints import ConstraintKind, ConstraintOrigin, ConstraintSet
from axisc.core.diagnostics import Diagnostic, ErrorKind, error
from axisc.core.generic_id import GenericId, GenericKind
from axisc.core.lattice import (
	COMPILETIME,
	CONST,
	MUT,
	RUNTIME,
	Axis,
	Concrete,
	LatticeValue,
	Mutability,
	Variable,
	VarId,
	VarSupply,
)
from axisc.core.span import Span
from axisc.core.type_resolve_common import AdtUseHook, UnknownTypeError, lower_type_expr
from axisc.core.type_subst import copy_value_shape, free_vars, slots, substitute, with_slots
from axisc.core.types_core import (
	Adt,
	Array,
	Function,
	HeterogeneousArrayMutabilityError,
	LiteralType,
	Pointer,
	Primitive,
	Tuple,
	TypeTerm,
	Unit,
	homogeneous_mutability,
	same_shape,
	skeleton_str,
	top_slots,
)
from axisc.parser.ast import (
	AddrOf,
	ArrayLiteral,
	AssignStmt,
	Attr,
	Binary,
	Block,
	Call,
	Coerce,
	Deref,
	Expr,
	ExprStmt,
	FunctionDef,
	Index,
	LetStmt,
	Literal,
	Name,
	Neg,
	Program,
	ReturnStmt,
	SliceExpr,
	Stmt,
	TupleLiteral,
	TypeExpr,
	Uninit,
)
from axisc.wide_ptr import DEFAULT_METADATA, SliceShapeError, SliceSite, is_wide_pointer, synthesize_slice

logger = logging.getLogger(__name__)

UNIT_SCOPE = "<unit>"
STATIC_SCOPE = "<static>"

# Primitive a literal becomes when it has to exist at runtime without context.
LITERAL_DEFAULTS = {"int": "i32", "float": "f64", "char": "u8", "bool": "bool"}

# Term of an annotation or expression that already produced a diagnostic.
# Compared by identity; flows touching it are skipped.
_ERROR_TERM = Unit()


@dataclass
class GenericDef:
	"""Something the monomorphizer instantiates, with its template term."""

	gid: GenericId
	template: TypeTerm
	# Canonical slot positions that are generic parameters of the template.
	param_positions: tuple[int, ...]
	span: Span = field(default_factory=Span)


@dataclass(frozen=True)
class Instance:
	"""One use of a generic; `term` is the template renamed for this site."""

	gid: GenericId
	term: TypeTerm
	site: str
	span: Span = field(default_factory=Span)


@dataclass
class CollectResult:
	module: str
	supply: VarSupply
	constraints: ConstraintSet
	generics: Dict[GenericId, GenericDef]
	instances: List[Instance]
	locals: Dict[str, Dict[str, TypeTerm]]
	statics: Dict[str, TypeTerm]
	slices: List[SliceSite]
	diagnostics: List[Diagnostic]


@dataclass
class _Value:
	term: TypeTerm
	place: bool = False
	literal: bool = False
	# Staging slots of the fresh literal occurrences this value is made of.
	literal_stages: tuple[LatticeValue, ...] = ()
	explicit_mut: Optional[Mutability] = None
	# Slots a write to this place marks besides its top mutability.
	write_slots: tuple[LatticeValue, ...] = ()
	# Set after an error was reported for this value; flows from it are skipped.
	poisoned: bool = False


@dataclass
class _Scheme:
	"""Constraints, instances and slices of one call-graph component."""

	members: tuple[str, ...]
	constraints: ConstraintSet = field(default_factory=ConstraintSet)
	instances: List[Instance] = field(default_factory=list)
	slices: List[SliceSite] = field(default_factory=list)
	vars: Optional[List[VarId]] = None


@dataclass
class _Scope:
	name: str
	sink: ConstraintSet
	instances: List[Instance]
	slices: List[SliceSite]
	component: frozenset = frozenset()
	ret: Optional[TypeTerm] = None
	locals: Dict[str, TypeTerm] = field(default_factory=dict)
	literal_origin: Set[str] = field(default_factory=set)


def param_positions(template: TypeTerm) -> tuple[int, ...]:
	return tuple(i for i, slot in enumerate(slots(template)) if isinstance(slot, Variable))


def _describe(term: TypeTerm) -> str:
	return skeleton_str(term).replace("_ _ ", "")


def _iter_calls(node: object) -> Iterator[Call]:
	if isinstance(node, Call):
		yield node
	if isinstance(node, (list, tuple)):
		for item in node:
			yield from _iter_calls(item)
		return
	if isinstance(node, (Expr, Stmt, Block)):
		for value in vars(node).values():
			yield from _iter_calls(value)


def _compatible(dst: TypeTerm, src: TypeTerm) -> bool:
	"""Shallow shape check for a by-value copy."""
	if isinstance(dst, LiteralType) or isinstance(src, LiteralType):
		return isinstance(dst, (LiteralType, Primitive)) and isinstance(src, (LiteralType, Primitive))
	if type(dst) is not type(src):
		return False
	if isinstance(dst, Primitive):
		return dst.name == src.name  # type: ignore[attr-defined]
	if isinstance(dst, Array):
		assert isinstance(src, Array)
		if dst.length is not None and src.length is not None and dst.length != src.length:
			return False
		return (dst.elem.top() is None) == (src.elem.top() is None)
	if isinstance(dst, Tuple):
		return len(dst.elements) == len(src.elements)  # type: ignore[attr-defined]
	if isinstance(dst, Adt):
		return dst.name == src.name  # type: ignore[attr-defined]
	return True


class Collector:
	def __init__(self, program: Program, *, file: Optional[str] = None) -> None:
		self.program = program
		self.module = program.module
		self.file = file
		self.supply = VarSupply()
		self.constraints = ConstraintSet()
		self.generics: Dict[GenericId, GenericDef] = {}
		self.diagnostics: List[Diagnostic] = []
		self.locals: Dict[str, Dict[str, TypeTerm]] = {}
		self._instances: List[Instance] = []
		self._slices: List[SliceSite] = []
		self._adts: Dict[str, Adt] = {}
		self._functions: Dict[str, FunctionDef] = {}
		self._signatures: Dict[str, Function] = {}
		self._scopes: Dict[str, _Scope] = {}
		self._schemes: Dict[str, _Scheme] = {}
		self._statics: Dict[str, TypeTerm] = {}
		self._globals: Set[VarId] = set()
		self._call_counts: Dict[str, int] = {}
		self._unit = _Scope(UNIT_SCOPE, self.constraints, self._instances, self._slices)

	def collect(self) -> CollectResult:
		self._declare_adts()
		self._declare_statics()
		components = self._declare_functions()
		for members in components:
			self._collect_component(members)
		self._collect_static_inits()
		for stmt in self.program.statements:
			self._stmt(self._unit, stmt)
		self.locals[UNIT_SCOPE] = dict(self._unit.locals)

		constraints = ConstraintSet()
		instances: List[Instance] = []
		slices: List[SliceSite] = []
		for members in components:
			scheme = self._schemes[members[0]]
			constraints.extend(scheme.constraints)
			instances.extend(scheme.instances)
			slices.extend(scheme.slices)
		constraints.extend(self.constraints)
		instances.extend(self._instances)
		slices.extend(self._slices)
		logger.debug(
			"collected %s: %d constraints, %d instances, %d slices, %d vars",
			self.module,
			len(constraints),
			len(instances),
			len(slices),
			self.supply.count(Axis.MUTABILITY) + self.supply.count(Axis.STAGING),
		)
		return CollectResult(
			module=self.module,
			supply=self.supply,
			constraints=constraints,
			generics=self.generics,
			instances=instances,
			locals=self.locals,
			statics=dict(self._statics),
			slices=slices,
			diagnostics=self.diagnostics,
		)

	# ---- helpers ----

	def _span(self, loc: object) -> Span:
		return Span.from_loc(loc, file=self.file)

	def _origin(self, kind: str, loc: object, note: Optional[str] = None) -> ConstraintOrigin:
		return ConstraintOrigin(kind, self._span(loc), note)

	def _label(self, scope: _Scope, loc: object) -> str:
		line = getattr(loc, "line", None)
		column = getattr(loc, "column", None)
		return f"{scope.name}:{line or 0}:{column or 0}"

	def _report(self, kind: ErrorKind, message: str, loc: object, notes: Sequence[str] = ()) -> None:
		self.diagnostics.append(error(kind, message, phase="collect", span=self._span(loc), notes=notes))

	def _mismatch(self, dst: TypeTerm, src: TypeTerm, origin: ConstraintOrigin) -> None:
		self.diagnostics.append(
			error(
				ErrorKind.SHAPE_MISMATCH,
				f"type mismatch: expected '{_describe(dst)}', found '{_describe(src)}'",
				phase="collect",
				span=origin.span,
				notes=[origin.label()],
			)
		)

	def _adt_hook(self, scope: _Scope) -> AdtUseHook:
		def on_use(name: str, mapping: object, inst: Adt, loc: object) -> None:
			gid = GenericId(GenericKind.ADT, self.module, name)
			scope.instances.append(Instance(gid, inst, self._label(scope, loc), self._span(loc)))

		return on_use

	def _lower(self, scope: _Scope, texpr: TypeExpr) -> TypeTerm:
		"""Lower one annotation occurrence and record it as a term instance."""
		try:
			term = lower_type_expr(texpr, self.supply, adts=self._adts, on_adt_use=self._adt_hook(scope))
		except UnknownTypeError as exc:
			self._report(ErrorKind.UNKNOWN_NAME, str(exc), exc.loc or texpr.loc)
			return _ERROR_TERM
		except HeterogeneousArrayMutabilityError as exc:
			self._report(ErrorKind.HETEROGENEOUS_ARRAY_MUTABILITY, str(exc), exc.loc or texpr.loc)
			return _ERROR_TERM
		if not isinstance(term, (Unit, Adt)):
			self._record_term(scope, term, texpr.loc)
		return term

	def _record_term(self, scope: _Scope, term: TypeTerm, loc: object) -> None:
		gid = GenericId(GenericKind.TERM, self.module, skeleton_str(term))
		if gid not in self.generics:
			positions = tuple(range(len(slots(term))))
			self.generics[gid] = GenericDef(gid, term, positions, self._span(loc))
		scope.instances.append(Instance(gid, term, self._label(scope, loc), self._span(loc)))

	# ---- declarations ----

	def _declare_adts(self) -> None:
		for sdef in self.program.structs:
			if sdef.name in self._adts:
				self._report(ErrorKind.SHAPE_MISMATCH, f"duplicate definition of '{sdef.name}'", sdef.loc)
				continue
			fields: List[tuple[str, TypeTerm]] = []
			for fdef in sdef.fields:
				try:
					fterm = lower_type_expr(fdef.type_expr, self.supply, adts=self._adts)
				except UnknownTypeError as exc:
					self._report(ErrorKind.UNKNOWN_NAME, str(exc), exc.loc or sdef.loc)
					fterm = _ERROR_TERM
				except HeterogeneousArrayMutabilityError as exc:
					self._report(ErrorKind.HETEROGENEOUS_ARRAY_MUTABILITY, str(exc), exc.loc or sdef.loc)
					fterm = _ERROR_TERM
				fields.append((fdef.name, fterm))
			adt = Adt(sdef.adt_kind, sdef.name, tuple(fields))
			self._adts[sdef.name] = adt
			gid = GenericId(GenericKind.ADT, self.module, sdef.name)
			self.generics[gid] = GenericDef(gid, adt, param_positions(adt), self._span(sdef.loc))

	def _declare_statics(self) -> None:
		for sdef in self.program.statics:
			if sdef.name in self._statics:
				self._report(ErrorKind.SHAPE_MISMATCH, f"duplicate static '{sdef.name}'", sdef.loc)
				continue
			term = self._lower(self._unit, sdef.type_expr)
			self._statics[sdef.name] = term
			self._globals.update(free_vars(term))
			origin = self._origin("static", sdef.loc, sdef.name)
			for slot in top_slots(term, Axis.STAGING):
				self.constraints.check(ConstraintKind.STATIC_STORAGE, slot, origin)

	def _declare_functions(self) -> List[tuple[str, ...]]:
		for fdef in self.program.functions:
			if fdef.name in self._functions:
				self._report(ErrorKind.SHAPE_MISMATCH, f"duplicate function '{fdef.name}'", fdef.loc)
				continue
			self._functions[fdef.name] = fdef
		roots: List[object] = [f.body for f in self._functions.values()]
		roots.extend(s.value for s in self.program.statics)
		roots.append(self.program.statements)
		for call in _iter_calls(roots):
			self._call_counts[call.func] = self._call_counts.get(call.func, 0) + 1

		components = self._components()
		for members in components:
			scheme = _Scheme(members)
			for name in members:
				self._schemes[name] = scheme
				self._declare_signature(self._functions[name], scheme)
		return components

	def _declare_signature(self, fdef: FunctionDef, scheme: _Scheme) -> None:
		scope = _Scope(
			fdef.name,
			scheme.constraints,
			scheme.instances,
			scheme.slices,
			component=frozenset(scheme.members),
		)
		params: List[TypeTerm] = []
		for param in fdef.params:
			term = self._lower(scope, param.type_expr)
			scope.locals[param.name] = term
			params.append(term)
		scope.ret = self._lower(scope, fdef.return_type) if fdef.return_type is not None else Unit()
		sig = Function(tuple(params), scope.ret)
		self._signatures[fdef.name] = sig
		self._scopes[fdef.name] = scope
		gid = GenericId(GenericKind.FUNCTION, self.module, fdef.name)
		self.generics[gid] = GenericDef(gid, sig, param_positions(sig), self._span(fdef.loc))

		if not fdef.is_extern:
			return
		# A definition with a single local caller is resolved together with that
		# caller and keeps its compiletime slots.
		if fdef.body is not None and self._call_counts.get(fdef.name, 0) == 1:
			logger.debug("extern %s: self-contained, boundary not applied", fdef.name)
			return
		origin = self._origin("extern", fdef.loc, fdef.name)
		for slot in slots(sig):
			if slot.axis is Axis.STAGING:
				scheme.constraints.extern_boundary(slot, origin)

	def _components(self) -> List[tuple[str, ...]]:
		"""Strongly connected components of the call graph, callees first (Tarjan)."""
		order = list(self._functions)
		graph: Dict[str, List[str]] = {}
		for name, fdef in self._functions.items():
			callees: List[str] = []
			for call in _iter_calls(fdef.body):
				if call.func in self._functions and call.func not in callees:
					callees.append(call.func)
			graph[name] = callees

		index: Dict[str, int] = {}
		low: Dict[str, int] = {}
		stack: List[str] = []
		on_stack: Set[str] = set()
		out: List[tuple[str, ...]] = []

		def visit(v: str) -> None:
			index[v] = low[v] = len(index)
			stack.append(v)
			on_stack.add(v)
			for w in graph[v]:
				if w not in index:
					visit(w)
					low[v] = min(low[v], low[w])
				elif w in on_stack:
					low[v] = min(low[v], index[w])
			if low[v] == index[v]:
				comp: List[str] = []
				while True:
					w = stack.pop()
					on_stack.discard(w)
					comp.append(w)
					if w == v:
						break
				out.append(tuple(sorted(comp, key=order.index)))

		for name in order:
			if name not in index:
				visit(name)
		return out

	def _collect_component(self, members: tuple[str, ...]) -> None:
		scheme = self._schemes[members[0]]
		for name in members:
			fdef = self._functions[name]
			scope = self._scopes[name]
			if fdef.body is not None:
				for stmt in fdef.body.statements:
					self._stmt(scope, stmt)
			self.locals[name] = dict(scope.locals)
		for name in members:
			gid = GenericId(GenericKind.FUNCTION, self.module, name)
			fdef = self._functions[name]
			scheme.instances.append(Instance(gid, self._signatures[name], name, self._span(fdef.loc)))
		found: Dict[VarId, None] = {}
		for c in scheme.constraints:
			for var in c.vars():
				found.setdefault(var, None)
		for inst in scheme.instances:
			for var in free_vars(inst.term):
				found.setdefault(var, None)
		for site in scheme.slices:
			for var in free_vars(site.term):
				found.setdefault(var, None)
		scheme.vars = sorted(v for v in found if v not in self._globals)
		logger.debug("scheme %s: %d constraints over %d vars", ",".join(members), len(scheme.constraints), len(scheme.vars))

	def _collect_static_inits(self) -> None:
		scope = _Scope(STATIC_SCOPE, self.constraints, self._instances, self._slices)
		for sdef in self.program.statics:
			term = self._statics.get(sdef.name)
			if term is None:
				continue
			value = self._expr(scope, sdef.value, term)
			if not value.poisoned and not isinstance(sdef.value, Uninit):
				self._flow_value(scope, term, value.term, self._origin("static init", sdef.loc, sdef.name))

	# ---- flows ----

	def _flow_value(self, scope: _Scope, dst: TypeTerm, src: TypeTerm, origin: ConstraintOrigin) -> None:
		"""By-value copy of `src` into `dst`: staging flows, pointees alias."""
		if dst is src or dst is _ERROR_TERM or src is _ERROR_TERM:
			return
		if not _compatible(dst, src):
			self._mismatch(dst, src, origin)
			return
		dst_top, src_top = dst.top(), src.top()
		if dst_top is not None and src_top is not None:
			scope.sink.flow(dst_top[1], src_top[1], origin)
		self._flow_inner(scope, dst, src, origin)

	def _flow_inner(self, scope: _Scope, dst: TypeTerm, src: TypeTerm, origin: ConstraintOrigin) -> None:
		if isinstance(dst, Pointer) and isinstance(src, Pointer):
			self._alias(scope, dst.pointee, src.pointee, origin)
		elif isinstance(dst, Array) and isinstance(src, Array):
			if dst.elem.top() is None:
				self._flow_value(scope, dst.elem, src.elem, origin)
			else:
				self._flow_inner(scope, dst.elem, src.elem, origin)
		elif isinstance(dst, Tuple) and isinstance(src, Tuple):
			for d, s in zip(dst.elements, src.elements):
				self._flow_value(scope, d, s, origin)
		elif isinstance(dst, Adt) and isinstance(src, Adt):
			for (_, d), (_, s) in zip(dst.fields, src.fields):
				self._flow_value(scope, d, s, origin)

	def _flow_tops(self, scope: _Scope, dst: TypeTerm, src: TypeTerm, origin: ConstraintOrigin) -> None:
		for d in top_slots(dst, Axis.STAGING):
			for s in top_slots(src, Axis.STAGING):
				scope.sink.flow(d, s, origin)

	def _alias(self, scope: _Scope, a: TypeTerm, b: TypeTerm, origin: ConstraintOrigin) -> None:
		"""Two views of the same memory: every slot is hard-unified."""
		if a is b or a is _ERROR_TERM or b is _ERROR_TERM:
			return
		if not same_shape(a, b):
			self._mismatch(a, b, origin)
			return
		for x, y in zip(slots(a), slots(b)):
			scope.sink.unify(x, y, origin)

	# ---- statements ----

	def _stmt(self, scope: _Scope, stmt: Stmt) -> None:
		if isinstance(stmt, LetStmt):
			self._let(scope, stmt)
		elif isinstance(stmt, AssignStmt):
			self._assign(scope, stmt)
		elif isinstance(stmt, ReturnStmt):
			if stmt.value is None:
				return
			value = self._expr(scope, stmt.value, scope.ret)
			if scope.ret is not None and not value.poisoned and not isinstance(stmt.value, Uninit):
				self._flow_value(scope, scope.ret, value.term, self._origin("return", stmt.loc, scope.name))
		elif isinstance(stmt, ExprStmt):
			self._expr(scope, stmt.value)
		else:
			raise TypeError(f"unknown statement {stmt!r}")

	def _let(self, scope: _Scope, stmt: LetStmt) -> None:
		origin = self._origin("let", stmt.loc, stmt.name)
		if stmt.type_expr is not None:
			term = self._lower(scope, stmt.type_expr)
			value = self._expr(scope, stmt.value, term)
			if isinstance(term, Array) and term.length is None and isinstance(value.term, Array):
				term = term.with_length(value.term.length)
			if isinstance(stmt.value, AddrOf) and isinstance(stmt.value.value, SliceExpr) and not value.poisoned:
				widened = _widened_metadata(term, value.term)
				if widened is not term:
					# The annotation asked for a metadata type the slice could not use.
					scope.instances[:] = [i for i in scope.instances if i.term is not term]
					self._record_term(scope, widened, stmt.type_expr.loc)
					term = widened
			if not value.poisoned and not isinstance(stmt.value, Uninit):
				self._flow_value(scope, term, value.term, origin)
		else:
			value = self._expr(scope, stmt.value)
			term = copy_value_shape(value.term, self.supply)
			self._flow_value(scope, term, value.term, origin)
		scope.locals[stmt.name] = term
		if value.literal:
			scope.literal_origin.add(stmt.name)
		else:
			scope.literal_origin.discard(stmt.name)

	def _assign(self, scope: _Scope, stmt: AssignStmt) -> None:
		target = self._expr(scope, stmt.target)
		if target.place and not target.poisoned:
			origin = self._origin("write", stmt.loc)
			for slot in (*top_slots(target.term, Axis.MUTABILITY), *target.write_slots):
				scope.sink.write(slot, origin)
		elif not target.poisoned:
			self._report(ErrorKind.SHAPE_MISMATCH, "cannot assign to this expression", stmt.loc)
		value = self._expr(scope, stmt.value, target.term)
		if target.place and not target.poisoned and not value.poisoned and not isinstance(stmt.value, Uninit):
			self._flow_value(scope, target.term, value.term, self._origin("assign", stmt.loc))
		if isinstance(stmt.target, Name) and not value.literal:
			scope.literal_origin.discard(stmt.target.ident)

	# ---- expressions ----

	def _expr(self, scope: _Scope, e: Expr, expected: Optional[TypeTerm] = None) -> _Value:
		if isinstance(e, Literal):
			return self._literal(scope, e, expected)
		if isinstance(e, Name):
			return self._name(scope, e)
		if isinstance(e, Uninit):
			if expected is None:
				self._report(ErrorKind.SHAPE_MISMATCH, "cannot infer the type of 'uninit' without an annotation", e.loc)
				return _Value(_ERROR_TERM, poisoned=True)
			return _Value(expected)
		if isinstance(e, Coerce):
			return self._coerce(scope, e, expected)
		if isinstance(e, Binary):
			return self._binary(scope, e, expected)
		if isinstance(e, Neg):
			value = self._expr(scope, e.value, expected)
			if value.poisoned:
				return value
			if value.literal:
				return self._fresh_literal(scope, value.term, e.loc, value.literal_stages)
			result = copy_value_shape(value.term, self.supply)
			self._flow_tops(scope, result, value.term, self._origin("arith", e.loc))
			return _Value(result)
		if isinstance(e, AddrOf):
			if isinstance(e.value, SliceExpr):
				return self._slice(scope, e, e.value, expected)
			value = self._expr(scope, e.value)
			if value.poisoned:
				return value
			ptr = Pointer(self.supply.fresh_mut(), self.supply.fresh_stage(), value.term)
			origin = self._origin("address-of", e.loc)
			for stage in top_slots(value.term, Axis.STAGING):
				scope.sink.flow(ptr.ptr_stage, stage, origin)
			return _Value(ptr)
		if isinstance(e, Deref):
			value = self._expr(scope, e.value)
			if value.poisoned:
				return value
			if isinstance(value.term, Pointer):
				return _Value(value.term.pointee, place=True)
			self._report(ErrorKind.SHAPE_MISMATCH, f"cannot dereference '{_describe(value.term)}'", e.loc)
			return _Value(_ERROR_TERM, poisoned=True)
		if isinstance(e, Index):
			return self._index(scope, e)
		if isinstance(e, SliceExpr):
			self._report(ErrorKind.SHAPE_MISMATCH, "a slice must be borrowed: write '&seq[a..b]'", e.loc)
			return _Value(_ERROR_TERM, poisoned=True)
		if isinstance(e, Attr):
			return self._attr(scope, e)
		if isinstance(e, Call):
			return self._call(scope, e)
		if isinstance(e, TupleLiteral):
			return self._tuple_literal(scope, e, expected)
		if isinstance(e, ArrayLiteral):
			return self._array_literal(scope, e, expected)
		raise TypeError(f"unknown expression {e!r}")

	def _literal(self, scope: _Scope, e: Literal, expected: Optional[TypeTerm]) -> _Value:
		stage = self.supply.fresh_stage()
		scope.sink.literal_default(stage, self._origin("literal", e.loc))
		term: TypeTerm
		if e.lit_kind == "string":
			data = str(e.value).encode("utf-8")
			elem_name = "u8"
			if isinstance(expected, Array) and isinstance(expected.elem, Primitive):
				elem_name = expected.elem.name
			term = Array.of(len(data), Primitive(elem_name, self.supply.fresh_mut(), stage))
		elif isinstance(expected, Primitive):
			term = Primitive(expected.name, self.supply.fresh_mut(), stage)
		else:
			term = LiteralType(self.supply.fresh_mut(), stage, e.lit_kind)
		return _Value(term, literal=True, literal_stages=(stage,))

	def _fresh_literal(
		self,
		scope: _Scope,
		shape: TypeTerm,
		loc: object,
		stages: tuple[LatticeValue, ...],
	) -> _Value:
		"""Result of arithmetic on literals only: a new compiletime literal."""
		stage = self.supply.fresh_stage()
		scope.sink.literal_default(stage, self._origin("literal", loc))
		term: TypeTerm
		if isinstance(shape, Primitive):
			term = Primitive(shape.name, self.supply.fresh_mut(), stage)
		else:
			kind = shape.literal_kind if isinstance(shape, LiteralType) else None
			term = LiteralType(self.supply.fresh_mut(), stage, kind)
		return _Value(term, literal=True, literal_stages=(*stages, stage))

	def _name(self, scope: _Scope, e: Name) -> _Value:
		if e.ident in scope.locals:
			term = scope.locals[e.ident]
			return _Value(term, place=True, literal=e.ident in scope.literal_origin, poisoned=term is _ERROR_TERM)
		if e.ident in self._statics:
			term = self._statics[e.ident]
			return _Value(term, place=True, poisoned=term is _ERROR_TERM)
		self._report(ErrorKind.UNKNOWN_NAME, f"unknown name '{e.ident}'", e.loc)
		return _Value(_ERROR_TERM, poisoned=True)

	def _coerce(self, scope: _Scope, e: Coerce, expected: Optional[TypeTerm]) -> _Value:
		origin = self._origin("coercion", e.loc, e.keyword)
		value = self._expr(scope, e.value, expected)
		if value.poisoned:
			return value
		if e.keyword in ("const", "mut"):
			fixed = CONST if e.keyword == "const" else MUT
			for slot in top_slots(value.term, Axis.MUTABILITY):
				scope.sink.fix(ConstraintKind.EXPLICIT_COERCION, slot, fixed, origin)
			return _Value(
				value.term,
				literal=value.literal,
				literal_stages=value.literal_stages,
				explicit_mut=fixed.value,  # type: ignore[arg-type]
			)
		if e.keyword == "compiletime":
			for slot in top_slots(value.term, Axis.STAGING):
				scope.sink.fix(ConstraintKind.EXPLICIT_COERCION, slot, COMPILETIME, origin)
			return _Value(value.term, literal=value.literal, literal_stages=value.literal_stages)
		if e.keyword != "runtime":
			raise ValueError(f"unknown coercion keyword {e.keyword!r}")

		operand = _runtime_shape(value.term, expected)
		result = copy_value_shape(operand, self.supply)
		for slot in top_slots(result, Axis.STAGING):
			scope.sink.fix(ConstraintKind.EXPLICIT_COERCION, slot, RUNTIME, origin)
		if operand is value.term:
			self._flow_inner(scope, result, operand, origin)
		if value.literal:
			for stage in value.literal_stages:
				scope.sink.fix(ConstraintKind.EXPLICIT_COERCION, stage, RUNTIME, origin)
		else:
			for slot in _checked_stages(value.term):
				scope.sink.runtime_hint(slot, origin)
				scope.sink.check(ConstraintKind.RUNTIME_ELIGIBILITY, slot, origin)
		return _Value(result)

	def _binary(self, scope: _Scope, e: Binary, expected: Optional[TypeTerm]) -> _Value:
		left = self._expr(scope, e.left, expected)
		right_expected = expected if expected is not None or left.literal else left.term
		right = self._expr(scope, e.right, right_expected)
		if left.poisoned or right.poisoned:
			return _Value(_ERROR_TERM, poisoned=True)
		if left.literal and right.literal:
			return self._fresh_literal(scope, left.term, e.loc, (*left.literal_stages, *right.literal_stages))
		base = right.term if left.literal else left.term
		result = copy_value_shape(base, self.supply)
		origin = self._origin("arith", e.loc, e.op)
		for operand in (left, right):
			self._flow_tops(scope, result, operand.term, origin)
		return _Value(result)

	def _index(self, scope: _Scope, e: Index) -> _Value:
		value = self._expr(scope, e.value)
		self._expr(scope, e.index)
		if value.poisoned:
			return value
		term = value.term
		if isinstance(term, Pointer) and isinstance(term.pointee, Array):
			term = term.pointee
			place = True
		else:
			place = value.place
		if isinstance(term, Array):
			extra = (term.elem_mut,) if term.elem.top() is None else ()
			return _Value(term.elem, place=place, write_slots=extra)
		if is_wide_pointer(term):
			ptr = term.elements[0]  # type: ignore[attr-defined]
			return _Value(ptr.pointee, place=True)
		self._report(ErrorKind.SHAPE_MISMATCH, f"cannot index '{_describe(term)}'", e.loc)
		return _Value(_ERROR_TERM, poisoned=True)

	def _attr(self, scope: _Scope, e: Attr) -> _Value:
		value = self._expr(scope, e.value)
		if value.poisoned:
			return value
		term = value.term
		if isinstance(term, Tuple) and e.attr.isdigit():
			idx = int(e.attr)
			if idx < len(term.elements):
				return _Value(term.elements[idx], place=value.place)
		elif isinstance(term, Adt):
			fterm = term.field(e.attr)
			if fterm is not None:
				return _Value(fterm, place=value.place)
		self._report(ErrorKind.UNKNOWN_NAME, f"'{_describe(term)}' has no field '{e.attr}'", e.loc)
		return _Value(_ERROR_TERM, poisoned=True)

	def _slice(self, scope: _Scope, e: AddrOf, s: SliceExpr, expected: Optional[TypeTerm]) -> _Value:
		seq = self._expr(scope, s.value)
		for bound in (s.start, s.end):
			if bound is not None:
				self._expr(scope, bound)
		if seq.poisoned:
			return seq
		origin = self._origin("slice", e.loc)
		try:
			term, length, annotation = synthesize_slice(seq.term, self.supply, scope.sink, origin, expected=expected)
		except SliceShapeError as exc:
			self._report(ErrorKind.SHAPE_MISMATCH, str(exc), e.loc)
			return _Value(_ERROR_TERM, poisoned=True)
		scope.slices.append(SliceSite(self._label(scope, e.loc), term, length, annotation, self._span(e.loc)))
		return _Value(term)

	def _call(self, scope: _Scope, e: Call) -> _Value:
		sig = self._instantiate_call(scope, e)
		if sig is None:
			self._report(ErrorKind.UNKNOWN_NAME, f"unknown function '{e.func}'", e.loc)
			for arg in e.args:
				self._expr(scope, arg)
			return _Value(_ERROR_TERM, poisoned=True)
		if len(e.args) != len(sig.params):
			self._report(
				ErrorKind.SHAPE_MISMATCH,
				f"'{e.func}' takes {len(sig.params)} argument(s), {len(e.args)} given",
				e.loc,
			)
		origin = self._origin("argument", e.loc, e.func)
		for idx, arg in enumerate(e.args):
			param = sig.params[idx] if idx < len(sig.params) else None
			value = self._expr(scope, arg, param)
			if param is not None and not value.poisoned and not isinstance(arg, Uninit):
				self._flow_value(scope, param, value.term, origin)
		return _Value(sig.ret)

	def _instantiate_call(self, scope: _Scope, e: Call) -> Optional[Function]:
		"""Replay the callee's scheme for this call site and return its signature."""
		sig = self._signatures.get(e.func)
		if sig is None:
			return None
		if e.func in scope.component:
			return sig
		scheme = self._schemes[e.func]
		assert scheme.vars is not None, f"scheme of {e.func} used before it was collected"
		mapping: Dict[VarId, LatticeValue] = {var: self.supply.fresh(var.axis) for var in scheme.vars}
		site = self._label(scope, e.loc)
		scope.sink.extend(scheme.constraints.substituted(mapping))
		for inst in scheme.instances:
			scope.instances.append(Instance(inst.gid, substitute(inst.term, mapping), f"{site}>{inst.site}", inst.span))
		for slice_site in scheme.slices:
			renamed = substitute(slice_site.term, mapping)
			assert isinstance(renamed, Tuple)
			scope.slices.append(slice_site.relabeled(f"{site}>{slice_site.label}", renamed))
		out = substitute(sig, mapping)
		assert isinstance(out, Function)
		return out

	def _tuple_literal(self, scope: _Scope, e: TupleLiteral, expected: Optional[TypeTerm]) -> _Value:
		if not e.elements:
			return _Value(Unit())
		n = len(e.elements)
		hints: Sequence[Optional[TypeTerm]] = [None] * n
		if isinstance(expected, Tuple) and len(expected.elements) == n:
			hints = expected.elements
		values = [self._expr(scope, el, hint) for el, hint in zip(e.elements, hints)]
		if any(v.poisoned for v in values):
			return _Value(_ERROR_TERM, poisoned=True)
		elems = tuple(copy_value_shape(v.term, self.supply) for v in values)
		origin = self._origin("tuple", e.loc)
		for dst, v in zip(elems, values):
			self._flow_value(scope, dst, v.term, origin)
		stages = tuple(s for v in values for s in v.literal_stages)
		return _Value(Tuple(elems), literal=all(v.literal for v in values), literal_stages=stages)

	def _array_literal(self, scope: _Scope, e: ArrayLiteral, expected: Optional[TypeTerm]) -> _Value:
		elem_hint = expected.elem if isinstance(expected, Array) else None
		values = [self._expr(scope, el, elem_hint) for el in e.elements]
		if any(v.poisoned for v in values):
			return _Value(_ERROR_TERM, poisoned=True)
		explicit: Optional[Mutability] = None
		try:
			explicit = homogeneous_mutability([_explicit_view(v) for v in values], loc=e.loc)
		except HeterogeneousArrayMutabilityError as exc:
			self._report(ErrorKind.HETEROGENEOUS_ARRAY_MUTABILITY, str(exc), e.loc)

		elem: Optional[TypeTerm] = None
		if elem_hint is not None:
			elem = copy_value_shape(elem_hint, self.supply)
		elif values:
			elem = copy_value_shape(values[0].term, self.supply)
		n = len(values)
		term: Array
		if elem is None:
			term = Array(0, self.supply.fresh_mut(), self.supply.fresh_stage(), Unit())
		elif elem.top() is not None:
			term = Array.of(n, elem)
		else:
			term = Array(n, self.supply.fresh_mut(), self.supply.fresh_stage(), elem)

		origin = self._origin("array element", e.loc)
		for v in values:
			self._flow_value(scope, term.elem, v.term, origin)
			if term.elem.top() is None:
				for stage in top_slots(v.term, Axis.STAGING):
					scope.sink.flow(term.elem_stage, stage, origin)
		if explicit is not None:
			scope.sink.fix(ConstraintKind.EXPLICIT_COERCION, term.elem_mut, Concrete(explicit), origin)
		stages = tuple(s for v in values for s in v.literal_stages)
		return _Value(term, literal=bool(values) and all(v.literal for v in values), literal_stages=stages)


def _explicit_view(value: _Value) -> TypeTerm:
	"""The value's term with its top mutability replaced by an explicit keyword, if any."""
	if value.explicit_mut is None or value.term.top() is None:
		return value.term
	current = slots(value.term)
	return with_slots(value.term, [Concrete(value.explicit_mut), *current[1:]])


def _runtime_shape(term: TypeTerm, expected: Optional[TypeTerm] = None) -> TypeTerm:
	"""
	Give compiletime-only literal terms the primitive they take at runtime.

	The expected primitive wins; `LITERAL_DEFAULTS` only applies without one.
	"""
	if isinstance(term, LiteralType):
		if isinstance(expected, Primitive):
			name = expected.name
		else:
			name = LITERAL_DEFAULTS.get(term.literal_kind or "int", "i32")
		return Primitive(name, term.mut, term.stage)
	if isinstance(term, Tuple):
		hints: Sequence[Optional[TypeTerm]] = [None] * len(term.elements)
		if isinstance(expected, Tuple) and len(expected.elements) == len(term.elements):
			hints = expected.elements
		elems = tuple(_runtime_shape(e, hint) for e, hint in zip(term.elements, hints))
		if all(a is b for a, b in zip(elems, term.elements)):
			return term
		return Tuple(elems)
	return term


def _widened_metadata(annotated: TypeTerm, value: TypeTerm) -> TypeTerm:
	"""The annotated wide pointer with the metadata type the slice fell back to."""
	if not (is_wide_pointer(annotated) and is_wide_pointer(value)):
		return annotated
	assert isinstance(annotated, Tuple) and isinstance(value, Tuple)
	ptr, meta = annotated.elements
	got = value.elements[1]
	assert isinstance(meta, Primitive) and isinstance(got, Primitive)
	if meta.name == got.name or got.name != DEFAULT_METADATA:
		return annotated
	return Tuple((ptr, Primitive(DEFAULT_METADATA, meta.mut, meta.stage)))


def _checked_stages(term: TypeTerm) -> List[LatticeValue]:
	"""Staging tops a `runtime` coercion must prove runtime-capable; `literal` parts always are."""
	if isinstance(term, LiteralType):
		return []
	if isinstance(term, Tuple):
		return [s for e in term.elements for s in _checked_stages(e)]
	return top_slots(term, Axis.STAGING)


def collect(program: Program, *, file: Optional[str] = None) -> CollectResult:
	"""Collect the constraint set of one program."""
	return Collector(program, file=file).collect()


__all__ = [
	"UNIT_SCOPE",
	"STATIC_SCOPE",
	"LITERAL_DEFAULTS",
	"GenericDef",
	"Instance",
	"CollectResult",
	"Collector",
	"param_positions",
	"collect",
]
