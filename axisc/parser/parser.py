# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
lark-based parser for the axisc surface language.

The grammar lives next to this module in `grammar.lark`. Parse trees are
turned into `axisc.parser.ast` nodes by small `_build_*` functions that walk
the tree directly; unexpected input is reported as `ParseError` carrying a
location so the driver can turn it into a parser-phase diagnostic.
"""

from __future__ import annotations

import codecs
from pathlib import Path
from typing import List, Optional

from lark import Lark, Token, Tree
from lark.exceptions import UnexpectedInput

from .ast import (
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
	Located,
	Name,
	Neg,
	Param,
	Program,
	ReturnStmt,
	SliceExpr,
	StaticDef,
	Stmt,
	StructDef,
	StructField,
	TupleLiteral,
	TypeExpr,
	Uninit,
)

_GRAMMAR_PATH = Path(__file__).with_name("grammar.lark")
_GRAMMAR_SRC = _GRAMMAR_PATH.read_text()

_PARSER = Lark(
	_GRAMMAR_SRC,
	parser="lalr",
	lexer="basic",
	start=["start", "type_expr", "expr"],
	propagate_positions=True,
	maybe_placeholders=False,
)

_BINARY_OPS = {"add": "+", "sub": "-", "mul": "*", "div": "/", "mod": "%"}


class ParseError(ValueError):
	"""
	Syntax error in axisc source.

	Carries a best-effort `loc` so the driver can report a pinned diagnostic
	instead of surfacing a raw lark exception.
	"""

	def __init__(self, message: str, *, loc: Optional[Located]) -> None:
		super().__init__(message)
		self.loc = loc


def _parse(source: str, start: str) -> Tree:
	try:
		return _PARSER.parse(source, start=start)
	except UnexpectedInput as exc:
		line = getattr(exc, "line", None)
		column = getattr(exc, "column", None)
		loc = Located(line, column) if isinstance(line, int) and line > 0 else None
		raise ParseError(f"syntax error: {str(exc).splitlines()[0]}", loc=loc) from exc


def parse_program(source: str, *, module: str = "main") -> Program:
	program = _build_program(_parse(source, "start"))
	program.module = module
	return program


def parse_type_expr(source: str) -> TypeExpr:
	return _build_type_expr(_parse(source, "type_expr"))


def parse_expr(source: str) -> Expr:
	return _build_expr(_parse(source, "expr"))


def _name(tree: Tree) -> str:
	return str(tree.data)


def _loc(node: object, fallback: Optional[Located] = None) -> Located:
	if isinstance(node, Token):
		return Located(node.line or 0, node.column or 0)
	meta = getattr(node, "meta", None)
	if meta is not None and not meta.empty:
		return Located(meta.line, meta.column)
	return fallback or Located(0, 0)


def _trees(tree: Tree) -> List[Tree]:
	return [c for c in tree.children if isinstance(c, Tree)]


def _tokens(tree: Tree, *types: str) -> List[Token]:
	return [c for c in tree.children if isinstance(c, Token) and (not types or c.type in types)]


def _child(tree: Tree, name: str) -> Optional[Tree]:
	return next((c for c in _trees(tree) if _name(c) == name), None)


def _decode_string_token(tok: Token) -> str:
	"""
	Decode STRING/CHAR tokens, including \\xHH byte escapes: interpret
	Python-style escapes, reinterpret the code points as latin-1 bytes and
	decode those as UTF-8.
	"""
	content = tok.value[1:-1]
	unescaped = codecs.decode(content, "unicode_escape")
	return unescaped.encode("latin-1").decode("utf-8")


def _build_program(tree: Tree) -> Program:
	program = Program()
	for child in _trees(tree):
		kind = _name(child)
		if kind == "func_def":
			program.functions.append(_build_function(child, is_extern=False))
		elif kind == "extern_def":
			program.functions.append(_build_function(child, is_extern=True))
		elif kind == "adt_def":
			program.structs.append(_build_adt(child))
		elif kind == "static_def":
			program.statics.append(_build_static(child))
		else:
			program.statements.append(_build_stmt(child))
	return program


def _build_function(tree: Tree, *, is_extern: bool) -> FunctionDef:
	name_tok = _tokens(tree, "NAME")[0]
	params: List[Param] = []
	param_list = _child(tree, "param_list")
	if param_list is not None:
		for p in _trees(param_list):
			p_name = _tokens(p, "NAME")[0]
			params.append(Param(name=p_name.value, type_expr=_build_type_expr(_trees(p)[0]), loc=_loc(p_name)))
	ret = _child(tree, "ret_type")
	body = _child(tree, "block")
	return FunctionDef(
		loc=_loc(tree),
		name=name_tok.value,
		params=params,
		return_type=_build_type_expr(_trees(ret)[0]) if ret is not None else None,
		body=_build_block(body) if body is not None else None,
		is_extern=is_extern,
	)


def _build_adt(tree: Tree) -> StructDef:
	kind_tok = _tokens(tree, "STRUCT", "UNION")[0]
	name_tok = _tokens(tree, "NAME")[0]
	fields: List[StructField] = []
	field_list = _child(tree, "field_list")
	if field_list is not None:
		for f in _trees(field_list):
			fields.append(StructField(name=_tokens(f, "NAME")[0].value, type_expr=_build_type_expr(_trees(f)[0])))
	return StructDef(loc=_loc(tree), adt_kind=kind_tok.value, name=name_tok.value, fields=fields)


def _build_static(tree: Tree) -> StaticDef:
	name_tok = _tokens(tree, "NAME")[0]
	type_node, value_node = _trees(tree)
	return StaticDef(
		loc=_loc(tree),
		name=name_tok.value,
		type_expr=_build_type_expr(type_node),
		value=_build_expr(value_node),
	)


def _build_block(tree: Tree) -> Block:
	return Block(statements=[_build_stmt(s) for s in _trees(tree)])


def _build_stmt(tree: Tree) -> Stmt:
	kind = _name(tree)
	loc = _loc(tree)
	if kind == "let_stmt":
		name_tok = _tokens(tree, "NAME")[0]
		type_node = _child(tree, "type_expr")
		value_node = [c for c in _trees(tree) if _name(c) != "type_expr"][0]
		return LetStmt(
			loc=loc,
			name=name_tok.value,
			type_expr=_build_type_expr(type_node) if type_node is not None else None,
			value=_build_expr(value_node, loc),
		)
	if kind == "assign_stmt":
		target, value = _trees(tree)
		return AssignStmt(loc=loc, target=_build_expr(target, loc), value=_build_expr(value, loc))
	if kind == "return_stmt":
		values = _trees(tree)
		return ReturnStmt(loc=loc, value=_build_expr(values[0], loc) if values else None)
	if kind == "expr_stmt":
		return ExprStmt(loc=loc, value=_build_expr(_trees(tree)[0], loc))
	raise ParseError(f"unexpected statement node '{kind}'", loc=loc)


def _build_type_expr(tree: Tree) -> TypeExpr:
	loc = _loc(tree)
	mutability: Optional[str] = None
	body: Optional[Tree] = None
	for child in _trees(tree):
		if _name(child) == "mutability":
			mutability = _tokens(child)[0].value
		else:
			body = child
	if body is None:
		raise ParseError("type expression without a body", loc=loc)
	kind = _name(body)
	if kind == "named_type":
		return TypeExpr(kind="named", name=_tokens(body)[0].value, mutability=mutability, loc=loc)
	if kind == "pointer_type":
		return TypeExpr(kind="pointer", args=[_build_type_expr(_trees(body)[0])], mutability=mutability, loc=loc)
	if kind == "array_type":
		len_node, elem_node = _trees(body)
		len_tok = _tokens(len_node)[0]
		length = int(len_tok.value) if len_tok.type == "INT" else None
		return TypeExpr(
			kind="array",
			args=[_build_type_expr(elem_node)],
			mutability=mutability,
			length=length,
			loc=loc,
		)
	if kind == "tuple_type":
		return TypeExpr(kind="tuple", args=[_build_type_expr(t) for t in _trees(body)], mutability=mutability, loc=loc)
	if kind == "fn_type":
		return TypeExpr(kind="fn", args=[_build_type_expr(t) for t in _trees(body)], mutability=mutability, loc=loc)
	raise ParseError(f"unexpected type node '{kind}'", loc=loc)


def _build_expr(tree: Tree, fallback: Optional[Located] = None) -> Expr:
	kind = _name(tree)
	loc = _loc(tree, fallback)
	if kind == "coerce":
		kw_node, value_node = _trees(tree)
		return Coerce(loc=loc, keyword=_tokens(kw_node)[0].value, value=_build_expr(value_node, loc))
	if kind in _BINARY_OPS:
		left, right = _trees(tree)
		return Binary(loc=loc, op=_BINARY_OPS[kind], left=_build_expr(left, loc), right=_build_expr(right, loc))
	if kind == "deref":
		return Deref(loc=loc, value=_build_expr(_trees(tree)[0], loc))
	if kind == "addr_of":
		return AddrOf(loc=loc, value=_build_expr(_trees(tree)[0], loc))
	if kind == "neg":
		return Neg(loc=loc, value=_build_expr(_trees(tree)[0], loc))
	if kind == "index":
		value, index = _trees(tree)
		return Index(loc=loc, value=_build_expr(value, loc), index=_build_expr(index, loc))
	if kind == "slice":
		children = _trees(tree)
		start = _child(tree, "slice_start")
		end = _child(tree, "slice_end")
		return SliceExpr(
			loc=loc,
			value=_build_expr(children[0], loc),
			start=_build_expr(_trees(start)[0], loc) if start is not None else None,
			end=_build_expr(_trees(end)[0], loc) if end is not None else None,
		)
	if kind == "attr":
		value = _trees(tree)[0]
		return Attr(loc=loc, value=_build_expr(value, loc), attr=_tokens(tree)[-1].value)
	if kind == "int_lit":
		return Literal(loc=loc, lit_kind="int", value=int(_tokens(tree)[0].value))
	if kind == "float_lit":
		return Literal(loc=loc, lit_kind="float", value=float(_tokens(tree)[0].value))
	if kind == "string_lit":
		return Literal(loc=loc, lit_kind="string", value=_decode_string_token(_tokens(tree)[0]))
	if kind == "char_lit":
		return Literal(loc=loc, lit_kind="char", value=_decode_string_token(_tokens(tree)[0]))
	if kind in {"true_lit", "false_lit"}:
		return Literal(loc=loc, lit_kind="bool", value=kind == "true_lit")
	if kind == "uninit":
		return Uninit(loc=loc)
	if kind == "name":
		return Name(loc=loc, ident=_tokens(tree)[0].value)
	if kind == "call":
		args_node = _child(tree, "arg_list")
		args = [_build_expr(a, loc) for a in _trees(args_node)] if args_node is not None else []
		return Call(loc=loc, func=_tokens(tree, "NAME")[0].value, args=args)
	if kind == "unit_lit":
		return TupleLiteral(loc=loc, elements=[])
	if kind == "tuple_lit":
		return TupleLiteral(loc=loc, elements=[_build_expr(e, loc) for e in _trees(tree)])
	if kind == "array_lit":
		return ArrayLiteral(loc=loc, elements=[_build_expr(e, loc) for e in _trees(tree)])
	raise ParseError(f"unexpected expression node '{kind}'", loc=loc)


__all__ = ["ParseError", "parse_program", "parse_type_expr", "parse_expr"]
