# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
AST consumed by the resolution core.

Type annotations stay syntactic here (`TypeExpr`); the collector lowers each
occurrence into a `TypeTerm` exactly once.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional


@dataclass(frozen=True)
class Located:
	line: int
	column: int


@dataclass
class TypeExpr:
	"""
	One syntactic type occurrence.

	kind is one of:
	  - "named":   `u8`, `usize`, `bool`, `type`, `literal`, struct names
	  - "pointer": `*T` (args[0] is the pointee)
	  - "array":   `[N T]` (length None for `_`)
	  - "tuple":   `(T, ...)`; zero args is unit
	  - "fn":      `fn(T, ...) -> R` (last arg is the return type)

	`mutability` is the optional prefix fragment: "const", "mut", "anymut" or None.
	"""

	kind: str
	name: str = ""
	args: List["TypeExpr"] = field(default_factory=list)
	mutability: Optional[str] = None
	length: Optional[int] = None
	loc: Optional[Located] = None


class Expr:
	loc: Located


@dataclass
class Literal(Expr):
	loc: Located
	# "int" | "float" | "char" | "string" | "bool"
	lit_kind: str
	value: object


@dataclass
class Name(Expr):
	loc: Located
	ident: str


@dataclass
class Uninit(Expr):
	loc: Located


@dataclass
class Deref(Expr):
	loc: Located
	value: Expr


@dataclass
class AddrOf(Expr):
	loc: Located
	value: Expr


@dataclass
class Neg(Expr):
	loc: Located
	value: Expr


@dataclass
class Binary(Expr):
	loc: Located
	op: str
	left: Expr
	right: Expr


@dataclass
class Index(Expr):
	loc: Located
	value: Expr
	index: Expr


@dataclass
class SliceExpr(Expr):
	"""`seq[start..end]`; either bound may be omitted. Only valid under `&`."""

	loc: Located
	value: Expr
	start: Optional[Expr]
	end: Optional[Expr]


@dataclass
class Attr(Expr):
	"""Field access `s.f` or tuple element access `t.0`."""

	loc: Located
	value: Expr
	attr: str


@dataclass
class Call(Expr):
	loc: Located
	func: str
	args: List[Expr]


@dataclass
class TupleLiteral(Expr):
	loc: Located
	elements: List[Expr]


@dataclass
class ArrayLiteral(Expr):
	loc: Located
	elements: List[Expr]


@dataclass
class Coerce(Expr):
	"""`const e`, `mut e`, `compiletime e` or `runtime e`."""

	loc: Located
	keyword: str
	value: Expr


class Stmt:
	loc: Located


@dataclass
class LetStmt(Stmt):
	loc: Located
	name: str
	type_expr: Optional[TypeExpr]
	value: Expr


@dataclass
class AssignStmt(Stmt):
	loc: Located
	target: Expr
	value: Expr


@dataclass
class ReturnStmt(Stmt):
	loc: Located
	value: Optional[Expr]


@dataclass
class ExprStmt(Stmt):
	loc: Located
	value: Expr


@dataclass
class Block:
	statements: List[Stmt]


@dataclass
class Param:
	name: str
	type_expr: TypeExpr
	loc: Optional[Located] = None


@dataclass
class FunctionDef:
	loc: Located
	name: str
	params: List[Param]
	return_type: Optional[TypeExpr]
	# None for a bodiless `extern fn` declaration.
	body: Optional[Block]
	is_extern: bool = False


@dataclass
class StructField:
	name: str
	type_expr: TypeExpr


@dataclass
class StructDef:
	loc: Located
	# "struct" | "union"
	adt_kind: str
	name: str
	fields: List[StructField]


@dataclass
class StaticDef:
	loc: Located
	name: str
	type_expr: TypeExpr
	value: Expr


@dataclass
class Program:
	functions: List[FunctionDef] = field(default_factory=list)
	structs: List[StructDef] = field(default_factory=list)
	statics: List[StaticDef] = field(default_factory=list)
	statements: List[Stmt] = field(default_factory=list)
	module: str = "main"


__all__ = [
	"Located",
	"TypeExpr",
	"Expr",
	"Literal",
	"Name",
	"Uninit",
	"Deref",
	"AddrOf",
	"Neg",
	"Binary",
	"Index",
	"SliceExpr",
	"Attr",
	"Call",
	"TupleLiteral",
	"ArrayLiteral",
	"Coerce",
	"Stmt",
	"LetStmt",
	"AssignStmt",
	"ReturnStmt",
	"ExprStmt",
	"Block",
	"Param",
	"FunctionDef",
	"StructField",
	"StructDef",
	"StaticDef",
	"Program",
]
