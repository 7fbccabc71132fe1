# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""Surface parser and AST for axisc sources."""

from .parser import ParseError, parse_expr, parse_program, parse_type_expr

__all__ = ["ParseError", "parse_expr", "parse_program", "parse_type_expr"]
