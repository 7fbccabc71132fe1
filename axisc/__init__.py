# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
axisc: two-axis (mutability/staging) type resolution core.

Passes:
  parser: surface syntax -> AST
  collector: AST -> constraint set (plus generics, instances, slices)
  resolver: constraint set -> write-once binding table
  monomorphize: binding table -> concrete terms per instantiation key
  wide_ptr: slice shape synthesis and metadata finalization
  driver: per-unit pipeline and CLI
"""

__all__ = ["core", "parser", "collector", "resolver", "monomorphize", "wide_ptr", "driver"]
