"""
axisc.core: shared lattice/type/diagnostic primitives used by every pass.

Modules:
  - lattice: axis values, lattice values, variable supply, value unification
  - types_core: TypeTerm variants and shape helpers
  - type_subst: slot traversal, substitution, instantiation
  - type_resolve_common: TypeExpr -> TypeTerm lowering
  - diagnostics / span: diagnostic records
  - target: target profile (pointer width)
  - generic_id: identities of instantiable generics
"""

__all__ = [
	"lattice",
	"types_core",
	"type_subst",
	"type_resolve_common",
	"diagnostics",
	"span",
	"target",
	"generic_id",
]
