# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

from axisc.collector import UNIT_SCOPE
from axisc.constraints import ConstraintKind
from axisc.core.diagnostics import ErrorKind
from axisc.core.generic_id import GenericId, GenericKind
from axisc.test_support import collect_source


def _codes(result) -> list:
	return [d.code for d in result.diagnostics]


def test_locals_are_recorded_per_scope() -> None:
	result = collect_source(
		"""
		fn id(x: u8) -> u8 {
			let y = x;
			return y;
		}
		let a: u8 = id(1);
		"""
	)
	assert result.diagnostics == []
	assert set(result.locals["id"]) == {"x", "y"}
	assert set(result.locals[UNIT_SCOPE]) == {"a"}


def test_write_emits_write_through() -> None:
	result = collect_source(
		"""
		let x: u8 = 1;
		x = 2;
		"""
	)
	writes = result.constraints.of_kind(ConstraintKind.WRITE_THROUGH)
	assert len(writes) == 1
	assert writes[0].lhs == result.locals[UNIT_SCOPE]["x"].mut  # type: ignore[attr-defined]


def test_literals_get_defaults_and_flows() -> None:
	result = collect_source("let x: u8 = 1;")
	assert len(result.constraints.of_kind(ConstraintKind.LITERAL_DEFAULT)) == 1
	flow = result.constraints.of_kind(ConstraintKind.STAGE_FLOW)[0]
	assert flow.lhs == result.locals[UNIT_SCOPE]["x"].stage  # type: ignore[attr-defined]


def _is_replay(site: str) -> bool:
	# Replayed sites read "<call site>><inner site>".
	return ">" in site.removeprefix(UNIT_SCOPE)


def test_call_sites_replay_callee_scheme() -> None:
	result = collect_source(
		"""
		fn id(x: u8) -> u8 { return x; }
		let a: u8 = id(1);
		let b: u8 = id(2);
		"""
	)
	gid = GenericId(GenericKind.FUNCTION, "main", "id")
	sites = [i.site for i in result.instances if i.gid == gid]
	# The template itself plus one replay per call.
	assert sites.count("id") == 1
	assert len(sites) == 3
	replayed = [i for i in result.instances if _is_replay(i.site)]
	# Both `u8` annotations and the signature are replayed at each call.
	assert len(replayed) == 6
	# Both replays carry the callee's return flow under distinct variables.
	flows = [c for c in result.constraints.of_kind(ConstraintKind.STAGE_FLOW) if c.origin.kind == "return"]
	assert len(flows) == 3
	assert len({c.lhs for c in flows}) == 3


def test_recursive_component_shares_template() -> None:
	result = collect_source(
		"""
		fn ping(x: u8) -> u8 { return pong(x); }
		fn pong(x: u8) -> u8 { return ping(x); }
		"""
	)
	assert result.diagnostics == []
	assert not any(_is_replay(i.site) for i in result.instances)


def test_extern_boundary_pins_signature_staging() -> None:
	result = collect_source(
		"""
		extern fn ext(x: u8) -> u8;
		let a: u8 = ext(1);
		"""
	)
	# Two staging slots in the template, replayed once at the call.
	assert len(result.constraints.of_kind(ConstraintKind.EXTERN_BOUNDARY)) == 4


def test_extern_with_body_and_single_caller_is_exempt() -> None:
	src = """
		extern fn helper(p: *u8) { *p = 1; }
		let x: u8 = 5;
		helper(&x);
		"""
	result = collect_source(src)
	assert result.constraints.of_kind(ConstraintKind.EXTERN_BOUNDARY) == []
	twice = collect_source(src + "helper(&x);\n")
	assert twice.constraints.of_kind(ConstraintKind.EXTERN_BOUNDARY) != []


def test_statics_get_storage_checks() -> None:
	result = collect_source("static G: (u8, u16) = runtime (1, 2);")
	checks = result.constraints.of_kind(ConstraintKind.STATIC_STORAGE)
	assert len(checks) == 2
	assert set(result.statics) == {"G"}


def test_heterogeneous_array_literal() -> None:
	result = collect_source("let a = [const 1, mut 2, 3];")
	assert _codes(result) == [ErrorKind.HETEROGENEOUS_ARRAY_MUTABILITY.value]


def test_homogeneous_explicit_array_literal() -> None:
	result = collect_source("let a = [mut 1, mut 2];")
	assert result.diagnostics == []


def test_unknown_name_does_not_cascade() -> None:
	result = collect_source("let y: u8 = z + 1;")
	assert _codes(result) == [ErrorKind.UNKNOWN_NAME.value]


def test_unknown_type_is_reported() -> None:
	result = collect_source("let y: Missing = 1;")
	assert _codes(result) == [ErrorKind.UNKNOWN_NAME.value]


def test_argument_count_mismatch() -> None:
	result = collect_source(
		"""
		fn f(x: u8) { }
		f(1, 2);
		"""
	)
	assert _codes(result) == [ErrorKind.SHAPE_MISMATCH.value]


def test_uninit_needs_annotation() -> None:
	result = collect_source("let x = uninit;")
	assert _codes(result) == [ErrorKind.SHAPE_MISMATCH.value]


def test_slice_of_scalar_is_rejected() -> None:
	result = collect_source(
		"""
		let x: u8 = 1;
		let s = &x[..];
		"""
	)
	assert _codes(result) == [ErrorKind.SHAPE_MISMATCH.value]


def test_type_mismatch_names_both_shapes() -> None:
	result = collect_source(
		"""
		let x: u8 = 1;
		let y: u16 = x;
		"""
	)
	assert _codes(result) == [ErrorKind.SHAPE_MISMATCH.value]
	assert "u16" in result.diagnostics[0].message
	assert "u8" in result.diagnostics[0].message


def test_struct_fields_and_adt_instances() -> None:
	result = collect_source(
		"""
		struct P { x: u8, y: u8 }
		let p: mut P = uninit;
		p.x = 3;
		"""
	)
	assert result.diagnostics == []
	gid = GenericId(GenericKind.ADT, "main", "P")
	assert gid in result.generics
	assert [i.gid for i in result.instances].count(gid) == 1


def test_runtime_on_literal_origin_binding_needs_no_check() -> None:
	result = collect_source(
		"""
		let a: u8 = 5;
		let b: u8 = runtime a;
		"""
	)
	assert result.diagnostics == []
	assert result.constraints.of_kind(ConstraintKind.RUNTIME_ELIGIBILITY) == []
	assert result.constraints.of_kind(ConstraintKind.RUNTIME_HINT) == []
	# Only the coercion result is pinned; the binding keeps its own staging.
	(fixed,) = result.constraints.of_kind(ConstraintKind.EXPLICIT_COERCION)
	assert fixed.lhs != result.locals[UNIT_SCOPE]["a"].stage  # type: ignore[attr-defined]
