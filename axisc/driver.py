# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Pipeline driver and command-line entry point.

One unit goes through: parse -> collect -> resolve -> monomorphize -> slices.
Every pass appends to one diagnostics list; later passes still run after
errors so independent problems are reported together.

Units are independent: `resolve_units` can resolve them on a thread pool, and
the only value they share is the frozen `TargetProfile`.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from axisc.collector import STATIC_SCOPE, UNIT_SCOPE, CollectResult, collect
from axisc.core.diagnostics import Diagnostic, ErrorKind, error, has_errors
from axisc.core.span import Span
from axisc.core.target import SUPPORTED_WORD_BITS, TargetProfile
from axisc.core.types_core import TypeTerm
from axisc.monomorphize import MonoTable, conflict_notes, materialize, monomorphize
from axisc.parser import ParseError, parse_program
from axisc.parser.ast import Program
from axisc.resolver import BindingTable, ConflictedBindingError, resolve_constraints
from axisc.wide_ptr import SliceInfo, finalize_slice

logger = logging.getLogger(__name__)

# Tests pin the default pointer width here instead of reading the host.
_TEST_TARGET_WORD_BITS: Optional[int] = None


@dataclass
class UnitResult:
	"""Everything the core produces for one compilation unit."""

	module: str
	file: Optional[str] = None
	bindings: Optional[BindingTable] = None
	mono: Optional[MonoTable] = None
	slices: List[SliceInfo] = field(default_factory=list)
	diagnostics: List[Diagnostic] = field(default_factory=list)
	collected: Optional[CollectResult] = None

	@property
	def ok(self) -> bool:
		return not has_errors(self.diagnostics)

	def codes(self) -> List[str]:
		return [d.code or "" for d in self.diagnostics]

	def term_of(self, scope: str, name: str) -> Optional[TypeTerm]:
		"""The unresolved term of a binding (function name, `<unit>` or `<static>`)."""
		if self.collected is None:
			return None
		if scope == STATIC_SCOPE:
			return self.collected.statics.get(name)
		return self.collected.locals.get(scope, {}).get(name)

	def type_of(self, scope: str, name: str) -> Optional[TypeTerm]:
		"""The resolved term of a binding; None when unknown or conflicted."""
		term = self.term_of(scope, name)
		if term is None or self.bindings is None:
			return None
		try:
			return self.bindings.apply(term)
		except ConflictedBindingError:
			return None

	def to_json(self) -> dict:
		scopes: Dict[str, Dict[str, str]] = {}
		if self.collected is not None and self.bindings is not None:
			all_scopes = dict(self.collected.locals)
			all_scopes[STATIC_SCOPE] = self.collected.statics
			for scope, names in sorted(all_scopes.items()):
				rendered: Dict[str, str] = {}
				for name in sorted(names):
					resolved = self.type_of(scope, name)
					rendered[name] = str(resolved) if resolved is not None else "<conflict>"
				scopes[scope] = rendered
		return {
			"module": self.module,
			"ok": self.ok,
			"bindings": self.bindings.to_json() if self.bindings is not None else {},
			"types": scopes,
			"mono": self.mono.to_json() if self.mono is not None else {},
			"slices": [s.to_json() for s in sorted(self.slices, key=lambda s: s.label)],
			"diagnostics": [d.to_json() for d in self.diagnostics],
		}

	def dump(self) -> str:
		"""Deterministic JSON rendering (stable across runs of the same input)."""
		return json.dumps(self.to_json(), sort_keys=True, indent=2)


def resolve_program(program: Program, *, target: TargetProfile, file: Optional[str] = None) -> UnitResult:
	result = UnitResult(module=program.module, file=file)
	collected = collect(program, file=file)
	result.collected = collected
	result.diagnostics.extend(collected.diagnostics)

	resolved = resolve_constraints(collected.constraints, collected.supply)
	result.bindings = resolved.bindings
	result.diagnostics.extend(resolved.diagnostics)

	mono, mono_diags = monomorphize(collected.generics, collected.instances, resolved.bindings, target)
	result.mono = mono
	result.diagnostics.extend(mono_diags)

	for site in collected.slices:
		notes = conflict_notes(resolved.bindings, site.term)
		if notes:
			result.diagnostics.append(
				error(
					ErrorKind.UNRESOLVABLE_CONFLICT_PROPAGATION,
					f"cannot synthesize slice {site.label}: it depends on a conflicted slot",
					phase="slices",
					span=site.span,
					notes=notes,
				)
			)
			continue
		result.slices.append(
			finalize_slice(
				site,
				lambda term: materialize(term, resolved.bindings, target),
				target,
				result.diagnostics,
			)
		)
	logger.info("unit %s: %d diagnostics", program.module, len(result.diagnostics))
	return result


def resolve_source(
	source: str,
	*,
	target: Optional[TargetProfile] = None,
	module: str = "main",
	file: Optional[str] = None,
) -> UnitResult:
	"""Parse and resolve one unit; parse errors become parser-phase diagnostics."""
	target = target or TargetProfile()
	try:
		program = parse_program(source, module=module)
	except ParseError as exc:
		diag = error(ErrorKind.PARSE_ERROR, str(exc), phase="parser", span=Span.from_loc(exc.loc, file=file))
		return UnitResult(module=module, file=file, diagnostics=[diag])
	return resolve_program(program, target=target, file=file)


def resolve_units(
	units: Sequence[tuple[str, str]],
	*,
	target: Optional[TargetProfile] = None,
	jobs: int = 1,
) -> List[UnitResult]:
	"""
	Resolve `(name, source)` units, optionally on a thread pool.

	Results come back in input order. Units share nothing but `target`.
	"""
	target = target or TargetProfile()

	def one(unit: tuple[str, str]) -> UnitResult:
		name, source = unit
		return resolve_source(source, target=target, module=Path(name).stem or "main", file=name)

	if jobs <= 1 or len(units) <= 1:
		return [one(u) for u in units]
	with ThreadPoolExecutor(max_workers=jobs) as pool:
		return list(pool.map(one, units))


def _render_text(result: UnitResult, out) -> None:
	print(f"== {result.file or result.module}", file=out)
	data = result.to_json()
	for scope, names in data["types"].items():
		for name, rendered in names.items():
			print(f"  {scope}::{name}: {rendered}", file=out)
	for key, entry in data["mono"].get("entries", {}).items():
		print(f"  mono {key} = {entry['type']}", file=out)
	for info in data["slices"]:
		window = info["window"]
		print(f"  slice {info['label']}: {info['type']} window=[{window['start']}, {window['end']})", file=out)


def main(argv: list[str] | None = None) -> int:
	"""
	Resolve the given source files and print the resolved tables.

	With --json, prints one JSON document with every unit (diagnostics
	included) and an exit_code; otherwise prints tables to stdout and
	diagnostics to stderr. Exits 1 when any unit has an error.
	"""
	parser = argparse.ArgumentParser(prog="axisc", description="two-axis (mutability/staging) type resolution")
	parser.add_argument("source", type=Path, nargs="+", help="Path(s) to source file(s)")
	parser.add_argument(
		"--target-word-bits",
		type=int,
		choices=SUPPORTED_WORD_BITS,
		default=None,
		help="Target pointer width for isize/usize (default: host)",
	)
	parser.add_argument(
		"--json",
		action="store_true",
		help="Emit results and diagnostics as JSON",
	)
	parser.add_argument("-j", "--jobs", type=int, default=1, help="Resolve up to N units concurrently")
	parser.add_argument("-v", "--verbose", action="count", default=0, help="Log pipeline progress (-vv for debug)")
	args = parser.parse_args(argv)

	level = logging.WARNING
	if args.verbose == 1:
		level = logging.INFO
	elif args.verbose > 1:
		level = logging.DEBUG
	logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")

	word_bits = args.target_word_bits or _TEST_TARGET_WORD_BITS
	target = TargetProfile(word_bits) if word_bits else TargetProfile.host()
	units: List[tuple[str, str]] = []
	for path in args.source:
		try:
			units.append((str(path), path.read_text(encoding="utf-8")))
		except OSError as exc:
			msg = f"cannot read source: {exc.strerror or exc}"
			if args.json:
				print(json.dumps({"exit_code": 1, "diagnostics": [{"phase": "driver", "message": msg, "severity": "error", "file": str(path), "line": None, "column": None}]}))
			else:
				print(f"{path}:?:?: error: {msg}", file=sys.stderr)
			return 1

	results = resolve_units(units, target=target, jobs=args.jobs)
	exit_code = 0 if all(r.ok for r in results) else 1
	if args.json:
		payload = {
			"exit_code": exit_code,
			"target_word_bits": target.word_bits,
			"units": [r.to_json() for r in results],
		}
		print(json.dumps(payload, sort_keys=True, indent=2))
		return exit_code
	for r in results:
		_render_text(r, sys.stdout)
		for diag in r.diagnostics:
			print(diag.render(), file=sys.stderr)
	return exit_code


__all__ = [
	"UNIT_SCOPE",
	"STATIC_SCOPE",
	"UnitResult",
	"resolve_program",
	"resolve_source",
	"resolve_units",
	"main",
]
