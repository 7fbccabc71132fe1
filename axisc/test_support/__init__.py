# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Shared helpers for tests that run source snippets through the pipeline.

Snippets are dedented so test sources can be written as indented triple-quoted
strings next to the assertions that check them.
"""

from __future__ import annotations

import textwrap
from typing import List, Optional

from axisc.collector import UNIT_SCOPE, CollectResult, collect
from axisc.core.target import TargetProfile
from axisc.driver import UnitResult, resolve_source
from axisc.parser import parse_program


def resolve(source: str, *, word_bits: int = 64, module: str = "main") -> UnitResult:
	"""Run the whole pipeline on `source` for a target of `word_bits`."""
	return resolve_source(textwrap.dedent(source), target=TargetProfile(word_bits), module=module)


def collect_source(source: str, *, module: str = "main") -> CollectResult:
	"""Parse and collect `source` without resolving."""
	return collect(parse_program(textwrap.dedent(source), module=module))


def type_str(result: UnitResult, name: str, scope: str = UNIT_SCOPE) -> Optional[str]:
	"""Rendered resolved type of a binding (None when unknown or conflicted)."""
	term = result.type_of(scope, name)
	return str(term) if term is not None else None


def codes(result: UnitResult) -> List[str]:
	return result.codes()


__all__ = ["resolve", "collect_source", "type_str", "codes"]
