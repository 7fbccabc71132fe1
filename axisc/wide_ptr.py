# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Wide-pointer (slice) shape synthesis and metadata finalization.

`&seq[a..b]` produces `(ptr, meta)`: a pointer whose pointee is the backing
sequence's element term (shared, so writes through the slice reach the
backing storage) and an unsigned length.

The work is split in two:

  - `synthesize_slice` runs during collection. It builds the tuple term from
    fresh variables and emits the staging links between the pointer, the
    element and the metadata.
  - `finalize_slice` runs after monomorphization. It binds the metadata width
    from the target profile, checks the width against the backing length and
    attaches the logical bounds window.

No bounds are checked here; the window only documents which offsets are
defined relative to the pointer's current address.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from axisc.constraints import ConstraintKind, ConstraintOrigin, ConstraintSet
from axisc.core.diagnostics import Diagnostic, ErrorKind, error
from axisc.core.lattice import Axis, VarSupply
from axisc.core.span import Span
from axisc.core.target import TargetProfile, bind_widths
from axisc.core.types_core import (
	INT_WIDTHS,
	Array,
	Pointer,
	Primitive,
	Tuple,
	TypeTerm,
	UNSIGNED_NAMES,
	top_slots,
)

logger = logging.getLogger(__name__)

DEFAULT_METADATA = "usize"


class SliceShapeError(ValueError):
	"""Raised when a slice is taken of something that is not a sequence."""

	def __init__(self, message: str, *, loc: object | None = None) -> None:
		super().__init__(message)
		self.loc = loc


@dataclass(frozen=True)
class BoundsWindow:
	"""
	Logical window `[start, end)` of defined element offsets.

	Offsets are relative to the wide pointer's current address. `end` is None
	when the backing length is not statically known.
	"""

	start: int = 0
	end: Optional[int] = None

	def shifted(self, delta: int) -> "BoundsWindow":
		"""Window seen after moving the pointer component by `delta` elements."""
		return BoundsWindow(self.start - delta, None if self.end is None else self.end - delta)

	def contains(self, offset: int) -> bool:
		if offset < self.start:
			return False
		return self.end is None or offset < self.end

	@property
	def length(self) -> Optional[int]:
		return None if self.end is None else self.end - self.start

	def to_json(self) -> dict:
		return {"start": self.start, "end": self.end}


@dataclass
class SliceSite:
	"""A slice expression as seen by the collector (slots still variable)."""

	label: str
	term: Tuple
	backing_length: Optional[int]
	# Explicit unsigned annotation that narrows the metadata, if any.
	meta_annotation: Optional[str]
	span: Span = field(default_factory=Span)

	def relabeled(self, label: str, term: Tuple) -> "SliceSite":
		return SliceSite(label, term, self.backing_length, self.meta_annotation, self.span)


@dataclass
class SliceInfo:
	"""Finalized slice: concrete wide-pointer term plus its bounds window."""

	label: str
	term: TypeTerm
	metadata: str
	metadata_bits: int
	window: BoundsWindow
	span: Span = field(default_factory=Span)

	def to_json(self) -> dict:
		return {
			"label": self.label,
			"type": str(self.term),
			"metadata": self.metadata,
			"metadata_bits": self.metadata_bits,
			"window": self.window.to_json(),
		}


def slice_element(seq: TypeTerm) -> tuple[TypeTerm, Optional[int]]:
	"""
	Return the element term and backing length of a sliceable term.

	Accepts an array, a pointer to an array, or an existing wide pointer.
	Re-slicing a wide pointer keeps its element but loses the static length.
	"""
	if isinstance(seq, Array):
		return seq.elem, seq.length
	if isinstance(seq, Pointer) and isinstance(seq.pointee, Array):
		return seq.pointee.elem, seq.pointee.length
	if is_wide_pointer(seq):
		assert isinstance(seq, Tuple)
		ptr = seq.elements[0]
		assert isinstance(ptr, Pointer)
		return ptr.pointee, None
	raise SliceShapeError(f"cannot slice a value of type {seq}")


def is_wide_pointer(term: TypeTerm) -> bool:
	if not isinstance(term, Tuple) or len(term.elements) != 2:
		return False
	ptr, meta = term.elements
	return isinstance(ptr, Pointer) and isinstance(meta, Primitive) and meta.name in UNSIGNED_NAMES


def metadata_annotation(expected: Optional[TypeTerm]) -> Optional[str]:
	"""Pick the metadata name requested by an expected wide-pointer type."""
	if expected is not None and is_wide_pointer(expected):
		meta = expected.elements[1]  # type: ignore[attr-defined]
		return meta.name
	return None


def annotation_fits(name: str, length: Optional[int]) -> bool:
	"""
	Whether a fixed-width metadata type can hold `length`.

	`usize` depends on the target and is checked when the slice is finalized.
	"""
	if length is None or name not in INT_WIDTHS:
		return True
	return (1 << INT_WIDTHS[name]) - 1 >= length


def synthesize_slice(
	seq: TypeTerm,
	supply: VarSupply,
	constraints: ConstraintSet,
	origin: ConstraintOrigin,
	*,
	expected: Optional[TypeTerm] = None,
) -> tuple[Tuple, Optional[int], Optional[str]]:
	"""
	Build the `(ptr, meta)` term for slicing `seq`.

	Returns the term, the backing length (if known) and the explicit metadata
	annotation (if any).
	"""
	elem, length = slice_element(seq)
	annotation = metadata_annotation(expected)
	meta_name = annotation or DEFAULT_METADATA
	if not annotation_fits(meta_name, length):
		meta_name = DEFAULT_METADATA
	ptr = Pointer(supply.fresh_mut(), supply.fresh_stage(), elem)
	meta = Primitive(meta_name, supply.fresh_mut(), supply.fresh_stage())
	for elem_stage in top_slots(elem, Axis.STAGING):
		constraints.unify(ptr.ptr_stage, elem_stage, origin)
	if isinstance(seq, Array) and seq.elem.top() is None:
		constraints.unify(ptr.ptr_stage, seq.elem_stage, origin)
	constraints.unify(meta.stage, ptr.ptr_stage, origin, kind=ConstraintKind.POINTER_METADATA)
	return Tuple((ptr, meta)), length, annotation


def finalize_slice(
	site: SliceSite,
	materialize: Callable[[TypeTerm], TypeTerm],
	target: TargetProfile,
	diagnostics: List[Diagnostic],
) -> SliceInfo:
	"""
	Bind metadata width and window for one slice site.

	`materialize` substitutes resolved values (it raises on conflicted slots;
	the caller is expected to have reported those). Widths of `isize`/`usize`
	are bound here.
	"""
	term = site.term
	meta_name = site.meta_annotation or DEFAULT_METADATA
	length = site.backing_length
	if length is not None and meta_name != DEFAULT_METADATA and target.unsigned_max(meta_name) < length:
		diagnostics.append(
			error(
				ErrorKind.SLICE_METADATA_TOO_NARROW,
				f"slice metadata type '{meta_name}' cannot represent backing length {length}; using '{DEFAULT_METADATA}'",
				phase="slices",
				span=site.span,
			)
		)
		meta_name = DEFAULT_METADATA
		ptr, meta = term.elements
		assert isinstance(meta, Primitive)
		term = Tuple((ptr, Primitive(DEFAULT_METADATA, meta.mut, meta.stage)))
	if length is not None and meta_name == DEFAULT_METADATA and target.unsigned_max(meta_name) < length:
		diagnostics.append(
			error(
				ErrorKind.SLICE_METADATA_TOO_NARROW,
				f"'{DEFAULT_METADATA}' is {target.word_bits} bits on this target and cannot represent backing length {length}",
				phase="slices",
				span=site.span,
			)
		)
	concrete = bind_widths(materialize(term), target)
	bits = target.width_of(meta_name)
	logger.debug("slice %s: %s (meta %s:%d)", site.label, concrete, meta_name, bits)
	return SliceInfo(
		label=site.label,
		term=concrete,
		metadata=meta_name,
		metadata_bits=bits,
		window=BoundsWindow(0, length),
		span=site.span,
	)


__all__ = [
	"DEFAULT_METADATA",
	"SliceShapeError",
	"BoundsWindow",
	"SliceSite",
	"SliceInfo",
	"slice_element",
	"is_wide_pointer",
	"metadata_annotation",
	"annotation_fits",
	"synthesize_slice",
	"finalize_slice",
]
