"""Emitter-facing view of an operation's surface.

The emitter materializes one callable per entry. Exactly one protocol
generation, the latest, is the primary recommended call shape; every other
entry forwards to it, passing the defaults the primary would use for the
formals the entry does not expose.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Iterable, Mapping, Optional, Sequence, Tuple

from .errors import ContractViolationError
from .signature import Signature
from .types import FormalKind, Scalar


@dataclass(frozen=True)
class SurfaceEntry:
    """One callable to emit.

    Attributes:
        signature: Signature to materialize
        primary: True for the single recommended call shape
        delegates_to: Primary generation this entry forwards to
        superseded_by: Later protocol generation with the same binding shape
            under the same entry point; both are one callable to a linker
        filled_defaults: Primary formals this entry does not expose, with the
            defaults the forwarding body passes for them
        bag_keys: Entry formals packed into the primary's property bag
    """
    signature: Signature
    primary: bool = False
    delegates_to: Optional[int] = None
    superseded_by: Optional[int] = None
    filled_defaults: Mapping[str, Optional[Scalar]] = field(default_factory=dict)
    bag_keys: Tuple[str, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "filled_defaults", MappingProxyType(dict(self.filled_defaults)))

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "label": self.signature.label(),
            "signature": self.signature.describe(),
            "primary": self.primary,
        }
        if self.delegates_to is not None:
            data["delegates_to"] = self.delegates_to
        if self.superseded_by is not None:
            data["superseded_by"] = self.superseded_by
        if self.filled_defaults:
            data["filled_defaults"] = dict(self.filled_defaults)
        if self.bag_keys:
            data["bag_keys"] = list(self.bag_keys)
        return data


@dataclass(frozen=True)
class EmittedSurface:
    """Ordered entries for one operation: protocol generations, then overlays."""
    operation_name: str
    entries: Tuple[SurfaceEntry, ...]

    @property
    def primary(self) -> SurfaceEntry:
        return next(e for e in self.entries if e.primary)

    def entry(self, generation: int, overlay: bool = False) -> Optional[SurfaceEntry]:
        for e in self.entries:
            if e.signature.generation == generation and e.signature.is_protocol != overlay:
                return e
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "operation": self.operation_name,
            "entries": [e.to_dict() for e in self.entries],
        }


def _forwarding(entry: Signature, primary: Signature) -> Tuple[Dict[str, Optional[Scalar]], Tuple[str, ...]]:
    exposed = {f.name for f in entry.formals}
    filled = {
        f.name: f.default
        for f in primary.formals
        if f.kind is FormalKind.OPTIONAL_VALUE and f.name not in exposed
    }
    bag_keys: Tuple[str, ...] = ()
    if primary.has_kind(FormalKind.PROPERTY_BAG):
        bag_keys = tuple(
            f.name
            for f in entry.formals
            if f.kind in (FormalKind.REQUIRED_VALUE, FormalKind.OPTIONAL_VALUE)
            and primary.formal(f.name) is None
        )
    return filled, bag_keys


def build_surface(history: Sequence[Signature], overlays: Iterable[Signature] = ()) -> EmittedSurface:
    """Describe every callable the emitter must materialize for an operation.

    Args:
        history: Protocol generations, ordered (registry history plus any
            accepted proposals)
        overlays: Hand-authored signatures for the same operation

    Raises:
        ContractViolationError: If history is empty or out of order
    """
    history = tuple(history)
    if not history:
        raise ContractViolationError("cannot build a surface without protocol history")
    for i, signature in enumerate(history):
        if signature.generation != i:
            raise ContractViolationError(
                f"{signature.operation_name}: history out of order at generation {i}"
            )
    primary = history[-1]

    latest_by_shape: Dict[Tuple[str, Tuple[str, ...]], int] = {}
    for signature in history:
        latest_by_shape[(signature.entry_point, signature.link_shape())] = signature.generation

    entries = []
    for signature in history:
        if signature is primary:
            entries.append(SurfaceEntry(signature=signature, primary=True))
            continue
        superseded = latest_by_shape[(signature.entry_point, signature.link_shape())]
        filled, bag_keys = _forwarding(signature, primary)
        entries.append(SurfaceEntry(
            signature=signature,
            delegates_to=primary.generation,
            superseded_by=superseded if superseded != signature.generation else None,
            filled_defaults=filled,
            bag_keys=bag_keys,
        ))

    for overlay in overlays:
        filled, bag_keys = _forwarding(overlay, primary)
        entries.append(SurfaceEntry(
            signature=overlay,
            delegates_to=primary.generation,
            filled_defaults=filled,
            bag_keys=bag_keys,
        ))

    return EmittedSurface(operation_name=primary.operation_name, entries=tuple(entries))


__all__ = [
    "SurfaceEntry",
    "EmittedSurface",
    "build_surface",
]
