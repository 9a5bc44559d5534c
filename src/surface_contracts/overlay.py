"""Overlay merge rule for hand-authored convenience signatures.

Convenience signatures attach to the same operation name as the generated
ones. They stay structurally distinguishable from protocol signatures
because every overlay:

- ends in a cancellation formal instead of the options bag
- exposes each non-body parameter at most once, either raw or with a richer
  authored representation
- may replace the payload handle with an authored body representation
- may return an enriched envelope carrying a typed result

The rule is a precondition checked before ambiguity analysis runs.
"""

from __future__ import annotations
from dataclasses import dataclass, field, replace
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple
import yaml

from .config import PlannerConfig
from .errors import OverlayRuleViolation
from .signature import Signature
from .types import FormalKind, Operation, Origin


def check_overlay(
    overlay: Signature,
    operation: Operation,
    config: Optional[PlannerConfig] = None,
) -> None:
    """Verify one overlay signature against the merge rule.

    Args:
        overlay: Hand-authored signature
        operation: Current operation model the overlay attaches to
        config: Supplies the cancellation formal name (defaults when None)

    Raises:
        OverlayRuleViolation: If any substitution rule is broken
    """
    config = config or PlannerConfig()

    def violation(reason: str) -> OverlayRuleViolation:
        return OverlayRuleViolation(operation.name, reason, overlay.label())

    if overlay.origin is not Origin.OVERLAY:
        raise violation("signature is not marked as overlay")
    if overlay.operation_name != operation.name:
        raise violation(f"attached to {overlay.operation_name}")
    if overlay.entry_point != operation.name:
        raise violation(f"entry point {overlay.entry_point} is not the operation name")
    if not overlay.formals or overlay.formals[-1].kind is not FormalKind.CANCELLATION:
        raise violation("last formal must be a cancellation")
    if overlay.formals[-1].name != config.cancellation_name:
        raise violation(
            f"cancellation formal must be named {config.cancellation_name}, "
            f"got {overlay.formals[-1].name}"
        )

    # Formal names are unique, so each parameter is exposed at most once
    payloads = 0
    for formal in overlay.formals[:-1]:
        if formal.kind in (FormalKind.OPTIONS_BAG, FormalKind.PROPERTY_BAG):
            raise violation(f"{formal.name} is a protocol-only {formal.kind.value}")
        if formal.kind is FormalKind.CANCELLATION:
            raise violation(f"cancellation formal {formal.name} is not last")

        if formal.kind is FormalKind.PAYLOAD_HANDLE:
            if not operation.has_body:
                raise violation(f"{formal.name} exposes a body the operation does not carry")
            payloads += 1
            if payloads > 1:
                raise violation("more than one body formal")
            continue

        # Value formals map onto non-body parameters by name
        param = operation.parameter(formal.name)
        if param is None or param.is_body:
            raise violation(f"{formal.name} is not a non-body parameter of the operation")
        if param.required and formal.kind is FormalKind.OPTIONAL_VALUE:
            raise violation(f"required parameter {formal.name} exposed as optional")
        if not formal.authored and formal.representation != param.value_type:
            raise violation(
                f"{formal.name} changes representation {param.value_type} -> "
                f"{formal.representation} without marking it authored"
            )


@dataclass(frozen=True)
class OverlaySet:
    """Hand-authored signatures, grouped by operation name.

    Overlay generations are ordinals within their operation; they are never
    recorded in the surface registry.
    """
    signatures: Mapping[str, Tuple[Signature, ...]] = field(default_factory=dict)

    def __post_init__(self):
        frozen = {}
        for name, sigs in dict(self.signatures).items():
            sigs = tuple(sigs)
            for sig in sigs:
                if sig.origin is not Origin.OVERLAY:
                    raise OverlayRuleViolation(name, "protocol signature in overlay set", sig.label())
                if sig.operation_name != name:
                    raise OverlayRuleViolation(
                        name, f"signature for {sig.operation_name} filed here", sig.label()
                    )
            frozen[name] = sigs
        object.__setattr__(self, "signatures", MappingProxyType(frozen))

    def for_operation(self, name: str) -> Tuple[Signature, ...]:
        return self.signatures.get(name, ())

    def operations(self) -> List[str]:
        return list(self.signatures)

    def check(
        self, operation: Operation, config: Optional[PlannerConfig] = None
    ) -> Tuple[Signature, ...]:
        """Check every overlay of an operation and return them."""
        overlays = self.for_operation(operation.name)
        for overlay in overlays:
            check_overlay(overlay, operation, config)
        return overlays

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> OverlaySet:
        """Create from dictionary (YAML deserialization).

        Each operation maps to a list of signature entries; generations are
        assigned from list position.
        """
        signatures: Dict[str, Tuple[Signature, ...]] = {}
        for name, entries in (data or {}).items():
            signatures[name] = tuple(
                replace(
                    Signature.from_dict(name, {**entry, "origin": Origin.OVERLAY.value}),
                    generation=i,
                )
                for i, entry in enumerate(entries or [])
            )
        return cls(signatures=signatures)

    @classmethod
    def from_yaml(cls, path: Path) -> OverlaySet:
        """Load from a specific YAML file."""
        with open(path) as f:
            data = yaml.safe_load(f)
        return cls.from_dict(data or {})

    def to_dict(self) -> Dict[str, Any]:
        return {
            name: [s.to_dict() for s in sigs] for name, sigs in self.signatures.items()
        }


__all__ = [
    "check_overlay",
    "OverlaySet",
]
