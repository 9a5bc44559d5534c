"""Signature types: the formal parameter shapes exposed to callers."""

from __future__ import annotations
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Optional, Tuple

from .errors import ContractViolationError
from .types import FormalKind, Origin, Scalar, _canon_scalar

# Binding categories for formals whose representation is fixed by their kind
PAYLOAD_CATEGORY = "payload"
OPTIONS_CATEGORY = "options"
CANCELLATION_CATEGORY = "cancellation"
PROPERTY_BAG_CATEGORY = "property-bag"

# Return contracts
RAW_RESPONSE = "response"        # Opaque envelope, never part of equality
TYPED_RESPONSE = "typed-response"  # Envelope carrying an authored result type

_FIXED_CATEGORIES = {
    FormalKind.PAYLOAD_HANDLE: PAYLOAD_CATEGORY,
    FormalKind.OPTIONS_BAG: OPTIONS_CATEGORY,
    FormalKind.CANCELLATION: CANCELLATION_CATEGORY,
    FormalKind.PROPERTY_BAG: PROPERTY_BAG_CATEGORY,
}

VALUE_KINDS = frozenset({FormalKind.REQUIRED_VALUE, FormalKind.OPTIONAL_VALUE})
TRAILING_KINDS = frozenset({FormalKind.OPTIONS_BAG, FormalKind.CANCELLATION})


@dataclass(frozen=True)
class FormalParameter:
    """One formal parameter of a signature.

    Attributes:
        name: Formal name as emitted
        kind: Role of the formal in the signature
        has_default: Whether callers may omit it
        default: Default value when has_default (None is the absent sentinel)
        representation: Binding type category compared by overload resolution;
            defaults to the raw category for the kind
        authored: True when a hand-authored representation replaced the raw one
    """
    name: str
    kind: FormalKind
    has_default: bool = False
    default: Optional[Scalar] = None
    representation: Optional[str] = None
    authored: bool = False

    def __post_init__(self):
        if not self.name:
            raise ContractViolationError("formal name must be non-empty")
        if isinstance(self.kind, str):
            try:
                object.__setattr__(self, "kind", FormalKind(self.kind))
            except ValueError as e:
                raise ContractViolationError(
                    f"Formal {self.name} has unknown kind {self.kind!r}"
                ) from e
        if self.representation is None:
            if self.kind in VALUE_KINDS:
                raise ContractViolationError(
                    f"Value formal {self.name} needs a representation"
                )
            object.__setattr__(self, "representation", _FIXED_CATEGORIES[self.kind])
        if not self.has_default and self.default is not None:
            raise ContractViolationError(
                f"Formal {self.name} declares a default without has_default"
            )
        object.__setattr__(self, "default", _canon_scalar(self.default))

    def without_default(self) -> FormalParameter:
        """Same formal, required in form."""
        kind = FormalKind.REQUIRED_VALUE if self.kind in VALUE_KINDS else self.kind
        return replace(self, kind=kind, has_default=False, default=None)

    def describe(self) -> str:
        text = f"{self.name}: {self.kind.value}"
        if self.authored:
            text += f" <{self.representation}>"
        return text

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"name": self.name, "kind": self.kind.value}
        if self.has_default:
            data["has_default"] = True
            if self.default is not None:
                data["default"] = self.default
        if self.kind in VALUE_KINDS or self.authored:
            data["representation"] = self.representation
        if self.authored:
            data["authored"] = True
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> FormalParameter:
        return cls(
            name=data["name"],
            kind=data["kind"],
            has_default=bool(data.get("has_default", False)),
            default=data.get("default"),
            representation=data.get("representation"),
            authored=bool(data.get("authored", False)),
        )


@dataclass(frozen=True)
class Signature:
    """One concrete formal-parameter shape for an operation.

    Signatures recorded in the surface registry are immutable history:
    the formals of generation g never change once published.

    Attributes:
        operation_name: Operation this signature belongs to
        formals: Ordered formal parameters
        generation: Order of introduction for the operation (0 = first)
        origin: protocol (generated) or overlay (hand-authored)
        entry_point: Callable name; defaults to the operation name
        returns: Return contract, RAW_RESPONSE or TYPED_RESPONSE
        result_type: Authored result type carried by a typed response
        introduced_in: Release label that first published this signature
    """
    operation_name: str
    formals: Tuple[FormalParameter, ...]
    generation: int = 0
    origin: Origin = Origin.PROTOCOL
    entry_point: Optional[str] = None
    returns: str = RAW_RESPONSE
    result_type: Optional[str] = None
    introduced_in: Optional[str] = field(default=None, compare=False)

    def __post_init__(self):
        if not self.operation_name:
            raise ContractViolationError("operation_name must be non-empty")
        if not isinstance(self.formals, tuple):
            object.__setattr__(self, "formals", tuple(self.formals))
        if isinstance(self.origin, str):
            object.__setattr__(self, "origin", Origin(self.origin))
        if not isinstance(self.generation, int) or self.generation < 0:
            raise ContractViolationError(
                f"generation must be a non-negative int, got {self.generation!r}"
            )
        if self.entry_point is None:
            object.__setattr__(self, "entry_point", self.operation_name)
        if self.returns not in (RAW_RESPONSE, TYPED_RESPONSE):
            raise ContractViolationError(f"Unknown return contract: {self.returns}")
        if (self.returns == TYPED_RESPONSE) != (self.result_type is not None):
            raise ContractViolationError(
                "result_type is required for, and only for, typed responses"
            )
        names = [f.name for f in self.formals]
        if len(names) != len(set(names)):
            raise ContractViolationError(
                f"Duplicate formal names in signature for {self.operation_name}: {names}"
            )

    @property
    def is_protocol(self) -> bool:
        return self.origin is Origin.PROTOCOL

    @property
    def trailing(self) -> Optional[FormalParameter]:
        return self.formals[-1] if self.formals else None

    def shape(self) -> Tuple[Tuple[str, FormalKind, str], ...]:
        """Formal sequence used for equality between releases.

        Defaults and the return contract are not part of the shape.
        """
        return tuple((f.name, f.kind, f.representation) for f in self.formals)

    def link_shape(self) -> Tuple[str, ...]:
        """Positional binding categories, ignoring defaults."""
        return tuple(f.representation for f in self.formals)

    def min_arity(self) -> int:
        """Number of leading formals a call must supply."""
        count = len(self.formals)
        while count and self.formals[count - 1].has_default:
            count -= 1
        return count

    def max_arity(self) -> int:
        return len(self.formals)

    def formal(self, name: str) -> Optional[FormalParameter]:
        for f in self.formals:
            if f.name == name:
                return f
        return None

    def has_kind(self, kind: FormalKind) -> bool:
        return any(f.kind is kind for f in self.formals)

    def with_generation(self, generation: int) -> Signature:
        return replace(self, generation=generation)

    def label(self) -> str:
        """Short identifier used in reports: origin, generation, entry point."""
        return f"{self.entry_point}#{self.origin.value}:{self.generation}"

    def describe(self) -> str:
        return f"({', '.join(f.describe() for f in self.formals)})"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for YAML serialization."""
        data: Dict[str, Any] = {
            "generation": self.generation,
            "origin": self.origin.value,
            "formals": [f.to_dict() for f in self.formals],
        }
        if self.entry_point != self.operation_name:
            data["entry_point"] = self.entry_point
        if self.returns != RAW_RESPONSE:
            data["returns"] = self.returns
            data["result_type"] = self.result_type
        if self.introduced_in is not None:
            data["introduced_in"] = self.introduced_in
        return data

    @classmethod
    def from_dict(cls, operation_name: str, data: Dict[str, Any]) -> Signature:
        """Create from dictionary (YAML deserialization)."""
        return cls(
            operation_name=operation_name,
            formals=tuple(FormalParameter.from_dict(f) for f in data.get("formals", [])),
            generation=data.get("generation", 0),
            origin=data.get("origin", Origin.PROTOCOL.value),
            entry_point=data.get("entry_point"),
            returns=data.get("returns", RAW_RESPONSE),
            result_type=data.get("result_type"),
            introduced_in=data.get("introduced_in"),
        )


__all__ = [
    "FormalParameter",
    "Signature",
    "PAYLOAD_CATEGORY",
    "OPTIONS_CATEGORY",
    "CANCELLATION_CATEGORY",
    "PROPERTY_BAG_CATEGORY",
    "RAW_RESPONSE",
    "TYPED_RESPONSE",
    "VALUE_KINDS",
    "TRAILING_KINDS",
]
