"""Core contract types for the operation model."""

import math
import enum
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from .errors import ContractViolationError

# Type definitions
Scalar = bool | int | float | str

# Raw representation used when the service description declares none
DEFAULT_VALUE_TYPE = "string"


class ParameterRole(enum.Enum):
    """Where a parameter travels in the remote request."""
    PATH = "path"
    QUERY = "query"
    HEADER = "header"
    BODY = "body"


class FormalKind(enum.Enum):
    """Kind of a formal parameter in an emitted signature.

    The first four are produced by the composition rule. CANCELLATION only
    appears in overlay signatures, PROPERTY_BAG only in collapsed primaries.
    """
    REQUIRED_VALUE = "required-value"
    OPTIONAL_VALUE = "optional-value"
    PAYLOAD_HANDLE = "payload-handle"
    OPTIONS_BAG = "options-bag"
    CANCELLATION = "cancellation"
    PROPERTY_BAG = "property-bag"


class Origin(enum.Enum):
    """Who authored a signature."""
    PROTOCOL = "protocol"  # Machine-generated
    OVERLAY = "overlay"    # Hand-authored convenience


def _canon_scalar(v: Any) -> Optional[Scalar]:
    """Canonicalize a declared default, rejecting unsupported types."""
    if v is None:
        return None
    if isinstance(v, bool):
        return v
    if isinstance(v, int):
        return v
    if isinstance(v, float):
        if not math.isfinite(v):
            raise ContractViolationError(f"Non-finite float default: {v}")
        return v
    if isinstance(v, str):
        return v
    raise ContractViolationError(f"Non-scalar default type: {type(v).__name__}")


@dataclass(frozen=True)
class Parameter:
    """One parameter of a remote operation.

    Attributes:
        name: Identifier, unique within the operation
        role: Where the value travels (path, query, header, body)
        required: As declared by the service description
        declared_order: Position in the source description
        value_type: Raw/primitive representation, e.g. "string" or "integer"
        default: Service-declared default, None for the absent sentinel
    """
    name: str
    role: ParameterRole
    required: bool
    declared_order: int
    value_type: str = DEFAULT_VALUE_TYPE
    default: Optional[Scalar] = None

    def __post_init__(self):
        if not self.name:
            raise ContractViolationError("parameter name must be non-empty")
        if isinstance(self.role, str):
            try:
                object.__setattr__(self, "role", ParameterRole(self.role))
            except ValueError as e:
                raise ContractViolationError(
                    f"Parameter {self.name} has unknown role {self.role!r}"
                ) from e
        if not isinstance(self.required, bool):
            raise ContractViolationError(
                f"Parameter {self.name}: required must be bool, "
                f"got {type(self.required).__name__}"
            )
        if not isinstance(self.declared_order, int) or isinstance(self.declared_order, bool):
            raise ContractViolationError(
                f"declared_order must be int, got {type(self.declared_order).__name__}"
            )
        if not self.value_type:
            raise ContractViolationError(f"Parameter {self.name} has empty value_type")
        object.__setattr__(self, "default", _canon_scalar(self.default))

    @property
    def is_body(self) -> bool:
        return self.role is ParameterRole.BODY

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "name": self.name,
            "role": self.role.value,
            "required": self.required,
            "declared_order": self.declared_order,
            "type": self.value_type,
        }
        if self.default is not None:
            data["default"] = self.default
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any], position: int = 0) -> "Parameter":
        """Create from a YAML mapping; declared order defaults to list position."""
        return cls(
            name=data["name"],
            role=data.get("role", "query"),
            required=data.get("required", False),
            declared_order=data.get("declared_order", position),
            value_type=data.get("type", DEFAULT_VALUE_TYPE),
            default=data.get("default"),
        )


@dataclass(frozen=True)
class Operation:
    """Normalized model of one remote operation.

    Identity is by name: two models with the same name in different
    releases are the same logical operation.
    """
    name: str
    parameters: Tuple[Parameter, ...] = field(default_factory=tuple)

    def __post_init__(self):
        if not self.name:
            raise ContractViolationError("operation name must be non-empty")
        # Convert list to tuple if needed
        if not isinstance(self.parameters, tuple):
            object.__setattr__(self, "parameters", tuple(self.parameters))
        for param in self.parameters:
            if not isinstance(param, Parameter):
                raise ContractViolationError(
                    f"parameters must be Parameter, got {type(param).__name__}"
                )

    @property
    def has_body(self) -> bool:
        return any(p.is_body for p in self.parameters)

    def ordered(self) -> Tuple[Parameter, ...]:
        """Parameters sorted by declared order (stable for ties)."""
        return tuple(sorted(self.parameters, key=lambda p: p.declared_order))

    def parameter(self, name: str) -> Optional[Parameter]:
        for param in self.parameters:
            if param.name == name:
                return param
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "parameters": [p.to_dict() for p in self.parameters],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Operation":
        """Create from dictionary (YAML deserialization)."""
        params = data.get("parameters") or []
        return cls(
            name=data["name"],
            parameters=tuple(Parameter.from_dict(p, i) for i, p in enumerate(params)),
        )


__all__ = [
    "Scalar",
    "DEFAULT_VALUE_TYPE",
    "ParameterRole",
    "FormalKind",
    "Origin",
    "Parameter",
    "Operation",
]
