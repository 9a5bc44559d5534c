"""Signature synthesis from an operation model.

The composition rule is fixed:

1. required non-body parameters in declared order, as required values
2. one payload handle when the operation carries a body
3. optional non-body parameters in declared order, with their declared defaults
4. a trailing options bag defaulting to "use defaults"

Parameters always keep their raw representation; no model or enumeration
types are synthesized.
"""

from typing import List, Optional

from .config import PlannerConfig
from .errors import MalformedOperation
from .signature import FormalParameter, Signature
from .types import FormalKind, Operation, Origin


def check_operation(operation: Operation, config: Optional[PlannerConfig] = None) -> None:
    """Enforce the parser's input contract.

    Raises:
        MalformedOperation: If more than one body parameter is present, two
            parameters share a name, or a non-body parameter takes the name
            of a synthesized formal
    """
    config = config or PlannerConfig()
    bodies = [p.name for p in operation.parameters if p.is_body]
    if len(bodies) > 1:
        raise MalformedOperation(
            operation.name, f"multiple body parameters: {', '.join(bodies)}"
        )
    seen = set()
    for param in operation.parameters:
        if param.name in seen:
            raise MalformedOperation(operation.name, f"duplicate parameter name {param.name}")
        seen.add(param.name)

    reserved = {config.options_name: "options bag"}
    if operation.has_body:
        reserved[config.payload_name] = "payload"
    for param in operation.parameters:
        if not param.is_body and param.name in reserved:
            raise MalformedOperation(
                operation.name,
                f"parameter {param.name} collides with the {reserved[param.name]} formal",
            )


def _leading_formals(operation: Operation, config: PlannerConfig) -> List[FormalParameter]:
    formals = [
        FormalParameter(
            name=p.name,
            kind=FormalKind.REQUIRED_VALUE,
            representation=p.value_type,
        )
        for p in operation.ordered()
        if p.required and not p.is_body
    ]
    if operation.has_body:
        formals.append(FormalParameter(name=config.payload_name, kind=FormalKind.PAYLOAD_HANDLE))
    return formals


def _options_formal(config: PlannerConfig) -> FormalParameter:
    return FormalParameter(name=config.options_name, kind=FormalKind.OPTIONS_BAG, has_default=True)


def synthesize(
    operation: Operation,
    config: Optional[PlannerConfig] = None,
    generation: int = 0,
) -> Signature:
    """Build the canonical protocol signature for an operation.

    Args:
        operation: Normalized operation model
        config: Formal naming configuration (defaults when None)
        generation: Generation number to stamp on the result

    Returns:
        Protocol Signature following the composition rule

    Raises:
        MalformedOperation: If the operation violates the input contract
    """
    config = config or PlannerConfig()
    check_operation(operation, config)

    formals = _leading_formals(operation, config)
    formals.extend(
        FormalParameter(
            name=p.name,
            kind=FormalKind.OPTIONAL_VALUE,
            has_default=True,
            default=p.default,
            representation=p.value_type,
        )
        for p in operation.ordered()
        if not p.required and not p.is_body
    )
    formals.append(_options_formal(config))

    return Signature(
        operation_name=operation.name,
        formals=tuple(formals),
        generation=generation,
        origin=Origin.PROTOCOL,
    )


def synthesize_collapsed(
    operation: Operation,
    config: Optional[PlannerConfig] = None,
    generation: int = 0,
) -> Signature:
    """Build the property-bag form of the protocol signature.

    All optional parameters are addressed by string key through a single
    bag formal, so the signature never grows when optionals are added.
    """
    config = config or PlannerConfig()
    check_operation(operation, config)
    for param in operation.parameters:
        if param.required and not param.is_body and param.name == config.bag_name:
            raise MalformedOperation(
                operation.name,
                f"parameter {param.name} collides with the property bag formal",
            )

    formals = _leading_formals(operation, config)
    formals.append(
        FormalParameter(name=config.bag_name, kind=FormalKind.PROPERTY_BAG, has_default=True)
    )
    formals.append(_options_formal(config))

    return Signature(
        operation_name=operation.name,
        formals=tuple(formals),
        generation=generation,
        origin=Origin.PROTOCOL,
    )


__all__ = [
    "check_operation",
    "synthesize",
    "synthesize_collapsed",
]
