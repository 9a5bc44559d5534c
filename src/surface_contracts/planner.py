"""Evolution planning for operation surfaces.

Given a new operation model and the recorded history of that operation,
the planner computes the signatures a release must append so the new
surface is a strict superset of the old one:

- no history: the synthesized signature becomes generation 0
- same shape as the latest generation: nothing to append
- only optional parameters inserted: a forwarding generation that binds
  every call shape the previous primary accepted, then a new primary
- anything else: IncompatibleOperationChange, left to a human

Planning is pure. It never touches the registry, so running it twice on
the same inputs proposes the same signatures.
"""

from __future__ import annotations
import enum
import logging
from dataclasses import dataclass, replace
from typing import Iterable, List, Mapping, Optional, Sequence, Tuple

from .config import PlannerConfig
from .errors import ContractViolationError, IncompatibleOperationChange
from .signature import FormalParameter, Signature
from .synthesizer import synthesize, synthesize_collapsed
from .types import FormalKind, Operation

logger = logging.getLogger(__name__)


class PlanOutcome(enum.Enum):
    """How a plan changes an operation's surface."""
    CREATED = "created"              # First emission, generation 0
    UNCHANGED = "unchanged"          # Nothing appended
    EXTENDED = "extended"            # Forwarding generation plus new primary
    BAG_COLLAPSED = "bag-collapsed"  # Forwarding generation plus property-bag primary


@dataclass(frozen=True)
class Plan:
    """Result of planning one operation against its history.

    Attributes:
        operation_name: Operation being planned
        outcome: Which evolution case applied
        synthesized: Fresh signature from the new operation model
        proposed: New protocol signatures, consecutive generations
        previous: Latest recorded generation, None for a new operation
        base_length: History length the plan was computed against
        inserted: Names of optional parameters added by this plan
    """
    operation_name: str
    outcome: PlanOutcome
    synthesized: Signature
    proposed: Tuple[Signature, ...] = ()
    previous: Optional[Signature] = None
    base_length: int = 0
    inserted: Tuple[str, ...] = ()

    @property
    def changed(self) -> bool:
        return bool(self.proposed)

    @property
    def primary(self) -> Optional[Signature]:
        """Recommended call shape after this plan is applied."""
        if self.proposed:
            return self.proposed[-1]
        return self.previous


def _describe(signature: Signature) -> List[str]:
    return [f.describe() for f in signature.formals]


def _incompatible(previous: Signature, fresh: Signature, reason: str) -> IncompatibleOperationChange:
    return IncompatibleOperationChange(
        previous.operation_name, _describe(previous), _describe(fresh), reason
    )


def _key(formal: FormalParameter) -> Tuple[str, FormalKind, str]:
    return (formal.name, formal.kind, formal.representation)


def inserted_optionals(previous: Signature, fresh: Signature) -> Tuple[str, ...]:
    """Names of optional formals inserted between two signatures.

    The previous formals must survive in the fresh signature as an
    order-preserving subsequence, with the required/payload prefix and the
    trailing options bag unchanged, and only optional values inserted.

    Raises:
        IncompatibleOperationChange: For any other difference
    """
    if not previous.formals or not fresh.formals:
        raise _incompatible(previous, fresh, "signature has no formals")
    if _key(previous.formals[-1]) != _key(fresh.formals[-1]):
        raise _incompatible(previous, fresh, "trailing options formal changed")

    old_body = previous.formals[:-1]
    new_body = fresh.formals[:-1]
    old_lead = [_key(f) for f in old_body if f.kind is not FormalKind.OPTIONAL_VALUE]
    new_lead = [_key(f) for f in new_body if f.kind is not FormalKind.OPTIONAL_VALUE]
    if old_lead != new_lead:
        raise _incompatible(
            previous, fresh, "required parameters or payload were added, removed or reordered"
        )

    old_opt = [_key(f) for f in old_body if f.kind is FormalKind.OPTIONAL_VALUE]
    new_opt = [_key(f) for f in new_body if f.kind is FormalKind.OPTIONAL_VALUE]
    remaining = iter(new_opt)
    for key in old_opt:
        if not any(candidate == key for candidate in remaining):
            raise _incompatible(
                previous, fresh, f"optional parameter {key[0]} was removed, reordered or retyped"
            )

    old_names = {key[0] for key in old_opt}
    return tuple(key[0] for key in new_opt if key[0] not in old_names)


def forwarding_signature(previous: Signature, generation: int) -> Signature:
    """Forwarding generation for the previous primary.

    Every formal loses its default, the trailing options bag included, so the
    forwarding overload binds exactly the call shapes that pass all of the
    previous primary's arguments and never competes with the new primary
    for shorter calls.
    """
    formals = tuple(f.without_default() for f in previous.formals)
    return replace(
        previous,
        formals=formals,
        generation=generation,
        introduced_in=None,
    )


def _optional_count(signature: Signature) -> int:
    return sum(1 for f in signature.formals if f.kind is FormalKind.OPTIONAL_VALUE)


class EvolutionPlanner:
    """Computes the minimal set of signatures a release must append."""

    def __init__(self, config: Optional[PlannerConfig] = None):
        self.config = config or PlannerConfig()

    def _entry_point(self, operation: Operation, generation: int) -> str:
        if self.config.named_entry_points and generation > 0:
            return f"{operation.name}{self.config.entry_point_suffix}{generation}"
        return operation.name

    def _exceeds_limit(self, first: Signature, fresh: Signature) -> bool:
        limit = self.config.optional_parameter_limit
        if limit is None:
            return False
        return _optional_count(fresh) - _optional_count(first) > limit

    def plan(self, operation: Operation, history: Sequence[Signature] = ()) -> Plan:
        """Plan the next generations for one operation.

        Args:
            operation: New operation model
            history: Recorded generations of this operation, ordered

        Returns:
            Plan describing the outcome and proposed signatures

        Raises:
            MalformedOperation: If the operation violates the input contract
            IncompatibleOperationChange: If the change cannot be planned
        """
        history = tuple(history)
        base = len(history)
        fresh = synthesize(operation, self.config, generation=base)

        if not history:
            logger.debug("%s: no history, creating generation 0", operation.name)
            return Plan(
                operation_name=operation.name,
                outcome=PlanOutcome.CREATED,
                synthesized=fresh,
                proposed=(fresh,),
            )

        previous = history[-1]
        if previous.operation_name != operation.name:
            raise ContractViolationError(
                f"History for {previous.operation_name} passed for {operation.name}"
            )

        if previous.has_kind(FormalKind.PROPERTY_BAG):
            # Optionals live in the bag; only the leading shape can change.
            collapsed = synthesize_collapsed(operation, self.config, generation=base)
            if collapsed.shape() != previous.shape():
                raise _incompatible(previous, collapsed, "required parameters or payload changed")
            logger.debug("%s: optional changes absorbed by property bag", operation.name)
            return self._unchanged(operation, collapsed, previous, base)

        if fresh.shape() == previous.shape():
            logger.debug("%s: shape unchanged at generation %d", operation.name, previous.generation)
            return self._unchanged(operation, fresh, previous, base)

        inserted = inserted_optionals(previous, fresh)
        forwarding = forwarding_signature(previous, base)

        if self._exceeds_limit(history[0], fresh):
            outcome = PlanOutcome.BAG_COLLAPSED
            primary = synthesize_collapsed(operation, self.config, generation=base + 1)
        else:
            outcome = PlanOutcome.EXTENDED
            primary = fresh.with_generation(base + 1)
        primary = replace(primary, entry_point=self._entry_point(operation, base + 1))

        logger.info(
            "%s: %s with %s (generations %d and %d)",
            operation.name, outcome.value, ", ".join(inserted), base, base + 1,
        )
        return Plan(
            operation_name=operation.name,
            outcome=outcome,
            synthesized=fresh,
            proposed=(forwarding, primary),
            previous=previous,
            base_length=base,
            inserted=inserted,
        )

    def _unchanged(self, operation: Operation, fresh: Signature, previous: Signature, base: int) -> Plan:
        return Plan(
            operation_name=operation.name,
            outcome=PlanOutcome.UNCHANGED,
            synthesized=fresh,
            previous=previous,
            base_length=base,
        )

    def plan_all(
        self,
        operations: Iterable[Operation],
        histories: Mapping[str, Sequence[Signature]],
    ) -> List[Plan]:
        """Plan several operations; histories maps name to recorded generations.

        Errors propagate; use release.plan_release for per-operation reporting.
        """
        return [self.plan(op, histories.get(op.name, ())) for op in operations]


__all__ = [
    "PlanOutcome",
    "Plan",
    "EvolutionPlanner",
    "inserted_optionals",
    "forwarding_signature",
]
