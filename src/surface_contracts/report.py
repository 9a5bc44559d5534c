"""Planning report: the operator-facing result of a release planning pass."""

import enum
from collections import Counter
from typing import Any, Dict, List, Optional
import yaml
from pydantic import BaseModel, Field

from .errors import (
    ContractViolationError,
    MalformedOperation,
    IncompatibleOperationChange,
    AmbiguousOverloadSet,
    OverlayRuleViolation,
)
from .signature import Signature


class OperationState(str, enum.Enum):
    """Per-operation state in a planning report."""
    UNCHANGED = "unchanged"
    EXTENDED = "extended"
    BAG_COLLAPSED = "bag-collapsed"
    REJECTED_MALFORMED = "rejected: MalformedOperation"
    REJECTED_INCOMPATIBLE = "rejected: IncompatibleOperationChange"
    REJECTED_AMBIGUOUS = "rejected: AmbiguousOverloadSet"
    REJECTED_OVERLAY = "rejected: OverlayRuleViolation"

    @property
    def rejected(self) -> bool:
        return self.value.startswith("rejected")


_REJECTIONS = {
    MalformedOperation: OperationState.REJECTED_MALFORMED,
    IncompatibleOperationChange: OperationState.REJECTED_INCOMPATIBLE,
    AmbiguousOverloadSet: OperationState.REJECTED_AMBIGUOUS,
    OverlayRuleViolation: OperationState.REJECTED_OVERLAY,
}


def _render(signature: Signature) -> str:
    return f"{signature.label()} {signature.describe()}"


class ReportEntry(BaseModel):
    """One operation's line in the planning report.

    Attributes:
        operation: Operation name
        state: Outcome of planning
        proposed: Signatures the release would append, rendered
        offending: Conflicting signatures or parameter lists when rejected
        argument_shape: Minimal argument shape for ambiguity rejections
        detail: Human-readable explanation
    """
    operation: str
    state: OperationState
    proposed: List[str] = Field(default_factory=list)
    offending: List[str] = Field(default_factory=list)
    argument_shape: List[str] = Field(default_factory=list)
    detail: Optional[str] = None

    @classmethod
    def accepted(cls, operation: str, state: OperationState, proposed=()) -> "ReportEntry":
        return cls(operation=operation, state=state, proposed=[_render(s) for s in proposed])

    @classmethod
    def rejected(cls, operation: str, error: ContractViolationError) -> "ReportEntry":
        """Build a rejection entry carrying the error's context."""
        state = _REJECTIONS.get(type(error))
        if state is None:
            raise TypeError(f"No report state for {type(error).__name__}")

        offending: List[str] = []
        shape: List[str] = []
        if isinstance(error, IncompatibleOperationChange):
            offending = [
                f"({', '.join(error.previous)})",
                f"({', '.join(error.proposed)})",
            ]
        elif isinstance(error, AmbiguousOverloadSet):
            offending = [error.first, error.second]
            shape = list(error.argument_shape)
        elif isinstance(error, OverlayRuleViolation) and error.signature:
            offending = [error.signature]

        return cls(
            operation=operation,
            state=state,
            offending=offending,
            argument_shape=shape,
            detail=str(error),
        )


class PlanningReport(BaseModel):
    """Log of every operation considered in one release planning pass."""
    release: Optional[str] = None
    entries: List[ReportEntry] = Field(default_factory=list)

    def add(self, entry: ReportEntry) -> ReportEntry:
        self.entries.append(entry)
        return entry

    def entry(self, operation: str) -> Optional[ReportEntry]:
        for entry in self.entries:
            if entry.operation == operation:
                return entry
        return None

    @property
    def has_rejections(self) -> bool:
        return any(e.state.rejected for e in self.entries)

    def rejected(self) -> List[ReportEntry]:
        return [e for e in self.entries if e.state.rejected]

    def counts(self) -> Dict[str, int]:
        """Number of operations per state."""
        return dict(Counter(e.state.value for e in self.entries))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for YAML serialization."""
        return {
            "release": self.release,
            "summary": self.counts(),
            "operations": [
                {
                    "operation": e.operation,
                    **e.model_dump(mode="json", exclude_defaults=True, exclude={"operation"}),
                }
                for e in self.entries
            ],
        }

    def to_yaml_string(self) -> str:
        """Export to YAML string."""
        return yaml.safe_dump(self.to_dict(), default_flow_style=False, sort_keys=False)


__all__ = [
    "OperationState",
    "ReportEntry",
    "PlanningReport",
]
