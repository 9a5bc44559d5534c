"""Contract exceptions.

Every failure the planning core can report is a ContractViolationError.
The subclasses carry enough context for the planning report to show a
human what went wrong without re-running the planner.
"""

from typing import Optional, Sequence


class ContractViolationError(Exception):
    """Raised when contract invariants are violated."""
    pass


class MalformedOperation(ContractViolationError):
    """Raised when an operation model breaks the parser's input contract.

    Upstream normalization must merge body fields into one payload parameter
    and keep parameter names unique; seeing either violated here is a bug in
    the producer, not a recoverable condition.
    """
    kind = "MalformedOperation"

    def __init__(self, operation: str, reason: str):
        self.operation = operation
        self.reason = reason
        super().__init__(f"Operation {operation} is malformed: {reason}")


class IncompatibleOperationChange(ContractViolationError):
    """Raised when a new operation shape cannot be planned automatically.

    Attributes:
        operation: Operation name
        previous: Formal parameter descriptions of the latest generation
        proposed: Formal parameter descriptions synthesized from the new model
        reason: Short description of the offending change
    """
    kind = "IncompatibleOperationChange"

    def __init__(
        self,
        operation: str,
        previous: Sequence[str],
        proposed: Sequence[str],
        reason: str = "",
    ):
        self.operation = operation
        self.previous = tuple(previous)
        self.proposed = tuple(proposed)
        self.reason = reason
        message = (
            f"Incompatible change to {operation}: "
            f"({', '.join(self.previous)}) -> ({', '.join(self.proposed)})"
        )
        if reason:
            message += f"; {reason}"
        super().__init__(message)


class AmbiguousOverloadSet(ContractViolationError):
    """Raised when two signatures can bind the same call-site argument list.

    Attributes:
        operation: Operation name
        first: Description of the first offending signature
        second: Description of the second offending signature
        argument_shape: Minimal positional argument categories that bind both
    """
    kind = "AmbiguousOverloadSet"

    def __init__(
        self,
        operation: str,
        first: str,
        second: str,
        argument_shape: Sequence[str],
    ):
        self.operation = operation
        self.first = first
        self.second = second
        self.argument_shape = tuple(argument_shape)
        super().__init__(
            f"Ambiguous overloads for {operation}: {first} and {second} "
            f"both accept ({', '.join(self.argument_shape)})"
        )


class OverlayRuleViolation(ContractViolationError):
    """Raised when a hand-authored signature breaks the overlay merge rule."""
    kind = "OverlayRuleViolation"

    def __init__(self, operation: str, reason: str, signature: Optional[str] = None):
        self.operation = operation
        self.reason = reason
        self.signature = signature
        where = f" in {signature}" if signature else ""
        super().__init__(f"Overlay for {operation} rejected{where}: {reason}")


__all__ = [
    "ContractViolationError",
    "MalformedOperation",
    "IncompatibleOperationChange",
    "AmbiguousOverloadSet",
    "OverlayRuleViolation",
]
