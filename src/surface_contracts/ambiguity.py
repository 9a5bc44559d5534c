"""Static overload-ambiguity analysis.

Checks the full candidate set an operation would expose in a release (every
recorded generation, the newly planned ones and any overlay signatures) for
pairs that a single call-site argument list could bind simultaneously.

This is the release gate: evolution rules that would produce a surface a
caller cannot compile against are caught here, before publishing.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Protocol, Tuple, runtime_checkable

from .errors import AmbiguousOverloadSet
from .signature import FormalParameter, Signature, TRAILING_KINDS
from .types import Origin


@runtime_checkable
class OverloadRules(Protocol):
    """Target-language overload semantics, as seen by the analyzer."""

    def arity_range(self, signature: Signature) -> Tuple[int, int]:
        """Smallest and largest positional argument counts the signature binds."""
        ...

    def category(self, formal: FormalParameter) -> str:
        """Type category an argument must have to bind this formal."""
        ...

    def is_exempt(self, first: Signature, second: Signature) -> bool:
        """Whether a conflict between the two is structurally impossible."""
        ...


class PositionalOverloadRules:
    """Positional binding with trailing defaults.

    A call with n arguments binds a signature when n lies between the number
    of leading formals without defaults and the total number of formals, and
    each argument matches the representation of its formal. Options-bag and
    cancellation trailing formals can never receive the same value.
    """

    def arity_range(self, signature: Signature) -> Tuple[int, int]:
        return signature.min_arity(), signature.max_arity()

    def category(self, formal: FormalParameter) -> str:
        return formal.representation

    def is_exempt(self, first: Signature, second: Signature) -> bool:
        a, b = first.trailing, second.trailing
        if a is None or b is None:
            return False
        return a.kind is not b.kind and a.kind in TRAILING_KINDS and b.kind in TRAILING_KINDS


@dataclass(frozen=True)
class Conflict:
    """A pair of signatures both satisfiable by one argument list."""
    first: Signature
    second: Signature
    argument_shape: Tuple[str, ...]

    def to_error(self) -> AmbiguousOverloadSet:
        return AmbiguousOverloadSet(
            self.first.operation_name,
            f"{self.first.label()} {self.first.describe()}",
            f"{self.second.label()} {self.second.describe()}",
            self.argument_shape,
        )


@dataclass(frozen=True)
class AnalysisResult:
    """Outcome of analyzing one operation's candidate set.

    Attributes:
        operation_name: Operation analyzed
        conflicts: Pairs that fail the release gate
        exempt: Pairs that overlap but differ in their trailing formal kind
        merged: (older, representative) generation pairs with identical
            binding shapes; to a linker they are one callable
    """
    operation_name: str
    conflicts: Tuple[Conflict, ...] = ()
    exempt: Tuple[Conflict, ...] = ()
    merged: Tuple[Tuple[int, int], ...] = ()

    @property
    def ok(self) -> bool:
        return not self.conflicts


def _ordered(candidates: Iterable[Signature]) -> List[Signature]:
    return sorted(
        candidates,
        key=lambda s: (s.origin is Origin.OVERLAY, s.generation),
    )


class AmbiguityAnalyzer:
    """Pairwise overload-conflict detection."""

    def __init__(self, rules: Optional[OverloadRules] = None):
        self.rules = rules or PositionalOverloadRules()

    def binding_shape(self, signature: Signature) -> Tuple[str, ...]:
        return tuple(self.rules.category(f) for f in signature.formals)

    def shared_arguments(self, first: Signature, second: Signature) -> Optional[Tuple[str, ...]]:
        """Shortest argument shape that binds both signatures, if any."""
        lo_a, hi_a = self.rules.arity_range(first)
        lo_b, hi_b = self.rules.arity_range(second)
        shape_a = self.binding_shape(first)
        shape_b = self.binding_shape(second)
        for n in range(max(lo_a, lo_b), min(hi_a, hi_b) + 1):
            if shape_a[:n] == shape_b[:n]:
                return shape_a[:n]
        return None

    def _callables(self, group: List[Signature]) -> Tuple[List[Signature], List[Tuple[int, int]]]:
        """Collapse protocol generations sharing a binding shape.

        The latest generation of each shape stands for the older ones.
        """
        latest: Dict[Tuple[str, ...], Signature] = {}
        overlays: List[Signature] = []
        for signature in group:
            if signature.origin is Origin.OVERLAY:
                overlays.append(signature)
                continue
            latest[self.binding_shape(signature)] = signature

        merged = [
            (s.generation, latest[self.binding_shape(s)].generation)
            for s in group
            if s.origin is Origin.PROTOCOL and latest[self.binding_shape(s)] is not s
        ]
        representatives = _ordered(list(latest.values()) + overlays)
        return representatives, merged

    def analyze(self, candidates: Iterable[Signature]) -> AnalysisResult:
        """Find every overlapping pair in a candidate set.

        Candidates are grouped by entry point first; signatures exposed
        under different names never compete.
        """
        candidates = _ordered(candidates)
        if not candidates:
            raise ValueError("candidate set is empty")
        operation = candidates[0].operation_name

        groups: Dict[str, List[Signature]] = {}
        for signature in candidates:
            groups.setdefault(signature.entry_point, []).append(signature)

        conflicts: List[Conflict] = []
        exempt: List[Conflict] = []
        merged: List[Tuple[int, int]] = []
        for group in groups.values():
            callables, collapsed = self._callables(group)
            merged.extend(collapsed)
            for i, first in enumerate(callables):
                for second in callables[i + 1:]:
                    shape = self.shared_arguments(first, second)
                    if shape is None:
                        continue
                    conflict = Conflict(first, second, shape)
                    if self.rules.is_exempt(first, second):
                        exempt.append(conflict)
                    else:
                        conflicts.append(conflict)

        return AnalysisResult(
            operation_name=operation,
            conflicts=tuple(conflicts),
            exempt=tuple(exempt),
            merged=tuple(merged),
        )

    def check(self, candidates: Iterable[Signature]) -> AnalysisResult:
        """Analyze and fail on the first conflict.

        Raises:
            AmbiguousOverloadSet: If any non-exempt pair overlaps
        """
        result = self.analyze(candidates)
        if result.conflicts:
            raise result.conflicts[0].to_error()
        return result


__all__ = [
    "OverloadRules",
    "PositionalOverloadRules",
    "Conflict",
    "AnalysisResult",
    "AmbiguityAnalyzer",
]
