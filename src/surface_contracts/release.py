"""Release planning across every operation of a service.

Runs synthesis, evolution planning, the overlay merge rule and the
ambiguity gate for each operation in the description stream, and collects
the outcome in a planning report. A failure is terminal only for the
operation it concerns; planning continues for the others.

Whether a release with rejections is published (excluding the offending
operations) or abandoned is the release process's decision, not this
module's.
"""

from __future__ import annotations
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from .ambiguity import AmbiguityAnalyzer, AnalysisResult, OverloadRules
from .config import PlannerConfig
from .errors import (
    ContractViolationError,
    MalformedOperation,
    IncompatibleOperationChange,
    AmbiguousOverloadSet,
    OverlayRuleViolation,
)
from .overlay import OverlaySet
from .planner import EvolutionPlanner, Plan, PlanOutcome
from .registry import RegistryReader, SurfaceRegistry
from .report import OperationState, PlanningReport, ReportEntry
from .signature import Signature
from .surface import EmittedSurface, build_surface
from .types import Operation

logger = logging.getLogger(__name__)

# Errors that reject one operation; anything else is a bug and propagates
PLANNING_ERRORS = (
    MalformedOperation,
    IncompatibleOperationChange,
    AmbiguousOverloadSet,
    OverlayRuleViolation,
)

_STATES = {
    PlanOutcome.CREATED: OperationState.EXTENDED,
    PlanOutcome.EXTENDED: OperationState.EXTENDED,
    PlanOutcome.UNCHANGED: OperationState.UNCHANGED,
    PlanOutcome.BAG_COLLAPSED: OperationState.BAG_COLLAPSED,
}


@dataclass(frozen=True)
class ReleasePlan:
    """Accepted plans and the report for one release planning pass.

    Attributes:
        release: Release label stamped on committed signatures
        report: Per-operation planning report
        plans: Accepted plans by operation name (unchanged ones included)
        analyses: Ambiguity analysis of each accepted operation
        overlays: Overlay signatures that passed the merge rule
    """
    release: Optional[str]
    report: PlanningReport
    plans: Mapping[str, Plan] = field(default_factory=dict)
    analyses: Mapping[str, AnalysisResult] = field(default_factory=dict)
    overlays: Mapping[str, Tuple[Signature, ...]] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "plans", MappingProxyType(dict(self.plans)))
        object.__setattr__(self, "analyses", MappingProxyType(dict(self.analyses)))
        object.__setattr__(self, "overlays", MappingProxyType(dict(self.overlays)))

    def proposals(self) -> Dict[str, Tuple[Signature, ...]]:
        """New signatures per operation, stamped with the release label."""
        return {
            name: tuple(replace(s, introduced_in=self.release) for s in plan.proposed)
            for name, plan in self.plans.items()
            if plan.proposed
        }

    def commit(self, registry: SurfaceRegistry) -> Dict[str, Tuple[Signature, ...]]:
        """Append every accepted proposal to the registry.

        Every history length the plan was computed from is checked before
        anything is appended, so a stale plan appends nothing. Each operation
        is then appended atomically; a writer racing between the check and
        the append still fails that operation's extend.

        Raises:
            ContractViolationError: If any planned history has moved
        """
        proposals = self.proposals()
        stale = [
            f"{name} (planned at {self.plans[name].base_length}, "
            f"found {len(registry.history(name))})"
            for name in proposals
            if len(registry.history(name)) != self.plans[name].base_length
        ]
        if stale:
            raise ContractViolationError(
                f"history changed since planning: {', '.join(stale)}"
            )

        committed = {}
        for name, signatures in proposals.items():
            plan = self.plans[name]
            committed[name] = registry.extend(name, signatures, expected_length=plan.base_length)
            logger.info(
                "%s: committed generations %s",
                name, ", ".join(str(s.generation) for s in signatures),
            )
        return committed

    def surface(self, registry: RegistryReader, operation: str) -> EmittedSurface:
        """Surface the emitter would see for an accepted operation after commit."""
        plan = self.plans[operation]
        history = registry.history(operation)
        if len(history) == plan.base_length:
            history = history + plan.proposed
        return build_surface(history, self.overlays.get(operation, ()))


def _plan_operation(
    operation: Operation,
    history: Tuple[Signature, ...],
    overlays: OverlaySet,
    planner: EvolutionPlanner,
    analyzer: AmbiguityAnalyzer,
):
    try:
        plan = planner.plan(operation, history)
        authored = overlays.check(operation, planner.config)
        analysis = analyzer.check(history + plan.proposed + authored)
    except PLANNING_ERRORS as e:
        logger.warning("%s rejected: %s", operation.name, e)
        return ReportEntry.rejected(operation.name, e), None, None, ()
    entry = ReportEntry.accepted(operation.name, _STATES[plan.outcome], plan.proposed)
    return entry, plan, analysis, authored


def plan_release(
    operations: Iterable[Operation],
    registry: RegistryReader,
    overlays: Optional[OverlaySet] = None,
    config: Optional[PlannerConfig] = None,
    release: Optional[str] = None,
    rules: Optional[OverloadRules] = None,
    max_workers: Optional[int] = None,
) -> ReleasePlan:
    """Plan one release for every operation in the description stream.

    Args:
        operations: Operation models from the description parser
        registry: Recorded surface history
        overlays: Hand-authored convenience signatures
        config: Planner configuration
        release: Label stamped on signatures when the plan is committed
        rules: Target-language overload rules for the ambiguity gate
        max_workers: Plan operations on a thread pool; operations share no
            state, so results are identical to sequential planning

    Returns:
        ReleasePlan with the report and the accepted plans
    """
    planner = EvolutionPlanner(config)
    analyzer = AmbiguityAnalyzer(rules)
    overlays = overlays or OverlaySet()
    report = PlanningReport(release=release)

    unique: List[Operation] = []
    duplicates: List[Operation] = []
    seen = set()
    for operation in operations:
        (duplicates if operation.name in seen else unique).append(operation)
        seen.add(operation.name)

    def run(operation: Operation):
        return _plan_operation(
            operation, registry.history(operation.name), overlays, planner, analyzer
        )

    if max_workers:
        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            results = list(pool.map(run, unique))
    else:
        results = [run(op) for op in unique]

    plans, analyses, accepted_overlays = {}, {}, {}
    for operation, (entry, plan, analysis, authored) in zip(unique, results):
        report.add(entry)
        if plan is not None:
            plans[operation.name] = plan
            analyses[operation.name] = analysis
            accepted_overlays[operation.name] = authored

    for operation in duplicates:
        error = MalformedOperation(operation.name, "operation described more than once")
        logger.warning("%s", error)
        # The first description was planned; the whole operation is rejected.
        plans.pop(operation.name, None)
        analyses.pop(operation.name, None)
        accepted_overlays.pop(operation.name, None)
        existing = report.entry(operation.name)
        if existing is not None:
            report.entries.remove(existing)
        report.add(ReportEntry.rejected(operation.name, error))

    for name in registry.operations():
        if name not in seen:
            logger.warning("%s has recorded history but is missing from the description", name)
    for name in overlays.operations():
        if name not in seen:
            logger.warning("Overlay for %s has no matching operation", name)

    return ReleasePlan(
        release=release,
        report=report,
        plans=plans,
        analyses=analyses,
        overlays=accepted_overlays,
    )


__all__ = [
    "PLANNING_ERRORS",
    "ReleasePlan",
    "plan_release",
]
