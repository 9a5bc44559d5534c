"""Surface contracts - compatible evolution of generated client surfaces."""

from .version import CONTRACTS_VERSION
from .types import (
    Scalar,
    ParameterRole,
    FormalKind,
    Origin,
    Parameter,
    Operation,
)
from .signature import (
    FormalParameter,
    Signature,
    RAW_RESPONSE,
    TYPED_RESPONSE,
)
from .errors import (
    ContractViolationError,
    MalformedOperation,
    IncompatibleOperationChange,
    AmbiguousOverloadSet,
    OverlayRuleViolation,
)
from .config import PlannerConfig, DEFAULT_CONFIG_FILE
from .synthesizer import synthesize, synthesize_collapsed
from .registry import SurfaceRegistry, RegistryReader
from .planner import EvolutionPlanner, Plan, PlanOutcome
from .ambiguity import (
    AmbiguityAnalyzer,
    AnalysisResult,
    Conflict,
    OverloadRules,
    PositionalOverloadRules,
)
from .overlay import OverlaySet, check_overlay
from .surface import EmittedSurface, SurfaceEntry, build_surface
from .report import OperationState, ReportEntry, PlanningReport
from .release import ReleasePlan, plan_release

__version__ = CONTRACTS_VERSION

__all__ = [
    # Version
    "CONTRACTS_VERSION",
    # Operation model
    "Scalar",
    "ParameterRole",
    "FormalKind",
    "Origin",
    "Parameter",
    "Operation",
    # Signatures
    "FormalParameter",
    "Signature",
    "RAW_RESPONSE",
    "TYPED_RESPONSE",
    # Errors
    "ContractViolationError",
    "MalformedOperation",
    "IncompatibleOperationChange",
    "AmbiguousOverloadSet",
    "OverlayRuleViolation",
    # Configuration
    "PlannerConfig",
    "DEFAULT_CONFIG_FILE",
    # Synthesis
    "synthesize",
    "synthesize_collapsed",
    # Registry (compatibility contract)
    "SurfaceRegistry",
    "RegistryReader",
    # Evolution planning
    "EvolutionPlanner",
    "Plan",
    "PlanOutcome",
    # Ambiguity gate
    "AmbiguityAnalyzer",
    "AnalysisResult",
    "Conflict",
    "OverloadRules",
    "PositionalOverloadRules",
    # Overlay merge rule
    "OverlaySet",
    "check_overlay",
    # Emitter view
    "EmittedSurface",
    "SurfaceEntry",
    "build_surface",
    # Release planning
    "OperationState",
    "ReportEntry",
    "PlanningReport",
    "ReleasePlan",
    "plan_release",
]
