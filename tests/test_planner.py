"""Tests for the evolution planner."""

import pytest
from surface_contracts import (
    Parameter,
    Operation,
    FormalKind,
    PlannerConfig,
    SurfaceRegistry,
    EvolutionPlanner,
    PlanOutcome,
    ContractViolationError,
    IncompatibleOperationChange,
    synthesize,
)


def pets_by_name(*extra):
    """GetPetsByName as first published, plus extra optional parameters."""
    params = [
        Parameter("petName", "path", True, 0),
        Parameter("sort", "query", False, 1),
        Parameter("limit", "query", False, 2, value_type="integer"),
        Parameter("skip", "query", False, 3, value_type="integer"),
    ]
    for i, name in enumerate(extra):
        params.append(Parameter(name, "query", False, 4 + i))
    return Operation("GetPetsByName", params)


def released(*operations, config=None):
    """History after publishing each operation model in turn."""
    planner = EvolutionPlanner(config)
    history = ()
    for op in operations:
        history = history + planner.plan(op, history).proposed
    return history


def kinds(signature):
    return [(f.name, f.kind) for f in signature.formals]


def test_new_operation_creates_generation_zero():
    """Test an operation without history gets its synthesized signature."""
    plan = EvolutionPlanner().plan(pets_by_name())

    assert plan.outcome is PlanOutcome.CREATED
    assert len(plan.proposed) == 1
    assert plan.proposed[0] == synthesize(pets_by_name())
    assert plan.primary is plan.proposed[0]


def test_new_optional_parameter():
    """Test adding an optional parameter after the existing ones."""
    history = (synthesize(pets_by_name()),)
    plan = EvolutionPlanner().plan(pets_by_name("species"), history)

    assert plan.outcome is PlanOutcome.EXTENDED
    assert plan.inserted == ("species",)
    forwarding, primary = plan.proposed

    assert forwarding.generation == 1
    assert kinds(forwarding) == [
        ("petName", FormalKind.REQUIRED_VALUE),
        ("sort", FormalKind.REQUIRED_VALUE),
        ("limit", FormalKind.REQUIRED_VALUE),
        ("skip", FormalKind.REQUIRED_VALUE),
        ("options", FormalKind.OPTIONS_BAG),
    ]
    assert not any(f.has_default for f in forwarding.formals)

    assert primary.generation == 2
    assert kinds(primary) == [
        ("petName", FormalKind.REQUIRED_VALUE),
        ("sort", FormalKind.OPTIONAL_VALUE),
        ("limit", FormalKind.OPTIONAL_VALUE),
        ("skip", FormalKind.OPTIONAL_VALUE),
        ("species", FormalKind.OPTIONAL_VALUE),
        ("options", FormalKind.OPTIONS_BAG),
    ]
    assert all(f.has_default for f in primary.formals[1:])


def test_optional_inserted_between_existing():
    """Test insertion in the middle keeps the old formals as a subsequence."""
    op = Operation("GetPetsByName", [
        Parameter("petName", "path", True, 0),
        Parameter("sort", "query", False, 1),
        Parameter("color", "query", False, 2),
        Parameter("limit", "query", False, 3, value_type="integer"),
        Parameter("skip", "query", False, 4, value_type="integer"),
    ])
    plan = EvolutionPlanner().plan(op, (synthesize(pets_by_name()),))

    assert plan.outcome is PlanOutcome.EXTENDED
    assert plan.inserted == ("color",)


def test_unchanged_shape():
    """Test re-planning the same model proposes nothing."""
    history = released(pets_by_name())
    plan = EvolutionPlanner().plan(pets_by_name(), history)

    assert plan.outcome is PlanOutcome.UNCHANGED
    assert plan.proposed == ()
    assert plan.primary == history[-1]


def test_body_shape_change_is_unchanged():
    """Test body changes never alter the signature."""
    v1 = Operation("CreateOrUpdatePet", [
        Parameter("id", "path", True, 0),
        Parameter("pet", "body", True, 1, value_type="Pet"),
    ])
    v2 = Operation("CreateOrUpdatePet", [
        Parameter("id", "path", True, 0),
        Parameter("pet", "body", True, 1, value_type="PetWithTags"),
    ])
    plan = EvolutionPlanner().plan(v2, released(v1))

    assert plan.outcome is PlanOutcome.UNCHANGED


def test_default_value_change_is_unchanged():
    """Test defaults are not part of signature equality."""
    v1 = Operation("ListPets", [Parameter("limit", "query", False, 0, value_type="integer", default=10)])
    v2 = Operation("ListPets", [Parameter("limit", "query", False, 0, value_type="integer", default=50)])

    assert EvolutionPlanner().plan(v2, released(v1)).outcome is PlanOutcome.UNCHANGED


def test_removed_required_parameter_rejected():
    """Test removing a required parameter fails and leaves the registry alone."""
    registry = SurfaceRegistry()
    v1 = Operation("GetPet", [
        Parameter("id", "path", True, 0),
        Parameter("ownerId", "path", True, 1),
    ])
    for sig in EvolutionPlanner().plan(v1).proposed:
        registry.append(sig)
    before = registry.snapshot()

    v2 = Operation("GetPet", [Parameter("id", "path", True, 0)])
    with pytest.raises(IncompatibleOperationChange) as exc_info:
        EvolutionPlanner().plan(v2, registry.history("GetPet"))

    assert registry.snapshot() == before
    error = exc_info.value
    assert error.operation == "GetPet"
    assert "ownerId: required-value" in error.previous
    assert "ownerId: required-value" not in error.proposed


@pytest.mark.parametrize("v2", [
    # required parameters reordered
    Operation("GetPet", [
        Parameter("ownerId", "path", True, 0),
        Parameter("id", "path", True, 1),
        Parameter("fields", "query", False, 2),
    ]),
    # new required parameter
    Operation("GetPet", [
        Parameter("id", "path", True, 0),
        Parameter("ownerId", "path", True, 1),
        Parameter("tenant", "header", True, 2),
        Parameter("fields", "query", False, 3),
    ]),
    # optional parameter became required
    Operation("GetPet", [
        Parameter("id", "path", True, 0),
        Parameter("ownerId", "path", True, 1),
        Parameter("fields", "query", True, 2),
    ]),
    # optional parameter removed
    Operation("GetPet", [
        Parameter("id", "path", True, 0),
        Parameter("ownerId", "path", True, 1),
    ]),
    # optional parameter retyped
    Operation("GetPet", [
        Parameter("id", "path", True, 0),
        Parameter("ownerId", "path", True, 1),
        Parameter("fields", "query", False, 2, value_type="integer"),
    ]),
    # body added
    Operation("GetPet", [
        Parameter("id", "path", True, 0),
        Parameter("ownerId", "path", True, 1),
        Parameter("filter", "body", True, 2),
        Parameter("fields", "query", False, 3),
    ]),
])
def test_incompatible_changes(v2):
    """Test every non-additive change is left to a human."""
    v1 = Operation("GetPet", [
        Parameter("id", "path", True, 0),
        Parameter("ownerId", "path", True, 1),
        Parameter("fields", "query", False, 2),
    ])
    with pytest.raises(IncompatibleOperationChange):
        EvolutionPlanner().plan(v2, released(v1))


def test_planning_is_idempotent():
    """Test planning twice without appending proposes the same signatures."""
    planner = EvolutionPlanner()
    history = released(pets_by_name())

    first = planner.plan(pets_by_name("species"), history)
    second = planner.plan(pets_by_name("species"), history)

    assert first == second


def test_successive_extensions():
    """Test each extension forwards the previous primary."""
    history = released(pets_by_name(), pets_by_name("species"), pets_by_name("species", "color"))

    assert [s.generation for s in history] == [0, 1, 2, 3, 4]
    assert [f.name for f in history[3].formals] == [
        "petName", "sort", "limit", "skip", "species", "options"
    ]
    assert not any(f.has_default for f in history[3].formals)
    assert history[4].formals[-2].name == "color"


def test_bag_collapse_over_limit():
    """Test exceeding the optional limit collapses into a property bag."""
    config = PlannerConfig(optional_parameter_limit=0)
    planner = EvolutionPlanner(config)
    plan = planner.plan(pets_by_name("species"), released(pets_by_name(), config=config))

    assert plan.outcome is PlanOutcome.BAG_COLLAPSED
    forwarding, primary = plan.proposed
    assert forwarding.formals[-1].kind is FormalKind.OPTIONS_BAG
    assert not any(f.has_default for f in forwarding.formals)
    assert kinds(primary) == [
        ("petName", FormalKind.REQUIRED_VALUE),
        ("parameters", FormalKind.PROPERTY_BAG),
        ("options", FormalKind.OPTIONS_BAG),
    ]


def test_bag_absorbs_later_optionals():
    """Test a collapsed operation no longer grows generations."""
    config = PlannerConfig(optional_parameter_limit=0)
    history = released(pets_by_name(), pets_by_name("species"), config=config)
    planner = EvolutionPlanner(config)

    assert planner.plan(pets_by_name("species", "color"), history).outcome is PlanOutcome.UNCHANGED

    changed = Operation("GetPetsByName", [Parameter("sort", "query", False, 0)])
    with pytest.raises(IncompatibleOperationChange):
        planner.plan(changed, history)


def test_limit_counts_all_introduced_optionals():
    """Test the limit counts optionals added since generation zero."""
    config = PlannerConfig(optional_parameter_limit=1)
    planner = EvolutionPlanner(config)
    history = released(pets_by_name(), pets_by_name("species"), config=config)

    assert len(history) == 3
    plan = planner.plan(pets_by_name("species", "color"), history)
    assert plan.outcome is PlanOutcome.BAG_COLLAPSED


def test_named_entry_points():
    """Test single-dispatch strategy names the new primary separately."""
    config = PlannerConfig(strategy="named-entry-points")
    history = released(pets_by_name(), config=config)
    plan = EvolutionPlanner(config).plan(pets_by_name("species"), history)

    forwarding, primary = plan.proposed
    assert history[0].entry_point == "GetPetsByName"
    assert forwarding.entry_point == "GetPetsByName"
    assert primary.entry_point == "GetPetsByNameV2"


def test_history_for_other_operation_rejected():
    """Test passing the wrong history is a contract violation."""
    history = released(Operation("GetPet", [Parameter("id", "path", True, 0)]))
    with pytest.raises(ContractViolationError, match="History for GetPet"):
        EvolutionPlanner().plan(pets_by_name(), history)


def test_plan_all():
    """Test planning several operations from a history mapping."""
    ops = [pets_by_name(), Operation("GetPet", [Parameter("id", "path", True, 0)])]
    plans = EvolutionPlanner().plan_all(ops, {})

    assert [p.outcome for p in plans] == [PlanOutcome.CREATED, PlanOutcome.CREATED]
