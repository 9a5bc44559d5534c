"""Tests for the overload ambiguity analyzer."""

import pytest
from surface_contracts import (
    Parameter,
    Operation,
    FormalKind,
    FormalParameter,
    Signature,
    Origin,
    PlannerConfig,
    EvolutionPlanner,
    AmbiguityAnalyzer,
    AmbiguousOverloadSet,
    OverloadRules,
    PositionalOverloadRules,
    synthesize,
)


def value(name, required=True, representation="string"):
    if required:
        return FormalParameter(name, FormalKind.REQUIRED_VALUE, representation=representation)
    return FormalParameter(name, FormalKind.OPTIONAL_VALUE, has_default=True, representation=representation)


def options(required=False):
    return FormalParameter("options", FormalKind.OPTIONS_BAG, has_default=not required)


def cancel():
    return FormalParameter("cancellation", FormalKind.CANCELLATION, has_default=True)


def protocol(operation, generation, *formals, entry_point=None):
    return Signature(operation, formals, generation=generation, entry_point=entry_point)


def overlay(operation, ordinal, *formals):
    return Signature(operation, formals, generation=ordinal, origin=Origin.OVERLAY)


def pets_by_name(*extra):
    params = [
        Parameter("petName", "path", True, 0),
        Parameter("sort", "query", False, 1),
        Parameter("limit", "query", False, 2, value_type="integer"),
        Parameter("skip", "query", False, 3, value_type="integer"),
    ]
    params += [Parameter(name, "query", False, 4 + i) for i, name in enumerate(extra)]
    return Operation("GetPetsByName", params)


def test_planned_extension_is_unambiguous():
    """Test the forwarding generation keeps an extension unambiguous."""
    gen0 = synthesize(pets_by_name())
    plan = EvolutionPlanner().plan(pets_by_name("species"), (gen0,))
    result = AmbiguityAnalyzer().check((gen0,) + plan.proposed)

    assert result.ok
    # Generation 0 and its forwarding copy are one callable
    assert result.merged == ((0, 1),)


def test_repeated_extensions_are_unambiguous():
    """Test several rounds of extension stay conflict-free."""
    planner = EvolutionPlanner()
    history = ()
    for op in [pets_by_name(), pets_by_name("species"), pets_by_name("species", "color")]:
        history += planner.plan(op, history).proposed

    result = AmbiguityAnalyzer().analyze(history)
    assert result.conflicts == ()
    assert set(result.merged) == {(0, 1), (2, 3)}


def test_bag_collapse_is_unambiguous():
    """Test the collapsed primary does not compete with forwarding shapes."""
    planner = EvolutionPlanner(PlannerConfig(optional_parameter_limit=0))
    history = planner.plan(pets_by_name()).proposed
    history += planner.plan(pets_by_name("species"), history).proposed

    assert AmbiguityAnalyzer().check(history).ok


def test_naive_extension_is_ambiguous():
    """Test appending only the new primary would be ambiguous."""
    gen0 = protocol("GetPet", 0, value("id"), options())
    gen1 = protocol("GetPet", 1, value("id"), value("verbose", False, "boolean"), options())

    result = AmbiguityAnalyzer().analyze([gen0, gen1])
    assert len(result.conflicts) == 1
    assert result.conflicts[0].argument_shape == ("string",)

    with pytest.raises(AmbiguousOverloadSet, match="GetPet") as exc_info:
        AmbiguityAnalyzer().check([gen0, gen1])
    assert "GetPet#protocol:0" in exc_info.value.first
    assert "GetPet#protocol:1" in exc_info.value.second
    assert exc_info.value.argument_shape == ("string",)


def test_overlay_with_authored_body_accepted():
    """Test the authored body makes the overlay distinguishable."""
    op = Operation("CreateOrUpdatePet", [
        Parameter("id", "path", True, 0),
        Parameter("pet", "body", True, 1),
    ])
    authored = overlay(
        "CreateOrUpdatePet", 0,
        value("id"),
        FormalParameter("pet", FormalKind.PAYLOAD_HANDLE, representation="Pet", authored=True),
        cancel(),
    )
    result = AmbiguityAnalyzer().check([synthesize(op), authored])

    assert result.ok
    assert result.exempt == ()


def test_trailing_kind_difference_is_exempt():
    """Test options-bag versus cancellation overlap is exempt."""
    generated = protocol("GetPet", 0, value("id"), options())
    authored = overlay("GetPet", 0, value("id"), cancel())

    result = AmbiguityAnalyzer().check([generated, authored])
    assert result.ok
    assert len(result.exempt) == 1
    assert result.exempt[0].argument_shape == ("string",)


def test_overlays_can_conflict_with_each_other():
    """Test two overlays with the same trailing kind are not exempt."""
    first = overlay("GetPet", 0, value("id"), cancel())
    second = overlay("GetPet", 1, value("id"), value("fields", False), cancel())

    result = AmbiguityAnalyzer().analyze([first, second])
    assert len(result.conflicts) == 1
    assert result.conflicts[0].first is first


def test_different_representations_do_not_conflict():
    """Test arguments of different categories bind only one signature."""
    by_id = protocol("GetPet", 0, value("id", representation="integer"), options(required=True))
    by_name = protocol("GetPet", 1, value("name"), options(required=True))

    assert AmbiguityAnalyzer().check([by_id, by_name]).ok


def test_disjoint_arities_do_not_conflict():
    """Test signatures with no common argument count never conflict."""
    short = protocol("GetPet", 0, value("id"), options(required=True))
    long = protocol("GetPet", 1, value("id"), value("owner"), value("fields"), options(required=True))

    assert AmbiguityAnalyzer().shared_arguments(short, long) is None


def test_entry_points_are_separate():
    """Test signatures exposed under different names never compete."""
    gen0 = protocol("GetPet", 0, value("id"), options())
    gen1 = protocol("GetPet", 1, value("id"), value("verbose", False), options(), entry_point="GetPetV1")

    assert AmbiguityAnalyzer().check([gen0, gen1]).ok


def test_empty_candidate_set():
    """Test an empty candidate set is a caller error."""
    with pytest.raises(ValueError, match="empty"):
        AmbiguityAnalyzer().analyze([])


class StrictRules(PositionalOverloadRules):
    """Rules for a language without any exemption."""

    def is_exempt(self, first, second):
        return False


def test_pluggable_rules():
    """Test target-language rules can be swapped."""
    assert isinstance(PositionalOverloadRules(), OverloadRules)

    generated = protocol("GetPet", 0, value("id"), options())
    authored = overlay("GetPet", 0, value("id"), cancel())
    with pytest.raises(AmbiguousOverloadSet):
        AmbiguityAnalyzer(StrictRules()).check([generated, authored])
