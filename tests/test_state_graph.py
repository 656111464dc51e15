import pytest

from deliberator.core.exceptions import GraphError
from deliberator.domain import Model
from deliberator.graph.assignment import Assignment
from deliberator.graph.distributions import ConditionalTable, TabularUtility
from deliberator.graph.nodes import ActionNode, ChanceNode, NodeKind, UtilityNode
from deliberator.graph.state import StateGraph
from deliberator.graph.tables import ProbabilityTable


def _chain(engine=None) -> StateGraph:
    """x -> y where y copies a deterministic function of x"""
    state = StateGraph(engine)
    # y is inserted before x on purpose, then rewired to depend on x
    state.add_node(ChanceNode("y", ConditionalTable.marginal("y", {0: 1.0})))
    state.add_node(ChanceNode("x", ConditionalTable.marginal("x", {"a": 0.5, "b": 0.5})))
    y = ConditionalTable("y", {
        Assignment(x="a"): {1: 1.0},
        Assignment(x="b"): {2: 1.0},
    })
    state.add_node(ChanceNode("y", y, ("x",)), replace=True)
    return state


def test_unknown_parent_raises():
    state = StateGraph()
    with pytest.raises(GraphError):
        state.add_node(ChanceNode("y", ConditionalTable("y"), ("missing",)))


def test_duplicate_node_requires_replace():
    state = StateGraph()
    state.add_node(ChanceNode("x", ConditionalTable.marginal("x", {1: 1.0})))
    with pytest.raises(GraphError):
        state.add_node(ChanceNode("x", ConditionalTable.marginal("x", {2: 1.0})))


def test_replace_creating_cycle_raises():
    state = _chain()
    with pytest.raises(GraphError):
        state.add_node(ChanceNode("x", ConditionalTable("x"), ("y",)), replace=True)


def test_get_unknown_node_raises():
    with pytest.raises(GraphError):
        StateGraph().get_node("nope")


def test_topological_order_puts_parents_first():
    state = _chain()
    assert state.variables() == ["y", "x"]
    assert state.topological_order() == ["x", "y"]


def test_parent_value_determines_child(engine):
    state = _chain(engine)
    joint = state.query_prob(["x", "y"])
    assert set(joint.rows) == {Assignment(x="a", y=1), Assignment(x="b", y=2)}
    assert joint.get_prob({"x": "a", "y": 1}) == pytest.approx(0.5, abs=0.06)


def test_copy_is_independent():
    state = _chain()
    clone = state.copy()
    clone.add_node(ActionNode("a'", ["yes", "no"]))
    clone.add_evidence({"x": "a"})
    clone.remove_node("y")
    assert "a'" not in state
    assert "y" in state
    assert state.get_node("x").children == {"y"}
    assert state.evidence == Assignment()
    # distributions are shared, not copied
    assert clone.get_node("x").distribution is state.get_node("x").distribution


def test_add_to_state_keeps_children():
    state = _chain()
    state.add_to_state({"x": "b"})
    node = state.get_node("x")
    assert node.kind is NodeKind.CHANCE
    assert node.distribution.table(Assignment()) == {"b": 1.0}
    assert node.children == {"y"}


def test_add_to_state_from_probability_table():
    state = StateGraph()
    state.add_to_state(ProbabilityTable({
        Assignment(o="a", p=1): 0.25,
        Assignment(o="b", p=1): 0.75,
    }))
    assert set(state.chance_variables()) == {"o", "p"}
    assert state.get_node("o").distribution.prob(Assignment(), "b") == pytest.approx(0.75)


def test_kind_listings():
    state = StateGraph()
    state.add_node(ChanceNode("theta", ConditionalTable.marginal("theta", {0.5: 1.0}), is_parameter=True))
    state.add_node(ActionNode("a_m'", ["yes", "no"]))
    state.add_node(ChanceNode("a_u^p", ConditionalTable("a_u^p"), ("a_m'",)))
    state.add_node(UtilityNode("U", TabularUtility(), ("theta", "a_m'")))
    assert state.parameter_variables() == ["theta"]
    assert state.action_variables() == ["a_m'"]
    assert state.prediction_variables() == ["a_u^p"]
    assert state.utility_variables() == ["U"]
    assert state.has_descendant("a_m'", ["U"])
    assert not state.has_descendant("theta", ["a_u^p"])


def test_reduce_removes_decided_actions_and_their_utilities():
    state = StateGraph()
    state.add_node(ActionNode("a_m'", ["yes", "no"]))
    state.add_node(UtilityNode("U", TabularUtility(), ("a_m'",)))
    state.add_node(ChanceNode("a_u^p", ConditionalTable("a_u^p")))
    state.add_to_state({"a_m": "yes", "a_u": "confirm"})
    state.add_evidence({"a_m'": "yes"})

    removed = state.reduce({"a_m", "a_u"})

    assert removed == {"a_m'", "U", "a_u^p"}
    assert state.variables() == ["a_m", "a_u"]
    assert "a_m'" not in state.evidence


def test_update_removes_pending_action_node_once_decided():
    state = StateGraph()
    state.add_node(ActionNode("a_m'", ["yes", "no"]))
    state.add_node(UtilityNode("U", TabularUtility(), ("a_m'",)))
    assert state.new_variables == {"a_m'", "U"}

    state.update({"a_m": "yes"})

    assert state.variables() == ["a_m"]
    assert state.action_variables() == []


def test_reduce_keeps_new_unprimed_action_nodes():
    state = StateGraph()
    state.add_node(ActionNode("a", ["yes", "no"]))
    assert state.reduce({"a"}) == set()
    assert state.action_variables() == ["a"]


def test_restore_rolls_back_to_a_copy():
    state = _chain()
    backup = state.copy()
    state.add_to_state({"x": "b", "z": 1})
    state.add_evidence({"y": 2})
    state.restore(backup)
    assert state.variables() == ["y", "x"]
    assert state.evidence == Assignment()
    assert state.get_node("x").parents == ()
    assert state.get_node("x").distribution.table(Assignment()) == {"a": 0.5, "b": 0.5}


def test_update_propagates_models_to_fixpoint():
    calls = []

    def add_decision(state, variables):
        calls.append(set(variables))
        state.add_node(ActionNode("a_m'", ["yes", "no"]), replace=True)

    state = StateGraph()
    state.attach_model(Model("decision", ["a_u"], add_decision))
    state.update({"a_u": "request"})

    assert calls == [{"a_u"}]
    assert state.action_variables() == ["a_m'"]
    assert state.new_variables == set()


def test_update_stops_after_max_rounds():
    counter = {"n": 0}

    def grow(state, variables):
        counter["n"] += 1
        name = f"v{counter['n']}"
        state.add_to_state({name: 1})

    state = StateGraph(max_propagation_rounds=3)
    state.attach_model(Model("grow", ["start"] + [f"v{i}" for i in range(1, 10)], grow))
    state.update({"start": 1})

    assert counter["n"] == 3
    assert state.new_variables == set()
