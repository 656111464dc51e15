import pytest

from deliberator.core.exceptions import LearningError
from deliberator.core.system import DecisionSystem
from deliberator.domain import demo
from deliberator.graph.assignment import Assignment
from deliberator.graph.distributions import ConditionalTable, EmpiricalDistribution, FunctionalUtility
from deliberator.graph.nodes import ActionNode, ChanceNode, UtilityNode
from deliberator.graph.state import StateGraph
from deliberator.modules import RewardLearner, parse_reward_variable, reward_variable


@pytest.fixture
def system(config):
    decision_system = DecisionSystem(config, demo.learning_models(), demo.learning_state())
    yield decision_system
    decision_system.close()


def test_reward_variable_round_trip():
    action = Assignment({"a_m": "yes", "slot": 0.5})
    name = reward_variable(action)
    assert name == "R(a_m=yes ^ slot=0.5)"
    assert parse_reward_variable(name) == action


def test_malformed_reward_variable_is_ignored():
    assert parse_reward_variable("R(a_m=)") is None
    assert parse_reward_variable("not_a_reward") is None


def test_feedback_replaces_parameter_distribution(system):
    result = system.add_content({demo.USER_ACT: "request"})
    assert result.action == Assignment(a_m="yes")
    assert isinstance(system.state.get_node("theta").distribution, ConditionalTable)

    system.add_reward(result.action, 0.8)

    theta = system.state.get_node("theta").distribution
    assert isinstance(theta, EmpiricalDistribution)
    posterior = system.query(["theta"])
    assert posterior.get_prob({"theta": 0.8}) > posterior.get_prob({"theta": 0.2})
    # reward evidence is consumed
    assert not any(name.startswith("R(") for name in system.state.evidence)


def test_feedback_without_snapshot_is_skipped(config):
    state = demo.learning_state()
    prior = state.get_node("theta").distribution
    learner = RewardLearner(config.learning)
    state.add_evidence({reward_variable(Assignment(a_m="yes")): 0.8})

    learner.trigger(state, set(state.evidence))

    assert state.get_node("theta").distribution is prior
    assert state.evidence == Assignment()


def test_malformed_and_non_numeric_rewards_are_cleared(config):
    state = demo.learning_state()
    learner = RewardLearner(config.learning)
    state.add_evidence({"R(a_m=)": 1.0, reward_variable(Assignment(a_m="yes")): "great"})

    learner.trigger(state, set(state.evidence))

    assert state.evidence == Assignment()
    assert isinstance(state.get_node("theta").distribution, ConditionalTable)


def test_snapshot_taken_only_when_actions_exist(config):
    learner = RewardLearner(config.learning)
    state = demo.learning_state()
    learner.trigger(state, set())
    assert len(learner.snapshots) == 0

    state.add_node(ActionNode("a_m'", ["yes", "no"]))
    learner.trigger(state, {"a_m'"})
    assert list(learner.snapshots) == [frozenset({"a_m"})]
    # the snapshot is a clone, not the live state
    assert learner.snapshots[frozenset({"a_m"})] is not state


def test_snapshot_cache_is_bounded_lru():
    learner = RewardLearner({"max_snapshots": 2, "seed": 0})
    state = StateGraph()
    for name in ["a", "b", "c"]:
        learner.store_snapshot(state, [name + "'"])
    assert list(learner.snapshots) == [frozenset({"b"}), frozenset({"c"})]

    learner.store_snapshot(state, ["b"])
    learner.store_snapshot(state, ["d"])
    assert list(learner.snapshots) == [frozenset({"b"}), frozenset({"d"})]


def test_isolated_parameters_are_not_learned(config):
    learner = RewardLearner(config.learning)
    snapshot = demo.learning_state()
    assert learner.relevant_parameters(snapshot) == []
    assert not learner.learn_from_feedback(snapshot.copy(), snapshot, Assignment(a_m="yes"), 0.8)


def test_empty_snapshot_cache_is_rejected():
    with pytest.raises(LearningError):
        RewardLearner({"max_snapshots": 0})


def test_numeric_string_actions_survive_the_reward_name(engine):
    live = StateGraph(engine, name="live")
    prior = ConditionalTable.marginal("theta", {0.0: 0.5, 1.0: 0.5})
    live.add_node(ChanceNode("theta", prior, is_parameter=True))
    live.add_node(ActionNode("a_m'", ["1", "2"]))
    utility = FunctionalUtility(lambda a: a["theta"] if a["a_m'"] == "1" else 0.0)
    live.add_node(UtilityNode("U", utility, ("theta", "a_m'")))
    snapshot = live.copy()

    action = parse_reward_variable(reward_variable(Assignment(a_m="1")))
    assert action == Assignment(a_m="1")
    assert RewardLearner._align_action(snapshot, action) == Assignment({"a_m'": "1"})

    learner = RewardLearner({"max_snapshots": 4, "seed": 0})
    assert learner.learn_from_feedback(live, snapshot, action, 1.0)

    # samples with theta=1 match the observed utility, so they outweigh theta=0 two to one
    theta = live.get_node("theta").distribution
    assert theta.prob(Assignment(), 1.0) > 0.6
