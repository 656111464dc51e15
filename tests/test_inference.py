import math

import numpy as np
import pytest

from deliberator.core.anytime import CancellationToken
from deliberator.core.exceptions import InferenceError
from deliberator.graph.assignment import Assignment
from deliberator.graph.distributions import ConditionalTable, FunctionalUtility, TabularUtility
from deliberator.graph.nodes import ActionNode, ChanceNode, UtilityNode
from deliberator.graph.state import StateGraph
from deliberator.inference import LikelihoodWeighting, WeightedSample, normalised_weights


def _sprinkler(engine) -> StateGraph:
    state = StateGraph(engine)
    state.add_node(ChanceNode("rain", ConditionalTable.marginal("rain", {True: 0.2, False: 0.8})))
    wet = ConditionalTable("wet", {
        Assignment(rain=True): {True: 0.9, False: 0.1},
        Assignment(rain=False): {True: 0.1, False: 0.9},
    })
    state.add_node(ChanceNode("wet", wet, ("rain",)))
    return state


def test_prior_probabilities_sum_to_one(engine):
    table = _sprinkler(engine).query_prob(["rain", "wet"])
    assert table.total() == pytest.approx(1.0, abs=1e-6)
    assert table.get_prob({"rain": True, "wet": True}) == pytest.approx(0.18, abs=0.04)


def test_evidence_reweights_the_posterior(engine):
    state = _sprinkler(engine)
    posterior = state.query_prob(["rain"], evidence={"wet": True})
    # P(rain | wet) = 0.18 / 0.26
    assert posterior.get_prob({"rain": True}) == pytest.approx(0.692, abs=0.06)
    assert posterior.total() == pytest.approx(1.0, abs=1e-6)


def test_graph_evidence_is_used(engine):
    state = _sprinkler(engine)
    state.add_evidence({"wet": False})
    posterior = state.query_prob(["rain"])
    # P(rain | not wet) = 0.02 / 0.74
    assert posterior.get_prob({"rain": True}) == pytest.approx(0.027, abs=0.03)


def test_impossible_evidence_falls_back_to_uniform(engine):
    state = _sprinkler(engine)
    posterior = state.query_prob(["rain"], evidence={"wet": "maybe"})
    assert not posterior.is_empty()
    assert posterior.total() == pytest.approx(1.0, abs=1e-6)
    assert all(math.isfinite(prob) for _, prob in posterior.items())


def test_unknown_and_empty_targets(engine):
    state = _sprinkler(engine)
    assert state.query_prob([]).is_empty()
    assert state.query_prob(["ghost"]).is_empty()
    assert state.query_prob(["ghost", "rain"]).variables == {"rain"}


def test_query_util_covers_every_action(engine):
    state = StateGraph(engine)
    state.add_node(ActionNode("a", ["yes", "no", "maybe"]))
    state.add_node(UtilityNode("U", TabularUtility([({"a": "yes"}, 1.0), ({"a": "maybe"}, 0.5)]), ("a",)))
    utilities = state.query_util(["a"])
    assert utilities.get_util({"a": "yes"}) == 1.0
    assert utilities.get_util({"a": "maybe"}) == 0.5
    assert utilities.get_util({"a": "no"}) == 0.0
    assert len(utilities) == 3


def test_query_util_averages_over_chance_nodes(engine):
    state = StateGraph(engine)
    state.add_node(ChanceNode("theta", ConditionalTable.marginal("theta", {0.0: 0.5, 1.0: 0.5}), is_parameter=True))
    state.add_node(ActionNode("a", ["yes", "no"]))
    utility = FunctionalUtility(lambda v: v["theta"] if v["a"] == "yes" else 0.2)
    state.add_node(UtilityNode("U", utility, ("theta", "a")))
    utilities = state.query_util(["a"])
    assert utilities.get_util({"a": "yes"}) == pytest.approx(0.5, abs=0.06)
    assert utilities.get_util({"a": "no"}) == pytest.approx(0.2)


def test_cancelled_token_still_yields_samples(engine):
    state = _sprinkler(engine)
    token = CancellationToken()
    token.cancel()
    samples = engine.sample(state, {"wet": True}, token=token)
    assert len(samples) >= 1
    weights = normalised_weights(samples)
    assert np.all(np.isfinite(weights))
    assert weights.sum() == pytest.approx(1.0)


def test_expired_deadline_yields_normalised_table(engine):
    state = _sprinkler(engine)
    table = state.query_prob(["rain"], token=CancellationToken(timeout=0.0))
    assert not table.is_empty()
    assert table.total() == pytest.approx(1.0, abs=1e-6)


def test_failing_utility_raises_inference_error(engine):
    def broken(_):
        raise RuntimeError("boom")

    state = StateGraph(engine)
    state.add_node(ActionNode("a", ["yes"]))
    state.add_node(UtilityNode("U", FunctionalUtility(broken), ("a",)))
    with pytest.raises(InferenceError):
        state.query_util(["a"])


def test_normalised_weights_in_log_space():
    samples = [WeightedSample(Assignment(i=i), log_weight=lw) for i, lw in enumerate([-1000.0, -1000.0 + math.log(3)])]
    weights = normalised_weights(samples)
    assert weights == pytest.approx([0.25, 0.75])


def test_degenerate_weights_are_uniform():
    samples = [WeightedSample(Assignment(i=i), log_weight=-math.inf) for i in range(4)]
    assert normalised_weights(samples) == pytest.approx([0.25] * 4)


def test_seeded_engines_agree(sampling):
    first, second = LikelihoodWeighting(dict(sampling, max_workers=1)), LikelihoodWeighting(dict(sampling, max_workers=1))
    try:
        state = _sprinkler(None)
        a = first.query_prob(state, ["rain"])
        b = second.query_prob(state, ["rain"])
    finally:
        first.close()
        second.close()
    assert a == b
