"""
Small demonstration domains used by the CLI

- lookahead: a yes/no decision whose `yes` leads to a confirmation turn worth
  more than the immediate reward, so a horizon of 2 changes the Q-values.
- learning: the utility of `yes` is an unknown parameter `theta`, refined from
  reward feedback.
"""

from __future__ import annotations

from typing import List, Sequence

from ..graph.assignment import Assignment
from ..graph.distributions import ConditionalTable, FunctionalUtility, TabularUtility
from ..graph.nodes import ActionNode, ChanceNode, UtilityNode
from ..graph.state import StateGraph
from .model import Model

USER_ACT = "a_u"
SYSTEM_ACT = "a_m"
ACTIONS = ["yes", "no"]


def lookahead_models(immediate: float = 1.0, continuation: float = 2.0) -> List[Model]:
    """Decision model on `a_u` and transition model on `a_m`"""

    def add_decision(state: StateGraph, _variables) -> None:
        state.add_node(ActionNode(SYSTEM_ACT + "'", list(ACTIONS)), replace=True)
        utility = TabularUtility([
            ({USER_ACT: "request", SYSTEM_ACT + "'": "yes"}, immediate),
            ({USER_ACT: "confirm", SYSTEM_ACT + "'": "yes"}, continuation),
        ])
        state.add_node(UtilityNode("U", utility, (USER_ACT, SYSTEM_ACT + "'")), replace=True)

    def add_prediction(state: StateGraph, _variables) -> None:
        prediction = ConditionalTable(USER_ACT + "^p", {
            Assignment({SYSTEM_ACT: "yes"}): {"confirm": 1.0},
            Assignment({SYSTEM_ACT: "no"}): {"request": 0.5, "confirm": 0.5},
        })
        state.add_node(ChanceNode(USER_ACT + "^p", prediction, (SYSTEM_ACT,)), replace=True)

    return [
        Model("decision", [USER_ACT], add_decision),
        Model("transition", [SYSTEM_ACT], add_prediction),
    ]


def learning_state(values: Sequence[float] = (0.2, 0.5, 0.8)) -> StateGraph:
    """State holding a uniform prior over the parameter `theta`"""
    state = StateGraph(name="live")
    prior = ConditionalTable.marginal("theta", {value: 1.0 / len(values) for value in values})
    state.add_node(ChanceNode("theta", prior, is_parameter=True))
    return state


def learning_models() -> List[Model]:
    """Decision model on `a_u` whose utility for `yes` is `theta`"""

    def add_decision(state: StateGraph, _variables) -> None:
        state.add_node(ActionNode(SYSTEM_ACT + "'", list(ACTIONS)), replace=True)
        utility = FunctionalUtility(
            lambda a: float(a["theta"]) if a.get(SYSTEM_ACT + "'") == "yes" else 0.0
        )
        state.add_node(UtilityNode("U", utility, ("theta", SYSTEM_ACT + "'")), replace=True)

    return [Model("decision", [USER_ACT], add_decision)]
