"""
Online forward planner

Builds a lookahead tree (depth = planning horizon) over possible actions and
their predicted observations, estimates the utility of each action and commits
the best one to the state graph.

The planner is an anytime process: it can be terminated at any point (or run
out of time) and still returns the utility estimates accumulated so far.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Collection, Dict, Optional

from ..core.anytime import CancellationToken
from ..core.exceptions import PlanningError
from ..graph.assignment import PREDICTION, Assignment
from ..graph.state import StateGraph
from ..graph.tables import ProbabilityTable, UtilityTable

logger = logging.getLogger(__name__)


class PlannerStatus(Enum):
    IDLE = "idle"
    RUNNING = "running"
    TERMINATED = "terminated"


@dataclass
class PlanningResult:
    """Outcome of one planning cycle"""
    q_values: UtilityTable
    action: Optional[Assignment]     # committed decision (primes removed), None if nothing committed
    defaulted: bool                  # best utility was below epsilon, default action committed instead
    cancelled: bool                  # search was cut short by timeout or termination
    duration_ms: float
    error: Optional[str] = None


class PlannerProcess:
    """
    One planning run over a given state graph

    Lifecycle IDLE -> RUNNING -> TERMINATED. Termination is cooperative: the
    token is checked at every expansion point and passed down to the inference
    engine so in-flight sampling stops as well.
    """

    def __init__(self, state: StateGraph, planner: "ForwardPlanner"):
        self.initial_state = state
        self.planner = planner
        self.status = PlannerStatus.IDLE
        self._token: Optional[CancellationToken] = None

    @property
    def is_terminated(self) -> bool:
        return self.status is PlannerStatus.TERMINATED or (self._token is not None and self._token.is_cancelled())

    def terminate(self) -> None:
        if self._token is not None:
            self._token.cancel()

    def run(self) -> PlanningResult:
        """Estimate Q-values up to the horizon and commit the best action"""
        self._token = CancellationToken(self.planner.timeout)
        self.status = PlannerStatus.RUNNING
        start_time = time.time()
        q_values = UtilityTable()
        action: Optional[Assignment] = None
        defaulted = False
        error = None

        try:
            q_values = self.get_q_values(self.initial_state, self.planner.horizon)
            if q_values.is_empty():
                logger.info("No action to evaluate, nothing committed")
            else:
                best_action, best_utility = q_values.best()
                if best_utility < self.planner.utility_epsilon:
                    best_action = Assignment.create_default(best_action.variables)
                    defaulted = True
                action = best_action.remove_primes()
                self.commit(action)
        except Exception as e:
            logger.warning(f"⚠️ Could not perform planning, aborting action selection: {e}")
            action, defaulted, error = None, False, str(e)
        finally:
            cancelled = self._token.is_cancelled()
            self.status = PlannerStatus.TERMINATED

        result = PlanningResult(
            q_values=q_values,
            action=action,
            defaulted=defaulted,
            cancelled=cancelled,
            duration_ms=(time.time() - start_time) * 1000,
            error=error
        )
        logger.info(f"🎯 Planning done: action={action} defaulted={defaulted} "
                    f"cancelled={cancelled} ({result.duration_ms:.1f}ms)")
        return result

    def commit(self, action: Assignment) -> None:
        """Write the decision into the state; on failure the state is rolled back"""
        backup = self.initial_state.copy()
        try:
            self.initial_state.update(action)
        except Exception:
            self.initial_state.restore(backup)
            raise

    def get_q_values(self, state: StateGraph, horizon: int) -> UtilityTable:
        """
        Q-values of the state's action assignments for the given horizon

        At horizon 1 this is exactly the immediate expected utility. Beyond
        that, each non-default action with a transition model is simulated on
        a copy of the state and its discounted expected value is added.
        """
        action_variables = state.action_variables()
        if not action_variables:
            return UtilityTable()

        rewards = state.query_util(action_variables, token=self._token)
        if horizon == 1:
            return rewards

        q_values = UtilityTable()
        for action, reward in rewards.top(self.planner.nb_best_actions).items():
            q_values.set_util(action, reward)
            if self.is_terminated or action.is_default() or not self._has_transition(state, action):
                continue
            copy = state.copy()
            copy.update(action.remove_primes())
            expected = self.planner.discount_factor * self.get_expected_value(copy, horizon - 1)
            q_values.add_util(action, expected)
        return q_values

    def get_expected_value(self, state: StateGraph, horizon: int) -> float:
        """Expected value of the state, summed over its most probable observations"""
        observations = self.get_observations(state)
        expected_value = 0.0
        for observation, prob in observations.top(self.planner.nb_best_observations).items():
            if prob <= self.planner.min_observation_prob:
                continue
            if self.is_terminated:
                break
            copy = state.copy()
            copy.update(observation)
            q_values = self.get_q_values(copy, horizon)
            if not q_values.is_empty():
                expected_value += prob * q_values.best()[1]
        return expected_value

    def get_observations(self, state: StateGraph) -> ProbabilityTable:
        """
        Distribution of the next observations, from the prediction placeholders

        Placeholders that are ancestors of other placeholders are intermediate
        predictions and are skipped. The `^p` marker is stripped from the result.
        """
        predictions = set(state.prediction_variables())
        final = sorted(name for name in predictions if not state.has_descendant(name, predictions - {name}))
        if not final:
            return ProbabilityTable()
        observations = state.query_prob(final, token=self._token)
        return observations.rename(PREDICTION, "")

    @staticmethod
    def _has_transition(state: StateGraph, action: Assignment) -> bool:
        variables = action.remove_primes().variables
        return any(model.is_triggered(variables) for model in state.models)


class ForwardPlanner:
    """
    Forward planner module

    Configuration keys (the `planning` config section): horizon,
    discount_factor, nb_best_actions, nb_best_observations,
    min_observation_prob, timeout, utility_epsilon.
    """

    def __init__(self, config: Dict[str, Any]):
        self.config = config

        self.horizon = int(config.get('horizon', 1))
        if self.horizon < 1:
            raise PlanningError(f"Planning horizon must be at least 1, got {self.horizon}")
        self.discount_factor = float(config.get('discount_factor', 0.8))
        self.nb_best_actions = int(config.get('nb_best_actions', 100))
        self.nb_best_observations = int(config.get('nb_best_observations', 3))
        self.min_observation_prob = float(config.get('min_observation_prob', 0.1))
        self.utility_epsilon = float(config.get('utility_epsilon', 0.001))
        self.timeout = config.get('timeout')
        if self.timeout is None:
            self.timeout = 2 * float(config.get('max_sampling_time', 0.25))

        self.paused = False
        self.current_process: Optional[PlannerProcess] = None
        self.last_result: Optional[PlanningResult] = None

        logger.info(f"ForwardPlanner initialized: horizon={self.horizon}, "
                    f"discount={self.discount_factor}, timeout={float(self.timeout):.3f}s")

    def pause(self, should_be_paused: bool) -> None:
        self.paused = should_be_paused

    def is_running(self) -> bool:
        return not self.paused

    def trigger(self, state: StateGraph, updated_variables: Collection[str]) -> None:
        """Plan synchronously if the state exposes at least one action variable"""
        if not self.paused and state.action_variables():
            self.plan(state)

    def plan(self, state: StateGraph) -> PlanningResult:
        self.current_process = PlannerProcess(state, self)
        try:
            self.last_result = self.current_process.run()
        finally:
            self.current_process = None
        return self.last_result

    def terminate(self) -> None:
        """Cancel the running search; its partial Q-values are still used"""
        if self.current_process is not None:
            self.current_process.terminate()
