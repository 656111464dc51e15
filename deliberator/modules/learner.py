"""
Reward learner

Estimates domain parameters online from reward feedback. Feedback arrives as
evidence variables named `R(<action assignment>)` holding the observed utility
of a past decision. The learner matches it to the cached state in which that
decision was taken and re-estimates the posterior of the relevant parameters by
importance reweighting and resampling of utility samples.
"""

from __future__ import annotations

import logging
import math
from collections import OrderedDict
from typing import Any, Collection, Dict, FrozenSet, List, Optional

import numpy as np

from ..core.exceptions import DeliberatorError, LearningError
from ..graph.assignment import Assignment, strip_primes
from ..graph.distributions import EmpiricalDistribution
from ..graph.nodes import NodeKind
from ..graph.state import StateGraph
from ..inference.likelihood_weighting import redraw_samples

logger = logging.getLogger(__name__)

REWARD_PREFIX = "R("
REWARD_SUFFIX = ")"


def reward_variable(action: Assignment) -> str:
    """Name of the evidence variable carrying the reward for `action`"""
    return f"{REWARD_PREFIX}{action}{REWARD_SUFFIX}"


def parse_reward_variable(variable: str) -> Optional[Assignment]:
    """Action assignment encoded in a reward variable name, None if it is not one"""
    if not is_reward_variable(variable):
        return None
    try:
        return Assignment.from_string(variable[len(REWARD_PREFIX):-len(REWARD_SUFFIX)])
    except ValueError as e:
        logger.warning(f"⚠️ Ignoring malformed reward variable {variable!r}: {e}")
        return None


def is_reward_variable(variable: str) -> bool:
    return variable.startswith(REWARD_PREFIX) and variable.endswith(REWARD_SUFFIX)


class RewardLearner:
    """
    Reward learner module

    Keeps one snapshot of the state per action-variable set (the most recent
    decision over those variables) in an LRU cache bounded by `max_snapshots`.
    """

    def __init__(self, config: Dict[str, Any], rng: Optional[np.random.Generator] = None):
        self.config = config
        self.max_snapshots = int(config.get('max_snapshots', 32))
        if self.max_snapshots < 1:
            raise LearningError(f"Snapshot cache needs room for at least one decision, got {self.max_snapshots}")
        self.rng = rng or np.random.default_rng(config.get('seed'))
        self.snapshots: "OrderedDict[FrozenSet[str], StateGraph]" = OrderedDict()
        self.paused = False

        logger.info(f"RewardLearner initialized with max_snapshots={self.max_snapshots}")

    def pause(self, should_be_paused: bool) -> None:
        self.paused = should_be_paused

    def is_running(self) -> bool:
        return not self.paused

    def trigger(self, state: StateGraph, updated_variables: Collection[str]) -> None:
        """
        Learn from every reward variable in the evidence, then cache a snapshot
        of the state if it currently holds a decision
        """
        if self.paused:
            return

        for variable in [v for v in state.evidence if is_reward_variable(v)]:
            action = parse_reward_variable(variable)
            utility = self._as_float(state.evidence[variable])
            if action is not None and utility is not None:
                snapshot = self.snapshots.get(self._key(action.variables))
                if snapshot is not None:
                    self.snapshots.move_to_end(self._key(action.variables))
                    self.learn_from_feedback(state, snapshot, action, utility)
                else:
                    logger.debug(f"No cached decision for {sorted(action.variables)}, skipping {variable}")
            state.clear_evidence([variable])

        action_variables = state.action_variables()
        if action_variables:
            self.store_snapshot(state, action_variables)

    def store_snapshot(self, state: StateGraph, action_variables: Collection[str]) -> None:
        key = self._key(action_variables)
        self.snapshots[key] = state.copy()
        self.snapshots.move_to_end(key)
        while len(self.snapshots) > self.max_snapshots:
            evicted, _ = self.snapshots.popitem(last=False)
            logger.debug(f"Evicted snapshot for {sorted(evicted)}")

    def relevant_parameters(self, snapshot: StateGraph) -> List[str]:
        """Parameter nodes with at least one dependent; isolated ones carry no signal"""
        return [name for name in snapshot.parameter_variables() if snapshot.get_node(name).children]

    def learn_from_feedback(self,
                            state: StateGraph,
                            snapshot: StateGraph,
                            action: Assignment,
                            utility: float) -> bool:
        """
        Re-estimate the relevant parameters of `state` given that `action`,
        taken in `snapshot`, yielded `utility`

        Returns True if at least one parameter distribution was replaced.
        """
        parameters = self.relevant_parameters(snapshot)
        if not parameters:
            logger.debug("No relevant parameters in the snapshot, nothing to learn")
            return False

        try:
            evidence = self._align_action(snapshot, action)
            samples = snapshot.get_engine().utility_samples(snapshot, evidence)

            for sample in samples:
                sample.add_log_weight(math.log(1.0 / (abs(sample.utility - utility) + 1.0)))
            samples = redraw_samples(samples, self.rng)
            for sample in samples:
                sample.trim(parameters)
            assignments = [sample.assignment for sample in samples]
        except DeliberatorError as e:
            logger.warning(f"⚠️ Could not learn from action feedback: {e}")
            return False

        updated = 0
        for parameter in parameters:
            if not state.has_node(parameter) or state.get_node(parameter).kind is not NodeKind.CHANCE:
                logger.debug(f"Parameter {parameter} is not in {state.name}, skipping it")
                continue
            node = state.get_node(parameter)
            state.set_distribution(parameter, EmpiricalDistribution(parameter, assignments, node.parents))
            updated += 1

        logger.info(f"🎯 Updated {updated} parameter(s) from reward {utility} for {action}")
        return updated > 0

    @staticmethod
    def _key(action_variables: Collection[str]) -> FrozenSet[str]:
        return frozenset(strip_primes(variable) for variable in action_variables)

    @staticmethod
    def _align_action(snapshot: StateGraph, action: Assignment) -> Assignment:
        """Map the decided values onto the snapshot's (possibly primed) action nodes"""
        aligned = {}
        by_base = {strip_primes(name): name for name in snapshot.action_variables()}
        for variable, value in action.items():
            aligned[by_base.get(strip_primes(variable), variable)] = value
        return Assignment(aligned)

    @staticmethod
    def _as_float(value: Any) -> Optional[float]:
        if isinstance(value, bool):
            return None
        try:
            result = float(value)
        except (TypeError, ValueError):
            logger.warning(f"⚠️ Reward value {value!r} is not numeric, ignoring it")
            return None
        return result if math.isfinite(result) else None
