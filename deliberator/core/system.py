"""
Main decision system orchestrator
"""

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set

from .config import Config
from .exceptions import DeliberatorError
from ..domain.model import Model
from ..graph.assignment import Assignment
from ..graph.state import Content, StateGraph
from ..graph.tables import ProbabilityTable
from ..inference.likelihood_weighting import LikelihoodWeighting
from ..modules.base import Module
from ..modules.learner import RewardLearner, reward_variable
from ..modules.planner import ForwardPlanner, PlanningResult

logger = logging.getLogger(__name__)


class DecisionSystem:
    """
    Decision system orchestrator

    Owns the live state graph and runs the cooperative turn cycle: each update
    is propagated through the domain models, then every module is triggered in
    order (reward learner first, so it snapshots the decision before the
    planner commits it).
    """

    def __init__(self, config: Config, models: Iterable[Model] = (), state: Optional[StateGraph] = None):
        self.config = config
        self.logger = logging.getLogger(self.__class__.__name__)

        try:
            self.engine = LikelihoodWeighting(config.sampling)
            planning = config.planning
            self.learner = RewardLearner(config.learning)
            self.planner = ForwardPlanner(planning)
        except DeliberatorError:
            raise
        except Exception as e:
            raise DeliberatorError(f"Failed to initialize components: {e}")

        self.state = state or StateGraph(name="live")
        self.state.engine = self.engine
        self.state.max_propagation_rounds = int(planning.get('max_propagation_rounds', 10))
        for model in models:
            self.state.attach_model(model)

        self.modules: List[Module] = [self.learner, self.planner]
        self.logger.info("✓ All components initialized successfully")

    def add_content(self, content: Content) -> Optional[PlanningResult]:
        """Add observed content to the live state and run one turn cycle"""
        before = set(self.state.variables())
        try:
            self.state.update(content)
        except Exception as e:
            self.logger.warning(f"⚠️ Could not add content {content}, ending the turn: {e}")
            return None
        after = set(self.state.variables())
        return self._trigger_modules(self._content_variables(content) | (after - before))

    def add_evidence(self, evidence: Mapping) -> Optional[PlanningResult]:
        self.state.add_evidence(evidence)
        return self._trigger_modules(set(evidence))

    def add_reward(self, action: Mapping, utility: float) -> Optional[PlanningResult]:
        """Report the observed utility of a past decision to the learner"""
        return self.add_evidence({reward_variable(Assignment(action)): float(utility)})

    def query(self, variables: Iterable[str]) -> ProbabilityTable:
        return self.state.query_prob(variables)

    def pause(self, should_be_paused: bool) -> None:
        for module in self.modules:
            module.pause(should_be_paused)

    def close(self) -> None:
        self.engine.close()

    def status(self) -> Dict[str, Any]:
        """Summary of the live state, for display"""
        last = self.planner.last_result
        return {
            'nodes': len(self.state),
            'actions': self.state.action_variables(),
            'parameters': self.state.parameter_variables(),
            'evidence': str(self.state.evidence),
            'snapshots': len(self.learner.snapshots),
            'last_action': str(last.action) if last and last.action is not None else None
        }

    def _trigger_modules(self, updated: Set[str]) -> Optional[PlanningResult]:
        previous = self.planner.last_result
        for module in self.modules:
            if not module.is_running():
                continue
            try:
                module.trigger(self.state, updated)
            except Exception as e:
                self.logger.warning(f"⚠️ Module {module.__class__.__name__} failed: {e}")
        result = self.planner.last_result
        return result if result is not previous else None

    @staticmethod
    def _content_variables(content: Content) -> Set[str]:
        if isinstance(content, ProbabilityTable):
            return set(content.variables)
        return set(content)
