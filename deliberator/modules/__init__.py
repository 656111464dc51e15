"""
Modules triggered by the decision loop
"""

from .planner import ForwardPlanner, PlannerProcess, PlannerStatus, PlanningResult
from .learner import RewardLearner, reward_variable, parse_reward_variable

__all__ = [
    'ForwardPlanner',
    'PlannerProcess',
    'PlannerStatus',
    'PlanningResult',
    'RewardLearner',
    'reward_variable',
    'parse_reward_variable'
]
