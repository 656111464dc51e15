"""
Probabilistic state graph primitives
"""

from .assignment import Assignment, NONE
from .tables import ProbabilityTable, UtilityTable
from .distributions import (
    ConditionalTable,
    EmpiricalDistribution,
    TabularUtility,
    FunctionalUtility
)
from .nodes import ChanceNode, ActionNode, UtilityNode, NodeKind
from .state import StateGraph

__all__ = [
    'Assignment',
    'NONE',
    'ProbabilityTable',
    'UtilityTable',
    'ConditionalTable',
    'EmpiricalDistribution',
    'TabularUtility',
    'FunctionalUtility',
    'ChanceNode',
    'ActionNode',
    'UtilityNode',
    'NodeKind',
    'StateGraph'
]
