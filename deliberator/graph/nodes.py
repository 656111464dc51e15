"""
Graph vertices: a closed set of node kinds

Nodes refer to their parents and children by name only; the state graph is the
arena that resolves names to nodes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Set, Tuple, Union

from .assignment import PREDICTION, Value
from .distributions import Distribution, UtilityFunction


class NodeKind(Enum):
    CHANCE = "chance"
    ACTION = "action"
    UTILITY = "utility"


@dataclass
class ChanceNode:
    name: str
    distribution: Distribution
    parents: Tuple[str, ...] = ()
    is_parameter: bool = False
    children: Set[str] = field(default_factory=set)
    kind: NodeKind = field(default=NodeKind.CHANCE, init=False)

    @property
    def is_prediction(self) -> bool:
        return PREDICTION in self.name

    def copy(self) -> "ChanceNode":
        # the distribution is shared: it is never mutated in place
        return ChanceNode(self.name, self.distribution, tuple(self.parents), self.is_parameter, set(self.children))


@dataclass
class ActionNode:
    name: str
    values: List[Value]
    parents: Tuple[str, ...] = ()
    children: Set[str] = field(default_factory=set)
    kind: NodeKind = field(default=NodeKind.ACTION, init=False)

    def copy(self) -> "ActionNode":
        return ActionNode(self.name, list(self.values), tuple(self.parents), set(self.children))


@dataclass
class UtilityNode:
    name: str
    function: UtilityFunction
    parents: Tuple[str, ...] = ()
    children: Set[str] = field(default_factory=set)
    kind: NodeKind = field(default=NodeKind.UTILITY, init=False)

    def copy(self) -> "UtilityNode":
        return UtilityNode(self.name, self.function, tuple(self.parents), set(self.children))


Node = Union[ChanceNode, ActionNode, UtilityNode]
