"""
Probabilistic state graph

An arena of nodes indexed by variable name. Edges are name references, so
`copy()` is a structural clone: every node is copied, distributions and
utility functions are shared.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Dict, Iterable, List, Mapping, Optional, Set, Union

from ..core.anytime import CancellationToken
from ..core.exceptions import GraphError
from .assignment import PREDICTION, Assignment, strip_primes
from .distributions import ConditionalTable, Distribution
from .nodes import ChanceNode, Node, NodeKind
from .tables import ProbabilityTable, UtilityTable

if TYPE_CHECKING:
    from ..domain.model import Model
    from ..inference.likelihood_weighting import LikelihoodWeighting

logger = logging.getLogger(__name__)

Content = Union[Assignment, Mapping, ProbabilityTable]


class StateGraph:
    """
    Directed acyclic graph of chance, action and utility nodes

    Holds the current evidence, the set of variables introduced since the last
    propagation round, and the domain models reacting to new variables.
    Queries are delegated to the attached inference engine.
    """

    def __init__(self,
                 engine: Optional["LikelihoodWeighting"] = None,
                 name: str = "state",
                 max_propagation_rounds: int = 10):
        self.name = name
        self.engine = engine
        self.max_propagation_rounds = max_propagation_rounds
        self._nodes: Dict[str, Node] = {}
        self._evidence = Assignment()
        self._new_variables: Dict[str, None] = {}
        self._models: List["Model"] = []

    # ---------------------------------------------------------------- Structure
    def add_node(self, node: Node, replace: bool = False) -> None:
        """Insert a node; its parents must already exist."""
        missing = [p for p in node.parents if p not in self._nodes]
        if missing:
            raise GraphError(f"Node {node.name} refers to unknown parents {missing}")
        if node.name in node.parents:
            raise GraphError(f"Node {node.name} cannot be its own parent")

        old = self._nodes.get(node.name)
        if old is not None:
            if not replace:
                raise GraphError(f"Node {node.name} already exists")
            cyclic = [p for p in node.parents if self.has_descendant(node.name, [p])]
            if cyclic:
                raise GraphError(f"Replacing {node.name} would create a cycle through {cyclic}")
            self._detach_parents(old)
            node.children = set(old.children)

        self._nodes[node.name] = node
        for parent in node.parents:
            self._nodes[parent].children.add(node.name)
        self._new_variables[node.name] = None

    def remove_node(self, name: str) -> None:
        node = self._nodes.pop(name, None)
        if node is None:
            return
        self._detach_parents(node)
        for child in node.children:
            child_node = self._nodes.get(child)
            if child_node is not None:
                child_node.parents = tuple(p for p in child_node.parents if p != name)
        self._new_variables.pop(name, None)
        if name in self._evidence:
            self._evidence = self._evidence.without([name])

    def _detach_parents(self, node: Node) -> None:
        for parent in node.parents:
            parent_node = self._nodes.get(parent)
            if parent_node is not None:
                parent_node.children.discard(node.name)

    def add_to_state(self, content: Content) -> None:
        """
        Add content as unconditional chance nodes, one per variable

        A variable already in the graph is replaced: it loses its parents but
        keeps its children.
        """
        if isinstance(content, ProbabilityTable):
            distributions = [ConditionalTable.from_table(var, content) for var in sorted(content.variables)]
        else:
            assignment = content if isinstance(content, Assignment) else Assignment(content)
            distributions = [ConditionalTable.marginal(var, {val: 1.0}) for var, val in assignment.items()]
        for distribution in distributions:
            self.add_node(ChanceNode(distribution.variable, distribution), replace=True)

    def set_distribution(self, name: str, distribution: Distribution) -> None:
        node = self.get_node(name)
        if node.kind is not NodeKind.CHANCE:
            raise GraphError(f"{name} is a {node.kind.value} node, not a chance node")
        node.distribution = distribution

    # ----------------------------------------------------------------- Evidence
    @property
    def evidence(self) -> Assignment:
        return self._evidence

    def add_evidence(self, evidence: Mapping) -> None:
        self._evidence = self._evidence.union(evidence)

    def clear_evidence(self, variables: Iterable[str]) -> None:
        self._evidence = self._evidence.without(variables)

    # --------------------------------------------------------------- Accessors
    def get_node(self, name: str) -> Node:
        try:
            return self._nodes[name]
        except KeyError:
            raise GraphError(f"Unknown node {name}")

    def has_node(self, name: str) -> bool:
        return name in self._nodes

    def __contains__(self, name: object) -> bool:
        return name in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)

    def variables(self) -> List[str]:
        return list(self._nodes)

    def _names(self, kind: NodeKind) -> List[str]:
        return [name for name, node in self._nodes.items() if node.kind is kind]

    def action_variables(self) -> List[str]:
        return self._names(NodeKind.ACTION)

    def chance_variables(self) -> List[str]:
        return self._names(NodeKind.CHANCE)

    def utility_variables(self) -> List[str]:
        return self._names(NodeKind.UTILITY)

    def parameter_variables(self) -> List[str]:
        return [name for name, node in self._nodes.items()
                if node.kind is NodeKind.CHANCE and node.is_parameter]

    def prediction_variables(self) -> List[str]:
        return [name for name, node in self._nodes.items()
                if node.kind is NodeKind.CHANCE and node.is_prediction]

    @property
    def new_variables(self) -> Set[str]:
        return set(self._new_variables)

    def has_descendant(self, name: str, candidates: Iterable[str]) -> bool:
        """True if any of `candidates` is reachable from `name` through child edges."""
        targets = set(candidates)
        stack = list(self.get_node(name).children)
        seen: Set[str] = set()
        while stack:
            current = stack.pop()
            if current in targets:
                return True
            if current in seen or current not in self._nodes:
                continue
            seen.add(current)
            stack.extend(self._nodes[current].children)
        return False

    def topological_order(self) -> List[str]:
        """Node names with every parent before its children (insertion order breaks ties)."""
        order: List[str] = []
        placed: Set[str] = set()
        pending = list(self._nodes)
        while pending:
            remaining = []
            for name in pending:
                if all(p in placed or p not in self._nodes for p in self._nodes[name].parents):
                    order.append(name)
                    placed.add(name)
                else:
                    remaining.append(name)
            if len(remaining) == len(pending):
                raise GraphError(f"Cycle detected among {remaining}")
            pending = remaining
        return order

    # ------------------------------------------------------------------ Cloning
    def copy(self) -> "StateGraph":
        clone = StateGraph(self.engine, self.name, self.max_propagation_rounds)
        clone._nodes = {name: node.copy() for name, node in self._nodes.items()}
        clone._evidence = self._evidence
        clone._new_variables = dict(self._new_variables)
        clone._models = list(self._models)
        return clone

    def restore(self, backup: "StateGraph") -> None:
        """Roll back to a copy taken earlier with `copy()`"""
        self._nodes = backup._nodes
        self._evidence = backup._evidence
        self._new_variables = dict(backup._new_variables)
        self._models = list(backup._models)

    # -------------------------------------------------------------- Propagation
    @property
    def models(self) -> List["Model"]:
        return list(self._models)

    def attach_model(self, model: "Model") -> None:
        self._models.append(model)

    def reduce(self, recent: Optional[Iterable[str]] = None) -> Set[str]:
        """
        Eliminate nodes that no longer inform anything

        `recent` defaults to the variables introduced since the last round.
        Removes primed action nodes whose unprimed variable was just decided
        (even when the action node itself is still pending propagation),
        prediction placeholders whose observation just arrived, and utility
        nodes that lost an action parent. Returns the removed names.
        """
        recent = set(self._new_variables if recent is None else recent)
        removed: Set[str] = set()
        for name, node in list(self._nodes.items()):
            if node.kind is NodeKind.ACTION and name != strip_primes(name) and strip_primes(name) in recent:
                removed.add(name)
            elif node.kind is NodeKind.CHANCE and node.is_prediction and name.replace(PREDICTION, "") in recent:
                removed.add(name)
        for name, node in list(self._nodes.items()):
            if node.kind is NodeKind.UTILITY and removed.intersection(node.parents):
                removed.add(name)
        for name in removed:
            self.remove_node(name)
        if removed:
            logger.debug(f"Reduced {self.name}: removed {sorted(removed)}")
        return removed

    def update(self, content: Optional[Content] = None) -> None:
        """
        Add content, then propagate attached models to a fixpoint

        Each round takes the newly introduced variables, reduces the graph and
        triggers every model reacting to them, until no new variable appears.
        """
        if content is not None:
            self.add_to_state(content)
        rounds = 0
        while self._new_variables:
            if rounds >= self.max_propagation_rounds:
                logger.warning(f"⚠️ Propagation in {self.name} stopped after {rounds} rounds, "
                               f"unprocessed: {sorted(self._new_variables)}")
                self._new_variables.clear()
                break
            to_process = set(self._new_variables)
            self._new_variables.clear()
            self.reduce(to_process)
            for model in self._models:
                if model.is_triggered(to_process):
                    model.trigger(self, to_process)
            rounds += 1

    # ------------------------------------------------------------------ Queries
    def get_engine(self) -> "LikelihoodWeighting":
        if self.engine is None:
            from ..inference.likelihood_weighting import LikelihoodWeighting  # local import, avoids a cycle
            self.engine = LikelihoodWeighting()
        return self.engine

    def query_prob(self, variables: Iterable[str], evidence: Optional[Mapping] = None,
                   token: Optional[CancellationToken] = None) -> ProbabilityTable:
        return self.get_engine().query_prob(self, list(variables), evidence, token=token)

    def query_util(self, action_variables: Iterable[str], evidence: Optional[Mapping] = None,
                   token: Optional[CancellationToken] = None) -> UtilityTable:
        return self.get_engine().query_util(self, list(action_variables), evidence, token=token)

    def __str__(self) -> str:
        parts = []
        for name in self._nodes:
            node = self._nodes[name]
            parents = f" <- {', '.join(node.parents)}" if node.parents else ""
            parts.append(f"{node.kind.value}:{name}{parents}")
        return f"StateGraph({self.name}: {'; '.join(parts)})"
