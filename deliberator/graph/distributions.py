"""
Conditional distributions for chance nodes and utility functions for utility nodes

Distribution objects are treated as immutable once attached to a node, so
cloned graphs share them by reference.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections import Counter, defaultdict
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

import numpy as np

from .assignment import NONE, Assignment, Value
from .tables import ProbabilityTable


class Distribution(ABC):
    """P(variable | condition) for a single chance variable."""

    def __init__(self, variable: str):
        self.variable = variable

    @abstractmethod
    def table(self, condition: Assignment) -> Dict[Value, float]:
        """Value -> probability given the (projected) parent values."""

    def prob(self, condition: Assignment, value: Value) -> float:
        return self.table(condition).get(value, 0.0)

    def sample(self, condition: Assignment, rng: np.random.Generator) -> Value:
        table = self.table(condition)
        if not table:
            return NONE
        values = list(table)
        weights = np.fromiter(table.values(), dtype=float)
        total = weights.sum()
        if total <= 0:
            return values[int(rng.integers(len(values)))]
        index = int(np.searchsorted(np.cumsum(weights), rng.random() * total, side="right"))
        return values[min(index, len(values) - 1)]

    @abstractmethod
    def values(self) -> List[Value]:
        ...


class ConditionalTable(Distribution):
    """Tabular P(X | parents); conditions missing from the table yield X=None."""

    def __init__(self, variable: str, rows: Optional[Mapping[Assignment, Mapping[Value, float]]] = None):
        super().__init__(variable)
        self._tables: Dict[Assignment, Dict[Value, float]] = {}
        self._conditioning: set = set()
        for condition, table in (rows or {}).items():
            for value, prob in table.items():
                self.add_row(condition, value, prob)

    @classmethod
    def marginal(cls, variable: str, table: Mapping[Value, float]) -> "ConditionalTable":
        return cls(variable, {Assignment(): table})

    @classmethod
    def from_table(cls, variable: str, table: ProbabilityTable) -> "ConditionalTable":
        """Unconditional distribution from the marginal of `variable` in a table."""
        values: Dict[Value, float] = {}
        for row, prob in table.marginal(variable).items():
            values[row[variable]] = values.get(row[variable], 0.0) + prob
        total = sum(values.values())
        if total > 0:
            values = {value: prob / total for value, prob in values.items()}
        return cls.marginal(variable, values)

    def add_row(self, condition: Mapping, value: Value, prob: float) -> None:
        condition = condition if isinstance(condition, Assignment) else Assignment(condition)
        self._conditioning.update(condition.variables)
        self._tables.setdefault(condition, {})[value] = float(prob)

    def table(self, condition: Assignment) -> Dict[Value, float]:
        found = self._tables.get(condition.project(self._conditioning))
        return dict(found) if found is not None else {NONE: 1.0}

    def values(self) -> List[Value]:
        seen: Dict[Value, None] = {}
        for table in self._tables.values():
            seen.update(dict.fromkeys(table))
        return list(seen)

    def __repr__(self) -> str:
        return f"ConditionalTable({self.variable}, {len(self._tables)} conditions)"


class EmpiricalDistribution(Distribution):
    """
    Distribution estimated from a set of (resampled) assignments

    Counts are conditioned on the given parent variables; a condition that no
    sample matches falls back to the marginal over all samples.
    """

    def __init__(self, variable: str, samples: Iterable[Assignment], conditioning: Sequence[str] = ()):
        super().__init__(variable)
        self.conditioning = tuple(conditioning)
        self._marginal: Counter = Counter()
        self._conditional: Dict[Assignment, Counter] = defaultdict(Counter)
        self.nb_samples = 0
        for sample in samples:
            if variable not in sample:
                continue
            value = sample[variable]
            self._marginal[value] += 1
            self._conditional[sample.project(self.conditioning)][value] += 1
            self.nb_samples += 1

    def table(self, condition: Assignment) -> Dict[Value, float]:
        counts = self._conditional.get(condition.project(self.conditioning)) or self._marginal
        total = sum(counts.values())
        if not total:
            return {NONE: 1.0}
        return {value: count / total for value, count in counts.items()}

    def values(self) -> List[Value]:
        return list(self._marginal)

    def __repr__(self) -> str:
        return f"EmpiricalDistribution({self.variable}, {self.nb_samples} samples)"


class UtilityFunction(ABC):
    """Scalar utility of the values of a utility node's parents."""

    @abstractmethod
    def utility(self, assignment: Assignment) -> float:
        ...


class TabularUtility(UtilityFunction):
    """Sum of the utilities of every row whose condition holds in the assignment."""

    def __init__(self, rows: Optional[Iterable[Tuple[Mapping, float]]] = None):
        self._rows: List[Tuple[Assignment, float]] = []
        for condition, utility in rows or ():
            self.add_row(condition, utility)

    def add_row(self, condition: Mapping, utility: float) -> None:
        self._rows.append((Assignment(condition), float(utility)))

    def utility(self, assignment: Assignment) -> float:
        total = 0.0
        for condition, value in self._rows:
            if all(var in assignment and assignment[var] == val for var, val in condition.items()):
                total += value
        return total


class FunctionalUtility(UtilityFunction):
    """Utility computed by a plain callable."""

    def __init__(self, function: Callable[[Assignment], float]):
        self._function = function

    def utility(self, assignment: Assignment) -> float:
        return float(self._function(assignment))
