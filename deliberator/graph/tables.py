"""
Probability and utility tables keyed by assignments
"""

from __future__ import annotations

import math
from typing import Dict, Iterator, List, Mapping, Optional, Tuple

import numpy as np

from ..utils.strings import short_form
from .assignment import Assignment

PROB_TOLERANCE = 1e-6


class ProbabilityTable:
    """Discrete distribution over assignments (a categorical table)."""

    def __init__(self, rows: Optional[Mapping[Assignment, float]] = None):
        self._rows: Dict[Assignment, float] = {}
        for assignment, prob in (rows or {}).items():
            self.add_row(assignment, prob)

    @classmethod
    def deterministic(cls, assignment: Mapping) -> "ProbabilityTable":
        return cls({Assignment(assignment): 1.0})

    def add_row(self, assignment: Mapping, prob: float) -> None:
        if prob < 0 or math.isnan(prob):
            raise ValueError(f"Invalid probability {prob} for {assignment}")
        key = assignment if isinstance(assignment, Assignment) else Assignment(assignment)
        self._rows[key] = self._rows.get(key, 0.0) + float(prob)

    def get_prob(self, assignment: Mapping) -> float:
        return self._rows.get(Assignment(assignment), 0.0)

    @property
    def rows(self) -> List[Assignment]:
        return list(self._rows)

    @property
    def variables(self) -> frozenset:
        names: set = set()
        for row in self._rows:
            names.update(row.variables)
        return frozenset(names)

    def items(self) -> Iterator[Tuple[Assignment, float]]:
        return iter(list(self._rows.items()))

    def is_empty(self) -> bool:
        return not self._rows

    def total(self) -> float:
        return math.fsum(self._rows.values())

    def is_normalised(self) -> bool:
        return not self._rows or abs(self.total() - 1.0) <= PROB_TOLERANCE

    def normalise(self) -> "ProbabilityTable":
        """Return a copy scaled to sum to 1 (uniform if the mass is zero)."""
        total = self.total()
        if total <= 0:
            share = 1.0 / len(self._rows) if self._rows else 0.0
            return ProbabilityTable({row: share for row in self._rows})
        return ProbabilityTable({row: prob / total for row, prob in self._rows.items()})

    def top(self, k: int) -> "ProbabilityTable":
        """Restrict to the k most probable rows (ties keep insertion order)."""
        ranked = sorted(self._rows.items(), key=lambda item: -item[1])[:max(k, 0)]
        return ProbabilityTable(dict(ranked))

    def marginal(self, variable: str) -> "ProbabilityTable":
        result = ProbabilityTable()
        for row, prob in self._rows.items():
            if variable in row:
                result.add_row(row.project([variable]), prob)
        return result

    def rename(self, old: str, new: str) -> "ProbabilityTable":
        result = ProbabilityTable()
        for row, prob in self._rows.items():
            result.add_row(row.rename(old, new), prob)
        return result

    def sample(self, rng: np.random.Generator) -> Assignment:
        if not self._rows:
            raise ValueError("Cannot sample from an empty table")
        rows = list(self._rows)
        weights = np.fromiter(self._rows.values(), dtype=float)
        total = weights.sum()
        if total <= 0:
            return rows[int(rng.integers(len(rows)))]
        index = int(np.searchsorted(np.cumsum(weights), rng.random() * total, side="right"))
        return rows[min(index, len(rows) - 1)]

    def __len__(self) -> int:
        return len(self._rows)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ProbabilityTable):
            return NotImplemented
        if set(self._rows) != set(other._rows):
            return False
        return all(abs(prob - other._rows[row]) <= PROB_TOLERANCE for row, prob in self._rows.items())

    def __str__(self) -> str:
        return "\n".join(f"P({row})={short_form(prob)}" for row, prob in self._rows.items())


class UtilityTable:
    """Expected utility per assignment, in insertion order."""

    def __init__(self, rows: Optional[Mapping[Assignment, float]] = None):
        self._rows: Dict[Assignment, float] = {}
        for assignment, utility in (rows or {}).items():
            self.set_util(assignment, utility)

    def set_util(self, assignment: Mapping, utility: float) -> None:
        key = assignment if isinstance(assignment, Assignment) else Assignment(assignment)
        self._rows[key] = float(utility)

    def get_util(self, assignment: Mapping) -> float:
        return self._rows.get(Assignment(assignment), 0.0)

    def add_util(self, assignment: Mapping, utility: float) -> None:
        self.set_util(assignment, self.get_util(assignment) + utility)

    @property
    def rows(self) -> List[Assignment]:
        return list(self._rows)

    def items(self) -> Iterator[Tuple[Assignment, float]]:
        return iter(list(self._rows.items()))

    def is_empty(self) -> bool:
        return not self._rows

    def best(self) -> Tuple[Assignment, float]:
        """Arg-max row; the first-inserted row wins ties."""
        if not self._rows:
            raise ValueError("Cannot take the best row of an empty utility table")
        best_row, best_util = None, -math.inf
        for row, utility in self._rows.items():
            if best_row is None or utility > best_util:
                best_row, best_util = row, utility
        return best_row, best_util

    def merge(self, other: "UtilityTable") -> "UtilityTable":
        """Additive merge: utilities of shared rows are summed."""
        merged = UtilityTable(self._rows)
        for row, utility in other.items():
            merged.add_util(row, utility)
        return merged

    def top(self, k: int) -> "UtilityTable":
        ranked = sorted(self._rows.items(), key=lambda item: -item[1])[:max(k, 0)]
        return UtilityTable(dict(ranked))

    def __len__(self) -> int:
        return len(self._rows)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, UtilityTable):
            return NotImplemented
        return self._rows == other._rows

    def __str__(self) -> str:
        return "\n".join(f"U({row})={short_form(util)}" for row, util in self._rows.items())
