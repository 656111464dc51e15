"""
Type definitions shared by the sampling components
"""

import math
from typing import Iterable
from dataclasses import dataclass

from ..graph.assignment import Assignment


@dataclass
class WeightedSample:
    """One simulation trial: sampled values, importance log-weight and utility"""
    assignment: Assignment
    log_weight: float = 0.0      # log of the importance correction
    utility: float = 0.0         # accumulated utility of the trial

    @property
    def weight(self) -> float:
        return math.exp(self.log_weight) if math.isfinite(self.log_weight) else 0.0

    def add_log_weight(self, log_weight: float) -> None:
        self.log_weight += log_weight

    def trim(self, variables: Iterable[str]) -> None:
        """Keep only the given variables in the sampled assignment"""
        self.assignment = self.assignment.project(variables)
