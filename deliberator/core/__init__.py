"""
Core components: configuration, errors and cancellation
"""

from .config import Config
from .anytime import CancellationToken
from .exceptions import (
    DeliberatorError,
    ConfigurationError,
    GraphError,
    AssignmentParseError,
    InferenceError,
    PlanningError,
    LearningError
)

__all__ = [
    'Config',
    'CancellationToken',
    'DeliberatorError',
    'ConfigurationError',
    'GraphError',
    'AssignmentParseError',
    'InferenceError',
    'PlanningError',
    'LearningError'
]
