"""
Deliberator - Decision-Theoretic Reasoning Core
===============================================

Action selection under uncertainty for interactive agents, built on a
probabilistic state graph of chance, action and utility variables.

Core Components:
- Probabilistic state graph with cloning, evidence and model propagation
- Approximate inference by likelihood weighting on a bounded worker pool
- Anytime forward planner over actions and predicted observations
- Online reward learner re-estimating domain parameters
"""

__version__ = "0.1.0"
__author__ = "Deliberator Project"

from .core.system import DecisionSystem
from .core.config import Config
from .core.exceptions import DeliberatorError

__all__ = [
    'DecisionSystem',
    'Config',
    'DeliberatorError'
]
