"""
Approximate inference components
"""

from .types import WeightedSample
from .likelihood_weighting import LikelihoodWeighting, normalised_weights, redraw_samples

__all__ = [
    'WeightedSample',
    'LikelihoodWeighting',
    'normalised_weights',
    'redraw_samples'
]
