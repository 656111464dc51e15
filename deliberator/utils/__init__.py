"""
Utility helpers
"""

from .strings import short_form, check_form

__all__ = [
    'short_form',
    'check_form'
]
