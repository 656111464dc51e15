"""
String helpers shared by the assignment codec and table rendering
"""

import logging

logger = logging.getLogger(__name__)

_PAIRS = (('(', ')'), ('{', '}'), ('[', ']'))


def short_form(value: float) -> str:
    """Render a number rounded to four decimals, without a trailing '.0'."""
    rounded = repr(round(float(value), 4))
    if rounded.endswith('.0'):
        rounded = rounded[:-2]
    return rounded


def check_form(text: str, show_message: bool = False) -> bool:
    """Return True if parentheses, braces and brackets are balanced in `text`."""
    for opening, closing in _PAIRS:
        if text.count(opening) != text.count(closing):
            if show_message:
                logger.warning(f"Unbalanced '{opening}{closing}' in string: {text}")
            return False
    return True
