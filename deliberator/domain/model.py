"""
Domain models attached to a state graph

A model reacts to newly introduced variables by adding nodes (transitions,
predictions, decision/utility layers). How models are declared and loaded is
up to the domain collaborator; the core only needs this interface.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable, Collection, Iterable

if TYPE_CHECKING:
    from ..graph.state import StateGraph

logger = logging.getLogger(__name__)

ModelEffect = Callable[["StateGraph", Collection[str]], None]


class Model:
    """A named reaction to a set of trigger variables."""

    def __init__(self, name: str, triggers: Iterable[str], effect: ModelEffect):
        self.name = name
        self.triggers = frozenset(triggers)
        self._effect = effect

    def is_triggered(self, variables: Iterable[str]) -> bool:
        return any(variable in self.triggers for variable in variables)

    def trigger(self, state: "StateGraph", variables: Collection[str]) -> None:
        if not self.is_triggered(variables):
            return
        logger.debug(f"Model {self.name} triggered by {sorted(self.triggers & set(variables))}")
        self._effect(state, variables)

    def __repr__(self) -> str:
        return f"Model({self.name}, triggers={sorted(self.triggers)})"
