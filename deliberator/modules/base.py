"""
Interface shared by the modules plugged into the decision loop
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Collection, Protocol

if TYPE_CHECKING:
    from ..graph.state import StateGraph


class Module(Protocol):
    """A component triggered after each update of the live state graph"""

    def trigger(self, state: "StateGraph", updated_variables: Collection[str]) -> None:
        ...

    def pause(self, should_be_paused: bool) -> None:
        ...

    def is_running(self) -> bool:
        ...
