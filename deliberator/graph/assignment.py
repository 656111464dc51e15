"""
Immutable variable assignments and their canonical string encoding

An assignment is written `var1=val1 ^ var2=val2`, variables in sorted order, so
that `Assignment.from_string(str(a)) == a` for every printable assignment.
"""

from __future__ import annotations

import json
import re
from typing import Any, Dict, Iterable, Iterator, Mapping, Optional, Tuple, Union

from ..core.exceptions import AssignmentParseError
from ..utils.strings import check_form

Value = Union[str, int, float, bool]

NONE = "None"
PRIME = "'"
PREDICTION = "^p"
SEPARATOR = " ^ "
_SPLIT = re.compile(r"\s+\^\s+")


def strip_primes(variable: str) -> str:
    return variable.rstrip(PRIME)


def _encode(value: Value) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        return repr(value)
    if isinstance(value, str) and _needs_quotes(value):
        return json.dumps(value, ensure_ascii=False)
    return str(value)


def _needs_quotes(value: str) -> bool:
    """Strings that would not read back as the same string unquoted"""
    return not value or value != value.strip() or _decode(value) != value


def _decode(raw: str) -> Value:
    if len(raw) >= 2 and raw[0] == raw[-1] == '"':
        try:
            return json.loads(raw)
        except ValueError:
            return raw
    if raw == "true":
        return True
    if raw == "false":
        return False
    try:
        return int(raw)
    except ValueError:
        pass
    try:
        return float(raw)
    except ValueError:
        return raw


class Assignment(Mapping[str, Value]):
    """Immutable mapping from variable names to values."""

    __slots__ = ("_pairs", "_hash")

    def __init__(self, pairs: Optional[Union[Mapping[str, Value], Iterable[Tuple[str, Value]]]] = None, **kwargs: Value):
        merged: Dict[str, Value] = dict(pairs or {})
        merged.update(kwargs)
        self._pairs = merged
        self._hash: Optional[int] = None

    # ------------------------------------------------------------------ Mapping
    def __getitem__(self, variable: str) -> Value:
        return self._pairs[variable]

    def __iter__(self) -> Iterator[str]:
        return iter(self._pairs)

    def __len__(self) -> int:
        return len(self._pairs)

    def __hash__(self) -> int:
        if self._hash is None:
            self._hash = hash(frozenset(self._pairs.items()))
        return self._hash

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Assignment):
            return self._pairs == other._pairs
        if isinstance(other, Mapping):
            return self._pairs == dict(other)
        return NotImplemented

    def __repr__(self) -> str:
        return f"Assignment({self})"

    def __str__(self) -> str:
        return SEPARATOR.join(f"{var}={_encode(self._pairs[var])}" for var in sorted(self._pairs))

    # --------------------------------------------------------------- Operations
    @property
    def variables(self) -> frozenset:
        return frozenset(self._pairs)

    def union(self, other: Mapping[str, Value]) -> "Assignment":
        """Combine two assignments, values of `other` taking precedence."""
        merged = dict(self._pairs)
        merged.update(other)
        return Assignment(merged)

    __add__ = union

    def project(self, variables: Iterable[str]) -> "Assignment":
        return Assignment({var: self._pairs[var] for var in variables if var in self._pairs})

    def without(self, variables: Iterable[str]) -> "Assignment":
        dropped = set(variables)
        return Assignment({var: val for var, val in self._pairs.items() if var not in dropped})

    def consistent_with(self, other: Mapping[str, Value]) -> bool:
        """True if every variable shared with `other` carries the same value."""
        return all(other[var] == val for var, val in self._pairs.items() if var in other)

    def remove_primes(self) -> "Assignment":
        return Assignment({strip_primes(var): val for var, val in self._pairs.items()})

    def rename(self, old: str, new: str) -> "Assignment":
        """Replace `old` by `new` in every variable name."""
        return Assignment({var.replace(old, new): val for var, val in self._pairs.items()})

    def is_default(self) -> bool:
        return bool(self._pairs) and all(val == NONE for val in self._pairs.values())

    @classmethod
    def create_default(cls, variables: Iterable[str]) -> "Assignment":
        return cls({var: NONE for var in variables})

    @classmethod
    def from_string(cls, text: str) -> "Assignment":
        """Parse the canonical encoding produced by `str(assignment)`."""
        text = text.strip()
        if not text:
            return cls()
        if not check_form(text):
            raise AssignmentParseError(f"Unbalanced brackets in assignment: {text!r}")
        pairs: Dict[str, Value] = {}
        for chunk in _SPLIT.split(text):
            variable, eq, raw = chunk.strip().partition("=")
            variable, raw = variable.strip(), raw.strip()
            if not eq or not variable or not raw:
                raise AssignmentParseError(f"Malformed pair {chunk!r} in assignment: {text!r}")
            if variable in pairs:
                raise AssignmentParseError(f"Duplicate variable {variable!r} in assignment: {text!r}")
            pairs[variable] = _decode(raw)
        return cls(pairs)

    def to_dict(self) -> Dict[str, Any]:
        return dict(self._pairs)
