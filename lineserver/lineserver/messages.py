"""Typed messages passed between the reactor and the owning process.

``Invoke`` travels from the dispatcher to the handler process;
``Result`` and ``Error`` travel back to the response emitter.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Sequence, Union

# A handler reference is either a callable or the name of a state in the
# owning process's ``HandlerTable``.  The reactor never calls it.
HandlerRef = Union[str, Callable[..., Any]]


@dataclass(frozen=True, slots=True)
class Invoke:
    connection_id: int
    handler: HandlerRef
    params: Sequence[Any]


@dataclass(frozen=True, slots=True)
class Result:
    connection_id: int
    values: tuple[Any, ...]


@dataclass(frozen=True, slots=True)
class Error:
    connection_id: int
    message: str


Completion = Union[Result, Error]
