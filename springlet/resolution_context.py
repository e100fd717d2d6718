"""
ResolutionContext

This module tracks the chain of factory definitions currently producing
a value, which is how circular dependencies are detected.

The context is stored in a ContextVar, so each thread (and each asyncio
task) has its own chain. Two threads resolving the same factory at the
same time are not a cycle; the same factory appearing twice in one
chain is.
"""

from contextvars import ContextVar
from typing import List, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from .definition import Definition


class ResolutionContext:
    """Chain of definitions in flight for one resolution.

    Attributes:
        chain: Definitions currently producing a value, outermost first

    Note:
        This class is used internally by function definitions.
        Users should not need to interact with it directly.

    Example (internal usage)::

        parent = _resolution_context.get()
        ctx = ResolutionContext.enter(parent, definition)
        token = _resolution_context.set(ctx)
        try:
            return producer()
        finally:
            _resolution_context.reset(token)
    """

    def __init__(self, chain: Optional[List['Definition']] = None):
        self.chain: List['Definition'] = list(chain or [])

    @classmethod
    def enter(cls, parent: Optional['ResolutionContext'], definition: 'Definition') -> 'ResolutionContext':
        """Return a new context with ``definition`` appended to the parent's chain."""
        chain = parent.chain if parent is not None else []
        return cls(chain + [definition])

    def is_resolving(self, definition: 'Definition') -> bool:
        return any(d is definition for d in self.chain)

    def describe(self, definition: 'Definition') -> str:
        """Render the cycle ending in ``definition``, e.g. ``A -> B -> A``."""
        return " -> ".join([d.name for d in self.chain] + [definition.name])


# Per-thread resolution chain for circular dependency detection
_resolution_context: ContextVar[Optional[ResolutionContext]] = ContextVar(
    '_SPRINGLET_RESOLUTION_CONTEXT',
    default=None
)
