"""
Injection failure listeners

Every injection slot carries a lookup expression ``"name[,policy]*"``.
The policies decide what happens when the slot cannot be resolved:

- ``required`` (default): the failure is escalated to
  :class:`~springlet.exceptions.RequiredDependencyError`
- ``omiterror`` (alias ``omit-on-error``): the failure is logged and the
  slot is left empty

Additional policies can be added with ``ListenerManager.add_listener``.
"""

import logging
from typing import Dict, List, NamedTuple, Protocol

from .exceptions import RequiredDependencyError

logger = logging.getLogger(__name__)

REQUIRED = "required"
OMIT_ERROR = "omiterror"
OMIT_ON_ERROR = "omit-on-error"


class InjectListener(Protocol):
    def on_inject_failed(self, error: Exception) -> None:
        ...


class RequiredListener:
    """Escalates a failed slot to a fatal error."""

    def on_inject_failed(self, error: Exception) -> None:
        raise RequiredDependencyError(str(error)) from error


class OmitErrorListener:
    """Logs a failed slot and lets injection continue."""

    def on_inject_failed(self, error: Exception) -> None:
        logger.error("%s", error)


class InjectSlot(NamedTuple):
    """A parsed lookup expression.

    Attributes:
        name: Explicit bean name, empty for auto-wiring
        policies: Policy names, ``["required"]`` when none were given
        listeners: Listeners registered for those policies
    """
    name: str
    policies: List[str]
    listeners: List[InjectListener]

    @property
    def required(self) -> bool:
        return REQUIRED in self.policies


class ListenerManager:
    """Maps policy names to injection failure listeners.

    Example::

        manager = ListenerManager()
        slot = manager.parse("primaryDb,omiterror")
        slot.name        # 'primaryDb'
        slot.policies    # ['omiterror']
    """

    def __init__(self):
        omit = OmitErrorListener()
        self._listeners: Dict[str, InjectListener] = {
            REQUIRED: RequiredListener(),
            OMIT_ERROR: omit,
            OMIT_ON_ERROR: omit,
        }

    def add_listener(self, policy: str, listener: InjectListener) -> None:
        """Register (or replace) the listener for ``policy``."""
        if listener is not None:
            self._listeners[policy] = listener

    def parse(self, expr: str) -> InjectSlot:
        """Split ``"name,policy,..."`` into the name and its listeners.

        Unknown policies are kept in ``policies`` but have no listener.
        """
        parts = [p.strip() for p in (expr or "").split(",")]
        name, policies = parts[0], [p for p in parts[1:] if p]
        if not policies:
            policies = [REQUIRED]
        if OMIT_ON_ERROR in policies:
            policies = [OMIT_ERROR if p == OMIT_ON_ERROR else p for p in policies]

        listeners = []
        for policy in policies:
            listener = self._listeners.get(policy)
            if listener is not None:
                listeners.append(listener)
        return InjectSlot(name, policies, listeners)
