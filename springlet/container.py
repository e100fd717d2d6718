"""
Container

This module provides the bean container: a thread-safe, priority-ordered
registry mapping names to bean definitions. It is responsible for:

- Building definitions from registered values through a creator table
- Rejecting duplicate names
- Looking up definitions and produced values by name or type
- Scanning all entries in a stable (order, registration sequence) order

The container is typically driven by an ApplicationContext, which adds
dependency injection and lifecycle sequencing on top.
"""

import logging
import threading
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from .definition import DEFAULT_DEFINITION_CREATORS, BeanShape, Definition, DefinitionCreator, detect_shape
from .exceptions import DefinitionNotFoundError, DuplicateDefinitionError, RegistrationError
from .reflection import type_name

logger = logging.getLogger(__name__)

Visitor = Callable[[str, Definition], Any]


class _Entry:
    __slots__ = ('name', 'definition', 'order', 'seq', 'alias_seq')

    def __init__(self, name: str, definition: Definition, order: int, seq: int, alias_seq: int = 0):
        self.name = name
        self.definition = definition
        self.order = order
        self.seq = seq
        self.alias_seq = alias_seq


class Container:
    """Priority-ordered bean registry.

    Entries are scanned in ascending ``order``; entries with the same
    order are scanned in registration sequence.

    Attributes:
        _entries: Dictionary mapping names to entries
        _creators: Strategy table building a definition per producer shape

    Example::

        container = Container()
        container.register(Database())
        container.register(create_repository, order=10)

        db = container.get_by_type(Database)
        container.scan(lambda name, d: print(name) or True)
    """

    def __init__(self, creators: Optional[Mapping[BeanShape, DefinitionCreator]] = None):
        """Initialize an empty container.

        Args:
            creators: Definition creators keyed by producer shape. Defaults
                to ``DEFAULT_DEFINITION_CREATORS``; pass a custom table to
                support additional shapes or replace the built-in ones.
        """
        self._creators: Dict[BeanShape, DefinitionCreator] = dict(
            creators if creators is not None else DEFAULT_DEFINITION_CREATORS
        )
        self._lock = threading.Lock()
        self._entries: Dict[str, _Entry] = {}
        self._seq = 0
        self._sorted: List[_Entry] = []
        self._dirty = False

    def create_definition(self, value: Any) -> Definition:
        """Build a definition for ``value`` without registering it.

        Raises:
            RegistrationError: When the shape is unknown or the value is invalid
        """
        shape = detect_shape(value)
        creator = self._creators.get(shape)
        if creator is None:
            raise RegistrationError(f"No definition creator for bean shape {shape.value}")
        return creator(value)

    def register(self, value: Any, order: int = 0) -> str:
        """Register a bean under its type-derived name.

        Args:
            value: Instance, zero-argument factory, class, list, dict
                or CustomBeanFactory
            order: Scan priority; lower values are visited first

        Returns:
            The registration name

        Raises:
            RegistrationError: When the value cannot be registered
            DuplicateDefinitionError: When the name is already taken
        """
        return self.register_by_name("", value, order)

    def register_by_name(self, name: str, value: Any, order: int = 0) -> str:
        """Register a bean under ``name``, or its type-derived name when empty.

        Raises:
            RegistrationError: When the value cannot be registered
            DuplicateDefinitionError: When the name is already taken
        """
        definition = self.create_definition(value)
        if not name:
            name = definition.name
        self._put(name, definition, order)
        logger.debug("Registered bean %s (%s, order %d)", name, definition.shape.value, order)
        return name

    def get(self, name: str) -> Any:
        """Return the value produced by the definition registered under ``name``.

        Object beans return the same instance every call; function beans
        invoke their factory on every call.

        Raises:
            DefinitionNotFoundError: When nothing is registered under ``name``
        """
        definition = self.get_definition(name)
        if definition is None:
            raise DefinitionNotFoundError(
                f"Bean {name} is not registered.\n"
                f"Registered beans: {', '.join(self.names()) or 'None'}"
            )
        return definition.value()

    def get_by_type(self, bean_type: Any) -> Any:
        """Return the bean registered under ``bean_type``'s canonical name.

        Raises:
            DefinitionNotFoundError: When nothing is registered under that name
        """
        return self.get(type_name(bean_type))

    def get_definition(self, name: str) -> Optional[Definition]:
        with self._lock:
            entry = self._entries.get(name)
            return entry.definition if entry is not None else None

    def put_definition(self, name: str, definition: Definition) -> None:
        """Store an existing definition under an additional name.

        Used by the injector to cache auto-wired matches. When the
        definition is already registered, the new entry takes its position
        and is scanned right after the original.

        Raises:
            DuplicateDefinitionError: When the name is already taken
        """
        with self._lock:
            owner = None
            for entry in self._entries.values():
                if entry.definition is definition and entry.alias_seq == 0:
                    owner = entry
                    break
            if owner is None:
                self._put_locked(name, definition, 0)
            else:
                self._put_locked(name, definition, owner.order, owner)

    def scan(self, visitor: Visitor) -> None:
        """Visit ``(name, definition)`` pairs in priority order.

        Iteration stops when the visitor returns a falsy value. The
        entries are snapshotted first, so the visitor may look up or
        cache definitions without deadlocking.
        """
        for entry in self._snapshot():
            if not visitor(entry.name, entry.definition):
                break

    def names(self) -> List[str]:
        """Registration names in scan order."""
        return [entry.name for entry in self._snapshot()]

    def _put(self, name: str, definition: Definition, order: int) -> None:
        with self._lock:
            self._put_locked(name, definition, order)

    def _put_locked(self, name: str, definition: Definition, order: int,
                    owner: Optional[_Entry] = None) -> None:
        if name in self._entries:
            raise DuplicateDefinitionError(f"Bean {name} is already registered")
        self._seq += 1
        if owner is None:
            self._entries[name] = _Entry(name, definition, order, self._seq)
        else:
            self._entries[name] = _Entry(name, definition, order, owner.seq, self._seq)
        self._dirty = True

    def _snapshot(self) -> List[_Entry]:
        with self._lock:
            if self._dirty:
                self._sorted = sorted(self._entries.values(), key=_sort_key)
                self._dirty = False
            return list(self._sorted)

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


def _sort_key(entry: _Entry) -> Tuple[int, int, int]:
    return entry.order, entry.seq, entry.alias_seq
