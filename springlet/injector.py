"""
Injector

This module resolves dependencies from a Container. It handles:

- Field injection into objects declaring ``inject()`` attributes
- Single slot resolution by explicit name or by type (auto-wiring)
- ``list[X]`` and ``dict[str, X]`` collection injection
- Wrapping parameterized factories into zero-argument producers

Auto-wiring scans the container for definitions whose type is assignable
to the slot type. Only entries registered under their definition's own
name take part, so a bean registered under a custom name is reachable by
that name only. A unique match is cached in the container under the
slot's type name; several matches are an error.
"""

import functools
import inspect
import logging
from typing import Any, Callable, Dict, List, Optional, Tuple

from .container import Container
from .definition import CustomBeanFactory, Definition, DictDefinition, ListDefinition
from .exceptions import (
    AmbiguousDependencyError,
    DuplicateDefinitionError,
    FatalInjectionError,
    InjectionError,
    RegistrationError,
    ResolutionError,
)
from .inject_descriptor import InjectDescriptor
from .listener import InjectSlot, ListenerManager
from .reflection import (
    callable_name,
    collection_kind,
    is_assignable,
    is_reference_type,
    is_value_type,
    required_parameters,
    resolve_type_hints,
    return_type,
    type_name,
    unwrap_optional,
)

logger = logging.getLogger(__name__)


class Injector:
    """Reflective dependency resolver.

    Attributes:
        listener_manager: Maps slot policies to failure listeners

    Example::

        class Service:
            repository: Repository = inject()

        container = Container()
        container.register(SqlRepository())

        service = Service()
        Injector().inject(container, service)
        assert isinstance(service.repository, SqlRepository)
    """

    def __init__(self, listener_manager: Optional[ListenerManager] = None):
        self.listener_manager = listener_manager if listener_manager is not None else ListenerManager()

    def can_inject(self, target: Any) -> bool:
        """Whether ``target`` is an object whose fields can be injected."""
        if target is None or isinstance(target, type):
            return False
        return is_reference_type(type(target))

    def can_inject_type(self, slot_type: Any) -> bool:
        """Whether a slot of ``slot_type`` can be resolved at all.

        Classes, ``list[X]`` and ``dict[str, X]`` are injectable; value
        types such as ``int`` or ``str`` are not.
        """
        slot_type = unwrap_optional(slot_type)
        kind = collection_kind(slot_type)
        if kind is not None:
            origin, args = kind
            return origin is list or args[0] is str
        return is_reference_type(slot_type)

    def inject(self, container: Container, target: Any) -> None:
        """Resolve every ``inject()`` field of ``target``.

        Each field is resolved independently. A failure is passed to the
        field's policy listeners and does not stop the remaining fields.

        Raises:
            InjectionError: When ``target`` cannot be injected at all
            FatalInjectionError: For ambiguous, circular or required failures
        """
        if not self.can_inject(target):
            raise InjectionError(f"Type not supported for injection: {type(target).__name__}")

        cls = type(target)
        for attr_name, descriptor, field_type in injection_fields(cls):
            slot = self.listener_manager.parse(descriptor.expr)
            value = self.resolve_slot(
                container,
                slot,
                field_type,
                f"Field [{type_name(cls)}: {attr_name}]",
            )
            if value is not None:
                setattr(target, attr_name, value)

    def resolve_slot(self, container: Container, slot: InjectSlot, slot_type: Any, where: str) -> Any:
        """Resolve one slot, routing a failure to the slot's listeners.

        Returns:
            The resolved value, or None when a listener tolerated the failure
        """
        try:
            return self.inject_value(container, slot.name, slot_type)
        except FatalInjectionError:
            raise
        except ResolutionError as e:
            error = ResolutionError(f"Inject failed: {where} error: {e}")
            error.__cause__ = e
            for listener in slot.listeners:
                listener.on_inject_failed(error)
            return None

    def inject_value(self, container: Container, name: str, slot_type: Any) -> Any:
        """Resolve a single value for a slot of ``slot_type``.

        Args:
            container: Container to resolve from
            name: Explicit bean name, or empty to use the type name
            slot_type: Declared slot type

        Returns:
            The resolved value

        Raises:
            ResolutionError: When nothing suitable is found
            AmbiguousDependencyError: When auto-wiring finds several candidates
            CircularDependencyError: When a factory depends on itself
        """
        slot_type = unwrap_optional(slot_type)
        kind = collection_kind(slot_type)
        if kind is not None:
            origin, args = kind
            if origin is list:
                return self._inject_list(container, name, args[0])
            if args[0] is not str:
                raise ResolutionError(
                    f"Dict injection requires str keys, got {type_name(slot_type)}"
                )
            return self._inject_dict(container, name, args[1])

        if is_value_type(slot_type):
            raise ResolutionError(
                f"Cannot inject value type {type_name(slot_type)}; only shared objects can be injected"
            )
        if not is_reference_type(slot_type):
            raise ResolutionError(f"Cannot inject this kind: {type_name(slot_type)}")
        return self._inject_class(container, name, slot_type)

    def _inject_class(self, container: Container, name: str, slot_type: type) -> Any:
        lookup = name or type_name(slot_type)
        definition = container.get_definition(lookup)
        if definition is not None:
            value = definition.value()
            if not isinstance(value, slot_type):
                raise ResolutionError(
                    f"Bean {lookup} is a {type(value).__name__}, not assignable to {type_name(slot_type)}"
                )
            return value

        matches: List[Tuple[str, Definition]] = []

        def visit(key: str, d: Definition) -> bool:
            if key != d.name:
                return True
            if is_assignable(d.type, slot_type) and all(m is not d for _, m in matches):
                matches.append((key, d))
            return True

        container.scan(visit)

        if len(matches) > 1:
            names = [key for key, _ in matches]
            raise AmbiguousDependencyError(
                f"Auto inject {type_name(slot_type)} found more than 1 candidate: {', '.join(names)}",
                names,
            )
        if not matches:
            raise ResolutionError(
                f"Inject nothing, cannot find any implementation of {type_name(slot_type)}"
            )

        _, match = matches[0]
        value = match.value()
        self._cache(container, type_name(slot_type), match)
        return value

    def _inject_list(self, container: Container, name: str, element_type: Any) -> List[Any]:
        lookup = name or type_name(List[element_type])
        definition = container.get_definition(lookup)
        if definition is not None:
            values = definition.value()
            if not isinstance(values, list):
                raise ResolutionError(f"Bean {lookup} is not a list")
            return [v for v in values if _is_instance(v, element_type)]

        collected: List[Any] = []
        seen: List[Definition] = []

        def visit(key: str, d: Definition) -> bool:
            if any(s is d for s in seen):
                return True
            seen.append(d)
            if is_assignable(d.type, element_type):
                collected.append(d.value())
            return True

        container.scan(visit)

        if not collected:
            raise ResolutionError(
                f"List inject nothing, cannot find any implementation of {type_name(element_type)}"
            )
        self._cache(container, type_name(List[element_type]), ListDefinition(collected, element_type))
        return list(collected)

    def _inject_dict(self, container: Container, name: str, value_type: Any) -> Dict[str, Any]:
        lookup = name or type_name(Dict[str, value_type])
        definition = container.get_definition(lookup)
        if definition is not None:
            values = definition.value()
            if not isinstance(values, dict):
                raise ResolutionError(f"Bean {lookup} is not a dict")
            return {k: v for k, v in values.items() if _is_instance(v, value_type)}

        collected: Dict[str, Any] = {}
        seen: List[Definition] = []

        def visit(key: str, d: Definition) -> bool:
            if any(s is d for s in seen):
                return True
            seen.append(d)
            if is_assignable(d.type, value_type):
                collected[key] = d.value()
            return True

        container.scan(visit)

        if not collected:
            raise ResolutionError(
                f"Dict inject nothing, cannot find any implementation of {type_name(value_type)}"
            )
        self._cache(container, type_name(Dict[str, value_type]), DictDefinition(collected, value_type))
        return dict(collected)

    @staticmethod
    def _cache(container: Container, name: str, definition: Definition) -> None:
        try:
            container.put_definition(name, definition)
        except DuplicateDefinitionError as e:
            logger.warning("%s", e)

    def wrap_bean(self, obj: Any, container: Container) -> Any:
        """Turn a parameterized producer into a zero-argument one.

        Functions, classes and CustomBeanFactory factories that take
        parameters are wrapped in a closure resolving every parameter
        from ``container`` on each call. Anything else is returned as-is.

        Raises:
            RegistrationError: When the producer does not declare a
                return type or a parameter is not injectable
        """
        if isinstance(obj, CustomBeanFactory):
            if not required_parameters(obj.factory):
                return obj
            return obj.with_factory(self._wrap_factory(obj.factory, obj.names, container))
        if isinstance(obj, (type, functools.partial)) or inspect.isroutine(obj):
            if not required_parameters(obj):
                return obj
            return self._wrap_factory(obj, [], container)
        return obj

    def _wrap_factory(self, factory: Callable[..., Any], names: List[str], container: Container) -> Callable[[], Any]:
        rtype = return_type(factory)
        if rtype is None:
            raise RegistrationError(
                f"Bean factory {callable_name(factory)} must declare its return type"
            )

        params = required_parameters(factory)
        names = format_names(names, len(params))
        slots = []
        for (param_name, param_type), expr in zip(params, names):
            if not self.can_inject_type(param_type):
                raise RegistrationError(
                    f"Bean factory {callable_name(factory)} parameter {param_name} "
                    f"has a type that cannot be injected: {type_name(param_type)}"
                )
            slots.append((param_name, param_type, self.listener_manager.parse(expr)))

        description = callable_name(factory)

        def producer():
            kwargs = {}
            for param_name, param_type, slot in slots:
                kwargs[param_name] = self.resolve_slot(
                    container,
                    slot,
                    param_type,
                    f"Bean factory [{description}] parameter [{param_name}]",
                )
            return factory(**kwargs)

        producer.__name__ = getattr(factory, '__name__', 'producer')
        producer.__qualname__ = getattr(factory, '__qualname__', producer.__name__)
        producer.__module__ = getattr(factory, '__module__', None)
        producer.__annotations__ = {'return': rtype}
        return producer


def injection_fields(cls: type) -> List[Tuple[str, InjectDescriptor, Any]]:
    """List ``(attribute, descriptor, field type)`` for every inject() field of ``cls``.

    Fields declared on base classes are included; a subclass attribute
    with the same name hides the base one.
    """
    hints = resolve_type_hints(cls)
    fields = []
    seen = set()
    for klass in cls.__mro__:
        for attr_name, attr in vars(klass).items():
            if attr_name in seen:
                continue
            seen.add(attr_name)
            if isinstance(attr, InjectDescriptor):
                field_type = attr.bean_type if attr.bean_type is not None else hints.get(attr_name)
                fields.append((attr_name, attr, field_type))
    return fields


def format_names(names: List[str], size: int) -> List[str]:
    """Pad with empty names or truncate ``names`` to ``size`` entries."""
    names = list(names or [])
    if len(names) >= size:
        return names[:size]
    return names + [""] * (size - len(names))


def _is_instance(value: Any, cls: Any) -> bool:
    try:
        return isinstance(value, cls)
    except TypeError:
        return False
