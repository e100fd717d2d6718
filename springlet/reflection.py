"""
Reflection helpers

Type introspection used by definitions and the injector:

- Canonical type names (``myapp.service.UserService``, ``list[myapp.Plugin]``)
- Shape queries (value type, list target, dict target)
- Assignability checks
- Parameter and return annotations of factories
"""

import functools
import inspect
import types
import typing
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

# Types whose instances are copied rather than shared; they are never beans
VALUE_TYPES = (int, float, complex, bool, str, bytes, tuple, frozenset, type(None))


def unwrap_optional(tp: Any) -> Any:
    """Return ``X`` for ``Optional[X]`` / ``X | None``, otherwise ``tp`` unchanged."""
    origin = typing.get_origin(tp)
    if origin is Union or (hasattr(types, 'UnionType') and origin is types.UnionType):
        args = [a for a in typing.get_args(tp) if a is not type(None)]
        if len(args) == 1:
            return args[0]
    return tp


def type_name(tp: Any) -> str:
    """Return the canonical name used as a bean's default registration name.

    Builtins are named by their bare name, other classes by
    ``module.QualifiedName``; ``list[X]`` and ``dict[str, X]`` use the
    canonical names of their arguments.

    Example::

        >>> type_name(int)
        'int'
        >>> type_name(list[UserService])
        'list[myapp.service.UserService]'
    """
    tp = unwrap_optional(tp)
    kind = collection_kind(tp)
    if kind is not None:
        origin, args = kind
        if origin is list:
            return f"list[{type_name(args[0])}]"
        return f"dict[{type_name(args[0])}, {type_name(args[1])}]"
    if isinstance(tp, type):
        if tp.__module__ == 'builtins':
            return tp.__qualname__
        return f"{tp.__module__}.{tp.__qualname__}"
    if tp is Any:
        return 'typing.Any'
    return str(tp)


def collection_kind(tp: Any) -> Optional[Tuple[type, Tuple[Any, ...]]]:
    """Return ``(list, (elem,))`` or ``(dict, (key, value))`` for collection targets.

    Bare ``list`` / ``dict`` are treated as collections of ``object``.
    Returns None for everything else.
    """
    if tp is list:
        return list, (object,)
    if tp is dict:
        return dict, (str, object)
    origin = typing.get_origin(tp)
    if origin in (list, List):
        args = typing.get_args(tp) or (object,)
        return list, (_normalize(args[0]),)
    if origin in (dict, Dict):
        args = typing.get_args(tp) or (str, object)
        return dict, (_normalize(args[0]), _normalize(args[1]))
    return None


def _normalize(tp: Any) -> Any:
    if tp is Any:
        return object
    return unwrap_optional(tp)


def is_value_type(tp: Any) -> bool:
    """Whether ``tp`` is an immutable value type that cannot be shared as a bean."""
    return isinstance(tp, type) and issubclass(tp, VALUE_TYPES)


def is_reference_type(tp: Any) -> bool:
    """Whether ``tp`` is a class whose instances may be shared as beans."""
    return isinstance(tp, type) and not is_value_type(tp) and tp not in (list, dict)


def is_assignable(source: Any, target: Any) -> bool:
    """Whether instances of ``source`` may be assigned to a ``target`` slot.

    Non-class targets and protocols that are not runtime checkable are
    never assignable.
    """
    if target is object:
        return True
    if not isinstance(source, type) or not isinstance(target, type):
        return False
    try:
        return issubclass(source, target)
    except TypeError:
        return False


def common_base(values: typing.Iterable[Any]) -> type:
    """Return the most specific class every value is an instance of.

    Used to infer the element type of pre-built collections.
    """
    values = list(values)
    if not values:
        return object
    for candidate in type(values[0]).__mro__:
        if all(isinstance(v, candidate) for v in values):
            return candidate
    return object


def resolve_type_hints(obj: Any) -> Dict[str, Any]:
    """Resolve annotations of a class or callable using typing.get_type_hints().

    Forward references that cannot be resolved fall back to the raw
    annotation, which may then be a string.

    Args:
        obj: The class or function to inspect

    Returns:
        Dictionary mapping names to annotations
    """
    try:
        return typing.get_type_hints(obj)
    except (NameError, TypeError, RecursionError):
        pass

    raw: Dict[str, Any] = {}
    if isinstance(obj, type):
        for klass in reversed(obj.__mro__):
            raw.update(getattr(klass, '__annotations__', {}) or {})
    else:
        raw.update(getattr(obj, '__annotations__', {}) or {})
    return raw


def _hint_target(fn: Callable) -> Callable:
    """The callable whose annotations describe ``fn``."""
    while isinstance(fn, functools.partial):
        fn = fn.func
    return inspect.unwrap(fn)


def callable_parameters(fn: Callable) -> List[Tuple[str, Any, bool]]:
    """List the parameters a caller has to supply.

    Returns:
        ``(name, annotation, has_default)`` for every positional or keyword
        parameter, excluding ``self``, ``*args`` and ``**kwargs``.
        Missing annotations are reported as ``inspect.Parameter.empty``.
    """
    try:
        sig = inspect.signature(fn)
    except (TypeError, ValueError):
        return []

    target = _hint_target(fn)
    hints = resolve_type_hints(target.__init__ if isinstance(target, type) else target)

    params = []
    for name, param in sig.parameters.items():
        if param.kind in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD):
            continue
        annotation = hints.get(name, param.annotation)
        params.append((name, annotation, param.default is not inspect.Parameter.empty))
    return params


def required_parameters(fn: Callable) -> List[Tuple[str, Any]]:
    """Parameters without a default value, as ``(name, annotation)`` pairs."""
    return [(name, tp) for name, tp, has_default in callable_parameters(fn) if not has_default]


def return_type(fn: Callable) -> Any:
    """Return the type a producer declares it creates.

    A class produces itself; a function declares its product with its
    return annotation. Returns None when nothing is declared.
    """
    target = _hint_target(fn)
    if isinstance(target, type):
        return target
    hints = resolve_type_hints(target)
    rtype = hints.get('return')
    if rtype is None:
        return None
    return unwrap_optional(rtype)


def callable_name(fn: Callable) -> str:
    while isinstance(fn, functools.partial):
        fn = fn.func
    name = getattr(fn, '__qualname__', None) or getattr(fn, '__name__', None)
    if name is None:
        return repr(fn)
    module = getattr(fn, '__module__', None)
    return f"{module}.{name}" if module else name
