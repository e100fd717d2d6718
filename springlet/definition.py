"""
Definition

Bean definitions wrap one registered producer behind a uniform contract:
a declared type, a name, a produced value and once-only lifecycle hooks.

Four producer shapes are supported:

- ``ObjectDefinition``: an already built instance
- ``ListDefinition`` / ``DictDefinition``: pre-built collections
- ``FunctionDefinition``: a zero-argument factory (a function or a class)
- ``CustomFactoryDefinition``: a factory with named lifecycle hook methods
"""

import functools
import inspect
import logging
import threading
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol, Sequence, runtime_checkable

from .exceptions import (
    BeanCreationError,
    CircularDependencyError,
    ClassificationError,
    LifecycleError,
    RegistrationError,
    SpringletError,
)
from .reflection import (
    callable_name,
    common_base,
    is_reference_type,
    is_value_type,
    required_parameters,
    return_type,
    type_name,
)
from .resolution_context import ResolutionContext, _resolution_context

logger = logging.getLogger(__name__)

Classifier = Callable[[Any], bool]


class BeanShape(Enum):
    """Shape of a registered producer"""
    OBJECT = "object"
    LIST = "list"
    DICT = "dict"
    FUNCTION = "function"
    CUSTOM_FACTORY = "custom_factory"


@runtime_checkable
class Initializing(Protocol):
    """Beans implementing this are called once all dependencies are set."""

    def bean_after_set(self) -> None:
        ...


@runtime_checkable
class Disposable(Protocol):
    """Beans implementing this are called once when the context closes."""

    def bean_destroy(self) -> None:
        ...


class _Once:
    """Lock-guarded flag that can be claimed exactly once."""

    def __init__(self):
        self._lock = threading.Lock()
        self._done = False

    def claim(self) -> bool:
        with self._lock:
            if self._done:
                return False
            self._done = True
            return True

    @property
    def done(self) -> bool:
        return self._done


class Definition(ABC):
    """Container-owned wrapper around one bean producer.

    Attributes:
        shape: Producer shape discriminant
        name: Default registration name, derived from the declared type
        type: Declared type of the produced value
    """

    shape: BeanShape

    def __init__(self, name: str, bean_type: Any):
        self._name = name
        self._type = bean_type

    @property
    def name(self) -> str:
        return self._name

    @property
    def type(self) -> Any:
        return self._type

    @abstractmethod
    def value(self) -> Any:
        """Return the produced value."""
        pass

    def after_set(self) -> None:
        """Run post-injection hooks. Later calls are no-ops."""
        pass

    def destroy(self) -> None:
        """Run destroy hooks. Later calls are no-ops."""
        pass

    def classify(self, classifier: Classifier) -> bool:
        """Offer the produced value(s) to ``classifier``.

        Returns:
            True if the classifier handled at least one value
        """
        return False

    def __repr__(self) -> str:
        return f"{type(self).__name__}[{self._name}]"


class ObjectDefinition(Definition):
    """Definition of an already constructed instance.

    The instance is returned as-is from ``value()`` so every injection
    site shares it. ``bean_after_set`` / ``bean_destroy`` are invoked
    at most once.
    """

    shape = BeanShape.OBJECT

    def __init__(self, obj: Any):
        if obj is None:
            raise RegistrationError("Cannot register None as a bean")
        if is_value_type(type(obj)):
            raise RegistrationError(
                f"Cannot register a value of type {type(obj).__name__} as a bean. "
                f"Only reference objects can be shared; wrap the value in an object."
            )
        super().__init__(type_name(type(obj)), type(obj))
        self._obj = obj
        self._after_set = _Once()
        self._destroy = _Once()

    def value(self) -> Any:
        return self._obj

    def after_set(self) -> None:
        if not self._after_set.claim():
            return
        if isinstance(self._obj, Initializing):
            try:
                self._obj.bean_after_set()
            except Exception as e:
                raise LifecycleError(f"After-set of bean {self.name} failed", [e]) from e

    def destroy(self) -> None:
        if not self._destroy.claim():
            return
        if isinstance(self._obj, Disposable):
            try:
                self._obj.bean_destroy()
            except Exception as e:
                raise LifecycleError(f"Destroy of bean {self.name} failed", [e]) from e

    def classify(self, classifier: Classifier) -> bool:
        try:
            return bool(classifier(self._obj))
        except SpringletError:
            raise
        except Exception as e:
            raise ClassificationError(f"Classify of bean {self.name} failed", [e]) from e


class ListDefinition(Definition):
    """Pre-built list of beans.

    The name is derived from the element type, e.g. ``list[myapp.Plugin]``.
    When ``element_type`` is not given it is inferred as the most specific
    class shared by all elements.
    """

    shape = BeanShape.LIST

    def __init__(self, values: List[Any], element_type: Optional[type] = None):
        if element_type is None:
            element_type = common_base(values)
        super().__init__(type_name(List[element_type]), list)
        self._values = values
        self._element_type = element_type

    @property
    def element_type(self) -> type:
        return self._element_type

    def value(self) -> List[Any]:
        return self._values


class DictDefinition(Definition):
    """Pre-built ``str``-keyed dict of beans, named like ``dict[str, myapp.Plugin]``."""

    shape = BeanShape.DICT

    def __init__(self, values: Dict[str, Any], value_type: Optional[type] = None):
        for key in values:
            if not isinstance(key, str):
                raise RegistrationError(
                    f"Dict beans must have str keys, got {type(key).__name__} key {key!r}"
                )
        if value_type is None:
            value_type = common_base(values.values())
        super().__init__(type_name(Dict[str, value_type]), dict)
        self._values = values
        self._value_type = value_type

    @property
    def value_type(self) -> type:
        return self._value_type

    def value(self) -> Dict[str, Any]:
        return self._values


class _Produced:
    __slots__ = ('instance', 'after_set', 'destroyed')

    def __init__(self, instance: Any):
        self.instance = instance
        self.after_set = False
        self.destroyed = False


class FunctionDefinition(Definition):
    """Definition backed by a zero-argument factory.

    Every ``value()`` call invokes the factory. Each distinct instance
    produced is remembered (by identity) so that lifecycle hooks reach
    all of them, each exactly once. Use :func:`singleton_factory` to
    share one instance.

    A factory that is re-entered while it is producing a value in the
    same resolution chain raises :class:`CircularDependencyError`.

    The declared type is the class itself for class producers, or the
    return annotation for functions::

        def create_cache() -> Cache:
            return RedisCache()

        FunctionDefinition(create_cache).name   # 'myapp.Cache'
    """

    shape = BeanShape.FUNCTION

    def __init__(self, producer: Callable[[], Any]):
        if not callable(producer):
            raise RegistrationError(f"Bean factory {producer!r} is not callable")
        rtype = return_type(producer)
        if rtype is None:
            raise RegistrationError(
                f"Bean factory {callable_name(producer)} must declare its return type, "
                f"e.g. def create() -> MyService"
            )
        if not is_reference_type(rtype):
            raise RegistrationError(
                f"Bean factory {callable_name(producer)} must return a class type, "
                f"not {type_name(rtype)}"
            )
        params = required_parameters(producer)
        if params:
            raise RegistrationError(
                f"Bean factory {callable_name(producer)} requires parameters "
                f"({', '.join(name for name, _ in params)}); register it through an "
                f"ApplicationContext or wrap it with Injector.wrap_bean()"
            )
        super().__init__(type_name(rtype), rtype)
        self._producer = producer
        self._instances: Dict[int, _Produced] = {}
        self._lock = threading.Lock()

    @property
    def producer(self) -> Callable[[], Any]:
        return self._producer

    def value(self) -> Any:
        parent = _resolution_context.get()
        if parent is not None and parent.is_resolving(self):
            raise CircularDependencyError(
                f"Circular dependency detected: {parent.describe(self)}"
            )

        token = _resolution_context.set(ResolutionContext.enter(parent, self))
        try:
            instance = self._producer()
        except SpringletError:
            raise
        except Exception as e:
            raise BeanCreationError(
                f"Factory for {self.name} raised an exception: {e}"
            ) from e
        finally:
            _resolution_context.reset(token)

        if instance is not None:
            with self._lock:
                if id(instance) not in self._instances:
                    self._instances[id(instance)] = _Produced(instance)
                    logger.debug("Bean %s produced instance #%d", self.name, len(self._instances))
        return instance

    def instances(self) -> List[Any]:
        """Every distinct instance produced so far, in production order."""
        with self._lock:
            return [p.instance for p in self._instances.values()]

    def _claim(self, phase: str) -> List[Any]:
        with self._lock:
            pending = [p for p in self._instances.values() if not getattr(p, phase)]
            for p in pending:
                setattr(p, phase, True)
        return [p.instance for p in pending]

    def after_set(self) -> None:
        errors: List[BaseException] = []
        for instance in self._claim('after_set'):
            self._after_set_instance(instance, errors)
        if errors:
            raise LifecycleError(f"After-set of bean {self.name} failed", errors)

    def destroy(self) -> None:
        errors: List[BaseException] = []
        for instance in self._claim('destroyed'):
            self._destroy_instance(instance, errors)
        if errors:
            raise LifecycleError(f"Destroy of bean {self.name} failed", errors)

    def _after_set_instance(self, instance: Any, errors: List[BaseException]) -> None:
        if isinstance(instance, Initializing):
            _collect(errors, instance.bean_after_set)

    def _destroy_instance(self, instance: Any, errors: List[BaseException]) -> None:
        if isinstance(instance, Disposable):
            _collect(errors, instance.bean_destroy)

    def classify(self, classifier: Classifier) -> bool:
        handled = False
        errors: List[BaseException] = []
        for instance in self.instances():
            try:
                if classifier(instance):
                    handled = True
            except SpringletError:
                raise
            except Exception as e:
                errors.append(e)
        if errors:
            raise ClassificationError(f"Classify of bean {self.name} failed", errors)
        return handled


def _collect(errors: List[BaseException], hook: Callable[[], Any]) -> None:
    try:
        hook()
    except Exception as e:
        errors.append(e)


class CustomBeanFactory:
    """A bean factory with named lifecycle hook methods.

    The hook names refer to methods of the produced type. They are
    checked when the factory is registered: each must exist, must be
    public and must not require arguments.

    Hooks run in this order for every produced instance:

    - after set: ``pre_after_set`` → ``bean_after_set()`` → ``init_method``
    - destroy: ``destroy_method`` → ``bean_destroy()`` → ``post_destroy``

    Attributes:
        factory: The producer, possibly taking dependency parameters
        names: Per-parameter lookup expressions (``"name[,policy]"``)

    Example::

        def create_pool(config: Config) -> ConnectionPool:
            return ConnectionPool(config.url)

        ctx.register_bean(CustomBeanFactory(
            create_pool,
            init_method="connect",
            destroy_method="close",
        ))
    """

    def __init__(
        self,
        factory: Callable[..., Any],
        init_method: str = "",
        destroy_method: str = "",
        names: Optional[Sequence[str]] = None,
        pre_after_set: str = "",
        post_destroy: str = "",
    ):
        if not callable(factory):
            raise RegistrationError(f"Custom bean factory {factory!r} is not callable")
        self.factory = factory
        self.init_method = init_method
        self.destroy_method = destroy_method
        self.names: List[str] = list(names or [])
        self.pre_after_set = pre_after_set
        self.post_destroy = post_destroy

    def with_factory(self, factory: Callable[[], Any]) -> 'CustomBeanFactory':
        """Return a copy using ``factory`` and no parameter names."""
        return CustomBeanFactory(
            factory,
            init_method=self.init_method,
            destroy_method=self.destroy_method,
            pre_after_set=self.pre_after_set,
            post_destroy=self.post_destroy,
        )


class CustomFactoryDefinition(FunctionDefinition):
    """Function definition that also calls the hooks named by a CustomBeanFactory."""

    shape = BeanShape.CUSTOM_FACTORY

    def __init__(self, custom: CustomBeanFactory):
        super().__init__(custom.factory)
        self._custom = custom
        self._verify_hook("pre after-set", custom.pre_after_set)
        self._verify_hook("init", custom.init_method)
        self._verify_hook("destroy", custom.destroy_method)
        self._verify_hook("post destroy", custom.post_destroy)

    def _verify_hook(self, kind: str, method_name: str) -> None:
        if not method_name:
            return
        if method_name.startswith('_'):
            raise RegistrationError(f"Type {self.name} {kind} method {method_name} is private")

        method = getattr(self.type, method_name, None)
        if method is None or not callable(method):
            raise RegistrationError(f"Type {self.name} {kind} method {method_name} not found")

        try:
            sig = inspect.signature(method)
        except (TypeError, ValueError):
            return
        params = list(sig.parameters.values())
        if not isinstance(inspect.getattr_static(self.type, method_name), (staticmethod, classmethod)):
            params = params[1:]
        for p in params:
            if p.kind in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD):
                continue
            if p.default is inspect.Parameter.empty:
                raise RegistrationError(
                    f"Type {self.name} {kind} method {method_name} cannot take parameters"
                )

    def _after_set_instance(self, instance: Any, errors: List[BaseException]) -> None:
        if self._custom.pre_after_set:
            _collect(errors, getattr(instance, self._custom.pre_after_set))
        super()._after_set_instance(instance, errors)
        if self._custom.init_method and self._custom.init_method != 'bean_after_set':
            _collect(errors, getattr(instance, self._custom.init_method))

    def _destroy_instance(self, instance: Any, errors: List[BaseException]) -> None:
        if self._custom.destroy_method and self._custom.destroy_method != 'bean_destroy':
            _collect(errors, getattr(instance, self._custom.destroy_method))
        super()._destroy_instance(instance, errors)
        if self._custom.post_destroy:
            _collect(errors, getattr(instance, self._custom.post_destroy))


def singleton_factory(function: Callable[..., Any]) -> Callable[..., Any]:
    """Wrap a bean factory so it runs only once.

    The first call's result is returned for every later call. The
    wrapper keeps the factory's signature, so parameterized factories
    still get their dependencies injected on that first call.

    Example::

        ctx.register_bean(singleton_factory(create_repository))
    """
    if not callable(function):
        raise RegistrationError(f"singleton_factory() expects a callable, got {function!r}")

    lock = threading.Lock()
    result: List[Any] = []

    @functools.wraps(function)
    def wrapper(*args, **kwargs):
        with lock:
            if not result:
                result.append(function(*args, **kwargs))
            return result[0]

    return wrapper


DefinitionCreator = Callable[[Any], Definition]

DEFAULT_DEFINITION_CREATORS: Mapping[BeanShape, DefinitionCreator] = {
    BeanShape.OBJECT: ObjectDefinition,
    BeanShape.LIST: ListDefinition,
    BeanShape.DICT: DictDefinition,
    BeanShape.FUNCTION: FunctionDefinition,
    BeanShape.CUSTOM_FACTORY: CustomFactoryDefinition,
}


def detect_shape(obj: Any) -> BeanShape:
    """Classify a registered value into its producer shape.

    Raises:
        RegistrationError: For None and value types
    """
    if obj is None:
        raise RegistrationError("Cannot register None as a bean")
    if isinstance(obj, CustomBeanFactory):
        return BeanShape.CUSTOM_FACTORY
    if isinstance(obj, type):
        return BeanShape.FUNCTION
    if isinstance(obj, list):
        return BeanShape.LIST
    if isinstance(obj, dict):
        return BeanShape.DICT
    if (inspect.isfunction(obj) or inspect.ismethod(obj) or inspect.isbuiltin(obj)
            or isinstance(obj, functools.partial)):
        return BeanShape.FUNCTION
    if is_value_type(type(obj)):
        raise RegistrationError(
            f"Cannot register a value of type {type(obj).__name__} as a bean"
        )
    return BeanShape.OBJECT
