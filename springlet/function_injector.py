"""
Function injection

Inject functions are constructor-shaped callables whose parameters are
resolved from the container when the context starts. They are used for
side-effecting initialization that does not itself produce a bean:

    def wire_routes(router: Router, handlers: list[Handler]):
        for h in handlers:
            router.add(h)

    class Routes:
        def register_function(self, registry: InjectFunctionRegistry):
            registry.register_inject_function(wire_routes)

Every registered function is invoked once per ``inject_all_functions``
call. Resolution failures are collected and raised together after all
functions were attempted.
"""

import logging
import threading
from typing import Any, Callable, List, Optional, Protocol, Tuple, runtime_checkable

from .container import Container
from .exceptions import FatalInjectionError, FunctionInjectionError, RegistrationError, ResolutionError
from .injector import Injector, format_names
from .listener import InjectSlot
from .reflection import callable_name, callable_parameters, type_name

logger = logging.getLogger(__name__)


class InjectFunctionRegistry(Protocol):
    def register_inject_function(self, function: Callable[..., Any], *names: str) -> None:
        ...


@runtime_checkable
class InjectFunction(Protocol):
    """Beans implementing this register inject functions when they are registered."""

    def register_function(self, registry: InjectFunctionRegistry) -> None:
        ...


class _Invoker:
    """One registered function with its resolved parameter slots."""

    def __init__(self, function: Callable[..., Any], params: List[Tuple[str, Any, InjectSlot]]):
        self.function = function
        self.params = params
        self.name = callable_name(function)

    def invoke(self, injector: Injector, container: Container) -> None:
        kwargs = {}
        for param_name, param_type, slot in self.params:
            try:
                kwargs[param_name] = injector.inject_value(container, slot.name, param_type)
            except FatalInjectionError:
                raise
            except ResolutionError as e:
                error = ResolutionError(
                    f"Inject function [{self.name}] parameter [{param_name}] failed: {e}"
                )
                error.__cause__ = e
                for listener in slot.listeners:
                    listener.on_inject_failed(error)
                raise error
        self.function(**kwargs)


class FunctionInjector:
    """Registry of inject functions.

    Parameters use the same lookup expressions as fields. A ``required``
    parameter that cannot be resolved raises RequiredDependencyError and
    aborts the run; an ``omiterror`` parameter is logged, its function is
    skipped and the failure is reported in the aggregate error.

    Example::

        registry = FunctionInjector(injector)
        registry.register_inject_function(wire_routes, "mainRouter")
        registry.inject_all_functions(container)
    """

    def __init__(self, injector: Optional[Injector] = None):
        self.injector = injector if injector is not None else Injector()
        self._invokers: List[_Invoker] = []
        self._lock = threading.Lock()

    def register_inject_function(self, function: Callable[..., Any], *names: str) -> None:
        """Register ``function`` for injection.

        Args:
            function: Callable taking at least one injectable parameter
            *names: Lookup expressions paired with the parameters by
                position; missing ones are auto-wired, extra ones ignored

        Raises:
            RegistrationError: When ``function`` is not callable, takes no
                parameters or has a parameter that cannot be injected
        """
        if not callable(function):
            raise RegistrationError(f"Inject function {function!r} is not callable")

        params = callable_parameters(function)
        if not params:
            raise RegistrationError(
                f"Inject function {callable_name(function)} must take parameters, "
                f"expected func(Type1, Type2...TypeN)"
            )

        slots = []
        manager = self.injector.listener_manager
        for (param_name, param_type, _), expr in zip(params, format_names(list(names), len(params))):
            if not self.injector.can_inject_type(param_type):
                raise RegistrationError(
                    f"Inject function {callable_name(function)} parameter {param_name}: "
                    f"cannot inject type {type_name(param_type)}"
                )
            slots.append((param_name, param_type, manager.parse(expr)))

        with self._lock:
            self._invokers.append(_Invoker(function, slots))

    def inject_all_functions(self, container: Container) -> None:
        """Resolve and invoke every registered function, in registration order.

        A function that raises is reported the same way as one whose
        parameters could not be resolved.

        Raises:
            FunctionInjectionError: After all functions ran, if any failed
            FatalInjectionError: For ambiguous or circular dependencies and
                for unresolved ``required`` parameters
        """
        with self._lock:
            invokers = list(self._invokers)

        errors: List[BaseException] = []
        for invoker in invokers:
            logger.debug("Invoking inject function %s", invoker.name)
            try:
                invoker.invoke(self.injector, container)
            except FatalInjectionError:
                raise
            except Exception as e:
                errors.append(e)

        if errors:
            raise FunctionInjectionError("Inject functions failed", errors)

    def __len__(self) -> int:
        with self._lock:
            return len(self._invokers)
