"""
Springlet Exceptions

Custom exception hierarchy for the Springlet IoC runtime
"""

from typing import Iterable, List, Optional


class SpringletError(Exception):
    """
    Base exception for all Springlet errors.

    All Springlet-specific exceptions inherit from this class.
    You can catch this to handle any Springlet error generically.

    Example:
        >>> try:
        ...     ctx.register_bean(service)
        ... except SpringletError as e:
        ...     print(f"IoC error: {e}")
    """

    pass


class RegistrationError(SpringletError):
    """
    Raised when a bean cannot be registered.

    Registration errors are always raised synchronously to the
    registering caller.

    Common causes:
        - Registering a value of an unsupported shape (``int``, ``str``, ...)
        - Registering a factory without a return annotation
        - Registering a parameterized factory directly into a ``Container``
          instead of through an ``ApplicationContext``
        - A ``CustomBeanFactory`` naming a hook method that does not exist,
          is private, or requires arguments
        - Registering while the context is already starting

    Solution:
        Register instances, annotated factories, lists or ``str``-keyed
        dicts::

            def create_repository(db: Database) -> Repository:
                return Repository(db)

            ctx.register_bean(Database())
            ctx.register_bean(create_repository)
    """

    pass


class DuplicateDefinitionError(RegistrationError):
    """
    Raised when the same name is registered multiple times.

    The first registration is kept; the second one is rejected.

    Common causes:
        - Registering two instances of the same class without names
        - Registering the same bean twice
        - Reusing an explicit bean name

    Solution:
        Give the second bean an explicit name::

            ctx.register_bean(Database())
            ctx.register_bean_by_name("replicaDatabase", Database())
    """

    pass


class ResolutionError(SpringletError):
    """
    Raised when a dependency slot cannot be resolved.

    Resolution errors are reported per slot and handled by the policy
    declared on that slot: ``required`` escalates them to
    :class:`RequiredDependencyError`, ``omiterror`` logs them and leaves
    the slot empty.
    """

    pass


class DefinitionNotFoundError(ResolutionError):
    """
    Raised when a requested bean name is not registered in the container.

    Common causes:
        - Forgetting to register the bean
        - Typo in the bean name
        - Looking up a custom-named bean by its type name

    Solution:
        Check ``name in container`` before calling ``get`` or register the
        bean first::

            container.register(Database())
            db = container.get_by_type(Database)
    """

    pass


class BeanCreationError(ResolutionError):
    """
    Raised when a bean factory raises an unexpected exception.

    The original exception is available as ``__cause__``.
    """

    pass


class InjectionError(SpringletError):
    """
    Raised when a target cannot be injected at all.

    This is different from a failing field: a failing field is reported
    to its policy listeners, while an unsupported target (a class object,
    a value type) is rejected up front.
    """

    pass


class FatalInjectionError(SpringletError):
    """
    Base class for wiring failures that must never be swallowed.

    Policies such as ``omiterror`` do not apply to these errors; they
    propagate out of ``start()`` and abort the startup sequence.
    """

    pass


class AmbiguousDependencyError(FatalInjectionError):
    """
    Raised when auto-wiring finds more than one candidate for a type.

    Example of an ambiguous registration::

        class Storage(ABC): ...
        class DiskStorage(Storage): ...
        class MemoryStorage(Storage): ...

        ctx.register_bean(DiskStorage())
        ctx.register_bean(MemoryStorage())

        class Service:
            storage: Storage = inject()   # AmbiguousDependencyError!

    Solution:
        Name the dependency explicitly::

            class Service:
                storage: Storage = inject("myapp.DiskStorage")

    Attributes:
        candidates: Names of the matching definitions
    """

    def __init__(self, message: str, candidates: Optional[Iterable[str]] = None):
        super().__init__(message)
        self.candidates: List[str] = list(candidates or [])


class CircularDependencyError(FatalInjectionError):
    """
    Raised when a factory requires, directly or transitively, its own product.

    Example of circular dependency::

        def create_a(b: ServiceB) -> ServiceA: ...
        def create_b(a: ServiceA) -> ServiceB: ...  # Circular!

    Solution:
        1. Refactor to remove the circular dependency
        2. Register one side as a plain object and inject the other
           into a field after construction
        3. Extract common functionality to a third bean
    """

    pass


class RequiredDependencyError(FatalInjectionError):
    """
    Raised when a slot declared ``required`` (the default) cannot be resolved.

    The underlying :class:`ResolutionError` is available as ``__cause__``.

    Solution:
        Register the missing bean, or relax the slot::

            class Service:
                cache: Cache = inject("cache,omiterror")
    """

    pass


class AggregateError(SpringletError):
    """
    An error carrying a list of collected errors.

    Attributes:
        errors: The collected exceptions, in the order they occurred
    """

    def __init__(self, message: str, errors: Optional[Iterable[BaseException]] = None):
        self.errors: List[BaseException] = list(errors or [])
        if self.errors:
            details = "; ".join(str(e) for e in self.errors)
            message = f"{message}: {details}"
        super().__init__(message)


class LifecycleError(AggregateError):
    """
    Raised when one or more after-set or destroy hooks fail.

    Every instance of a definition receives its hooks even when an
    earlier one fails; the failures are collected into ``errors``.
    """

    pass


class ClassificationError(AggregateError):
    """Raised when a processor fails to classify one or more instances."""

    pass


class FunctionInjectionError(AggregateError):
    """
    Raised after all inject functions ran and at least one failed.

    Common causes:
        - An inject function parameter has no matching bean
        - An explicit parameter name is misspelled

    Every registered function is attempted before this error is raised.
    """

    pass


class EventError(SpringletError):
    """Base exception for event processor errors."""

    pass


class EventQueueFullError(EventError):
    """
    Raised by ``publish_event`` when the bounded event queue is full.

    Solution:
        Use ``post_event`` to wait for room, or increase ``buffer_size``::

            processor = EventProcessor(buffer_size=16384)
    """

    pass


class EventCancelledError(EventError):
    """Raised by ``post_event`` when its cancel signal fires or it times out."""

    pass


class EventProcessorClosedError(EventError):
    """
    Raised when publishing into an event processor that has been closed.

    Synchronous ``notify_event`` stays available after close.
    """

    pass


class EventProcessorDisabledError(EventError):
    """
    Raised by every call on a disabled event processor.

    Events are disabled with ``application.eventMode=off`` or
    ``ApplicationContext(disable_event=True)``.
    """

    pass


class ContextStateError(SpringletError):
    """
    Raised when an operation does not fit the context's current state.

    Common causes:
        - Calling ``start()`` twice
        - Registering beans after ``start()`` was called
    """

    pass


class ProcessorError(SpringletError):
    """
    Raised when a processor's ``process()`` fails during startup.

    This is the only processor failure that aborts ``start()``.
    """

    pass
