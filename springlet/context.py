"""
ApplicationContext

This module provides the orchestrator tying the container, the injector,
function injection, processors and the event bus together.

Startup runs these phases in order, each over every registered bean:

1. banner
2. ``ApplicationContextAware`` notification
3. field injection of object beans
4. processor classification
5. inject functions
6. after-set hooks
7. processor ``process()``; a failure aborts startup
8. ``ContextStartedEvent`` is published

Closing runs once: the event bus is drained, ``ContextStoppedEvent`` is
sent, every bean is destroyed in container order and ``ContextClosedEvent``
is sent. Teardown errors are logged so one failing bean never prevents
the others from being destroyed.

Example::

    ctx = ApplicationContext()
    ctx.init(MapProperties({"application.name": "billing"}))
    ctx.register_bean(Database())
    ctx.register_bean(create_repository)
    ctx.register_bean(InvoiceService())

    with ctx:
        ctx.start()
        ctx.get_bean_by_type(InvoiceService).run()
    # close() is called automatically
"""

import logging
import threading
from enum import Enum
from typing import Any, List, Optional, Protocol, runtime_checkable

from .container import Container
from .definition import BeanShape, Definition
from .event import (
    ApplicationEvent,
    ContextClosedEvent,
    ContextStartedEvent,
    ContextStoppedEvent,
)
from .event_processor import ApplicationEventProcessor, DisabledEventProcessor, EventProcessor
from .exceptions import (
    ContextStateError,
    EventError,
    FatalInjectionError,
    FunctionInjectionError,
    ProcessorError,
    RegistrationError,
    SpringletError,
)
from .function_injector import FunctionInjector, InjectFunction
from .injector import Injector
from .listener import ListenerManager
from .processor import Processor
from .properties import MapProperties, Properties

logger = logging.getLogger(__name__)

DEFAULT_APPLICATION_NAME = "Springlet Application"

# Interval used by run() to re-check its stop signal
_RUN_POLL_INTERVAL = 0.5


class ContextState(Enum):
    """Startup state of an application context"""
    NONE = "NONE"
    INITIALIZING = "INITIALIZING"
    INITIALIZED = "INITIALIZED"


@runtime_checkable
class ApplicationContextAware(Protocol):
    """Beans implementing this receive the context before injection starts."""

    def set_application_context(self, ctx: 'ApplicationContext') -> None:
        ...


class ApplicationContext:
    """Lifecycle orchestrator of a bean container.

    Attributes:
        container: The bean container
        injector: Resolver used for fields, factories and inject functions
        function_injector: Registry of inject functions
        event_processor: The event bus; replaced by a disabled one when
            events are turned off

    Example::

        ctx = ApplicationContext(event_processor=EventProcessor(buffer_size=64))
        ctx.register_bean(OrderService())
        ctx.add_listeners(on_started)
        ctx.start()
        ...
        ctx.close()
    """

    def __init__(
        self,
        container: Optional[Container] = None,
        injector: Optional[Injector] = None,
        function_injector: Optional[FunctionInjector] = None,
        event_processor: Optional[ApplicationEventProcessor] = None,
        listener_manager: Optional[ListenerManager] = None,
        disable_event: bool = False,
    ):
        """Initialize a context. Every collaborator may be replaced.

        Args:
            container: Bean container (default: empty ``Container``)
            injector: Injector (default: ``Injector`` using ``listener_manager``)
            function_injector: Inject function registry sharing the injector
            event_processor: Event bus (default: ``EventProcessor()``)
            listener_manager: Slot policy listeners shared by injector and
                function injection
            disable_event: Turn the event bus off regardless of configuration
        """
        if listener_manager is None:
            listener_manager = injector.listener_manager if injector is not None else ListenerManager()
        self.container: Container = container if container is not None else Container()
        self.injector: Injector = injector if injector is not None else Injector(listener_manager)
        self.injector.listener_manager = listener_manager
        self.function_injector: FunctionInjector = (
            function_injector if function_injector is not None else FunctionInjector(self.injector)
        )
        self.function_injector.injector = self.injector
        self.event_processor: ApplicationEventProcessor = (
            event_processor if event_processor is not None else EventProcessor()
        )

        self._properties: Properties = MapProperties()
        self._app_name = DEFAULT_APPLICATION_NAME
        self._disable_event = disable_event
        self._disable_inject = False
        self._initialized = False

        self._state = ContextState.NONE
        self._state_lock = threading.Lock()
        self._closed = False
        self._close_lock = threading.Lock()

        self._awares: List[ApplicationContextAware] = []
        self._aware_lock = threading.Lock()
        self._processors: List[Processor] = []
        self._bean_processors: List[Processor] = []
        self._processor_lock = threading.Lock()

    @property
    def application_name(self) -> str:
        return self._app_name

    @property
    def state(self) -> ContextState:
        return self._state

    @property
    def is_closed(self) -> bool:
        return self._closed

    @property
    def properties(self) -> Properties:
        return self._properties

    def init(self, properties: Optional[Properties] = None) -> None:
        """Apply configuration and start the event bus.

        Called by ``start()`` with empty properties when the application
        did not call it.

        Raises:
            ContextStateError: When the context was already initialized
        """
        if self._initialized:
            raise ContextStateError("Application context is already initialized")
        self._ensure_not_closed()

        self._properties = properties if properties is not None else MapProperties()
        self._app_name = self._properties.get("application.name", DEFAULT_APPLICATION_NAME)
        self._disable_inject = self._properties.get("inject.disable", "false").lower() == "true"

        event_mode = self._properties.get("application.eventMode", "on").lower()
        if not self._disable_event:
            self._disable_event = event_mode in ("off", "false")
        if self._disable_event and not isinstance(self.event_processor, DisabledEventProcessor):
            self.event_processor = DisabledEventProcessor()

        self.container.register(self.event_processor)
        self._initialized = True

        with self._processor_lock:
            processors = list(self._processors)
        for p in processors:
            p.init(self._properties, self.container)

        self.event_processor.start()
        logger.debug("Application context %s initialized", self._app_name)

    def _ensure_not_closed(self) -> None:
        if self._closed:
            raise ContextStateError("Application context is already closed")

    def register_bean(self, bean: Any, order: int = 0) -> Optional[str]:
        """Register a bean under its type-derived name.

        See :meth:`register_bean_by_name`.
        """
        return self.register_bean_by_name("", bean, order)

    def register_bean_by_name(self, name: str, bean: Any, order: int = 0) -> Optional[str]:
        """Register a bean.

        Parameterized factories are wrapped so their parameters are injected
        when they produce a value. Object beans are additionally registered
        as event listeners, inject function providers, context-aware beans
        and processors, depending on what they implement.

        Args:
            name: Registration name; empty to use the type-derived name
            bean: Instance, factory function, class, list, str-keyed dict
                or CustomBeanFactory. None is ignored.
            order: Scan priority; lower values initialize and destroy first

        Returns:
            The registration name, or None when ``bean`` is None

        Raises:
            ContextStateError: When the context already started or closed
            RegistrationError: When the bean cannot be registered
        """
        if self._state is not ContextState.NONE:
            raise ContextStateError("Initializing, cannot register new bean")
        self._ensure_not_closed()
        if bean is None:
            return None

        bean = self.injector.wrap_bean(bean, self.container)
        name = self.container.register_by_name(name, bean, order)

        definition = self.container.get_definition(name)
        if definition is None or definition.shape is not BeanShape.OBJECT:
            return name

        if not self._disable_event:
            self.event_processor.add_listeners(bean)
        if isinstance(bean, InjectFunction):
            bean.register_function(self.function_injector)
        if isinstance(bean, ApplicationContextAware):
            with self._aware_lock:
                self._awares.append(bean)
        if isinstance(bean, Processor):
            self._add_processor(bean, is_bean=True)
        return name

    def get_bean(self, name: str) -> Any:
        """Return the bean registered under ``name``.

        Raises:
            DefinitionNotFoundError: When nothing is registered under ``name``
        """
        return self.container.get(name)

    def get_bean_by_type(self, bean_type: Any) -> Any:
        """Return the bean matching ``bean_type``, auto-wiring like a field would.

        Raises:
            ResolutionError: When no bean matches
            AmbiguousDependencyError: When several beans match
        """
        return self.injector.inject_value(self.container, "", bean_type)

    def add_processor(self, processor: Processor) -> None:
        """Add a processor that is not a bean.

        Raises:
            RegistrationError: When ``processor`` is None
        """
        if processor is None:
            raise RegistrationError("Processor is None")
        self._add_processor(processor, is_bean=False)

    def _add_processor(self, processor: Processor, is_bean: bool) -> None:
        with self._processor_lock:
            self._processors.append(processor)
            if is_bean:
                self._bean_processors.append(processor)
        if self._initialized:
            processor.init(self._properties, self.container)

    def add_listeners(self, *listeners: Any) -> None:
        self.event_processor.add_listeners(*listeners)

    def publish_event(self, event: ApplicationEvent) -> None:
        self.event_processor.publish_event(event)

    def post_event(
        self,
        event: ApplicationEvent,
        cancel: Optional[threading.Event] = None,
        timeout: Optional[float] = None,
    ) -> None:
        self.event_processor.post_event(event, cancel, timeout)

    def send_event(self, event: ApplicationEvent) -> None:
        self.event_processor.send_event(event)

    def start(self) -> None:
        """Run the startup sequence.

        Raises:
            ContextStateError: When the context already started or closed
            FatalInjectionError: For ambiguous, circular or required
                dependency failures
            ProcessorError: When a processor's ``process()`` fails
        """
        self._ensure_not_closed()
        with self._state_lock:
            if self._state is not ContextState.NONE:
                raise ContextStateError(
                    f"Application context status error, current: {self._state.value}"
                )
            self._state = ContextState.INITIALIZING

        if not self._initialized:
            self.init()

        self._print_banner()
        self._notify_aware()
        self._inject_all()
        self._classify_beans()
        self._do_function_inject()
        self._notify_bean_set()
        self._do_process()

        with self._state_lock:
            if self._state is not ContextState.INITIALIZING:
                raise ContextStateError(
                    f"Application context status error, current: {self._state.value}"
                )
            self._state = ContextState.INITIALIZED

        logger.info("Application context %s started", self._app_name)
        self._notify_started()

    def _print_banner(self) -> None:
        from . import __version__
        from .banner import print_banner

        path = self._properties.get("application.banner", "")
        mode = self._properties.get("application.bannerMode", "").lower()
        print_banner(__version__, path, mode not in ("off", "false"))

    def _definitions(self) -> List[Definition]:
        """Distinct definitions in container order; cached aliases are skipped."""
        definitions: List[Definition] = []

        def visit(name: str, definition: Definition) -> bool:
            if all(d is not definition for d in definitions):
                definitions.append(definition)
            return True

        self.container.scan(visit)
        return definitions

    def _notify_aware(self) -> None:
        with self._aware_lock:
            awares = list(self._awares)
        for aware in awares:
            aware.set_application_context(self)

    def _inject_all(self) -> None:
        if self._disable_inject:
            return
        for definition in self._definitions():
            if definition.shape is not BeanShape.OBJECT:
                continue
            bean = definition.value()
            if not self.injector.can_inject(bean):
                continue
            try:
                self.injector.inject(self.container, bean)
            except FatalInjectionError:
                raise
            except SpringletError as e:
                logger.error("Inject failed: %s", e)

    def _classify_beans(self) -> None:
        with self._processor_lock:
            processors = list(self._processors)
        if not processors:
            return
        for definition in self._definitions():
            for p in processors:
                try:
                    definition.classify(p.classify)
                except FatalInjectionError:
                    raise
                except SpringletError as e:
                    logger.error("%s", e)

    def _do_function_inject(self) -> None:
        if self._disable_inject:
            return
        try:
            self.function_injector.inject_all_functions(self.container)
        except FunctionInjectionError as e:
            logger.error("%s", e)

    def _notify_bean_set(self) -> None:
        for definition in self._definitions():
            try:
                definition.after_set()
            except SpringletError as e:
                logger.error("%s", e)

    def _do_process(self) -> None:
        with self._processor_lock:
            processors = list(self._processors)
        for p in processors:
            try:
                p.process()
            except Exception as e:
                raise ProcessorError(f"Processor {type(p).__name__} process failed: {e}") from e

    def _notify_started(self) -> None:
        if self._disable_event:
            return
        try:
            self.event_processor.publish_event(ContextStartedEvent(self))
        except EventError as e:
            logger.error("Publish started event failed: %s", e)

    def _notify(self, event: ApplicationEvent) -> None:
        if self._disable_event:
            return
        try:
            self.event_processor.notify_event(event)
        except EventError as e:
            logger.error("Notify %s failed: %s", type(event).__name__, e)

    def close(self) -> None:
        """Close the context. Only the first call has an effect.

        Errors raised by teardown hooks are logged, not raised.
        """
        with self._close_lock:
            if self._closed:
                return
            self._closed = True

        self.event_processor.close()
        self._notify(ContextStoppedEvent(self))
        self._destroy_beans()
        self._destroy_processors()
        self._notify(ContextClosedEvent(self))
        logger.info("Application context %s closed", self._app_name)

    def _destroy_beans(self) -> None:
        for definition in self._definitions():
            try:
                definition.destroy()
            except SpringletError as e:
                logger.error("%s", e)

    def _destroy_processors(self) -> None:
        with self._processor_lock:
            processors = [p for p in self._processors if all(p is not b for b in self._bean_processors)]
        for p in processors:
            try:
                p.bean_destroy()
            except Exception as e:
                logger.error("Processor %s destroy failed: %s", type(p).__name__, e)

    def run(self, stop_event: Optional[threading.Event] = None) -> None:
        """Start the context, block until ``stop_event`` is set, then close it.

        Without ``stop_event`` the call blocks until interrupted with
        Ctrl+C (``KeyboardInterrupt``).
        """
        stop = stop_event if stop_event is not None else threading.Event()
        try:
            self.start()
            while not stop.wait(_RUN_POLL_INTERVAL):
                pass
        except KeyboardInterrupt:
            logger.info("Application context %s interrupted", self._app_name)
        finally:
            self.close()

    def __enter__(self) -> 'ApplicationContext':
        """Enter context manager.

        Returns:
            ApplicationContext: This instance
        """
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        """Exit context manager and close the context.

        Returns:
            False: Exceptions are not suppressed
        """
        self.close()
        return False
