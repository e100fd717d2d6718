"""
Application events

Event types, listener interfaces and the adapters that turn plain
callables into listeners.

Three kinds of subscribers are accepted by an event processor:

- objects with ``on_application_event(event)``
- callables taking one parameter annotated with an ``ApplicationEvent``
  subclass; they only receive events of that type
- ``ApplicationEventConsumer`` objects registering such callables
  themselves through ``register_consumer(registry)``

``PayloadEventListener`` matches ``PayloadApplicationEvent`` payloads by
their runtime type instead of the event type.
"""

import inspect
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Callable, List, Optional, Protocol, TYPE_CHECKING, runtime_checkable

from .exceptions import EventError
from .reflection import callable_name, callable_parameters, type_name

if TYPE_CHECKING:
    from .context import ApplicationContext


class ApplicationEvent(ABC):
    """Base interface of every event."""

    @abstractmethod
    def occurred_time(self) -> datetime:
        pass


class BaseApplicationEvent(ApplicationEvent):
    """Event carrying its creation time and an optional event context.

    Args:
        context: Arbitrary caller data travelling with the event, e.g. a
            request id or a ``contextvars.Context``
    """

    def __init__(self, context: Any = None):
        self._occurred = datetime.now()
        self._context = context

    def occurred_time(self) -> datetime:
        return self._occurred

    def get_event_context(self) -> Any:
        return self._context


class ApplicationContextEvent(BaseApplicationEvent):
    """Event raised by an ApplicationContext about itself."""

    def __init__(self, app_context: 'ApplicationContext', context: Any = None):
        super().__init__(context)
        self._app_context = app_context

    def get_app_context(self) -> 'ApplicationContext':
        return self._app_context


class ContextStartedEvent(ApplicationContextEvent):
    """Published once the context finished starting."""


class ContextStoppedEvent(ApplicationContextEvent):
    """Sent when the context begins closing, before beans are destroyed."""


class ContextClosedEvent(ApplicationContextEvent):
    """Sent after every bean was destroyed."""


class PayloadApplicationEvent(BaseApplicationEvent):
    """Event wrapping an arbitrary payload, addressed by the payload's type.

    Example::

        ctx.add_listeners(PayloadEventListener(on_order_created))
        ctx.publish_event(PayloadApplicationEvent(OrderCreated(order_id=42)))
    """

    def __init__(self, payload: Any, context: Any = None):
        if payload is None:
            raise EventError("Payload event requires a payload")
        super().__init__(context)
        self._payload = payload

    @property
    def payload(self) -> Any:
        return self._payload


def get_event_context(event: ApplicationEvent, default: Any = None) -> Any:
    """Return the event's context, or ``default`` for events without one."""
    getter = getattr(event, 'get_event_context', None)
    if getter is None:
        return default
    return getter()


@runtime_checkable
class ApplicationEventListener(Protocol):
    def on_application_event(self, event: ApplicationEvent) -> None:
        ...


class ApplicationEventConsumerRegistry(Protocol):
    def register_application_event_consumer(self, consumer: Callable[[Any], Any]) -> None:
        ...


@runtime_checkable
class ApplicationEventConsumer(Protocol):
    """Objects that register their own event callbacks."""

    def register_consumer(self, registry: ApplicationEventConsumerRegistry) -> None:
        ...


class ApplicationEventPublisher(ABC):
    """Publishing side of an event processor."""

    @abstractmethod
    def publish_event(self, event: ApplicationEvent) -> None:
        pass

    @abstractmethod
    def post_event(self, event: ApplicationEvent, cancel: Any = None, timeout: Optional[float] = None) -> None:
        pass

    @abstractmethod
    def send_event(self, event: ApplicationEvent) -> None:
        pass


class _ConsumerInvoker:
    """Calls ``consumer`` with values that are instances of its parameter type."""

    def __init__(self, consumer: Callable[[Any], Any], require_event: bool):
        if not callable(consumer) or isinstance(consumer, type):
            raise EventError(f"Event consumer {consumer!r} is not a function")
        params = callable_parameters(consumer)
        if len(params) != 1:
            raise EventError(
                f"Event consumer {callable_name(consumer)} must take exactly one parameter"
            )
        _, param_type, _ = params[0]
        if param_type is inspect.Parameter.empty or not isinstance(param_type, type):
            raise EventError(
                f"Event consumer {callable_name(consumer)} parameter must be annotated with a class"
            )
        if require_event and not issubclass(param_type, ApplicationEvent):
            raise EventError(
                f"Event consumer {callable_name(consumer)} parameter must be an ApplicationEvent, "
                f"got {type_name(param_type)}"
            )
        self.consumer = consumer
        self.param_type = param_type

    def invoke(self, data: Any) -> bool:
        if isinstance(data, self.param_type):
            self.consumer(data)
            return True
        return False


class ConsumerListener:
    """Listener dispatching events to callables by their parameter type."""

    def __init__(self):
        self._invokers: List[_ConsumerInvoker] = []

    def register_application_event_consumer(self, consumer: Callable[[Any], Any]) -> None:
        """Add a callable taking one ``ApplicationEvent`` subclass.

        Raises:
            EventError: When the callable does not have that shape
        """
        self._invokers.append(_ConsumerInvoker(consumer, require_event=True))

    def on_application_event(self, event: ApplicationEvent) -> None:
        for invoker in self._invokers:
            invoker.invoke(event)

    def __len__(self) -> int:
        return len(self._invokers)


class PayloadEventListener:
    """Listener dispatching ``PayloadApplicationEvent`` payloads by payload type.

    Each consumer takes one parameter; it is called when the payload is an
    instance of that parameter's annotated class.

    Example::

        def on_user_created(user: User):
            mailer.welcome(user)

        listener = PayloadEventListener(on_user_created)
    """

    def __init__(self, *consumers: Callable[[Any], Any]):
        self._invokers: List[_ConsumerInvoker] = []
        self.refresh_payload_handler(*consumers)

    def refresh_payload_handler(self, *consumers: Callable[[Any], Any]) -> None:
        """Add more payload consumers.

        Raises:
            EventError: When no consumer is given or one has the wrong shape
        """
        if not consumers:
            raise EventError("Payload consumers are empty")
        for consumer in consumers:
            self.register_application_event_consumer(consumer)

    def register_application_event_consumer(self, consumer: Callable[[Any], Any]) -> None:
        self._invokers.append(_ConsumerInvoker(consumer, require_event=False))

    def on_application_event(self, event: ApplicationEvent) -> None:
        if isinstance(event, PayloadApplicationEvent):
            for invoker in self._invokers:
                invoker.invoke(event.payload)
