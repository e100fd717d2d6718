"""
EventProcessor

This module provides the asynchronous event bus of an application context.

A single worker thread delivers queued events to listeners in publish
order. The queue is bounded:

- ``publish_event`` never blocks and raises when the queue is full
- ``post_event`` waits for room, honouring a cancel signal and a timeout
- ``send_event`` / ``notify_event`` deliver synchronously on the caller's
  thread and may overtake events that are still queued

``close()`` lets the worker deliver everything still queued and blocks
until it is done, so no published event is lost on shutdown.
"""

import logging
import queue
import threading
import time
from abc import abstractmethod
from enum import Enum
from typing import Any, Callable, List, Optional

from .event import (
    ApplicationEvent,
    ApplicationEventConsumer,
    ApplicationEventListener,
    ApplicationEventPublisher,
    ConsumerListener,
)
from .exceptions import (
    EventCancelledError,
    EventError,
    EventProcessorClosedError,
    EventProcessorDisabledError,
    EventQueueFullError,
)

logger = logging.getLogger(__name__)

DEFAULT_EVENT_BUFFER_SIZE = 4096

# Longest wait of post_event between checks of its cancel signal
_CANCEL_CHECK_INTERVAL = 0.05

_STOP = object()


class ProcessorState(Enum):
    """State of an event processor"""
    STOPPED = "STOPPED"
    RUNNING = "RUNNING"
    DRAINED = "DRAINED"


class ApplicationEventProcessor(ApplicationEventPublisher):
    """Interface of the event bus used by ApplicationContext."""

    @abstractmethod
    def add_listeners(self, *listeners: Any) -> None:
        pass

    @abstractmethod
    def notify_event(self, event: ApplicationEvent) -> None:
        pass

    @abstractmethod
    def start(self) -> None:
        pass

    @abstractmethod
    def close(self) -> None:
        pass

    def bean_after_set(self) -> None:
        self.start()

    def bean_destroy(self) -> None:
        self.close()


class EventProcessor(ApplicationEventProcessor):
    """Bounded-queue event bus with one delivery thread.

    State machine: ``STOPPED`` → ``start()`` → ``RUNNING`` → ``close()`` →
    ``DRAINED``. Events published while ``STOPPED`` stay queued until the
    processor starts or closes. ``DRAINED`` is terminal; closing again is
    a no-op.

    Attributes:
        buffer_size: Maximum number of queued events

    Example::

        processor = EventProcessor(buffer_size=128)
        processor.add_listeners(on_started)
        processor.start()

        processor.publish_event(ContextStartedEvent(ctx))
        processor.close()   # on_started has been called
    """

    def __init__(
        self,
        buffer_size: int = DEFAULT_EVENT_BUFFER_SIZE,
        consumer_listener_factory: Callable[[], ConsumerListener] = ConsumerListener,
    ):
        if buffer_size <= 0:
            raise ValueError(f"buffer_size must be positive, got {buffer_size}")
        self.buffer_size = buffer_size
        self._consumer_listener_factory = consumer_listener_factory
        self._queue: 'queue.Queue[Any]' = queue.Queue(maxsize=buffer_size)
        self._listeners: List[ApplicationEventListener] = []
        self._listener_lock = threading.Lock()
        self._state = ProcessorState.STOPPED
        self._state_lock = threading.Lock()
        self._room = threading.Condition(self._state_lock)
        self._worker: Optional[threading.Thread] = None

    @property
    def state(self) -> ProcessorState:
        return self._state

    def start(self) -> None:
        """Start the delivery thread. Starting a running processor is a no-op.

        Raises:
            EventProcessorClosedError: When the processor was closed
        """
        with self._state_lock:
            if self._state is ProcessorState.RUNNING:
                return
            if self._state is ProcessorState.DRAINED:
                raise EventProcessorClosedError("Event processor is closed and cannot be restarted")
            self._worker = threading.Thread(
                target=self._event_loop,
                name="springlet-event-processor",
                daemon=True,
            )
            self._state = ProcessorState.RUNNING
            self._worker.start()
        logger.debug("Event processor started (buffer size %d)", self.buffer_size)

    def close(self) -> None:
        """Deliver every queued event, then stop the delivery thread.

        Blocks until draining finished. Closing twice is a no-op.
        """
        with self._state_lock:
            previous = self._state
            if previous is ProcessorState.DRAINED:
                return
            self._state = ProcessorState.DRAINED
            self._room.notify_all()

        if previous is not ProcessorState.RUNNING:
            self._drain()
        elif self._worker is threading.current_thread():
            # called from a listener on the worker thread
            self._drain()
            self._queue.put_nowait(_STOP)
        else:
            self._queue.put(_STOP)
            self._worker.join()
        logger.info("Event processor closed.")

    def add_listeners(self, *listeners: Any) -> None:
        """Register listeners, normalizing each one.

        Accepted are objects with ``on_application_event``,
        ``ApplicationEventConsumer`` objects and callables taking one
        ``ApplicationEvent`` subclass. Anything else is skipped.
        """
        for obj in listeners:
            listener = self._to_listener(obj)
            if listener is not None:
                with self._listener_lock:
                    self._listeners.append(listener)

    def publish_event(self, event: ApplicationEvent) -> None:
        """Queue ``event`` without blocking.

        Raises:
            EventQueueFullError: When the queue is full
            EventProcessorClosedError: When the processor was closed
        """
        _check_event(event)
        with self._state_lock:
            self._ensure_open()
            try:
                self._queue.put_nowait(event)
            except queue.Full:
                raise EventQueueFullError(
                    f"Event queue is full ({self.buffer_size} events)"
                ) from None

    def post_event(
        self,
        event: ApplicationEvent,
        cancel: Optional[threading.Event] = None,
        timeout: Optional[float] = None,
    ) -> None:
        """Queue ``event``, waiting while the queue is full.

        Args:
            event: Event to queue
            cancel: Signal aborting the wait when set
            timeout: Maximum seconds to wait, None to wait forever

        Raises:
            EventCancelledError: When ``cancel`` is set or ``timeout`` elapsed
            EventProcessorClosedError: When the processor was closed
        """
        _check_event(event)
        deadline = time.monotonic() + timeout if timeout is not None else None
        with self._room:
            while True:
                self._ensure_open()
                try:
                    self._queue.put_nowait(event)
                    return
                except queue.Full:
                    pass

                if cancel is not None and cancel.is_set():
                    raise EventCancelledError("Posting event cancelled")
                wait = None
                if deadline is not None:
                    wait = deadline - time.monotonic()
                    if wait <= 0:
                        raise EventCancelledError(f"Posting event timed out after {timeout}s")
                if cancel is not None:
                    wait = _CANCEL_CHECK_INTERVAL if wait is None else min(wait, _CANCEL_CHECK_INTERVAL)
                self._room.wait(wait)

    def send_event(self, event: ApplicationEvent) -> None:
        """Deliver ``event`` synchronously to every listener."""
        _check_event(event)
        self._deliver(event)

    def notify_event(self, event: ApplicationEvent) -> None:
        """Deliver ``event`` synchronously. Remains available after close."""
        _check_event(event)
        self._deliver(event)

    def _ensure_open(self) -> None:
        if self._state is ProcessorState.DRAINED:
            raise EventProcessorClosedError("Event processor is closed")

    def _event_loop(self) -> None:
        while True:
            event = self._queue.get()
            with self._room:
                self._room.notify()
            if event is _STOP:
                break
            self._deliver(event)

    def _drain(self) -> None:
        while True:
            try:
                event = self._queue.get_nowait()
            except queue.Empty:
                return
            if event is not _STOP:
                self._deliver(event)

    def _deliver(self, event: ApplicationEvent) -> None:
        with self._listener_lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener.on_application_event(event)
            except Exception:
                logger.exception("Event listener %r failed on %s", listener, type(event).__name__)

    def _to_listener(self, obj: Any) -> Optional[ApplicationEventListener]:
        if obj is None:
            return None
        if isinstance(obj, ApplicationEventListener) and not isinstance(obj, type):
            return obj

        if isinstance(obj, ApplicationEventConsumer) and not isinstance(obj, type):
            listener = self._consumer_listener_factory()
            try:
                obj.register_consumer(listener)
            except EventError as e:
                logger.error("Register event consumer %r failed: %s", obj, e)
                return None
            return listener

        if callable(obj) and not isinstance(obj, type):
            listener = self._consumer_listener_factory()
            try:
                listener.register_application_event_consumer(obj)
            except EventError as e:
                logger.debug("Skip %r as event listener: %s", obj, e)
                return None
            return listener

        logger.debug("Skip %r as event listener", obj)
        return None


class DisabledEventProcessor(ApplicationEventProcessor):
    """Event processor used when events are turned off.

    ``start`` and ``close`` do nothing; every other call raises
    :class:`EventProcessorDisabledError`.
    """

    def start(self) -> None:
        pass

    def close(self) -> None:
        pass

    def add_listeners(self, *listeners: Any) -> None:
        raise EventProcessorDisabledError("Application event processing is disabled")

    def publish_event(self, event: ApplicationEvent) -> None:
        raise EventProcessorDisabledError("Application event processing is disabled")

    def post_event(self, event: ApplicationEvent, cancel: Any = None, timeout: Optional[float] = None) -> None:
        raise EventProcessorDisabledError("Application event processing is disabled")

    def send_event(self, event: ApplicationEvent) -> None:
        raise EventProcessorDisabledError("Application event processing is disabled")

    def notify_event(self, event: ApplicationEvent) -> None:
        raise EventProcessorDisabledError("Application event processing is disabled")


def _check_event(event: Any) -> None:
    if event is None:
        raise EventError("Event is None")
