from importlib.metadata import PackageNotFoundError, version as _distribution_version

# Public API
from .container import Container
from .context import ApplicationContext, ApplicationContextAware, ContextState
from .definition import (
    BeanShape,
    CustomBeanFactory,
    CustomFactoryDefinition,
    Definition,
    DictDefinition,
    Disposable,
    FunctionDefinition,
    Initializing,
    ListDefinition,
    ObjectDefinition,
    singleton_factory,
)
from .event import (
    ApplicationContextEvent,
    ApplicationEvent,
    ApplicationEventConsumer,
    ApplicationEventListener,
    ApplicationEventPublisher,
    BaseApplicationEvent,
    ConsumerListener,
    ContextClosedEvent,
    ContextStartedEvent,
    ContextStoppedEvent,
    PayloadApplicationEvent,
    PayloadEventListener,
    get_event_context,
)
from .event_processor import (
    ApplicationEventProcessor,
    DisabledEventProcessor,
    EventProcessor,
    ProcessorState,
)
from .exceptions import (
    AggregateError,
    AmbiguousDependencyError,
    BeanCreationError,
    CircularDependencyError,
    ClassificationError,
    ContextStateError,
    DefinitionNotFoundError,
    DuplicateDefinitionError,
    EventCancelledError,
    EventError,
    EventProcessorClosedError,
    EventProcessorDisabledError,
    EventQueueFullError,
    FatalInjectionError,
    FunctionInjectionError,
    InjectionError,
    LifecycleError,
    ProcessorError,
    RegistrationError,
    RequiredDependencyError,
    ResolutionError,
    SpringletError,
)
from .function_injector import FunctionInjector, InjectFunction, InjectFunctionRegistry
from .inject_descriptor import InjectDescriptor, inject
from .injector import Injector
from .listener import InjectListener, ListenerManager
from .processor import Processor
from .properties import MapProperties, Properties

__all__ = [
    "ApplicationContext",
    "ApplicationContextAware",
    "ContextState",
    "Container",
    "Injector",
    "FunctionInjector",
    "InjectFunction",
    "InjectFunctionRegistry",
    "ListenerManager",
    "InjectListener",
    "Processor",
    "Properties",
    "MapProperties",
    # Definitions
    "BeanShape",
    "Definition",
    "ObjectDefinition",
    "ListDefinition",
    "DictDefinition",
    "FunctionDefinition",
    "CustomFactoryDefinition",
    "CustomBeanFactory",
    "Initializing",
    "Disposable",
    "singleton_factory",
    # Inject
    "InjectDescriptor",
    "inject",
    # Events
    "ApplicationEvent",
    "BaseApplicationEvent",
    "ApplicationContextEvent",
    "ContextStartedEvent",
    "ContextStoppedEvent",
    "ContextClosedEvent",
    "PayloadApplicationEvent",
    "ApplicationEventListener",
    "ApplicationEventConsumer",
    "ApplicationEventPublisher",
    "ConsumerListener",
    "PayloadEventListener",
    "get_event_context",
    "ApplicationEventProcessor",
    "EventProcessor",
    "DisabledEventProcessor",
    "ProcessorState",
    # Exceptions
    "SpringletError",
    "RegistrationError",
    "DuplicateDefinitionError",
    "ResolutionError",
    "DefinitionNotFoundError",
    "BeanCreationError",
    "InjectionError",
    "FatalInjectionError",
    "AmbiguousDependencyError",
    "CircularDependencyError",
    "RequiredDependencyError",
    "AggregateError",
    "LifecycleError",
    "ClassificationError",
    "FunctionInjectionError",
    "EventError",
    "EventQueueFullError",
    "EventCancelledError",
    "EventProcessorClosedError",
    "EventProcessorDisabledError",
    "ContextStateError",
    "ProcessorError",
]

# Version comes from the installed distribution metadata
try:
    __version__ = _distribution_version("springlet")
except PackageNotFoundError:
    # Running from a source checkout
    __version__ = '0.0.0'
