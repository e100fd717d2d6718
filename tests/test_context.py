"""
ApplicationContext Tests

Tests for the context lifecycle:
- Registration rules and state checks
- Startup phases (aware, injection, inject functions, after-set, processors)
- Events published by the context
- Closing and teardown error handling
- Configuration keys, properties and the banner
"""

import sys
import os
import tempfile
import threading
import unittest

# Add tests directory to path for local imports
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from springlet import (
    AmbiguousDependencyError,
    ApplicationContext,
    ApplicationEventPublisher,
    ContextClosedEvent,
    ContextStartedEvent,
    ContextState,
    ContextStateError,
    ContextStoppedEvent,
    DefinitionNotFoundError,
    DisabledEventProcessor,
    EventProcessor,
    EventProcessorDisabledError,
    MapProperties,
    PayloadApplicationEvent,
    Processor,
    ProcessorError,
    RequiredDependencyError,
    inject,
)
from springlet.banner import BANNER, banner_text

from conftest import SpringletTestCase, create_context
from fixtures import (
    Database,
    LifecycleRecorder,
    MemoryRepository,
    Repository,
    SqlRepository,
    UserService,
    create_repository,
)


class RecordingListener:
    """Listener bean recording every event"""

    def __init__(self):
        self.events = []

    def on_application_event(self, event):
        self.events.append(event)


class AwareService:
    """Receives the context before injection"""

    db: Database = inject()

    def __init__(self):
        self.ctx = None
        self.db_at_aware = "unset"

    def set_application_context(self, ctx):
        self.ctx = ctx
        self.db_at_aware = self.db


class Wiring:
    """Registers an inject function"""

    def __init__(self):
        self.received = []

    def wire(self, db: Database):
        self.received.append(db)

    def register_function(self, registry):
        registry.register_inject_function(self.wire)


class BrokenWiring:
    """Registers an inject function with an optional missing dependency"""

    def wire(self, repo: Repository):
        pass

    def register_function(self, registry):
        registry.register_inject_function(self.wire, ",omiterror")


class RequiredWiring:
    """Registers an inject function with a required missing dependency"""

    def wire(self, repo: Repository):
        pass

    def register_function(self, registry):
        registry.register_inject_function(self.wire)


class RecordingProcessor(Processor):
    """Processor collecting Database beans"""

    def __init__(self):
        self.properties = None
        self.container = None
        self.classified = []
        self.processed = False
        self.destroyed = 0

    def init(self, properties, container):
        self.properties = properties
        self.container = container

    def classify(self, bean):
        if isinstance(bean, Database):
            self.classified.append(bean)
            return True
        return False

    def process(self):
        self.processed = True

    def bean_destroy(self):
        self.destroyed += 1


class FailingProcessor(RecordingProcessor):
    """Processor whose process() fails"""

    def process(self):
        raise ValueError("process failed")


class FragileService:
    """Bean whose hooks fail"""

    def bean_after_set(self):
        raise RuntimeError("after set failed")

    def bean_destroy(self):
        raise RuntimeError("destroy failed")


class TolerantService:
    """Service with an optional dependency"""

    repository: Repository = inject(",omiterror")


class Notifier:
    """Service publishing events"""

    publisher: ApplicationEventPublisher = inject()


class RecorderHolder:
    """Service injected with a factory-produced bean"""

    recorder: LifecycleRecorder = inject()


class TestRegistration(SpringletTestCase):
    """Tests for register_bean and lookups"""

    def test_register_returns_name(self):
        """register_bean returns the registration name"""
        self.assertEqual(self.ctx.register_bean(Database()), "fixtures.Database")
        self.assertEqual(self.ctx.register_bean_by_name("primaryDb", Database()), "primaryDb")

    def test_register_none_is_ignored(self):
        """None is silently ignored"""
        self.assertIsNone(self.ctx.register_bean(None))

    def test_parameterized_factory_is_wrapped(self):
        """Factories with parameters can be registered on a context"""
        self.ctx.register_bean(Database())
        self.ctx.register_bean(create_repository)

        repository = self.ctx.get_bean_by_type(Repository)

        self.assertIsInstance(repository.db, Database)

    def test_get_bean_by_type_auto_wires(self):
        """get_bean_by_type resolves interfaces"""
        repository = SqlRepository()
        self.ctx.register_bean(repository)

        self.assertIs(self.ctx.get_bean_by_type(Repository), repository)

    def test_get_bean_missing(self):
        """Unknown names raise DefinitionNotFoundError"""
        with self.assertRaises(DefinitionNotFoundError):
            self.ctx.get_bean("missing")

    def test_event_processor_is_a_bean(self):
        """The event processor is registered by init"""
        self.assertIs(self.ctx.get_bean_by_type(EventProcessor), self.ctx.event_processor)

    def test_register_after_start_fails(self):
        """Beans cannot be added once the context started"""
        self.ctx.start()

        with self.assertRaises(ContextStateError):
            self.ctx.register_bean(Database())

    def test_register_after_close_fails(self):
        """Beans cannot be added to a closed context"""
        self.ctx.close()

        with self.assertRaises(ContextStateError):
            self.ctx.register_bean(Database())


class TestStartup(SpringletTestCase):
    """Tests for start()"""

    def test_fields_are_injected(self):
        """Object beans get their fields injected"""
        db = Database()
        service = UserService()
        self.ctx.register_bean(db)
        self.ctx.register_bean(create_repository)
        self.ctx.register_bean(service)

        self.ctx.start()

        self.assertIs(service.db, db)
        self.assertIs(service.repository.db, db)
        self.assertEqual(self.ctx.state, ContextState.INITIALIZED)

    def test_start_twice_fails(self):
        """start() may be called once"""
        self.ctx.start()

        with self.assertRaises(ContextStateError):
            self.ctx.start()

    def test_start_after_close_fails(self):
        """A closed context cannot start"""
        self.ctx.close()

        with self.assertRaises(ContextStateError):
            self.ctx.start()

    def test_start_initializes_implicitly(self):
        """start() runs init() when the application did not"""
        ctx = ApplicationContext()
        ctx.register_bean(Database())

        with self.assertLogs('springlet.banner', level='INFO') as logs:
            ctx.start()
        ctx.close()

        self.assertEqual(ctx.application_name, "Springlet Application")
        self.assertIn("=" * 20, "\n".join(logs.output))

    def test_init_twice_fails(self):
        """init() may be called once"""
        with self.assertRaises(ContextStateError):
            self.ctx.init()

    def test_aware_runs_before_injection(self):
        """ApplicationContextAware beans see the context before their fields"""
        aware = AwareService()
        self.ctx.register_bean(Database())
        self.ctx.register_bean(aware)

        self.ctx.start()

        self.assertIs(aware.ctx, self.ctx)
        self.assertIsNone(aware.db_at_aware)
        self.assertIsInstance(aware.db, Database)

    def test_inject_functions_run(self):
        """InjectFunction beans have their functions invoked"""
        db = Database()
        wiring = Wiring()
        self.ctx.register_bean(db)
        self.ctx.register_bean(wiring)

        self.ctx.start()

        self.assertEqual(wiring.received, [db])

    def test_inject_function_failure_is_logged(self):
        """Inject function failures do not abort startup"""
        self.ctx.register_bean(BrokenWiring())

        with self.assertLogs('springlet.context', level='ERROR') as logs:
            self.ctx.start()

        self.assertIn("Inject functions failed", "\n".join(logs.output))
        self.assertEqual(self.ctx.state, ContextState.INITIALIZED)

    def test_required_inject_function_failure_aborts(self):
        """A required inject function parameter that cannot be resolved aborts startup"""
        self.ctx.register_bean(RequiredWiring())

        with self.assertRaises(RequiredDependencyError):
            self.ctx.start()

    def test_after_set_and_destroy_follow_order(self):
        """Hooks run in container order"""
        calls = []
        self.ctx.register_bean_by_name("late", LifecycleRecorder(calls, "late"), order=10)
        self.ctx.register_bean_by_name("early", LifecycleRecorder(calls, "early"), order=-10)

        self.ctx.start()
        self.ctx.close()

        self.assertEqual(
            calls,
            ["early.after_set", "late.after_set", "early.destroy", "late.destroy"],
        )

    def test_factory_products_get_hooks(self):
        """Instances produced during injection receive their hooks"""
        calls = []

        def create_recorder() -> LifecycleRecorder:
            return LifecycleRecorder(calls, "made")

        holder = RecorderHolder()
        self.ctx.register_bean(create_recorder)
        self.ctx.register_bean(holder)

        self.ctx.start()
        self.assertEqual(calls, ["made.after_set"])

        self.ctx.close()
        self.assertEqual(calls, ["made.after_set", "made.destroy"])
        self.assertIsInstance(holder.recorder, LifecycleRecorder)

    def test_after_set_failure_is_logged(self):
        """A failing after-set hook does not abort startup"""
        self.ctx.register_bean(FragileService())

        with self.assertLogs('springlet.context', level='ERROR') as logs:
            self.ctx.start()

        self.assertIn("after set failed", "\n".join(logs.output))

    def test_missing_required_dependency_aborts(self):
        """Required fields that cannot be resolved abort startup"""
        self.ctx.register_bean(UserService())

        with self.assertRaises(RequiredDependencyError):
            self.ctx.start()

    def test_ambiguous_dependency_aborts(self):
        """Ambiguous auto-wiring aborts startup"""
        self.ctx.register_bean(Database())
        self.ctx.register_bean(SqlRepository())
        self.ctx.register_bean(MemoryRepository())
        self.ctx.register_bean(UserService())

        with self.assertRaises(AmbiguousDependencyError):
            self.ctx.start()

    def test_omiterror_field_is_tolerated(self):
        """omiterror fields stay empty"""
        service = TolerantService()
        self.ctx.register_bean(service)

        with self.assertLogs('springlet', level='ERROR'):
            self.ctx.start()

        self.assertIsNone(service.repository)

    def test_event_publisher_is_injectable(self):
        """Beans can depend on the event publisher"""
        notifier = Notifier()
        self.ctx.register_bean(notifier)

        self.ctx.start()

        self.assertIs(notifier.publisher, self.ctx.event_processor)


class TestProcessors(SpringletTestCase):
    """Tests for Processor integration"""

    def test_processor_bean(self):
        """Processor beans are initialized, classify, process and are destroyed once"""
        db = Database()
        processor = RecordingProcessor()
        self.ctx.register_bean(db)
        self.ctx.register_bean(processor)

        self.assertIs(processor.container, self.ctx.container)

        self.ctx.start()
        self.assertEqual(processor.classified, [db])
        self.assertTrue(processor.processed)

        self.ctx.close()
        self.assertEqual(processor.destroyed, 1)

    def test_added_processor(self):
        """Processors added directly are destroyed when the context closes"""
        processor = RecordingProcessor()
        self.ctx.add_processor(processor)

        self.ctx.start()
        self.ctx.close()

        self.assertTrue(processor.processed)
        self.assertEqual(processor.destroyed, 1)

    def test_processor_added_before_init(self):
        """Processors added before init() are initialized by it"""
        ctx = ApplicationContext()
        processor = RecordingProcessor()
        ctx.add_processor(processor)
        self.assertIsNone(processor.properties)

        properties = MapProperties({"application.bannerMode": "off"})
        ctx.init(properties)
        ctx.close()

        self.assertIs(processor.properties, properties)

    def test_process_failure_aborts_start(self):
        """A failing process() raises ProcessorError"""
        self.ctx.add_processor(FailingProcessor())

        with self.assertRaises(ProcessorError) as ctx:
            self.ctx.start()

        self.assertIsInstance(ctx.exception.__cause__, ValueError)


class TestEvents(SpringletTestCase):
    """Tests for context events"""

    def test_lifecycle_events(self):
        """Listener beans receive started, stopped and closed events in order"""
        listener = RecordingListener()
        self.ctx.register_bean(listener)

        self.ctx.start()
        self.ctx.close()

        self.assertEqual(
            [type(e) for e in listener.events],
            [ContextStartedEvent, ContextStoppedEvent, ContextClosedEvent],
        )
        self.assertIs(listener.events[0].get_app_context(), self.ctx)

    def test_published_events_are_delivered_before_close_returns(self):
        """Queued events are drained on close"""
        listener = RecordingListener()
        self.ctx.register_bean(listener)
        self.ctx.start()

        for i in range(10):
            self.ctx.publish_event(PayloadApplicationEvent(i))
        self.ctx.close()

        payloads = [e.payload for e in listener.events if isinstance(e, PayloadApplicationEvent)]
        self.assertEqual(payloads, list(range(10)))

    def test_send_event(self):
        """send_event is synchronous"""
        listener = RecordingListener()
        self.ctx.add_listeners(listener)

        self.ctx.send_event(PayloadApplicationEvent("now"))

        self.assertEqual(listener.events[0].payload, "now")

    def test_events_disabled_by_configuration(self):
        """eventMode=off replaces the event processor"""
        ctx = create_context({"application.eventMode": "off"})
        listener = RecordingListener()
        ctx.register_bean(listener)

        ctx.start()
        with self.assertRaises(EventProcessorDisabledError):
            ctx.publish_event(PayloadApplicationEvent("x"))
        ctx.close()

        self.assertIsInstance(ctx.event_processor, DisabledEventProcessor)
        self.assertEqual(listener.events, [])

    def test_events_disabled_by_constructor(self):
        """disable_event=True turns events off"""
        ctx = create_context(disable_event=True)
        ctx.start()
        ctx.close()

        self.assertIsInstance(ctx.event_processor, DisabledEventProcessor)


class TestClose(SpringletTestCase):
    """Tests for close()"""

    def test_close_is_idempotent(self):
        """Only the first close has an effect"""
        calls = []
        self.ctx.register_bean(LifecycleRecorder(calls))
        self.ctx.start()

        self.ctx.close()
        self.ctx.close()

        self.assertTrue(self.ctx.is_closed)
        self.assertEqual(calls.count("recorder.destroy"), 1)

    def test_destroy_failure_is_logged(self):
        """A failing destroy hook does not stop teardown"""
        calls = []
        self.ctx.register_bean(FragileService())
        self.ctx.register_bean(LifecycleRecorder(calls))

        with self.assertLogs('springlet.context', level='ERROR') as logs:
            self.ctx.start()
            self.ctx.close()

        self.assertIn("destroy failed", "\n".join(logs.output))
        self.assertIn("recorder.destroy", calls)

    def test_context_manager(self):
        """The with block closes the context"""
        with create_context() as ctx:
            ctx.start()

        self.assertTrue(ctx.is_closed)

    def test_context_manager_propagates_exceptions(self):
        """Exceptions in the with block are not suppressed"""
        ctx = create_context()

        with self.assertRaises(ValueError):
            with ctx:
                raise ValueError("boom")

        self.assertTrue(ctx.is_closed)

    def test_run_until_stopped(self):
        """run() starts, waits for the stop signal and closes"""
        ctx = create_context()
        stop = threading.Event()
        timer = threading.Timer(0.05, stop.set)
        timer.start()

        ctx.run(stop)
        timer.join()

        self.assertEqual(ctx.state, ContextState.INITIALIZED)
        self.assertTrue(ctx.is_closed)


class TestConfiguration(unittest.TestCase):
    """Tests for configuration keys and properties"""

    def test_application_name(self):
        """application.name sets the display name"""
        ctx = create_context({"application.name": "billing"})
        ctx.close()

        self.assertEqual(ctx.application_name, "billing")

    def test_inject_disable(self):
        """inject.disable=true skips field injection"""
        ctx = create_context({"inject.disable": True})
        service = UserService()
        ctx.register_bean(service)

        ctx.start()
        ctx.close()

        self.assertIsNone(service.db)

    def test_map_properties(self):
        """Nested mappings are flattened and booleans normalized"""
        props = MapProperties({"application": {"name": "demo", "debug": True}, "port": 8080})

        self.assertEqual(props.get("application.name"), "demo")
        self.assertEqual(props.get("application.debug"), "true")
        self.assertEqual(props.get("port"), "8080")
        self.assertEqual(props.get("missing", "fallback"), "fallback")
        self.assertIn("application.name", props)
        self.assertEqual(len(props), 3)
        self.assertEqual(sorted(props), ["application.debug", "application.name", "port"])


class TestBanner(unittest.TestCase):
    """Tests for banner rendering"""

    def test_banner_off(self):
        """bannerMode off renders a single line"""
        self.assertEqual(banner_text("1.2.3", show_banner=False), "=== springlet === (1.2.3)\n")

    def test_default_banner(self):
        """The default banner ends with a version rule"""
        text = banner_text("1.2.3")
        lines = text.splitlines()

        self.assertTrue(text.startswith(BANNER))
        self.assertEqual(lines[-1], "=" * 34 + " (1.2.3)")

    def test_custom_banner_file(self):
        """A banner file replaces the default art"""
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "banner.txt")
            with open(path, "w", encoding="utf-8") as f:
                f.write("HELLO")

            text = banner_text("1.0", path)

        self.assertTrue(text.startswith("HELLO\n"))
        self.assertNotIn(BANNER, text)

    def test_version_matches_distribution(self):
        """__version__ reports the installed distribution's version"""
        import springlet
        from importlib.metadata import PackageNotFoundError, version

        try:
            expected = version("springlet")
        except PackageNotFoundError:
            self.skipTest("springlet is not installed")

        self.assertEqual(springlet.__version__, expected)
        self.assertNotEqual(springlet.__version__, "0.0.0")

    def test_missing_banner_file(self):
        """An unreadable banner file falls back to the default"""
        with self.assertLogs('springlet.banner', level='WARNING'):
            text = banner_text("1.0", "/nonexistent/banner.txt")

        self.assertTrue(text.startswith(BANNER))


if __name__ == '__main__':
    unittest.main()
