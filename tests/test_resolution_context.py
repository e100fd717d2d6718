"""
Resolution Context Tests

Tests for circular dependency detection:
- Direct and indirect cycles through factories
- Diamond dependencies are not cycles
- Concurrent resolution in different threads is not a cycle
"""

import sys
import os
import threading
import unittest

# Add tests directory to path for local imports
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from springlet import CircularDependencyError, Container, FunctionDefinition, Injector
from springlet.resolution_context import ResolutionContext, _resolution_context

from fixtures import Database, create_database


class ServiceA:
    pass


class ServiceB:
    pass


class ServiceC:
    pass


class Top:
    def __init__(self, left, right):
        self.left = left
        self.right = right


class Left:
    def __init__(self, db):
        self.db = db


class Right:
    def __init__(self, db):
        self.db = db


def create_a(b: ServiceB) -> ServiceA:
    return ServiceA()


def create_b(a: ServiceA) -> ServiceB:
    return ServiceB()


def create_c(c: ServiceC) -> ServiceC:
    return ServiceC()


def create_top(left: Left, right: Right) -> Top:
    return Top(left, right)


def create_left(db: Database) -> Left:
    return Left(db)


def create_right(db: Database) -> Right:
    return Right(db)


class TestCircularDependency(unittest.TestCase):
    """Tests for cycle detection through factories"""

    def setUp(self):
        self.container = Container()
        self.injector = Injector()

    def register(self, *factories):
        for factory in factories:
            self.container.register(self.injector.wrap_bean(factory, self.container))

    def test_indirect_cycle(self):
        """A -> B -> A is detected"""
        self.register(create_a, create_b)

        with self.assertRaises(CircularDependencyError) as ctx:
            self.container.get_by_type(ServiceA)

        message = str(ctx.exception)
        self.assertIn("ServiceA -> ", message)
        self.assertIn("ServiceB -> ", message)

    def test_self_dependency(self):
        """A factory depending on its own product is a cycle"""
        self.register(create_c)

        with self.assertRaises(CircularDependencyError):
            self.container.get_by_type(ServiceC)

    def test_chain_is_reset_after_failure(self):
        """A detected cycle leaves no resolution state behind"""
        self.register(create_a, create_b)

        with self.assertRaises(CircularDependencyError):
            self.container.get_by_type(ServiceA)

        self.assertIsNone(_resolution_context.get())

    def test_diamond_is_not_a_cycle(self):
        """Shared dependencies below different branches are fine"""
        self.register(create_database, create_left, create_right, create_top)

        top = self.container.get_by_type(Top)

        self.assertIsInstance(top.left.db, Database)
        self.assertIsInstance(top.right.db, Database)

    def test_repeated_resolution(self):
        """Resolving the same factory twice in sequence is not a cycle"""
        self.register(create_database, create_left)

        first = self.container.get_by_type(Left)
        second = self.container.get_by_type(Left)

        self.assertIsNot(first, second)


class TestConcurrentResolution(unittest.TestCase):
    """Tests for per-thread resolution chains"""

    def test_parallel_resolution_is_not_a_cycle(self):
        """Two threads inside the same factory do not see each other"""
        barrier = threading.Barrier(2)

        def create() -> Database:
            barrier.wait(timeout=5)
            return Database()

        definition = FunctionDefinition(create)
        results = []
        errors = []

        def resolve():
            try:
                results.append(definition.value())
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=resolve) for _ in range(2)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        self.assertEqual(errors, [])
        self.assertEqual(len(results), 2)
        self.assertEqual(len(definition.instances()), 2)


class TestResolutionContext(unittest.TestCase):
    """Tests for the ResolutionContext chain"""

    def test_enter_and_describe(self):
        """Entering appends to a copy of the parent chain"""
        first = FunctionDefinition(create_database)
        second = FunctionDefinition(ServiceA)

        root = ResolutionContext.enter(None, first)
        child = ResolutionContext.enter(root, second)

        self.assertEqual(len(root.chain), 1)
        self.assertTrue(child.is_resolving(first))
        self.assertFalse(root.is_resolving(second))
        self.assertEqual(
            child.describe(first),
            "fixtures.Database -> test_resolution_context.ServiceA -> fixtures.Database",
        )


if __name__ == '__main__':
    unittest.main()
