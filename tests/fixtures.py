"""
Test Fixtures

Common test classes used across test modules
"""

from abc import ABC, abstractmethod
from typing import List

from springlet import inject


class Database:
    """Test database class"""

    def __init__(self):
        self.name = "TestDB"


class Repository(ABC):
    """Test repository interface"""

    @abstractmethod
    def find(self, key: str) -> str:
        pass


class SqlRepository(Repository):
    """Repository backed by a Database"""

    def __init__(self, db: Database = None):
        self.db = db

    def find(self, key: str) -> str:
        return f"sql:{key}"


class MemoryRepository(Repository):
    """Second Repository implementation, for ambiguity tests"""

    def find(self, key: str) -> str:
        return f"memory:{key}"


class Plugin:
    """Test plugin base class"""

    def __init__(self, label: str = "plugin"):
        self.label = label


class AlphaPlugin(Plugin):
    """Plugin implementation"""

    def __init__(self):
        super().__init__("alpha")


class BetaPlugin(Plugin):
    """Plugin implementation"""

    def __init__(self):
        super().__init__("beta")


class CounterService:
    """Service with mutable state for testing shared instances"""

    def __init__(self):
        self.counter = 0

    def increment(self):
        self.counter += 1
        return self.counter


class LifecycleRecorder:
    """Records lifecycle hook calls"""

    def __init__(self, calls: List[str] = None, label: str = "recorder"):
        self.calls = calls if calls is not None else []
        self.label = label

    def bean_after_set(self):
        self.calls.append(f"{self.label}.after_set")

    def bean_destroy(self):
        self.calls.append(f"{self.label}.destroy")


class UserService:
    """Service with injected fields"""

    repository: Repository = inject()
    db: Database = inject()


class ReportService:
    """Service with collection fields"""

    plugins: List[Plugin] = inject()


def create_repository(db: Database) -> Repository:
    """Parameterized factory"""
    return SqlRepository(db)


def create_database() -> Database:
    """Zero-argument factory"""
    return Database()
