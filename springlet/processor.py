"""
Processor

Plugins invoked by an ApplicationContext after injection. A processor is
initialized when it is added (or registered as a bean), is offered every
produced bean through ``classify`` and then runs ``process`` once. A
``process`` failure aborts the context's startup.
"""

from abc import ABC, abstractmethod
from typing import Any, TYPE_CHECKING

if TYPE_CHECKING:
    from .container import Container
    from .properties import Properties


class Processor(ABC):
    """Bean post-processing plugin.

    Example::

        class SchedulerProcessor(Processor):
            def init(self, properties, container):
                self.jobs = []

            def classify(self, bean):
                if isinstance(bean, Job):
                    self.jobs.append(bean)
                    return True
                return False

            def process(self):
                for job in self.jobs:
                    scheduler.add(job)
    """

    @abstractmethod
    def init(self, properties: 'Properties', container: 'Container') -> None:
        """Receive the context configuration and container."""
        pass

    @abstractmethod
    def classify(self, bean: Any) -> bool:
        """Inspect one bean. Return True if this processor handles it."""
        pass

    @abstractmethod
    def process(self) -> None:
        """Act on the classified beans. Raising aborts startup."""
        pass

    def bean_destroy(self) -> None:
        """Release resources when the context closes."""
        pass
