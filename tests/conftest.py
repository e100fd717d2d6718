"""
Test Configuration and Utilities

Common base classes and helper functions for Springlet tests
"""

import unittest
from typing import Any, Dict, Optional

from springlet import ApplicationContext, MapProperties


class SpringletTestCase(unittest.TestCase):
    """
    Base test case class for Springlet tests.

    Creates a fresh, initialized ApplicationContext before each test and
    closes it afterwards. The banner is turned off.
    """

    def setUp(self):
        """Create a new context before each test"""
        self.ctx = create_context()

    def tearDown(self):
        """Close the context after each test"""
        self.ctx.close()


def create_context(properties: Optional[Dict[str, Any]] = None, **kwargs) -> ApplicationContext:
    """
    Create an initialized ApplicationContext with the banner turned off.

    Args:
        properties: Extra configuration entries
        **kwargs: Passed to the ApplicationContext constructor

    Returns:
        An initialized, not yet started ApplicationContext

    Example:
        >>> ctx = create_context({"application.name": "demo"})
        >>> ctx.register_bean(Database())
        >>> ctx.start()
    """
    values = {"application.bannerMode": "off"}
    values.update(properties or {})
    ctx = ApplicationContext(**kwargs)
    ctx.init(MapProperties(values))
    return ctx
