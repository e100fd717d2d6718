"""
Properties

Read-only configuration consumed by an ApplicationContext when it is
initialized. Loading configuration files is left to the application;
anything with a ``get(key, default)`` method returning strings will do.

Recognized keys:

- ``application.name``: display name of the context
- ``application.eventMode``: ``on`` (default) or ``off``
- ``application.banner``: path of a file replacing the default banner
- ``application.bannerMode``: ``off`` hides the banner
- ``inject.disable``: ``true`` skips field and function injection
"""

from typing import Any, Dict, Iterator, Mapping, Optional, Protocol


class Properties(Protocol):
    def get(self, key: str, default: str = "") -> str:
        ...


class MapProperties:
    """Dict-backed properties.

    Nested mappings are flattened with dots, and booleans are stored
    as ``"true"`` / ``"false"``::

        props = MapProperties({"application": {"name": "billing", "eventMode": "off"}})
        props.get("application.name")        # 'billing'
        props.get("inject.disable", "false") # 'false'
    """

    def __init__(self, values: Optional[Mapping[str, Any]] = None):
        self._values: Dict[str, str] = {}
        if values:
            self._flatten("", values)

    def _flatten(self, prefix: str, values: Mapping[str, Any]) -> None:
        for key, value in values.items():
            full_key = f"{prefix}.{key}" if prefix else str(key)
            if isinstance(value, Mapping):
                self._flatten(full_key, value)
            else:
                self.set(full_key, value)

    def set(self, key: str, value: Any) -> None:
        if isinstance(value, bool):
            value = "true" if value else "false"
        self._values[key] = str(value)

    def get(self, key: str, default: str = "") -> str:
        return self._values.get(key, default)

    def __contains__(self, key: object) -> bool:
        return key in self._values

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)
