"""
InjectDescriptor

This module provides the class attribute that marks a field for injection.
The field type comes from the class annotation:

    class OrderService:
        repository: OrderRepository = inject()
        cache: Cache = inject("redisCache,omiterror")

When the context starts, the injector resolves every marked field and
stores the value on the instance. Until then the field reads as None.
"""

from typing import Any, Optional, Type


class InjectDescriptor:
    """
    Marker descriptor for an injected field.

    This is a non-data descriptor: once the injector stores a value in the
    instance ``__dict__``, normal attribute lookup returns it and the
    descriptor is no longer consulted.

    Attributes:
        expr: Lookup expression ``"name[,policy]*"``
        bean_type: Explicit field type, overriding the class annotation
        attr_name: Attribute name, set when the owning class is created
    """

    def __init__(self, expr: str = "", bean_type: Optional[Any] = None):
        """
        Initialize the inject descriptor.

        Args:
            expr: Lookup expression; empty means auto-wire by type, required
            bean_type: Field type when the class has no annotation for it
        """
        self.expr = expr
        self.bean_type = bean_type
        self.attr_name: Optional[str] = None
        self.owner: Optional[Type] = None

    def __set_name__(self, owner: Type, name: str) -> None:
        """
        Called when descriptor is assigned to a class attribute.

        Args:
            owner: The class that owns this descriptor
            name: The attribute name this descriptor is assigned to
        """
        self.owner = owner
        self.attr_name = name

    def __get__(self, obj: Optional[object], objtype: Optional[Type] = None) -> Any:
        if obj is None:
            # Class-level access: MyClass.attribute
            return self
        # Not injected yet
        return None

    def __repr__(self) -> str:
        return f"InjectDescriptor[{self.attr_name}: {self.expr!r}]"


def inject(expr: str = "", bean_type: Optional[Any] = None) -> Any:
    """Declare an injected field.

    Args:
        expr: ``"name[,policy]*"``. The name is looked up first; when it is
            empty or not found the field is auto-wired by type. Policies are
            ``required`` (default) and ``omiterror``.
        bean_type: Field type, for classes without annotations

    Example::

        class ReportJob:
            source: DataSource = inject()
            sinks: list[Sink] = inject()
            audit: AuditLog = inject("auditLog,omiterror")
    """
    return InjectDescriptor(expr, bean_type)
