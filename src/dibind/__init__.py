"""Dependency-resolution runtime.

Register construction strategies on a ``Container`` and resolve fully wired
object graphs from them.

Exports:
- ``Container``: binding registry, recursive resolver and call invoker.
- ``ContainerContext`` / ``container_context``: process-wide default container.
- ``get_instance`` / ``set_instance``: shortcuts for the default container.
- ``Inject``: ``Annotated`` metadata wiring a parameter to an identifier.
- ``PrimitiveKey``: contextual binding key for un-typed parameters.
"""

from dibind.container import Container
from dibind.container_context import (
    ContainerContext,
    container_context,
    get_instance,
    set_instance,
)
from dibind.exceptions import (
    DIBindError,
    DIBindInvalidCallableReferenceError,
    DIBindNotInstantiableError,
    DIBindResolutionError,
    DIBindSelfReferentialAliasError,
    DIBindUnresolvableDependencyError,
)
from dibind.markers import Inject
from dibind.providers import Binding, Concrete, ConcreteKind, PrimitiveKey

__all__ = [
    "Binding",
    "Concrete",
    "ConcreteKind",
    "Container",
    "ContainerContext",
    "DIBindError",
    "DIBindInvalidCallableReferenceError",
    "DIBindNotInstantiableError",
    "DIBindResolutionError",
    "DIBindSelfReferentialAliasError",
    "DIBindUnresolvableDependencyError",
    "Inject",
    "PrimitiveKey",
    "container_context",
    "get_instance",
    "set_instance",
]
