from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, Literal, TypeAlias, cast

from dibind.container import Container

_RegistrationMethod: TypeAlias = Literal[
    "bind",
    "bind_if",
    "singleton",
    "singleton_if",
    "scoped",
    "scoped_if",
    "instance",
    "alias",
    "extend",
    "bind_method",
]


@dataclass(frozen=True, slots=True)
class _RegistrationOperation:
    """Container registration operation replayed by ContainerContext."""

    method_name: _RegistrationMethod
    args: tuple[Any, ...]
    kwargs: dict[str, Any] = field(default_factory=dict)

    def apply(self, container: Container) -> None:
        registration_method = cast("Callable[..., Any]", getattr(container, self.method_name))
        registration_method(*self.args, **self.kwargs)


class ContainerContext:
    """Process-wide default container with deferred registrations.

    ``get_current`` creates the default container on first use. Registrations
    made through this object before a container exists are recorded and
    replayed onto every container installed with ``set_current``.

    The default container is process-global for this ``ContainerContext``
    instance. It is not task-local or thread-local; library code should take
    a container explicitly and leave this accessor to application entry points.
    """

    def __init__(self) -> None:
        self._container: Container | None = None
        self._operations: list[_RegistrationOperation] = []

    def get_current(self) -> Container:
        """Return the default container, creating it on first access."""
        if self._container is None:
            self.set_current(Container())
        return cast("Container", self._container)

    def set_current(self, container: Container | None, *, replay: bool = True) -> Container | None:
        """Install ``container`` as the default, or clear it with ``None``.

        Args:
            container: The container to install.
            replay: Apply the recorded registrations to ``container``.

        Returns:
            The installed container.

        """
        self._container = container
        if container is not None and replay:
            for operation in self._operations:
                operation.apply(container)
        return container

    def peek(self) -> Container | None:
        """Return the default container without creating one."""
        return self._container

    def reset(self) -> None:
        """Forget the default container and every recorded registration."""
        self._container = None
        self._operations.clear()

    def _record(self, method_name: _RegistrationMethod, *args: Any, **kwargs: Any) -> None:
        operation = _RegistrationOperation(method_name=method_name, args=args, kwargs=kwargs)
        self._operations.append(operation)
        if self._container is not None:
            operation.apply(self._container)

    def bind(self, abstract: Any, concrete: Any = None, shared: bool = False) -> None:  # noqa: FBT001, FBT002
        self._record("bind", abstract, concrete, shared)

    def bind_if(self, abstract: Any, concrete: Any = None, shared: bool = False) -> None:  # noqa: FBT001, FBT002
        self._record("bind_if", abstract, concrete, shared)

    def singleton(self, abstract: Any, concrete: Any = None) -> None:
        self._record("singleton", abstract, concrete)

    def singleton_if(self, abstract: Any, concrete: Any = None) -> None:
        self._record("singleton_if", abstract, concrete)

    def scoped(self, abstract: Any, concrete: Any = None) -> None:
        self._record("scoped", abstract, concrete)

    def scoped_if(self, abstract: Any, concrete: Any = None) -> None:
        self._record("scoped_if", abstract, concrete)

    def instance(self, abstract: Any, instance: Any) -> Any:
        self._record("instance", abstract, instance)
        return instance

    def alias(self, abstract: Any, alias: Any) -> None:
        self._record("alias", abstract, alias)

    def extend(self, abstract: Any, extender: Callable[[Any, Container], Any]) -> None:
        self._record("extend", abstract, extender)

    def bind_method(self, method: Any, callback: Callable[[Any, Container], Any]) -> None:
        self._record("bind_method", method, callback)

    def make(self, abstract: Any, parameters: Mapping[Any, Any] | None = None) -> Any:
        """Resolve through the default container."""
        return self.get_current().make(abstract, parameters)

    def call(
        self,
        callback: Any,
        parameters: Mapping[Any, Any] | None = None,
        default_method: str | None = None,
    ) -> Any:
        """Invoke through the default container."""
        return self.get_current().call(callback, parameters, default_method)


container_context = ContainerContext()
"""The process-wide default container accessor."""


def get_instance() -> Container:
    """Return the process default container, creating it on first access."""
    return container_context.get_current()


def set_instance(container: Container | None) -> Container | None:
    """Replace the process default container; ``None`` clears it."""
    return container_context.set_current(container)
