from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from dibind.container import Container


class ContextualBindingBuilder:
    """Fluent ``when(...).needs(...).give(...)`` registration.

    Created by ``Container.when``; ``give`` writes one contextual binding per
    owner type passed to ``when``.
    """

    def __init__(self, container: Container, concretes: tuple[Any, ...]) -> None:
        self._container = container
        self._concretes = concretes
        self._needs: Any = None

    def needs(self, abstract: Any) -> ContextualBindingBuilder:
        """Select the dependency to override.

        Use a class or string identifier for typed dependencies and
        ``"$name"`` for an un-typed parameter called ``name``.
        """
        self._needs = abstract
        return self

    def give(self, implementation: Any) -> None:
        """Provide a class, identifier, factory or plain value for the dependency."""
        if self._needs is None:
            msg = "Call needs() before give() when defining a contextual binding."
            raise ValueError(msg)

        for concrete in self._concretes:
            self._container.add_contextual_binding(concrete, self._needs, implementation)

    def give_config(self, settings: Any, field: str, default: Any = None) -> None:
        """Provide the value of ``field`` read from a settings object.

        ``settings`` is resolved lazily through the container, so a
        pydantic-settings class picks up its environment at first use.
        """

        def read_setting(container: Container) -> Any:
            return getattr(container.make(settings), field, default)

        self.give(read_setting)
