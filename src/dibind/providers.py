from __future__ import annotations

import inspect
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum, auto
from typing import Any, TypeAlias

Abstract: TypeAlias = Any
"""An identifier a dependency is registered or requested under: a class or a string key."""

FactoryProvider: TypeAlias = Callable[..., Any]
"""A user function producing a dependency, called with ``(container, parameters)``."""


class ConcreteKind(Enum):
    """Tag of a ``Concrete`` variant; the resolver dispatches on it."""

    CLASS = auto()
    """Build the class by constructor injection."""

    FACTORY = auto()
    """Call the user factory and use its return value."""

    REFERENCE = auto()
    """Resolve another identifier through ``make`` (binding chains)."""

    VALUE = auto()
    """Hand back an opaque value as-is."""


@dataclass(frozen=True, slots=True)
class Concrete:
    """What an identifier resolves to."""

    kind: ConcreteKind
    value: Any

    @classmethod
    def from_user(cls, abstract: Abstract, value: Any) -> Concrete:
        """Classify a user supplied concrete for ``abstract``.

        ``None`` or the abstract itself self-binds, classes and string keys
        chain through ``make``, any other callable is a factory and everything
        else is kept as a plain value.
        """
        if value is None or value is abstract:
            return cls(ConcreteKind.CLASS, abstract)
        if isinstance(value, (type, str)):
            if value == abstract:
                return cls(ConcreteKind.CLASS, abstract)
            return cls(ConcreteKind.REFERENCE, value)
        if callable(value):
            return cls(ConcreteKind.FACTORY, value)
        return cls(ConcreteKind.VALUE, value)

    @classmethod
    def for_primitive(cls, value: Any) -> Concrete:
        """Classify a value given to an un-typed parameter.

        Only plain functions are treated as factories, so a class given to a
        primitive parameter is injected as the class object itself.
        """
        if callable(value) and not inspect.isclass(value):
            return cls(ConcreteKind.FACTORY, value)
        return cls(ConcreteKind.VALUE, value)

    @property
    def is_factory(self) -> bool:
        return self.kind is ConcreteKind.FACTORY


@dataclass(frozen=True, slots=True)
class Binding:
    """A registered construction strategy for one abstract identifier."""

    concrete: Concrete
    """The tagged construction strategy."""

    shared: bool = False
    """Cache the first resolved object and return it on later resolutions."""


@dataclass(frozen=True, slots=True)
class PrimitiveKey:
    """Contextual binding key for an un-typed constructor parameter.

    Keeps primitive parameter bindings in their own namespace, apart from
    class and string identifiers. ``needs("$port")`` is shorthand for
    ``needs(PrimitiveKey("port"))``.
    """

    name: str

    @classmethod
    def parse(cls, value: Any) -> Any:
        """Convert the ``"$name"`` shorthand, leaving other keys untouched."""
        if isinstance(value, str) and value.startswith("$") and len(value) > 1:
            return cls(value[1:])
        return value

    def __str__(self) -> str:
        return f"${self.name}"


def invoke_factory(factory: FactoryProvider, *args: Any) -> Any:
    """Call ``factory`` with as many leading ``args`` as it accepts.

    Factories are called with ``(container, parameters)``; lambdas that only
    care about the container, or about nothing, are equally valid.
    """
    try:
        signature = inspect.signature(factory)
    except (TypeError, ValueError):
        return factory(*args)

    accepted = 0
    for parameter in signature.parameters.values():
        if parameter.kind is parameter.VAR_POSITIONAL:
            return factory(*args)
        if parameter.kind in (parameter.POSITIONAL_ONLY, parameter.POSITIONAL_OR_KEYWORD):
            accepted += 1
    return factory(*args[:accepted])
