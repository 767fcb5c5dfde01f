from __future__ import annotations

from collections.abc import Sequence
from typing import Any


class DIBindError(Exception):
    """Represent a base class for all dibind-specific failures.

    Catch this type when you want to handle any dibind error path without
    matching each concrete exception class individually.
    """


class DIBindResolutionError(DIBindError):
    """Signal that an identifier could not be turned into an object.

    This is the family of failures that optional constructor parameters
    recover from: when a class-typed parameter declares a default and its
    dependency raises one of these, the default is injected instead.
    """


class DIBindUnresolvableDependencyError(DIBindResolutionError):
    """Signal a parameter with no override, no binding and no default.

    Raised by ``Container.build`` for constructor parameters and by
    ``Container.call`` for callable parameters.

    Typical fixes include passing the value explicitly in ``parameters``,
    declaring a default, or registering a primitive contextual binding with
    ``container.when(Owner).needs("$name").give(value)``.
    """

    def __init__(self, parameter: str, owner: Any) -> None:
        self.parameter = parameter
        self.owner = owner
        super().__init__(
            f"Unresolvable dependency resolving [{parameter}] in {_describe(owner)}.",
        )


class DIBindNotInstantiableError(DIBindResolutionError):
    """Signal that the concrete selected for an identifier cannot be constructed.

    Raised for abstract base classes, protocols and unbound string identifiers.
    ``build_stack`` holds the chain of types that were under construction when
    the failure happened, outermost first.
    """

    def __init__(self, concrete: Any, build_stack: Sequence[Any] = ()) -> None:
        self.concrete = concrete
        self.build_stack = tuple(build_stack)
        if self.build_stack:
            previous = ", ".join(_describe(item) for item in self.build_stack)
            msg = f"Target [{_describe(concrete)}] is not instantiable while building [{previous}]."
        else:
            msg = f"Target [{_describe(concrete)}] is not instantiable."
        super().__init__(msg)


class DIBindSelfReferentialAliasError(DIBindError):
    """Signal an alias chain that leads back to its own start.

    This is a registration bug and is never recovered automatically.
    """

    def __init__(self, abstract: Any) -> None:
        self.abstract = abstract
        super().__init__(f"[{_describe(abstract)}] is aliased to itself.")


class DIBindInvalidCallableReferenceError(DIBindError, ValueError):
    """Signal an ``"Owner@method"`` reference that names no method.

    Raised by ``Container.call`` when the reference has no ``@method`` part
    and no ``default_method`` was given.
    """

    def __init__(self, reference: Any) -> None:
        self.reference = reference
        super().__init__(f"Method not provided for callable reference [{reference!r}].")


def _describe(value: Any) -> str:
    if isinstance(value, type):
        return f"{value.__module__}.{value.__qualname__}"
    qualname = getattr(value, "__qualname__", None)
    if qualname is not None:
        return str(qualname)
    return str(value)
