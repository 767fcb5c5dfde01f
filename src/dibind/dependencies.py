from __future__ import annotations

import inspect
import logging
import types
import weakref
from collections.abc import Callable
from dataclasses import dataclass
from typing import Annotated, Any, Union, get_args, get_origin, get_type_hints

from dibind.markers import Inject
from dibind.providers import PrimitiveKey

logger = logging.getLogger(__name__)

MIN_ANNOTATED_ARGS = 2

PRIMITIVE_TYPES: frozenset[type[Any]] = frozenset(
    {
        int,
        str,
        float,
        bool,
        bytes,
        complex,
        list,
        dict,
        set,
        frozenset,
        tuple,
        object,
        type,
    },
)
"""Annotations that never name a dependency; parameters typed with them take the primitive path."""


@dataclass(frozen=True, slots=True)
class ParameterSpec:
    """Explicit metadata of one constructor or callable parameter."""

    name: str
    """The parameter name, used for explicit overrides."""

    dependency: Any | None
    """The identifier to resolve through the container, or ``None`` for primitives."""

    has_default: bool
    """True when the parameter declares a default value."""

    default: Any
    """The declared default, ``inspect.Parameter.empty`` when there is none."""

    is_variadic: bool
    """True for ``*args`` parameters."""

    kind: inspect._ParameterKind
    """How the argument has to be passed."""

    @property
    def is_optional(self) -> bool:
        """Whether the call can go ahead without a value for this parameter."""
        return self.has_default or self.is_variadic

    @property
    def is_keyword_only(self) -> bool:
        return self.kind is inspect.Parameter.KEYWORD_ONLY

    @property
    def is_var_keyword(self) -> bool:
        return self.kind is inspect.Parameter.VAR_KEYWORD

    @property
    def primitive_key(self) -> PrimitiveKey:
        """Contextual binding key of this parameter when it has no dependency."""
        return PrimitiveKey(self.name)


class ParametersExtractor:
    """Extract and cache parameter metadata from classes and callables.

    Caches are keyed weakly. Bound methods and callable objects share one
    entry per underlying ``def``, so receivers are never kept alive.
    """

    def __init__(self) -> None:
        self._cache: weakref.WeakKeyDictionary[Any, tuple[ParameterSpec, ...]] = (
            weakref.WeakKeyDictionary()
        )
        self._function_cache: weakref.WeakKeyDictionary[Any, tuple[ParameterSpec, ...]] = (
            weakref.WeakKeyDictionary()
        )
        # Receiver already bound: ``self`` is not part of these signatures.
        self._method_cache: weakref.WeakKeyDictionary[Any, tuple[ParameterSpec, ...]] = (
            weakref.WeakKeyDictionary()
        )

    def from_class(self, cls: type[Any]) -> tuple[ParameterSpec, ...]:
        """Get the constructor parameters of ``cls`` without ``self``."""
        cached = _cache_get(self._cache, cls)
        if cached is not None:
            return cached

        if cls.__init__ is object.__init__ and cls.__new__ is object.__new__:
            result: tuple[ParameterSpec, ...] = ()
        else:
            try:
                signature = inspect.signature(cls)
            except (TypeError, ValueError):
                signature = inspect.Signature()
            hints_source = cls.__init__ if cls.__init__ is not object.__init__ else cls.__new__
            result = self._build(signature, self._type_hints(hints_source))

        _cache_set(self._cache, cls, result)
        return result

    def from_callable(self, callable_obj: Callable[..., Any]) -> tuple[ParameterSpec, ...]:
        """Get the parameters of a function, bound method or callable object."""
        if inspect.isclass(callable_obj):
            return self.from_class(callable_obj)

        cache, key = self._cache_slot(callable_obj)
        cached = _cache_get(cache, key)
        if cached is not None:
            return cached

        signature = inspect.signature(callable_obj)
        hints_source = callable_obj
        if not inspect.isroutine(callable_obj):
            hints_source = type(callable_obj).__call__
        result = self._build(signature, self._type_hints(hints_source))

        _cache_set(cache, key, result)
        return result

    def _cache_slot(
        self,
        callable_obj: Callable[..., Any],
    ) -> tuple[weakref.WeakKeyDictionary[Any, tuple[ParameterSpec, ...]], Any]:
        if inspect.ismethod(callable_obj):
            return self._method_cache, callable_obj.__func__
        if not inspect.isroutine(callable_obj):
            call = inspect.getattr_static(type(callable_obj), "__call__", None)
            if inspect.isfunction(call):
                return self._method_cache, call
        return self._function_cache, callable_obj

    def _build(
        self,
        signature: inspect.Signature,
        hints: dict[str, Any],
    ) -> tuple[ParameterSpec, ...]:
        specs: list[ParameterSpec] = []
        for parameter in signature.parameters.values():
            annotation = hints.get(parameter.name, parameter.annotation)
            specs.append(
                ParameterSpec(
                    name=parameter.name,
                    dependency=dependency_from_annotation(annotation),
                    has_default=parameter.default is not inspect.Parameter.empty,
                    default=parameter.default,
                    is_variadic=parameter.kind is inspect.Parameter.VAR_POSITIONAL,
                    kind=parameter.kind,
                ),
            )
        return tuple(specs)

    def _type_hints(self, target: Any) -> dict[str, Any]:
        try:
            return get_type_hints(target, include_extras=True)
        except (NameError, TypeError, AttributeError) as exc:
            logger.warning(
                "Could not evaluate annotations of %r (%s); using raw annotations",
                target,
                exc,
            )
            return {}


def dependency_from_annotation(annotation: Any) -> Any | None:
    """Map a parameter annotation to the identifier it depends on.

    ``Annotated[T, Inject(key)]`` depends on ``key``; other ``Annotated``
    metadata is ignored. ``T | None`` depends on ``T``. Unions of several
    types, generic aliases, unevaluated string annotations and builtin scalar
    or container types depend on nothing.
    """
    if annotation is inspect.Parameter.empty or annotation is Any:
        return None
    if isinstance(annotation, str):
        return None

    if get_origin(annotation) is Annotated:
        args = get_args(annotation)
        for metadata in args[1:]:
            if isinstance(metadata, Inject):
                return metadata.key
        if len(args) < MIN_ANNOTATED_ARGS:
            return None  # pragma: no cover - Annotated requires at least 2 args
        return dependency_from_annotation(args[0])

    if get_origin(annotation) in (Union, types.UnionType):
        members = [arg for arg in get_args(annotation) if arg is not type(None)]
        if len(members) != 1:
            return None
        return dependency_from_annotation(members[0])

    if get_origin(annotation) is not None:
        return None
    if not isinstance(annotation, type) or annotation in PRIMITIVE_TYPES:
        return None
    return annotation


def _cache_get(
    cache: weakref.WeakKeyDictionary[Any, tuple[ParameterSpec, ...]],
    key: Any,
) -> tuple[ParameterSpec, ...] | None:
    try:
        return cache.get(key)
    except TypeError:
        # Not weak-referenceable or not hashable.
        return None


def _cache_set(
    cache: weakref.WeakKeyDictionary[Any, tuple[ParameterSpec, ...]],
    key: Any,
    value: tuple[ParameterSpec, ...],
) -> None:
    try:
        cache[key] = value
    except TypeError:
        logger.debug("Parameters of %r are not cached", key)
