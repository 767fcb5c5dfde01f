from __future__ import annotations

import inspect
import logging
from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING, Any

from dibind.dependencies import ParametersExtractor, ParameterSpec
from dibind.exceptions import (
    DIBindInvalidCallableReferenceError,
    DIBindUnresolvableDependencyError,
)

if TYPE_CHECKING:
    from dibind.container import Container

logger = logging.getLogger(__name__)

METHOD_SEPARATOR = "@"
DEFAULT_CALL_METHOD = "__call__"


def owner_name(owner: Any) -> str:
    """Return the name used in method binding keys for a class, instance or identifier."""
    if isinstance(owner, str):
        return owner
    cls = owner if inspect.isclass(owner) else type(owner)
    return f"{cls.__module__}.{cls.__qualname__}"


def normalize_method_key(method: Any) -> str:
    """Normalize ``"Owner@method"`` or ``(owner, "method")`` into ``"Owner@method"``."""
    if isinstance(method, str):
        return method
    owner, method_name = method
    return f"{owner_name(owner)}{METHOD_SEPARATOR}{method_name}"


class CallInvoker:
    """Invoke callables with their parameters supplied by a container.

    Each parameter, in declaration order, is taken from the explicit
    ``parameters`` by name, by dependency type or by that type's name, else
    resolved through the container when it names a dependency, else filled
    with its default. A class is built through the container before one of
    its instance methods is called.
    """

    def __init__(self, container: Container, parameters_extractor: ParametersExtractor) -> None:
        self._container = container
        self._parameters_extractor = parameters_extractor

    def call(
        self,
        callback: Any,
        parameters: Mapping[Any, Any] | None = None,
        default_method: str | None = None,
    ) -> Any:
        parameters = dict(parameters or {})

        if isinstance(callback, str):
            return self._call_reference(callback, parameters, default_method)

        if isinstance(callback, tuple):
            owner, method = callback
            if isinstance(owner, str) or (
                inspect.isclass(owner) and not _is_class_level(owner, method)
            ):
                owner = self._container.make(owner)
            return self._call_method(owner, method, parameters)

        if inspect.isclass(callback):
            method = default_method
            if method is None and _instances_are_callable(callback):
                method = DEFAULT_CALL_METHOD
            if method is not None:
                owner = callback
                if not _is_class_level(callback, method):
                    owner = self._container.make(callback)
                return self._call_method(owner, method, parameters)

        if default_method is not None and not inspect.isroutine(callback):
            return self._call_method(callback, default_method, parameters)

        if inspect.ismethod(callback):
            return self._call_method(callback.__self__, callback.__name__, parameters)

        return self._invoke(callback, parameters)

    def method_dependencies(
        self,
        callback: Callable[..., Any],
        parameters: Mapping[Any, Any] | None = None,
    ) -> tuple[list[Any], dict[str, Any]]:
        """Build the positional and keyword arguments for ``callback``.

        Explicit values matched to a parameter are consumed; whatever is left
        is passed on through ``*args`` (in its original order) or, for string
        keys, through ``**kwargs`` when the callable accepts them.
        """
        pool = dict(parameters or {})
        specs = self._parameters_extractor.from_callable(callback)
        args: list[Any] = []
        kwargs: dict[str, Any] = {}

        for spec in specs:
            if spec.is_var_keyword:
                continue
            self._add_dependency_for_call_parameter(callback, spec, pool, args, kwargs)

        accepts_args = any(spec.is_variadic for spec in specs)
        accepts_kwargs = any(spec.is_var_keyword for spec in specs)
        for key, value in pool.items():
            if isinstance(key, str) and accepts_kwargs:
                kwargs[key] = value
            elif accepts_args:
                args.append(value)
            else:
                logger.debug("Dropping unused parameter %r for %r", key, callback)

        return args, kwargs

    def _add_dependency_for_call_parameter(
        self,
        callback: Callable[..., Any],
        spec: ParameterSpec,
        pool: dict[Any, Any],
        args: list[Any],
        kwargs: dict[str, Any],
    ) -> None:
        if spec.name in pool:
            _place(spec, pool.pop(spec.name), args, kwargs)
            return

        if spec.dependency is not None:
            for key in _dependency_keys(spec.dependency):
                if _in_pool(key, pool):
                    _place(spec, pool.pop(key), args, kwargs)
                    return

            _place(spec, self._container.make(spec.dependency), args, kwargs)
            return

        if spec.has_default:
            _place(spec, spec.default, args, kwargs)
            return

        if spec.is_variadic:
            return

        raise DIBindUnresolvableDependencyError(spec.name, callback)

    def _call_reference(
        self,
        target: str,
        parameters: dict[Any, Any],
        default_method: str | None,
    ) -> Any:
        owner, _, method = target.partition(METHOD_SEPARATOR)
        has_separator = METHOD_SEPARATOR in target
        if not method:
            method = default_method or ("" if has_separator else DEFAULT_CALL_METHOD)
        if not method:
            raise DIBindInvalidCallableReferenceError(target)

        instance = self._container.make(owner)
        if method == DEFAULT_CALL_METHOD and not callable(instance):
            raise DIBindInvalidCallableReferenceError(target)
        return self._call_method(instance, method, parameters, reference_owner=owner)

    def _call_method(
        self,
        owner: Any,
        method: str,
        parameters: dict[Any, Any],
        reference_owner: str | None = None,
    ) -> Any:
        for key in self._method_binding_keys(owner, method, reference_owner):
            if self._container.has_method_binding(key):
                return self._container.call_method_binding(key, owner)

        return self._invoke(getattr(owner, method), parameters)

    def _method_binding_keys(
        self,
        owner: Any,
        method: str,
        reference_owner: str | None,
    ) -> list[str]:
        keys = [normalize_method_key((owner, method))]
        cls = owner if inspect.isclass(owner) else type(owner)
        keys.append(f"{cls.__qualname__}{METHOD_SEPARATOR}{method}")
        if reference_owner is not None:
            keys.append(f"{reference_owner}{METHOD_SEPARATOR}{method}")
        return keys

    def _invoke(self, callback: Callable[..., Any], parameters: dict[Any, Any]) -> Any:
        args, kwargs = self.method_dependencies(callback, parameters)
        return callback(*args, **kwargs)


def _place(spec: ParameterSpec, value: Any, args: list[Any], kwargs: dict[str, Any]) -> None:
    if spec.is_variadic:
        # A variadic dependency may resolve to a sequence that is spread.
        args.extend(value if isinstance(value, (list, tuple)) else [value])
    elif spec.is_keyword_only:
        kwargs[spec.name] = value
    else:
        args.append(value)


def _in_pool(key: Any, pool: dict[Any, Any]) -> bool:
    try:
        return key in pool
    except TypeError:
        return False


def _dependency_keys(dependency: Any) -> list[Any]:
    """Keys a supplied value may use for ``dependency``: itself, then its type names."""
    if not inspect.isclass(dependency):
        return [dependency]
    return [
        dependency,
        f"{dependency.__module__}.{dependency.__qualname__}",
        dependency.__name__,
    ]


def _instances_are_callable(cls: type[Any]) -> bool:
    return any(DEFAULT_CALL_METHOD in vars(base) for base in cls.__mro__ if base is not object)


def _is_class_level(owner: type[Any], method: str) -> bool:
    attribute = inspect.getattr_static(owner, method, None)
    return isinstance(attribute, (staticmethod, classmethod))
