from __future__ import annotations

import inspect
import logging
import pkgutil
from collections.abc import Callable, Iterator, Mapping
from contextlib import contextmanager
from types import MappingProxyType
from typing import Any, TypeVar, overload

from typing_extensions import is_protocol

from dibind.capabilities import class_capabilities, satisfies
from dibind.contextual import ContextualBindingBuilder
from dibind.dependencies import ParametersExtractor, ParameterSpec
from dibind.exceptions import (
    DIBindNotInstantiableError,
    DIBindResolutionError,
    DIBindSelfReferentialAliasError,
    DIBindUnresolvableDependencyError,
)
from dibind.injection import CallInvoker, normalize_method_key
from dibind.integrations.pydantic_settings import (
    build_settings,
    is_pydantic_settings_subclass,
)
from dibind.providers import (
    Abstract,
    Binding,
    Concrete,
    ConcreteKind,
    PrimitiveKey,
    invoke_factory,
)
from dibind.resolution_stack import BuildStack, ParameterOverrideStack

logger = logging.getLogger(__name__)

T = TypeVar("T")

BeforeResolvingCallback = Callable[[Abstract, Mapping[Any, Any], "Container"], Any]
ResolvingCallback = Callable[[Any, "Container"], Any]
ReboundCallback = Callable[["Container", Any], Any]
Extender = Callable[[Any, "Container"], Any]
MethodBindingCallback = Callable[[Any, "Container"], Any]


class Container:
    """Binding registry and recursive resolver.

    Register construction strategies with ``bind``/``singleton``/``scoped``/
    ``instance`` and resolve object graphs with ``make``. Classes that were
    never registered are built by constructor injection from their
    annotations. ``call`` invokes any callable with its parameters resolved
    from the container.

    A container is not safe for concurrent resolution: the build stack and the
    parameter-override stack are mutated around each resolution. Use one
    container per thread of control or serialise access externally.

    Args:
        autowire: Build unregistered classes implicitly. When ``False`` only
            registered identifiers resolve.

    """

    def __init__(self, *, autowire: bool = True) -> None:
        self._autowire = autowire

        self._bindings: dict[Abstract, Binding] = {}
        self._instances: dict[Abstract, Any] = {}
        self._aliases: dict[Abstract, Abstract] = {}
        self._abstract_aliases: dict[Abstract, list[Abstract]] = {}
        self._resolved: set[Abstract] = set()
        self._scoped_instances: list[Abstract] = []

        self._contextual: dict[Abstract, dict[Abstract, Concrete]] = {}
        self._extenders: dict[Abstract, list[Extender]] = {}
        self._rebound_callbacks: dict[Abstract, list[ReboundCallback]] = {}

        self._global_before_resolving_callbacks: list[BeforeResolvingCallback] = []
        self._global_resolving_callbacks: list[ResolvingCallback] = []
        self._global_after_resolving_callbacks: list[ResolvingCallback] = []
        self._before_resolving_callbacks: dict[Abstract, list[BeforeResolvingCallback]] = {}
        self._resolving_callbacks: dict[Abstract, list[ResolvingCallback]] = {}
        self._after_resolving_callbacks: dict[Abstract, list[ResolvingCallback]] = {}

        self._method_bindings: dict[str, MethodBindingCallback] = {}

        self._build_stack = BuildStack()
        self._with = ParameterOverrideStack()
        self._parameters_extractor = ParametersExtractor()
        self._invoker = CallInvoker(self, self._parameters_extractor)

    # Registration

    def bind(self, abstract: Abstract, concrete: Any = None, shared: bool = False) -> None:  # noqa: FBT001, FBT002
        """Register a construction strategy for ``abstract``.

        Args:
            abstract: The identifier to register, a class or a string key.
            concrete: ``None`` to build ``abstract`` itself, a class or an
                identifier to resolve instead, or a factory called with
                ``(container, parameters)``.
            shared: Cache the first resolved object and reuse it.

        Any cached instance or alias under ``abstract`` is dropped. When
        ``abstract`` was already resolved, the rebound listeners fire with a
        freshly resolved object.

        """
        self._drop_stale_instances(abstract)
        self._bindings[abstract] = Binding(
            concrete=Concrete.from_user(abstract, concrete),
            shared=shared,
        )
        logger.debug("Bound %r (shared=%s)", abstract, shared)

        if self.resolved(abstract):
            self._rebound(abstract)

    def bind_if(self, abstract: Abstract, concrete: Any = None, shared: bool = False) -> None:  # noqa: FBT001, FBT002
        """Register a binding unless ``abstract`` is already bound."""
        if not self.bound(abstract):
            self.bind(abstract, concrete, shared)

    def singleton(self, abstract: Abstract, concrete: Any = None) -> None:
        """Register a shared binding."""
        self.bind(abstract, concrete, shared=True)

    def singleton_if(self, abstract: Abstract, concrete: Any = None) -> None:
        """Register a shared binding unless ``abstract`` is already bound."""
        if not self.bound(abstract):
            self.singleton(abstract, concrete)

    def scoped(self, abstract: Abstract, concrete: Any = None) -> None:
        """Register a shared binding dropped at every scope boundary.

        See ``scope`` and ``forget_scoped_instances``.
        """
        if abstract not in self._scoped_instances:
            self._scoped_instances.append(abstract)
        self.singleton(abstract, concrete)

    def scoped_if(self, abstract: Abstract, concrete: Any = None) -> None:
        """Register a scoped binding unless ``abstract`` is already bound."""
        if not self.bound(abstract):
            self.scoped(abstract, concrete)

    def instance(self, abstract: Abstract, instance: T) -> T:
        """Register a pre-built object as the shared instance of ``abstract``.

        Returns:
            The registered instance.

        """
        self._remove_abstract_alias(abstract)
        is_bound = self.bound(abstract)
        self._aliases.pop(abstract, None)

        self._instances[abstract] = instance
        logger.debug("Registered instance for %r", abstract)

        if is_bound:
            self._rebound(abstract)
        return instance

    def alias(self, abstract: Abstract, alias: Abstract) -> None:
        """Make ``alias`` resolve exactly like ``abstract``."""
        if alias == abstract:
            raise DIBindSelfReferentialAliasError(abstract)

        self._aliases[alias] = abstract
        self._abstract_aliases.setdefault(abstract, []).append(alias)
        logger.debug("Aliased %r to %r", alias, abstract)

    def extend(self, abstract: Abstract, extender: Extender) -> None:
        """Decorate ``abstract`` with ``extender(obj, container)``.

        The return value of the extender replaces the object. A shared
        instance that already exists is decorated immediately; otherwise the
        extender runs after every future build of ``abstract``.
        """
        abstract = self.get_alias(abstract)

        if abstract in self._instances:
            self._instances[abstract] = extender(self._instances[abstract], self)
            self._rebound(abstract)
            return

        self._extenders.setdefault(abstract, []).append(extender)
        if self.resolved(abstract):
            self._rebound(abstract)

    def rebinding(self, abstract: Abstract, callback: ReboundCallback) -> Any | None:
        """Listen for ``abstract`` being rebound.

        ``callback(container, instance)`` receives the newly resolved object
        every time ``abstract`` is re-registered after it has been resolved.

        Returns:
            The current object when ``abstract`` is bound, else ``None``.

        """
        abstract = self.get_alias(abstract)
        self._rebound_callbacks.setdefault(abstract, []).append(callback)

        if self.bound(abstract):
            return self.make(abstract)
        return None

    def when(self, *concretes: Abstract) -> ContextualBindingBuilder:
        """Start a contextual binding for the given owner types.

        Examples:
            .. code-block:: python

                container.when(ReportService).needs(Storage).give(S3Storage)
                container.when(ReportService).needs("$bucket").give("reports")

        """
        return ContextualBindingBuilder(
            self,
            tuple(self._locate(self.get_alias(concrete)) for concrete in concretes),
        )

    def add_contextual_binding(
        self,
        concrete: Abstract,
        abstract: Abstract,
        implementation: Any,
    ) -> None:
        """Give ``implementation`` for ``abstract`` while building ``concrete``.

        ``abstract`` may be a ``PrimitiveKey`` (or its ``"$name"`` shorthand)
        to target an un-typed constructor parameter by name.
        """
        needed = PrimitiveKey.parse(abstract)
        if isinstance(needed, PrimitiveKey):
            binding = Concrete.for_primitive(implementation)
        else:
            needed = self.get_alias(needed)
            binding = Concrete.from_user(needed, implementation)

        self._contextual.setdefault(concrete, {})[needed] = binding

    def bind_method(self, method: Any, callback: MethodBindingCallback) -> None:
        """Override how ``call`` dispatches one owner method.

        Args:
            method: ``"Owner@method"`` or an ``(owner, "method")`` pair.
            callback: Called with ``(owner_instance, container)`` instead of
                the method itself.

        """
        self._method_bindings[normalize_method_key(method)] = callback

    def has_method_binding(self, method: str) -> bool:
        return method in self._method_bindings

    def call_method_binding(self, method: str, instance: Any) -> Any:
        return self._method_bindings[method](instance, self)

    # Resolution

    @overload
    def make(self, abstract: type[T], parameters: Mapping[Any, Any] | None = None) -> T: ...

    @overload
    def make(self, abstract: Any, parameters: Mapping[Any, Any] | None = None) -> Any: ...

    def make(self, abstract: Any, parameters: Mapping[Any, Any] | None = None) -> Any:
        """Resolve ``abstract`` into a fully constructed object.

        Args:
            abstract: The identifier to resolve.
            parameters: Explicit constructor arguments by parameter name.
                Supplying any forces a fresh build even for shared bindings.

        Raises:
            DIBindNotInstantiableError: The selected concrete cannot be built.
            DIBindUnresolvableDependencyError: A required parameter has no value.
            DIBindSelfReferentialAliasError: The alias chain loops.

        """
        return self._resolve(abstract, dict(parameters) if parameters else {})

    def resolve(self, abstract: Any, parameters: Mapping[Any, Any] | None = None) -> Any:
        """Alias of ``make``."""
        return self.make(abstract, parameters)

    def factory(self, abstract: Any) -> Callable[[], Any]:
        """Return a function that resolves ``abstract`` when called."""
        return lambda: self.make(abstract)

    def call(
        self,
        callback: Any,
        parameters: Mapping[Any, Any] | None = None,
        default_method: str | None = None,
    ) -> Any:
        """Invoke ``callback`` with its parameters resolved from the container.

        Args:
            callback: A callable, an ``"Owner@method"`` string, an
                ``(owner, "method")`` pair, or an owner object combined with
                ``default_method``.
            parameters: Values by parameter name or by dependency type; they
                take precedence over container resolution.
            default_method: Method to call when ``callback`` names no method.

        """
        return self._invoker.call(callback, parameters, default_method)

    def wrap(self, callback: Any, parameters: Mapping[Any, Any] | None = None) -> Callable[[], Any]:
        """Return a function that calls ``callback`` through ``call``."""
        return lambda: self.call(callback, parameters)

    def build(self, concrete: Any) -> Any:
        """Instantiate ``concrete`` by constructor injection.

        Factories are invoked with ``(container, parameters)`` where
        ``parameters`` are the explicit overrides of the enclosing ``make``.
        Classes have each constructor parameter resolved in declaration order.

        Raises:
            DIBindNotInstantiableError: ``concrete`` is abstract, a protocol
                or not a class.

        """
        if not isinstance(concrete, Concrete):
            concrete = self._as_buildable(concrete)

        if concrete.kind is ConcreteKind.FACTORY:
            return invoke_factory(concrete.value, self, self._with.current)
        if concrete.kind is ConcreteKind.VALUE:
            return concrete.value

        target = self._locate(concrete.value)
        if not self._is_instantiable(target):
            raise DIBindNotInstantiableError(concrete.value, self._build_stack.snapshot())

        if is_pydantic_settings_subclass(target):
            return build_settings(target, self._with.current)

        with self._build_stack.building(target):
            specs = self._parameters_extractor.from_class(target)
            if not specs:
                args: list[Any] = []
                kwargs: dict[str, Any] = {}
            else:
                args, kwargs = self._resolve_dependencies(target, specs)

        return target(*args, **kwargs)

    def _resolve(self, abstract: Any, parameters: dict[Any, Any]) -> Any:
        abstract = self.get_alias(abstract)

        contextual = self._get_contextual_concrete(abstract)
        needs_contextual_build = bool(parameters) or contextual is not None

        # Shared instances short-circuit unless the caller asked for a
        # different object through explicit or contextual overrides.
        if abstract in self._instances and not needs_contextual_build:
            return self._instances[abstract]

        self._fire_before_resolving_callbacks(abstract, parameters)

        with self._with.pushed(parameters):
            concrete = contextual if contextual is not None else self._get_concrete(abstract)

            if concrete.kind is ConcreteKind.REFERENCE:
                obj = self._resolve(concrete.value, parameters)
            else:
                obj = self.build(concrete)

            for extender in self._get_extenders(abstract):
                obj = extender(obj, self)

            if self.is_shared(abstract) and not needs_contextual_build:
                self._instances[abstract] = obj

            self._fire_resolving_callbacks(abstract, obj)
            self._resolved.add(abstract)

        return obj

    def _resolve_dependencies(
        self,
        owner: type[Any],
        specs: tuple[ParameterSpec, ...],
    ) -> tuple[list[Any], dict[str, Any]]:
        overrides = self._with.current
        args: list[Any] = []
        kwargs: dict[str, Any] = {}

        for spec in specs:
            if spec.is_var_keyword:
                continue

            if spec.name in overrides:
                value = overrides[spec.name]
                if spec.is_variadic:
                    args.extend(value)
                elif spec.is_keyword_only:
                    kwargs[spec.name] = value
                else:
                    args.append(value)
                continue

            if spec.is_variadic:
                continue

            if spec.dependency is None:
                value = self._resolve_primitive(owner, spec)
            else:
                value = self._resolve_class(spec)

            if spec.is_keyword_only:
                kwargs[spec.name] = value
            else:
                args.append(value)

        return args, kwargs

    def _resolve_primitive(self, owner: type[Any], spec: ParameterSpec) -> Any:
        concrete = self._get_contextual_concrete(spec.primitive_key)
        if concrete is not None:
            if concrete.is_factory:
                return invoke_factory(concrete.value, self)
            return concrete.value

        if spec.has_default:
            return spec.default

        raise DIBindUnresolvableDependencyError(spec.name, owner)

    def _resolve_class(self, spec: ParameterSpec) -> Any:
        try:
            return self.make(spec.dependency)
        except DIBindResolutionError:
            if spec.is_optional:
                logger.debug(
                    "Falling back to default for optional parameter %r (%r unresolvable)",
                    spec.name,
                    spec.dependency,
                )
                return spec.default
            raise

    def _get_concrete(self, abstract: Abstract) -> Concrete:
        binding = self._bindings.get(abstract)
        if binding is not None:
            return binding.concrete

        if not self._autowire:
            raise DIBindNotInstantiableError(abstract, self._build_stack.snapshot())

        # Unregistered identifiers are treated as their own concrete type.
        return Concrete(ConcreteKind.CLASS, abstract)

    def _get_contextual_concrete(self, abstract: Abstract) -> Concrete | None:
        bindings = self._contextual.get(self._build_stack.current)
        if not bindings:
            return None

        if abstract in bindings:
            return bindings[abstract]

        # A contextual binding may target an alias of the canonical identifier.
        for alias in self._abstract_aliases.get(abstract, ()):
            if alias in bindings:
                return bindings[alias]
        return None

    def _get_extenders(self, abstract: Abstract) -> list[Extender]:
        return list(self._extenders.get(self.get_alias(abstract), ()))

    def _as_buildable(self, concrete: Any) -> Concrete:
        if inspect.isclass(concrete) or isinstance(concrete, str):
            return Concrete(ConcreteKind.CLASS, concrete)
        if callable(concrete):
            return Concrete(ConcreteKind.FACTORY, concrete)
        return Concrete(ConcreteKind.VALUE, concrete)

    def _locate(self, concrete: Any) -> Any:
        """Import a class named by a dotted path, leaving anything else untouched."""
        if not isinstance(concrete, str) or "." not in concrete:
            return concrete
        try:
            return pkgutil.resolve_name(concrete)
        except (ImportError, AttributeError, ValueError):
            return concrete

    def _is_instantiable(self, target: Any) -> bool:
        return inspect.isclass(target) and not inspect.isabstract(target) and not is_protocol(target)

    # Callbacks

    def before_resolving(
        self,
        abstract: Abstract | BeforeResolvingCallback,
        callback: BeforeResolvingCallback | None = None,
    ) -> None:
        """Register ``callback(abstract, parameters, container)`` fired before a build.

        Pass only a callback to listen to every resolution.
        """
        if callback is None:
            self._global_before_resolving_callbacks.append(abstract)
            return
        abstract = self.get_alias(abstract)
        self._before_resolving_callbacks.setdefault(abstract, []).append(callback)

    def resolving(
        self,
        abstract: Abstract | ResolvingCallback,
        callback: ResolvingCallback | None = None,
    ) -> None:
        """Register ``callback(obj, container)`` fired with each freshly resolved object.

        Pass only a callback to listen to every resolution. A per-type callback
        also fires for objects whose capabilities include ``abstract``.
        """
        if callback is None:
            self._global_resolving_callbacks.append(abstract)
            return
        abstract = self.get_alias(abstract)
        self._resolving_callbacks.setdefault(abstract, []).append(callback)

    def after_resolving(
        self,
        abstract: Abstract | ResolvingCallback,
        callback: ResolvingCallback | None = None,
    ) -> None:
        """Register ``callback(obj, container)`` fired after the resolving callbacks."""
        if callback is None:
            self._global_after_resolving_callbacks.append(abstract)
            return
        abstract = self.get_alias(abstract)
        self._after_resolving_callbacks.setdefault(abstract, []).append(callback)

    def _fire_before_resolving_callbacks(
        self,
        abstract: Abstract,
        parameters: Mapping[Any, Any],
    ) -> None:
        view = MappingProxyType(parameters)
        for callback in self._global_before_resolving_callbacks:
            callback(abstract, view, self)

        abstract_capabilities = class_capabilities(abstract) if inspect.isclass(abstract) else frozenset()
        for key, callbacks in list(self._before_resolving_callbacks.items()):
            if key == abstract or key in abstract_capabilities:
                for callback in list(callbacks):
                    callback(abstract, view, self)

    def _fire_resolving_callbacks(self, abstract: Abstract, obj: Any) -> None:
        self._fire_callbacks(obj, self._global_resolving_callbacks)
        self._fire_callbacks(obj, self._callbacks_for_type(abstract, obj, self._resolving_callbacks))

        self._fire_callbacks(obj, self._global_after_resolving_callbacks)
        self._fire_callbacks(
            obj,
            self._callbacks_for_type(abstract, obj, self._after_resolving_callbacks),
        )

    def _callbacks_for_type(
        self,
        abstract: Abstract,
        obj: Any,
        callbacks_per_type: dict[Abstract, list[ResolvingCallback]],
    ) -> list[ResolvingCallback]:
        results: list[ResolvingCallback] = []
        for key, callbacks in callbacks_per_type.items():
            if key == abstract or satisfies(obj, key):
                results.extend(callbacks)
        return results

    def _fire_callbacks(self, obj: Any, callbacks: list[ResolvingCallback]) -> None:
        for callback in list(callbacks):
            callback(obj, self)

    def _rebound(self, abstract: Abstract) -> None:
        logger.debug("Rebinding %r", abstract)
        instance = self.make(abstract)

        for callback in list(self._rebound_callbacks.get(abstract, ())):
            callback(self, instance)

    # Lifecycle

    def bound(self, abstract: Abstract) -> bool:
        """Return whether ``abstract`` has a binding, an instance or is an alias."""
        return abstract in self._bindings or abstract in self._instances or self.is_alias(abstract)

    def resolved(self, abstract: Abstract) -> bool:
        """Return whether ``abstract`` has been resolved or holds an instance."""
        if self.is_alias(abstract):
            abstract = self.get_alias(abstract)
        return abstract in self._resolved or abstract in self._instances

    def is_alias(self, name: Abstract) -> bool:
        return name in self._aliases

    def get_alias(self, abstract: Abstract) -> Abstract:
        """Follow the alias chain of ``abstract`` to its canonical identifier.

        Raises:
            DIBindSelfReferentialAliasError: The chain leads back to an
                identifier already visited.

        """
        seen: set[Abstract] = set()
        current = abstract
        while current in self._aliases:
            if current in seen:
                raise DIBindSelfReferentialAliasError(abstract)
            seen.add(current)
            current = self._aliases[current]
        return current

    def is_shared(self, abstract: Abstract) -> bool:
        """Return whether resolutions of ``abstract`` are cached."""
        if abstract in self._instances:
            return True
        binding = self._bindings.get(abstract)
        if binding is not None:
            return binding.shared
        # Settings are read from the environment once per container.
        return is_pydantic_settings_subclass(self._locate(abstract))

    def is_scoped(self, abstract: Abstract) -> bool:
        return self.get_alias(abstract) in self._scoped_instances

    def get_bindings(self) -> Mapping[Abstract, Binding]:
        return MappingProxyType(self._bindings)

    @property
    def build_stack(self) -> tuple[Any, ...]:
        """Types currently under construction, outermost first."""
        return self._build_stack.snapshot()

    @property
    def parameter_override_depth(self) -> int:
        """Number of ``make`` calls currently in flight."""
        return len(self._with)

    @contextmanager
    def scope(self) -> Iterator[Container]:
        """Open a logical scope; scoped instances are forgotten when it closes.

        Examples:
            .. code-block:: python

                container.scoped(RequestContext)
                with container.scope():
                    handle(container.make(RequestContext))

        """
        try:
            yield self
        finally:
            self.forget_scoped_instances()

    def forget_instance(self, abstract: Abstract) -> None:
        self._instances.pop(abstract, None)

    def forget_instances(self) -> None:
        self._instances.clear()

    def forget_extenders(self, abstract: Abstract) -> None:
        self._extenders.pop(self.get_alias(abstract), None)

    def forget_scoped_instances(self) -> None:
        """Drop the cached instances of every scoped identifier."""
        for abstract in self._scoped_instances:
            self._instances.pop(abstract, None)

    def flush(self) -> None:
        """Reset the container to an empty registry.

        Resolutions already in flight keep their build and parameter frames.
        """
        self._bindings.clear()
        self._instances.clear()
        self._aliases.clear()
        self._abstract_aliases.clear()
        self._resolved.clear()
        self._scoped_instances.clear()
        self._contextual.clear()
        self._extenders.clear()
        self._rebound_callbacks.clear()
        self._global_before_resolving_callbacks.clear()
        self._global_resolving_callbacks.clear()
        self._global_after_resolving_callbacks.clear()
        self._before_resolving_callbacks.clear()
        self._resolving_callbacks.clear()
        self._after_resolving_callbacks.clear()
        self._method_bindings.clear()
        logger.debug("Flushed container %r", self)

    def _drop_stale_instances(self, abstract: Abstract) -> None:
        self._instances.pop(abstract, None)
        self._aliases.pop(abstract, None)

    def _remove_abstract_alias(self, searched: Abstract) -> None:
        if searched not in self._aliases:
            return
        for aliases in self._abstract_aliases.values():
            while searched in aliases:
                aliases.remove(searched)
