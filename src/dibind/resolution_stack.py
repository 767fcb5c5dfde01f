from __future__ import annotations

from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from types import MappingProxyType
from typing import Any

_EMPTY_PARAMETERS: Mapping[Any, Any] = MappingProxyType({})


class BuildStack:
    """Chain of concrete types currently under construction, outermost first.

    The top frame is the "currently building" context used by contextual
    binding lookups; the whole chain is reported when a build fails.
    Frames are pushed and popped only through ``building`` so the stack
    stays balanced on every exit path.
    """

    def __init__(self) -> None:
        self._frames: list[Any] = []

    @contextmanager
    def building(self, concrete: Any) -> Iterator[None]:
        self._frames.append(concrete)
        try:
            yield
        finally:
            self._frames.pop()

    @property
    def current(self) -> Any | None:
        """The innermost type being built, or ``None`` outside any build."""
        return self._frames[-1] if self._frames else None

    def snapshot(self) -> tuple[Any, ...]:
        return tuple(self._frames)

    def __len__(self) -> int:
        return len(self._frames)

    def __iter__(self) -> Iterator[Any]:
        return iter(tuple(self._frames))


class ParameterOverrideStack:
    """Explicit parameter maps, one frame per in-flight ``make`` call.

    Only the top frame is consulted, so parameters given to an outer
    resolution never leak into the dependencies it builds.
    """

    def __init__(self) -> None:
        self._frames: list[Mapping[Any, Any]] = []

    @contextmanager
    def pushed(self, parameters: Mapping[Any, Any]) -> Iterator[Mapping[Any, Any]]:
        self._frames.append(parameters)
        try:
            yield parameters
        finally:
            self._frames.pop()

    @property
    def current(self) -> Mapping[Any, Any]:
        return self._frames[-1] if self._frames else _EMPTY_PARAMETERS

    def __len__(self) -> int:
        return len(self._frames)
