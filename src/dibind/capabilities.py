"""Explicit capability queries used to route per-type resolution callbacks.

A resolved object satisfies an identifier when the identifier appears in the
object's capability set: every class of its MRO, the dotted and bare names of
those classes, and any identifiers its classes list in ``__capabilities__``.
"""

from __future__ import annotations

import weakref
from typing import Any

CAPABILITIES_ATTR = "__capabilities__"

_class_capabilities_cache: weakref.WeakKeyDictionary[type[Any], frozenset[Any]] = (
    weakref.WeakKeyDictionary()
)


def class_capabilities(cls: type[Any]) -> frozenset[Any]:
    """Return the identifiers satisfied by instances of ``cls``."""
    cached = _class_capabilities_cache.get(cls)
    if cached is not None:
        return cached

    keys: set[Any] = set()
    for base in cls.__mro__:
        if base is object:
            continue
        keys.add(base)
        keys.add(f"{base.__module__}.{base.__qualname__}")
        keys.add(base.__name__)
        keys.update(base.__dict__.get(CAPABILITIES_ATTR, ()))

    result = frozenset(keys)
    _class_capabilities_cache[cls] = result
    return result


def capabilities_of(obj: Any) -> frozenset[Any]:
    """Return the identifiers satisfied by an already built object."""
    return class_capabilities(type(obj))


def satisfies(obj: Any, key: Any) -> bool:
    try:
        return key in capabilities_of(obj)
    except TypeError:
        return False
