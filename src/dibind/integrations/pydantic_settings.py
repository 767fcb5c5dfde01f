from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from pydantic_settings import BaseSettings


def is_pydantic_settings_subclass(candidate: object) -> bool:
    """Return true when candidate subclasses ``pydantic_settings.BaseSettings``."""
    if not isinstance(candidate, type):
        return False
    return issubclass(candidate, BaseSettings)


def build_settings(settings_cls: type[BaseSettings], parameters: Mapping[Any, Any]) -> BaseSettings:
    """Instantiate a settings class, using explicit parameters as field values.

    Fields without an explicit value are read from the environment by
    pydantic-settings itself.
    """
    values = {key: value for key, value in parameters.items() if isinstance(key, str)}
    return settings_cls(**values)


__all__ = [
    "BaseSettings",
    "build_settings",
    "is_pydantic_settings_subclass",
]
