from __future__ import annotations

import importlib
from collections.abc import MutableMapping
from typing import TypeVar

T = TypeVar("T")


def register_named(registry: MutableMapping[str, T], name: str):
    """Class decorator storing the decorated object as `registry[name]`."""

    def decorator(obj: T) -> T:
        if name in registry and registry[name] is not obj:
            raise ValueError(f"'{name}' is already registered")
        registry[name] = obj
        return obj

    return decorator


def resolve_registered(
    registry: MutableMapping[str, T],
    name: str,
    *,
    package: str,
    unknown_label: str,
) -> T:
    """Look `name` up, importing `<package>.<name>` first when it is missing.

    Modules listed under `imports:` in the main config can register extra
    implementations before this is called.
    """
    if name in registry:
        return registry[name]
    try:
        importlib.import_module(f"{package}.{name}")
    except ImportError as e:
        known = ", ".join(sorted(registry)) or "none"
        raise ValueError(
            f"Unknown {unknown_label} '{name}'. Available: {known} (import failed: {e})"
        ) from e
    if name not in registry:
        known = ", ".join(sorted(registry)) or "none"
        raise ValueError(f"Unknown {unknown_label} '{name}'. Available: {known}")
    return registry[name]


__all__ = ["register_named", "resolve_registered"]
