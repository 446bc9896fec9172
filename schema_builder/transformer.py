"""
Collaborator hooks that translate between the engine's schema dialect and an
external one.

`from_external` runs on every imported document before flattening and
`to_external` on every exported schema. `from_setting` and `to_setting` map
between the value edited in a settings panel and an entry's own schema.
"""

from copy import deepcopy
from dataclasses import dataclass, fields, replace
from typing import Any, Callable, Dict, Mapping, Optional
import logging

logger = logging.getLogger(__name__)

Hook = Callable[[Any], Any]


def identity(value: Any) -> Any:
    return value


def default_to_setting(schema: Mapping[str, Any]) -> Dict[str, Any]:
    """Settings-panel value for an entry schema: a detached copy."""
    return deepcopy(dict(schema))


def default_from_setting(value: Mapping[str, Any]) -> Dict[str, Any]:
    """Entry schema from a settings-panel value: a detached copy, null keywords included."""
    return deepcopy(dict(value))


@dataclass(frozen=True)
class SchemaTransformer:
    """Set of dialect hooks; every hook defaults to a no-op translation."""
    from_external: Hook = identity
    to_external: Hook = identity
    from_setting: Hook = default_from_setting
    to_setting: Hook = default_to_setting


def merge_transformer(overrides: Optional[Any] = None) -> SchemaTransformer:
    """
    Build a transformer from partial overrides.

    Args:
        overrides: None, a SchemaTransformer, or a mapping of hook name to
            callable; missing or None hooks keep their defaults

    Returns:
        Complete SchemaTransformer
    """
    if overrides is None:
        return SchemaTransformer()
    if isinstance(overrides, SchemaTransformer):
        return overrides
    if not isinstance(overrides, Mapping):
        raise TypeError(f"Transformer overrides must be a mapping, got {type(overrides).__name__}")

    names = {f.name for f in fields(SchemaTransformer)}
    unknown = sorted(set(overrides) - names)
    if unknown:
        raise ValueError(f"Unknown transformer hooks: {unknown}")

    hooks = {}
    for name, hook in overrides.items():
        if hook is None:
            continue
        if not callable(hook):
            raise TypeError(f"Transformer hook '{name}' is not callable")
        hooks[name] = hook
    logger.debug(f"Transformer hooks overridden: {sorted(hooks)}")
    return replace(SchemaTransformer(), **hooks)
