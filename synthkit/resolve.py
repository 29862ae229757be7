"""Resolution of deferred values within a single synthesis pass.

The cache of produced values lives on an explicit ``ResolveContext``; there
is no process-wide resolution state, so independent passes never observe
each other's results.
"""

import logging
from collections.abc import Mapping
from typing import Any, Dict, List, Tuple

from .errors import CyclicResolutionError, ProducerError, ResolutionError, ResolutionTypeError
from .tokens import Concrete, Deferred, ValueKind

logger = logging.getLogger(__name__)


class ResolveContext:
    """Per-pass resolution cache and active resolution stack."""

    def __init__(self):
        self._cache: Dict[int, Any] = {}
        self._active: List[int] = []
        self.produced = 0

    def reset(self) -> None:
        """Forget every produced value; the next resolution re-invokes producers."""
        if self._active:
            raise RuntimeError("Cannot reset a resolve context while a resolution is in progress")
        self._cache.clear()
        self.produced = 0

    def is_resolved(self, token: Deferred) -> bool:
        return token.identifier in self._cache

    @property
    def active(self) -> Tuple[int, ...]:
        """Identifiers currently being resolved, outermost first."""
        return tuple(self._active)

    def __len__(self) -> int:
        return len(self._cache)


def resolve(value: Any, context: ResolveContext) -> Any:
    """Resolve ``value`` into plain Python data.

    Concrete values come back unchanged. Deferred values are produced once per
    context and cached; anything they produce is resolved in turn, including
    placeholders nested in lists and mappings.

    Raises:
        CyclicResolutionError: A deferred value depends on itself.
        ProducerError: A producer raised.
        ResolutionTypeError: A producer returned the wrong shape.
    """
    if isinstance(value, Deferred):
        return _resolve_deferred(value, context)
    if isinstance(value, Concrete):
        return _resolve_structure(value.value, context)
    return _resolve_structure(value, context)


def _resolve_deferred(token: Deferred, context: ResolveContext) -> Any:
    identifier = token.identifier
    if identifier in context._cache:
        return context._cache[identifier]

    active = context._active
    if identifier in active:
        chain = active[active.index(identifier):] + [identifier]
        logger.error(f"Cyclic resolution detected for {token}")
        raise CyclicResolutionError(identifier, chain)

    active.append(identifier)
    try:
        try:
            produced = token.producer()
        except ResolutionError:
            raise
        except Exception as exc:
            logger.error(f"Producer of {token} failed: {exc}")
            raise ProducerError(identifier, exc) from exc
        context.produced += 1
        logger.debug(f"Produced {token}")
        result = _check_kind(token, _resolve_structure(produced, context))
    finally:
        active.pop()

    context._cache[identifier] = result
    return result


def _resolve_structure(value: Any, context: ResolveContext) -> Any:
    if isinstance(value, Deferred):
        return _resolve_deferred(value, context)
    if isinstance(value, Concrete):
        return _resolve_structure(value.value, context)
    if isinstance(value, Mapping):
        resolved = {}
        for key, item in value.items():
            resolved_item = _resolve_structure(item, context)
            # a deferred entry that produced nothing is dropped
            if resolved_item is None and isinstance(item, Deferred):
                continue
            resolved[_resolve_structure(key, context)] = resolved_item
        return resolved
    if isinstance(value, (list, tuple)):
        return [_resolve_structure(item, context) for item in value]
    return value


def _check_kind(token: Deferred, value: Any) -> Any:
    if value is None:
        return None

    if token.omit_empty and isinstance(value, (list, dict)) and not value:
        return None

    if not token.check_kind:
        return value

    if token.kind is ValueKind.LIST:
        if not isinstance(value, list):
            raise ResolutionTypeError(token.identifier, "list", type(value).__name__)
    elif token.kind is ValueKind.MAPPING:
        if not isinstance(value, dict):
            raise ResolutionTypeError(token.identifier, "mapping", type(value).__name__)
    elif isinstance(value, (list, dict)):
        raise ResolutionTypeError(token.identifier, "scalar", type(value).__name__)
    return value
