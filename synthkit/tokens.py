"""Deferred values and the token comparator.

A value stored in the configuration tree is either ``Concrete`` (known while
the tree is being built) or ``Deferred`` (produced during synthesis by a
zero-argument callable). Deferred values are placeholders: before synthesis
they can be passed around and compared, but never inspected.
"""

import itertools
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional, Union

_identifiers = itertools.count(1)


class ValueKind(str, Enum):
    """Shape of the value a deferred producer yields."""
    SCALAR = "scalar"
    LIST = "list"
    MAPPING = "mapping"


class TokenComparison(str, Enum):
    """Outcome of comparing two possibly-unresolved values."""
    SAME = "same"
    DIFFERENT = "different"
    ONE_UNRESOLVED = "one_unresolved"
    BOTH_UNRESOLVED = "both_unresolved"


@dataclass(frozen=True)
class Concrete:
    """A value known at construction time."""
    value: Any


@dataclass(frozen=True, eq=False)
class Deferred:
    """Placeholder for a value computed during synthesis.

    Equality is identity: two placeholders are the same token only if they
    are the same object.
    """
    identifier: int
    kind: ValueKind
    producer: Callable[[], Any] = field(repr=False)
    display_hint: Optional[str] = None
    omit_empty: bool = False
    check_kind: bool = True

    def __str__(self) -> str:
        hint = self.display_hint or self.kind.value
        return f"${{Token[{hint}.{self.identifier}]}}"

    def __repr__(self) -> str:
        return str(self)


DeferredValue = Union[Concrete, Deferred]


def defer(
    kind: Union[ValueKind, str],
    compute: Callable[[], Any],
    *,
    display_hint: Optional[str] = None,
    omit_empty: bool = False,
    check_kind: bool = True,
) -> Deferred:
    """Register ``compute`` as the producer of a new deferred value.

    Args:
        kind: ``scalar``, ``list`` or ``mapping``.
        compute: Zero-argument callable, invoked at most once per synthesis pass.
        display_hint: Short label used when the placeholder is rendered.
        omit_empty: Resolve empty lists or mappings to ``None`` so the field is dropped.
        check_kind: Reject produced values whose shape does not match ``kind``.

    Returns:
        The placeholder. Its identifier is unique for the lifetime of the process.

    Raises:
        ValueError: If ``kind`` is not a known value kind.
        TypeError: If ``compute`` is not callable.
    """
    try:
        value_kind = ValueKind(kind)
    except ValueError:
        raise ValueError(
            f"Unknown value kind {kind!r}; expected one of {[k.value for k in ValueKind]}"
        ) from None
    if not callable(compute):
        raise TypeError(f"Producer must be callable, got {type(compute).__name__}")
    return Deferred(
        identifier=next(_identifiers),
        kind=value_kind,
        producer=compute,
        display_hint=display_hint,
        omit_empty=omit_empty,
        check_kind=check_kind,
    )


class Lazy:
    """Shorthand constructors for the common deferred value shapes."""

    @staticmethod
    def string(produce: Callable[[], Optional[str]], display_hint: Optional[str] = None) -> Deferred:
        return defer(ValueKind.SCALAR, produce, display_hint=display_hint)

    @staticmethod
    def number(produce: Callable[[], Optional[float]], display_hint: Optional[str] = None) -> Deferred:
        return defer(ValueKind.SCALAR, produce, display_hint=display_hint)

    @staticmethod
    def list(
        produce: Callable[[], Any],
        display_hint: Optional[str] = None,
        omit_empty: bool = False,
    ) -> Deferred:
        return defer(ValueKind.LIST, produce, display_hint=display_hint, omit_empty=omit_empty)

    @staticmethod
    def any(
        produce: Callable[[], Any],
        display_hint: Optional[str] = None,
        omit_empty: bool = False,
        kind: Optional[Union[ValueKind, str]] = None,
    ) -> Deferred:
        """Defer a value of any shape.

        Without ``kind`` the produced value is not checked against a shape.
        """
        return defer(
            kind or ValueKind.SCALAR,
            produce,
            display_hint=display_hint,
            omit_empty=omit_empty,
            check_kind=kind is not None,
        )


def as_value(value: Any) -> DeferredValue:
    """Lift a plain Python value into the tagged union."""
    if isinstance(value, (Concrete, Deferred)):
        return value
    return Concrete(value)


def is_unresolved(value: Any) -> bool:
    """True if ``value`` is a placeholder that has not been resolved."""
    return isinstance(as_value(value), Deferred)


def _is_placeholder(value: Any) -> bool:
    # None is an absent dimension, e.g. a stack without an explicit region.
    if value is None:
        return True
    tagged = as_value(value)
    if isinstance(tagged, Deferred):
        return True
    if isinstance(tagged, Concrete):
        return tagged.value is None
    raise TypeError(f"Unexpected value variant {type(tagged).__name__}")


def _concrete(value: Any) -> Any:
    return value.value if isinstance(value, Concrete) else value


def compare(a: Any, b: Any) -> TokenComparison:
    """Compare two values that may still be placeholders.

    Never forces resolution and never raises for well-formed input. It takes
    no resolve context because it never reads or fills a resolution cache:
    placeholders compare by identity only.
    """
    a_unresolved = _is_placeholder(a)
    b_unresolved = _is_placeholder(b)
    if a_unresolved and b_unresolved:
        return TokenComparison.BOTH_UNRESOLVED
    if a_unresolved or b_unresolved:
        return TokenComparison.ONE_UNRESOLVED
    return TokenComparison.SAME if _concrete(a) == _concrete(b) else TokenComparison.DIFFERENT
