"""Exceptions raised while building and synthesizing a configuration tree."""

from typing import List, Sequence, Tuple


class SynthkitError(Exception):
    """Base class for all synthkit errors."""


class TreeError(SynthkitError):
    """Raised when the node tree is constructed incorrectly."""


class DocumentError(SynthkitError):
    """Raised when a tree document is malformed."""


class ResolutionError(SynthkitError):
    """A deferred value could not be resolved."""

    def __init__(self, identifier: int, message: str):
        super().__init__(message)
        self.identifier = identifier


class CyclicResolutionError(ResolutionError):
    """A deferred value depends on itself, directly or through other values."""

    def __init__(self, identifier: int, chain: Sequence[int]):
        self.chain: Tuple[int, ...] = tuple(chain)
        rendered = " -> ".join(f"#{i}" for i in self.chain)
        super().__init__(identifier, f"Cyclic resolution of deferred value #{identifier}: {rendered}")


class ProducerError(ResolutionError):
    """The producer of a deferred value raised."""

    def __init__(self, identifier: int, cause: BaseException):
        super().__init__(
            identifier,
            f"Producer of deferred value #{identifier} failed: {type(cause).__name__}: {cause}",
        )
        self.cause = cause


class ResolutionTypeError(ResolutionError):
    """A producer returned a value that does not match the declared kind."""

    def __init__(self, identifier: int, expected: str, actual: str):
        super().__init__(
            identifier,
            f"Deferred value #{identifier} was declared as {expected} but produced {actual}",
        )
        self.expected = expected
        self.actual = actual


class NodeValidationError(SynthkitError):
    """One or more node validations failed during synthesis."""

    def __init__(self, failures: List[Tuple[str, str]]):
        self.failures = list(failures)
        lines = [f"  [{path or '/'}] {message}" for path, message in self.failures]
        super().__init__(f"Validation failed with {len(self.failures)} error(s):\n" + "\n".join(lines))


class SynthesisError(SynthkitError):
    """A synthesis pass could not complete."""
