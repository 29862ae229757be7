"""Deferred values, token comparison and tree synthesis."""

from .environment import is_cross_environment, same_env_dimension, same_environment
from .errors import (
    CyclicResolutionError,
    DocumentError,
    NodeValidationError,
    ProducerError,
    ResolutionError,
    ResolutionTypeError,
    SynthesisError,
    SynthkitError,
    TreeError,
)
from .resolve import ResolveContext, resolve
from .synth import SynthesisResult, synthesize
from .tokens import (
    Concrete,
    Deferred,
    DeferredValue,
    Lazy,
    TokenComparison,
    ValueKind,
    as_value,
    compare,
    defer,
    is_unresolved,
)
from .tree import Annotation, AnnotationLevel, Annotations, Node, Stack, unique_id

__version__ = "0.1.0"

__all__ = [
    "Annotation",
    "AnnotationLevel",
    "Annotations",
    "Concrete",
    "CyclicResolutionError",
    "Deferred",
    "DeferredValue",
    "DocumentError",
    "Lazy",
    "Node",
    "NodeValidationError",
    "ProducerError",
    "ResolutionError",
    "ResolutionTypeError",
    "ResolveContext",
    "Stack",
    "SynthesisError",
    "SynthesisResult",
    "SynthkitError",
    "TokenComparison",
    "TreeError",
    "ValueKind",
    "as_value",
    "compare",
    "defer",
    "is_cross_environment",
    "is_unresolved",
    "resolve",
    "same_env_dimension",
    "same_environment",
    "synthesize",
    "unique_id",
]
