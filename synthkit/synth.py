"""Synthesis: resolve every field of a fully built tree into concrete data."""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .config import SynthesisConfig
from .errors import NodeValidationError, ResolutionError, SynthesisError
from .resolve import ResolveContext, resolve
from .tree import Annotation, AnnotationLevel, Node

logger = logging.getLogger(__name__)

MANIFEST_VERSION = "1.0"


@dataclass
class SynthesisResult:
    """Output of one synthesis pass."""
    nodes: Dict[str, Dict[str, Any]]
    annotations: List[Annotation] = field(default_factory=list)
    produced: int = 0

    @property
    def warnings(self) -> List[Annotation]:
        return [a for a in self.annotations if a.level is AnnotationLevel.WARNING]

    def fields_of(self, path: str) -> Dict[str, Any]:
        """Resolved fields of the node at ``path`` (empty if it has none)."""
        return self.nodes.get(path, {})

    def to_manifest(self) -> Dict[str, Any]:
        return {
            "version": MANIFEST_VERSION,
            "nodes": {path or "/": fields for path, fields in self.nodes.items() if fields},
            "annotations": [
                {
                    "path": a.path or "/",
                    "level": a.level.value,
                    "id": a.annotation_id,
                    "message": a.message,
                }
                for a in self.annotations
            ],
        }


def synthesize(root: Node, settings: Optional[SynthesisConfig] = None) -> SynthesisResult:
    """Run a synthesis pass over the tree rooted at ``root``.

    A fresh resolution cache is used for every pass. The pass either completes
    or raises; nothing is kept from a failed pass.

    Raises:
        SynthesisError: If ``root`` is not a root, a pass is already running on
            it, or error annotations (or warnings in strict mode) were recorded.
        NodeValidationError: If any node validation failed.
        ResolutionError: If a deferred value could not be resolved.
    """
    settings = settings or SynthesisConfig()

    if root.scope is not None:
        raise SynthesisError(f"Synthesis must start at the root of the tree, not at {root!r}")
    if root._synthesizing:
        raise SynthesisError("A synthesis pass is already running on this tree")

    root._synthesizing = True
    try:
        context = ResolveContext()
        nodes = _resolve_tree(root, context)

        failures = [
            (node.path, message)
            for node in root.find_all()
            for message in node.validate(nodes.get(node.path))
        ]
        if failures:
            logger.error(f"Synthesis failed: {len(failures)} validation error(s)")
            raise NodeValidationError(failures)

        annotations = [a for node in root.find_all() for a in node.annotations]
        _check_annotations(annotations, settings)

        logger.info(f"Synthesized {len(nodes)} node(s), produced {context.produced} deferred value(s)")
        return SynthesisResult(nodes=nodes, annotations=annotations, produced=context.produced)
    finally:
        root._synthesizing = False


def _resolve_tree(root: Node, context: ResolveContext) -> Dict[str, Dict[str, Any]]:
    nodes: Dict[str, Dict[str, Any]] = {}
    for node in root.find_all():
        resolved: Dict[str, Any] = {}
        for name, value in node._fields.items():
            try:
                result = resolve(value, context)
            except ResolutionError:
                logger.error(f"Failed to resolve field {name!r} of {node.path or '/'}")
                raise
            if result is None:
                continue
            resolved[name] = result
        nodes[node.path] = resolved
    return nodes


def _check_annotations(annotations: List[Annotation], settings: SynthesisConfig) -> None:
    errors = [a for a in annotations if a.level is AnnotationLevel.ERROR]
    if errors:
        details = "; ".join(f"[{a.path or '/'}] {a.message}" for a in errors)
        raise SynthesisError(f"Synthesis failed with {len(errors)} error annotation(s): {details}")

    if settings.fail_on_warnings:
        warnings = [a for a in annotations if a.level is AnnotationLevel.WARNING]
        if warnings:
            details = "; ".join(f"[{a.path or '/'}] {a.message}" for a in warnings)
            raise SynthesisError(f"Synthesis failed in strict mode with {len(warnings)} warning(s): {details}")
