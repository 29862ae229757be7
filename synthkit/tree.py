"""In-memory configuration tree.

Nodes are built first and resolved later: a field can hold a concrete value
or a deferred placeholder whose producer reads state that is only complete
once the whole tree exists.
"""

import hashlib
import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Iterator, List, Optional

from .errors import TreeError
from .tokens import Lazy

logger = logging.getLogger(__name__)

PATH_SEPARATOR = "/"
HIDDEN_ID = "Default"

Validation = Callable[[], List[str]]
OutputValidation = Callable[[Dict[str, Any]], List[str]]


class AnnotationLevel(str, Enum):
    """Severity of an annotation attached to a node."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class Annotation:
    """A message attached to a node while the tree is built or synthesized."""
    path: str
    level: AnnotationLevel
    message: str
    annotation_id: Optional[str] = None


class Node:
    """A node in the configuration tree.

    Args:
        scope: Parent node, or ``None`` for the root of a tree.
        node_id: Identifier unique among the parent's children.
    """

    def __init__(self, scope: Optional["Node"], node_id: str):
        if scope is not None and not node_id:
            raise TreeError("Only the root node may have an empty id")
        if PATH_SEPARATOR in node_id:
            raise TreeError(f"Node id {node_id!r} cannot contain {PATH_SEPARATOR!r}")

        self.id = node_id
        self.scope = scope
        self._children: Dict[str, Node] = {}
        self._fields: Dict[str, Any] = {}
        self._validations: List[Validation] = []
        self._output_validations: List[OutputValidation] = []
        self._annotations: List[Annotation] = []
        self._synthesizing = False

        if scope is not None:
            scope._add_child(self)

    def _add_child(self, child: "Node") -> None:
        if child.id in self._children:
            where = self.path or "the root"
            raise TreeError(f"There is already a node with id {child.id!r} in {where}")
        self._children[child.id] = child

    @property
    def path(self) -> str:
        """Path of this node from the root, excluding the root id."""
        components = []
        node: Optional[Node] = self
        while node is not None and node.scope is not None:
            components.append(node.id)
            node = node.scope
        return PATH_SEPARATOR.join(reversed(components))

    @property
    def root(self) -> "Node":
        node = self
        while node.scope is not None:
            node = node.scope
        return node

    @property
    def children(self) -> List["Node"]:
        return list(self._children.values())

    @property
    def fields(self) -> Dict[str, Any]:
        return dict(self._fields)

    @property
    def annotations(self) -> List[Annotation]:
        return list(self._annotations)

    def set_field(self, name: str, value: Any) -> None:
        """Set a field to a concrete value or a deferred placeholder."""
        if not name:
            raise TreeError(f"Field names cannot be empty (node {self.path or '/'})")
        self._fields[name] = value

    def get_field(self, name: str) -> Any:
        """Return the unresolved value of a field.

        Raises:
            KeyError: If the field has not been set.
        """
        try:
            return self._fields[name]
        except KeyError:
            raise KeyError(f"Node {self.path or '/'} has no field {name!r}") from None

    def add_validation(self, validation: Validation) -> None:
        """Register a check run during synthesis; it returns a list of error messages."""
        self._validations.append(validation)

    def add_output_validation(self, validation: OutputValidation) -> None:
        """Register a check of this node's resolved fields, run after resolution.

        Fields that resolved to ``None`` are absent from the mapping it receives.
        """
        self._output_validations.append(validation)

    def validate(self, resolved: Optional[Dict[str, Any]] = None) -> List[str]:
        errors: List[str] = []
        for validation in self._validations:
            errors.extend(validation() or [])
        for output_validation in self._output_validations:
            errors.extend(output_validation(resolved or {}) or [])
        return errors

    def try_find_child(self, node_id: str) -> Optional["Node"]:
        return self._children.get(node_id)

    def find(self, path: str) -> "Node":
        """Find a descendant by a path relative to this node.

        Raises:
            KeyError: If no node exists at ``path``.
        """
        node = self
        for component in filter(None, path.split(PATH_SEPARATOR)):
            child = node.try_find_child(component)
            if child is None:
                raise KeyError(f"No node at {path!r} under {self.path or '/'}")
            node = child
        return node

    def find_all(self) -> Iterator["Node"]:
        """Walk this node and its descendants in pre-order."""
        yield self
        for child in self._children.values():
            yield from child.find_all()

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.path or '/'}>"


class Annotations:
    """Attach info, warning and error messages to a node."""

    def __init__(self, node: Node):
        self._node = node

    @classmethod
    def of(cls, node: Node) -> "Annotations":
        return cls(node)

    def add_info(self, message: str) -> None:
        self._add(AnnotationLevel.INFO, message)

    def add_warning(self, warning_id: str, message: str) -> None:
        """Add a warning; repeated warnings with the same id are recorded once per node."""
        self._add(AnnotationLevel.WARNING, message, warning_id)

    def add_error(self, message: str) -> None:
        self._add(AnnotationLevel.ERROR, message)

    def _add(self, level: AnnotationLevel, message: str, annotation_id: Optional[str] = None) -> None:
        node = self._node
        if annotation_id is not None:
            for existing in node._annotations:
                if existing.level is level and existing.annotation_id == annotation_id:
                    return

        annotation = Annotation(
            path=node.path,
            level=level,
            message=message,
            annotation_id=annotation_id,
        )
        node._annotations.append(annotation)

        where = node.path or "/"
        if level is AnnotationLevel.INFO:
            logger.info(f"[{where}] {message}")
        elif level is AnnotationLevel.WARNING:
            suffix = f" [ack: {annotation_id}]" if annotation_id else ""
            logger.warning(f"[{where}] {message}{suffix}")
        else:
            logger.error(f"[{where}] {message}")


class Stack(Node):
    """A node that is deployed as a unit into one account and region.

    Without an explicit account or region the stack gets deferred pseudo
    references, so two environment-agnostic stacks compare as both
    unresolved rather than different.
    """

    def __init__(
        self,
        scope: Optional[Node],
        node_id: str,
        account: Optional[Any] = None,
        region: Optional[Any] = None,
        stack_name: Optional[str] = None,
    ):
        super().__init__(scope, node_id)
        self.account = account if account is not None else Lazy.string(
            lambda: "${AWS::AccountId}", display_hint="AWS.AccountId"
        )
        self.region = region if region is not None else Lazy.string(
            lambda: "${AWS::Region}", display_hint="AWS.Region"
        )
        self.stack_name = stack_name or (unique_id(self) if self.path else node_id)
        self.set_field("stackName", self.stack_name)
        self.set_field("environment", {"account": self.account, "region": self.region})

    @staticmethod
    def of(node: Node) -> "Stack":
        """Return the nearest stack enclosing ``node`` (itself included).

        Raises:
            TreeError: If ``node`` is not inside a stack.
        """
        current: Optional[Node] = node
        while current is not None:
            if isinstance(current, Stack):
                return current
            current = current.scope
        raise TreeError(f"{node!r} is not defined within a Stack")


def _remove_non_alphanumeric(s: str) -> str:
    return re.sub(r"[^A-Za-z0-9]", "", s)


def unique_id(node: Node) -> str:
    """Derive an identifier from the node's path that is unique within its tree.

    A single-component path is used as-is (alphanumerics only). Longer paths
    join their components and append an 8-character hash of the full path.
    ``Default`` components are skipped.
    """
    components = [c for c in node.path.split(PATH_SEPARATOR) if c and c != HIDDEN_ID]
    if not components:
        raise TreeError("Unable to calculate a unique id for an empty path")

    if len(components) == 1:
        candidate = _remove_non_alphanumeric(components[0])
        if candidate and len(candidate) <= 255:
            return candidate

    digest = hashlib.md5(PATH_SEPARATOR.join(components).encode("utf-8")).hexdigest()[:8].upper()

    human: List[str] = []
    for component in components:
        # collapse repeated components, e.g. Stack/Stack/Bucket
        if human and human[-1] == component:
            continue
        human.append(component)
    return _remove_non_alphanumeric("".join(human))[:240] + digest
