"""Build a configuration tree from a YAML document.

Document layout::

    stacks:
      Producer:
        env: {account: "111111111111", region: us-east-1}
        nodes:
          Role:
            fields:
              arn: arn:aws:iam::111111111111:role/Forwarder
          Rule:
            required: [roleArn]
            targets: [Consumer/Queue]
            fields:
              roleArn: "{{ref:Producer/Role.arn}}"

A string of exactly ``{{ref:<path>.<field>}}`` becomes a deferred value that
reads the referenced field when the tree is synthesized, so it may point at
nodes declared later in the document.

A target in another account or region needs a concrete environment on both
sides. The targeting node is then mirrored into the target's stack as
``<unique id>-Target<n>``, with fields that read the source node's fields.
"""

import logging
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from .environment import same_env_dimension
from .errors import DocumentError
from .tokens import Deferred, Lazy, is_unresolved
from .tree import Annotations, Node, Stack, unique_id

logger = logging.getLogger(__name__)

REFERENCE_PATTERN = re.compile(r"^\{\{ref:(?P<target>[^{}]+)\}\}$")


def load_document(path: Union[str, Path]) -> Dict[str, Any]:
    """Read a tree document.

    Raises:
        FileNotFoundError: If ``path`` does not exist.
        DocumentError: If the file is not valid YAML or not a mapping.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Document not found: {path}")
    try:
        with path.open("r", encoding="utf-8") as fh:
            document = yaml.safe_load(fh)
    except yaml.YAMLError as exc:
        raise DocumentError(f"Invalid YAML in {path}: {exc}") from exc
    if not isinstance(document, dict):
        raise DocumentError(f"Document {path} must contain a mapping at the top level")
    return document


def build_tree(
    document: Dict[str, Any],
    default_account: Optional[str] = None,
    default_region: Optional[str] = None,
    root_id: str = "App",
) -> Node:
    """Build the node tree described by ``document``.

    Stacks without an ``env`` fall back to the given defaults, and to
    unresolved pseudo references when those are ``None`` too.
    """
    stacks = document.get("stacks")
    if not isinstance(stacks, dict) or not stacks:
        raise DocumentError("Document must define at least one stack under 'stacks'")

    root = Node(None, root_id)
    pending_targets: List[tuple] = []
    resource_envs: Dict[str, Dict[str, Any]] = {}

    for stack_id, stack_doc in stacks.items():
        stack_doc = _mapping(stack_doc, f"stack {stack_id}")
        env = _mapping(stack_doc.get("env"), f"env of stack {stack_id}")
        stack = Stack(
            root,
            str(stack_id),
            account=env.get("account", default_account),
            region=env.get("region", default_region),
            stack_name=stack_doc.get("stackName"),
        )
        _build_children(
            stack,
            _mapping(stack_doc.get("nodes"), f"nodes of stack {stack_id}"),
            root,
            pending_targets,
            resource_envs,
        )

    # targets are checked once every node exists
    for node, target_paths in pending_targets:
        _bind_targets(root, node, target_paths, resource_envs)

    logger.debug(f"Built tree with {sum(1 for _ in root.find_all())} node(s)")
    return root


def _build_children(
    parent: Node,
    nodes_doc: Dict[str, Any],
    root: Node,
    pending_targets: List[tuple],
    resource_envs: Dict[str, Dict[str, Any]],
) -> None:
    for node_id, node_doc in nodes_doc.items():
        node_doc = _mapping(node_doc, f"node {node_id}")
        node = Node(parent, str(node_id))

        for name, value in _mapping(node_doc.get("fields"), f"fields of {node.path}").items():
            node.set_field(str(name), _convert(value, root))

        # an imported resource may live outside the environment of its stack
        env = _mapping(node_doc.get("env"), f"env of {node.path}")
        if env:
            resource_envs[node.path] = env

        required = node_doc.get("required") or []
        if not isinstance(required, list):
            raise DocumentError(f"'required' of {node.path} must be a list")
        if required:
            node.add_output_validation(_required_fields([str(r) for r in required]))

        targets = node_doc.get("targets") or []
        if not isinstance(targets, list):
            raise DocumentError(f"'targets' of {node.path} must be a list")
        if targets:
            pending_targets.append((node, [str(t) for t in targets]))

        _build_children(
            node,
            _mapping(node_doc.get("children"), f"children of {node.path}"),
            root,
            pending_targets,
            resource_envs,
        )


def _mapping(value: Any, what: str) -> Dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise DocumentError(f"Expected a mapping for {what}, got {type(value).__name__}")
    return value


def _convert(value: Any, root: Node) -> Any:
    if isinstance(value, str):
        match = REFERENCE_PATTERN.match(value)
        if match:
            return reference(root, match.group("target"))
        return value
    if isinstance(value, dict):
        return {k: _convert(v, root) for k, v in value.items()}
    if isinstance(value, list):
        return [_convert(v, root) for v in value]
    return value


def reference(root: Node, target: str) -> Deferred:
    """Deferred value reading ``<path>.<field>`` from the tree at synthesis time."""
    path, sep, field_name = target.rpartition(".")
    if not sep or not path or not field_name:
        raise DocumentError(f"Reference {target!r} must have the form <path>.<field>")
    # the producer may return another placeholder; resolution follows it
    return Lazy.any(lambda: root.find(path).get_field(field_name), display_hint=f"ref:{target}")


def _required_fields(names: List[str]):
    def validate(resolved: Dict[str, Any]) -> List[str]:
        # a field that is null, or resolves to None, is absent from the output
        return [f"Missing required field {name!r}" for name in names if name not in resolved]
    return validate


def _is_concrete(value: Any) -> bool:
    return value is not None and not is_unresolved(value)


def _bind_targets(root: Node, node: Node, target_paths: List[str], resource_envs: Dict[str, Dict[str, Any]]) -> None:
    rendered = []
    source_stack = Stack.of(node)
    for index, target_path in enumerate(target_paths):
        try:
            target = root.find(target_path)
        except KeyError as exc:
            raise DocumentError(f"Target {target_path!r} of {node.path} does not exist") from exc

        target_stack = Stack.of(target)
        env = resource_envs.get(target.path, {})
        target_account = env.get("account", target_stack.account)
        target_region = env.get("region", target_stack.region)

        cross = not (
            same_env_dimension(node, source_stack.account, target_account)
            and same_env_dimension(node, source_stack.region, target_region)
        )
        entry: Dict[str, Any] = {"path": target.path, "crossEnvironment": cross}
        if cross:
            if not _is_concrete(target_account):
                raise DocumentError(
                    f"{node.path}: a concrete account is required for the target stack "
                    "when using cross-account or cross-region targets"
                )
            if not _is_concrete(target_region):
                raise DocumentError(
                    f"{node.path}: a concrete region is required for the target stack "
                    "when using cross-account or cross-region targets"
                )
            if not _is_concrete(source_stack.account):
                raise DocumentError(
                    f"{node.path}: a concrete account is required for the source stack "
                    "when using cross-account or cross-region targets"
                )
            mirror = _mirror(node, target_stack, target_account, target_region, f"Target{index}")
            Annotations.of(node).add_info(f"Target {target_path} is in a different environment")
            entry["mirror"] = mirror.path
        rendered.append(entry)
    node.set_field("targets", rendered)


def _mirror(node: Node, target_stack: Stack, target_account: Any, target_region: Any, target_id: str) -> Node:
    """Create the node that mirrors ``node`` inside the target's stack.

    The mirror's fields read the source node's fields at synthesis time, so
    later changes to the source are reflected. The target must live in the
    environment of its own stack: there is no stack to put a mirror of an
    imported resource into.
    """
    if not (
        same_env_dimension(node, target_stack.account, target_account)
        and same_env_dimension(node, target_stack.region, target_region)
    ):
        raise DocumentError(
            f"{node.path}: cannot mirror into {target_stack.path} for a target in another environment "
            "(declare a stack with the environment of the target)"
        )

    mirror_id = f"{unique_id(node)}-{target_id}"
    mirror = target_stack.try_find_child(mirror_id)
    if mirror is None:
        mirror = Node(target_stack, mirror_id)
    for name in node.fields:
        if name == "targets":
            continue
        mirror.set_field(name, Lazy.any(lambda name=name: node.get_field(name), display_hint=f"mirror:{name}"))
    mirror.set_field("source", node.path)
    logger.debug(f"Mirrored {node.path} into {mirror.path}")
    return mirror
