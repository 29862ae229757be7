"""Environment (account/region) comparisons built on the token comparator."""

from typing import Any

from .tokens import TokenComparison, compare
from .tree import Annotations, Node, Stack

UNRESOLVED_ENVIRONMENT_WARNING = "synthkit:unresolvedEnvironment"


def same_env_dimension(node: Node, dim1: Any, dim2: Any) -> bool:
    """Whether two accounts (or two regions) are probably the same.

    Unresolved dimensions are assumed to be the "current" account or region.
    When only one side is unresolved the answer cannot be known, so a warning
    is attached to ``node`` and the dimensions are still treated as equal.
    """
    comparison = compare(dim1, dim2)
    if comparison is TokenComparison.ONE_UNRESOLVED:
        Annotations.of(node).add_warning(
            UNRESOLVED_ENVIRONMENT_WARNING,
            "Either the source or the target has an unresolved environment. "
            "If they are used in a cross-environment setup you need to specify the environment for both.",
        )
        return True
    if comparison in (TokenComparison.BOTH_UNRESOLVED, TokenComparison.SAME):
        return True
    return False


def same_environment(stack_a: Stack, stack_b: Stack) -> bool:
    """Whether two stacks deploy to the same account and region.

    Unlike ``same_env_dimension``, a dimension that is unresolved on only one
    side counts as a different environment.
    """
    if stack_a is stack_b:
        return True
    accepted = (TokenComparison.SAME, TokenComparison.BOTH_UNRESOLVED)
    return (
        compare(stack_a.region, stack_b.region) in accepted
        and compare(stack_a.account, stack_b.account) in accepted
    )


def is_cross_environment(node: Node, target: Node) -> bool:
    """Whether ``target`` lives in a different account or region than ``node``."""
    source_stack = Stack.of(node)
    target_stack = Stack.of(target)
    return not (
        same_env_dimension(node, source_stack.account, target_stack.account)
        and same_env_dimension(node, source_stack.region, target_stack.region)
    )
