"""Tests for the configuration tree."""

import hashlib

import pytest

from synthkit.errors import TreeError
from synthkit.tokens import is_unresolved
from synthkit.tree import AnnotationLevel, Annotations, Node, Stack, unique_id


@pytest.fixture
def root():
    return Node(None, "App")


class TestNode:
    """Test node construction and lookup."""

    def test_paths(self, root):
        stack = Node(root, "Stack")
        bucket = Node(stack, "Bucket")
        assert root.path == ""
        assert stack.path == "Stack"
        assert bucket.path == "Stack/Bucket"
        assert bucket.root is root

    def test_children_keep_insertion_order(self, root):
        for name in ("b", "a", "c"):
            Node(root, name)
        assert [c.id for c in root.children] == ["b", "a", "c"]

    def test_duplicate_ids_rejected(self, root):
        Node(root, "Queue")
        with pytest.raises(TreeError, match="already a node"):
            Node(root, "Queue")

    def test_separator_in_id_rejected(self, root):
        with pytest.raises(TreeError):
            Node(root, "a/b")

    def test_empty_id_only_for_root(self, root):
        Node(None, "")
        with pytest.raises(TreeError):
            Node(root, "")

    def test_find(self, root):
        bucket = Node(Node(root, "Stack"), "Bucket")
        assert root.find("Stack/Bucket") is bucket
        assert root.try_find_child("Missing") is None
        with pytest.raises(KeyError):
            root.find("Stack/Missing")

    def test_find_all_is_pre_order(self, root):
        a = Node(root, "a")
        Node(a, "a1")
        Node(root, "b")
        assert [n.path for n in root.find_all()] == ["", "a", "a/a1", "b"]

    def test_fields(self, root):
        node = Node(root, "Rule")
        node.set_field("name", "nightly")
        assert node.get_field("name") == "nightly"
        assert node.fields == {"name": "nightly"}
        with pytest.raises(KeyError):
            node.get_field("schedule")
        with pytest.raises(TreeError):
            node.set_field("", 1)

    def test_validations_collect_messages(self, root):
        node = Node(root, "Rule")
        node.add_validation(lambda: ["first"])
        node.add_validation(lambda: [])
        node.add_validation(lambda: ["second", "third"])
        assert node.validate() == ["first", "second", "third"]

    def test_output_validations_see_resolved_fields(self, root):
        node = Node(root, "Rule")
        node.add_output_validation(lambda resolved: [] if "schedule" in resolved else ["no schedule"])
        assert node.validate({"schedule": "rate(1 hour)"}) == []
        assert node.validate({}) == ["no schedule"]
        assert node.validate() == ["no schedule"]


class TestAnnotations:
    """Test annotations attached to nodes."""

    def test_warning_recorded_once_per_id(self, root):
        node = Node(root, "Rule")
        Annotations.of(node).add_warning("w:1", "first")
        Annotations.of(node).add_warning("w:1", "again")
        Annotations.of(node).add_warning("w:2", "other")
        warnings = [a for a in node.annotations if a.level is AnnotationLevel.WARNING]
        assert [a.annotation_id for a in warnings] == ["w:1", "w:2"]
        assert warnings[0].message == "first"
        assert warnings[0].path == "Rule"

    def test_levels(self, root, caplog):
        node = Node(root, "Rule")
        with caplog.at_level("INFO", logger="synthkit.tree"):
            Annotations.of(node).add_info("hello")
            Annotations.of(node).add_error("broken")
        assert [a.level for a in node.annotations] == [AnnotationLevel.INFO, AnnotationLevel.ERROR]
        assert "broken" in caplog.text


class TestStack:
    """Test stacks and their environments."""

    def test_default_environment_is_unresolved(self, root):
        stack = Stack(root, "Agnostic")
        assert is_unresolved(stack.account)
        assert is_unresolved(stack.region)

    def test_explicit_environment(self, root):
        stack = Stack(root, "Prod", account="111111111111", region="us-east-1")
        assert stack.account == "111111111111"
        assert stack.region == "us-east-1"
        assert stack.get_field("environment") == {"account": "111111111111", "region": "us-east-1"}

    def test_stack_name(self, root):
        assert Stack(root, "Prod").stack_name == "Prod"
        assert Stack(root, "Named", stack_name="custom").stack_name == "custom"

    def test_stack_of(self, root):
        stack = Stack(root, "Prod")
        deep = Node(Node(stack, "Group"), "Rule")
        assert Stack.of(deep) is stack
        assert Stack.of(stack) is stack
        with pytest.raises(TreeError):
            Stack.of(Node(root, "Loose"))


class TestUniqueId:
    """Test derivation of unique ids from node paths."""

    def test_single_component(self, root):
        assert unique_id(Node(root, "My-Stack")) == "MyStack"

    def test_multi_component(self, root):
        node = Node(Node(root, "Stack"), "Bucket")
        digest = hashlib.md5(b"Stack/Bucket").hexdigest()[:8].upper()
        assert unique_id(node) == "StackBucket" + digest

    def test_default_components_skipped(self):
        a = Node(None, "App")
        with_default = Node(Node(Node(a, "Stack"), "Default"), "Bucket")
        b = Node(None, "App")
        without_default = Node(Node(b, "Stack"), "Bucket")
        assert unique_id(with_default) == unique_id(without_default)

    def test_repeated_components_collapsed(self, root):
        node = Node(Node(root, "Stack"), "Stack")
        assert unique_id(node).startswith("Stack")
        assert not unique_id(node).startswith("StackStack")

    def test_root_has_no_unique_id(self, root):
        with pytest.raises(TreeError):
            unique_id(root)
