"""
Unit Tests for Domain Models
============================

KeyPath parsing/formatting and Edit/EditScript validation.
"""

import pytest
from pydantic import ValidationError

from core.domain.models import Edit, EditOp, EditScript, KeyPath


class TestKeyPath:
    """Textual key paths."""

    def test_parse_simple(self):
        assert KeyPath.parse("a.b.c").keys == ("a", "b", "c")

    def test_digit_segments_become_ints(self):
        assert KeyPath.parse("users.0.name").keys == ("users", 0, "name")
        assert KeyPath.parse("v-1.x1").keys == ("v-1", "x1")

    def test_escaped_separator(self):
        assert KeyPath.parse(r"hosts.example\.com.port").keys == ("hosts", "example.com", "port")

    def test_escaped_backslash(self):
        assert KeyPath.parse("a\\\\.b").keys == ("a\\", "b")

    def test_custom_separator(self):
        assert KeyPath.parse("a/b.c/0", separator="/").keys == ("a", "b.c", 0)

    def test_empty_segments_are_kept(self):
        assert KeyPath.parse("a..b").keys == ("a", "", "b")

    def test_empty_text_rejected(self):
        with pytest.raises(ValueError):
            KeyPath.parse("")

    def test_format_round_trip(self):
        path = KeyPath(keys=("hosts", "example.com", 0))
        text = path.format()
        assert text == r"hosts.example\.com.0"
        assert KeyPath.parse(text) == path

    def test_of_normalises_inputs(self):
        assert KeyPath.of("a.b").keys == ("a", "b")
        assert KeyPath.of(["a", 1]).keys == ("a", 1)
        assert KeyPath.of(3).keys == (3,)
        existing = KeyPath(keys=("x",))
        assert KeyPath.of(existing) is existing

    def test_parent_and_leaf(self):
        path = KeyPath.parse("a.b.c")
        assert path.parent == ("a", "b")
        assert path.leaf == "c"

    def test_is_frozen(self):
        path = KeyPath.parse("a")
        with pytest.raises(ValidationError):
            path.keys = ("b",)

    def test_empty_keys_rejected(self):
        with pytest.raises(ValidationError):
            KeyPath(keys=())


class TestEdit:
    """Edit validation per operation."""

    def test_assoc_in_requires_path(self):
        with pytest.raises(ValidationError):
            Edit(op="assoc_in", value=1)

    def test_update_in_requires_fn(self):
        with pytest.raises(ValidationError):
            Edit(op="update_in", path="a.b")

    def test_dissoc_requires_keys(self):
        with pytest.raises(ValidationError):
            Edit(op="dissoc")

    def test_merge_requires_mapping(self):
        with pytest.raises(ValidationError):
            Edit(op="merge", value=[1, 2])

    def test_unknown_fields_rejected(self):
        with pytest.raises(ValidationError):
            Edit(op="assoc_in", path="a", value=1, extra=True)

    def test_empty_path_rejected(self):
        with pytest.raises(ValidationError):
            Edit(op="assoc_in", path="", value=1)

    def test_key_path_from_text_and_list(self):
        assert Edit(op="dissoc_in", path="a.0").key_path().keys == ("a", 0)
        assert Edit(op="dissoc_in", path=["a", "0"]).key_path().keys == ("a", "0")

    def test_describe(self):
        assert Edit(op=EditOp.DISSOC, keys=["a", "b"]).describe() == "dissoc a, b"
        assert Edit(op="assoc_in", path=["a", 1], value=0).describe() == "assoc_in a.1"
        assert Edit(op="merge", value={}).describe() == "merge"


class TestEditScript:
    def test_validates_nested_edits(self):
        script = EditScript.model_validate(
            {
                "description": "bump",
                "edits": [
                    {"op": "assoc_in", "path": "a.b", "value": 1},
                    {"op": "update_in", "path": "n", "fn": "inc"},
                ],
            }
        )
        assert [e.op for e in script.edits] == [EditOp.ASSOC_IN, EditOp.UPDATE_IN]

    def test_invalid_op(self):
        with pytest.raises(ValidationError):
            EditScript.model_validate({"edits": [{"op": "explode"}]})
