"""
Unit tests for rule set decoding.
"""

import json
import uuid

import pytest

from shared.errors import MalformedRuleSetError
from service_rulegraph.app.rules.comparator import Operation
from service_rulegraph.app.rules.loader import (
    new_rules_node, rules_from_file, rules_from_records, rules_from_string
)


class TestRulesFromString:
    """Test cases for rules_from_string."""

    def test_decodes_rule_set(self):
        """Test decoding a rule set string."""
        rules = """[{
            "id": "d8212113-3732-42de-bc40-be63b89d7864",
            "skip_probability": 0.3,
            "rules": [
                {
                    "operation": "greater_than",
                    "left_side": "person.born_at",
                    "right_side": "2012-01-01"
                }]
            }
        ]"""

        ruleset = rules_from_string(rules)

        assert len(ruleset) == 1
        assert ruleset[0].id == "d8212113-3732-42de-bc40-be63b89d7864"
        assert ruleset[0].skip_probability == pytest.approx(0.3)
        assert len(ruleset[0].rules) == 1
        assert ruleset[0].rules[0].operation is Operation.GREATER_THAN

    def test_decodes_bytes(self):
        """Test decoding an encoded rule set."""
        ruleset = rules_from_string(b'[{"id": "a", "rules": []}]')

        assert [node.id for node in ruleset] == ["a"]

    def test_defaults(self):
        """Test missing rules and skip probability default to empty and zero."""
        ruleset = rules_from_string('[{"id": "a"}]')

        assert ruleset[0].rules == ()
        assert ruleset[0].skip_probability == 0.0

    def test_unknown_fields_are_ignored(self):
        """Test extra fields in records are ignored."""
        ruleset = rules_from_string(
            '[{"id": "a", "created_at": "2022-11-10", "rules": []}]'
        )

        assert len(ruleset) == 1

    def test_empty_rule_set(self):
        """Test an empty rule set."""
        assert rules_from_string("[]") == []

    @pytest.mark.parametrize("raw", ["", "[{", "not json", b"\xff"])
    def test_malformed_json(self, raw):
        """Test undecodable input."""
        with pytest.raises(MalformedRuleSetError) as exc_info:
            rules_from_string(raw)

        assert exc_info.value.code == "MALFORMED_RULE_SET"

    @pytest.mark.parametrize("records", [
        {"id": "a", "rules": []},
        [{"rules": []}],
        [{"id": "a", "rules": [{"operation": "equal", "left_side": "a.b"}]}],
        [{"id": "a", "rules": [{"operation": "equal", "left_side": "a.b", "right_side": 10}]}],
        [{"id": "a", "rules": {}}],
        [{"id": "a", "skip_probability": "often"}],
        ["a"],
    ])
    def test_schema_mismatch(self, records):
        """Test records that do not match the rule set schema."""
        with pytest.raises(MalformedRuleSetError):
            rules_from_string(json.dumps(records))

    @pytest.mark.parametrize("probability", [1.5, -0.5])
    def test_out_of_range_skip_probability(self, probability):
        """Test skip probabilities outside [0, 1] reject the whole set."""
        raw = '[{"id": "a"}, {"id": "b", "skip_probability": %s}]' % probability

        with pytest.raises(MalformedRuleSetError) as exc_info:
            rules_from_string(raw)

        assert exc_info.value.details["index"] == 1
        assert exc_info.value.details["id"] == "b"

    @pytest.mark.parametrize("token", ["NaN", "Infinity", "-Infinity"])
    def test_non_standard_constants_rejected(self, token):
        """Test NaN and Infinity tokens make the rule set malformed."""
        raw = '[{"id": "a", "skip_probability": %s}]' % token

        with pytest.raises(MalformedRuleSetError) as exc_info:
            rules_from_string(raw)

        assert "index" not in exc_info.value.details

    def test_unknown_operation(self):
        """Test unknown operations reject the whole set."""
        records = [
            {"id": "a", "rules": []},
            {"id": "b", "rules": [{"operation": "contains", "left_side": "a", "right_side": "b"}]},
        ]

        with pytest.raises(MalformedRuleSetError) as exc_info:
            rules_from_records(records)

        assert exc_info.value.details["index"] == 1
        assert exc_info.value.details["operation"] == "contains"


class TestNewRulesNode:
    """Test cases for new_rules_node."""

    def test_builds_node(self):
        """Test building a node from explicit parameters."""
        node_id = uuid.uuid4()
        rules = """[{
            "operation": "greater_than",
            "left_side": "person.born_at",
            "right_side": "2012-01-01"
        },
        {
            "operation": "equal",
            "left_side": "person.born_at",
            "right_side": "2022-11-10 23:00:00 +0000 UTC"
        }]"""

        node = new_rules_node(node_id, rules, 0.4)

        assert node.id == node_id
        assert node.skip_probability == 0.4
        assert len(node.rules) == 2
        assert node.rules[0].operation is Operation.GREATER_THAN
        assert node.rules[0].left_side == "person.born_at"
        assert node.rules[0].right_side == "2012-01-01"

    def test_malformed_rules(self):
        """Test undecodable rule lists."""
        with pytest.raises(MalformedRuleSetError):
            new_rules_node("a", "[{", 0)

    def test_unknown_operation(self):
        """Test unknown operations are rejected."""
        with pytest.raises(MalformedRuleSetError) as exc_info:
            new_rules_node("a", '[{"operation": "like", "left_side": "x", "right_side": "y"}]', 0)

        assert exc_info.value.details["id"] == "a"

    def test_out_of_range_skip_probability(self):
        """Test the skip probability is validated."""
        with pytest.raises(MalformedRuleSetError):
            new_rules_node("a", "[]", 2.0)


def test_rules_from_file(tmp_path):
    """Test reading a rule set file."""
    path = tmp_path / "rules.json"
    path.write_text('[{"id": "a", "rules": []}]', encoding="utf-8")

    assert [node.id for node in rules_from_file(path)] == ["a"]
    assert [node.id for node in rules_from_file(str(path))] == ["a"]
