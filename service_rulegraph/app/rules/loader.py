"""
Rule set decoding.

A rule set is a JSON list of rule groups::

    [{"id": "...", "skip_probability": 0.3,
      "rules": [{"operation": "equal", "left_side": "user.name", "right_side": "Pete"}]}]

Decoding is all-or-nothing: the first invalid group rejects the whole set.
"""

from pathlib import Path
from typing import Any, Hashable, List, Union

from pydantic import TypeAdapter, ValidationError

from shared.errors import MalformedRuleSetError, UnknownOperationError
from .models import Rule, RuleSpec, RulesNode, RulesNodeSpec
from .resolver import load_json

_RULE_SET_ADAPTER = TypeAdapter(List[RulesNodeSpec])
_RULES_ADAPTER = TypeAdapter(List[RuleSpec])


def _build_rules(specs: List[RuleSpec]) -> List[Rule]:
    return [
        Rule(operation=spec.operation, left_side=spec.left_side, right_side=spec.right_side)
        for spec in specs
    ]


def rules_from_records(records: Any) -> List[RulesNode]:
    """Build rule groups from an already-decoded list of records."""
    try:
        specs = _RULE_SET_ADAPTER.validate_python(records)
    except ValidationError as e:
        raise MalformedRuleSetError(
            "Rule set does not match the expected schema",
            details={"error": str(e)}
        ) from e

    rule_nodes: List[RulesNode] = []
    for index, spec in enumerate(specs):
        try:
            rule_nodes.append(RulesNode(
                id=spec.id,
                rules=_build_rules(spec.rules),
                skip_probability=spec.skip_probability
            ))
        except UnknownOperationError as e:
            raise MalformedRuleSetError(
                e.message,
                details={**e.details, "index": index, "id": spec.id}
            ) from e
        except MalformedRuleSetError as e:
            e.details.setdefault("index", index)
            raise

    return rule_nodes


def rules_from_string(rstring: Union[str, bytes]) -> List[RulesNode]:
    """Build rule groups from a JSON encoded rule set."""
    try:
        records = load_json(rstring)
    except ValueError as e:
        raise MalformedRuleSetError(
            "Rule set is not valid JSON",
            details={"error": str(e)}
        ) from e

    return rules_from_records(records)


def rules_from_file(path: Union[str, Path]) -> List[RulesNode]:
    """Build rule groups from a JSON rule set file."""
    try:
        content = Path(path).read_text(encoding="utf-8")
    except OSError as e:
        raise MalformedRuleSetError(
            f"Cannot read rule set file {path}",
            details={"error": str(e)}
        ) from e

    return rules_from_string(content)


def new_rules_node(id: Hashable, rules_json: Union[str, bytes], skip_probability: float) -> RulesNode:
    """Build one rule group from its ID, a JSON encoded rule list and a skip probability."""
    try:
        specs = _RULES_ADAPTER.validate_json(rules_json)
    except ValidationError as e:
        raise MalformedRuleSetError(
            "Rules do not match the expected schema",
            details={"error": str(e), "id": str(id)}
        ) from e

    try:
        rules = _build_rules(specs)
    except UnknownOperationError as e:
        raise MalformedRuleSetError(e.message, details={**e.details, "id": str(id)}) from e

    return RulesNode(id=id, rules=rules, skip_probability=skip_probability)
