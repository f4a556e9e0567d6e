"""
Rule graph package.

Evaluates groups of declarative comparison rules against JSON documents and
reports which groups match.

Modules of interest:
- resolver: Dotted path lookup, document parsing, nullable unwrapping.
- comparator: Operations and the type coercion used to compare values.
- models: Rule, RulesNode and the encoded rule set models.
- loader: Fail-atomic decoding of rule sets.
- engine: RuleGraph, the top-level evaluator.
"""

from .comparator import Operation, compare
from .engine import RuleGraph
from .loader import new_rules_node, rules_from_records, rules_from_string
from .models import EvaluationResult, Rule, RulesNode
from .resolver import ABSENT, parse_document, resolve_path

__all__ = [
    "ABSENT",
    "EvaluationResult",
    "Operation",
    "Rule",
    "RuleGraph",
    "RulesNode",
    "compare",
    "new_rules_node",
    "parse_document",
    "resolve_path",
    "rules_from_records",
    "rules_from_string",
]
