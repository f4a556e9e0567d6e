"""
Rule graph evaluation engine.
"""

import threading
import time
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from shared.logging import get_logger
from shared.errors import MalformedRuleSetError, RuleGraphException
from .loader import rules_from_file, rules_from_records, rules_from_string
from .models import EvaluationResult, RandomSource, RulesNode
from .resolver import parse_document


class RuleGraph:
    """
    Ordered collection of rule groups evaluated against JSON documents.

    The rule set is only ever replaced as a whole. Evaluations read the
    current tuple of groups once, so a concurrent replacement is seen either
    entirely or not at all.
    """

    def __init__(self, rule_nodes: Optional[Iterable[RulesNode]] = None):
        self.logger = get_logger("rulegraph.engine")
        self._lock = threading.Lock()
        self._rule_nodes: Tuple[RulesNode, ...] = self._check_nodes(rule_nodes or ())
        self._loaded_at: Optional[float] = time.time() if self._rule_nodes else None

    @staticmethod
    def _check_nodes(rule_nodes: Iterable[RulesNode]) -> Tuple[RulesNode, ...]:
        nodes = tuple(rule_nodes)
        for index, node in enumerate(nodes):
            if not isinstance(node, RulesNode):
                raise MalformedRuleSetError(
                    "Rule set entries must be rule groups",
                    details={"index": index, "entry_type": type(node).__name__}
                )
        return nodes

    @property
    def rule_nodes(self) -> Tuple[RulesNode, ...]:
        """Snapshot of the loaded rule groups."""
        return self._rule_nodes

    def replace_rules(self, rule_nodes: Iterable[RulesNode]) -> None:
        """Replace the whole rule set."""
        nodes = self._check_nodes(rule_nodes)

        with self._lock:
            self._rule_nodes = nodes
            self._loaded_at = time.time()

        self.logger.info(
            "Rule set replaced",
            rule_groups=len(nodes),
            rules=sum(len(node.rules) for node in nodes)
        )

    def load_rules_from_string(self, rstring: Union[str, bytes]) -> None:
        """
        Replace the rule set with one encoded as JSON.

        The current rule set is kept if the input is malformed.
        """
        try:
            rule_nodes = rules_from_string(rstring)
        except MalformedRuleSetError as e:
            self.logger.warning("Rule set rejected", error=e.message, details=e.details)
            raise

        self.replace_rules(rule_nodes)

    def load_rules_from_records(self, records: Any) -> None:
        """Replace the rule set with one given as decoded records."""
        try:
            rule_nodes = rules_from_records(records)
        except MalformedRuleSetError as e:
            self.logger.warning("Rule set rejected", error=e.message, details=e.details)
            raise

        self.replace_rules(rule_nodes)

    def load_rules_from_file(self, path: Union[str, Path]) -> None:
        """Replace the rule set with the content of a JSON file."""
        try:
            rule_nodes = rules_from_file(path)
        except MalformedRuleSetError as e:
            self.logger.warning("Rule set rejected", path=str(path), error=e.message)
            raise

        self.replace_rules(rule_nodes)

    def is_ruleset_empty(self) -> bool:
        """Whether no rule groups are loaded."""
        return len(self._rule_nodes) == 0

    def evaluate(self, document: Any, rng: Optional[RandomSource] = None) -> List[Any]:
        """
        Return the IDs of the rule groups matching a document, in rule set order.

        The document may be raw JSON (bytes or str) or an already parsed tree.
        A rule error aborts the evaluation; the IDs matched before the failing
        group are attached to the raised exception as ``matched_ids``.
        """
        rule_nodes = self._rule_nodes
        tree = parse_document(document)

        matched_ids: List[Any] = []
        for rule_node in rule_nodes:
            try:
                result = rule_node.evaluate_tree(tree, rng)
            except RuleGraphException as e:
                e.matched_ids = list(matched_ids)
                self.logger.warning(
                    "Rule graph evaluation aborted",
                    rule_group_id=str(rule_node.id),
                    code=e.code,
                    error=e.message,
                    matched=len(matched_ids)
                )
                raise

            if result:
                matched_ids.append(rule_node.id)

        self.logger.debug(
            "Rule graph evaluated",
            rule_groups=len(rule_nodes),
            matched=len(matched_ids)
        )

        return matched_ids

    def evaluate_result(self, document: Any, rng: Optional[RandomSource] = None) -> EvaluationResult:
        """Evaluate a document, returning partial matches and the error instead of raising."""
        start_time = time.time()

        try:
            matched_ids = self.evaluate(document, rng)
            error = None
        except RuleGraphException as e:
            matched_ids = e.matched_ids
            error = e

        return EvaluationResult(
            matched_ids=matched_ids,
            error=error,
            evaluation_time_ms=(time.time() - start_time) * 1000
        )

    def get_engine_stats(self) -> Dict[str, Any]:
        """Get engine statistics."""
        rule_nodes = self._rule_nodes
        return {
            "total_rule_groups": len(rule_nodes),
            "total_rules": sum(len(node.rules) for node in rule_nodes),
            "probabilistic_rule_groups": len([n for n in rule_nodes if n.skip_probability > 0]),
            "operations": sorted({rule.operation.value for node in rule_nodes for rule in node.rules}),
            "loaded_at": self._loaded_at,
        }
