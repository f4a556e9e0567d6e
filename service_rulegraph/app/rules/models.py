"""
Rule data models for the Rule Graph service.
"""

import math
import random
from typing import Any, Dict, Hashable, List, Optional, Protocol, Tuple
from dataclasses import dataclass, field

from pydantic import BaseModel, Field

from shared.errors import MalformedRuleSetError, RuleGraphException
from shared.logging import get_logger
from .comparator import Operation, compare
from .resolver import ABSENT, parse_document, resolve_value

MIN_PROBABILITY = 0.0
MAX_PROBABILITY = 1.0

logger = get_logger("rulegraph.rules")


class RandomSource(Protocol):
    """Anything that draws uniform samples in [0, 1), e.g. random.Random."""

    def random(self) -> float:
        ...


@dataclass(frozen=True)
class Rule:
    """Comparison between the value at a document path and a literal."""
    operation: Operation
    left_side: str
    right_side: str

    def __post_init__(self):
        object.__setattr__(self, "operation", Operation.parse(self.operation))

    def evaluate(self, tree: Any) -> bool:
        """
        Evaluate the rule against a parsed document.

        A missing left side never matches and never reaches the comparator.
        """
        value = resolve_value(tree, self.left_side)
        if value is ABSENT:
            return False

        return compare(self.operation, value, self.right_side)

    def to_dict(self) -> Dict[str, str]:
        return {
            "operation": self.operation.value,
            "left_side": self.left_side,
            "right_side": self.right_side,
        }


@dataclass(frozen=True)
class RulesNode:
    """
    Identified group of rules that must all match.

    A group that matches is still suppressed with probability
    ``skip_probability``.
    """
    id: Hashable
    rules: Tuple[Rule, ...] = ()
    skip_probability: float = 0.0

    def __post_init__(self):
        object.__setattr__(self, "rules", tuple(self.rules))

        probability = self.skip_probability
        if (
            isinstance(probability, bool)
            or not isinstance(probability, (int, float))
            or math.isnan(probability)
            or not MIN_PROBABILITY <= probability <= MAX_PROBABILITY
        ):
            raise MalformedRuleSetError(
                f"skip_probability should be within [0, 1], got {probability}",
                details={"id": str(self.id), "skip_probability": str(probability)}
            )

        for rule in self.rules:
            if not isinstance(rule, Rule):
                raise MalformedRuleSetError(
                    f"Rule group {self.id} contains a non-rule entry",
                    details={"id": str(self.id), "entry_type": type(rule).__name__}
                )

    def evaluate(self, document: Any, rng: Optional[RandomSource] = None) -> bool:
        """Evaluate the group against a raw or parsed document."""
        return self.evaluate_tree(parse_document(document), rng)

    def evaluate_tree(self, tree: Any, rng: Optional[RandomSource] = None) -> bool:
        """Evaluate the group against a parsed document."""
        for rule in self.rules:
            if not rule.evaluate(tree):
                return False

        # flip the coin based on the group's skip probability
        if rng is None:
            rng = random.Random()
        draw = rng.random()

        if self.skip_probability > draw:
            logger.debug(
                "Rule group skipped",
                rule_group_id=str(self.id),
                skip_probability=self.skip_probability,
                draw=draw
            )
            return False

        return True

    def to_spec(self) -> "RulesNodeSpec":
        return RulesNodeSpec(
            id=str(self.id),
            rules=[RuleSpec(**rule.to_dict()) for rule in self.rules],
            skip_probability=self.skip_probability
        )


@dataclass
class EvaluationResult:
    """Result of evaluating a rule graph against one document."""
    matched_ids: List[Any] = field(default_factory=list)
    error: Optional[RuleGraphException] = None
    evaluation_time_ms: float = 0.0

    @property
    def ok(self) -> bool:
        return self.error is None


class RuleSpec(BaseModel):
    """Encoded rule as found in rule sets."""
    operation: str = Field(..., description="Comparison operation")
    left_side: str = Field(..., description="Dotted path into the document")
    right_side: str = Field(..., description="Literal compared with the document value")


class RulesNodeSpec(BaseModel):
    """Encoded rule group as found in rule sets."""
    id: str = Field(..., description="Rule group ID")
    rules: List[RuleSpec] = Field(default_factory=list, description="Rules, all of which must match")
    skip_probability: float = Field(0.0, description="Probability of suppressing a match")


class EvaluationResponse(BaseModel):
    """Response model for document evaluation."""
    matched_ids: List[str] = Field(default_factory=list, description="IDs of matching rule groups")
    evaluation_time_ms: float = Field(0.0, description="Evaluation time in milliseconds")


class RuleSetResponse(BaseModel):
    """Response model for the loaded rule set."""
    rule_groups: List[RulesNodeSpec]
    total: int


class RuleSetLoadResponse(BaseModel):
    """Response model for rule set replacement."""
    success: bool
    rule_groups: int
    rules: int
