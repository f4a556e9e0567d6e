"""
Rule Graph service.
"""

import random
import time
from datetime import datetime
from typing import Optional

from fastapi import Request

from shared.base_service import BaseService
from shared.config import ServiceConfig
from shared.errors import MalformedInputError, MalformedRuleSetError, RuleGraphException

from .rules.engine import RuleGraph
from .rules.models import EvaluationResponse, RuleSetLoadResponse, RuleSetResponse


class RuleGraphService(BaseService):
    """Rule graph service implementation."""

    def __init__(self, config: Optional[ServiceConfig] = None):
        super().__init__("rulegraph", 8020, config)

        self.rule_graph = RuleGraph()

        # Shared generator only when a seed is configured; otherwise each
        # group evaluation draws from a fresh generator
        self.rng = random.Random(self.config.skip_seed) if self.config.skip_seed is not None else None

        if self.config.ruleset_file:
            self.rule_graph.load_rules_from_file(self.config.ruleset_file)
            self.metrics.record_ruleset_load("ok", len(self.rule_graph.rule_nodes))
            self.logger.info(
                "Rule set loaded at startup",
                path=self.config.ruleset_file,
                rule_groups=len(self.rule_graph.rule_nodes)
            )

        self._setup_rulegraph_routes()

    def _setup_rulegraph_routes(self):
        """Set up rule graph specific routes."""

        @self.app.get("/")
        async def root():
            """Root endpoint."""
            return {
                "service": "rulegraph",
                "message": "Rule Graph - JSON document classification",
                "version": "1.0.0",
                "capabilities": ["evaluate", "bulk_load", "skip_probability"]
            }

        @self.app.post("/rulegraph/evaluate", response_model=EvaluationResponse)
        async def evaluate(request: Request):
            """Evaluate the posted JSON document against the loaded rule set."""
            body = await request.body()
            start_time = time.time()

            try:
                matched_ids = self.rule_graph.evaluate(body, self.rng)
            except MalformedInputError:
                self.metrics.record_evaluation("malformed_input", 0, time.time() - start_time)
                raise
            except RuleGraphException as e:
                self.metrics.record_evaluation("error", len(e.matched_ids), time.time() - start_time)
                e.details["matched_ids"] = [str(i) for i in e.matched_ids]
                raise

            duration = time.time() - start_time
            self.metrics.record_evaluation("ok", len(matched_ids), duration)

            return EvaluationResponse(
                matched_ids=[str(i) for i in matched_ids],
                evaluation_time_ms=duration * 1000
            )

        @self.app.put("/rulegraph/rules", response_model=RuleSetLoadResponse)
        async def replace_rules(request: Request):
            """Replace the whole rule set."""
            body = await request.body()

            try:
                self.rule_graph.load_rules_from_string(body)
            except MalformedRuleSetError:
                self.metrics.record_ruleset_load("rejected")
                raise

            rule_nodes = self.rule_graph.rule_nodes
            self.metrics.record_ruleset_load("ok", len(rule_nodes))

            return RuleSetLoadResponse(
                success=True,
                rule_groups=len(rule_nodes),
                rules=sum(len(node.rules) for node in rule_nodes)
            )

        @self.app.get("/rulegraph/rules", response_model=RuleSetResponse)
        async def get_rules():
            """Get the loaded rule set in its encoded form."""
            rule_nodes = self.rule_graph.rule_nodes
            return RuleSetResponse(
                rule_groups=[node.to_spec() for node in rule_nodes],
                total=len(rule_nodes)
            )

        @self.app.get("/rulegraph/stats")
        async def get_stats():
            """Get rule graph service statistics."""
            return {
                "engine": self.rule_graph.get_engine_stats(),
                "seeded": self.rng is not None,
                "timestamp": datetime.now().isoformat()
            }

    async def _check_dependencies(self):
        """Report whether a rule set is loaded."""
        return {
            "ruleset": "empty" if self.rule_graph.is_ruleset_empty() else "loaded"
        }


def create_app(config: Optional[ServiceConfig] = None):
    """Create rule graph service application."""
    service = RuleGraphService(config)
    return service.app


if __name__ == "__main__":
    service = RuleGraphService()
    service.run()
