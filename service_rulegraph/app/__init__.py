"""
Rule Graph service package.

This package classifies JSON documents: it evaluates groups of declarative
comparison rules against a document and returns the IDs of the groups that
match. It provides:

- app.main: API surface for evaluation, bulk rule set replacement and health.
- app.rules: Rule model, path resolution, comparison and the graph engine.

Guidelines:
- Evaluation is in-memory and synchronous; no I/O happens per document.
- Rule sets are replaced wholesale, never edited in place.
- Rule errors abort an evaluation; they are never reported as non-matches.
"""
