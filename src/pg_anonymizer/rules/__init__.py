"""
Rule engine for the PostgreSQL dump anonymizer.

This package contains the template language:
- nodes: Rule node kinds and their evaluation
- context: Per-row view of original column values
- parser: Template compilation
- catalog: Compiled rules by table and column
"""

from pg_anonymizer.rules.catalog import RuleCatalog, qualify
from pg_anonymizer.rules.context import RowContext
from pg_anonymizer.rules.nodes import RuleKind, RuleNode
from pg_anonymizer.rules.parser import TemplateParser, parse_template

__all__ = [
    "RuleCatalog",
    "RowContext",
    "RuleKind",
    "RuleNode",
    "TemplateParser",
    "parse_template",
    "qualify",
]
