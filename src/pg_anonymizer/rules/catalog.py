"""
Rule Catalog - compiled templates by table and column.

The catalog is built once from the nested rule structure

    {schema: {table: {column: template}}}

and looked up by qualified table name ("schema.table") and column name.
"""

import random
from types import MappingProxyType
from typing import Dict, Iterator, List, Mapping, Optional

from pg_anonymizer.logging_config import get_logger
from pg_anonymizer.rules.nodes import RuleNode
from pg_anonymizer.rules.parser import TemplateParser

logger = get_logger("rules.catalog")

RuleTree = Mapping[str, Mapping[str, Mapping[str, object]]]


def qualify(schema: str, table: str) -> str:
    """Build the catalog key for a table."""
    return f"{schema}.{table}"


class RuleCatalog:
    """
    Read-only mapping of qualified table name -> column -> compiled template.

    Usage:
        catalog = RuleCatalog.compile({"public": {"users": {"email": "{{HASH(1)}}"}}})
        rules = catalog.rules_for("public.users")
        rules["email"].apply("john@example.com", context)

    Attributes:
        warnings: Compilation warnings collected while building the catalog
    """

    def __init__(
        self,
        tables: Optional[Mapping[str, Mapping[str, RuleNode]]] = None,
        warnings: Optional[List[str]] = None,
    ):
        self._tables: Mapping[str, Mapping[str, RuleNode]] = MappingProxyType({
            table: MappingProxyType(dict(columns))
            for table, columns in (tables or {}).items()
        })
        self.warnings: List[str] = list(warnings or [])

    @classmethod
    def compile(cls, rules: RuleTree, seed: Optional[int] = None) -> "RuleCatalog":
        """
        Compile every template of a nested rule structure.

        Args:
            rules: Mapping schema -> table -> column -> raw template
            seed: Optional seed making every RAND/PICK node reproducible

        Returns:
            The compiled catalog
        """
        seed_source = random.Random(seed) if seed is not None else None
        parser = TemplateParser(seed_source)
        tables: Dict[str, Dict[str, RuleNode]] = {}

        for schema, schema_tables in rules.items():
            for table, columns in schema_tables.items():
                table_name = qualify(schema, table)
                compiled = tables.setdefault(table_name, {})
                for column, template in columns.items():
                    raw = "" if template is None else str(template)
                    compiled[column] = parser.parse(raw)
                    logger.info(f"Loaded rule for {table_name}.{column}: {raw}")

        return cls(tables, parser.warnings)

    def rules_for(self, table: str) -> Optional[Mapping[str, RuleNode]]:
        """Column rules of ``table``, or None if the table has no rules."""
        return self._tables.get(table)

    def get(self, table: str, column: str) -> Optional[RuleNode]:
        columns = self._tables.get(table)
        if columns is None:
            return None
        return columns.get(column)

    @property
    def tables(self) -> List[str]:
        return list(self._tables)

    @property
    def rule_count(self) -> int:
        return sum(len(columns) for columns in self._tables.values())

    def __contains__(self, table: str) -> bool:
        return table in self._tables

    def __iter__(self) -> Iterator[str]:
        return iter(self._tables)

    def __len__(self) -> int:
        return len(self._tables)
