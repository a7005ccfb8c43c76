"""
PG Anonymizer - Anonymize PostgreSQL plain-text dump files.

This package rewrites the data rows of ``COPY ... FROM stdin`` blocks
according to per-table, per-column template rules while every other line of
the dump passes through unchanged.

Basic Usage:
    from pg_anonymizer import anonymize_dump

    result = anonymize_dump(
        rules_file=Path("rules.yaml"),
        input_file=Path("dump.sql"),
        output_file=Path("anonymized.sql"),
    )

    # Or with the building blocks
    catalog = RuleCatalog.compile({"public": {"users": {"email": "{{HASH(42)}}@anon.test"}}})
    processor = DumpProcessor(catalog)
    result = processor.process_stream(source, sink)

Rule file (YAML):
    rules:
      public:
        users:
          - email: "{{HASH(42)}}@anon.test"
          - phone: "+1-555-{{RAND(1000, 9999)}}"

Command-Line Usage:
    pg-anonymize -c rules.yaml -i dump.sql -o anonymized.sql
    pg-anonymize -c rules.yaml -i dump.sql -o anonymized.sql --seed 42 --verbose
"""

__version__ = "1.0.0"
__author__ = "PG Anonymizer Team"

from pg_anonymizer.exceptions import (
    AnonymizerError,
    ConfigError,
    DumpIOError,
    RuleFileError,
)

from pg_anonymizer.config import Config, create_default_config, load_rule_file
from pg_anonymizer.core.processor import DumpProcessor, ProcessingResult
from pg_anonymizer.main import (
    AnonymizationPipeline,
    AnonymizationResult,
    anonymize_dump,
)
from pg_anonymizer.rules.catalog import RuleCatalog
from pg_anonymizer.rules.context import RowContext
from pg_anonymizer.rules.parser import parse_template

__all__ = [
    # Version
    "__version__",
    # Main API
    "anonymize_dump",
    "AnonymizationPipeline",
    "AnonymizationResult",
    "DumpProcessor",
    "ProcessingResult",
    # Rules
    "RuleCatalog",
    "RowContext",
    "parse_template",
    # Configuration
    "Config",
    "create_default_config",
    "load_rule_file",
    # Exceptions
    "AnonymizerError",
    "ConfigError",
    "DumpIOError",
    "RuleFileError",
]
