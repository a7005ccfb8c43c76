"""
Configuration - Handles run configuration and rule files.

This module handles:
- Configuration dataclass with all run options
- JSON configuration file support
- Command-line overrides
- Configuration validation
- Loading the YAML (or JSON) rule file into the nested rule structure
"""

import json
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from pg_anonymizer.exceptions import RuleFileError
from pg_anonymizer.logging_config import get_logger

logger = get_logger("config")

RULES_KEY = "rules"
PATH_FIELDS = ("rules_file", "input_file", "output_file", "log_file", "report_file")

# schema -> table -> column -> raw template
RuleStructure = Dict[str, Dict[str, Dict[str, str]]]


@dataclass
class Config:
    """
    Configuration for dump anonymization.

    Attributes:
        rules_file: YAML (or JSON) file with the anonymization rules
        input_file: Plain-text dump to read
        output_file: Anonymized dump to write
        encoding: Dump encoding (undecodable bytes are passed through)
        default_schema: Schema assumed for unqualified COPY table names
        seed: Random seed for reproducible RAND/PICK output
        log_level: Logging level
        log_file: Optional log file
        report_file: Optional JSON report of the run
        verbose: Enable verbose output
        quiet: Suppress normal output
        overwrite: Overwrite an existing output file
    """

    rules_file: Optional[Path] = None
    input_file: Optional[Path] = None
    output_file: Optional[Path] = None
    encoding: str = "utf-8"
    default_schema: str = "public"
    seed: Optional[int] = None

    # Output options
    log_level: str = "INFO"
    log_file: Optional[Path] = None
    report_file: Optional[Path] = None
    verbose: bool = False
    quiet: bool = False
    overwrite: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Convert config to dictionary."""
        data = {}
        for key, value in asdict(self).items():
            if isinstance(value, Path):
                data[key] = str(value)
            else:
                data[key] = value
        return data

    def save_to_file(self, path: Path) -> None:
        """Save configuration to JSON file."""
        path.write_text(json.dumps(self.to_dict(), indent=2))

    @classmethod
    def load_from_file(cls, path: Path) -> "Config":
        """Load configuration from JSON file."""
        data = json.loads(path.read_text())
        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Config":
        """Create config from dictionary."""
        data = dict(data)
        for name in PATH_FIELDS:
            if data.get(name):
                data[name] = Path(data[name])

        # Filter only known fields
        known_fields = {f.name for f in cls.__dataclass_fields__.values()}
        filtered_data = {k: v for k, v in data.items() if k in known_fields}

        return cls(**filtered_data)

    def validate(self) -> list[str]:
        """
        Validate configuration.

        Returns:
            List of validation error messages (empty if valid)
        """
        errors = []

        if self.rules_file is None:
            errors.append("Rules file is required")
        elif not self.rules_file.is_file():
            errors.append(f"Rules file does not exist: {self.rules_file}")

        if self.input_file is None:
            errors.append("Input file is required")
        elif not self.input_file.is_file():
            errors.append(f"Input file does not exist: {self.input_file}")

        if self.output_file is None:
            errors.append("Output file is required")
        elif self.output_file.is_dir():
            errors.append(f"Output path is a directory: {self.output_file}")
        elif self.input_file is not None and self.output_file.resolve() == self.input_file.resolve():
            errors.append("Output file must differ from input file")

        if not self.default_schema:
            errors.append("Default schema must not be empty")

        valid_log_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if self.log_level.upper() not in valid_log_levels:
            errors.append(f"Invalid log level: {self.log_level}")

        return errors

    def is_valid(self) -> bool:
        """Check if configuration is valid."""
        return len(self.validate()) == 0


def create_default_config() -> Config:
    """Create a configuration with default values."""
    return Config()


def merge_configs(base: Config, override: Config) -> Config:
    """
    Merge two configurations, with override taking precedence.

    Args:
        base: Base configuration
        override: Override configuration

    Returns:
        Merged configuration
    """
    base_dict = base.to_dict()
    override_dict = override.to_dict()

    # Only override non-default values from override; an override equal to
    # the default never replaces a base value
    merged = {}
    default = create_default_config().to_dict()

    for key in base_dict:
        if override_dict.get(key) != default.get(key):
            merged[key] = override_dict[key]
        else:
            merged[key] = base_dict[key]

    return Config.from_dict(merged)


def load_rule_file(path: Union[str, Path]) -> RuleStructure:
    """
    Read a rule file.

    The file holds a top-level ``rules`` mapping:

        rules:
          public:
            users:
              - email: "{{HASH(42)}}@anon.test"
              - name: "{{PICK(Alice, Bob)}}"

    Columns may also be given as a plain mapping instead of a list.
    Files ending in ``.json`` are parsed as JSON, anything else as YAML.

    Returns:
        Mapping schema -> table -> column -> raw template

    Raises:
        RuleFileError: If the file cannot be read or parsed
    """
    path = Path(path)
    if not path.is_file():
        raise RuleFileError(path, "file does not exist")

    try:
        with open(path, "r", encoding="utf-8") as f:
            if path.suffix.lower() == ".json":
                data = json.load(f)
            else:
                data = yaml.safe_load(f)
    except (OSError, UnicodeDecodeError, json.JSONDecodeError, yaml.YAMLError) as e:
        raise RuleFileError(path, str(e)) from e

    return normalize_rules(data, source=str(path))


def normalize_rules(data: Any, source: str = "<rules>") -> RuleStructure:
    """
    Convert loaded rule data into the nested schema/table/column structure.

    Schemas or tables that are not mappings (or lists, for tables) are
    skipped with a warning.

    Raises:
        RuleFileError: If the top level or the ``rules`` section has the wrong shape
    """
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise RuleFileError(source, "top level must be a mapping")

    rules_node = data.get(RULES_KEY)
    if rules_node is None:
        logger.warning(f"{source}: no '{RULES_KEY}' section, nothing will be anonymized")
        return {}
    if not isinstance(rules_node, dict):
        raise RuleFileError(source, f"'{RULES_KEY}' must be a mapping of schemas")

    rules: RuleStructure = {}
    for schema, tables in rules_node.items():
        if not isinstance(tables, dict):
            logger.warning(f"{source}: schema '{schema}' is not a mapping of tables, skipped")
            continue
        for table, columns in tables.items():
            entries = _table_entries(columns)
            if entries is None:
                logger.warning(f"{source}: table '{schema}.{table}' has no column rules, skipped")
                continue
            table_rules = rules.setdefault(str(schema), {}).setdefault(str(table), {})
            for column, template in entries:
                table_rules[str(column)] = "" if template is None else str(template)

    return rules


def _table_entries(columns: Any) -> Optional[list]:
    """Column/template pairs of one table, or None if the shape is not understood."""
    if isinstance(columns, dict):
        return list(columns.items())
    if isinstance(columns, list):
        entries = []
        for entry in columns:
            if isinstance(entry, dict):
                entries.extend(entry.items())
            else:
                logger.warning(f"Ignoring rule entry that is not a mapping: {entry!r}")
        return entries
    return None
