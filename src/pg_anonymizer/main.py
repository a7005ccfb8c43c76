"""
Main entry point for the PostgreSQL dump anonymizer.

This module orchestrates the full anonymization pipeline and provides
a programmatic API for the anonymization process.
"""

import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, TextIO

from pg_anonymizer.config import Config, create_default_config, load_rule_file
from pg_anonymizer.core.processor import DumpProcessor, ProcessingResult
from pg_anonymizer.exceptions import AnonymizerError, DumpIOError
from pg_anonymizer.logging_config import get_logger
from pg_anonymizer.output.report import AnonymizationReport
from pg_anonymizer.rules.catalog import RuleCatalog

logger = get_logger("main")


@dataclass
class AnonymizationResult:
    """Result of running the full anonymization pipeline."""
    success: bool
    statistics: Optional[ProcessingResult] = None
    catalog: Optional[RuleCatalog] = None
    report: Optional[AnonymizationReport] = None
    errors: List[str] = field(default_factory=list)
    processing_time: float = 0.0


class AnonymizationPipeline:
    """
    Orchestrates rule loading and dump processing.

    Usage:
        pipeline = AnonymizationPipeline(config)
        result = pipeline.run()
    """

    def __init__(self, config: Optional[Config] = None):
        """
        Initialize the pipeline.

        Args:
            config: Configuration object (uses defaults if not provided)
        """
        self.config = config or create_default_config()
        self.catalog: Optional[RuleCatalog] = None
        self.processor: Optional[DumpProcessor] = None

    def setup(self) -> None:
        """Load the rule file and compile the catalog."""
        rules = load_rule_file(self.config.rules_file)
        self.catalog = RuleCatalog.compile(rules, seed=self.config.seed)
        self.processor = DumpProcessor(self.catalog, default_schema=self.config.default_schema)

    def run(self) -> AnonymizationResult:
        """
        Run the full anonymization pipeline.

        Returns:
            AnonymizationResult with all details
        """
        start_time = time.time()
        result = AnonymizationResult(success=True)

        config_errors = self.config.validate()
        if config_errors:
            result.success = False
            result.errors.extend(config_errors)
            return result

        try:
            self.setup()
            result.catalog = self.catalog
            result.statistics = self.process_files()
        except AnonymizerError as e:
            logger.error(str(e))
            result.success = False
            result.errors.append(str(e))

        result.processing_time = time.time() - start_time

        if result.success:
            result.report = self._build_report(result)
            if self.config.report_file:
                result.report.save_json(self.config.report_file)

        return result

    def process_files(self) -> ProcessingResult:
        """
        Stream the input dump through the processor into the output dump.

        Both files are closed on every exit path. Output already written is
        left in place if processing fails.

        Raises:
            DumpIOError: If the input or output file cannot be opened
        """
        source = self._open_input()
        with source:
            sink = self._open_output()
            with sink:
                return self.processor.process_stream(source, sink)

    def _open_input(self) -> TextIO:
        path = self.config.input_file
        try:
            return open(path, "r", encoding=self.config.encoding, errors="surrogateescape", newline="\n")
        except (OSError, LookupError) as e:
            raise DumpIOError(path, "input", str(e)) from e

    def _open_output(self) -> TextIO:
        path = self.config.output_file
        mode = "w" if self.config.overwrite else "x"
        try:
            return open(path, mode, encoding=self.config.encoding, errors="surrogateescape", newline="")
        except FileExistsError as e:
            raise DumpIOError(path, "output", "file already exists (use --overwrite)") from e
        except (OSError, LookupError) as e:
            raise DumpIOError(path, "output", str(e)) from e

    def _build_report(self, result: AnonymizationResult) -> AnonymizationReport:
        return AnonymizationReport(
            rules_file=str(self.config.rules_file),
            input_file=str(self.config.input_file),
            output_file=str(self.config.output_file),
            rule_count=self.catalog.rule_count,
            compile_warnings=list(self.catalog.warnings),
            statistics=result.statistics,
            processing_time_seconds=result.processing_time,
        )


def anonymize_dump(
    rules_file: Path,
    input_file: Path,
    output_file: Path,
    **kwargs,
) -> AnonymizationResult:
    """
    Convenience function to anonymize one dump file.

    Args:
        rules_file: YAML rule file
        input_file: Plain-text dump to read
        output_file: Anonymized dump to write
        **kwargs: Additional configuration options

    Returns:
        AnonymizationResult with details
    """
    config = Config(
        rules_file=Path(rules_file),
        input_file=Path(input_file),
        output_file=Path(output_file),
        **kwargs,
    )
    pipeline = AnonymizationPipeline(config)
    return pipeline.run()
