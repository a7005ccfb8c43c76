"""
Report Generator - Summarizes an anonymization run.

This module handles:
- Collecting run metadata and processing statistics
- Rendering a readable text summary
- Saving the report as JSON
"""

import json
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from pg_anonymizer import __version__
from pg_anonymizer.core.processor import ProcessingResult


@dataclass
class AnonymizationReport:
    """Complete anonymization report."""

    generated_at: str = field(default_factory=lambda: datetime.now().isoformat())
    tool_version: str = __version__
    rules_file: str = ""
    input_file: str = ""
    output_file: str = ""
    rule_count: int = 0
    compile_warnings: list[str] = field(default_factory=list)
    statistics: Optional[ProcessingResult] = None
    processing_time_seconds: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        """Convert report to dictionary."""
        stats = self.statistics or ProcessingResult()
        return {
            "metadata": {
                "generated_at": self.generated_at,
                "tool_version": self.tool_version,
                "rules_file": self.rules_file,
                "input_file": self.input_file,
                "output_file": self.output_file,
                "processing_time_seconds": self.processing_time_seconds,
            },
            "rules": {
                "rule_count": self.rule_count,
                "compile_warnings": self.compile_warnings,
            },
            "summary": {
                "total_lines": stats.total_lines,
                "copy_blocks": stats.copy_blocks,
                "anonymized_blocks": stats.anonymized_blocks,
                "rows_seen": stats.rows_seen,
                "rows_anonymized": stats.rows_anonymized,
                "width_mismatches": stats.width_mismatches,
                "unterminated_block": stats.unterminated_block,
                "tables": stats.tables,
            },
        }

    def to_json(self, indent: int = 2) -> str:
        """Convert report to JSON string."""
        return json.dumps(self.to_dict(), indent=indent)

    def save_json(self, path: Path) -> None:
        """Save report as JSON file."""
        path.write_text(self.to_json())

    def to_text(self) -> str:
        """Convert report to readable text format."""
        stats = self.statistics or ProcessingResult()
        lines = [
            "=" * 60,
            "DUMP ANONYMIZATION SUMMARY",
            "=" * 60,
            f"Rules:  {self.rules_file} ({self.rule_count} column rules)",
            f"Input:  {self.input_file}",
            f"Output: {self.output_file}",
            "",
            f"Lines processed:      {stats.total_lines}",
            f"COPY blocks:          {stats.copy_blocks}",
            f"Anonymized blocks:    {stats.anonymized_blocks}",
            f"Rows anonymized:      {stats.rows_anonymized}/{stats.rows_seen}",
        ]
        if stats.width_mismatches:
            lines.append(f"Rows with width mismatch: {stats.width_mismatches}")
        if stats.unterminated_block:
            lines.append(f"Unterminated COPY block: {stats.unterminated_block}")
        if stats.tables:
            lines.append("")
            lines.append("Tables:")
            lines.extend(f"  {table}" for table in stats.tables)
        if self.compile_warnings:
            lines.append("")
            lines.append(f"Rule warnings ({len(self.compile_warnings)}):")
            lines.extend(f"  {warning}" for warning in self.compile_warnings)
        lines.append("")
        lines.append(f"Completed in {self.processing_time_seconds:.2f} seconds")
        return "\n".join(lines)
