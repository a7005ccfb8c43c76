"""
Dump Processor - rewrites COPY data blocks of a plain-text PostgreSQL dump.

The processor is a two-state, line-by-line machine:

    SEARCHING_FOR_COPY  every line passes through; a ``COPY ... FROM stdin;``
                        header records the table and its column list
    READING_DATA        every line is a tab-separated data row until the
                        ``\\.`` terminator switches back

Rows of tables with rules are rewritten column by column. Each rule receives
the current (working) value of its column, while cross-column lookups go
through a RowContext bound to the values the row had before any rule ran.
Everything that is not a data row of a configured table is emitted exactly
as read, line terminator included.

Only one line is held at a time, so memory use does not depend on the size
of the dump.
"""

import re
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Iterable, Iterator, List, Mapping, Optional, TextIO, Tuple

from pg_anonymizer.logging_config import get_logger
from pg_anonymizer.rules.catalog import RuleCatalog
from pg_anonymizer.rules.context import RowContext, build_column_index
from pg_anonymizer.rules.nodes import RuleNode

logger = get_logger("core.processor")

# COPY schema.table [(col, ...)] FROM stdin;  identifiers may be double-quoted
COPY_HEADER_PATTERN = re.compile(
    r'^\s*COPY\s+((?:"[^"]*"|[\w.$])+)\s*(\([^;]+\))?\s+FROM\s+stdin\s*;\s*$',
    re.IGNORECASE,
)

# End of COPY data: a line holding only "\."
TERMINATOR_PATTERN = re.compile(r"^\s*\\\.\s*$")

FIELD_SEPARATOR = "\t"
DEFAULT_SCHEMA = "public"


class ParserState(Enum):
    """States of the dump processor."""
    SEARCHING_FOR_COPY = auto()
    READING_DATA = auto()


@dataclass
class ProcessingResult:
    """
    Statistics of one processed dump.

    Attributes:
        total_lines: Lines read
        copy_blocks: COPY headers seen
        anonymized_blocks: COPY blocks of tables with rules and a column list
        rows_seen: Data rows inside COPY blocks
        rows_anonymized: Data rows rewritten by at least one rule
        width_mismatches: Rewritten rows whose field count differs from the column list
        unterminated_block: Table whose COPY block was still open at end of input
        tables: Tables whose rows were rewritten, in order of first appearance
    """
    total_lines: int = 0
    copy_blocks: int = 0
    anonymized_blocks: int = 0
    rows_seen: int = 0
    rows_anonymized: int = 0
    width_mismatches: int = 0
    unterminated_block: Optional[str] = None
    tables: List[str] = field(default_factory=list)


def split_line_ending(line: str) -> Tuple[str, str]:
    """Split a line into its content and its terminator ("" for none)."""
    if line.endswith("\r\n"):
        return line[:-2], "\r\n"
    if line.endswith("\n") or line.endswith("\r"):
        return line[:-1], line[-1]
    return line, ""


def parse_copy_columns(raw_columns: Optional[str]) -> List[str]:
    """
    Extract the column list of a COPY header.

    The text between the outer parentheses is stripped of spaces and double
    quotes and split on commas; empty names are dropped.
    """
    if not raw_columns:
        return []
    start = raw_columns.find("(")
    end = raw_columns.rfind(")")
    if start == -1 or end <= start:
        return []
    inner = raw_columns[start + 1:end].replace(" ", "").replace('"', "")
    return [column for column in inner.split(",") if column]


def resolve_table_name(raw_name: str, default_schema: Optional[str] = DEFAULT_SCHEMA) -> str:
    """Unquote a COPY table name and qualify it with ``default_schema`` if needed."""
    name = raw_name.replace('"', "")
    if "." not in name and default_schema:
        return f"{default_schema}.{name}"
    return name


class DumpProcessor:
    """
    Streaming COPY block anonymizer.

    Usage:
        processor = DumpProcessor(catalog)
        with open("dump.sql", newline="\\n") as src, open("out.sql", "w", newline="") as dst:
            result = processor.process_stream(src, dst)
    """

    def __init__(self, catalog: RuleCatalog, default_schema: Optional[str] = DEFAULT_SCHEMA):
        """
        Initialize the processor.

        Args:
            catalog: Compiled rules
            default_schema: Schema assumed for unqualified COPY table names
        """
        self.catalog = catalog
        self.default_schema = default_schema
        self.reset()

    def reset(self) -> None:
        """Return to the initial state and clear statistics."""
        self.state = ParserState.SEARCHING_FOR_COPY
        self.current_table: Optional[str] = None
        self.columns: List[str] = []
        self.result = ProcessingResult()
        self._column_index: Mapping[str, int] = {}
        self._table_rules: Optional[Mapping[str, RuleNode]] = None

    def process_line(self, line: str) -> str:
        """Process one input line (terminator included) and return the output line."""
        self.result.total_lines += 1
        body, ending = split_line_ending(line)

        if self.state is ParserState.SEARCHING_FOR_COPY:
            match = COPY_HEADER_PATTERN.match(body)
            if match:
                self._open_block(match.group(1), match.group(2))
            return line

        if TERMINATOR_PATTERN.match(body):
            self._close_block()
            return line

        self.result.rows_seen += 1
        if self._table_rules is None or not self.columns:
            return line
        return self.transform_row(body) + ending

    def transform_row(self, body: str) -> str:
        """
        Apply the current table's rules to one data row (without terminator).

        Fields beyond the column list, and columns without a rule, are kept.
        """
        working = body.split(FIELD_SEPARATOR)
        original = tuple(working)
        context = RowContext(self._column_index, original)
        table_rules = self._table_rules or {}

        if len(working) != len(self.columns):
            self.result.width_mismatches += 1
            logger.debug(
                f"{self.current_table}: row has {len(working)} fields, "
                f"{len(self.columns)} columns declared"
            )

        applied = False
        for position, column in enumerate(self.columns[:len(working)]):
            rule = table_rules.get(column)
            if rule is not None:
                working[position] = rule.apply(working[position], context)
                applied = True

        if applied:
            self.result.rows_anonymized += 1
        return FIELD_SEPARATOR.join(working)

    def process_lines(self, lines: Iterable[str]) -> Iterator[str]:
        """Lazily process an iterable of lines."""
        for line in lines:
            yield self.process_line(line)
        self.finish()

    def process_stream(self, source: TextIO, sink: TextIO) -> ProcessingResult:
        """
        Copy ``source`` to ``sink``, rewriting configured COPY blocks.

        Open ``source`` with ``newline="\\n"`` so that only LF ends a line and a
        carriage return inside a field stays in its row; open ``sink`` with
        ``newline=""``. Line terminators then pass through untranslated.

        Returns:
            Statistics of the run
        """
        for line in source:
            sink.write(self.process_line(line))
        return self.finish()

    def finish(self) -> ProcessingResult:
        """Report a COPY block left open at end of input and return the statistics."""
        if self.state is ParserState.READING_DATA:
            logger.warning(f"COPY block for {self.current_table} is not terminated by '\\.'")
            self.result.unterminated_block = self.current_table
        logger.info(
            f"Processed {self.result.total_lines} lines, {self.result.copy_blocks} COPY blocks, "
            f"{self.result.rows_anonymized}/{self.result.rows_seen} rows anonymized"
        )
        return self.result

    def _open_block(self, raw_table: str, raw_columns: Optional[str]) -> None:
        self.current_table = resolve_table_name(raw_table, self.default_schema)
        self.columns = parse_copy_columns(raw_columns)
        self._column_index = build_column_index(self.columns)
        self._table_rules = self.catalog.rules_for(self.current_table)
        self.state = ParserState.READING_DATA
        self.result.copy_blocks += 1

        if self._table_rules is not None and self.columns:
            self.result.anonymized_blocks += 1
            if self.current_table not in self.result.tables:
                self.result.tables.append(self.current_table)
            logger.debug(f"Anonymizing COPY block for {self.current_table}: {', '.join(self.columns)}")
        else:
            logger.debug(f"Passing through COPY block for {self.current_table}")

    def _close_block(self) -> None:
        self.state = ParserState.SEARCHING_FOR_COPY
        self.current_table = None
        self.columns = []
        self._column_index = {}
        self._table_rules = None
