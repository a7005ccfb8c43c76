"""
Core modules for the PostgreSQL dump anonymizer.

This package contains the processing logic:
- processor: COPY block state machine over a dump stream
"""

from pg_anonymizer.core.processor import DumpProcessor, ParserState, ProcessingResult

__all__ = [
    "DumpProcessor",
    "ParserState",
    "ProcessingResult",
]
