"""
Exception classes for the PostgreSQL dump anonymizer.

This module defines all custom exceptions used throughout the anonymizer,
organized in a hierarchy for easy handling. Template compilation and rule
evaluation never raise; these exceptions cover configuration and I/O.
"""

from pathlib import Path
from typing import Optional, Union


class AnonymizerError(Exception):
    """Base exception for all anonymizer errors."""

    pass


class ConfigError(AnonymizerError):
    """Configuration error.

    Raised when there's an issue with the run configuration,
    such as missing required options or invalid values.
    """

    pass


class RuleFileError(ConfigError):
    """Rule file could not be loaded.

    Attributes:
        path: The rule file path
        reason: Why loading failed
    """

    def __init__(self, path: Union[str, Path], reason: str):
        self.path = Path(path)
        self.reason = reason
        super().__init__(f"{path}: {reason}")


class DumpIOError(AnonymizerError):
    """Input or output dump stream cannot be opened.

    Attributes:
        path: The file that failed to open
        role: "input" or "output"
        reason: Underlying error description
    """

    def __init__(self, path: Union[str, Path], role: str, reason: Optional[str] = None):
        self.path = Path(path)
        self.role = role
        self.reason = reason or "cannot be opened"
        super().__init__(f"Cannot open {role} file {path}: {self.reason}")
