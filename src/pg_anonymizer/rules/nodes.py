"""
Rule Nodes - the evaluable units a compiled template is made of.

Every node exposes ``apply(value, context) -> str``. ``value`` is the current
(working) value of the column being rewritten and ``context`` is the
RowContext holding the row's original values. Nodes never raise from
``apply``; problems found while evaluating degrade to a warning and a
harmless result.

Node kinds:
- STATIC_TEXT: constant text (plain template text and LITERAL)
- NONE: passthrough of the input value
- RANDOM_INT: uniform integer in an inclusive range
- PICK: uniform choice among options
- REGEX: substitution with a replacement template
- HASH: salted FNV-1a hash rendered as a decimal string
- MATCHES: "true"/"false" full match of another column's original value
- CONDITIONAL: IF with EQ / NEQ / IN comparison
- COMPOSITE: concatenation of child nodes
"""

import random
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import ClassVar, Optional, Tuple

from pg_anonymizer.logging_config import get_logger
from pg_anonymizer.rules.context import RowContext

logger = get_logger("rules.nodes")

FNV_OFFSET_BASIS = 2166136261
FNV_PRIME = 16777619
UINT32_MASK = 0xFFFFFFFF
HASH_RESULT_MASK = 0x7FFFFFFF

TRUE_TEXT = "true"
FALSE_TEXT = "false"

# ECMAScript style references: $$, $& and $1..$99
_DOLLAR_REFERENCE = re.compile(r"\$(\$|&|\d{1,2})")


class RuleKind(Enum):
    """Closed set of rule node kinds."""
    STATIC_TEXT = auto()
    NONE = auto()
    RANDOM_INT = auto()
    PICK = auto()
    REGEX = auto()
    HASH = auto()
    MATCHES = auto()
    CONDITIONAL = auto()
    COMPOSITE = auto()


class ConditionOperator(Enum):
    """Comparison operators understood by IF."""
    EQ = "EQ"
    NEQ = "NEQ"
    IN = "IN"


def strip_blanks(text: str) -> str:
    """Trim leading/trailing spaces and tabs (other whitespace is kept)."""
    return text.strip(" \t")


def fnv1a_hash(salt: int, value: str) -> int:
    """
    32-bit FNV-1a over the salt's decimal digits followed by the value bytes.

    The value is encoded as UTF-8 with surrogateescape so that undecodable
    input bytes are hashed as they appeared in the dump.

    Returns:
        Hash masked to its low 31 bits (always non-negative)
    """
    h = FNV_OFFSET_BASIS
    for byte in str(salt).encode("ascii"):
        h ^= byte
        h = (h * FNV_PRIME) & UINT32_MASK
    for byte in value.encode("utf-8", "surrogateescape"):
        h ^= byte
        h = (h * FNV_PRIME) & UINT32_MASK
    return h & HASH_RESULT_MASK


def salt_from_text(text: str) -> int:
    """Fold a salt argument into an unsigned 32-bit integer (h = h*31 + byte)."""
    salt = 0
    for byte in text.encode("utf-8", "surrogateescape"):
        salt = (salt * 31 + byte) & UINT32_MASK
    return salt


def translate_replacement(replacement: str) -> str:
    """Rewrite $1 / $& / $$ references into Python's re replacement syntax."""
    if "$" not in replacement:
        return replacement

    def _convert(match):
        token = match.group(1)
        if token == "$":
            return "$"
        if token == "&":
            return r"\g<0>"
        return rf"\g<{int(token)}>"

    return _DOLLAR_REFERENCE.sub(_convert, replacement)


class RuleNode(ABC):
    """Base class of all rule nodes."""

    kind: ClassVar[RuleKind]

    @abstractmethod
    def apply(self, value: str, context: RowContext) -> str:
        """Evaluate the node for one column value."""


@dataclass(frozen=True)
class StaticTextRule(RuleNode):
    """Constant text, independent of the value and the row."""

    kind: ClassVar[RuleKind] = RuleKind.STATIC_TEXT
    text: str = ""

    def apply(self, value: str, context: RowContext) -> str:
        return self.text


@dataclass(frozen=True)
class NoneRule(RuleNode):
    """Returns the input value unchanged."""

    kind: ClassVar[RuleKind] = RuleKind.NONE

    def apply(self, value: str, context: RowContext) -> str:
        return value


@dataclass(frozen=True)
class RandomIntRule(RuleNode):
    """
    Uniform random integer in [minimum, maximum], both inclusive.

    Bounds given in the wrong order are swapped. The node owns its generator;
    without a seed it is seeded from the operating system's entropy source.
    """

    kind: ClassVar[RuleKind] = RuleKind.RANDOM_INT
    minimum: int
    maximum: int
    seed: Optional[int] = field(default=None, repr=False)
    _random: random.Random = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        if self.minimum > self.maximum:
            minimum, maximum = self.maximum, self.minimum
            object.__setattr__(self, "minimum", minimum)
            object.__setattr__(self, "maximum", maximum)
        object.__setattr__(self, "_random", random.Random(self.seed))

    def apply(self, value: str, context: RowContext) -> str:
        return str(self._random.randint(self.minimum, self.maximum))


@dataclass(frozen=True)
class PickRule(RuleNode):
    """Uniform random choice among literal options; no options gives ""."""

    kind: ClassVar[RuleKind] = RuleKind.PICK
    options: Tuple[str, ...] = ()
    seed: Optional[int] = field(default=None, repr=False)
    _random: random.Random = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "options", tuple(self.options))
        object.__setattr__(self, "_random", random.Random(self.seed))

    def apply(self, value: str, context: RowContext) -> str:
        if not self.options:
            return ""
        return self._random.choice(self.options)


@dataclass(frozen=True)
class CompositeRule(RuleNode):
    """Concatenation of child results in declared order."""

    kind: ClassVar[RuleKind] = RuleKind.COMPOSITE
    children: Tuple[RuleNode, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "children", tuple(self.children))

    def apply(self, value: str, context: RowContext) -> str:
        return "".join(child.apply(value, context) for child in self.children)


@dataclass(frozen=True)
class RegexRule(RuleNode):
    """
    Replace every match of ``pattern`` in the value.

    The replacement is a template evaluated once per application, so it can
    draw random values or look at other columns. Group references may be
    written as ``\\1`` / ``\\g<name>`` or ``$1`` / ``$&``.
    """

    kind: ClassVar[RuleKind] = RuleKind.REGEX
    pattern: re.Pattern
    replacement: RuleNode

    def apply(self, value: str, context: RowContext) -> str:
        template = translate_replacement(self.replacement.apply(value, context))
        try:
            return self.pattern.sub(template, value)
        except re.error as e:
            logger.warning(
                f"REGEX replacement '{template}' failed for pattern "
                f"'{self.pattern.pattern}': {e}"
            )
            return value


@dataclass(frozen=True)
class HashRule(RuleNode):
    """Deterministic salted hash of the value (see fnv1a_hash)."""

    kind: ClassVar[RuleKind] = RuleKind.HASH
    salt: int = 0

    def apply(self, value: str, context: RowContext) -> str:
        return str(fnv1a_hash(self.salt, value))


@dataclass(frozen=True)
class MatchesRule(RuleNode):
    """Return "true" when the original value of ``column`` fully matches."""

    kind: ClassVar[RuleKind] = RuleKind.MATCHES
    column: str
    pattern: re.Pattern

    def apply(self, value: str, context: RowContext) -> str:
        if self.pattern.fullmatch(context.get(self.column)):
            return TRUE_TEXT
        return FALSE_TEXT


@dataclass(frozen=True)
class ConditionalRule(RuleNode):
    """
    IF(condition, op, value, then, else).

    The condition template is evaluated against the same value and context,
    compared with ``expected`` using ``operator``, and the selected branch is
    applied. An operator that is not EQ, NEQ or IN never matches.
    """

    kind: ClassVar[RuleKind] = RuleKind.CONDITIONAL
    condition: RuleNode
    operator: str
    expected: str
    when_true: RuleNode
    when_false: RuleNode
    _candidates: Tuple[str, ...] = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        candidates = ()
        if self.operator == ConditionOperator.IN.value:
            # Blank list elements are dropped, so IN never matches the empty string.
            trimmed = (strip_blanks(item) for item in self.expected.split(","))
            candidates = tuple(item for item in trimmed if item)
        object.__setattr__(self, "_candidates", candidates)

    def matches(self, actual: str) -> bool:
        if self.operator == ConditionOperator.EQ.value:
            return actual == self.expected
        if self.operator == ConditionOperator.NEQ.value:
            return actual != self.expected
        if self.operator == ConditionOperator.IN.value:
            return actual in self._candidates
        return False

    def apply(self, value: str, context: RowContext) -> str:
        actual = self.condition.apply(value, context)
        if self.matches(actual):
            return self.when_true.apply(value, context)
        return self.when_false.apply(value, context)
