"""
Template Parser - compiles ``{{FUNC(args)}}`` templates into rule trees.

A template is plain text with embedded function calls:

    "user_{{RAND(1, 999)}}@{{PICK(example.com, test.org)}}"

The parser scans for ``{{`` and finds the matching ``}}`` by counting braces,
so arguments may themselves contain templates:

    "{{REGEX([0-9]+, {{PICK(x, y)}})}}"

Arguments are split on commas that are not nested inside ``{}`` or ``()``.
Compilation never fails: an unknown function, a wrong argument count or an
invalid argument is reported as a warning and compiled to empty text.

Functions:
- NONE                      passthrough of the column value
- RAND(min, max)            random integer, inclusive bounds
- PICK(a, b, ...)           random choice among the options
- REGEX(pattern, template)  substitute every match with the evaluated template
- HASH(salt)                deterministic salted hash of the value
- MATCHES(column, pattern)  "true"/"false" for the column's original value
- IF(cond, op, value, then, else)  op is EQ, NEQ or IN
- LITERAL(text)             text verbatim, commas included
"""

import random
import re
from typing import Callable, Dict, List, Optional

from pg_anonymizer.logging_config import get_logger
from pg_anonymizer.rules.nodes import (
    CompositeRule,
    ConditionalRule,
    ConditionOperator,
    HashRule,
    MatchesRule,
    NoneRule,
    PickRule,
    RandomIntRule,
    RegexRule,
    RuleNode,
    StaticTextRule,
    salt_from_text,
    strip_blanks,
)

logger = get_logger("rules.parser")

START_TOKEN = "{{"
OPENERS = "{("
CLOSERS = "})"


def find_closing_brace(text: str, start: int) -> Optional[int]:
    """
    Find the index of the last ``}`` closing a ``{{`` that ends at ``start``.

    Depth starts at 2 for the two braces already consumed.

    Returns:
        Index of the closing brace, or None if the tag is never closed
    """
    depth = 2
    for index in range(start, len(text)):
        char = text[index]
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return index
    return None


def split_arguments(text: str) -> List[str]:
    """
    Split an argument list on commas at nesting depth 0.

    Braces and parentheses both count as nesting. Each argument is trimmed
    of spaces and tabs. An empty (or blank) argument list gives no arguments.
    """
    if not text.strip():
        return []

    args = []
    current = []
    depth = 0
    for char in text:
        if char in OPENERS:
            depth += 1
        elif char in CLOSERS:
            depth -= 1

        if char == "," and depth == 0:
            args.append(strip_blanks("".join(current)))
            current = []
        else:
            current.append(char)
    args.append(strip_blanks("".join(current)))
    return args


def unwrap_parentheses(text: str) -> str:
    """Drop one pair of enclosing parentheses, if present."""
    if len(text) >= 2 and text[0] == "(" and text[-1] == ")":
        return text[1:-1]
    return text


class TemplateParser:
    """
    Compiles template strings into CompositeRule trees.

    Randomized nodes (RAND, PICK) get their own generator. When a
    ``seed_source`` is given each of them is seeded from it, which makes a
    whole catalog reproducible; otherwise they are seeded from the OS.

    Usage:
        parser = TemplateParser()
        template = parser.parse("{{HASH(42)}}@anon.test")
        template.apply("john@example.com", RowContext.empty())

    Attributes:
        warnings: Messages for every problem found while compiling
    """

    def __init__(self, seed_source: Optional[random.Random] = None):
        self.seed_source = seed_source
        self.warnings: List[str] = []
        self._builders: Dict[str, Callable[[List[str], Optional[str]], Optional[RuleNode]]] = {
            "NONE": self._build_none,
            "RAND": self._build_rand,
            "PICK": self._build_pick,
            "REGEX": self._build_regex,
            "HASH": self._build_hash,
            "MATCHES": self._build_matches,
            "IF": self._build_if,
            "LITERAL": self._build_literal,
        }

    def parse(self, raw: str) -> CompositeRule:
        """Compile a template; literal text and function calls keep source order."""
        children: List[RuleNode] = []
        length = len(raw)
        last = 0

        while True:
            start = raw.find(START_TOKEN, last)
            if start == -1:
                break

            if start > last:
                children.append(StaticTextRule(raw[last:start]))

            end = find_closing_brace(raw, start + len(START_TOKEN))
            if end is None:
                self._warn(f"Unterminated '{{{{' in template: {raw!r}")
                last = length
                break

            definition = raw[start + len(START_TOKEN):end - 1]
            children.append(self.build_function_rule(definition))
            last = end + 1

        if last < length:
            children.append(StaticTextRule(raw[last:]))

        return CompositeRule(children)

    def build_function_rule(self, definition: str) -> RuleNode:
        """Compile the inside of one ``{{...}}`` tag, e.g. ``RAND(1, 10)``."""
        paren = definition.find("(")
        if paren == -1:
            name = definition
            args_text = None
        else:
            name = definition[:paren]
            close = definition.rfind(")")
            args_text = definition[paren + 1:close] if close > paren else ""

        name = "".join(name.split())
        args = split_arguments(args_text or "")

        builder = self._builders.get(name)
        rule = builder(args, args_text) if builder else None
        if rule is None:
            self._warn(f"Unknown function or invalid args: {name} (Args count: {len(args)})")
            return StaticTextRule("")
        return rule

    def _next_seed(self) -> Optional[int]:
        if self.seed_source is None:
            return None
        return self.seed_source.getrandbits(64)

    def _warn(self, message: str) -> None:
        self.warnings.append(message)
        logger.warning(message)

    def _compile_pattern(self, function: str, pattern: str) -> Optional[re.Pattern]:
        try:
            return re.compile(pattern)
        except re.error as e:
            self._warn(f"Regex error in {function}: {e} for pattern: {pattern}")
            return None

    # Builders return None for a wrong argument count; the caller warns.

    def _build_none(self, args, args_text):
        if args:
            return None
        return NoneRule()

    def _build_rand(self, args, args_text):
        if len(args) != 2:
            return None
        try:
            minimum, maximum = int(args[0]), int(args[1])
        except ValueError:
            self._warn(f"RAND expects integer bounds, got: {args[0]!r}, {args[1]!r}")
            return StaticTextRule("")
        return RandomIntRule(minimum, maximum, seed=self._next_seed())

    def _build_pick(self, args, args_text):
        return PickRule(tuple(args), seed=self._next_seed())

    def _build_regex(self, args, args_text):
        if len(args) < 2:
            return None
        pattern = self._compile_pattern("REGEX", args[0])
        if pattern is None:
            return NoneRule()
        return RegexRule(pattern, self.parse(args[1]))

    def _build_hash(self, args, args_text):
        if len(args) != 1:
            return None
        return HashRule(salt_from_text(args[0]))

    def _build_matches(self, args, args_text):
        if len(args) != 2:
            return None
        pattern = self._compile_pattern("MATCHES", args[1])
        if pattern is None:
            return StaticTextRule("")
        return MatchesRule(args[0], pattern)

    def _build_if(self, args, args_text):
        if len(args) != 5:
            return None
        condition, operator, expected, when_true, when_false = args
        known = {op.value for op in ConditionOperator}
        if operator not in known:
            self._warn(f"Unknown IF operator {operator!r}, condition will never match")
        if operator == ConditionOperator.IN.value:
            expected = unwrap_parentheses(expected)
        return ConditionalRule(
            self.parse(condition),
            operator,
            expected,
            self.parse(when_true),
            self.parse(when_false),
        )

    def _build_literal(self, args, args_text):
        if args_text is None:
            return None
        return StaticTextRule(strip_blanks(args_text))


def parse_template(raw: str, seed_source: Optional[random.Random] = None) -> CompositeRule:
    """Compile ``raw`` with a throwaway parser (see TemplateParser.parse)."""
    return TemplateParser(seed_source).parse(raw)
