"""Tests for template compilation."""

import random

import pytest

from pg_anonymizer.rules.context import RowContext
from pg_anonymizer.rules.nodes import (
    CompositeRule,
    ConditionalRule,
    HashRule,
    NoneRule,
    PickRule,
    RandomIntRule,
    RegexRule,
    RuleKind,
    StaticTextRule,
    salt_from_text,
)
from pg_anonymizer.rules.parser import (
    TemplateParser,
    find_closing_brace,
    parse_template,
    split_arguments,
    unwrap_parentheses,
)


def kinds(template):
    return [child.kind for child in template.children]


class TestSplitArguments:
    """Tests for argument splitting."""

    def test_simple(self):
        assert split_arguments("a,b,c") == ["a", "b", "c"]

    def test_trims_spaces_and_tabs(self):
        assert split_arguments(" a ,\tb\t") == ["a", "b"]

    def test_keeps_other_whitespace(self):
        assert split_arguments("x,\ny") == ["x", "\ny"]

    def test_nested_braces_and_parentheses_protect_commas(self):
        """Commas inside {} or () are not split points."""
        assert split_arguments("a, {{X(b,c)}}, (d,e)") == ["a", "{{X(b,c)}}", "(d,e)"]

    def test_empty_argument_list(self):
        assert split_arguments("") == []
        assert split_arguments("   ") == []

    def test_empty_arguments_kept(self):
        assert split_arguments("a,,b") == ["a", "", "b"]


class TestFindClosingBrace:
    """Tests for brace matching."""

    def test_simple_tag(self):
        text = "{{NONE}}"
        assert find_closing_brace(text, 2) == len(text) - 1

    def test_nested_tag(self):
        text = "{{A({{B}})}} tail"
        assert find_closing_brace(text, 2) == text.index(" tail") - 1

    def test_unterminated(self):
        assert find_closing_brace("{{A({{B}})", 2) is None


class TestParseTemplate:
    """Tests for parse_template."""

    def test_plain_text(self, empty_context):
        template = parse_template("hello")
        assert isinstance(template, CompositeRule)
        assert kinds(template) == [RuleKind.STATIC_TEXT]
        assert template.apply("ignored", empty_context) == "hello"

    def test_empty_template(self, empty_context):
        template = parse_template("")
        assert template.children == ()
        assert template.apply("value", empty_context) == ""

    def test_text_and_functions_in_source_order(self, empty_context):
        template = parse_template("a{{NONE}}b")
        assert kinds(template) == [RuleKind.STATIC_TEXT, RuleKind.NONE, RuleKind.STATIC_TEXT]
        assert template.apply("X", empty_context) == "aXb"

    def test_adjacent_tags(self, empty_context):
        template = parse_template("{{NONE}}{{NONE}}")
        assert template.apply("v", empty_context) == "vv"

    def test_trailing_literal(self, empty_context):
        assert parse_template("{{NONE}}-x").apply("v", empty_context) == "v-x"

    def test_nested_regex_is_single_node(self):
        """A nested template argument is not split on its inner comma."""
        template = parse_template("{{REGEX(foo,{{PICK(x,y)}})}}")
        assert len(template.children) == 1
        rule = template.children[0]
        assert isinstance(rule, RegexRule)
        assert rule.pattern.pattern == "foo"
        assert isinstance(rule.replacement, CompositeRule)
        assert len(rule.replacement.children) == 1
        pick = rule.replacement.children[0]
        assert isinstance(pick, PickRule)
        assert pick.options == ("x", "y")

    def test_nested_regex_evaluation(self, empty_context):
        template = parse_template("{{REGEX(foo,{{PICK(x,y)}})}}")
        assert template.apply("a foo b", empty_context) in {"a x b", "a y b"}

    def test_whitespace_in_name_is_ignored(self):
        template = parse_template("{{ HASH (1) }}")
        assert isinstance(template.children[0], HashRule)

    def test_unterminated_tag_drops_rest(self, empty_context):
        """Text from an unclosed tag onwards is discarded."""
        parser = TemplateParser()
        template = parser.parse("abc{{RAND(1,2)")
        assert template.apply("v", empty_context) == "abc"
        assert any("Unterminated" in w for w in parser.warnings)

    def test_unterminated_nested_tag(self, empty_context):
        template = parse_template("x{{REGEX(a,{{NONE)}} tail")
        assert template.apply("v", empty_context) == "x"


class TestFunctions:
    """Tests for each supported function."""

    def test_none(self):
        assert isinstance(parse_template("{{NONE}}").children[0], NoneRule)
        assert isinstance(parse_template("{{NONE()}}").children[0], NoneRule)

    def test_none_with_arguments_is_invalid(self, empty_context):
        parser = TemplateParser()
        template = parser.parse("{{NONE(x)}}")
        assert template.apply("v", empty_context) == ""
        assert parser.warnings

    def test_rand(self, empty_context):
        template = parse_template("{{RAND(1, 3)}}")
        rule = template.children[0]
        assert isinstance(rule, RandomIntRule)
        assert (rule.minimum, rule.maximum) == (1, 3)
        assert all(template.apply("", empty_context) in {"1", "2", "3"} for _ in range(50))

    def test_rand_reversed_bounds(self):
        rule = parse_template("{{RAND(9, 1)}}").children[0]
        assert (rule.minimum, rule.maximum) == (1, 9)

    @pytest.mark.parametrize("raw", ["{{RAND(a, 3)}}", "{{RAND(1)}}", "{{RAND(1,2,3)}}", "{{RAND}}"])
    def test_rand_invalid(self, empty_context, raw):
        parser = TemplateParser()
        template = parser.parse(raw)
        assert isinstance(template.children[0], StaticTextRule)
        assert template.apply("v", empty_context) == ""
        assert parser.warnings

    def test_pick(self, empty_context):
        rule = parse_template("{{PICK(red, green , blue)}}").children[0]
        assert rule.options == ("red", "green", "blue")

    def test_pick_without_options(self, empty_context):
        assert parse_template("{{PICK}}").apply("v", empty_context) == ""
        assert parse_template("{{PICK()}}").apply("v", empty_context) == ""

    def test_regex_invalid_pattern_is_passthrough(self, empty_context):
        parser = TemplateParser()
        template = parser.parse("{{REGEX([, x)}}")
        assert isinstance(template.children[0], NoneRule)
        assert template.apply("abc", empty_context) == "abc"
        assert any("Regex error in REGEX" in w for w in parser.warnings)

    def test_regex_with_quantifier_commas(self, empty_context):
        """Commas inside {m,n} quantifiers stay in the pattern."""
        template = parse_template(r"{{REGEX(\d{1,3}, N)}}")
        assert template.apply("a 1234", empty_context) == "a NN"

    def test_regex_requires_two_arguments(self, empty_context):
        parser = TemplateParser()
        assert parser.parse("{{REGEX(a)}}").apply("a", empty_context) == ""
        assert parser.warnings

    def test_hash(self, empty_context, hash_of):
        template = parse_template("{{HASH(42)}}@anon.test")
        rule = template.children[0]
        assert isinstance(rule, HashRule)
        assert rule.salt == salt_from_text("42")
        assert template.apply("john@example.com", empty_context) == (
            hash_of("42", "john@example.com") + "@anon.test"
        )

    def test_matches_uses_context(self):
        template = parse_template("{{MATCHES(role, adm.*)}}")
        assert template.apply("", RowContext.from_columns(["role"], ["admin"])) == "true"
        assert template.apply("", RowContext.from_columns(["role"], ["user"])) == "false"

    def test_matches_invalid_pattern(self, empty_context):
        parser = TemplateParser()
        template = parser.parse("{{MATCHES(col, [unclosed)}}")
        assert template.apply("v", empty_context) == ""
        assert any("Regex error in MATCHES" in w for w in parser.warnings)

    def test_if_eq_with_nested_templates(self):
        template = parse_template(
            "{{IF({{MATCHES(email, .*@corp\\.com)}}, EQ, true, {{NONE}}, user{{RAND(1,1)}})}}"
        )
        rule = template.children[0]
        assert isinstance(rule, ConditionalRule)
        corp = RowContext.from_columns(["email"], ["a@corp.com"])
        other = RowContext.from_columns(["email"], ["a@else.com"])
        assert template.apply("keep", corp) == "keep"
        assert template.apply("keep", other) == "user1"

    @pytest.mark.parametrize("value,expected", [("a", "yes"), ("b", "yes"), ("c", "yes"), ("d", "no")])
    def test_if_in_with_parenthesized_list(self, value, expected, empty_context):
        template = parse_template("{{IF({{NONE}}, IN, (a, b,c), yes, no)}}")
        assert template.children[0].expected == "a, b,c"
        assert template.apply(value, empty_context) == expected

    def test_if_in_trailing_comma_does_not_match_empty_value(self, empty_context):
        template = parse_template("{{IF({{NONE}}, IN, (a,), yes, no)}}")
        assert template.apply("", empty_context) == "no"
        assert template.apply("a", empty_context) == "yes"

    def test_if_unknown_operator_warns(self, empty_context):
        parser = TemplateParser()
        template = parser.parse("{{IF({{NONE}}, GT, a, yes, no)}}")
        assert template.apply("a", empty_context) == "no"
        assert any("Unknown IF operator" in w for w in parser.warnings)

    def test_if_wrong_arity(self, empty_context):
        parser = TemplateParser()
        assert parser.parse("{{IF(a, EQ, a, yes)}}").apply("v", empty_context) == ""
        assert parser.warnings

    def test_literal_keeps_commas_and_braces(self, empty_context):
        template = parse_template("{{LITERAL(a, b {c})}}")
        assert template.apply("v", empty_context) == "a, b {c}"

    def test_literal_inside_argument(self, empty_context):
        template = parse_template("{{IF({{NONE}}, EQ, x, {{LITERAL(one, two)}}, no)}}")
        assert template.apply("x", empty_context) == "one, two"

    def test_literal_without_parentheses(self, empty_context):
        parser = TemplateParser()
        assert parser.parse("{{LITERAL}}").apply("v", empty_context) == ""
        assert parser.warnings

    def test_unknown_function(self, empty_context, caplog):
        parser = TemplateParser()
        template = parser.parse("before {{FOO(1)}} after")
        assert template.apply("v", empty_context) == "before  after"
        assert "Unknown function or invalid args: FOO" in caplog.text


class TestSeeding:
    """Tests for reproducible randomized nodes."""

    def test_seed_source_makes_templates_reproducible(self, empty_context):
        raw = "{{RAND(1, 1000000)}}-{{PICK(a, b, c, d, e, f)}}"
        first = TemplateParser(random.Random(7)).parse(raw)
        second = TemplateParser(random.Random(7)).parse(raw)
        assert [first.apply("", empty_context) for _ in range(20)] == [
            second.apply("", empty_context) for _ in range(20)
        ]

    def test_nodes_get_independent_generators(self, empty_context):
        template = TemplateParser(random.Random(3)).parse("{{RAND(1, 1000000)}}|{{RAND(1, 1000000)}}")
        first, second = template.children[0], template.children[2]
        assert first.seed != second.seed


def test_unwrap_parentheses():
    assert unwrap_parentheses("(a, b)") == "a, b"
    assert unwrap_parentheses("a, b") == "a, b"
    assert unwrap_parentheses("(") == "("
