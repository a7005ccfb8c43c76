"""Tests for RowContext and RuleCatalog."""

import logging

import pytest

from pg_anonymizer.rules.catalog import RuleCatalog, qualify
from pg_anonymizer.rules.context import RowContext, build_column_index
from pg_anonymizer.rules.nodes import CompositeRule


class TestRowContext:
    """Tests for RowContext lookups."""

    def test_get_by_column_name(self):
        context = RowContext.from_columns(["id", "email"], ["1", "a@b.c"])
        assert context.get("id") == "1"
        assert context.get("email") == "a@b.c"

    def test_unknown_column_is_empty(self):
        context = RowContext.from_columns(["id"], ["1"])
        assert context.get("missing") == ""
        assert "missing" not in context

    def test_column_beyond_row_width_is_empty(self):
        """A declared column without a field in the row reads as empty."""
        context = RowContext.from_columns(["id", "email"], ["1"])
        assert context.get("email") == ""
        assert "email" not in context
        assert "id" in context

    def test_duplicate_column_first_wins(self):
        assert build_column_index(["a", "b", "a"]) == {"a": 0, "b": 1}
        context = RowContext.from_columns(["a", "a"], ["first", "second"])
        assert context.get("a") == "first"

    def test_values_are_snapshotted(self):
        """Changing the source list does not change the context."""
        values = ["orig"]
        context = RowContext.from_columns(["c"], values)
        values[0] = "changed"
        assert context.get("c") == "orig"

    def test_empty(self):
        assert RowContext.empty().get("anything") == ""


class TestRuleCatalog:
    """Tests for catalog compilation and lookup."""

    RULES = {
        "public": {
            "users": {"email": "{{HASH(1)}}", "name": "{{PICK(A, B)}}"},
            "orders": {"note": "redacted"},
        },
        "billing": {
            "cards": {"number": "{{REGEX([0-9], X)}}"},
        },
    }

    def test_qualify(self):
        assert qualify("public", "users") == "public.users"

    def test_compile_tables_and_columns(self, empty_context):
        catalog = RuleCatalog.compile(self.RULES)
        assert set(catalog.tables) == {"public.users", "public.orders", "billing.cards"}
        assert catalog.rule_count == 4
        assert len(catalog) == 3
        assert "public.users" in catalog
        assert "public.missing" not in catalog
        assert catalog.get("billing.cards", "number").apply("12-34", empty_context) == "XX-XX"

    def test_rules_for(self):
        catalog = RuleCatalog.compile(self.RULES)
        rules = catalog.rules_for("public.users")
        assert set(rules) == {"email", "name"}
        assert all(isinstance(rule, CompositeRule) for rule in rules.values())
        assert catalog.rules_for("public.missing") is None

    def test_get_missing(self):
        catalog = RuleCatalog.compile(self.RULES)
        assert catalog.get("public.users", "missing") is None
        assert catalog.get("public.missing", "email") is None

    def test_catalog_is_read_only(self):
        catalog = RuleCatalog.compile(self.RULES)
        with pytest.raises(TypeError):
            catalog.rules_for("public.users")["email"] = None

    def test_non_string_templates(self, empty_context):
        catalog = RuleCatalog.compile({"s": {"t": {"a": 5, "b": None}}})
        assert catalog.get("s.t", "a").apply("x", empty_context) == "5"
        assert catalog.get("s.t", "b").apply("x", empty_context) == ""

    def test_warnings_collected(self):
        catalog = RuleCatalog.compile({"s": {"t": {"a": "{{NOPE}}", "b": "{{RAND(x,y)}}"}}})
        assert len(catalog.warnings) == 2

    def test_loaded_rules_are_logged(self, caplog):
        caplog.set_level(logging.INFO, logger="pg_anonymizer")
        RuleCatalog.compile({"public": {"users": {"email": "{{HASH(1)}}"}}})
        assert "Loaded rule for public.users.email: {{HASH(1)}}" in caplog.text

    def test_seeded_catalogs_are_reproducible(self, empty_context):
        rules = {"s": {"t": {"a": "{{RAND(1, 1000000)}}", "b": "{{PICK(a, b, c, d)}}"}}}
        first = RuleCatalog.compile(rules, seed=11)
        second = RuleCatalog.compile(rules, seed=11)
        for column in ("a", "b"):
            assert [first.get("s.t", column).apply("", empty_context) for _ in range(10)] == [
                second.get("s.t", column).apply("", empty_context) for _ in range(10)
            ]

    def test_empty_catalog(self):
        catalog = RuleCatalog()
        assert len(catalog) == 0
        assert catalog.rule_count == 0
        assert catalog.rules_for("public.users") is None
