"""
Pytest configuration and fixtures for PG Anonymizer tests.
"""

import logging

import pytest

from pg_anonymizer.logging_config import LOGGER_NAME
from pg_anonymizer.rules.context import RowContext


FNV_BASIS = 0x811C9DC5
FNV_PRIME = 0x01000193


def reference_hash(salt_text: str, value: str) -> str:
    """Independent FNV-1a computation used to check HASH output."""
    salt = 0
    for byte in salt_text.encode("utf-8"):
        salt = (salt * 31 + byte) % 2 ** 32
    h = FNV_BASIS
    for byte in str(salt).encode("ascii") + value.encode("utf-8"):
        h = ((h ^ byte) * FNV_PRIME) % 2 ** 32
    return str(h & 0x7FFFFFFF)


@pytest.fixture(autouse=True)
def reset_package_logger():
    """Undo handler/propagation changes made by setup_logging between tests."""
    logger = logging.getLogger(LOGGER_NAME)
    yield
    for handler in logger.handlers:
        handler.close()
    logger.handlers.clear()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def hash_of():
    """Expected HASH output for (salt text, value)."""
    return reference_hash


@pytest.fixture
def empty_context():
    return RowContext.empty()


@pytest.fixture
def sample_dump():
    """A small plain-text dump with two COPY blocks."""
    return (
        "--\n"
        "-- PostgreSQL database dump\n"
        "--\n"
        "\n"
        "SET client_encoding = 'UTF8';\n"
        "\n"
        "COPY public.users (id, email, role) FROM stdin;\n"
        "1\tjohn@example.com\tadmin\n"
        "2\tjane@example.org\tuser\n"
        "\\.\n"
        "\n"
        "COPY public.orders (id, total) FROM stdin;\n"
        "10\t99.50\n"
        "\\.\n"
        "\n"
        "-- PostgreSQL database dump complete\n"
    )


@pytest.fixture
def rules_file(tmp_path):
    """Create a YAML rule file in the original list-of-mappings shape."""
    content = """rules:
  public:
    users:
      - email: '{{HASH(42)}}@anon.test'
      - role: '{{IF({{MATCHES(email, .*@example\\.com)}}, EQ, true, internal, external)}}'
"""
    path = tmp_path / "rules.yaml"
    path.write_text(content)
    return path


@pytest.fixture
def dump_file(tmp_path, sample_dump):
    """Write the sample dump to disk."""
    path = tmp_path / "dump.sql"
    path.write_text(sample_dump)
    return path
