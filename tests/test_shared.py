"""
tests/test_shared.py
Unit tests for src/shared.py.
"""

import pytest

from src.shared import CollectionType, parse_collection_type, short_title


@pytest.mark.parametrize(
    "value,expected",
    [
        (None, CollectionType.ROADMAP),
        ("", CollectionType.ROADMAP),
        ("roadmap", CollectionType.ROADMAP),
        ("issues", CollectionType.ISSUES),
        ("AKS", CollectionType.ISSUES),
        (" aks-issues ", CollectionType.ISSUES),
    ],
)
def test_parse_collection_type_accepts_aliases(value, expected):
    assert parse_collection_type(value) is expected


def test_parse_collection_type_rejects_unknown():
    with pytest.raises(ValueError):
        parse_collection_type("pull-requests")


def test_short_title_truncates_long_titles():
    assert short_title("short") == "short"
    assert short_title("x" * 60) == "x" * 50 + "..."
