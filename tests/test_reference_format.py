"""
test_reference_format.py — Client reference formatting and parsing.
"""

import string
import pytest

from utils.errors import FormatError
from utils.reference import (
    ReferenceTriple, format_client_ref, parse_client_ref,
    is_valid_client_ref, extract_portfolio_code, max_sequence, next_alpha,
)


class TestFormat:
    @pytest.mark.parametrize("triple, expected", [
        ((1, "A", 1), "1A001"),
        ((2, "B", 2), "2B002"),
        ((9, "I", 9), "9I009"),
        ((4, "D", 4), "4D004"),
        ((10, "M", 999), "10M999"),
    ])
    def test_known_references(self, triple, expected):
        assert format_client_ref(*triple) == expected

    def test_wider_sequence(self):
        assert format_client_ref(3, "C", 42, width=4) == "3C0042"

    @pytest.mark.parametrize("triple", [
        (0, "A", 1),
        (-1, "A", 1),
        (True, "A", 1),
        (1, "a", 1),
        (1, "AB", 1),
        (1, "", 1),
        (1, "A", 0),
        (1, "A", 1000),
        (1, "A", 1.0),
    ])
    def test_rejects_values_outside_grammar(self, triple):
        with pytest.raises(FormatError):
            format_client_ref(*triple)


class TestParse:
    def test_parse(self):
        assert parse_client_ref("1A001") == ReferenceTriple(1, "A", 1)
        assert parse_client_ref("10M999") == ReferenceTriple(10, "M", 999)

    def test_to_dict(self):
        assert parse_client_ref("2B002").to_dict() == {
            "portfolio_code": 2, "alpha": "B", "sequence": 2,
        }

    @pytest.mark.parametrize("ref", [
        "",
        "1a001",
        " 1A001",
        "1A001 ",
        "1A01",
        "1A0001",
        "01A001",
        "0A001",
        "1AA001",
        "A001",
        "1A",
        "1A000",
        "1-A-001",
        "1A001\n",
        "1A001\r\n",
    ])
    def test_rejects_malformed(self, ref):
        with pytest.raises(FormatError):
            parse_client_ref(ref)

    def test_rejects_non_string(self):
        with pytest.raises(FormatError):
            parse_client_ref(1001)

    def test_format_error_is_value_error(self):
        with pytest.raises(ValueError):
            parse_client_ref("nope")

    def test_round_trip_across_alphabet(self):
        for alpha in string.ascii_uppercase:
            for triple in ((1, alpha, 1), (7, alpha, 500), (10, alpha, max_sequence())):
                assert parse_client_ref(format_client_ref(*triple)) == triple

    def test_round_trip_custom_width(self):
        ref = format_client_ref(5, "Q", 1234, width=4)
        assert parse_client_ref(ref, width=4) == (5, "Q", 1234)
        assert not is_valid_client_ref(ref)


class TestHelpers:
    def test_is_valid_client_ref(self):
        assert is_valid_client_ref("3H001")
        assert not is_valid_client_ref("3h001")
        assert not is_valid_client_ref(None)

    def test_extract_portfolio_code(self):
        assert extract_portfolio_code("10M012") == 10
        assert extract_portfolio_code("garbage") is None

    def test_next_alpha(self):
        assert next_alpha("A") == "B"
        assert next_alpha("Y") == "Z"
        assert next_alpha("Z") is None

    def test_max_sequence(self):
        assert max_sequence() == 999
        assert max_sequence(4) == 9999
