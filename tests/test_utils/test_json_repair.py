"""Tests for lenient JSON parsing."""

import json

import pytest

from docrecon.utils.json_repair import clean_text, repair, safe_parse


class TestCleanText:
    """Test cases for fence stripping."""

    def test_strips_json_fence(self):
        """Test that a ```json fence is removed."""
        assert clean_text('```json\n{"a": 1}\n```') == '{"a": 1}'

    def test_strips_bare_fence(self):
        """Test that a bare ``` fence is removed."""
        assert clean_text('```\n[1, 2]\n```  ') == "[1, 2]"

    def test_empty_input(self):
        """Test that None and blank text clean to an empty string."""
        assert clean_text(None) == ""
        assert clean_text("   ") == ""


class TestRepair:
    """Test cases for truncated JSON repair."""

    def test_closes_open_array_and_object(self):
        """Test that unclosed brackets are closed in the right order."""
        assert json.loads(repair('{"a": [1, 2')) == {"a": [1, 2]}

    def test_closes_unterminated_string(self):
        """Test that a cut-off string value is terminated."""
        assert json.loads(repair('{"name": "Acme')) == {"name": "Acme"}

    def test_drops_trailing_comma(self):
        """Test that a dangling comma is removed."""
        assert json.loads(repair('{"a": 1,')) == {"a": 1}

    def test_completes_partial_keyword(self):
        """Test that a truncated true literal is completed."""
        assert json.loads(repair('{"ok": tr')) == {"ok": True}

    def test_fills_dangling_colon(self):
        """Test that a key with no value gets null."""
        assert json.loads(repair('{"a": 1, "b":')) == {"a": 1, "b": None}

    def test_fills_dangling_property_name(self):
        """Test that a bare trailing key gets a null value."""
        assert json.loads(repair('{"a": 1, "b"')) == {"a": 1, "b": None}

    def test_braces_inside_strings_are_ignored(self):
        """Test that brackets inside string values are not counted."""
        assert json.loads(repair('{"note": "a {b} [c]", "items": [1')) == {
            "note": "a {b} [c]",
            "items": [1],
        }

    def test_truncated_string_array(self):
        """Test that strings inside arrays are not mistaken for keys."""
        assert json.loads(repair('{"tags": ["bank", "sta')) == {"tags": ["bank", "sta"]}
        assert json.loads(repair('{"tags": ["bank", "statement"')) == {"tags": ["bank", "statement"]}

    def test_dangling_key_inside_nested_object(self):
        """Test a bare key in an object nested in an array."""
        assert json.loads(repair('{"rows": [{"a": 1, "b"')) == {"rows": [{"a": 1, "b": None}]}

    @pytest.mark.parametrize(
        "text, expected",
        [
            ('{"debit": 150.', {"debit": 150}),
            ('{"debit": -', {"debit": None}),
            ('{"debit": -12.', {"debit": -12}),
            ('{"rate": 1e-', {"rate": 1}),
            ('{"values": [1, -', {"values": [1]}),
        ],
    )
    def test_cut_inside_number(self, text, expected):
        """Test that a half-written number is trimmed to its valid prefix."""
        assert json.loads(repair(text)) == expected

    def test_cut_after_escape_backslash(self):
        """Test that a lone trailing backslash in a string is dropped."""
        assert json.loads(repair('{"description": "DEWA \\')) == {"description": "DEWA "}

    def test_escaped_backslash_before_cut(self):
        """Test that a complete escaped backslash is kept."""
        assert json.loads(repair('{"path": "C:\\\\')) == {"path": "C:\\"}

    def test_cut_inside_unicode_escape(self):
        """Test that a partial \\u escape is dropped."""
        assert json.loads(repair('{"name": "Caf\\u00')) == {"name": "Caf"}

    def test_partial_keyword_in_array(self):
        """Test keyword completion for array elements."""
        assert json.loads(repair("[true, fa")) == [True, False]

    def test_empty_text_becomes_empty_object(self):
        """Test that blank text repairs to {}."""
        assert repair("") == "{}"


class TestSafeParse:
    """Test cases for safe_parse."""

    def test_valid_json_passes_through(self):
        """Test that valid JSON is parsed unchanged."""
        assert safe_parse('{"transactions": []}') == {"transactions": []}

    def test_fenced_and_truncated(self):
        """Test a fenced, truncated model answer."""
        text = '```json\n{"transactions": [{"date": "01/10/2023", "debit": 10'
        assert safe_parse(text) == {"transactions": [{"date": "01/10/2023", "debit": 10}]}

    def test_unrepairable_returns_none(self):
        """Test that prose is rejected without raising."""
        assert safe_parse("I could not read this document") is None

    def test_empty_returns_none(self):
        """Test that empty input yields None."""
        assert safe_parse("") is None
        assert safe_parse(None) is None


STATEMENT_PAGE = json.dumps(
    {
        "currency": "AED",
        "summary": {"openingBalance": 1000.5, "closingBalance": -12.75, "rate": 0.00001},
        "transactions": [
            {
                "date": "01/10/2023",
                "description": 'DEWA "BILL" \\ Café',
                "debit": 150.0,
                "credit": 0,
                "tags": ["bank", "statement"],
                "reversed": False,
                "note": None,
                "ok": True,
            },
            {"date": "02/10/2023", "description": "POS", "debit": 0, "credit": 50, "balance": -849.5},
        ],
    }
)


class TestTruncationRobustness:
    """Test repair of a realistic page cut at every possible offset."""

    def test_every_prefix_parses(self):
        """Test that each prefix of a page repairs to an object."""
        failures = [
            STATEMENT_PAGE[:offset]
            for offset in range(1, len(STATEMENT_PAGE) + 1)
            if not isinstance(safe_parse(STATEMENT_PAGE[:offset]), dict)
        ]
        assert failures == []

    def test_complete_rows_survive_truncation(self):
        """Test that rows before the cut are kept intact."""
        cut = STATEMENT_PAGE.index('{"date": "02/10/2023"') + 20
        parsed = safe_parse(STATEMENT_PAGE[:cut])

        assert parsed["transactions"][0] == json.loads(STATEMENT_PAGE)["transactions"][0]


class TestRoundTrip:
    """Test that repair leaves well-formed record dumps unchanged."""

    def test_transaction_dump(self, sample_transaction):
        """Test a serialized transaction."""
        dump = sample_transaction.model_dump(by_alias=True, mode="json")
        text = json.dumps({"transactions": [dump]})

        assert safe_parse(text) == {"transactions": [dump]}
        assert json.loads(repair(text)) == {"transactions": [dump]}

    def test_invoice_dump(self, sample_invoice):
        """Test a serialized invoice with line items."""
        dump = sample_invoice.model_dump(by_alias=True, mode="json")
        text = json.dumps(dump)

        assert safe_parse(text) == dump
        assert json.loads(repair(text)) == dump
