"""Tests for input loading: header synonyms, sanitization and skipped rows."""

from __future__ import annotations

import logging

import pytest
from pydantic import ValidationError

from license_verifier.exceptions import InputError, RowError
from license_verifier.loader import load_requests, normalize_header, parse_requests, resolve_columns
from license_verifier.models import DetectedFormat, VerificationRequest, sanitize_field


# ═══════════════════════════════════════════════════════════════════════
# SANITIZATION
# ═══════════════════════════════════════════════════════════════════════


class TestSanitizeField:
    def test_trims(self):
        assert sanitize_field("  Jan  ") == "Jan"

    def test_strips_control_characters(self):
        assert sanitize_field("Ja\x00n\x1b") == "Jan"

    def test_keeps_hyphen_apostrophe_and_accents(self):
        assert sanitize_field("Anna-Maria O'Żółć") == "Anna-Maria O'Żółć"

    def test_tab_inside_value_is_removed(self):
        assert sanitize_field("AB\t123") == "AB123"

    def test_inner_spacing_is_kept(self):
        assert sanitize_field(" Anna  Maria ") == "Anna  Maria"

    def test_zero_width_format_character_is_removed(self):
        assert sanitize_field("Jan\u200bina") == "Janina"

    def test_private_use_character_is_kept(self):
        assert sanitize_field("AB\ue000123") == "AB\ue000123"

    def test_none_is_empty(self):
        assert sanitize_field(None) == ""

    def test_request_model_sanitizes(self):
        request = VerificationRequest(first_name=" Jan\x07", last_name="Kowalski ", document_number="AB1")
        assert request.first_name == "Jan"
        assert request.last_name == "Kowalski"

    def test_request_rejects_blank_field(self):
        with pytest.raises(ValidationError):
            VerificationRequest(first_name="Jan", last_name="\x00 ", document_number="AB1")

    def test_request_is_immutable(self):
        request = VerificationRequest(first_name="Jan", last_name="Kowalski", document_number="AB1")
        with pytest.raises(ValidationError):
            request.first_name = "Adam"


# ═══════════════════════════════════════════════════════════════════════
# HEADER
# ═══════════════════════════════════════════════════════════════════════


class TestHeader:
    def test_normalize(self):
        assert normalize_header(" First-Name ") == "firstname"
        assert normalize_header("\ufeffImię") == "imię"

    def test_english_synonyms(self):
        columns = resolve_columns(["Surname", "First Name", "License Number"])
        assert columns == {"last_name": 0, "first_name": 1, "document_number": 2}

    def test_polish_synonyms(self):
        columns = resolve_columns(["imiePierwsze", "nazwisko", "seriaNumerBlankietuDruku"])
        assert columns == {"first_name": 0, "last_name": 1, "document_number": 2}

    def test_extra_columns_ignored(self):
        columns = resolve_columns(["id", "first_name", "notes", "last_name", "document_number"])
        assert columns == {"first_name": 1, "last_name": 3, "document_number": 4}


# ═══════════════════════════════════════════════════════════════════════
# PARSING
# ═══════════════════════════════════════════════════════════════════════


class TestParseRequests:
    def test_preserves_file_order_and_duplicates(self):
        text = (
            "first_name,last_name,document_number\n"
            "Jan,Kowalski,AB1\n"
            "Anna,Nowak,CD2\n"
            "Jan,Kowalski,AB1\n"
        )
        requests = parse_requests(text)
        assert [r.document_number for r in requests] == ["AB1", "CD2", "AB1"]

    def test_incomplete_row_skipped_with_line_number(self, caplog):
        text = (
            "first_name,last_name,document_number\n"
            "Jan,Kowalski,AB1\n"
            "Anna,,CD2\n"
            "Piotr,Wiśniewski,EF3\n"
        )
        rejected: list[RowError] = []
        with caplog.at_level(logging.WARNING):
            requests = parse_requests(text, ",", rejected)

        assert [r.first_name for r in requests] == ["Jan", "Piotr"]
        assert len(rejected) == 1
        assert rejected[0].line_number == 3
        assert rejected[0].details["missing"] == ["last_name"]
        assert "line 3" in caplog.text

    def test_missing_column_skips_every_row(self):
        rejected: list[RowError] = []
        requests = parse_requests("first_name,last_name\nJan,Kowalski\n", ",", rejected)
        assert requests == []
        assert [e.line_number for e in rejected] == [2]

    def test_short_row_is_incomplete_not_fatal(self):
        text = "first_name,last_name,document_number\nJan,Kowalski\nAnna,Nowak,CD2\n"
        requests = parse_requests(text)
        assert [r.document_number for r in requests] == ["CD2"]

    def test_malformed_quoting_skips_only_that_row(self):
        text = (
            "first_name,last_name,document_number\n"
            '"Jan"x,Kowalski,AB1\n'
            "Anna,Nowak,CD2\n"
        )
        rejected: list[RowError] = []
        requests = parse_requests(text, ",", rejected)
        assert [r.document_number for r in requests] == ["CD2"]
        assert len(rejected) == 1
        assert rejected[0].line_number == 2

    def test_blank_lines_ignored(self):
        text = "\nfirst_name;last_name;document_number\n\nJan;Kowalski;AB1\n\n"
        requests = parse_requests(text, ";")
        assert len(requests) == 1

    def test_empty_text(self):
        assert parse_requests("") == []

    def test_output_never_exceeds_input(self):
        text = "first_name,last_name,document_number\n" + "".join(
            f"N{i},L{i},{'' if i % 3 == 0 else f'D{i}'}\n" for i in range(12)
        )
        requests = parse_requests(text)
        assert len(requests) == 8
        assert all(r.document_number for r in requests)


class TestLoadRequests:
    def test_loads_cp1250_semicolon_file(self, tmp_path):
        path = tmp_path / "drivers.csv"
        path.write_bytes("Imię;Nazwisko;Numer blankietu\nŁukasz;Żółć;AB123\n".encode("cp1250"))

        requests = load_requests(path, DetectedFormat(encoding="cp1250", delimiter=";"))

        assert requests == [
            VerificationRequest(first_name="Łukasz", last_name="Żółć", document_number="AB123")
        ]

    def test_utf8_bom_is_ignored(self, tmp_path):
        path = tmp_path / "drivers.csv"
        path.write_bytes("first_name,last_name,document_number\nJan,Kowalski,AB1\n".encode("utf-8-sig"))
        requests = load_requests(path, DetectedFormat())
        assert len(requests) == 1

    def test_missing_file_raises_input_error(self, tmp_path):
        with pytest.raises(InputError) as excinfo:
            load_requests(tmp_path / "missing.csv", DetectedFormat())
        assert excinfo.value.code == "INPUT_ERROR"
