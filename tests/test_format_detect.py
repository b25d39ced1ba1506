"""
Tests for encoding and delimiter detection.

Files are written to tmp_path in the encodings real exports arrive in.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from license_verifier.format_detect import (
    choose_delimiter,
    detect_delimiter,
    detect_encoding,
    detect_format,
    score_decoded,
)
from license_verifier.models import DetectedFormat

POLISH_CSV = "imie;nazwisko;numer_blankietu\nŁukasz;Żółć;AB123\nJoanna;Świętek;CD456\n"


def _write(tmp_path: Path, content: str, encoding: str = "utf-8", name: str = "in.csv") -> Path:
    path = tmp_path / name
    path.write_bytes(content.encode(encoding))
    return path


# ═══════════════════════════════════════════════════════════════════════
# ENCODING
# ═══════════════════════════════════════════════════════════════════════


class TestScoring:
    def test_accented_letters_score_five_each(self):
        assert score_decoded("ąę") == 10

    def test_replacement_char_penalized(self):
        assert score_decoded("a\ufffdb") == -20

    def test_question_mark_penalized(self):
        assert score_decoded("??") == -4

    def test_plain_ascii_scores_zero(self):
        assert score_decoded("Jan,Kowalski,AB123") == 0


class TestDetectEncoding:
    def test_utf8_polish(self):
        assert detect_encoding(POLISH_CSV.encode("utf-8")) == "utf-8"

    def test_cp1250_polish(self):
        assert detect_encoding(POLISH_CSV.encode("cp1250")) == "cp1250"

    def test_utf16_le(self):
        assert detect_encoding(POLISH_CSV.encode("utf-16-le")) == "utf-16-le"

    def test_ascii_defaults_to_utf8(self):
        assert detect_encoding(b"first,last,number\nJan,Kowalski,AB1\n") == "utf-8"

    def test_empty_sample_defaults_to_utf8(self):
        assert detect_encoding(b"") == "utf-8"


# ═══════════════════════════════════════════════════════════════════════
# DELIMITER
# ═══════════════════════════════════════════════════════════════════════


class TestChooseDelimiter:
    def test_semicolon_with_four_fields(self):
        lines = ["a;b;c;d", "e;f;g;h", "i;j;k;l"]
        assert choose_delimiter(lines) == ";"

    def test_inconsistent_counts_disqualify(self):
        # Commas inside names make the comma split ragged
        lines = ["first|last|number", "Jan, Jr.|Kowalski|AB1", "Anna|Nowak|CD2"]
        assert choose_delimiter(lines) == "|"

    def test_most_specific_split_wins(self):
        lines = ["a,b;c;d", "e,f;g;h"]
        assert choose_delimiter(lines) == ";"

    def test_tab(self):
        assert choose_delimiter(["a\tb\tc", "d\te\tf"]) == "\t"

    def test_single_column_defaults_to_comma(self):
        assert choose_delimiter(["abc", "def"]) == ","

    def test_no_lines_defaults_to_comma(self):
        assert choose_delimiter([]) == ","


class TestDetectDelimiter:
    def test_skips_blank_lines(self, tmp_path):
        path = _write(tmp_path, "\n\na;b;c\n\nd;e;f\n")
        assert detect_delimiter(path, "utf-8") == ";"

    def test_only_first_twenty_lines_sampled(self, tmp_path):
        lines = ["a;b"] * 20 + ["x;y;z"]
        path = _write(tmp_path, "\n".join(lines) + "\n")
        assert detect_delimiter(path, "utf-8") == ";"

    def test_missing_file_defaults_to_comma(self, tmp_path):
        assert detect_delimiter(tmp_path / "missing.csv", "utf-8") == ","


# ═══════════════════════════════════════════════════════════════════════
# FULL DETECTION
# ═══════════════════════════════════════════════════════════════════════


class TestDetectFormat:
    def test_cp1250_semicolon_export(self, tmp_path):
        path = _write(tmp_path, POLISH_CSV, encoding="cp1250")
        assert detect_format(path) == DetectedFormat(encoding="cp1250", delimiter=";")

    def test_idempotent(self, tmp_path):
        path = _write(tmp_path, POLISH_CSV)
        assert detect_format(path) == detect_format(path)

    def test_missing_file_returns_defaults(self, tmp_path):
        fmt = detect_format(tmp_path / "nope.csv")
        assert fmt == DetectedFormat(encoding="utf-8", delimiter=",")

    @pytest.mark.parametrize("delimiter", [",", ";", "\t", "|"])
    def test_each_candidate_detected(self, tmp_path, delimiter):
        content = "\n".join(delimiter.join(row) for row in [("a", "b", "c"), ("d", "e", "f")])
        path = _write(tmp_path, content + "\n")
        assert detect_format(path).delimiter == delimiter
