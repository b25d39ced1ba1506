"""
Encoding and delimiter detection for input files with no declared metadata.

Exported spreadsheets arrive as UTF-8, UTF-16 or a Windows code page,
separated by commas, semicolons, tabs or pipes, with nothing telling us
which. Strategy — a scoring heuristic, NOT a guarantee:
  1. Decode the file head under every candidate encoding
  2. Reward Polish accented letters, punish replacement chars and '?'
  3. Split the first non-blank lines on every candidate delimiter
  4. Keep delimiters giving a consistent column count > 1, prefer the busiest

Detection never raises. When there is no signal it falls back to UTF-8 / comma.
"""

from __future__ import annotations

import logging
from pathlib import Path

from .models import DetectedFormat

logger = logging.getLogger(__name__)

# ─── Constants ───────────────────────────────────────────────────────

SAMPLE_SIZE = 4096
DELIMITER_SAMPLE_LINES = 20

# Order matters: ties resolve to the earliest candidate
CANDIDATE_ENCODINGS: tuple[str, ...] = (
    "utf-8",
    "utf-16-le",
    "utf-16-be",
    "utf-32",
    "cp1250",
    "latin-1",  # Never fails to decode
)

CANDIDATE_DELIMITERS: tuple[str, ...] = (",", ";", "\t", "|")

DEFAULT_ENCODING = CANDIDATE_ENCODINGS[0]
DEFAULT_DELIMITER = CANDIDATE_DELIMITERS[0]

EXPECTED_LETTERS: frozenset[str] = frozenset("ąćęłńóśźżĄĆĘŁŃÓŚŹŻ")

_LETTER_SCORE = 5
_REPLACEMENT_PENALTY = -20
_QUESTION_MARK_PENALTY = -2


# ─── Encoding ────────────────────────────────────────────────────────


def score_decoded(text: str) -> int:
    """Score how plausible a decoded sample is."""
    score = 0
    for ch in text:
        if ch in EXPECTED_LETTERS:
            score += _LETTER_SCORE
        elif ch == "\ufffd":
            score += _REPLACEMENT_PENALTY
        elif ch == "?":
            score += _QUESTION_MARK_PENALTY
    return score


def detect_encoding(sample: bytes) -> str:
    """Pick the best-scoring candidate encoding for a raw byte sample.

    All-ASCII input scores zero everywhere and therefore resolves to UTF-8.
    """
    best_encoding = DEFAULT_ENCODING
    best_score: int | None = None

    for encoding in CANDIDATE_ENCODINGS:
        try:
            decoded = sample.decode(encoding, errors="replace")
        except LookupError:
            logger.debug("Encoding %s is not available on this interpreter", encoding)
            continue

        score = score_decoded(decoded)
        if best_score is None or score > best_score:
            best_encoding, best_score = encoding, score

    return best_encoding


# ─── Delimiter ───────────────────────────────────────────────────────


def choose_delimiter(lines: list[str]) -> str:
    """Choose a delimiter from already-decoded sample lines."""
    best_delimiter = DEFAULT_DELIMITER
    best_occurrences = 0

    for delimiter in CANDIDATE_DELIMITERS:
        field_counts = {len(line.split(delimiter)) for line in lines}
        if len(field_counts) != 1:
            continue

        fields_per_line = field_counts.pop()
        if fields_per_line <= 1:
            continue

        occurrences = (fields_per_line - 1) * len(lines)
        if occurrences > best_occurrences:
            best_delimiter, best_occurrences = delimiter, occurrences

    return best_delimiter


def detect_delimiter(path: str | Path, encoding: str) -> str:
    """Sample the first non-blank lines of a file and choose its delimiter."""
    lines: list[str] = []
    try:
        with Path(path).open(encoding=encoding, errors="replace", newline="") as f:
            for raw_line in f:
                line = raw_line.strip("\r\n").lstrip("\ufeff")
                if not line.strip():
                    continue
                lines.append(line)
                if len(lines) >= DELIMITER_SAMPLE_LINES:
                    break
    except (OSError, LookupError) as e:
        logger.warning("Could not sample %s for delimiter detection: %s", path, e)
        return DEFAULT_DELIMITER

    return choose_delimiter(lines)


# ─── Public API ──────────────────────────────────────────────────────


def detect_format(path: str | Path) -> DetectedFormat:
    """Infer encoding and delimiter of a delimited text file."""
    try:
        with Path(path).open("rb") as f:
            sample = f.read(SAMPLE_SIZE)
    except OSError as e:
        logger.warning("Could not read %s for format detection: %s", path, e)
        return DetectedFormat(encoding=DEFAULT_ENCODING, delimiter=DEFAULT_DELIMITER)

    encoding = detect_encoding(sample)
    delimiter = detect_delimiter(path, encoding)
    logger.info("Detected format of %s: encoding=%s delimiter=%r", path, encoding, delimiter)
    return DetectedFormat(encoding=encoding, delimiter=delimiter)
