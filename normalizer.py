"""
normalizer.py — OCR / search-box text → canonical medicine name.

Exposes:
 - normalize(raw_line) -> canonical name ("" when nothing usable remains)
 - short_key(name) -> first three meaningful tokens, used for brand-name lookups
 - split_ocr_lines(text) -> one candidate line per medicine, bullets stripped
"""

import logging
import re
from typing import List

logger = logging.getLogger("normalizer")

MAX_NAME_LENGTH = 100
MIN_USABLE_CHARS = 3

# -------------------------
# Ordered cleanup rules
# -------------------------
# 1. everything from the first comma / instruction word onward is dosing noise
INSTRUCTION_REGEX = re.compile(
    r","
    r"|\b(?:take|once|twice|thrice|three|times|daily|days|morning|evening|night)\b"
    r"|\bx\s?\d+"
    r"|\b\d+\s*days?\b",
    re.IGNORECASE,
)
# 2. parenthesized alternate names, including an unclosed trailing "("
PAREN_REGEX = re.compile(r"\([^)]*\)?")
# 3. strength / pack tokens with an optional bare multiplier ("400mg x", "2 tabs x2")
DOSAGE_REGEX = re.compile(
    r"(?<![\d.])\d+(?:\.\d+)?\s*(?:mcg|mg|ml|g|iu|tablets?|tabs?|capsules?|caps?)\b"
    r"(?:\s*/\s*\d*\s*ml\b)?"
    r"(?:\s*x\d*\b)?",
    re.IGNORECASE,
)
# 4. characters that never belong in a name
JUNK_CHARS_REGEX = re.compile(r"[^\w\s+-]|_")
WHITESPACE_REGEX = re.compile(r"\s+")

BULLET_REGEX = re.compile(r"^\s*(?:[-*•·]+\s*|\d+[.)]\s+)")


def _truncate_instructions(text: str) -> str:
    m = INSTRUCTION_REGEX.search(text)
    return text[:m.start()] if m else text


def _tidy(text: str) -> str:
    text = JUNK_CHARS_REGEX.sub("", text)
    text = WHITESPACE_REGEX.sub(" ", text).strip()
    return text.strip(" +-")


def _cap(text: str) -> str:
    if len(text) <= MAX_NAME_LENGTH:
        return text
    cut = text[:MAX_NAME_LENGTH]
    # cut on a word boundary so no partial word is left behind
    if text[MAX_NAME_LENGTH] != " " and " " in cut:
        cut = cut.rsplit(" ", 1)[0]
    return cut.strip(" +-")


def _apply_rules(text: str) -> str:
    text = _truncate_instructions(text)
    text = PAREN_REGEX.sub(" ", text)
    text = DOSAGE_REGEX.sub(" ", text)
    return _cap(_tidy(text))


def _is_usable(text: str) -> bool:
    usable = [c for c in text if c.isalnum()]
    if len(usable) < MIN_USABLE_CHARS:
        return False
    return any(c.isalpha() for c in usable)


def normalize(raw_line: str) -> str:
    """
    Map one raw line to a canonical candidate name.

    Rules run in a fixed order: instruction truncation, parenthesis removal,
    dosage stripping, character cleanup, length cap, repeated until the
    text is stable. Never raises; anything unusable
    (numbers only, punctuation only, fewer than 3 characters) gives "".

    >>> normalize("Panadol 500mg, take three times daily for 5 days")
    'Panadol'
    """
    if not raw_line or not isinstance(raw_line, str):
        return ""

    # dropping a stray character can rebuild a dosage or multiplier token
    # ("500*mg" -> "500mg"), so the rules repeat until the text is stable
    text = raw_line
    while True:
        cleaned = _apply_rules(text)
        if cleaned == text:
            break
        text = cleaned

    if not _is_usable(text):
        return ""
    return text


def short_key(name: str, max_tokens: int = 3) -> str:
    """Brand-name view of a canonical name: first tokens longer than 2 chars."""
    tokens = [t for t in name.split() if len(t) > 2]
    return " ".join(tokens[:max_tokens])


def split_ocr_lines(text: str) -> List[str]:
    """Split OCR gateway output into candidate lines (one medicine per line)."""
    if not text:
        return []
    seen = set(); out = []
    for line in text.splitlines():
        line = BULLET_REGEX.sub("", line).strip()
        key = line.lower()
        if key and key not in seen:
            seen.add(key)
            out.append(line)
    logger.debug(f"Split OCR text into {len(out)} lines")
    return out
