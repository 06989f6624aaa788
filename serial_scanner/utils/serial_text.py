"""Recognized-text normalization and serial validation (pure, easily unit tested)."""
from __future__ import annotations
import re
from typing import Iterator, List

from ..core.constants import SERIAL_PATTERN

_SERIAL_RE = re.compile(SERIAL_PATTERN)
_WHITESPACE_RE = re.compile(r"\s+")
_NON_DIGIT_RE = re.compile(r"[^0-9]")


def tokenize(text: str) -> List[str]:
    """Split recognizer output on whitespace runs, dropping empty tokens."""
    if not text:
        return []
    return [token for token in _WHITESPACE_RE.split(text) if token]


def to_candidate(token: str) -> str:
    """Strip every non-digit character."""
    return _NON_DIGIT_RE.sub("", token)


def is_valid_serial(candidate: str) -> bool:
    # ASCII digits only; \d alone would admit other Unicode digits
    return bool(candidate) and candidate.isascii() and _SERIAL_RE.fullmatch(candidate) is not None


def iter_valid_serials(text: str) -> Iterator[str]:
    """Yield valid serial candidates in the order the recognizer emitted them."""
    for token in tokenize(text):
        candidate = to_candidate(token)
        if is_valid_serial(candidate):
            yield candidate
