"""Heuristic complexity score for bill-splitting requests."""

import re
from typing import Iterable, Pattern

MIN_SCORE = 1
MAX_SCORE = 10
LONG_MESSAGE_CHARS = 200


def _words(words: Iterable[str]) -> Pattern:
    return re.compile(r"\b(?:" + "|".join(re.escape(w) for w in words) + r")\b", re.IGNORECASE)


PERCENTAGE_MARKERS = re.compile(
    r"%|\bporcentagem\b|\bpercentual\b|\bpor cento\b|\bmetade\b|\bterço\b|\bquarto\b|\b\d+\s*/\s*\d+\b",
    re.IGNORECASE,
)
CONDITIONAL_MARKERS = _words([
    "se", "caso", "condicional", "senão", "exceto", "somente se", "a não ser", "if", "unless",
])
CURRENCY_MARKERS = re.compile(
    r"\bmoedas?\b|\bd[óo]lar(?:es)?\b|\beuros?\b|US\$|€|\bcâmbio\b|\bUSD\b|\bEUR\b",
    re.IGNORECASE,
)
MULTI_PARTY_MARKERS = re.compile(
    r"\b\d+\s+(?:pessoas|amigos|amigas|participantes)\b|\bpessoas\b|\bmúltiplas\b|\bvárias\b"
    r"|\bvários\b|\btodo mundo\b|\bgalera\b|\bcada um\b",
    re.IGNORECASE,
)


class ComplexityScorer:
    """Scores a request from 1 (trivial) to 10.

    The score feeds cost decisions only; no input is ever rejected because
    of it.
    """

    def __init__(self, long_message_chars: int = LONG_MESSAGE_CHARS):
        self.long_message_chars = long_message_chars

    def score(self, text: str) -> int:
        text = text or ""
        complexity = MIN_SCORE

        if len(text) > self.long_message_chars:
            complexity += 2
        if PERCENTAGE_MARKERS.search(text):
            complexity += 1
        if CONDITIONAL_MARKERS.search(text):
            complexity += 1
        if CURRENCY_MARKERS.search(text):
            complexity += 1
        if MULTI_PARTY_MARKERS.search(text):
            complexity += 1

        return min(complexity, MAX_SCORE)
