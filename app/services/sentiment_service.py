"""
Keyword sentiment scorer.

Maps free text to a coarse positive / neutral / negative label with a
score in [0, 1] (fraction of sentiment keywords that are positive) and a
confidence. Pure function of its input: no state, no I/O.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass

POSITIVE_WORDS = frozenset({"good", "great", "excellent", "amazing", "love", "perfect", "best"})
NEGATIVE_WORDS = frozenset({"bad", "poor", "terrible", "worst", "hate", "awful", "disappointing"})

POSITIVE = "positive"
NEUTRAL = "neutral"
NEGATIVE = "negative"
LABELS = (POSITIVE, NEUTRAL, NEGATIVE)

NEUTRAL_SCORE = 0.5
POSITIVE_THRESHOLD = 0.6
NEGATIVE_THRESHOLD = 0.4

NO_SIGNAL_CONFIDENCE = 0.5
NEUTRAL_CONFIDENCE = 0.6
POLAR_BASE_CONFIDENCE = 0.7


@dataclass(frozen=True)
class SentimentResult:
    label: str
    score: float
    confidence: float

    def to_dict(self) -> dict:
        return asdict(self)


def analyze_sentiment(text: str | None) -> SentimentResult:
    """Score ``text`` by exact, case-insensitive keyword matches.

    Tokens are whitespace-separated; punctuation is not stripped, so
    "great!" does not count as "great".
    """
    tokens = (text or "").lower().split()
    positive_count = sum(1 for token in tokens if token in POSITIVE_WORDS)
    negative_count = sum(1 for token in tokens if token in NEGATIVE_WORDS)

    total = positive_count + negative_count
    if total == 0:
        return SentimentResult(NEUTRAL, NEUTRAL_SCORE, NO_SIGNAL_CONFIDENCE)

    score = positive_count / total
    if score > POSITIVE_THRESHOLD:
        label = POSITIVE
        confidence = POLAR_BASE_CONFIDENCE + (score - POSITIVE_THRESHOLD) * 0.5
    elif score < NEGATIVE_THRESHOLD:
        label = NEGATIVE
        confidence = POLAR_BASE_CONFIDENCE + (NEGATIVE_THRESHOLD - score) * 0.5
    else:
        label = NEUTRAL
        confidence = NEUTRAL_CONFIDENCE

    return SentimentResult(label, score, min(1.0, max(0.0, confidence)))
