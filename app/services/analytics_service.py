"""
Analytics Aggregator
====================

Derives the dashboard snapshot from the full list of records in one pass.
Nothing is cached: every call recomputes from the records it is given, so
two calls over the same records return identical snapshots.
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from datetime import date, datetime, timedelta, timezone
from numbers import Real
from typing import Callable, Dict, Iterable, List, Optional

from app.models.analytics import AnalyticsSnapshot, SectionStat, TrendPoint
from app.models.feedback import answer_has_content
from app.services.sentiment_service import LABELS, NEUTRAL, NEUTRAL_SCORE

logger = logging.getLogger(__name__)

TREND_DAYS = 7
DEFAULT_TYPE = "text"
KNOWN_TYPES = ("text", "voice")


def _ratio(total: float, count: int) -> float:
    return total / count if count else 0


def record_score(record: dict) -> float:
    """The record's sentiment score, or the neutral midpoint when it has none."""
    sentiment = record.get("sentiment")
    score = sentiment.get("score") if isinstance(sentiment, dict) else None
    if isinstance(score, Real) and not isinstance(score, bool):
        return float(score)
    return NEUTRAL_SCORE


def record_label(record: dict) -> str:
    sentiment = record.get("sentiment")
    label = sentiment.get("label") if isinstance(sentiment, dict) else None
    return label if isinstance(label, str) and label else NEUTRAL


def record_day(record: dict) -> Optional[date]:
    """UTC calendar day of the record's timestamp, None if it has none."""
    timestamp = record.get("timestamp")
    if not isinstance(timestamp, str) or not timestamp:
        return None
    try:
        parsed = datetime.fromisoformat(timestamp.replace("Z", "+00:00"))
    except ValueError:
        try:
            return date.fromisoformat(timestamp[:10])
        except ValueError:
            return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc)
    return parsed.date()


def compute_analytics(
    records: Iterable[dict],
    clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
) -> AnalyticsSnapshot:
    """Build the AnalyticsSnapshot for ``records``.

    ``recentTrends`` always covers the seven UTC days ending today, oldest
    first, with empty days zero-filled. Averages over nothing are 0.
    """
    today = clock().astimezone(timezone.utc).date()
    days = [today - timedelta(days=offset) for offset in range(TREND_DAYS - 1, -1, -1)]
    day_counts = {day: 0 for day in days}
    day_sums = {day: 0.0 for day in days}

    total = 0
    score_sum = 0.0
    by_type: Dict[str, int] = {name: 0 for name in KNOWN_TYPES}
    by_label: Dict[str, int] = {label: 0 for label in LABELS}
    section_counts: "OrderedDict[str, int]" = OrderedDict()
    section_sums: Dict[str, float] = {}

    for record in records:
        total += 1
        score = record_score(record)
        score_sum += score

        kind = record.get("type")
        if not isinstance(kind, str) or not kind:
            kind = DEFAULT_TYPE
        by_type[kind] = by_type.get(kind, 0) + 1
        label = record_label(record)
        by_label[label] = by_label.get(label, 0) + 1

        sections = record.get("sections")
        if isinstance(sections, dict):
            for section_id, answer in sections.items():
                if not answer_has_content(answer):
                    continue
                section_counts[section_id] = section_counts.get(section_id, 0) + 1
                section_sums[section_id] = section_sums.get(section_id, 0.0) + score

        day = record_day(record)
        if day in day_counts:
            day_counts[day] += 1
            day_sums[day] += score

    # sorted() is stable, so ties keep first-encounter order
    top_sections: List[SectionStat] = [
        SectionStat(
            sectionId=section_id,
            responseCount=count,
            averageSentiment=_ratio(section_sums[section_id], count),
        )
        for section_id, count in sorted(section_counts.items(), key=lambda item: item[1], reverse=True)
    ]

    trends = [
        TrendPoint(date=day.isoformat(), count=day_counts[day], averageSentiment=_ratio(day_sums[day], day_counts[day]))
        for day in days
    ]

    logger.debug("analytics_computed total=%d sections=%d", total, len(top_sections))
    return AnalyticsSnapshot(
        totalResponses=total,
        averageSentiment=_ratio(score_sum, total),
        responsesByType=by_type,
        sentimentDistribution=by_label,
        topSections=top_sections,
        recentTrends=trends,
    )
