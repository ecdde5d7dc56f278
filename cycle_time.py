"""
Cycle time calculation.

Cycle time = elapsed wall-clock hours between the moment work started and
the moment it was completed. Spans that cannot be measured (a missing or
unparseable endpoint, or an end that is not after the start) are reported
as None rather than as 0 or a negative number.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Iterable, Optional

MS_PER_HOUR = 60 * 60 * 1000

# Jira sends "+0000" offsets, GitLab/GitHub send "Z" or "+00:00"
TIMESTAMP_FORMATS = [
    '%Y-%m-%dT%H:%M:%S.%f%z',
    '%Y-%m-%dT%H:%M:%S%z',
    '%Y-%m-%dT%H:%M%z',
    '%Y-%m-%dT%H:%M:%S.%f',
    '%Y-%m-%dT%H:%M:%S',
    '%Y-%m-%dT%H:%M',
    '%Y-%m-%d',
]


@dataclass(frozen=True)
class CycleTimeSummary:
    count: int
    average: float
    minimum: float
    maximum: float


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp, returning None when it is not one."""
    if not value or not isinstance(value, str):
        return None

    value = value.strip()
    for fmt in TIMESTAMP_FORMATS:
        try:
            parsed = datetime.strptime(value, fmt)
        except ValueError:
            continue
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed

    return None


def round_hours(hours: float) -> float:
    """Round to one decimal place, halves away from zero."""
    return float(Decimal(str(hours)).quantize(Decimal('0.1'), rounding=ROUND_HALF_UP))


def elapsed_ms(start: datetime, end: datetime) -> int:
    return (end - start) // timedelta(milliseconds=1)


def calc_cycle_time_hours(start_iso: Optional[str], end_iso: Optional[str],
                          rounded: bool = True) -> Optional[float]:
    """
    Hours between two ISO-8601 timestamps, rounded to one decimal.

    Returns None when either timestamp is missing or unparseable, or when
    end is not strictly after start. rounded=False keeps full precision,
    for statistics that are rounded only when displayed.
    """
    if not start_iso or not end_iso:
        return None

    start = parse_timestamp(start_iso)
    end = parse_timestamp(end_iso)
    if start is None or end is None:
        return None

    ms = elapsed_ms(start, end)
    if ms <= 0:
        return None

    hours = Decimal(ms) / MS_PER_HOUR
    if rounded:
        hours = hours.quantize(Decimal('0.1'), rounding=ROUND_HALF_UP)
    return float(hours)


def resolve_jira_start(issue: Dict) -> Optional[str]:
    """
    Pick the start of a Jira issue's cycle.

    The status category change (To Do -> In Progress) is the best proxy for
    when work began; issues without one fall back to their creation date.
    """
    return issue.get('statuscategorychangedate') or issue.get('created')


def jira_cycle_time_hours(issue: Dict, rounded: bool = True) -> Optional[float]:
    """Cycle time of a flat Jira issue record (start -> resolutiondate)."""
    return calc_cycle_time_hours(resolve_jira_start(issue), issue.get('resolutiondate'), rounded=rounded)


def summarize_hours(hours: Iterable[float]) -> CycleTimeSummary:
    """Count, average, min and max of a set of cycle times (zeros when empty)."""
    values = list(hours)
    if not values:
        return CycleTimeSummary(count=0, average=0.0, minimum=0.0, maximum=0.0)

    return CycleTimeSummary(
        count=len(values),
        average=sum(values) / len(values),
        minimum=min(values),
        maximum=max(values),
    )


def format_hours(hours: float) -> str:
    """Render hours as "5.0h" below a day and "1.5d" from a day on."""
    if hours < 24:
        return f"{round_hours(hours):.1f}h"
    return f"{round_hours(hours / 24):.1f}d"
