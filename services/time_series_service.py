"""
Zero-filled time-series bucketing.

A series is created with every bucket of its window already present and
zeroed, so charts never have missing x-axis points. Records are then placed
into exactly one bucket by truncating their timestamp to the bucket
granularity. Records whose bucket is not part of the window are dropped from
the series only; aggregate KPIs are computed elsewhere and still count them.
"""

from dataclasses import dataclass, field
from datetime import datetime, time, timedelta, timezone
from decimal import Decimal
from typing import Dict, List, Mapping, Optional, Sequence, Union

from dateutil.relativedelta import relativedelta
import structlog

from services.time_range_service import Granularity, RangeToken, ResolvedRange

logger = structlog.get_logger(__name__)

Amount = Union[Decimal, int]

WEEK_NAMES = ("First Week", "Second Week", "Third Week", "Fourth Week", "Fifth Week")
NO_SALES_LABEL = "No Sales"


def bucket_key(moment: datetime, granularity: Granularity) -> str:
    """
    Build the stable key of the bucket containing a moment.

    - hourly:  2026-10-19T14
    - daily:   2026-10-19
    - monthly: 2026-10
    """
    moment = _as_utc(moment)
    if granularity == Granularity.HOURLY:
        return moment.strftime("%Y-%m-%dT%H")
    if granularity == Granularity.DAILY:
        return moment.date().isoformat()
    return f"{moment.year:04d}-{moment.month:02d}"


def bucket_label(moment: datetime, granularity: Granularity) -> str:
    """Human-readable bucket name ("02 PM", "Oct 19", "Oct 2026")."""
    if granularity == Granularity.HOURLY:
        return moment.strftime("%I %p")
    if granularity == Granularity.DAILY:
        return moment.strftime("%b %d")
    return moment.strftime("%b %Y")


def _as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


@dataclass
class TimeBucket:
    """One slice of a series."""

    key: str
    name: str
    start: datetime
    values: Dict[str, Amount] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {"key": self.key, "name": self.name, **self.values}


def bucket_starts(
    granularity: Granularity,
    start: datetime,
    now: datetime,
    count: Optional[int] = None,
) -> List[datetime]:
    """
    Ordered start instants of every bucket in a window.

    Hourly and daily windows are the `count` buckets ending at the bucket
    containing `now`. Monthly windows run from the month of `start` through
    the month of `now` inclusive.
    """
    now = _as_utc(now)

    if granularity == Granularity.HOURLY:
        anchor = now.replace(minute=0, second=0, microsecond=0)
        return [anchor - timedelta(hours=i) for i in range((count or 24) - 1, -1, -1)]

    if granularity == Granularity.DAILY:
        today = datetime.combine(now.date(), time.min, tzinfo=timezone.utc)
        return [today - timedelta(days=i) for i in range((count or 30) - 1, -1, -1)]

    current = _as_utc(start).replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    starts = []
    while current <= now:
        starts.append(current)
        current = current + relativedelta(months=1)
    return starts


def generate_buckets(
    granularity: Granularity,
    start: datetime,
    now: datetime,
    metrics: Mapping[str, Amount],
    count: Optional[int] = None,
) -> List[TimeBucket]:
    """Zeroed buckets covering a window, in chronological order."""
    return [
        TimeBucket(
            key=bucket_key(bucket_start, granularity),
            name=bucket_label(bucket_start, granularity),
            start=bucket_start,
            values=dict(metrics),
        )
        for bucket_start in bucket_starts(granularity, start, now, count)
    ]


class TimeSeries:
    """
    Ordered, zero-filled series of buckets.

    Usage:
        series = TimeSeries.for_range(resolved, {"revenue": Decimal("0"), "count": 0})
        series.add(sale.deal_date, revenue=price, count=1)
        points = series.points()
    """

    def __init__(
        self,
        granularity: Granularity,
        start: datetime,
        now: datetime,
        metrics: Mapping[str, Amount],
        count: Optional[int] = None,
    ):
        self.granularity = granularity
        self._metrics = dict(metrics)
        self._buckets: Dict[str, TimeBucket] = {
            bucket.key: bucket
            for bucket in generate_buckets(granularity, start, now, self._metrics, count)
        }
        self.dropped = 0

    @classmethod
    def for_range(cls, resolved: ResolvedRange, metrics: Mapping[str, Amount]) -> "TimeSeries":
        """Series covering a resolved analytics range."""
        return cls(
            granularity=resolved.granularity,
            start=resolved.start,
            now=resolved.now,
            metrics=metrics,
            count=resolved.bucket_count,
        )

    def __len__(self) -> int:
        return len(self._buckets)

    def add(self, moment: Optional[datetime], **amounts: Amount) -> bool:
        """
        Accumulate amounts into the bucket containing `moment`.

        Returns:
            False when the moment is missing or outside the window (dropped)
        """
        if moment is None:
            self.dropped += 1
            return False

        key = bucket_key(moment, self.granularity)
        bucket = self._buckets.get(key)
        if bucket is None:
            logger.debug("series_point_dropped", key=key, granularity=self.granularity.value)
            self.dropped += 1
            return False

        for metric, amount in amounts.items():
            bucket.values[metric] = bucket.values.get(metric, 0) + amount
        return True

    def buckets(self) -> List[TimeBucket]:
        """Buckets in chronological order."""
        return list(self._buckets.values())

    def points(self) -> List[dict]:
        """Buckets as plain dicts (key, name, metrics...)."""
        return [bucket.to_dict() for bucket in self._buckets.values()]

    def total(self, metric: str) -> Amount:
        """Sum of a metric across all buckets."""
        return sum((b.values.get(metric, 0) for b in self._buckets.values()), Decimal("0"))


def best_period_label(
    token: RangeToken,
    points: Sequence[Mapping],
    metric: str = "revenue",
) -> str:
    """
    Label the strongest period of a series.

    For the 1-month range the daily buckets are grouped into five
    consecutive 7-day windows and the best window is reported as
    "First Week" ... "Fifth Week". Otherwise the name of the single best
    bucket is returned. Ties go to the earliest period. "No Sales" when
    the series total is zero.
    """
    total = sum((p[metric] for p in points), Decimal("0"))
    if total == 0:
        return NO_SALES_LABEL

    if token == RangeToken.MONTH:
        weeks = [Decimal("0")] * len(WEEK_NAMES)
        for index, point in enumerate(points):
            week = index // 7
            if week < len(weeks):
                weeks[week] += point[metric]

        best_week, best_amount = 0, None
        for index, amount in enumerate(weeks):
            if best_amount is None or amount > best_amount:
                best_week, best_amount = index, amount
        return WEEK_NAMES[best_week]

    best_name, best_amount = "N/A", Decimal("0")
    for point in points:
        if point[metric] > best_amount:
            best_name, best_amount = point["name"], point[metric]
    return best_name
