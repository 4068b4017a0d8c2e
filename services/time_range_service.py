"""
Time-range resolution for analytics requests.

Maps a symbolic range token to a start instant and a bucket granularity:

| token      | start            | granularity          |
|------------|------------------|----------------------|
| 24h / 1d   | now - 1 day      | hourly, 24 buckets   |
| 15d        | now - 15 days    | daily, 15 buckets    |
| 1m / 30d   | now - 1 month    | daily, 30 buckets    |
| 1y         | now - 1 year     | monthly, variable    |
| all        | epoch            | monthly, variable    |

Unknown tokens fall back to 1m; resolution never raises.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional

from dateutil.relativedelta import relativedelta
import structlog

logger = structlog.get_logger(__name__)

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class RangeToken(str, Enum):
    """Canonical range tokens."""

    DAY = "24h"
    FIFTEEN_DAYS = "15d"
    MONTH = "1m"
    YEAR = "1y"
    ALL = "all"


class Granularity(str, Enum):
    """Time-series bucket size."""

    HOURLY = "hourly"
    DAILY = "daily"
    MONTHLY = "monthly"


# Accepted spellings -> canonical token
RANGE_ALIASES = {
    "24h": RangeToken.DAY,
    "1d": RangeToken.DAY,
    "15d": RangeToken.FIFTEEN_DAYS,
    "1m": RangeToken.MONTH,
    "30d": RangeToken.MONTH,
    "1y": RangeToken.YEAR,
    "all": RangeToken.ALL,
}

DEFAULT_RANGE = RangeToken.MONTH


@dataclass(frozen=True)
class ResolvedRange:
    """
    Concrete window for an analytics request.

    bucket_count is fixed for hourly/daily ranges and None for monthly
    ranges, whose length depends on the start month.
    """

    token: RangeToken
    start: datetime
    now: datetime
    granularity: Granularity
    bucket_count: Optional[int]
    requested: Optional[str] = None

    @property
    def is_default(self) -> bool:
        """True when the requested token was not recognized."""
        return self.requested is not None and self.requested.strip().lower() not in RANGE_ALIASES


def utc_now() -> datetime:
    """Current instant, timezone-aware UTC."""
    return datetime.now(timezone.utc)


def normalize_token(range_token: Optional[str]) -> RangeToken:
    """Map any accepted spelling to its canonical token (default 1m)."""
    if not range_token:
        return DEFAULT_RANGE
    return RANGE_ALIASES.get(range_token.strip().lower(), DEFAULT_RANGE)


def resolve_range(range_token: Optional[str], now: Optional[datetime] = None) -> ResolvedRange:
    """
    Resolve a range token against a wall-clock instant.

    Args:
        range_token: "24h", "1d", "15d", "1m", "30d", "1y", "all" (case-insensitive)
        now: Evaluation instant (defaults to current UTC time)

    Returns:
        ResolvedRange with start date, granularity and expected bucket count
    """
    now = now or utc_now()
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    token = normalize_token(range_token)

    if token == RangeToken.DAY:
        start, granularity, buckets = now - timedelta(days=1), Granularity.HOURLY, 24
    elif token == RangeToken.FIFTEEN_DAYS:
        start, granularity, buckets = now - timedelta(days=15), Granularity.DAILY, 15
    elif token == RangeToken.YEAR:
        start, granularity, buckets = now - relativedelta(years=1), Granularity.MONTHLY, None
    elif token == RangeToken.ALL:
        start, granularity, buckets = EPOCH, Granularity.MONTHLY, None
    else:
        start, granularity, buckets = now - relativedelta(months=1), Granularity.DAILY, 30

    resolved = ResolvedRange(
        token=token,
        start=start,
        now=now,
        granularity=granularity,
        bucket_count=buckets,
        requested=range_token,
    )

    if resolved.is_default:
        logger.debug("range_token_defaulted", requested=range_token, token=token.value)

    return resolved
