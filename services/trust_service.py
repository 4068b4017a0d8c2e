"""
Buyer trust score, mastery badge gate and achievements.

Pure scoring logic over a buyer's all-time records. Persisting the badge
gate is done by the buyer analytics service through
RecordService.swap_elite_eligibility.

Trust score (0-100):

| component   | formula                                   | max |
|-------------|-------------------------------------------|-----|
| reliability | accepted / (accepted + rejected) * 100 * 0.4 | 40  |
| activity    | min(interests / 10, 1) * 20               | 20  |
| volume      | min(spend / 5000, 1) * 20                 | 20  |
| tenure      | min(account age days / 30, 1) * 20        | 20  |

Badge gate (persisted as users.is_elite_eligible):

    ELIGIBLE    --score == 100 / +1 badge-->  COOLED_DOWN
    COOLED_DOWN --score < 90-------------->  ELIGIBLE
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from enum import Enum
from typing import Iterable, Mapping, Optional
import structlog

from models.analytics import Achievement, BadgeState, Milestone
from models.records import AssetRecord, SaleRecord
from services.kpi_service import (
    InterestCounts,
    ZERO,
    HUNDRED,
    paid_price,
    quantize,
    safe_ratio,
    sale_figures,
)

logger = structlog.get_logger(__name__)

RELIABILITY_WEIGHT = Decimal("0.4")
COMPONENT_POINTS = Decimal("20")
ACTIVITY_TARGET = 10
VOLUME_TARGET = Decimal("5000")
TENURE_TARGET_DAYS = 30

ELIGIBLE_SCORE = 75
PERFECT_SCORE = 100
REARM_BELOW = 90

HIGH_VALUE_THRESHOLD = Decimal("1200")
ACTIVE_BUYER_SALES = 5
NEGOTIATION_PRO_SALES = 3
FAST_MOVER_WINDOW = 3
FAST_MOVER_SPAN = timedelta(hours=1)

# (min earned achievements, title, level)
MILESTONE_LADDER = (
    (1, "Active Inquirer", 5),
    (3, "Verified Trader", 10),
    (5, "Market Stalwart", 25),
    (10, "Elite Veteran", 50),
)
PERFECT_SCORE_MILESTONE = ("Sentinel of Truth", 100)


# ===================
# TRUST SCORE
# ===================

@dataclass(frozen=True)
class TrustBreakdown:
    """Trust score with its weighted components."""

    reliability: Decimal
    reliability_points: Decimal
    activity_points: Decimal
    volume_points: Decimal
    tenure_points: Decimal
    total_score: int

    @property
    def is_eligible(self) -> bool:
        return self.total_score >= ELIGIBLE_SCORE


def _capped(value, target) -> Decimal:
    """min(value / target, 1) * 20"""
    return min(safe_ratio(value, target), Decimal("1")) * COMPONENT_POINTS


def account_age_days(created_at: Optional[datetime], now: datetime) -> Decimal:
    """Fractional days since account creation (0 when unknown or in the future)."""
    if created_at is None:
        return ZERO
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)
    seconds = (now - created_at).total_seconds()
    return max(ZERO, Decimal(str(seconds)) / Decimal("86400"))


def compute_trust_score(
    interests: InterestCounts,
    total_spend: Decimal,
    account_created_at: Optional[datetime],
    now: datetime,
) -> TrustBreakdown:
    """
    Compute the weighted trust score.

    Args:
        interests: All-time interest counts of the buyer
        total_spend: All-time spend of the buyer
        account_created_at: Tenure anchor
        now: Evaluation instant

    Returns:
        TrustBreakdown (components to 2 dp, total rounded half-up)
    """
    reliability = safe_ratio(interests.accepted, interests.closed, HUNDRED)
    reliability_points = reliability * RELIABILITY_WEIGHT
    activity_points = _capped(interests.total, ACTIVITY_TARGET)
    volume_points = _capped(total_spend, VOLUME_TARGET)
    tenure_points = _capped(account_age_days(account_created_at, now), TENURE_TARGET_DAYS)

    total = reliability_points + activity_points + volume_points + tenure_points
    logger.debug("trust_score_computed", total=str(total), interests=interests.total)

    return TrustBreakdown(
        reliability=quantize(reliability),
        reliability_points=quantize(reliability_points),
        activity_points=quantize(activity_points),
        volume_points=quantize(volume_points),
        tenure_points=quantize(tenure_points),
        total_score=int(quantize(total, 0)),
    )


# ===================
# BADGE GATE
# ===================

class BadgeTransition(str, Enum):
    """Outcome of evaluating the badge gate."""

    NONE = "none"
    AWARD = "award"    # eligible -> cooled_down, +1 mastery badge
    REARM = "rearm"    # cooled_down -> eligible


def badge_state_of(is_elite_eligible: Optional[bool]) -> BadgeState:
    """Map the persisted flag to a gate state (unset means eligible)."""
    if is_elite_eligible is False:
        return BadgeState.COOLED_DOWN
    return BadgeState.ELIGIBLE


def evaluate_badge_transition(state: BadgeState, total_score: int) -> BadgeTransition:
    """
    Decide the gate transition for one observation of the score.

    Scores in [90, 100) never change a cooled-down gate, so jitter around
    the top cannot farm badges.
    """
    if state == BadgeState.ELIGIBLE and total_score == PERFECT_SCORE:
        return BadgeTransition.AWARD
    if state == BadgeState.COOLED_DOWN and total_score < REARM_BELOW:
        return BadgeTransition.REARM
    return BadgeTransition.NONE


def state_after(transition: BadgeTransition, state: BadgeState) -> BadgeState:
    """Gate state once a transition has been applied."""
    if transition == BadgeTransition.AWARD:
        return BadgeState.COOLED_DOWN
    if transition == BadgeTransition.REARM:
        return BadgeState.ELIGIBLE
    return state


# ===================
# ACHIEVEMENTS
# ===================

def _negotiated_sales(sales: list[SaleRecord], assets: Mapping[str, AssetRecord]) -> int:
    count = 0
    for sale in sales:
        figures = sale_figures(sale, assets.get(sale.asset_id) if sale.asset_id else None)
        if figures.paid < figures.listing:
            count += 1
    return count


def has_fast_streak(sales: Iterable[SaleRecord]) -> bool:
    """True if any 3 consecutive deals (by date) happened within one hour."""
    moments = sorted(s.occurred_at for s in sales if s.occurred_at is not None)
    for i in range(len(moments) - FAST_MOVER_WINDOW + 1):
        if moments[i + FAST_MOVER_WINDOW - 1] - moments[i] <= FAST_MOVER_SPAN:
            return True
    return False


def compute_achievements(
    sales: list[SaleRecord],
    assets: Mapping[str, AssetRecord],
) -> list[Achievement]:
    """
    Evaluate every achievement against all-time purchases.

    Args:
        sales: All-time sold, non-deleted purchases of the buyer
        assets: Joined assets keyed by id

    Returns:
        All achievements, earned or not, in display order
    """
    total_spend = sum((paid_price(s) for s in sales), ZERO)

    return [
        Achievement(
            id="first_deal",
            title="First Deal",
            description="Completed your first purchase",
            earned=len(sales) >= 1,
        ),
        Achievement(
            id="active_buyer",
            title="Active Buyer",
            description=f"Completed {ACTIVE_BUYER_SALES} or more purchases",
            earned=len(sales) >= ACTIVE_BUYER_SALES,
        ),
        Achievement(
            id="negotiation_pro",
            title="Negotiation Pro",
            description=f"Bought below asking price {NEGOTIATION_PRO_SALES} times",
            earned=_negotiated_sales(sales, assets) >= NEGOTIATION_PRO_SALES,
        ),
        Achievement(
            id="high_value",
            title="High Value Buyer",
            description=f"Spent more than {HIGH_VALUE_THRESHOLD} in total",
            earned=total_spend > HIGH_VALUE_THRESHOLD,
        ),
        Achievement(
            id="fast_mover",
            title="Fast Mover",
            description=f"Closed {FAST_MOVER_WINDOW} deals within one hour",
            earned=has_fast_streak(sales),
        ),
    ]


def compute_milestones(earned_achievements: int, total_score: int) -> list[Milestone]:
    """Unlocked milestone rungs, lowest first."""
    milestones = [
        Milestone(title=title, level=level)
        for threshold, title, level in MILESTONE_LADDER
        if earned_achievements >= threshold
    ]

    if total_score == PERFECT_SCORE:
        title, level = PERFECT_SCORE_MILESTONE
        milestones.append(Milestone(title=title, level=level))

    return milestones
