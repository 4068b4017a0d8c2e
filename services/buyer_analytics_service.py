"""
Buyer analytics service.

Buyer overview for a time range (spend, savings, interest conversion and a
zero-filled spend chart) combined with the all-time trust score,
achievements and milestones. Computing an overview also evaluates the
mastery badge gate and persists any transition with a conditional update,
so repeated or concurrent requests award a badge at most once per crossing.
"""

from datetime import datetime
from typing import Optional
import structlog

from models.analytics import (
    BadgeState,
    BuyerKPI,
    TrustScore,
    BuyerTrends,
    BuyerChartPoint,
    NamedValue,
    BuyerOverviewResponse,
    PublicTrustProfile,
)
from models.records import UserRecord
from services.kpi_service import (
    ZERO,
    aggregate_purchases,
    count_interests,
    percent,
    sale_figures,
)
from services.record_service import get_record_service
from services.time_range_service import RangeToken, resolve_range
from services.time_series_service import TimeSeries
from services.trust_service import (
    BadgeTransition,
    TrustBreakdown,
    badge_state_of,
    compute_achievements,
    compute_milestones,
    compute_trust_score,
    evaluate_badge_transition,
    state_after,
)
from exceptions import UserNotFoundError

logger = structlog.get_logger(__name__)


class BuyerAnalyticsService:
    """
    Buyer-side analytics and trust engine.
    """

    def __init__(self):
        self.records = get_record_service()

    # ===================
    # BADGE GATE
    # ===================

    def apply_badge_gate(self, user: Optional[UserRecord], total_score: int) -> tuple[BadgeState, int]:
        """
        Evaluate and persist the mastery badge gate for one observation.

        Args:
            user: Buyer account (None -> nothing to persist)
            total_score: Current all-time trust score

        Returns:
            Tuple of (gate state, mastery badge count) after this observation
        """
        if user is None:
            return BadgeState.ELIGIBLE, 0

        state = badge_state_of(user.is_elite_eligible)
        badges = user.mastery_badges or 0
        transition = evaluate_badge_transition(state, total_score)

        if transition == BadgeTransition.NONE:
            return state, badges

        new_badges = badges + 1 if transition == BadgeTransition.AWARD else badges
        new_state = state_after(transition, state)

        applied = self.records.swap_elite_eligibility(
            user.id,
            expected=state == BadgeState.ELIGIBLE,
            new_value=new_state == BadgeState.ELIGIBLE,
            mastery_badges=new_badges,
        )

        if not applied:
            # Another evaluation changed the gate first; report what it wrote.
            logger.info(
                "badge_award_lost_race" if transition == BadgeTransition.AWARD else "badge_rearm_lost_race",
                user_id=user.id,
                total_score=total_score,
            )
            current = self.records.get_user(user.id)
            if current is None:
                return new_state, new_badges
            return badge_state_of(current.is_elite_eligible), current.mastery_badges or 0

        if transition == BadgeTransition.AWARD:
            logger.info("badge_awarded", user_id=user.id, mastery_badges=new_badges)
        else:
            logger.info("badge_rearmed", user_id=user.id, total_score=total_score)

        return new_state, new_badges

    # ===================
    # TRUST
    # ===================

    def _evaluate_trust(self, buyer_id: str, user: Optional[UserRecord], now: datetime):
        """All-time trust score, achievements and milestones for a buyer."""
        sales = self.records.list_sales_for_buyer(buyer_id)
        interests = self.records.list_interests_for_buyer(buyer_id)
        assets = self.records.map_assets(s.asset_id for s in sales)

        purchases = aggregate_purchases(sales, assets)
        breakdown = compute_trust_score(
            interests=count_interests(interests),
            total_spend=purchases.total_spent,
            account_created_at=user.created_at if user else None,
            now=now,
        )

        achievements = compute_achievements(sales, assets)
        earned = sum(1 for a in achievements if a.earned)
        milestones = compute_milestones(earned, breakdown.total_score)

        state, badges = self.apply_badge_gate(user, breakdown.total_score)

        return self._trust_score(breakdown, state, badges), achievements, milestones

    @staticmethod
    def _trust_score(breakdown: TrustBreakdown, state: BadgeState, badges: int) -> TrustScore:
        return TrustScore(
            reliability=breakdown.reliability,
            reliability_points=breakdown.reliability_points,
            activity_points=breakdown.activity_points,
            volume_points=breakdown.volume_points,
            tenure_points=breakdown.tenure_points,
            total_score=breakdown.total_score,
            is_eligible=breakdown.is_eligible,
            badge_state=state,
            mastery_badges=badges,
        )

    # ===================
    # OVERVIEW
    # ===================

    def get_buyer_overview(
        self,
        buyer_id: str,
        range_token: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> BuyerOverviewResponse:
        """
        Build the buyer overview.

        KPIs, trends and the chart cover the requested range; the trust
        score, achievements and milestones always use all-time data.
        Never fails on missing data: an unknown buyer gets zeroed figures.

        Args:
            buyer_id: Buyer to analyse
            range_token: "24h"/"1d", "15d", "1m", "1y", "all" (unknown -> 1m)
            now: Evaluation instant (defaults to current UTC time)

        Returns:
            BuyerOverviewResponse
        """
        resolved = resolve_range(range_token, now)

        logger.info("buyer_overview_requested", buyer_id=buyer_id, range=resolved.token.value)

        orders = self.records.list_sales_for_buyer(buyer_id, since=resolved.start)
        interests = self.records.list_interests_for_buyer(buyer_id, since=resolved.start)
        assets = self.records.map_assets(o.asset_id for o in orders)

        purchases = aggregate_purchases(orders, assets)
        counts = count_interests(interests)

        series = TimeSeries.for_range(resolved, {"spent": ZERO, "savings": ZERO})
        for order in orders:
            figures = sale_figures(order, assets.get(order.asset_id))
            series.add(order.occurred_at, spent=figures.paid, savings=figures.discount)

        user = self.records.get_user(buyer_id)
        trust_score, achievements, milestones = self._evaluate_trust(buyer_id, user, resolved.now)

        response = BuyerOverviewResponse(
            range=resolved.token.value,
            granularity=resolved.granularity.value,
            start_date=resolved.start,
            kpi=BuyerKPI(
                total_spent=purchases.total_spent,
                total_savings=purchases.total_savings,
                acquisitions=purchases.acquisitions,
                total_interests=counts.total,
                accepted_interests=counts.accepted,
                conversion_rate=percent(counts.accepted, counts.closed),
            ),
            trust_score=trust_score,
            achievements=achievements,
            milestones=milestones,
            trends=BuyerTrends(
                category_spend=[
                    NamedValue(name=name, value=value)
                    for name, value in sorted(
                        purchases.category_spend.items(), key=lambda item: item[1], reverse=True
                    )
                ],
            ),
            chart_data=[BuyerChartPoint(**point) for point in series.points()],
        )

        logger.info(
            "buyer_overview_calculated",
            buyer_id=buyer_id,
            range=resolved.token.value,
            acquisitions=purchases.acquisitions,
            total_score=trust_score.total_score,
        )

        return response

    # ===================
    # PUBLIC PROFILE
    # ===================

    def get_public_trust_profile(self, user_id: str, now: Optional[datetime] = None) -> PublicTrustProfile:
        """
        Trust data for a buyer's public profile.

        Runs the same all-time evaluation as the overview, including the
        badge gate.

        Raises:
            UserNotFoundError: If the user doesn't exist
        """
        resolved = resolve_range(RangeToken.ALL.value, now)

        logger.info("trust_profile_requested", user_id=user_id)

        user = self.records.get_user(user_id)
        if user is None:
            raise UserNotFoundError(user_id)

        trust_score, achievements, milestones = self._evaluate_trust(user_id, user, resolved.now)

        return PublicTrustProfile(
            user_id=user.id,
            full_name=user.full_name,
            member_since=user.created_at,
            trust_score=trust_score.total_score,
            mastery_badges=trust_score.mastery_badges,
            achievements=achievements,
            milestones=milestones,
        )


# Singleton instance for convenience
_buyer_analytics_service: Optional[BuyerAnalyticsService] = None

def get_buyer_analytics_service() -> BuyerAnalyticsService:
    """Get or create BuyerAnalyticsService instance."""
    global _buyer_analytics_service
    if _buyer_analytics_service is None:
        _buyer_analytics_service = BuyerAnalyticsService()
    return _buyer_analytics_service
