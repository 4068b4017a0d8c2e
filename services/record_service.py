"""
Record fetcher for the analytics engine.

Loads the sales, interests, assets, businesses and users an analytics request
needs, already scoped and validated into read models. Joins between records
(sale -> asset, interest -> asset, sale -> buyer) are done in-process by the
callers with the id-keyed maps returned here.
"""

from datetime import datetime
from typing import Callable, Iterable, Optional
import structlog

from config import get_supabase_client, get_admin_client, settings
from models.records import (
    SaleRecord,
    SaleStatus,
    InterestRecord,
    AssetRecord,
    BusinessRecord,
    UserRecord,
)
from exceptions import AssetNotFoundError, DatabaseError

logger = structlog.get_logger(__name__)

# Ids per `in_` filter, keeps request URLs well under proxy limits
ID_BATCH_SIZE = 200


def _chunks(ids: list[str], size: int = ID_BATCH_SIZE) -> Iterable[list[str]]:
    for i in range(0, len(ids), size):
        yield ids[i:i + size]


def _unique(ids: Iterable[Optional[str]]) -> list[str]:
    """Drop empties and duplicates, keeping first-seen order."""
    return list(dict.fromkeys(i for i in ids if i))


def _chronological(sale: SaleRecord):
    moment = sale.occurred_at
    return (moment is None, moment)


class RecordService:
    """
    Scoped reads over the marketplace tables.

    Every list fetch is paginated with `.range()` until a short page comes
    back, so results are never silently truncated at the API row limit.
    """

    def __init__(self):
        self.db = get_supabase_client()
        self.page_size = settings.query_page_size

    # ===================
    # PAGINATION
    # ===================

    def _fetch_all(self, build_query: Callable, operation: str, **context) -> list[dict]:
        """
        Run a query page by page and return every row.

        Args:
            build_query: Returns a fresh filtered query (builders are single use)
            operation: Event name prefix for failure logging
        """
        rows: list[dict] = []
        offset = 0

        try:
            while True:
                result = build_query().range(offset, offset + self.page_size - 1).execute()
                page = result.data or []
                rows.extend(page)

                if len(page) < self.page_size:
                    break
                offset += self.page_size

        except Exception as e:
            logger.error(f"{operation}_failed", error=str(e), **context)
            raise DatabaseError("select", str(e))

        return rows

    # ===================
    # BUSINESSES
    # ===================

    def find_owned_business(self, business_id: str, owner_id: str) -> Optional[BusinessRecord]:
        """
        Get a business only if it belongs to the owner.

        Returns:
            BusinessRecord, or None when it does not exist or is not owned
        """
        logger.debug("checking_business_ownership", business_id=business_id, owner_id=owner_id)

        if not business_id or not owner_id:
            return None

        try:
            result = (
                self.db.table("businesses")
                .select("*")
                .eq("id", business_id)
                .eq("owner_id", owner_id)
                .limit(1)
                .execute()
            )
        except Exception as e:
            logger.error("fetch_business_failed", business_id=business_id, error=str(e))
            raise DatabaseError("select", str(e))

        if not result.data:
            return None
        return BusinessRecord(**result.data[0])

    # ===================
    # ASSETS
    # ===================

    def list_business_assets(self, business_id: str) -> list[AssetRecord]:
        """All assets listed under a business."""
        rows = self._fetch_all(
            lambda: self.db.table("assets").select("*").eq("business_id", business_id).order("created_at"),
            "fetch_business_assets",
            business_id=business_id,
        )
        return [AssetRecord(**row) for row in rows]

    def get_asset(self, asset_id: str) -> AssetRecord:
        """
        Get a single asset by ID.

        Raises:
            AssetNotFoundError: If the asset doesn't exist
        """
        logger.debug("getting_asset", asset_id=asset_id)

        try:
            result = (
                self.db.table("assets")
                .select("*")
                .eq("id", asset_id)
                .limit(1)
                .execute()
            )
        except Exception as e:
            logger.error("fetch_asset_failed", asset_id=asset_id, error=str(e))
            raise DatabaseError("select", str(e))

        if not result.data:
            raise AssetNotFoundError(asset_id)
        return AssetRecord(**result.data[0])

    def map_assets(self, asset_ids: Iterable[Optional[str]]) -> dict[str, AssetRecord]:
        """Assets keyed by id (hash-join side for sales and interests)."""
        ids = _unique(asset_ids)
        assets: dict[str, AssetRecord] = {}

        for batch in _chunks(ids):
            rows = self._fetch_all(
                lambda: self.db.table("assets").select("*").in_("id", batch),
                "fetch_assets",
                count=len(batch),
            )
            for row in rows:
                asset = AssetRecord(**row)
                assets[asset.id] = asset

        return assets

    def list_category_assets(self, category: Optional[str], exclude_id: str) -> list[AssetRecord]:
        """Other assets in the same category (market benchmark)."""
        if not category:
            return []

        rows = self._fetch_all(
            lambda: (
                self.db.table("assets")
                .select("*")
                .eq("category", category)
                .neq("id", exclude_id)
            ),
            "fetch_category_assets",
            category=category,
        )
        return [AssetRecord(**row) for row in rows]

    # ===================
    # SALES
    # ===================

    def _sales_query(self, since: Optional[datetime]):
        query = (
            self.db.table("sales")
            .select("*")
            .eq("status", SaleStatus.SOLD.value)
            .not_.is_("is_deleted", "true")
        )
        if since is not None:
            query = query.gte("deal_date", since.isoformat())
        return query.order("deal_date")

    def list_sales_for_assets(
        self,
        asset_ids: Iterable[Optional[str]],
        since: Optional[datetime] = None,
    ) -> list[SaleRecord]:
        """
        Sold, non-deleted sales of the given assets.

        Args:
            asset_ids: Assets whose sales to load
            since: Only sales with deal_date >= since (None = all time)
        """
        ids = _unique(asset_ids)
        if not ids:
            return []

        sales: list[SaleRecord] = []
        for batch in _chunks(ids):
            rows = self._fetch_all(
                lambda: self._sales_query(since).in_("asset_id", batch),
                "fetch_sales",
                count=len(batch),
                since=since,
            )
            sales.extend(SaleRecord(**row) for row in rows)

        # Each batch is ordered on its own; restore one chronological order
        sales.sort(key=_chronological)

        logger.debug("sales_fetched", assets=len(ids), count=len(sales), since=since)
        return sales

    def list_sales_for_buyer(self, buyer_id: str, since: Optional[datetime] = None) -> list[SaleRecord]:
        """Sold, non-deleted purchases of a buyer."""
        rows = self._fetch_all(
            lambda: self._sales_query(since).eq("buyer_id", buyer_id),
            "fetch_buyer_sales",
            buyer_id=buyer_id,
            since=since,
        )
        return [SaleRecord(**row) for row in rows]

    # ===================
    # INTERESTS
    # ===================

    def _interests_query(self, since: Optional[datetime]):
        query = self.db.table("interests").select("*")
        if since is not None:
            query = query.gte("created_at", since.isoformat())
        return query.order("created_at")

    def list_interests_for_assets(
        self,
        asset_ids: Iterable[Optional[str]],
        since: Optional[datetime] = None,
    ) -> list[InterestRecord]:
        """Interests (leads) on the given assets, oldest first."""
        ids = _unique(asset_ids)
        if not ids:
            return []

        interests: list[InterestRecord] = []
        for batch in _chunks(ids):
            rows = self._fetch_all(
                lambda: self._interests_query(since).in_("asset_id", batch),
                "fetch_interests",
                count=len(batch),
                since=since,
            )
            interests.extend(InterestRecord(**row) for row in rows)

        return interests

    def list_interests_for_buyer(
        self,
        buyer_id: str,
        since: Optional[datetime] = None,
    ) -> list[InterestRecord]:
        """Interests a buyer has expressed, oldest first."""
        rows = self._fetch_all(
            lambda: self._interests_query(since).eq("buyer_id", buyer_id),
            "fetch_buyer_interests",
            buyer_id=buyer_id,
            since=since,
        )
        return [InterestRecord(**row) for row in rows]

    # ===================
    # USERS
    # ===================

    def get_user(self, user_id: str) -> Optional[UserRecord]:
        """Get a user account, or None if it doesn't exist."""
        logger.debug("getting_user", user_id=user_id)

        try:
            result = (
                self.db.table("users")
                .select("*")
                .eq("id", user_id)
                .limit(1)
                .execute()
            )
        except Exception as e:
            logger.error("fetch_user_failed", user_id=user_id, error=str(e))
            raise DatabaseError("select", str(e))

        if not result.data:
            return None
        return UserRecord(**result.data[0])

    def map_users(self, user_ids: Iterable[Optional[str]]) -> dict[str, UserRecord]:
        """Users keyed by id."""
        ids = _unique(user_ids)
        users: dict[str, UserRecord] = {}

        for batch in _chunks(ids):
            rows = self._fetch_all(
                lambda: self.db.table("users").select("*").in_("id", batch),
                "fetch_users",
                count=len(batch),
            )
            for row in rows:
                user = UserRecord(**row)
                users[user.id] = user

        return users

    def swap_elite_eligibility(
        self,
        user_id: str,
        expected: bool,
        new_value: bool,
        mastery_badges: int,
    ) -> bool:
        """
        Atomically flip a user's badge gate.

        The update only matches while `is_elite_eligible` still equals
        `expected`, so two concurrent evaluations cannot both apply the
        same transition.

        Args:
            user_id: User to update
            expected: Gate value the caller observed
            new_value: Gate value to write
            mastery_badges: Badge counter to write alongside the gate

        Returns:
            True if this call applied the transition, False if it lost the race
        """
        client = get_admin_client() or self.db

        try:
            query = (
                client.table("users")
                .update({
                    "is_elite_eligible": new_value,
                    "mastery_badges": mastery_badges,
                })
                .eq("id", user_id)
            )
            # An unset flag reads as eligible, so it must match `true` here
            if expected:
                query = query.not_.is_("is_elite_eligible", "false")
            else:
                query = query.eq("is_elite_eligible", False)
            result = query.execute()
        except Exception as e:
            logger.error("update_elite_eligibility_failed", user_id=user_id, error=str(e))
            raise DatabaseError("update", str(e))

        return bool(result.data)


# Singleton instance for convenience
_record_service: Optional[RecordService] = None

def get_record_service() -> RecordService:
    """Get or create RecordService instance."""
    global _record_service
    if _record_service is None:
        _record_service = RecordService()
    return _record_service
