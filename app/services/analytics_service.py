"""Storefront dashboard analytics.

Every public method recomputes the admin-exclusion set, reads the event logs
and the order/user/product collaborators for a date range, and returns a
JSON-ready schema. Filtering happens in SQL; day bucketing and per-session
ordering happen in Python so results do not depend on the database's date
functions or timezone settings.
"""

import itertools
import logging
from collections import Counter, defaultdict
from collections.abc import Iterable
from datetime import UTC, datetime, timedelta
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.models.events import (
    CartAction,
    CartActionLog,
    CheckoutEventLog,
    PageViewLog,
    SecurityLog,
)
from app.models.order import FULFILLED_STATUSES, Order, OrderStatus
from app.models.product import Product
from app.models.session_log import SessionLog
from app.models.user import User, UserRole
from app.schemas.analytics import (
    CampaignPerformance,
    CartProductCount,
    CustomerBehavior,
    CustomerSpend,
    FunnelAnalytics,
    FunnelStage,
    LiveMinute,
    LiveSnapshot,
    LiveVisitorsTrend,
    LocationCount,
    MarketingPerformance,
    OrderDay,
    OrdersOverview,
    PageExits,
    PageTransition,
    PageViewsCount,
    PageVisits,
    PageVisitsTrend,
    ProductConversion,
    ProductPerformance,
    ProductStat,
    ReferrerVisits,
    RevenueDay,
    SalesAnalytics,
    SessionPageViews,
    ShareOfTotal,
    StatusCount,
    TrafficEngagement,
    UserFlow,
    VisitDay,
)
from app.services.admin_exclusion import AdminExclusion, load_admin_exclusion
from app.services.date_range import DateRange, as_utc
from app.services.device_classifier import (
    OS_LABELS,
    classify_device_type,
    classify_os,
    signature_device_type,
    signature_os,
)

logger = logging.getLogger(__name__)

TOP_N = 10
DIRECT_REFERRER = "Direct"
FUNNEL_STAGES = ("Visited", "Added to Cart", "Checkout", "Purchase")


def percent(part: float, whole: float) -> float:
    """``part / whole`` as a percentage rounded to 2 dp; 0 when whole is 0."""
    return round(part / whole * 100, 2) if whole else 0.0


def share_of_total(counts: dict[str, int]) -> list[ShareOfTotal]:
    """Each category's share of all tallies, largest first."""
    total = sum(counts.values())
    shares = [ShareOfTotal(type=key, percent=percent(count, total)) for key, count in counts.items()]
    return sorted(shares, key=lambda s: -s.percent)


def top_counts(counter: Counter[str], n: int = TOP_N) -> list[tuple[str, int]]:
    """Most common entries, ties broken alphabetically for stable output."""
    return sorted(counter.items(), key=lambda kv: (-kv[1], kv[0]))[:n]


def normalize_referrer(referrer: str | None, own_domains: Iterable[str] | None = None) -> str:
    """Collapse empty and own-site referrers to ``Direct``; strip protocol noise."""
    if not referrer or not referrer.strip():
        return DIRECT_REFERRER
    lowered = referrer.lower()
    domains = settings.own_domains if own_domains is None else own_domains
    if any(domain.lower() in lowered for domain in domains):
        return DIRECT_REFERRER
    cleaned = referrer.strip()
    for prefix in ("https://", "http://"):
        if cleaned.lower().startswith(prefix):
            cleaned = cleaned[len(prefix) :]
    cleaned = cleaned.rstrip("/")
    return cleaned or DIRECT_REFERRER


class AnalyticsService:
    """Aggregations for the admin analytics dashboard.

    Holds nothing but the database session; safe to create per request.
    """

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    # ------------------------------------------------------------------
    # Shared query helpers
    # ------------------------------------------------------------------

    def _order_filters(self, exclusion: AdminExclusion, date_range: DateRange | None) -> list[Any]:
        filters: list[Any] = [
            *exclusion.not_admin_user(Order.user_id),
            *exclusion.not_admin_email(Order.customer_email),
        ]
        if date_range is not None:
            filters += [Order.created_at >= date_range.start_at, Order.created_at < date_range.end_at]
        return filters

    def _page_view_filters(self, exclusion: AdminExclusion, date_range: DateRange) -> list[Any]:
        return [
            PageViewLog.timestamp >= date_range.start_at,
            PageViewLog.timestamp < date_range.end_at,
            *exclusion.not_admin_user(PageViewLog.user_id),
            *exclusion.not_admin_email(PageViewLog.email),
            *exclusion.not_admin_session(PageViewLog.session_id),
        ]

    async def _customer_users(self, exclusion: AdminExclusion) -> list[User]:
        stmt = select(User).where(
            User.role == UserRole.USER,
            *exclusion.not_admin_email(User.email),
        )
        return list((await self.db.execute(stmt)).scalars().all())

    async def _page_views(self, exclusion: AdminExclusion, date_range: DateRange) -> list[Any]:
        stmt = (
            select(
                PageViewLog.session_id,
                PageViewLog.user_id,
                PageViewLog.email,
                PageViewLog.ip,
                PageViewLog.page,
                PageViewLog.referrer,
                PageViewLog.user_agent,
                PageViewLog.timestamp,
            )
            .where(*self._page_view_filters(exclusion, date_range))
            .order_by(PageViewLog.session_id, PageViewLog.timestamp)
        )
        return list((await self.db.execute(stmt)).all())

    async def _security_devices(
        self, user_ids: Iterable[Any], date_range: DateRange
    ) -> list[Any]:
        ids = list(user_ids)
        if not ids:
            return []
        stmt = select(SecurityLog.user_id, SecurityLog.device).where(
            SecurityLog.user_id.in_(ids),
            SecurityLog.device.isnot(None),
            SecurityLog.timestamp >= date_range.start_at,
            SecurityLog.timestamp < date_range.end_at,
        )
        return list((await self.db.execute(stmt)).all())

    # ------------------------------------------------------------------
    # Sales
    # ------------------------------------------------------------------

    async def sales(self, date_range: DateRange) -> SalesAnalytics:
        """Revenue, order counts and the dense daily revenue trend.

        Only paid/shipped/delivered orders count as sales; every order in
        range is in the return-rate denominator.
        """
        exclusion = await load_admin_exclusion(self.db)
        stmt = select(Order.created_at, Order.grand_total, Order.status).where(
            *self._order_filters(exclusion, date_range)
        )
        rows = (await self.db.execute(stmt)).all()

        per_day: dict[str, dict[str, float]] = defaultdict(lambda: {"revenue": 0.0, "orders": 0})
        total_sales = 0
        total_revenue = 0.0
        cancelled = 0
        for row in rows:
            if row.status == OrderStatus.CANCELLED:
                cancelled += 1
            if row.status not in FULFILLED_STATUSES:
                continue
            amount = float(row.grand_total or 0)
            day = per_day[date_range.day_key(row.created_at)]
            day["revenue"] += amount
            day["orders"] += 1
            total_sales += 1
            total_revenue += amount

        trends = [
            RevenueDay(date=str(r["date"]), revenue=round(float(r["revenue"]), 2), orders=int(r["orders"]))
            for r in date_range.dense(per_day, ("revenue", "orders"))
        ]
        top_days = sorted(trends, key=lambda d: (-d.revenue, d.date))[:TOP_N]

        return SalesAnalytics(
            total_sales=total_sales,
            total_revenue=round(total_revenue, 2),
            avg_order_value=round(total_revenue / total_sales, 2) if total_sales else 0.0,
            return_rate=percent(cancelled, len(rows)),
            revenue_trends=trends,
            top_days=top_days,
        )

    # ------------------------------------------------------------------
    # Products
    # ------------------------------------------------------------------

    async def product_performance(self, date_range: DateRange) -> ProductPerformance:
        """Per-product sales joined with live catalog stock and views.

        Catalog products without sales are included so stagnant and
        low-stock products show up.
        """
        exclusion = await load_admin_exclusion(self.db)
        stmt = select(Order.cart).where(
            Order.status.in_(FULFILLED_STATUSES),
            *self._order_filters(exclusion, date_range),
        )
        carts = (await self.db.execute(stmt)).scalars().all()

        stats: dict[str, dict[str, Any]] = {}
        for cart in carts:
            for item in cart or []:
                product_id = str(item.get("id") or item.get("_id") or "")
                if not product_id:
                    continue
                quantity = int(item.get("quantity") or 1)
                entry = stats.setdefault(
                    product_id,
                    {
                        "id": product_id,
                        "name": item.get("name") or product_id,
                        "quantity": 0,
                        "revenue": 0.0,
                        "views": 0,
                        "stock": None,
                    },
                )
                entry["quantity"] += quantity
                entry["revenue"] += float(item.get("price") or 0) * quantity

        products = (await self.db.execute(select(Product))).scalars().all()
        for product in products:
            entry = stats.setdefault(
                str(product.id),
                {"id": str(product.id), "name": product.name, "quantity": 0, "revenue": 0.0},
            )
            entry["stock"] = product.stock
            entry["views"] = product.views or 0

        items = [
            ProductStat(**{**entry, "revenue": round(entry["revenue"], 2)}) for entry in stats.values()
        ]

        return ProductPerformance(
            top_selling=sorted(items, key=lambda p: (-p.quantity, p.name))[:TOP_N],
            least_performing=sorted(items, key=lambda p: (p.quantity, p.name))[:TOP_N],
            most_viewed=sorted(items, key=lambda p: (-p.views, p.name))[:TOP_N],
            conversion_rates=[
                ProductConversion(
                    name=p.name,
                    conversion_rate=percent(p.quantity, p.views) if p.views > 0 else None,
                )
                for p in items
            ],
            stock_alerts=[
                p for p in items if p.stock is not None and p.stock <= settings.low_stock_threshold
            ],
            stagnant_products=[p for p in items if p.quantity == 0],
        )

    # ------------------------------------------------------------------
    # Customers
    # ------------------------------------------------------------------

    async def customer_behavior(self, date_range: DateRange) -> CustomerBehavior:
        """New vs returning customers, spend, retention, locations and devices.

        New/returning is judged against each customer's lifetime order count,
        not just the orders inside the range.
        """
        exclusion = await load_admin_exclusion(self.db)

        lifetime_stmt = select(Order.customer_email, Order.grand_total).where(
            Order.customer_email.isnot(None),
            *self._order_filters(exclusion, None),
        )
        lifetime = (await self.db.execute(lifetime_stmt)).all()
        order_counts: Counter[str] = Counter()
        spend: dict[str, float] = defaultdict(float)
        for row in lifetime:
            order_counts[row.customer_email] += 1
            spend[row.customer_email] += float(row.grand_total or 0)

        in_range_stmt = select(Order.customer_email).where(
            Order.customer_email.isnot(None),
            *self._order_filters(exclusion, date_range),
        )
        in_range_emails = (await self.db.execute(in_range_stmt)).scalars().all()
        new_customers = sum(1 for email in in_range_emails if order_counts[email] == 1)
        returning_customers = len(in_range_emails) - new_customers

        users = await self._customer_users(exclusion)
        users_by_email = {u.email: u for u in users}

        def spend_entry(email: str, amount: float) -> CustomerSpend:
            user = users_by_email.get(email)
            return CustomerSpend(email=email, name=user.name if user else email, spend=round(amount, 2))

        ranked = sorted(spend.items(), key=lambda kv: (-kv[1], kv[0]))
        spend_per_customer = [spend_entry(email, amount) for email, amount in ranked]

        retained = sum(1 for count in order_counts.values() if count > 1)
        locations = Counter(u.state for u in users if u.state)

        spend_values = list(spend.values())
        total_spend = sum(spend_values)
        total_orders = sum(order_counts.values())
        live = await self._live(exclusion, datetime.now(UTC))

        return CustomerBehavior(
            new_customers=new_customers,
            returning_customers=returning_customers,
            top_buyers=spend_per_customer[:TOP_N],
            retention_rate=percent(retained, len(order_counts)),
            locations=[LocationCount(state=s, count=c) for s, c in top_counts(locations, n=len(locations))],
            devices=await self._device_mix(exclusion, users, date_range),
            customer_lifetime_value=round(total_spend / len(spend_values), 2) if spend_values else 0.0,
            top_customer_lifetime_value=round(max(spend_values), 2) if spend_values else 0.0,
            average_spend=round(total_spend / total_orders, 2) if total_orders else 0.0,
            average_spend_per_customer=spend_per_customer,
            live_visitors=live.live_visitors,
            live_carts=live.live_carts,
        )

    async def _device_mix(
        self, exclusion: AdminExclusion, users: list[User], date_range: DateRange
    ) -> list[ShareOfTotal]:
        """Device categories per customer from both log sources.

        Each customer counts once per category but may appear in several;
        percentages are shares of all category tallies, not of customers.
        """
        user_ids = {u.id for u in users}
        ids_by_email = {u.email: u.id for u in users}
        categories: dict[Any, set[str]] = defaultdict(set)

        for row in await self._security_devices(user_ids, date_range):
            categories[row.user_id].add(signature_device_type(row.device))

        for row in await self._page_views(exclusion, date_range):
            if not row.user_agent:
                continue
            user_id = row.user_id if row.user_id in user_ids else ids_by_email.get(row.email)
            if user_id is None:
                continue
            categories[user_id].add(classify_device_type(row.user_agent))

        counts: Counter[str] = Counter()
        for category_set in categories.values():
            counts.update(category_set)
        if not counts:
            return []
        return share_of_total(dict(counts))

    # ------------------------------------------------------------------
    # Traffic & engagement
    # ------------------------------------------------------------------

    async def traffic(self, date_range: DateRange) -> TrafficEngagement:
        """Visits, bounce rate, landing/exit pages, referrers and OS mix."""
        exclusion = await load_admin_exclusion(self.db)
        views = await self._page_views(exclusion, date_range)

        ips_per_day: dict[str, set[str]] = defaultdict(set)
        page_counts: Counter[str] = Counter()
        referrers: Counter[str] = Counter()
        for view in views:
            if view.ip:
                ips_per_day[date_range.day_key(view.timestamp)].add(view.ip)
            page_counts[view.page] += 1
            referrers[normalize_referrer(view.referrer)] += 1

        visits = date_range.dense(
            {day: {"visits": len(ips)} for day, ips in ips_per_day.items()}, ("visits",)
        )

        landing: Counter[str] = Counter()
        exits: Counter[str] = Counter()
        per_session: list[SessionPageViews] = []
        bounced = 0
        sessions = 0
        for session_id, group in itertools.groupby(views, key=lambda v: v.session_id):
            ordered = list(group)
            sessions += 1
            if len(ordered) == 1:
                bounced += 1
            landing[ordered[0].page] += 1
            exits[ordered[-1].page] += 1
            email = next((v.email for v in ordered if v.email), None)
            per_session.append(
                SessionPageViews(session_id=session_id, page_views=len(ordered), email=email)
            )
        per_session.sort(key=lambda s: (-s.page_views, s.session_id))

        return TrafficEngagement(
            visits_trends=[VisitDay(date=str(v["date"]), visits=int(v["visits"])) for v in visits],
            avg_session_duration=await self._avg_session_minutes(exclusion, date_range),
            bounce_rate=percent(bounced, sessions),
            top_landing_pages=[PageVisits(page=p, visits=c) for p, c in top_counts(landing)],
            top_referrers=[ReferrerVisits(referrer=r, visits=c) for r, c in top_counts(referrers)],
            top_exit_pages=[PageExits(page=p, exits=c) for p, c in top_counts(exits)],
            page_views_per_session=per_session[:TOP_N],
            top_most_viewed_pages=[PageViewsCount(page=p, views=c) for p, c in top_counts(page_counts)],
            oses=await self._os_mix(exclusion, views, date_range),
        )

    async def _avg_session_minutes(self, exclusion: AdminExclusion, date_range: DateRange) -> float:
        stmt = select(SessionLog.start_time, SessionLog.end_time).where(
            SessionLog.start_time >= date_range.start_at,
            SessionLog.start_time < date_range.end_at,
            SessionLog.end_time.isnot(None),
            *exclusion.not_admin_user(SessionLog.user_id),
            *exclusion.not_admin_session(SessionLog.session_id),
        )
        rows = (await self.db.execute(stmt)).all()
        if not rows:
            return 0.0
        total = sum(
            (as_utc(r.end_time) - as_utc(r.start_time)).total_seconds() / 60 for r in rows
        )
        return round(total / len(rows), 2)

    async def _os_mix(
        self, exclusion: AdminExclusion, views: list[Any], date_range: DateRange
    ) -> list[ShareOfTotal]:
        """OS share from security-log signatures and page-view user agents."""
        counts = dict.fromkeys(OS_LABELS, 0)
        users = await self._customer_users(exclusion)
        for row in await self._security_devices((u.id for u in users), date_range):
            os_part = signature_os(row.device)
            if os_part:
                counts[classify_os(os_part)] += 1
        for view in views:
            if view.user_agent:
                counts[classify_os(view.user_agent)] += 1
        return share_of_total(counts)

    async def page_visits_trend(self, date_range: DateRange) -> PageVisitsTrend:
        """Per page, total (not unique) visits per day, zero-filled."""
        exclusion = await load_admin_exclusion(self.db)
        per_page: dict[str, dict[str, dict[str, float]]] = defaultdict(
            lambda: defaultdict(lambda: {"visits": 0})
        )
        for view in await self._page_views(exclusion, date_range):
            per_page[view.page][date_range.day_key(view.timestamp)]["visits"] += 1

        return PageVisitsTrend(
            page_visits_trends={
                page: [
                    VisitDay(date=str(r["date"]), visits=int(r["visits"]))
                    for r in date_range.dense(days, ("visits",))
                ]
                for page, days in sorted(per_page.items())
            }
        )

    async def user_flow(self, date_range: DateRange, limit: int = 20) -> UserFlow:
        """Most common page-to-page transitions within a session."""
        exclusion = await load_admin_exclusion(self.db)
        transitions: Counter[tuple[str, str]] = Counter()
        views = await self._page_views(exclusion, date_range)
        for _, group in itertools.groupby(views, key=lambda v: v.session_id):
            pages = [v.page for v in group]
            for source, target in itertools.pairwise(pages):
                if source != target:
                    transitions[(source, target)] += 1

        ranked = sorted(transitions.items(), key=lambda kv: (-kv[1], kv[0]))[:limit]
        return UserFlow(
            transitions=[PageTransition(source=s, target=t, count=c) for (s, t), c in ranked]
        )

    # ------------------------------------------------------------------
    # Orders & marketing
    # ------------------------------------------------------------------

    async def orders_overview(self, date_range: DateRange) -> OrdersOverview:
        """Status histogram, daily order counts and fulfilment time."""
        exclusion = await load_admin_exclusion(self.db)
        stmt = select(
            Order.created_at, Order.status, Order.paid_at, Order.delivered_at
        ).where(*self._order_filters(exclusion, date_range))
        rows = (await self.db.execute(stmt)).all()

        statuses: Counter[str] = Counter()
        per_day: dict[str, dict[str, float]] = defaultdict(lambda: {"orders": 0})
        fulfilment_days: list[float] = []
        for row in rows:
            status = row.status.value if isinstance(row.status, OrderStatus) else str(row.status)
            statuses[status] += 1
            per_day[date_range.day_key(row.created_at)]["orders"] += 1
            if row.status == OrderStatus.DELIVERED and row.paid_at and row.delivered_at:
                elapsed = as_utc(row.delivered_at) - as_utc(row.paid_at)
                fulfilment_days.append(elapsed.total_seconds() / 86400)

        return OrdersOverview(
            status_breakdown=[StatusCount(status=s, count=c) for s, c in top_counts(statuses, n=len(statuses))],
            order_trends=[
                OrderDay(date=str(r["date"]), orders=int(r["orders"]))
                for r in date_range.dense(per_day, ("orders",))
            ],
            avg_fulfillment_time=(
                round(sum(fulfilment_days) / len(fulfilment_days), 2) if fulfilment_days else 0.0
            ),
            cancelled_count=statuses[OrderStatus.CANCELLED.value],
            returned_count=statuses[OrderStatus.RETURNED.value],
        )

    async def marketing(self, date_range: DateRange) -> MarketingPerformance:
        """Conversions, revenue, spend and ROI per attributed campaign."""
        exclusion = await load_admin_exclusion(self.db)
        stmt = (
            select(
                Order.campaign,
                func.count().label("conversions"),
                func.coalesce(func.sum(Order.grand_total), 0).label("revenue"),
                func.coalesce(func.sum(Order.campaign_spend), 0).label("spend"),
            )
            .where(Order.campaign.isnot(None), *self._order_filters(exclusion, date_range))
            .group_by(Order.campaign)
        )
        rows = (await self.db.execute(stmt)).all()

        campaigns = []
        for row in rows:
            revenue = float(row.revenue or 0)
            spend = float(row.spend or 0)
            campaigns.append(
                CampaignPerformance(
                    name=row.campaign,
                    conversions=row.conversions,
                    revenue=round(revenue, 2),
                    spend=round(spend, 2),
                    roi=round(revenue / spend * 100, 2) if spend > 0 else 0.0,
                )
            )
        campaigns.sort(key=lambda c: (-c.revenue, c.name))

        return MarketingPerformance(
            campaigns=campaigns,
            total_spend=round(sum(c.spend for c in campaigns), 2),
            total_revenue=round(sum(c.revenue for c in campaigns), 2),
        )

    # ------------------------------------------------------------------
    # Funnel & live
    # ------------------------------------------------------------------

    async def funnel(self, date_range: DateRange) -> FunnelAnalytics:
        """Distinct-session tallies for visit, cart-add, checkout and purchase.

        Stages are counted independently: a session can count at a later
        stage without having been seen at an earlier one. Purchases are
        matched through the session id stored on the order.
        """
        exclusion = await load_admin_exclusion(self.db)

        visited = select(func.count(PageViewLog.session_id.distinct())).where(
            *self._page_view_filters(exclusion, date_range)
        )
        cart_filters = [
            CartActionLog.action == CartAction.ADD,
            CartActionLog.timestamp >= date_range.start_at,
            CartActionLog.timestamp < date_range.end_at,
            *exclusion.not_admin_session(CartActionLog.session_id),
        ]
        added = select(func.count(CartActionLog.session_id.distinct())).where(*cart_filters)
        checkout = select(func.count(CheckoutEventLog.session_id.distinct())).where(
            CheckoutEventLog.timestamp >= date_range.start_at,
            CheckoutEventLog.timestamp < date_range.end_at,
            *exclusion.not_admin_user(CheckoutEventLog.user_id),
            *exclusion.not_admin_session(CheckoutEventLog.session_id),
        )
        purchased = select(func.count(Order.session_id.distinct())).where(
            Order.session_id.isnot(None),
            Order.status.in_(FULFILLED_STATUSES),
            *self._order_filters(exclusion, date_range),
        )

        counts = [(await self.db.execute(stmt)).scalar() or 0 for stmt in (visited, added, checkout, purchased)]

        quantity_stmt = (
            select(
                CartActionLog.product_id,
                func.sum(func.coalesce(CartActionLog.quantity, 1)).label("count"),
            )
            .where(*cart_filters)
            .group_by(CartActionLog.product_id)
        )
        quantities = {row.product_id: int(row.count) for row in (await self.db.execute(quantity_stmt)).all()}
        top_products: list[CartProductCount] = []
        if quantities:
            products = (
                await self.db.execute(select(Product.id, Product.name).where(Product.id.in_(list(quantities))))
            ).all()
            top_products = sorted(
                (CartProductCount(name=p.name, count=quantities[p.id]) for p in products),
                key=lambda p: (-p.count, p.name),
            )[:TOP_N]

        return FunnelAnalytics(
            funnel=[FunnelStage(stage=stage, count=count) for stage, count in zip(FUNNEL_STAGES, counts, strict=True)],
            top_cart_products=top_products,
        )

    async def live(self, now: datetime | None = None) -> LiveSnapshot:
        """Open sessions started, and carts touched, within the live window."""
        exclusion = await load_admin_exclusion(self.db)
        return await self._live(exclusion, now or datetime.now(UTC))

    async def _live(self, exclusion: AdminExclusion, now: datetime) -> LiveSnapshot:
        since = now - timedelta(minutes=settings.live_window_minutes)
        visitors_stmt = select(func.count()).select_from(SessionLog).where(
            SessionLog.start_time >= since,
            SessionLog.end_time.is_(None),
            *exclusion.not_admin_user(SessionLog.user_id),
            *exclusion.not_admin_session(SessionLog.session_id),
        )
        carts_stmt = select(func.count(CartActionLog.session_id.distinct())).where(
            CartActionLog.action == CartAction.ADD,
            CartActionLog.timestamp >= since,
            *exclusion.not_admin_session(CartActionLog.session_id),
        )
        return LiveSnapshot(
            live_visitors=(await self.db.execute(visitors_stmt)).scalar() or 0,
            live_carts=(await self.db.execute(carts_stmt)).scalar() or 0,
        )

    async def live_visitors_trend(
        self, minutes: int = 30, now: datetime | None = None
    ) -> LiveVisitorsTrend:
        """Sessions open at each of the last ``minutes`` minutes (oldest first)."""
        exclusion = await load_admin_exclusion(self.db)
        now = (now or datetime.now(UTC)).replace(second=0, microsecond=0)
        window_start = now - timedelta(minutes=minutes - 1)

        stmt = select(SessionLog.start_time, SessionLog.end_time).where(
            SessionLog.start_time.isnot(None),
            SessionLog.start_time <= now,
            (SessionLog.end_time.is_(None)) | (SessionLog.end_time >= window_start),
            *exclusion.not_admin_user(SessionLog.user_id),
            *exclusion.not_admin_session(SessionLog.session_id),
        )
        rows = [
            (as_utc(r.start_time), as_utc(r.end_time) if r.end_time else None)
            for r in (await self.db.execute(stmt)).all()
        ]

        trend = []
        for offset in range(minutes):
            point = window_start + timedelta(minutes=offset)
            open_sessions = sum(
                1 for start, end in rows if start <= point and (end is None or end >= point)
            )
            trend.append(LiveMinute(time=point.astimezone(UTC).isoformat(), visitors=open_sessions))
        return LiveVisitorsTrend(minutes=minutes, trend=trend)
