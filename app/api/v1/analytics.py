"""Admin dashboard analytics endpoints.

All endpoints require an admin token and accept ``startDate``/``endDate``
query parameters (defaulting to the trailing 30 days).
"""

from fastapi import APIRouter, Query

from app.core.deps import AdminUser, DateRangeDep, DBSession
from app.schemas.analytics import (
    CustomerBehavior,
    FunnelAnalytics,
    LiveSnapshot,
    LiveVisitorsTrend,
    MarketingPerformance,
    OrdersOverview,
    PageVisitsTrend,
    ProductPerformance,
    SalesAnalytics,
    TrafficEngagement,
    UserFlow,
)
from app.services.analytics_service import AnalyticsService

router = APIRouter()


@router.get("/sales", response_model=SalesAnalytics)
async def sales_analytics(
    _admin: AdminUser,
    date_range: DateRangeDep,
    db: DBSession,
) -> SalesAnalytics:
    """Revenue, sales count, return rate and the daily revenue trend."""
    return await AnalyticsService(db).sales(date_range)


@router.get("/products", response_model=ProductPerformance)
async def product_analytics(
    _admin: AdminUser,
    date_range: DateRangeDep,
    db: DBSession,
) -> ProductPerformance:
    return await AnalyticsService(db).product_performance(date_range)


@router.get("/customers", response_model=CustomerBehavior)
async def customer_analytics(
    _admin: AdminUser,
    date_range: DateRangeDep,
    db: DBSession,
) -> CustomerBehavior:
    return await AnalyticsService(db).customer_behavior(date_range)


@router.get("/traffic", response_model=TrafficEngagement)
async def traffic_analytics(
    _admin: AdminUser,
    date_range: DateRangeDep,
    db: DBSession,
) -> TrafficEngagement:
    return await AnalyticsService(db).traffic(date_range)


@router.get("/orders", response_model=OrdersOverview)
async def orders_analytics(
    _admin: AdminUser,
    date_range: DateRangeDep,
    db: DBSession,
) -> OrdersOverview:
    return await AnalyticsService(db).orders_overview(date_range)


@router.get("/marketing", response_model=MarketingPerformance)
async def marketing_analytics(
    _admin: AdminUser,
    date_range: DateRangeDep,
    db: DBSession,
) -> MarketingPerformance:
    return await AnalyticsService(db).marketing(date_range)


@router.get("/page-visits-trend", response_model=PageVisitsTrend)
async def page_visits_trend(
    _admin: AdminUser,
    date_range: DateRangeDep,
    db: DBSession,
) -> PageVisitsTrend:
    """Daily visit counts per page."""
    return await AnalyticsService(db).page_visits_trend(date_range)


@router.get("/funnel", response_model=FunnelAnalytics)
async def funnel_analytics(
    _admin: AdminUser,
    date_range: DateRangeDep,
    db: DBSession,
) -> FunnelAnalytics:
    """Visited, added-to-cart, checkout and purchase session counts."""
    return await AnalyticsService(db).funnel(date_range)


@router.get("/live", response_model=LiveSnapshot)
async def live_analytics(
    _admin: AdminUser,
    db: DBSession,
) -> LiveSnapshot:
    """Visitors and carts active in the last few minutes."""
    return await AnalyticsService(db).live()


@router.get("/live-visitors-trend", response_model=LiveVisitorsTrend)
async def live_visitors_trend(
    _admin: AdminUser,
    db: DBSession,
    minutes: int = Query(30, ge=1, le=240),
) -> LiveVisitorsTrend:
    return await AnalyticsService(db).live_visitors_trend(minutes)


@router.get("/userflow", response_model=UserFlow)
async def user_flow(
    _admin: AdminUser,
    date_range: DateRangeDep,
    db: DBSession,
) -> UserFlow:
    """Most common page-to-page transitions."""
    return await AnalyticsService(db).user_flow(date_range)
