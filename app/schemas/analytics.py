"""Analytics Pydantic schemas for the admin dashboard."""

from app.schemas.common import BaseSchema

# ---------------------------------------------------------------------------
# Sales
# ---------------------------------------------------------------------------


class RevenueDay(BaseSchema):
    """Single day of the revenue trend."""

    date: str  # YYYY-MM-DD
    revenue: float
    orders: int


class SalesAnalytics(BaseSchema):
    total_sales: int
    total_revenue: float
    avg_order_value: float
    return_rate: float  # percentage, 2 dp
    revenue_trends: list[RevenueDay]
    top_days: list[RevenueDay]


# ---------------------------------------------------------------------------
# Products
# ---------------------------------------------------------------------------


class ProductStat(BaseSchema):
    id: str
    name: str
    quantity: int
    revenue: float
    views: int
    stock: int | None


class ProductConversion(BaseSchema):
    name: str
    conversion_rate: float | None  # percentage; None when never viewed


class ProductPerformance(BaseSchema):
    top_selling: list[ProductStat]
    least_performing: list[ProductStat]
    most_viewed: list[ProductStat]
    conversion_rates: list[ProductConversion]
    stock_alerts: list[ProductStat]
    stagnant_products: list[ProductStat]


# ---------------------------------------------------------------------------
# Customers
# ---------------------------------------------------------------------------


class CustomerSpend(BaseSchema):
    email: str
    name: str
    spend: float


class LocationCount(BaseSchema):
    state: str
    count: int


class ShareOfTotal(BaseSchema):
    """Category share as a percentage of all tallies."""

    type: str
    percent: float


class CustomerBehavior(BaseSchema):
    new_customers: int
    returning_customers: int
    top_buyers: list[CustomerSpend]
    retention_rate: float
    locations: list[LocationCount]
    devices: list[ShareOfTotal]
    customer_lifetime_value: float
    top_customer_lifetime_value: float
    average_spend: float
    average_spend_per_customer: list[CustomerSpend]
    live_visitors: int
    live_carts: int


# ---------------------------------------------------------------------------
# Traffic & engagement
# ---------------------------------------------------------------------------


class VisitDay(BaseSchema):
    date: str
    visits: int


class PageVisits(BaseSchema):
    page: str
    visits: int


class PageExits(BaseSchema):
    page: str
    exits: int


class PageViewsCount(BaseSchema):
    page: str
    views: int


class ReferrerVisits(BaseSchema):
    referrer: str
    visits: int


class SessionPageViews(BaseSchema):
    session_id: str
    page_views: int
    email: str | None


class TrafficEngagement(BaseSchema):
    visits_trends: list[VisitDay]
    avg_session_duration: float  # minutes
    bounce_rate: float  # percentage
    top_landing_pages: list[PageVisits]
    top_referrers: list[ReferrerVisits]
    top_exit_pages: list[PageExits]
    page_views_per_session: list[SessionPageViews]
    top_most_viewed_pages: list[PageViewsCount]
    oses: list[ShareOfTotal]


class PageVisitsTrend(BaseSchema):
    page_visits_trends: dict[str, list[VisitDay]]


class PageTransition(BaseSchema):
    source: str
    target: str
    count: int


class UserFlow(BaseSchema):
    transitions: list[PageTransition]


# ---------------------------------------------------------------------------
# Orders & marketing
# ---------------------------------------------------------------------------


class StatusCount(BaseSchema):
    status: str
    count: int


class OrderDay(BaseSchema):
    date: str
    orders: int


class OrdersOverview(BaseSchema):
    status_breakdown: list[StatusCount]
    order_trends: list[OrderDay]
    avg_fulfillment_time: float  # days
    cancelled_count: int
    returned_count: int


class CampaignPerformance(BaseSchema):
    name: str
    conversions: int
    revenue: float
    spend: float
    roi: float  # percentage


class MarketingPerformance(BaseSchema):
    campaigns: list[CampaignPerformance]
    total_spend: float
    total_revenue: float


# ---------------------------------------------------------------------------
# Funnel & live
# ---------------------------------------------------------------------------


class FunnelStage(BaseSchema):
    stage: str
    count: int


class CartProductCount(BaseSchema):
    name: str
    count: int


class FunnelAnalytics(BaseSchema):
    funnel: list[FunnelStage]
    top_cart_products: list[CartProductCount]


class LiveSnapshot(BaseSchema):
    live_visitors: int
    live_carts: int


class LiveMinute(BaseSchema):
    time: str  # ISO minute, UTC
    visitors: int


class LiveVisitorsTrend(BaseSchema):
    minutes: int
    trend: list[LiveMinute]
