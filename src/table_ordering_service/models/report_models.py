"""Business report models.

Money stays Decimal end to end; rates and growth figures are percentages
expressed as floats.
"""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field


class DateRange(BaseModel):
    start_date: datetime
    end_date: datetime


class PeakHour(BaseModel):
    hour: int = Field(..., ge=0, le=23)
    orders: int


class MenuItemPerformance(BaseModel):
    menu_item_id: str
    name: str
    category: str
    quantity: int
    revenue: Decimal
    orders: int


class CategoryPerformance(BaseModel):
    category: str
    quantity: int
    revenue: Decimal
    orders: int


class TablePerformance(BaseModel):
    table_id: str
    table_label: str
    orders: int
    revenue: Decimal
    average_order_value: Decimal


class ReportOverview(BaseModel):
    total_orders: int
    total_revenue: Decimal
    average_order_value: Decimal
    unique_customers: int
    repeat_customers: int
    customer_retention_rate: float
    completion_rate: float
    cancellation_rate: float
    average_prep_time: float
    revenue_growth: float
    order_growth: float


class OrderMetrics(BaseModel):
    orders_by_status: dict[str, int]
    daily_revenue: dict[str, Decimal]
    hourly_orders: dict[int, int]
    peak_hours: list[PeakHour]
    completed_orders: int
    cancelled_orders: int


class MenuPerformance(BaseModel):
    top_menu_items: list[MenuItemPerformance]
    category_performance: list[CategoryPerformance]
    total_menu_items: int = 0
    active_menu_items: int = 0


class TableReport(BaseModel):
    top_tables: list[TablePerformance]
    total_tables: int = 0
    active_tables: int = 0


class RestaurantReport(BaseModel):
    """Full metrics bundle for one restaurant over one date window."""

    restaurant_id: str
    restaurant_name: str
    currency: str
    date_range: DateRange
    overview: ReportOverview
    order_metrics: OrderMetrics
    menu_performance: MenuPerformance
    table_performance: TableReport
