"""统计报表 Schema"""

from datetime import datetime
from typing import Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field


class RangeInfo(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    from_: str = Field(..., alias="from")
    to: str
    granularity: Optional[str] = None


# ==================== 汇总 ====================

class SummaryTotals(BaseModel):
    revenue: float = 0
    orders: int = 0
    aov: float = 0  # 客单价
    units: int = 0


class SummaryUsers(BaseModel):
    new_users: int = 0
    buyers: int = 0
    repeat: int = 0  # 区间内下单超过一次的买家


class SummaryOrders(BaseModel):
    canceled: int = 0
    canceled_pct: float = 0


class SummaryMetrics(BaseModel):
    range: RangeInfo
    totals: SummaryTotals
    users: SummaryUsers
    orders: SummaryOrders
    generated_at: datetime


# ==================== 时间序列 ====================

class TimeSeriesPoint(BaseModel):
    date: str
    revenue: float = 0
    orders: int = 0
    units: int = 0


class UserSeriesPoint(BaseModel):
    date: str
    new_users: int = 0


class OrderStatusPoint(BaseModel):
    date: str
    PENDING: int = 0
    PAID: int = 0
    SHIPPED: int = 0
    COMPLETED: int = 0
    CANCELED: int = 0


class OrderStatusTotals(BaseModel):
    PENDING: int = 0
    PAID: int = 0
    SHIPPED: int = 0
    COMPLETED: int = 0
    CANCELED: int = 0
    total: int = 0


# ==================== 排行 / 分布 ====================

class TopProduct(BaseModel):
    product_id: Optional[int] = None
    name: str
    revenue: float = 0
    units: int = 0


class CategoryDistributionItem(BaseModel):
    category_id: int
    name: str
    revenue: float = 0
    units: int = 0


class RecentOrder(BaseModel):
    id: int
    status: str
    total: float
    created_at: datetime
    user_email: Optional[str] = None
    items: int = 0


# ==================== 接口响应 ====================

class TopProductsResponse(BaseModel):
    range: RangeInfo
    products: List[TopProduct]


class OrdersStatus(BaseModel):
    breakdown: List[OrderStatusPoint]
    totals: OrderStatusTotals


class DashboardResponse(BaseModel):
    range: RangeInfo
    summary: SummaryMetrics
    previous: SummaryMetrics
    deltas: Dict[str, Optional[float]] = {}  # 环比变化率，上期为 0 时为 None
    timeseries: List[TimeSeriesPoint]
    users: List[UserSeriesPoint]
    top_products: List[TopProduct]
    categories: List[CategoryDistributionItem]
    orders_status: OrdersStatus
    recent_orders: List[RecentOrder]
