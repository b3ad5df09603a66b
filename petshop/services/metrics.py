"""
仪表盘统计

按日期区间（含首尾两天）读取订单/明细，在内存里按 日 / 周(周一) / 月(1号) 分桶汇总。
仅 day 粒度补齐空桶；week / month 只返回有数据的桶。
"""

from collections import defaultdict
from dataclasses import dataclass, replace
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from petshop.models.category import Category
from petshop.models.order import ORDER_STATUSES, Order, OrderItem
from petshop.models.product import Product
from petshop.models.user import User
from petshop.schemas.metrics import (
    CategoryDistributionItem, OrderStatusPoint, OrderStatusTotals, RangeInfo,
    RecentOrder, SummaryMetrics, SummaryOrders, SummaryTotals, SummaryUsers,
    TimeSeriesPoint, TopProduct, UserSeriesPoint,
)

GRANULARITIES = ("day", "week", "month")
_GRANULARITY_ALIASES = {"d": "day", "w": "week", "m": "month"}
DEFAULT_SPAN_DAYS = 30


@dataclass(frozen=True)
class DateRange:
    start: date
    end: date
    granularity: str = "day"

    @property
    def days(self) -> int:
        return (self.end - self.start).days + 1

    def window(self) -> Tuple[datetime, datetime]:
        """[start 00:00, end 次日 00:00)"""
        lower = datetime.combine(self.start, datetime.min.time())
        upper = datetime.combine(self.end + timedelta(days=1), datetime.min.time())
        return lower, upper

    def info(self, with_granularity: bool = True) -> RangeInfo:
        return RangeInfo(
            from_=self.start.isoformat(),
            to=self.end.isoformat(),
            granularity=self.granularity if with_granularity else None,
        )


def _parse_date(value: Optional[str]) -> Optional[date]:
    if not value:
        return None
    value = value.strip()
    try:
        return date.fromisoformat(value[:10])
    except ValueError:
        return None


def normalize_granularity(g: Optional[str]) -> str:
    if not g:
        return "day"
    lower = g.strip().lower()
    lower = _GRANULARITY_ALIASES.get(lower, lower)
    return lower if lower in GRANULARITIES else "day"


def normalize_range(
    from_: Optional[str] = None,
    to: Optional[str] = None,
    g: Optional[str] = None,
    today: Optional[date] = None,
) -> DateRange:
    """
    解析查询参数为日期区间

    - 缺省 to 为今天(UTC)，缺省 from 为 to 往前 29 天（共 30 天）
    - from 晚于 to 时，from 改为 to 的前一天
    - 无法解析的日期按缺省处理
    """
    today = today or datetime.now(timezone.utc).date()
    end = _parse_date(to) or today
    start = _parse_date(from_) or end - timedelta(days=DEFAULT_SPAN_DAYS - 1)
    if start > end:
        start = end - timedelta(days=1)
    return DateRange(start=start, end=end, granularity=normalize_granularity(g))


def previous_range(current: DateRange) -> DateRange:
    """紧邻当前区间之前、长度相同的区间（用于环比）"""
    days = max(1, current.days)
    prev_end = current.start - timedelta(days=1)
    prev_start = prev_end - timedelta(days=days - 1)
    return replace(current, start=prev_start, end=prev_end)


def bucket_key(moment: Any, granularity: str) -> str:
    """日期所属桶：当天 / 所在ISO周的周一 / 当月1号"""
    day = moment.date() if isinstance(moment, datetime) else moment
    if granularity == "week":
        return (day - timedelta(days=day.weekday())).isoformat()
    if granularity == "month":
        return day.replace(day=1).isoformat()
    return day.isoformat()


def iter_days(current: DateRange) -> Iterator[str]:
    day = current.start
    while day <= current.end:
        yield day.isoformat()
        day += timedelta(days=1)


def _bucket_keys(current: DateRange, buckets: Mapping[str, Any]) -> List[str]:
    if current.granularity == "day":
        return list(iter_days(current))
    return sorted(buckets)


def _num(value: Any) -> Decimal:
    if value is None:
        return Decimal("0")
    return value if isinstance(value, Decimal) else Decimal(str(value))


# ==================== 纯计算 ====================

def aggregate_time_series(orders: Iterable[Any], current: DateRange) -> List[TimeSeriesPoint]:
    buckets: Dict[str, Dict[str, Any]] = {}
    for order in orders:
        key = bucket_key(order.created_at, current.granularity)
        bucket = buckets.setdefault(key, {"revenue": Decimal("0"), "orders": 0, "units": 0})
        bucket["revenue"] += _num(order.total)
        bucket["orders"] += 1
        bucket["units"] += sum(it.quantity for it in order.items)

    points = []
    for key in _bucket_keys(current, buckets):
        b = buckets.get(key, {"revenue": Decimal("0"), "orders": 0, "units": 0})
        points.append(TimeSeriesPoint(date=key, revenue=float(b["revenue"]), orders=b["orders"], units=b["units"]))
    return points


def aggregate_user_series(created: Iterable[datetime], current: DateRange) -> List[UserSeriesPoint]:
    counts: Dict[str, int] = defaultdict(int)
    for moment in created:
        counts[bucket_key(moment, current.granularity)] += 1
    return [UserSeriesPoint(date=key, new_users=counts.get(key, 0)) for key in _bucket_keys(current, counts)]


def aggregate_status_breakdown(orders: Iterable[Any], current: DateRange) -> List[OrderStatusPoint]:
    buckets: Dict[str, Dict[str, int]] = {}
    for order in orders:
        key = bucket_key(order.created_at, current.granularity)
        rec = buckets.setdefault(key, {s: 0 for s in ORDER_STATUSES})
        if order.status in rec:
            rec[order.status] += 1
    return [
        OrderStatusPoint(date=key, **buckets.get(key, {s: 0 for s in ORDER_STATUSES}))
        for key in _bucket_keys(current, buckets)
    ]


def sum_status_totals(breakdown: Iterable[OrderStatusPoint]) -> OrderStatusTotals:
    totals = {s: 0 for s in ORDER_STATUSES}
    for row in breakdown:
        for s in ORDER_STATUSES:
            totals[s] += getattr(row, s)
    return OrderStatusTotals(**totals, total=sum(totals.values()))


def rank_products(items: Iterable[Tuple[Optional[int], str, Any, int]], limit: int) -> List[TopProduct]:
    """items: (product_id, name, unit_price, quantity)"""
    acc: Dict[Any, Dict[str, Any]] = {}
    for product_id, name, unit_price, quantity in items:
        key = product_id if product_id is not None else f"name:{name}"
        entry = acc.setdefault(key, {"product_id": product_id, "name": name, "revenue": Decimal("0"), "units": 0})
        entry["revenue"] += _num(unit_price) * quantity
        entry["units"] += quantity
    ranked = sorted(acc.values(), key=lambda e: e["revenue"], reverse=True)
    return [
        TopProduct(product_id=e["product_id"], name=e["name"], revenue=float(e["revenue"]), units=e["units"])
        for e in ranked[:max(limit, 0)]
    ]


def distribute_by_category(
    items: Iterable[Tuple[Optional[int], Optional[str], Any, int]]
) -> List[CategoryDistributionItem]:
    """items: (category_id, category_name, unit_price, quantity)；无分类的明细跳过"""
    acc: Dict[int, Dict[str, Any]] = {}
    for category_id, name, unit_price, quantity in items:
        if category_id is None:
            continue
        entry = acc.setdefault(category_id, {"name": name, "revenue": Decimal("0"), "units": 0})
        entry["revenue"] += _num(unit_price) * quantity
        entry["units"] += quantity
    ranked = sorted(acc.items(), key=lambda kv: kv[1]["revenue"], reverse=True)
    return [
        CategoryDistributionItem(category_id=cid, name=e["name"], revenue=float(e["revenue"]), units=e["units"])
        for cid, e in ranked
    ]


def summarize(
    orders: List[Any],
    new_users: int,
    buyer_counts: Mapping[int, int],
    current: DateRange,
    now: Optional[datetime] = None,
) -> SummaryMetrics:
    revenue = Decimal("0")
    units = 0
    canceled = 0
    for order in orders:
        revenue += _num(order.total)
        if order.status == "CANCELED":
            canceled += 1
        units += sum(it.quantity for it in order.items)
    count = len(orders)
    return SummaryMetrics(
        range=current.info(),
        totals=SummaryTotals(
            revenue=float(revenue),
            orders=count,
            aov=float(revenue / count) if count else 0,
            units=units,
        ),
        users=SummaryUsers(
            new_users=new_users,
            buyers=len(buyer_counts),
            repeat=sum(1 for n in buyer_counts.values() if n > 1),
        ),
        orders=SummaryOrders(canceled=canceled, canceled_pct=canceled / count if count else 0),
        generated_at=now or datetime.now(timezone.utc),
    )


def compute_deltas(current: SummaryMetrics, previous: SummaryMetrics) -> Dict[str, Optional[float]]:
    """环比变化率 (本期 - 上期) / 上期"""
    deltas: Dict[str, Optional[float]] = {}
    for field in ("revenue", "orders", "aov", "units"):
        cur = getattr(current.totals, field)
        prev = getattr(previous.totals, field)
        deltas[field] = (cur - prev) / prev if prev else None
    return deltas


# ==================== 数据库查询 ====================

async def _orders_in_range(db: AsyncSession, current: DateRange) -> List[Order]:
    lower, upper = current.window()
    result = await db.execute(
        select(Order)
        .options(selectinload(Order.items))
        .where(Order.created_at >= lower, Order.created_at < upper)
    )
    return list(result.scalars().all())


async def get_summary_metrics(db: AsyncSession, current: DateRange) -> SummaryMetrics:
    lower, upper = current.window()
    orders = await _orders_in_range(db, current)
    new_users = (await db.execute(
        select(func.count(User.id)).where(User.created_at >= lower, User.created_at < upper)
    )).scalar() or 0
    buyers = await db.execute(
        select(Order.user_id, func.count(Order.id))
        .where(Order.user_id.is_not(None), Order.created_at >= lower, Order.created_at < upper)
        .group_by(Order.user_id)
    )
    return summarize(orders, new_users, {uid: n for uid, n in buyers.all()}, current)


async def get_time_series(db: AsyncSession, current: DateRange) -> List[TimeSeriesPoint]:
    return aggregate_time_series(await _orders_in_range(db, current), current)


async def get_user_series(db: AsyncSession, current: DateRange) -> List[UserSeriesPoint]:
    lower, upper = current.window()
    result = await db.execute(
        select(User.created_at).where(User.created_at >= lower, User.created_at < upper)
    )
    return aggregate_user_series(result.scalars().all(), current)


async def get_top_products(db: AsyncSession, current: DateRange, limit: int = 10) -> List[TopProduct]:
    lower, upper = current.window()
    result = await db.execute(
        select(OrderItem.product_id, OrderItem.name, OrderItem.unit_price, OrderItem.quantity)
        .join(Order, OrderItem.order_id == Order.id)
        .where(Order.created_at >= lower, Order.created_at < upper)
    )
    return rank_products(result.all(), limit)


async def get_category_distribution(db: AsyncSession, current: DateRange) -> List[CategoryDistributionItem]:
    lower, upper = current.window()
    result = await db.execute(
        select(Category.id, Category.name, OrderItem.unit_price, OrderItem.quantity)
        .select_from(OrderItem)
        .join(Order, OrderItem.order_id == Order.id)
        .outerjoin(Product, OrderItem.product_id == Product.id)
        .outerjoin(Category, Product.category_id == Category.id)
        .where(Order.created_at >= lower, Order.created_at < upper)
    )
    return distribute_by_category(result.all())


async def get_order_status_breakdown(db: AsyncSession, current: DateRange) -> List[OrderStatusPoint]:
    lower, upper = current.window()
    result = await db.execute(
        select(Order.status, Order.created_at).where(Order.created_at >= lower, Order.created_at < upper)
    )
    return aggregate_status_breakdown(result.all(), current)


async def get_order_status_totals(db: AsyncSession, current: DateRange) -> OrderStatusTotals:
    return sum_status_totals(await get_order_status_breakdown(db, current))


async def get_recent_orders(db: AsyncSession, current: DateRange, limit: int = 8) -> List[RecentOrder]:
    lower, upper = current.window()
    result = await db.execute(
        select(Order)
        .options(selectinload(Order.items), selectinload(Order.user))
        .where(Order.created_at >= lower, Order.created_at < upper)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .limit(limit)
    )
    return [
        RecentOrder(
            id=o.id,
            status=o.status,
            total=float(o.total or 0),
            created_at=o.created_at,
            user_email=o.user.email if o.user else None,
            items=o.items_count,
        )
        for o in result.scalars().all()
    ]


# ==================== CSV 导出 ====================

def _csv_escape(value: Any) -> str:
    if value is None:
        return ""
    text = str(value)
    if any(c in text for c in '",;\n'):
        return '"' + text.replace('"', '""') + '"'
    return text


def to_csv(rows: List[Mapping[str, Any]]) -> str:
    """
    以第一行的键为表头导出 CSV；None 输出为空，
    含双引号、逗号、分号或换行的值加引号（内部引号加倍）
    """
    if not rows:
        return ""
    headers = list(rows[0].keys())
    lines = [",".join(headers)]
    for row in rows:
        lines.append(",".join(_csv_escape(row.get(h)) for h in headers))
    return "\n".join(lines)


def summary_csv(summary: SummaryMetrics) -> str:
    return to_csv([
        {"metric": "revenue", "value": summary.totals.revenue},
        {"metric": "orders", "value": summary.totals.orders},
        {"metric": "aov", "value": summary.totals.aov},
        {"metric": "units", "value": summary.totals.units},
        {"metric": "new_users", "value": summary.users.new_users},
        {"metric": "buyers", "value": summary.users.buyers},
        {"metric": "repeat", "value": summary.users.repeat},
        {"metric": "canceled", "value": summary.orders.canceled},
        {"metric": "canceled_pct", "value": summary.orders.canceled_pct},
    ])
