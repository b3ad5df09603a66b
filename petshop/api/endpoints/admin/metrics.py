"""后台 - 统计报表API"""

from typing import Any, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse, Response
from sqlalchemy.ext.asyncio import AsyncSession

from petshop.core.deps import get_db, require_permission
from petshop.core.errors import BadRequestError
from petshop.models.user import User
from petshop.schemas.metrics import DashboardResponse, OrdersStatus, SummaryMetrics, TopProductsResponse
from petshop.services import metrics as metrics_service
from petshop.services.metrics import DateRange, normalize_range

router = APIRouter()

EXPORT_KINDS = ("summary", "timeseries", "top-products", "categories", "orders-status")
EXPORT_FORMATS = ("csv", "json")


def _clamp(value: int, low: int, high: int) -> int:
    return max(low, min(value, high))


def date_range(
    from_: Optional[str] = Query(None, alias="from", description="YYYY-MM-DD"),
    to: Optional[str] = Query(None, description="YYYY-MM-DD"),
    g: Optional[str] = Query(None, description="day / week / month"),
) -> DateRange:
    return normalize_range(from_, to, g)


@router.get("/summary", response_model=SummaryMetrics)
async def get_summary(
    *,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(require_permission("dashboard:access")),
    current: DateRange = Depends(date_range),
) -> Any:
    """区间汇总：营收、订单数、客单价、件数、新用户、买家、取消率"""
    return await metrics_service.get_summary_metrics(db, current)


@router.get("/top-products", response_model=TopProductsResponse)
async def get_top_products(
    *,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(require_permission("dashboard:access")),
    current: DateRange = Depends(date_range),
    limit: int = Query(10),
) -> Any:
    """热销商品排行"""
    products = await metrics_service.get_top_products(db, current, _clamp(limit, 1, 99))
    return TopProductsResponse(range=current.info(with_granularity=False), products=products)


@router.get("/dashboard", response_model=DashboardResponse)
async def get_dashboard(
    *,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(require_permission("dashboard:access")),
    current: DateRange = Depends(date_range),
    top_limit: int = Query(5, alias="topLimit"),
    recent_limit: int = Query(8, alias="recentLimit"),
) -> Any:
    """获取仪表盘数据（含上一周期对比）"""
    summary = await metrics_service.get_summary_metrics(db, current)
    previous = await metrics_service.get_summary_metrics(db, metrics_service.previous_range(current))
    breakdown = await metrics_service.get_order_status_breakdown(db, current)
    return DashboardResponse(
        range=current.info(),
        summary=summary,
        previous=previous,
        deltas=metrics_service.compute_deltas(summary, previous),
        timeseries=await metrics_service.get_time_series(db, current),
        users=await metrics_service.get_user_series(db, current),
        top_products=await metrics_service.get_top_products(db, current, _clamp(top_limit, 1, 50)),
        categories=await metrics_service.get_category_distribution(db, current),
        orders_status=OrdersStatus(
            breakdown=breakdown,
            totals=metrics_service.sum_status_totals(breakdown),
        ),
        recent_orders=await metrics_service.get_recent_orders(db, current, _clamp(recent_limit, 1, 50)),
    )


async def _export_rows(db: AsyncSession, kind: str, current: DateRange, limit: int) -> list:
    if kind == "timeseries":
        points = await metrics_service.get_time_series(db, current)
    elif kind == "top-products":
        points = await metrics_service.get_top_products(db, current, limit)
    elif kind == "categories":
        points = await metrics_service.get_category_distribution(db, current)
    else:
        points = await metrics_service.get_order_status_breakdown(db, current)
    return [p.model_dump() for p in points]


@router.get("/export/{kind}")
async def export_metrics(
    *,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(require_permission("dashboard:access")),
    kind: str,
    current: DateRange = Depends(date_range),
    format: str = Query("csv"),
    limit: int = Query(10),
) -> Any:
    """导出报表：csv 为附件下载，json 直接返回"""
    if kind not in EXPORT_KINDS:
        raise BadRequestError("INVALID_KIND", f"不支持的导出类型: {kind}")
    fmt = (format or "").lower()
    if fmt not in EXPORT_FORMATS:
        raise BadRequestError("INVALID_FORMAT", f"不支持的导出格式: {format}")

    range_info = current.info().model_dump(by_alias=True)
    if kind == "summary":
        summary = await metrics_service.get_summary_metrics(db, current)
        if fmt == "json":
            return JSONResponse(summary.model_dump(by_alias=True, mode="json"))
        content = metrics_service.summary_csv(summary)
    else:
        rows = await _export_rows(db, kind, current, _clamp(limit, 1, 99))
        if fmt == "json":
            return JSONResponse({"range": range_info, "kind": kind, "rows": rows})
        content = metrics_service.to_csv(rows)

    filename = f"{kind}-{current.start.isoformat()}_{current.end.isoformat()}.csv"
    return Response(
        content=content,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
