"""
定时任务调度器服务
使用 APScheduler 定期清理过期的权限缓存条目
"""

import logging
from typing import Optional
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from petshop.core.config import settings
from petshop.core.permissions import permission_cache

logger = logging.getLogger(__name__)

# 全局调度器实例
scheduler: Optional[AsyncIOScheduler] = None


def sweep_permission_cache() -> int:
    """清理过期权限缓存，返回清理条数"""
    try:
        removed = permission_cache.purge_expired()
        if removed:
            logger.info(f"🧹 清理过期权限缓存 {removed} 条")
        return removed
    except Exception as e:
        logger.error(f"❌ 清理权限缓存失败: {str(e)}")
        return 0


def init_scheduler():
    """初始化并启动调度器"""
    global scheduler

    if settings.PERMISSION_CACHE_SWEEP_SECONDS <= 0:
        logger.info("⏰ 权限缓存清理已禁用")
        return

    scheduler = AsyncIOScheduler()
    scheduler.add_job(
        sweep_permission_cache,
        trigger=IntervalTrigger(seconds=settings.PERMISSION_CACHE_SWEEP_SECONDS),
        id="permission_cache_sweep",
        name="权限缓存清理",
        replace_existing=True
    )

    scheduler.start()
    logger.info(f"⏰ 定时任务调度器已启动 - 权限缓存每 {settings.PERMISSION_CACHE_SWEEP_SECONDS} 秒清理一次")


def shutdown_scheduler():
    """关闭调度器"""
    global scheduler
    if scheduler:
        scheduler.shutdown(wait=False)
        scheduler = None
        logger.info("⏰ 定时任务调度器已关闭")


def get_scheduler_status() -> dict:
    """获取调度器状态"""
    if not scheduler:
        return {"running": False, "jobs": []}

    jobs = []
    for job in scheduler.get_jobs():
        jobs.append({
            "id": job.id,
            "name": job.name,
            "next_run_time": job.next_run_time.isoformat() if job.next_run_time else None
        })
    return {"running": scheduler.running, "jobs": jobs}
