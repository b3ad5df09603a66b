from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import os

from petshop.api.api import api_router
from petshop.core.config import settings
from petshop.core.errors import install_exception_handlers
from petshop.core.logging_config import setup_logging, get_logger
from petshop.services.scheduler import get_scheduler_status, init_scheduler, shutdown_scheduler
from petshop.db.session import SessionLocal
from petshop.db.init_db import ensure_tables_exist, seed_admin, seed_catalog, seed_rbac

# 初始化日志系统
log_level = os.getenv("LOG_LEVEL", "INFO")
setup_logging(log_level, os.getenv("LOG_DIR", "logs") or None)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理"""
    # 启动时
    logger.info("🚀 应用启动中...")

    # 确保数据库表存在
    try:
        await ensure_tables_exist()
        logger.info("📊 数据库表已就绪")
    except Exception as e:
        logger.warning(f"数据库表初始化警告: {e}")

    # 权限目录、预置角色、演示数据
    try:
        async with SessionLocal() as db:
            await seed_rbac(db)
            if settings.SEED_DEFAULT_DATA:
                await seed_catalog(db)
            await seed_admin(db)
    except Exception as e:
        logger.warning(f"种子数据跳过: {e}")

    init_scheduler()
    yield
    # 关闭时
    logger.info("🛑 应用关闭中...")
    shutdown_scheduler()


app = FastAPI(
    title=settings.PROJECT_NAME,
    openapi_url=f"{settings.API_PREFIX}/openapi.json",
    description="宠物用品商城 - 前台 / 后台 JSON API",
    lifespan=lifespan
)

install_exception_handlers(app)

# CORS配置
if settings.BACKEND_CORS_ORIGINS:
    logger.info(f"配置CORS，允许的源: {settings.BACKEND_CORS_ORIGINS}")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[str(origin) for origin in settings.BACKEND_CORS_ORIGINS],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

logger.info(f"注册API路由，前缀: {settings.API_PREFIX}")
app.include_router(api_router, prefix=settings.API_PREFIX)


@app.get("/health")
async def health():
    return {"status": "ok", "scheduler": get_scheduler_status()}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="127.0.0.1", port=8000, log_level="info")
