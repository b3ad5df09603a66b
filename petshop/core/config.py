from typing import List, Optional, Union
import logging

from pydantic import AnyHttpUrl, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(case_sensitive=True, env_file=".env", extra="ignore")

    PROJECT_NAME: str = "宠物用品商城"
    API_PREFIX: str = "/api"
    # 重要：生产环境必须通过 .env 文件或环境变量设置此值
    SECRET_KEY: str = Field(
        default="dev-secret-change-me-0123456789abcdef",
        description="会话令牌签名密钥，生产环境必须修改"
    )

    # 会话 Cookie
    SESSION_COOKIE_NAME: str = "session"
    SESSION_MAX_AGE_SECONDS: int = 60 * 60 * 24 * 7  # 7天
    SESSION_COOKIE_SECURE: bool = False

    # 购物车 Cookie
    CART_COOKIE_NAME: str = "cart"
    CART_MAX_PER_ITEM: int = 50
    CART_MAX_ITEMS: int = 100  # 全部商品数量上限

    # 权限缓存
    PERMISSION_CACHE_TTL_SECONDS: int = 60
    PERMISSION_CACHE_SWEEP_SECONDS: int = 300

    # CORS配置
    BACKEND_CORS_ORIGINS: List[Union[str, AnyHttpUrl]] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    @field_validator("BACKEND_CORS_ORIGINS", mode="before")
    @classmethod
    def assemble_cors_origins(cls, v: Union[str, List[str]]) -> Union[List[str], str]:
        if isinstance(v, str) and not v.startswith("["):
            return [i.strip() for i in v.split(",") if i.strip()]
        elif isinstance(v, (list, str)):
            return v
        raise ValueError(v)

    # 数据库配置
    SQLITE_DATABASE_URI: str = "sqlite:///./petshop.db"
    SEED_DEFAULT_DATA: bool = True
    # 首个管理员（为空则不创建）
    FIRST_ADMIN_EMAIL: Optional[str] = None
    FIRST_ADMIN_PASSWORD: Optional[str] = None

    # 上传配置
    UPLOAD_ROOT: str = "public"
    UPLOAD_MAX_BYTES: int = 2 * 1024 * 1024


settings = Settings()
logger.info(f"加载配置: API_PREFIX={settings.API_PREFIX}, CORS={settings.BACKEND_CORS_ORIGINS}")
