"""通用 Schema 与表单校验工具"""

import re
from typing import Any

from pydantic import BaseModel
from pydantic_core import PydanticCustomError

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_RE = re.compile(r"^[+0-9 ()-]{5,}$")


def required_text(value: Any, min_len: int = 1) -> str:
    """必填文本，去空白后长度不足抛出字段错误"""
    if not isinstance(value, str) or len(value.strip()) < min_len:
        raise PydanticCustomError("required", "必填（至少 {min_len} 个字符）", {"min_len": min_len})
    return value.strip()


def email_text(value: Any) -> str:
    value = required_text(value, 5)
    if not EMAIL_RE.match(value):
        raise PydanticCustomError("email", "邮箱格式不正确")
    return value.lower()


def phone_text(value: Any) -> str:
    value = required_text(value, 5)
    if not PHONE_RE.match(value):
        raise PydanticCustomError("phone", "电话格式不正确")
    return value


class OkResponse(BaseModel):
    ok: bool = True
