"""
图片上传

校验顺序：大小 -> MIME（提供时才校验）-> 扩展名；
保存为 <毫秒时间戳>-<slug>.<ext>，返回以 / 开头的相对路径。
"""

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional

from petshop.core.config import settings
from petshop.core.errors import UploadError
from petshop.models.product import FALLBACK_IMAGE
from petshop.services.catalog import slugify

logger = logging.getLogger(__name__)

ALLOWED_MIME = frozenset({"image/jpeg", "image/jpg", "image/png", "image/webp", "image/avif"})
ALLOWED_EXT = frozenset({"jpg", "jpeg", "png", "webp", "avif"})

# kind -> 相对目录
UPLOAD_DIRS = {
    "product": "items",
    "category": "media/categories",
}
DEFAULT_UPLOAD_DIR = "media/uploads"


@dataclass
class SaveResult:
    relative_path: str
    absolute_path: Path
    filename: str


def upload_dir_for(kind: Optional[str]) -> str:
    return UPLOAD_DIRS.get(kind or "", DEFAULT_UPLOAD_DIR)


def file_extension(filename: str) -> str:
    return filename.rsplit(".", 1)[-1].lower() if "." in (filename or "") else ""


def validate_upload(
    filename: str,
    size: int,
    content_type: Optional[str],
    max_bytes: Optional[int] = None,
    allowed_mime: Iterable[str] = ALLOWED_MIME,
    allowed_ext: Iterable[str] = ALLOWED_EXT,
) -> str:
    """校验上传文件，返回小写扩展名"""
    max_bytes = max_bytes or settings.UPLOAD_MAX_BYTES
    if size > max_bytes:
        raise UploadError("FILE_TOO_LARGE")
    if content_type and content_type not in set(allowed_mime):
        raise UploadError("INVALID_MIME")
    ext = file_extension(filename)
    if ext not in set(allowed_ext):
        raise UploadError("INVALID_EXT")
    return ext


def save_uploaded_file(
    data: bytes,
    filename: str,
    content_type: Optional[str],
    base_rel_dir: str,
    base_name: Optional[str] = None,
    root: Optional[str] = None,
    max_bytes: Optional[int] = None,
) -> SaveResult:
    """校验并写入上传文件"""
    ext = validate_upload(filename, len(data), content_type, max_bytes=max_bytes)
    safe_base = slugify(base_name or filename.rsplit(".", 1)[0]) or "upload"
    stored_name = f"{int(time.time() * 1000)}-{safe_base}.{ext}"

    target_dir = Path(root or settings.UPLOAD_ROOT) / base_rel_dir
    target_dir.mkdir(parents=True, exist_ok=True)
    abs_path = target_dir / stored_name
    abs_path.write_bytes(data)

    relative = "/" + f"{base_rel_dir}/{stored_name}".replace("\\", "/").lstrip("/")
    logger.info(f"📷 已保存上传文件 {relative} ({len(data)} bytes)")
    return SaveResult(relative_path=relative, absolute_path=abs_path, filename=stored_name)


def delete_if_local(relative_path: Optional[str], root: Optional[str] = None) -> bool:
    """删除本地上传文件；外部URL、占位图、越界路径一律忽略"""
    if not relative_path or relative_path == FALLBACK_IMAGE:
        return False
    if not relative_path.startswith("/") or relative_path.startswith("//"):
        return False
    base = Path(root or settings.UPLOAD_ROOT).resolve()
    target = (base / relative_path.lstrip("/")).resolve()
    if base not in target.parents:
        return False
    try:
        target.unlink()
    except OSError as e:
        logger.debug(f"删除上传文件失败 {relative_path}: {e}")
        return False
    logger.info(f"🗑️ 已删除上传文件 {relative_path}")
    return True
