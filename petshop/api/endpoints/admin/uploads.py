"""后台 - 图片上传"""

from typing import Any, Optional

from fastapi import APIRouter, Depends, Request
from starlette.datastructures import UploadFile

from petshop.core.deps import require_permission
from petshop.core.errors import UnsupportedMediaTypeError, UploadError
from petshop.models.user import User
from petshop.services.uploads import save_uploaded_file, upload_dir_for

router = APIRouter()


@router.post("/image")
async def upload_image(
    *,
    request: Request,
    _: User = Depends(require_permission("product:create")),
) -> Any:
    """
    上传图片（multipart: file / kind / name）

    kind=product 存到 items/，kind=category 存到 media/categories/，其他存到 media/uploads/
    """
    content_type = request.headers.get("content-type", "")
    if not content_type.startswith("multipart/form-data"):
        raise UnsupportedMediaTypeError(message="需要 multipart/form-data")

    form = await request.form()
    file = form.get("file")
    if not isinstance(file, UploadFile) or not file.filename:
        raise UploadError("FILE_REQUIRED", "缺少文件")

    kind: Optional[str] = form.get("kind") if isinstance(form.get("kind"), str) else None
    name: Optional[str] = form.get("name") if isinstance(form.get("name"), str) else None
    data = await file.read()
    result = save_uploaded_file(
        data,
        file.filename,
        file.content_type,
        upload_dir_for(kind),
        base_name=name or None,
    )
    return {"url": result.relative_path}
