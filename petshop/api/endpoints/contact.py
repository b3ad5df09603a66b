"""联系表单"""

import logging
from typing import Any

from fastapi import APIRouter, status

from petshop.schemas.common import OkResponse
from petshop.schemas.contact import ContactForm

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("", response_model=OkResponse, status_code=status.HTTP_201_CREATED)
async def submit_contact(form: ContactForm) -> Any:
    logger.info(f"📨 联系表单: {form.name} <{form.email}> ({len(form.message)} 字)")
    return OkResponse()
