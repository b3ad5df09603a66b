from typing import Any
from pydantic import BaseModel, ConfigDict, field_validator

from petshop.schemas.common import email_text, required_text


class ContactForm(BaseModel):
    model_config = ConfigDict(validate_default=True)

    name: Any = ""
    email: Any = ""
    message: Any = ""

    @field_validator("name")
    @classmethod
    def check_name(cls, v):
        return required_text(v, 2)

    @field_validator("email")
    @classmethod
    def check_email(cls, v):
        return email_text(v)

    @field_validator("message")
    @classmethod
    def check_message(cls, v):
        return required_text(v, 10)
