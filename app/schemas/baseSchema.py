import re
from datetime import datetime

from pydantic import BaseModel, field_validator
from pydantic.alias_generators import to_camel

from app.utils.dates import to_naive_utc

HTML_TAG = re.compile(r"<[^>]*>")


def reject_html(value):
    """Plain text only: any markup is refused instead of being stripped."""
    if isinstance(value, str) and HTML_TAG.search(value):
        raise ValueError("must not include HTML")
    return value


class CamelModel(BaseModel):
    """Request body accepting camelCase (and snake_case) keys. Datetimes are stored as naive UTC."""

    @field_validator("*", mode="after")
    @classmethod
    def _normalize_datetimes(cls, value):
        if isinstance(value, datetime):
            return to_naive_utc(value)
        return value

    class Config:
        alias_generator = to_camel
        populate_by_name = True
