"""Uniform response envelope helpers."""

import math
from typing import Any, Optional
from fastapi.responses import JSONResponse
from fastapi.encoders import jsonable_encoder


def success_response(data: Any = None, message: Optional[str] = None) -> dict:
    body = {"success": True}
    if data is not None:
        body["data"] = data
    if message:
        body["message"] = message
    return body


def pagination_meta(page: int, limit: int, total: int) -> dict:
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "pages": math.ceil(total / limit) if limit else 0,
    }


def paginated_response(items: list, page: int, limit: int, total: int, **extra) -> dict:
    body = {"success": True, "data": items, "pagination": pagination_meta(page, limit, total)}
    body.update(extra)
    return body


def clamp_pagination(page: int, limit: int, max_limit: int = 50) -> tuple[int, int]:
    """Clamp client supplied paging values to sane bounds."""
    page = max(1, page or 1)
    limit = max(1, min(limit or 10, max_limit))
    return page, limit


def error_response(status_code: int, message: str, code: str, details: Any = None) -> JSONResponse:
    error = {"message": message, "code": code}
    if details is not None:
        error["details"] = details
    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder({"success": False, "error": error}),
    )
