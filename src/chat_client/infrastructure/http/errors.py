from __future__ import annotations

import httpx

from chat_client.application.exceptions import (
    AppError,
    AuthenticationError,
    ConflictError,
    ForbiddenError,
    NotFoundError,
    ServerRejectedError,
    ValidationError,
)

_DETAIL_KEYS = ("message", "detail", "error")


def error_detail(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text.strip() or response.reason_phrase
    if isinstance(data, dict):
        for key in _DETAIL_KEYS:
            value = data.get(key)
            if isinstance(value, str) and value:
                return value
    return response.reason_phrase


def error_for_response(response: httpx.Response) -> AppError:
    status = response.status_code
    detail = error_detail(response)
    if status in (400, 422):
        return ValidationError(detail)
    if status == 401:
        return AuthenticationError(detail)
    if status == 403:
        return ForbiddenError(detail, status)
    if status == 404:
        return NotFoundError(detail)
    if status == 409:
        return ConflictError(detail, status)
    return ServerRejectedError(detail, status)


def raise_for_status(response: httpx.Response) -> None:
    if response.is_success:
        return
    raise error_for_response(response)
