from __future__ import annotations

from uuid import UUID

from chat_client.domain.value_objects.enums import MessageType


class AppError(Exception):
    """Base application error."""

    def __init__(self, detail: str = "") -> None:
        self.detail = detail
        super().__init__(detail)


class NetworkError(AppError):
    """The backend could not be reached or the connection broke mid-call."""


class AuthenticationError(AppError):
    """Missing, expired or rejected credential."""


class ValidationError(AppError):
    pass


class NotFoundError(AppError):
    pass


class ServerRejectedError(AppError):
    """The backend understood the call and declined it."""

    def __init__(self, detail: str = "", status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(detail)


class ForbiddenError(ServerRejectedError):
    pass


class ConflictError(ServerRejectedError):
    pass


class MessageSendError(AppError):
    """An authoritative send failed; the provisional message has been rolled back.

    Carries everything the caller needs to offer a retry.
    """

    def __init__(
        self,
        detail: str,
        *,
        room_id: str,
        body: str,
        message_type: MessageType,
        client_msg_id: UUID,
    ) -> None:
        self.room_id = room_id
        self.body = body
        self.message_type = message_type
        self.client_msg_id = client_msg_id
        super().__init__(detail)
