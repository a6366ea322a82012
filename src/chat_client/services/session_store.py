from __future__ import annotations

import logging
from typing import Callable

from chat_client.application.dto.session import (
    AuthResult,
    ProfileUpdateDTO,
    RegistrationDTO,
    Session,
)
from chat_client.application.exceptions import AppError, AuthenticationError, ValidationError
from chat_client.application.ports.credentials import CredentialStore
from chat_client.application.ports.transport import AuthGateway
from chat_client.domain.entities.user import User

logger = logging.getLogger(__name__)

LogoutListener = Callable[[], None]
ExpiryCheck = Callable[[str], bool]


class SessionStore:
    """Holds the authenticated identity and its bearer credential.

    Identity and credential live in a single immutable :class:`Session`, so
    they are always swapped together.
    """

    def __init__(
        self,
        auth: AuthGateway,
        credentials: CredentialStore,
        *,
        expiry_check: ExpiryCheck | None = None,
    ) -> None:
        self._auth = auth
        self._credentials = credentials
        self._expiry_check = expiry_check
        self._session: Session | None = None
        self._restoring_token: str | None = None
        self._logout_listeners: list[LogoutListener] = []

    @property
    def session(self) -> Session | None:
        return self._session

    @property
    def user(self) -> User | None:
        return self._session.user if self._session else None

    @property
    def token(self) -> str | None:
        return self._session.token if self._session else None

    @property
    def is_authenticated(self) -> bool:
        return self._session is not None

    @property
    def bearer(self) -> str | None:
        """Credential to attach to outgoing calls, including the startup profile probe."""
        if self._session is not None:
            return self._session.token
        return self._restoring_token

    def require_user(self) -> User:
        if self._session is None:
            raise AuthenticationError("Not logged in")
        return self._session.user

    def on_logout(self, listener: LogoutListener) -> None:
        self._logout_listeners.append(listener)

    async def login(self, identifier: str, password: str) -> User:
        identifier = identifier.strip()
        if not identifier or not password:
            raise ValidationError("Email/username and password are required")
        result = await self._auth.login(identifier, password)
        return self._establish(result)

    async def register(self, username: str, email: str, password: str, full_name: str) -> User:
        username, email = username.strip(), email.strip()
        if not (username and email and password):
            raise ValidationError("Username, email and password are required")
        result = await self._auth.register(
            RegistrationDTO(
                username=username,
                email=email,
                password=password,
                full_name=full_name.strip() or username,
            ),
        )
        return self._establish(result)

    async def restore(self) -> User | None:
        """Resolve identity from a persisted credential at startup.

        Any failure invalidates the stored credential; there is no retry.
        """
        token = self._credentials.load()
        if not token:
            return None
        if self._expiry_check is not None and self._expiry_check(token):
            logger.info("Persisted credential expired, discarding")
            self._credentials.clear()
            return None

        self._restoring_token = token
        try:
            user = await self._auth.get_profile()
        except AppError as exc:
            logger.warning("Could not restore session: %s", exc.detail)
            self._credentials.clear()
            return None
        finally:
            self._restoring_token = None

        self._session = Session(user=user, token=token)
        logger.info("Session restored for user %s", user.id)
        return user

    async def update_profile(self, data: ProfileUpdateDTO) -> User:
        session = self._require_session()
        user = await self._auth.update_profile(data)
        if self._session is session:
            self._session = Session(user=user, token=session.token)
        return user

    async def change_password(self, current_password: str, new_password: str) -> None:
        self._require_session()
        if not current_password or not new_password:
            raise ValidationError("Both passwords are required")
        if current_password == new_password:
            raise ValidationError("New password must differ from the current one")
        await self._auth.change_password(current_password, new_password)

    async def logout(self) -> None:
        if self._session is None:
            return
        try:
            await self._auth.logout()
        except AppError as exc:
            logger.warning("Backend logout failed: %s", exc.detail)

        self._session = None
        self._credentials.clear()
        logger.info("Logged out")
        for listener in list(self._logout_listeners):
            listener()

    def _establish(self, result: AuthResult) -> User:
        self._session = Session(user=result.user, token=result.token)
        self._credentials.save(result.token)
        logger.info("Authenticated as %s", result.user.id)
        return result.user

    def _require_session(self) -> Session:
        if self._session is None:
            raise AuthenticationError("Not logged in")
        return self._session
