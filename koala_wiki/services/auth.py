from __future__ import annotations

import logging
from typing import Optional

from koala_wiki.api.errors import ApiError, AuthorizationError, ValidationError
from koala_wiki.cache.mutations import MutationResult
from koala_wiki.models import AuthResponse, User
from koala_wiki.validation import validate_login, validate_registration
from .base import Service

logger = logging.getLogger("koala_wiki.auth")

REGISTRATION_ERRORS = {
    "USER_EXISTS": "This email address or nickname is already registered",
    "MISSING_FIELDS": "Fill in every required field",
    "WEAK_PASSWORD": "Password must be at least 6 characters",
    "INVALID_EMAIL": "Enter a valid email address",
    "NICKNAME_TOO_LONG": "Nickname must be 20 characters or fewer",
}


def describe_registration_error(error: ApiError) -> Optional[str]:
    if error.code == "VALIDATION_ERROR" and isinstance(error, ValidationError) and error.field_errors:
        return "\n".join(e.message for e in error.field_errors)
    if error.code in REGISTRATION_ERRORS:
        return REGISTRATION_ERRORS[error.code]
    return None


class AuthService(Service):
    async def login(self, email: str, password: str, *, redirect: str = "/") -> MutationResult[AuthResponse]:
        email = (email or "").strip()
        result = await self.mutations.run(
            lambda: self.api.auth.login(email=email, password=password),
            name="login",
            validate=lambda: validate_login(email, password),
            error_title="Login failed",
            loading_key="login",
        )
        if result.ok and result.data is not None:
            await self._start_session(result.data, f"Welcome back, {result.data.user.nickname}")
            self.ctx.navigator.push(redirect)
        return result

    async def register(self, nickname: str, email: str, password: str) -> MutationResult[AuthResponse]:
        nickname = (nickname or "").strip()
        email = (email or "").strip()
        result = await self.mutations.run(
            lambda: self.api.auth.register(nickname=nickname, email=email, password=password),
            name="register",
            validate=lambda: validate_registration(nickname, email, password),
            error_title="Registration failed",
            describe_error=describe_registration_error,
            loading_key="register",
        )
        if result.ok and result.data is not None:
            await self._start_session(result.data, "Registration complete")
            self.ctx.navigator.push("/")
        return result

    async def _start_session(self, auth: AuthResponse, message: str) -> None:
        # data cached for the previous identity must not leak into this one
        self.cache.clear()
        await self.ctx.session.login(auth.token, auth.user)
        self.ctx.ui.add_toast("success", message)

    async def logout(self) -> None:
        await self.ctx.session.logout()
        self.cache.clear()
        self.ctx.ui.add_toast("info", "Logged out")
        self.ctx.navigator.push("/")

    async def verify(self) -> Optional[User]:
        """
        Check the stored token with the server. Refreshes the profile when valid;
        an invalid or rejected token ends the session.
        """
        state = await self.ctx.session.wait_initialized()
        if not state.is_authenticated:
            return None
        try:
            resp = await self.api.auth.verify()
        except AuthorizationError:
            resp = None
        except ApiError as e:
            # offline: keep the session, the token may still be good
            logger.warning("could not verify session: %s", e.message)
            return state.user
        if resp is None or not resp.valid:
            logger.info("stored token rejected, logging out")
            await self.ctx.session.logout()
            self.cache.clear()
            return None
        if resp.user is not None:
            return await self.ctx.session.update_user(**resp.user.model_dump())
        return state.user
