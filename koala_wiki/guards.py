"""
Access decisions for auth-gated and role-gated screens.

Nothing here redirects while the session is still loading: every guard awaits the
session's initialisation barrier first.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Iterable, Optional

from koala_wiki.models import Role, WikiPage
from koala_wiki.navigation import Navigator
from koala_wiki.state.session import SessionState, SessionStore

logger = logging.getLogger("koala_wiki.guards")

ADMIN_ROLES = (Role.ADMIN, Role.MODERATOR)


class Access(str, Enum):
    ALLOW = "allow"
    LOGIN = "login"
    FORBIDDEN = "forbidden"


def decide(state: SessionState, roles: Optional[Iterable[Role | str]] = None) -> Access:
    if not state.is_authenticated or state.user is None:
        return Access.LOGIN
    if roles is not None:
        allowed = {Role(r) for r in roles}
        if state.user.role not in allowed:
            return Access.FORBIDDEN
    return Access.ALLOW


async def require_auth(
    session: SessionStore,
    navigator: Optional[Navigator] = None,
    roles: Optional[Iterable[Role | str]] = None,
) -> Access:
    state = await session.wait_initialized()
    access = decide(state, roles)
    if navigator is not None:
        if access == Access.LOGIN:
            navigator.push("/login")
        elif access == Access.FORBIDDEN:
            logger.info("access denied for %s (%s)", state.user_id, state.role)
            navigator.push("/")
    return access


def can_edit(state: SessionState, page: WikiPage) -> bool:
    """Authors edit their own pages; editors and above edit any page."""
    if not state.is_authenticated or state.user is None:
        return False
    return page.authorId == state.user.id or state.user.role.at_least(Role.EDITOR)


def can_moderate(state: SessionState) -> bool:
    return state.is_authenticated and state.role in ADMIN_ROLES
