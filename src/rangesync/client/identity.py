"""Identity and friendship capabilities consumed by the client.

Authentication and the social graph live outside this package. The data
layer only needs to know who is signed in (possibly nobody) and whether
two users are friends.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

# created_by of entities written while nobody was signed in
GUEST_USER_ID = "guest_local"


@dataclass(frozen=True)
class CurrentUser:
    """The signed-in user."""

    user_id: str
    display_name: str


class IdentityProvider(Protocol):
    """Supplies the signed-in user, or None for guests."""

    def current_user(self) -> CurrentUser | None: ...


class FriendChecker(Protocol):
    """Capability check for the friend graph."""

    async def is_friend(self, user_id: str, other_user_id: str) -> bool: ...


class StaticIdentity:
    """Identity provider backed by a fixed (or absent) user.

    Used by the CLI, where the user comes from the config file, and by
    tests. sign_in()/sign_out() let callers switch users at runtime.
    """

    def __init__(self, user: CurrentUser | None = None) -> None:
        self._user = user

    def current_user(self) -> CurrentUser | None:
        return self._user

    def sign_in(self, user: CurrentUser) -> None:
        self._user = user

    def sign_out(self) -> None:
        self._user = None
