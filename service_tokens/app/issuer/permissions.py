"""
Claims permission hook applied when tokens are minted.
"""

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Iterable, Optional, Set

AUTH_ORIGIN_PROVIDER = "provider"
AUTH_ORIGIN_DOMAIN_SWITCH = "domain_switch"


@dataclass
class PermissionPack:
    """Permissions a subject is about to receive.

    Hooks may add or drop scopes, roles and extra claims before the token is
    signed.
    """
    user_id: str
    auth_origin: str
    domain: str
    scopes: Set[str] = field(default_factory=set)
    roles: Set[str] = field(default_factory=set)
    claims: Dict[str, Any] = field(default_factory=dict)


PermissionHook = Callable[[PermissionPack], Awaitable[PermissionPack]]


class DefaultPermissions:
    """Grants a fixed set of scopes and roles to every subject."""

    def __init__(self, scopes: Optional[Iterable[str]] = None,
                 roles: Optional[Iterable[str]] = None):
        self.scopes = frozenset(scopes or ())
        self.roles = frozenset(roles or ())

    async def __call__(self, pack: PermissionPack) -> PermissionPack:
        pack.scopes.update(self.scopes)
        pack.roles.update(self.roles)
        return pack
