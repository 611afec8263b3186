from __future__ import annotations

from typing import Optional, Protocol

from app.models.domain import RoleName


class _UserLike(Protocol):
    id: int
    role: Optional[RoleName]


def role_of(user: _UserLike | None) -> Optional[RoleName]:
    role = getattr(user, "role", None)
    if role is None:
        return None
    if isinstance(role, RoleName):
        return role
    try:
        return RoleName(str(getattr(role, "value", role)))
    except ValueError:
        return None


def is_admin(user: _UserLike | None) -> bool:
    return role_of(user) == RoleName.admin


def can_view_vip(user: _UserLike | None) -> bool:
    """VIP-only auctions and events are shown to the admin and vip roles only.

    `is_vip` records a request for VIP status; it grants nothing until the
    VIP contract is signed and the role is promoted.
    """

    return role_of(user) in (RoleName.admin, RoleName.vip)


def is_self_or_admin(user: _UserLike | None, user_id: int) -> bool:
    if user is None:
        return False
    return is_admin(user) or int(getattr(user, "id", 0) or 0) == int(user_id)
