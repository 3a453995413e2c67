"""Caller identity and access context carried through each request."""

from __future__ import annotations

from dataclasses import dataclass

from mibuks.types import AdminTier


@dataclass(frozen=True, slots=True)
class Identity:
    """An authenticated caller, valid only while its session exists."""

    user_id: str
    email: str = ""


@dataclass(frozen=True, slots=True)
class TierInfo:
    """The caller's administrative classification."""

    tier: AdminTier
    ngo_id: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.tier in (AdminTier.SYSTEM_ADMIN, AdminTier.NGO_ADMIN)


NO_TIER = TierInfo(tier=AdminTier.NONE)
TENANT_OWNER = TierInfo(tier=AdminTier.TENANT_OWNER)


@dataclass(frozen=True, slots=True)
class AccessContext:
    """Immutable access context: who is calling and at which tier."""

    identity: Identity
    tier: TierInfo
    business_id: str | None = None
