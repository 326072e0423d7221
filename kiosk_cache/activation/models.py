"""
Data models for activation (licensing) state.

Design Decisions:
    - ActivationRecord is frozen: the store only ever replaces it whole
    - Timestamps are timezone-aware UTC datetimes in memory and ISO 8601
      text in the store
    - Status and validation results expose to_dict() for the UI layer
"""

from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Any


class ActivationKind(str, Enum):
    """
    How an activation grant decays.

    SUBSCRIPTION: counts down calendar days, either towards an absolute
                  expiry instant or from a remaining-days snapshot.
    MACHINE_BOUND: counts down usage hours from a fixed time limit.
    """
    SUBSCRIPTION = "subscription"
    MACHINE_BOUND = "machine-bound"

    @classmethod
    def from_remote(cls, value: str | None) -> "ActivationKind | None":
        """
        Map the remote 'tipo' field to a kind.

        Accepts both the remote service's own vocabulary
        ("assinatura", "maquina") and the local enum values.
        Returns None for anything else.
        """
        if value is None:
            return None
        normalized = value.strip().lower()
        if normalized in ("assinatura", "subscription"):
            return cls.SUBSCRIPTION
        if normalized in ("maquina", "máquina", "machine", "machine-bound"):
            return cls.MACHINE_BOUND
        return None


class ActivationMode(str, Enum):
    """Where the reported status came from."""
    ONLINE = "online"
    OFFLINE = "offline"


@dataclass(frozen=True)
class ActivationRecord:
    """
    The single persisted activation snapshot.

    Attributes:
        key: Normalized activation key.
        kind: Decay arithmetic to apply.
        remaining_days: Days left at last_validated_at (subscription without
                        an absolute expiry). None if not applicable.
        remaining_hours: Usage hours left at last_validated_at
                         (machine-bound). None if not applicable.
        expires_at: Absolute expiry instant (subscription only).
        last_validated_at: When this record was last written.
        activated_at: When the key was first adopted on this machine.
        remote_id: Identifier of the key record on the remote side,
                   used for the last-used touch.

    A record with neither remaining_days, remaining_hours nor expires_at
    is "activated, no countdown".
    """
    key: str
    kind: ActivationKind
    last_validated_at: datetime
    remaining_days: int | None = None
    remaining_hours: float | None = None
    expires_at: datetime | None = None
    activated_at: datetime | None = None
    remote_id: str | None = None

    @property
    def has_countdown(self) -> bool:
        return (
            self.expires_at is not None
            or self.remaining_days is not None
            or self.remaining_hours is not None
        )

    def zeroed(self, now: datetime) -> "ActivationRecord":
        """Copy of this record with its countdown exhausted, stamped at now."""
        if self.kind is ActivationKind.MACHINE_BOUND:
            return replace(self, remaining_hours=0.0, last_validated_at=now)
        return replace(self, remaining_days=0, last_validated_at=now)


@dataclass(frozen=True)
class ActivationStatus:
    """
    Answer to "is this kiosk licensed right now?".

    Attributes:
        active: True if playback is allowed.
        expired: True if a grant existed and has run out (or was revoked).
        mode: ONLINE if computed from a fresh remote record, OFFLINE if
              decayed from the local snapshot.
        kind: Kind of the grant (SUBSCRIPTION when there is none).
        key: The activation key, if any.
        remaining_days: Whole days left (subscription), if counting down.
        remaining_hours: Hours left (machine-bound), if counting down.
        expires_at: Absolute expiry (subscription), if known.
    """
    active: bool
    expired: bool
    mode: ActivationMode
    kind: ActivationKind = ActivationKind.SUBSCRIPTION
    key: str | None = None
    remaining_days: int | None = None
    remaining_hours: float | None = None
    expires_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "active": self.active,
            "expired": self.expired,
            "mode": self.mode.value,
            "kind": self.kind.value,
            "key": self.key,
            "remaining_days": self.remaining_days,
            "remaining_hours": self.remaining_hours,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
        }


@dataclass(frozen=True)
class ValidationResult:
    """
    Outcome of submitting an activation key.

    Attributes:
        valid: True if the key was adopted.
        error: Reason when not valid: "not-found", "inactive",
               or the remote failure message.
        kind: Kind of the adopted grant.
        remaining_days: Days left for a subscription grant.
        remaining_hours: Hours left for a machine-bound grant.
    """
    valid: bool
    error: str | None = None
    kind: ActivationKind | None = None
    remaining_days: int | None = None
    remaining_hours: float | None = None

    @classmethod
    def failure(cls, error: str) -> "ValidationResult":
        return cls(valid=False, error=error)

    def to_dict(self) -> dict[str, Any]:
        return {
            "valid": self.valid,
            "error": self.error,
            "kind": self.kind.value if self.kind else None,
            "remaining_days": self.remaining_days,
            "remaining_hours": self.remaining_hours,
        }
