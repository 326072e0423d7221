"""
Activation reconciler: online-first licensing with offline decay.

Every status query tries the remote authority first. A fresh remote record
always wins and replaces the local snapshot wholesale. When the remote
side cannot be reached (or does not know the key), the last persisted
snapshot is decayed by the wall-clock time elapsed since it was written.

State Machine (query_status):

    no local record ──────────────────────────────► inactive (offline)
    local record ─► fetch remote key
        ├─ remote error / key not found ──────────► offline decay
        ├─ key inactive ─► delete local ──────────► expired (online)
        ├─ grant ran out ─► save zeroed ──────────► expired (online)
        └─ grant valid ─► save, touch last-used ──► active (online)

Decay Arithmetic:
    subscription, absolute expiry:  days = ceil(expires_at - now), expired iff now >= expires_at
    subscription, days snapshot:    days = max(0, days - floor(elapsed days))
    machine-bound, hours snapshot:  hours = max(0, hours - elapsed hours)
    anything else:                  active, no countdown

Remote errors never escape query_status. StoreUnavailableError always does.
"""

import math
from collections.abc import Callable
from dataclasses import replace
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from kiosk_cache.activation.models import (
    ActivationKind,
    ActivationMode,
    ActivationRecord,
    ActivationStatus,
    ValidationResult,
)
from kiosk_cache.core.exceptions import RemoteError
from kiosk_cache.core.logger import get_logger
from kiosk_cache.utils import normalize_activation_key, parse_remote_timestamp

if TYPE_CHECKING:
    from kiosk_cache.core.database import LocalStore
    from kiosk_cache.remote.gateway import RemoteGateway
    from kiosk_cache.remote.models import RemoteKeyRecord

logger = get_logger(__name__)


SECONDS_PER_DAY = 86400.0
SECONDS_PER_HOUR = 3600.0

# ValidationResult.error values that are not remote failure messages
ERROR_NOT_FOUND = "not-found"
ERROR_INACTIVE = "inactive"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def days_until(expires_at: datetime, now: datetime) -> int:
    """Whole days left before expires_at, rounded up; 0 once reached."""
    if now >= expires_at:
        return 0
    return math.ceil((expires_at - now).total_seconds() / SECONDS_PER_DAY)


def record_from_remote(
    remote: "RemoteKeyRecord",
    now: datetime,
    previous: ActivationRecord | None = None,
) -> tuple[ActivationRecord, bool]:
    """
    Compute the authoritative local snapshot for a remote key record.

    Args:
        remote: Key record just fetched from the remote authority.
        now: Current time (UTC).
        previous: Currently persisted snapshot, used to keep the original
                  activation time when the same key is re-validated.

    Returns:
        (record, expired). When expired is True the record's countdown is
        already zero.

    Behavior:
        - subscription: remaining days from the parsed expiry; an absent or
          unparseable expiry yields a record with no countdown
        - machine-bound with limit and start: hours left = limit minus
          hours elapsed since start, clamped at 0
        - machine-bound missing the limit or a parseable start: no countdown
    """
    activated_at = now
    if previous is not None and previous.key == remote.key and previous.activated_at:
        activated_at = previous.activated_at

    record = ActivationRecord(
        key=remote.key,
        kind=remote.kind,
        last_validated_at=now,
        activated_at=activated_at,
        remote_id=remote.id,
    )

    if remote.kind is ActivationKind.SUBSCRIPTION:
        expires_at = parse_remote_timestamp(remote.expires_at)
        if expires_at is None:
            return record, False
        expired = now >= expires_at
        return replace(record, expires_at=expires_at, remaining_days=days_until(expires_at, now)), expired

    limit = remote.time_limit_hours
    if limit is None:
        return record, False

    started_at = parse_remote_timestamp(remote.started_at)
    if started_at is None:
        return record, False

    elapsed_hours = max(0.0, (now - started_at).total_seconds() / SECONDS_PER_HOUR)
    left = limit - elapsed_hours

    expired = left <= 0
    return replace(record, remaining_hours=max(0.0, left)), expired


def decay_offline(record: ActivationRecord, now: datetime) -> ActivationStatus:
    """
    Estimate the current status from a persisted snapshot without network.

    Elapsed time is measured from record.last_validated_at. A clock that
    moved backwards counts as zero elapsed time.
    """
    elapsed_seconds = max(0.0, (now - record.last_validated_at).total_seconds())

    def status(expired: bool, **countdown) -> ActivationStatus:
        return ActivationStatus(
            active=not expired,
            expired=expired,
            mode=ActivationMode.OFFLINE,
            kind=record.kind,
            key=record.key,
            **countdown,
        )

    if record.kind is ActivationKind.SUBSCRIPTION:
        if record.expires_at is not None:
            days = days_until(record.expires_at, now)
            return status(
                now >= record.expires_at,
                remaining_days=days,
                expires_at=record.expires_at,
            )
        if record.remaining_days is not None:
            elapsed_days = math.floor(elapsed_seconds / SECONDS_PER_DAY)
            days = max(0, record.remaining_days - elapsed_days)
            return status(days <= 0, remaining_days=days)

    if record.kind is ActivationKind.MACHINE_BOUND and record.remaining_hours is not None:
        hours = max(0.0, record.remaining_hours - elapsed_seconds / SECONDS_PER_HOUR)
        return status(hours <= 0, remaining_hours=hours)

    # TODO: product to decide whether a snapshot with no countdown should stay active forever offline
    return status(False)


class ActivationReconciler:
    """
    Merges remote key validation into the local activation snapshot.

    Attributes:
        store: Local store holding the activation snapshot.
        gateway: Remote gateway used for key lookups and last-used touches.
        clock: Returns the current UTC time; injectable for tests.
    """

    def __init__(
        self,
        store: "LocalStore",
        gateway: "RemoteGateway",
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.store = store
        self.gateway = gateway
        self.clock = clock

    async def query_status(self) -> ActivationStatus:
        """
        Report the current activation status.

        Returns:
            ActivationStatus with mode ONLINE when derived from a fresh
            remote record, OFFLINE otherwise.

        Raises:
            StoreUnavailableError: If the local store fails.
        """
        record = self.store.get_activation()
        if record is None:
            return ActivationStatus(active=False, expired=False, mode=ActivationMode.OFFLINE)

        try:
            remote = await self.gateway.fetch_key_record(record.key)
        except RemoteError as e:
            logger.info(f"Activation check offline ({e.reason}): {e.message}")
            return decay_offline(record, self.clock())

        if remote is None:
            logger.warning(f"Activation key {record.key} not found remotely, using local snapshot")
            return decay_offline(record, self.clock())

        now = self.clock()

        if not remote.is_active:
            logger.warning(f"Activation key {record.key} is no longer active, removing it")
            self.store.delete_activation()
            return ActivationStatus(
                active=False,
                expired=True,
                mode=ActivationMode.ONLINE,
                kind=remote.kind,
                key=remote.key,
            )

        fresh, expired = record_from_remote(remote, now, previous=record)

        if expired:
            logger.warning(f"Activation key {record.key} has expired")
            self.store.save_activation(fresh.zeroed(now))
            return ActivationStatus(
                active=False,
                expired=True,
                mode=ActivationMode.ONLINE,
                kind=fresh.kind,
                key=fresh.key,
                remaining_days=0 if fresh.kind is ActivationKind.SUBSCRIPTION else None,
                remaining_hours=0.0 if fresh.kind is ActivationKind.MACHINE_BOUND else None,
                expires_at=fresh.expires_at,
            )

        self.store.save_activation(fresh)
        await self._touch_last_used(fresh)

        return ActivationStatus(
            active=True,
            expired=False,
            mode=ActivationMode.ONLINE,
            kind=fresh.kind,
            key=fresh.key,
            remaining_days=fresh.remaining_days,
            remaining_hours=fresh.remaining_hours,
            expires_at=fresh.expires_at,
        )

    async def validate_and_adopt(self, raw_key: str) -> ValidationResult:
        """
        Validate a user-entered key and, if active, make it the active grant.

        The key is normalized first. Nothing is persisted unless the key
        exists and is active; adoption replaces any previous key. An active
        key whose time already ran out is still adopted, with a zero
        countdown, so the next status query reports it expired.

        Returns:
            ValidationResult; error is "not-found", "inactive" or the
            remote failure message when valid is False.

        Raises:
            StoreUnavailableError: If the local store fails.
        """
        key = normalize_activation_key(raw_key)
        if not key:
            return ValidationResult.failure(ERROR_NOT_FOUND)

        try:
            remote = await self.gateway.fetch_key_record(key)
        except RemoteError as e:
            logger.warning(f"Activation key validation failed: {e.message}")
            return ValidationResult.failure(e.message)

        if remote is None:
            logger.info(f"Activation key {key} not found")
            return ValidationResult.failure(ERROR_NOT_FOUND)

        if not remote.is_active:
            logger.info(f"Activation key {key} is not active (status: {remote.status})")
            return ValidationResult.failure(ERROR_INACTIVE)

        now = self.clock()
        record, expired = record_from_remote(remote, now, previous=self.store.get_activation())

        if expired:
            logger.warning(f"Activation key {key} adopted with no time left")
            record = record.zeroed(now)

        self.store.save_activation(record)
        await self._touch_last_used(record)
        logger.info(f"Activation key {key} adopted ({record.kind.value})")

        return ValidationResult(
            valid=True,
            kind=record.kind,
            remaining_days=record.remaining_days,
            remaining_hours=record.remaining_hours,
        )

    def remove_activation(self) -> None:
        """Forget the local activation snapshot. Idempotent."""
        self.store.delete_activation()
        logger.info("Local activation removed")

    async def _touch_last_used(self, record: ActivationRecord) -> None:
        if record.remote_id is None:
            return
        try:
            await self.gateway.touch_last_used(record.remote_id)
        except RemoteError as e:
            logger.debug(f"Ignoring last-used update failure: {e.message}")
