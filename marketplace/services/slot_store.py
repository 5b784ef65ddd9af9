"""
Slot Store: the only writer of ``AvailabilitySlot.is_booked``.

``claim`` and ``release`` do not commit; they run inside the caller's
transaction so a claim can be rolled back together with the booking insert.
The CRUD helpers are standalone workflows and commit on their own.
"""

import logging
from datetime import datetime, timedelta
from typing import NamedTuple, Sequence

from sqlalchemy import delete, exists, select, update
from sqlalchemy.orm import Session

from marketplace.core import config
from marketplace.core.exceptions import (
    ConflictException,
    InvalidTimeRange,
    NoSlotsGenerated,
    SlotAlreadyBooked,
    SlotLocked,
    SlotNotFound,
    ValidationException,
)
from marketplace.models.availability_slot import AvailabilitySlot
from marketplace.models.booking import Booking
from marketplace.models.common import as_utc

logger = logging.getLogger(__name__)


class SlotSpec(NamedTuple):
    start_at: datetime
    end_at: datetime
    timezone: str = "UTC"


def tile_window(window_start: datetime, window_end: datetime, slot_duration_minutes: int) -> list[tuple[datetime, datetime]]:
    """Contiguous slots from ``window_start``; a trailing remainder shorter than one slot is dropped."""
    if window_end <= window_start:
        raise InvalidTimeRange("Window end must be after window start")
    if slot_duration_minutes <= 0:
        raise ValidationException("Slot duration must be positive", code="INVALID_SLOT_DURATION")

    step = timedelta(minutes=slot_duration_minutes)
    start = as_utc(window_start)
    end = as_utc(window_end)

    tiles: list[tuple[datetime, datetime]] = []
    current = start
    while current + step <= end:
        tiles.append((current, current + step))
        current += step

    if not tiles:
        raise NoSlotsGenerated(slot_duration_minutes)
    return tiles


class SlotStore:
    def __init__(self, db: Session):
        self.db = db

    # --- exclusivity -------------------------------------------------------

    def claim(self, slot_id: str) -> AvailabilitySlot:
        """Flip ``is_booked`` false -> true in one conditional UPDATE."""
        result = self.db.execute(
            update(AvailabilitySlot)
            .where(AvailabilitySlot.id == slot_id, AvailabilitySlot.is_booked.is_(False))
            .values(is_booked=True)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            logger.warning('Slot %s claim rejected: already booked', slot_id)
            raise SlotAlreadyBooked(slot_id)

        return self.db.get(AvailabilitySlot, slot_id, populate_existing=True)

    def release(self, slot_id: str) -> None:
        self.db.execute(
            update(AvailabilitySlot)
            .where(AvailabilitySlot.id == slot_id)
            .values(is_booked=False)
            .execution_options(synchronize_session=False)
        )
        slot = self.db.get(AvailabilitySlot, slot_id)
        if slot is not None:
            self.db.refresh(slot)

    # --- reads -------------------------------------------------------------

    def get(self, slot_id: str) -> AvailabilitySlot | None:
        return self.db.get(AvailabilitySlot, slot_id)

    def get_owned(self, provider_id: str, slot_id: str) -> AvailabilitySlot:
        slot = self.db.execute(
            select(AvailabilitySlot).where(
                AvailabilitySlot.id == slot_id,
                AvailabilitySlot.provider_id == provider_id,
            )
        ).scalar_one_or_none()
        if slot is None:
            raise SlotNotFound(slot_id)
        return slot

    def list_for_provider(self, provider_id: str) -> list[AvailabilitySlot]:
        return list(
            self.db.execute(
                select(AvailabilitySlot)
                .where(AvailabilitySlot.provider_id == provider_id)
                .order_by(AvailabilitySlot.start_at.asc())
            ).scalars()
        )

    def list_for_service(self, provider_id: str, service_id: str) -> list[AvailabilitySlot]:
        return list(
            self.db.execute(
                select(AvailabilitySlot)
                .where(
                    AvailabilitySlot.provider_id == provider_id,
                    AvailabilitySlot.service_id == service_id,
                )
                .order_by(AvailabilitySlot.start_at.asc())
            ).scalars()
        )

    def list_open(self, provider_id: str, now: datetime, limit: int = config.PROVIDER_NEXT_SLOTS_LIMIT) -> list[AvailabilitySlot]:
        return list(
            self.db.execute(
                select(AvailabilitySlot)
                .where(
                    AvailabilitySlot.provider_id == provider_id,
                    AvailabilitySlot.is_booked.is_(False),
                    AvailabilitySlot.start_at >= as_utc(now),
                )
                .order_by(AvailabilitySlot.start_at.asc())
                .limit(limit)
            ).scalars()
        )

    # --- provider CRUD -----------------------------------------------------

    def create_single(
        self,
        provider_id: str,
        start_at: datetime,
        end_at: datetime,
        timezone: str = "UTC",
        service_id: str | None = None,
    ) -> AvailabilitySlot:
        if end_at <= start_at:
            raise InvalidTimeRange()

        slot = AvailabilitySlot(
            provider_id=provider_id,
            service_id=service_id,
            start_at=as_utc(start_at),
            end_at=as_utc(end_at),
            timezone=timezone,
            is_booked=False,
        )
        self.db.add(slot)
        self._commit()
        self.db.refresh(slot)
        return slot

    def create_many(self, provider_id: str, slots: Sequence[SlotSpec]) -> list[AvailabilitySlot]:
        if not slots:
            raise ValidationException("At least one slot is required", code="NO_SLOTS_SUBMITTED")
        if len(slots) > config.MAX_SLOTS_PER_REQUEST:
            raise ValidationException(
                f"At most {config.MAX_SLOTS_PER_REQUEST} slots can be created at once",
                code="TOO_MANY_SLOTS",
            )
        for spec in slots:
            if spec.end_at <= spec.start_at:
                raise InvalidTimeRange()

        rows = [
            AvailabilitySlot(
                provider_id=provider_id,
                start_at=as_utc(spec.start_at),
                end_at=as_utc(spec.end_at),
                timezone=spec.timezone,
                is_booked=False,
            )
            for spec in slots
        ]
        self.db.add_all(rows)
        self._commit()
        for row in rows:
            self.db.refresh(row)
        return rows

    def update(
        self,
        provider_id: str,
        slot_id: str,
        start_at: datetime | None = None,
        end_at: datetime | None = None,
    ) -> AvailabilitySlot:
        slot = self.get_owned(provider_id, slot_id)
        new_start = as_utc(start_at) if start_at is not None else as_utc(slot.start_at)
        new_end = as_utc(end_at) if end_at is not None else as_utc(slot.end_at)
        if new_end <= new_start:
            raise InvalidTimeRange()

        # Guarded on is_booked in the same statement so a concurrent claim cannot slip in.
        result = self.db.execute(
            update(AvailabilitySlot)
            .where(
                AvailabilitySlot.id == slot_id,
                AvailabilitySlot.provider_id == provider_id,
                AvailabilitySlot.is_booked.is_(False),
            )
            .values(start_at=new_start, end_at=new_end)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            self.db.rollback()
            raise SlotLocked(slot_id)

        self._commit()
        self.db.refresh(slot)
        return slot

    def delete(self, provider_id: str, slot_id: str) -> None:
        slot = self.get_owned(provider_id, slot_id)

        result = self.db.execute(
            delete(AvailabilitySlot)
            .where(
                AvailabilitySlot.id == slot_id,
                AvailabilitySlot.provider_id == provider_id,
                AvailabilitySlot.is_booked.is_(False),
                ~exists().where(Booking.slot_id == AvailabilitySlot.id),
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            self.db.refresh(slot)
            is_booked = slot.is_booked
            self.db.rollback()
            if is_booked:
                raise SlotLocked(slot_id)
            raise ConflictException(
                "Slot has booking history and cannot be deleted",
                code="SLOT_HAS_BOOKINGS",
                details={"slot_id": slot_id},
            )

        self._commit()
        logger.info('Deleted slot %s for provider %s', slot_id, provider_id)

    def generate(
        self,
        provider_id: str,
        service_id: str | None,
        window_start: datetime,
        window_end: datetime,
        slot_duration_minutes: int,
        timezone: str = "UTC",
    ) -> list[AvailabilitySlot]:
        """
        Replace the day's unbooked slots for ``provider_id``/``service_id`` with
        a fresh grid over ``[window_start, window_end)``.

        The day is the calendar day of ``window_start`` in its own timezone.
        Booked slots, and slots a past booking still references, survive
        regeneration; tiles overlapping any surviving slot are skipped. If that
        leaves nothing to create, the deletion is rolled back as well.
        """
        tiles = tile_window(window_start, window_end, slot_duration_minutes)

        local_midnight = window_start.replace(hour=0, minute=0, second=0, microsecond=0)
        day_start = as_utc(local_midnight)
        day_end = as_utc(local_midnight + timedelta(days=1))

        if service_id is None:
            same_service = AvailabilitySlot.service_id.is_(None)
        else:
            same_service = AvailabilitySlot.service_id == service_id

        try:
            self.db.execute(
                delete(AvailabilitySlot)
                .where(
                    AvailabilitySlot.provider_id == provider_id,
                    same_service,
                    AvailabilitySlot.is_booked.is_(False),
                    AvailabilitySlot.start_at >= day_start,
                    AvailabilitySlot.start_at < day_end,
                    ~exists().where(Booking.slot_id == AvailabilitySlot.id),
                )
                .execution_options(synchronize_session=False)
            )

            surviving = self.db.execute(
                select(AvailabilitySlot.start_at, AvailabilitySlot.end_at).where(
                    AvailabilitySlot.provider_id == provider_id,
                    AvailabilitySlot.start_at < tiles[-1][1],
                    AvailabilitySlot.end_at > tiles[0][0],
                )
            ).all()
            taken = [(as_utc(start), as_utc(end)) for start, end in surviving]

            rows = [
                AvailabilitySlot(
                    provider_id=provider_id,
                    service_id=service_id,
                    start_at=tile_start,
                    end_at=tile_end,
                    timezone=timezone,
                    is_booked=False,
                )
                for tile_start, tile_end in tiles
                if not any(tile_start < b_end and tile_end > b_start for b_start, b_end in taken)
            ]
            if not rows:
                raise NoSlotsGenerated(slot_duration_minutes)
            self.db.add_all(rows)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        for row in rows:
            self.db.refresh(row)

        logger.info(
            'Generated %d slots for provider %s service %s between %s and %s',
            len(rows), provider_id, service_id, tiles[0][0].isoformat(), tiles[-1][1].isoformat(),
        )
        return rows

    def _commit(self) -> None:
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
