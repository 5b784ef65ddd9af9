import threading

import pytest
from sqlalchemy.orm import sessionmaker

from conftest import NOW, RecordingAudit, RecordingNotifications, add_provider, add_service, add_slot, add_user
from marketplace.core.exceptions import InvalidBookingStatus, SlotAlreadyBooked
from marketplace.database import Base, create_database_engine
from marketplace.models.availability_slot import AvailabilitySlot
from marketplace.models.booking import Booking, BookingStatus
from marketplace.models.user import Role
from marketplace.services.booking_service import BookingService

CLIENT_COUNT = 8


@pytest.fixture
def file_session_factory(tmp_path):
    engine = create_database_engine(f'sqlite:///{tmp_path / "concurrency.db"}')
    Base.metadata.create_all(bind=engine)
    try:
        yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    finally:
        engine.dispose()


def test_concurrent_bookings_on_one_slot_admit_exactly_one(file_session_factory) -> None:
    setup = file_session_factory()
    _, profile = add_provider(setup)
    service = add_service(setup, profile)
    slot = add_slot(setup, profile, service=service)
    client_ids = [add_user(setup, f'client{index}@example.com', Role.CLIENT).id for index in range(CLIENT_COUNT)]
    service_id, slot_id = service.id, slot.id
    setup.close()

    barrier = threading.Barrier(CLIENT_COUNT)
    outcomes: list[str] = []
    outcomes_lock = threading.Lock()

    def attempt(client_id: str) -> None:
        session = file_session_factory()
        booking_service = BookingService(session, notifications=RecordingNotifications(), audit=RecordingAudit())
        try:
            barrier.wait()
            booking_service.create_booking(client_id, service_id, slot_id)
            outcome = 'booked'
        except SlotAlreadyBooked:
            outcome = 'taken'
        finally:
            session.close()
        with outcomes_lock:
            outcomes.append(outcome)

    threads = [threading.Thread(target=attempt, args=(client_id,)) for client_id in client_ids]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=60)

    assert sorted(outcomes) == ['booked'] + ['taken'] * (CLIENT_COUNT - 1)

    check = file_session_factory()
    try:
        assert check.query(Booking).filter(Booking.slot_id == slot_id).count() == 1
        assert check.get(AvailabilitySlot, slot_id).is_booked is True
    finally:
        check.close()


def test_stale_cancel_cannot_release_a_reclaimed_slot(file_session_factory) -> None:
    setup = file_session_factory()
    provider_user, profile = add_provider(setup)
    service = add_service(setup, profile)
    slot = add_slot(setup, profile, service=service)
    first_client = add_user(setup, 'first@example.com', Role.CLIENT)
    second_client = add_user(setup, 'second@example.com', Role.CLIENT)
    ids = (provider_user.id, service.id, slot.id, first_client.id, second_client.id)
    setup.close()
    provider_user_id, service_id, slot_id, first_client_id, second_client_id = ids

    def booking_service(session):
        return BookingService(session, notifications=RecordingNotifications(), audit=RecordingAudit(), clock=lambda: NOW)

    # The client's session reads the booking while it is still PENDING and keeps that copy.
    client_session = file_session_factory(expire_on_commit=False)
    first_booking = booking_service(client_session).create_booking(first_client_id, service_id, slot_id)
    assert first_booking.status == BookingStatus.PENDING.value
    client_session.commit()

    other = file_session_factory()
    try:
        booking_service(other).reject_booking(first_booking.id, provider_user_id)
        second_booking = booking_service(other).create_booking(second_client_id, service_id, slot_id)
    finally:
        other.close()

    try:
        with pytest.raises(InvalidBookingStatus):
            booking_service(client_session).cancel_booking(first_booking.id, first_client_id)
    finally:
        client_session.close()

    check = file_session_factory()
    try:
        assert check.get(AvailabilitySlot, slot_id).is_booked is True
        statuses = {booking.id: booking.status for booking in check.query(Booking).filter(Booking.slot_id == slot_id)}
        assert statuses == {
            first_booking.id: BookingStatus.REJECTED.value,
            second_booking.id: BookingStatus.PENDING.value,
        }
    finally:
        check.close()
