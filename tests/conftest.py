import os
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest
from sqlalchemy.orm import sessionmaker

os.environ.setdefault('DATABASE_URL', 'sqlite:///./test.db')

from marketplace.database import Base, create_database_engine  # noqa: E402
from marketplace.models.audit_log import AuditLog  # noqa: E402,F401
from marketplace.models.availability_slot import AvailabilitySlot  # noqa: E402
from marketplace.models.booking import Booking  # noqa: E402,F401
from marketplace.models.notification import Notification  # noqa: E402,F401
from marketplace.models.provider_profile import ProviderProfile  # noqa: E402
from marketplace.models.service import Service  # noqa: E402
from marketplace.models.user import Role, User  # noqa: E402

# Fixed "now" for booking tests; slots are placed relative to it.
NOW = datetime(2026, 3, 2, 8, 0, tzinfo=timezone.utc)
SLOT_START = datetime(2026, 3, 2, 14, 0, tzinfo=timezone.utc)


class RecordingNotifications:
    def __init__(self):
        self.calls = []

    def notify(self, user_id, notification_type, title, body):
        self.calls.append(SimpleNamespace(user_id=user_id, type=notification_type, title=title, body=body))


class RecordingAudit:
    def __init__(self):
        self.calls = []

    def record(self, actor_id, action, entity_type, entity_id, metadata=None):
        self.calls.append(
            SimpleNamespace(
                actor_id=actor_id,
                action=action,
                entity_type=entity_type,
                entity_id=entity_id,
                metadata=metadata,
            )
        )


@pytest.fixture
def db_engine():
    engine = create_database_engine('sqlite:///:memory:')
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def db(db_engine):
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = testing_session_local()
    try:
        yield session
    finally:
        session.close()


def add_user(db, email: str, role: Role) -> User:
    user = User(email=email, first_name=email.split('@')[0], last_name='Test', role=role.value)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def add_provider(db, email: str = 'plumber@example.com') -> tuple[User, ProviderProfile]:
    user = add_user(db, email, Role.PROVIDER)
    profile = ProviderProfile(user_id=user.id, name=f'{user.first_name} Services', description='', city='Berlin')
    db.add(profile)
    db.commit()
    db.refresh(profile)
    return user, profile


def add_service(db, profile: ProviderProfile, duration_minutes: int = 60, title: str = 'Pipe repair') -> Service:
    service = Service(
        provider_id=profile.id,
        title=title,
        description='',
        duration_minutes=duration_minutes,
        price_cents=5000,
    )
    db.add(service)
    db.commit()
    db.refresh(service)
    return service


def add_slot(
    db,
    profile: ProviderProfile,
    start_at: datetime = SLOT_START,
    minutes: int = 60,
    service: Service | None = None,
    is_booked: bool = False,
) -> AvailabilitySlot:
    slot = AvailabilitySlot(
        provider_id=profile.id,
        service_id=service.id if service else None,
        start_at=start_at,
        end_at=start_at + timedelta(minutes=minutes),
        timezone='UTC',
        is_booked=is_booked,
    )
    db.add(slot)
    db.commit()
    db.refresh(slot)
    return slot


@pytest.fixture
def marketplace(db):
    provider_user, profile = add_provider(db)
    service = add_service(db, profile)
    slot = add_slot(db, profile, service=service)
    client = add_user(db, 'client@example.com', Role.CLIENT)
    return SimpleNamespace(
        provider_user=provider_user,
        profile=profile,
        service=service,
        slot=slot,
        client=client,
    )
