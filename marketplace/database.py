from dotenv import load_dotenv
from threading import Lock

from sqlalchemy import create_engine, event, inspect, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker


load_dotenv()

from marketplace.core import config  # noqa: E402


def create_database_engine(database_url: str, echo: bool = False) -> Engine:
    if not database_url.startswith("sqlite"):
        return create_engine(database_url, echo=echo, pool_pre_ping=True)

    sqlite_engine = create_engine(
        database_url,
        echo=echo,
        connect_args={
            "check_same_thread": False,
            "timeout": config.SQLITE_BUSY_TIMEOUT_SECONDS,
        },
    )

    # pysqlite defers BEGIN until the first write, so two writers can each hold
    # a read lock and deadlock on upgrade. Take the write lock up front instead.
    @event.listens_for(sqlite_engine, "connect")
    def _disable_pysqlite_transactions(dbapi_connection, _connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(sqlite_engine, "begin")
    def _begin_immediate(connection):
        connection.exec_driver_sql("BEGIN IMMEDIATE")

    return sqlite_engine


engine = create_database_engine(config.DATABASE_URL, echo=config.DATABASE_ECHO)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

_schema_lock = Lock()
_booking_indexes_checked = False

BOOKING_INDEX_STATEMENTS = (
    'CREATE INDEX IF NOT EXISTS idx_slots_provider_start ON availability_slots(provider_id, start_at)',
    'CREATE INDEX IF NOT EXISTS idx_slots_booked_start ON availability_slots(is_booked, start_at)',
    'CREATE INDEX IF NOT EXISTS idx_bookings_slot_status ON bookings(slot_id, status)',
    'CREATE INDEX IF NOT EXISTS idx_bookings_client_created ON bookings(client_id, created_at)',
    'CREATE INDEX IF NOT EXISTS idx_bookings_provider_created ON bookings(provider_id, created_at)',
)


def ensure_booking_indexes(bind: Engine | None = None) -> None:
    global _booking_indexes_checked

    if _booking_indexes_checked and bind is None:
        return

    target = bind or engine

    with _schema_lock:
        if _booking_indexes_checked and bind is None:
            return

        table_names = set(inspect(target).get_table_names())
        if not {'availability_slots', 'bookings'} <= table_names:
            return

        with target.begin() as connection:
            for statement in BOOKING_INDEX_STATEMENTS:
                connection.execute(text(statement))

        if bind is None:
            _booking_indexes_checked = True


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
