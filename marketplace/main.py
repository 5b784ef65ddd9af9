import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from marketplace.core import config
from marketplace.database import Base, engine, ensure_booking_indexes
from marketplace.models import audit_log, availability_slot, booking, notification, provider_profile, service, user  # noqa: F401
from marketplace.routes import auth_routes, client_routes, provider_routes

logging.basicConfig(
    level=config.LOG_LEVEL,
    format='%(asctime)s %(levelname)s %(name)s: %(message)s',
)
logger = logging.getLogger(__name__)

config.validate_runtime_config()

app = FastAPI(title='Local Services Marketplace API')

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)


@app.on_event('startup')
def initialize_database() -> None:
    try:
        Base.metadata.create_all(bind=engine)
        ensure_booking_indexes()
    except SQLAlchemyError:
        logger.exception('Database initialization failed. Check DATABASE_URL and database credentials.')


@app.get('/')
def root():
    return {'status': 'Marketplace API Running'}


app.include_router(auth_routes.router, prefix='/auth')
app.include_router(client_routes.router, prefix='/client')
app.include_router(provider_routes.router, prefix='/provider')
