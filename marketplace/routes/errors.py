from contextlib import contextmanager

from fastapi import HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from marketplace.core.exceptions import DomainException


@contextmanager
def service_errors(db: Session):
    """Map domain errors to their HTTP status and store failures to 503."""
    try:
        yield
    except DomainException as exc:
        raise exc.to_http_exception() from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail='Database unavailable. Verify DATABASE_URL and database credentials.',
        ) from exc
