import json
import logging
from typing import Any

from sqlalchemy.orm import Session

from marketplace.models.audit_log import AuditLog

logger = logging.getLogger(__name__)


class AuditService:
    def __init__(self, db: Session):
        self.db = db

    def record(
        self,
        actor_id: str,
        action: str,
        entity_type: str,
        entity_id: str,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        """Append an audit row. Failures are logged, never raised."""
        row = AuditLog(
            actor_user_id=actor_id,
            action=action,
            entity_type=entity_type,
            entity_id=str(entity_id),
            metadata_json=json.dumps(metadata) if metadata else None,
        )
        try:
            self.db.add(row)
            self.db.commit()
        except Exception:
            self.db.rollback()
            logger.exception('Failed to record audit event %s for %s %s', action, entity_type, entity_id)
