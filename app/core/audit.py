from datetime import datetime
from typing import Any, Dict, Optional
from loguru import logger
from sqlmodel import Session
from app.db.schema import AuditLog, AuditAction

from app.db.core import engine


def _perform_audit_log(
    actor_address: Optional[str],
    entity_type: str,
    entity_id: Any,
    action: AuditAction,
    changes: Dict[str, Any],
):
    """
    Background worker.
    Creates its OWN session using the global engine, so a failing audit
    write never touches the request's transaction.
    """
    try:
        with Session(engine) as session:
            log_entry = AuditLog(
                actor_address=actor_address,
                entity_type=entity_type,
                entity_id=str(entity_id),
                action=action,
                changes=changes,
                timestamp=datetime.utcnow()
            )
            session.add(log_entry)
            session.commit()

    except Exception as e:
        logger.error(f"AUDIT LOG FAILED: {e}")
