from typing import List, Optional
from app.database import get_db
from app.models import ScreeningAuditLog
from app.models.audit_log import AuditAction
from app.utils.logger import get_logger

logger = get_logger(__name__)


class AuditService:
    """Append-only writer and reader for the screening compliance trail"""

    def add(self, db, applicant_id: str, action: AuditAction, metadata: dict = None,
            user_id: str = None) -> ScreeningAuditLog:
        """Add an entry to a caller-owned session.

        The entry commits or rolls back together with whatever else the
        caller writes in that session.
        """
        entry = ScreeningAuditLog(
            user_id=user_id,
            applicant_id=applicant_id,
            action=action,
            details=dict(metadata or {})
        )
        db.add(entry)
        db.flush()
        return entry

    def record(self, applicant_id: str, action: AuditAction, metadata: dict = None,
               user_id: str = None) -> ScreeningAuditLog:
        """Write an entry in its own transaction; failures propagate"""
        with get_db() as db:
            return self.add(db, applicant_id, action, metadata, user_id)

    def log(self, applicant_id: str, action: AuditAction, metadata: dict = None,
            user_id: str = None) -> Optional[ScreeningAuditLog]:
        """Best-effort write for routine actions; failures are logged, never raised"""
        try:
            return self.record(applicant_id, action, metadata, user_id)
        except Exception as e:
            logger.warning(
                f"Failed to create screening audit log {action.value} for applicant {applicant_id}: {str(e)}"
            )
            return None

    def get_entries(self, applicant_id: str, action: AuditAction = None) -> List[ScreeningAuditLog]:
        """Entries for an applicant, oldest first"""
        with get_db() as db:
            query = db.query(ScreeningAuditLog).filter(ScreeningAuditLog.applicant_id == applicant_id)
            if action:
                query = query.filter(ScreeningAuditLog.action == action)
            return query.order_by(ScreeningAuditLog.created_at.asc()).all()
