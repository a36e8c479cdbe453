from datetime import datetime
from sqlalchemy import Column, String, ForeignKey, DateTime, Enum, JSON, Index
from sqlalchemy.orm import relationship
import enum
from .base import Base, generate_uuid


class AuditAction(enum.Enum):
    FCRA_CONSENT_GIVEN = "FCRA_CONSENT_GIVEN"
    IDENFY_SESSION_CREATED = "IDENFY_SESSION_CREATED"
    IDENFY_PASSED = "IDENFY_PASSED"
    IDENFY_FAILED = "IDENFY_FAILED"
    CHECKR_INVITATION_SENT = "CHECKR_INVITATION_SENT"
    CHECKR_AUTO_TRIGGERED = "CHECKR_AUTO_TRIGGERED"
    CHECKR_INVITATION_COMPLETED = "CHECKR_INVITATION_COMPLETED"
    CHECKR_PASSED = "CHECKR_PASSED"
    CHECKR_FAILED = "CHECKR_FAILED"
    CONTINUOUS_MONITORING_ENROLLED = "CONTINUOUS_MONITORING_ENROLLED"
    CONTINUOUS_MONITORING_UPDATED = "CONTINUOUS_MONITORING_UPDATED"
    VIEW_REPORT = "VIEW_REPORT"


class ScreeningAuditLog(Base):
    """Append-only compliance trail. Rows are never updated."""
    __tablename__ = 'screening_audit_logs'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    # Null means the entry was written by the system, not a person
    user_id = Column(String(36), ForeignKey('users.id', ondelete='SET NULL'), index=True)
    applicant_id = Column(String(36), ForeignKey('applicants.id'), nullable=False, index=True)
    action = Column(Enum(AuditAction), nullable=False)
    details = Column('metadata', JSON, default=dict)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    applicant = relationship("Applicant", back_populates="audit_logs")

    __table_args__ = (
        Index('idx_screening_audit_applicant_action', 'applicant_id', 'action'),
    )
