from sqlalchemy import Column, String, ForeignKey, DateTime, Enum, Text
from sqlalchemy.orm import relationship
import enum
from .base import BaseModel


class ApplicationStatus(enum.Enum):
    DRAFT = "DRAFT"
    PAYMENT_PENDING = "PAYMENT_PENDING"
    SUBMITTED = "SUBMITTED"
    SCREENING_IN_PROGRESS = "SCREENING_IN_PROGRESS"
    APPROVED = "APPROVED"
    WAITLIST = "WAITLIST"
    REJECTED = "REJECTED"


class ScreeningStatus(enum.Enum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    PASSED = "PASSED"
    FAILED = "FAILED"


class Applicant(BaseModel):
    __tablename__ = 'applicants'

    user_id = Column(String(36), ForeignKey('users.id'), nullable=False, index=True)
    application_status = Column(Enum(ApplicationStatus), nullable=False, default=ApplicationStatus.DRAFT)
    deleted_at = Column(DateTime)

    # FCRA consent, written once by the consent ledger
    background_check_consent_at = Column(DateTime)
    background_check_consent_ip = Column(String(64))

    # Sub-pipelines. Written only through ScreeningStore.
    idenfy_status = Column(Enum(ScreeningStatus), nullable=False, default=ScreeningStatus.PENDING)
    checkr_status = Column(Enum(ScreeningStatus), nullable=False, default=ScreeningStatus.PENDING)
    screening_status = Column(Enum(ScreeningStatus), nullable=False, default=ScreeningStatus.PENDING)

    # Provider correlation ids
    idenfy_verification_id = Column(String(255))
    checkr_candidate_id = Column(String(255), unique=True, index=True)
    checkr_report_id = Column(String(255), index=True)
    continuous_monitoring_id = Column(String(255), unique=True)

    background_check_notes = Column(Text)

    # Relationships
    user = relationship("User", back_populates="applicants")
    audit_logs = relationship("ScreeningAuditLog", back_populates="applicant", lazy='dynamic')
