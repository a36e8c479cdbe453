from datetime import datetime
from app.database import get_db
from app.models import Applicant
from app.models.audit_log import AuditAction
from app.services.audit_service import AuditService
from app.services.screening_store import ScreeningStore
from app.utils.errors import NotFoundError, ValidationError
from app.utils.logger import get_logger
from app.utils.validators import validate_full_name

logger = get_logger(__name__)


class ConsentService:
    """Records FCRA background check consent.

    The consent timestamp and the FCRA_CONSENT_GIVEN audit entry (which holds
    the signed full name) are written in one transaction. Once a timestamp
    exists every later request is answered with ``already_consented``, so a
    timestamp without its signature could never be repaired.
    """

    def __init__(self):
        self.store = ScreeningStore()
        self.audit = AuditService()

    def record_consent(self, applicant_id: str, full_name: str, ip: str, user_agent: str = None) -> dict:
        """Record consent for an applicant; idempotent once recorded"""
        valid, error = validate_full_name(full_name)
        if not valid:
            raise ValidationError(error)
        signed_name = full_name.strip()

        applicant = self.store.get_applicant(applicant_id)
        if not applicant:
            raise NotFoundError("Application not found")

        if applicant.background_check_consent_at:
            return self._already_consented(applicant.background_check_consent_at)

        consented_at = datetime.utcnow()
        ip = ip or 'unknown'

        with get_db() as db:
            recorded = db.query(Applicant).filter(
                Applicant.id == applicant_id,
                Applicant.background_check_consent_at.is_(None)
            ).update({
                Applicant.background_check_consent_at: consented_at,
                Applicant.background_check_consent_ip: ip
            }, synchronize_session=False)

            if recorded:
                self.audit.add(
                    db,
                    applicant_id,
                    AuditAction.FCRA_CONSENT_GIVEN,
                    metadata={
                        'fullName': signed_name,
                        'ip': ip,
                        'consentTimestamp': consented_at.isoformat(),
                        'userAgent': user_agent or 'unknown'
                    },
                    user_id=applicant.user_id
                )

        if not recorded:
            # A concurrent request recorded consent between our read and write
            current = self.store.get_applicant(applicant_id)
            return self._already_consented(current.background_check_consent_at)

        logger.info(f"FCRA background check consent recorded for applicant {applicant_id} from {ip}")

        return {
            'status': 'consent_recorded',
            'consented_at': consented_at.isoformat(),
            'message': 'Background check consent has been recorded successfully.'
        }

    def _already_consented(self, consented_at: datetime) -> dict:
        return {
            'status': 'already_consented',
            'consented_at': consented_at.isoformat() if consented_at else None,
            'message': 'Background check consent has already been recorded.'
        }
