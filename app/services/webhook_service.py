import json
from typing import Dict, Optional
from app.models.applicant import ScreeningStatus
from app.models.audit_log import AuditAction
from app.services.audit_service import AuditService
from app.services.screening_service import ScreeningService
from app.services.screening_store import Pipeline, ScreeningStore
from app.utils.errors import SignatureInvalidError, ValidationError
from app.utils.logger import get_logger

logger = get_logger(__name__)


class WebhookService:
    """Ingests provider webhooks.

    Deliveries are at-least-once and unordered relative to the synchronous
    initiate calls. Outcomes are applied through ScreeningStore.terminal_update,
    which only reports a transition to the first delivery, and every side
    effect hangs off that report so redeliveries change nothing.
    """

    def __init__(self):
        self.store = ScreeningStore()
        self.audit = AuditService()
        self.screening = ScreeningService()
        self.checkr_handlers = {
            'report.completed': self._handle_report_completed,
            'invitation.completed': self._handle_invitation_completed,
            'continuous_check.updated': self._handle_continuous_check_updated,
        }

    @property
    def checkr(self):
        return self.screening.checkr

    @property
    def idenfy(self):
        return self.screening.idenfy

    def _verify(self, provider: str, verifier, signature: str, raw_body: bytes):
        """Fail closed: a verifier that raises counts as a bad signature"""
        try:
            valid = verifier(signature, raw_body)
        except Exception as e:
            logger.error(f"Error verifying {provider} webhook signature: {str(e)}")
            valid = False

        if not valid:
            logger.warning(f"Rejected {provider} webhook with invalid signature")
            raise SignatureInvalidError("Invalid signature")

    def _parse(self, raw_body: bytes) -> Dict:
        try:
            payload = json.loads(raw_body)
        except (TypeError, ValueError) as e:
            raise ValidationError("Invalid JSON payload", details={'message': str(e)})

        if not isinstance(payload, dict):
            raise ValidationError("Webhook payload must be a JSON object")
        return payload

    def _already_recorded(self, applicant_id: str, action: AuditAction, key: str, value) -> bool:
        if value is None:
            return False
        return any(
            (entry.details or {}).get(key) == value
            for entry in self.audit.get_entries(applicant_id, action)
        )

    # Checkr

    def ingest_checkr(self, signature: str, raw_body: bytes) -> Dict:
        """Verify, parse and route a Checkr webhook delivery"""
        self._verify('Checkr', self.checkr.verify_webhook_signature, signature, raw_body)
        event = self._parse(raw_body)

        event_type = event.get('type')
        data = event.get('data')
        obj = data.get('object') if isinstance(data, dict) else None
        if not isinstance(event_type, str) or not event_type or not isinstance(obj, dict):
            raise ValidationError("Missing event type or data.object")

        logger.info(f"Processing Checkr event: {event_type}")

        handler = self.checkr_handlers.get(event_type)
        if not handler:
            logger.info(f"Ignoring unhandled Checkr event type: {event_type}")
            return {'received': True, 'processed': False}

        return {'received': True, 'processed': handler(event, obj)}

    def _find_checkr_applicant(self, obj: Dict, event_type: str):
        candidate_id = obj.get('candidate_id')
        applicant = self.store.find_by_candidate_id(candidate_id) if candidate_id else None
        if not applicant and obj.get('report_id'):
            applicant = self.store.find_by_report_id(obj['report_id'])

        if not applicant:
            logger.warning(f"Checkr {event_type} for unknown candidate {candidate_id}, acknowledging")
            return None
        if applicant.deleted_at:
            logger.info(f"Ignoring Checkr {event_type} for soft-deleted applicant {applicant.id}")
            return None
        return applicant

    def _handle_report_completed(self, event: Dict, report: Dict) -> bool:
        report_id = report.get('id')
        if not report_id:
            raise ValidationError("Missing report id")

        applicant = self._find_checkr_applicant({**report, 'report_id': report_id}, 'report.completed')
        if not applicant:
            return False

        status = self.checkr.parse_report_status(report)
        if status is None:
            # Payload without an outcome; the provider's stored report is authoritative
            report = {**report, **self.checkr.get_report(report_id)}
            status = self.checkr.parse_report_status(report)
        if status is None:
            logger.info(f"Checkr report {report_id} is not final yet")
            return False

        action = AuditAction.CHECKR_PASSED if status == ScreeningStatus.PASSED else AuditAction.CHECKR_FAILED

        # A report outcome is applied once, even after an admin retry reopened the pipeline
        if applicant.checkr_status == status or self._already_recorded(applicant.id, action, 'reportId', report_id):
            logger.info(f"Duplicate Checkr report.completed {report_id} for applicant {applicant.id}, no-op")
            return True

        applied = self.store.terminal_update(
            applicant.id, Pipeline.BACKGROUND_CHECK, status, checkr_report_id=report_id
        )
        if not applied:
            logger.info(f"Checkr report {report_id} already applied for applicant {applicant.id}")
            return True

        self.audit.log(applicant.id, action, {
            'reportId': report_id,
            'candidateId': report.get('candidate_id'),
            'result': report.get('result'),
            'adjudication': report.get('adjudication'),
            'eventId': event.get('id')
        })

        try:
            self.screening.on_background_check_complete(applicant.id, status, report.get('result'))
        except Exception as e:
            logger.error(f"Error continuing screening after Checkr report for applicant {applicant.id}: {str(e)}")

        return True

    def _handle_invitation_completed(self, event: Dict, invitation: Dict) -> bool:
        applicant = self._find_checkr_applicant(invitation, 'invitation.completed')
        if not applicant:
            return False

        report_id = invitation.get('report_id')
        if report_id:
            self.store.record_correlation(applicant.id, checkr_report_id=report_id)

        invitation_id = invitation.get('id')
        if self._already_recorded(applicant.id, AuditAction.CHECKR_INVITATION_COMPLETED, 'invitationId', invitation_id):
            logger.info(f"Duplicate Checkr invitation.completed {invitation_id}, no-op")
            return True

        self.audit.log(applicant.id, AuditAction.CHECKR_INVITATION_COMPLETED, {
            'invitationId': invitation_id,
            'reportId': report_id,
            'eventId': event.get('id')
        })
        logger.info(f"Checkr invitation {invitation_id} completed for applicant {applicant.id}")
        return True

    def _handle_continuous_check_updated(self, event: Dict, check: Dict) -> bool:
        applicant = self._find_checkr_applicant(check, 'continuous_check.updated')
        if not applicant:
            return False

        event_id = event.get('id') or f"{check.get('id')}:{check.get('updated_at')}"
        if self._already_recorded(applicant.id, AuditAction.CONTINUOUS_MONITORING_UPDATED, 'eventId', event_id):
            logger.info(f"Duplicate continuous monitoring event {event_id}, no-op")
            return True

        result = check.get('result')
        self.audit.log(applicant.id, AuditAction.CONTINUOUS_MONITORING_UPDATED, {
            'eventId': event_id,
            'monitorId': check.get('id'),
            'status': check.get('status'),
            'result': result
        })

        if result not in (None, 'clear'):
            self.screening.notifications.send_admin_review(
                applicant.id, f"Continuous monitoring reported: {result}"
            )
        return True

    # iDenfy

    def ingest_idenfy(self, signature: str, raw_body: bytes) -> Dict:
        """Verify, parse and apply an iDenfy verification result"""
        self._verify('iDenfy', self.idenfy.verify_webhook_signature, signature, raw_body)
        payload = self._parse(raw_body)

        applicant_id = payload.get('clientId')
        overall = self._overall_status(payload.get('status'))
        if not applicant_id or not overall:
            raise ValidationError("Missing clientId or status")

        applicant = self.store.get_applicant(str(applicant_id))
        if not applicant:
            logger.warning(f"iDenfy result for unknown applicant {applicant_id}, acknowledging")
            return {'received': True, 'processed': False}

        status = self.idenfy.map_status(overall)
        if payload.get('final') is False or status is None:
            logger.info(f"iDenfy status {overall} for applicant {applicant.id} is not final")
            return {'received': True, 'processed': False}

        scan_ref = payload.get('scanRef')
        if applicant.idenfy_status == status:
            logger.info(f"Duplicate iDenfy result for applicant {applicant.id}, no-op")
            return {'received': True, 'processed': True}

        correlation = {'idenfy_verification_id': scan_ref} if scan_ref else {}
        applied = self.store.terminal_update(applicant.id, Pipeline.IDENTITY, status, **correlation)
        if not applied:
            return {'received': True, 'processed': True}

        action = AuditAction.IDENFY_PASSED if status == ScreeningStatus.PASSED else AuditAction.IDENFY_FAILED
        self.audit.log(applicant.id, action, {'scanRef': scan_ref, 'overall': overall})

        try:
            self.screening.on_identity_complete(applicant.id, status)
        except Exception as e:
            logger.error(f"Error continuing screening after iDenfy result for applicant {applicant.id}: {str(e)}")

        return {'received': True, 'processed': True}

    @staticmethod
    def _overall_status(status) -> Optional[str]:
        if isinstance(status, dict):
            status = status.get('overall')
        return status if isinstance(status, str) and status else None
