"""Screening orchestration.

Drives an applicant through FCRA consent, iDenfy identity verification,
the Checkr background check and continuous monitoring. Synchronous entry
points claim a pipeline before calling a provider and restore the exact
pre-claim status if the provider call fails. Webhook-driven steps arrive
through WebhookService and continue the pipeline from here.
"""
from typing import Dict, Optional
from app.integrations import CheckrClient, IdenfyClient
from app.models.applicant import ApplicationStatus, ScreeningStatus
from app.models.audit_log import AuditAction
from app.services.audit_service import AuditService
from app.services.notification_service import NotificationService
from app.services.screening_store import Pipeline, ScreeningStore
from app.utils.errors import ConsentRequiredError, NotFoundError, PrerequisiteFailedError
from app.utils.logger import get_logger

logger = get_logger(__name__)


class ScreeningService:
    """Orchestrates the identity and background check pipelines"""

    def __init__(self):
        self.store = ScreeningStore()
        self.audit = AuditService()
        self.idenfy = IdenfyClient()
        self.checkr = CheckrClient()
        self.notifications = NotificationService()

    def _get_active_applicant(self, applicant_id: str):
        applicant = self.store.get_applicant(applicant_id)
        if not applicant:
            raise NotFoundError("Application not found")
        return applicant

    def _rollback(self, applicant_id: str, pipeline: Pipeline, previous_status: ScreeningStatus):
        """Return a claimed pipeline to the status it was claimed from.

        Only an IN_PROGRESS pipeline is restored; if a webhook resolved it in
        the meantime the provider's outcome stands.
        """
        try:
            result = self.store.claim(applicant_id, pipeline, [ScreeningStatus.IN_PROGRESS], previous_status)
            if result.claimed:
                logger.info(f"Rolled back {pipeline.name} to {previous_status.value} for applicant {applicant_id}")
            else:
                logger.warning(f"Skipped {pipeline.name} rollback for applicant {applicant_id}: no longer IN_PROGRESS")
        except Exception as e:
            logger.error(f"Failed to roll back {pipeline.name} for applicant {applicant_id}: {str(e)}")

    # Identity verification

    def initiate_identity_verification(self, applicant_id: str, force_new_session: bool = False) -> Dict:
        """Start (or restart) an iDenfy verification session.

        Returns one of ``already_passed``, ``already_in_progress`` (with the
        resumable verification id) or ``session_created``. Provider errors
        are re-raised after the pipeline is rolled back.
        """
        applicant = self._get_active_applicant(applicant_id)
        status = applicant.idenfy_status
        consented = applicant.background_check_consent_at is not None

        # Consent only gates leaving PENDING, so a passed pipeline answers first
        if status == ScreeningStatus.PASSED:
            return {
                'status': 'already_passed',
                'message': 'Identity verification has already been completed.'
            }

        if status == ScreeningStatus.PENDING and not consented:
            raise ConsentRequiredError(
                "Background check consent must be provided before identity verification"
            )

        if status == ScreeningStatus.IN_PROGRESS and not force_new_session:
            return self._identity_in_progress(applicant)

        # FAILED first so a retry keeps its history, then a first start
        claim_order = [ScreeningStatus.FAILED]
        if consented:
            claim_order.append(ScreeningStatus.PENDING)
        if force_new_session:
            claim_order.append(ScreeningStatus.IN_PROGRESS)

        claim = self.store.claim(applicant_id, Pipeline.IDENTITY, claim_order, ScreeningStatus.IN_PROGRESS)
        if not claim.claimed:
            logger.info(f"iDenfy session already initiated for applicant {applicant_id}, skipping")
            return self._identity_in_progress(self.store.get_applicant(applicant_id) or applicant)

        try:
            session = self.idenfy.create_session(
                applicant.id,
                applicant.user.first_name,
                applicant.user.last_name
            )
            self.store.record_correlation(applicant_id, idenfy_verification_id=session['scan_ref'])
        except Exception as e:
            logger.error(f"Failed to create iDenfy session for applicant {applicant_id}: {str(e)}")
            self._rollback(applicant_id, Pipeline.IDENTITY, claim.previous_status)
            raise

        self.audit.log(applicant_id, AuditAction.IDENFY_SESSION_CREATED, {
            'scanRef': session['scan_ref'],
            'claimedFrom': claim.previous_status.value,
            'forceNewSession': force_new_session
        })

        logger.info(f"iDenfy verification session {session['scan_ref']} created for applicant {applicant_id}")

        return {
            'status': 'session_created',
            'auth_token': session['auth_token'],
            'verification_url': session['url'],
            'scan_ref': session['scan_ref']
        }

    def _identity_in_progress(self, applicant) -> Dict:
        return {
            'status': 'already_in_progress',
            'verification_id': applicant.idenfy_verification_id,
            'message': 'Identity verification is already in progress. Please complete the existing session.'
        }

    # Background check

    def initiate_background_check(self, applicant_id: str, actor_user_id: str = None, auto: bool = False) -> Dict:
        """Invite the applicant to a Checkr background check.

        Requires a passed identity verification and recorded consent. An
        existing Checkr candidate is always reused.
        """
        applicant = self._get_active_applicant(applicant_id)

        if applicant.idenfy_status != ScreeningStatus.PASSED:
            raise PrerequisiteFailedError("Identity verification must be completed before background check")

        if not applicant.background_check_consent_at:
            raise ConsentRequiredError(
                "Background check consent must be provided before running a background check"
            )

        if applicant.checkr_status == ScreeningStatus.PASSED:
            return {
                'status': 'already_passed',
                'message': 'Background check has already been completed successfully.'
            }

        if applicant.checkr_status == ScreeningStatus.IN_PROGRESS:
            return self._background_check_in_progress(applicant)

        # Identity must still be PASSED when the claim lands, not only when it was read
        claim = self.store.claim(
            applicant_id,
            Pipeline.BACKGROUND_CHECK,
            [ScreeningStatus.FAILED, ScreeningStatus.PENDING],
            ScreeningStatus.IN_PROGRESS,
            requires={Pipeline.IDENTITY: ScreeningStatus.PASSED}
        )
        if not claim.claimed:
            fresh = self.store.get_applicant(applicant_id) or applicant
            if fresh.idenfy_status != ScreeningStatus.PASSED:
                logger.warning(f"Identity verification for applicant {applicant_id} changed to "
                               f"{fresh.idenfy_status.value} before Checkr could start")
                raise PrerequisiteFailedError("Identity verification must be completed before background check")
            logger.info(f"Checkr already initiated for applicant {applicant_id}, skipping")
            return self._background_check_in_progress(fresh)

        try:
            # Re-read after the claim; another path may have created the candidate
            candidate_id = self.store.get_candidate_id(applicant_id)
            if not candidate_id:
                candidate_id = self.checkr.create_candidate(
                    first_name=applicant.user.first_name,
                    last_name=applicant.user.last_name,
                    email=applicant.user.email
                )
                candidate_id = self.store.assign_candidate_id(applicant_id, candidate_id)

            invitation = self.checkr.create_invitation(candidate_id)
        except Exception as e:
            logger.error(f"Failed to initiate Checkr background check for applicant {applicant_id}: {str(e)}")
            self._rollback(applicant_id, Pipeline.BACKGROUND_CHECK, claim.previous_status)
            raise

        metadata = {
            'candidateId': candidate_id,
            'invitationId': invitation['id'],
            'claimedFrom': claim.previous_status.value
        }
        if invitation.get('package'):
            metadata['package'] = invitation['package']
        if auto:
            metadata['triggeredBy'] = 'idenfy_pass'

        action = AuditAction.CHECKR_AUTO_TRIGGERED if auto else AuditAction.CHECKR_INVITATION_SENT
        self.audit.log(applicant_id, action, metadata, user_id=actor_user_id)

        logger.info(
            f"Checkr invitation {invitation['id']} sent to candidate {candidate_id} for applicant {applicant_id}"
        )

        return {
            'status': 'invitation_sent',
            'candidate_id': candidate_id,
            'invitation_id': invitation['id'],
            'package': invitation.get('package'),
            'message': 'Background check invitation has been sent. The applicant will receive an email from Checkr.'
        }

    def _background_check_in_progress(self, applicant) -> Dict:
        return {
            'status': 'already_in_progress',
            'candidate_id': applicant.checkr_candidate_id,
            'message': 'Background check is already in progress.'
        }

    # Pipeline progression

    def initiate_screening(self, applicant_id: str) -> Optional[Dict]:
        """Kick off screening for a submitted application that has consent.

        Provider failures are logged rather than raised; an admin can retry.
        """
        applicant = self.store.get_applicant(applicant_id, include_deleted=True)
        if not applicant:
            raise NotFoundError("Application not found")

        if applicant.deleted_at:
            logger.info(f"Skipping screening initiation for soft-deleted applicant {applicant_id}")
            return None

        if not applicant.background_check_consent_at:
            raise ConsentRequiredError("FCRA consent not provided")

        moved = self.store.transition_application(
            applicant_id,
            [ApplicationStatus.SUBMITTED],
            ApplicationStatus.SCREENING_IN_PROGRESS
        )
        if moved:
            self.notifications.send_screening_status(applicant, 'SCREENING_IN_PROGRESS')

        try:
            return self.initiate_identity_verification(applicant_id)
        except Exception as e:
            logger.error(f"Failed to start identity verification for applicant {applicant_id}: {str(e)}")
            return None

    def on_identity_complete(self, applicant_id: str, status: ScreeningStatus) -> Optional[Dict]:
        """Continue the pipeline after iDenfy reports a final outcome"""
        applicant = self.store.get_applicant(applicant_id, include_deleted=True)
        if not applicant:
            raise NotFoundError("Application not found")

        if applicant.deleted_at:
            logger.info(f"Skipping iDenfy completion for soft-deleted applicant {applicant_id}")
            return None

        if status == ScreeningStatus.FAILED:
            self.store.append_note(applicant_id, "Identity verification failed")
            self.notifications.send_screening_status(applicant, 'IDENTITY_FAILED')
            logger.warning(f"Identity verification failed for applicant {applicant_id}")
            return None

        try:
            return self.initiate_background_check(applicant_id, auto=True)
        except Exception as e:
            # Admin can trigger the background check manually
            logger.error(f"Failed to auto-trigger Checkr after iDenfy pass for applicant {applicant_id}: {str(e)}")
            return None

    def on_background_check_complete(self, applicant_id: str, status: ScreeningStatus, result: str = None):
        """Continue the pipeline after Checkr reports a completed report"""
        applicant = self.store.get_applicant(applicant_id, include_deleted=True)
        if not applicant:
            raise NotFoundError("Application not found")

        if applicant.deleted_at:
            logger.info(f"Skipping Checkr completion for soft-deleted applicant {applicant_id}")
            return None

        if status == ScreeningStatus.PASSED:
            return self.finalize_screening(applicant_id)

        # Never auto-reject on a Checkr result
        reason = f"Checkr result: {result or 'consider'} -- requires admin review"
        self.store.append_note(applicant_id, reason)
        self.notifications.send_admin_review(applicant_id, reason)
        logger.warning(f"Checkr result requires admin review for applicant {applicant_id}: {result}")
        return ScreeningStatus.FAILED

    def finalize_screening(self, applicant_id: str) -> Optional[ScreeningStatus]:
        """Act on the aggregate outcome once a pipeline has finished"""
        applicant = self.store.get_applicant(applicant_id, include_deleted=True)
        if not applicant:
            raise NotFoundError("Application not found")

        # Enrolling a deleted applicant would incur ongoing monitoring costs
        if applicant.deleted_at:
            logger.info(f"Skipping finalization for soft-deleted applicant {applicant_id}")
            return None

        if applicant.screening_status == ScreeningStatus.PASSED:
            self.store.append_note(applicant_id, "All screening checks passed")
            self.notifications.send_screening_status(applicant, 'SCREENING_PASSED')
            logger.info(f"Screening finalized: PASSED for applicant {applicant_id}")
            self.enroll_continuous_monitoring(applicant)

        elif applicant.screening_status == ScreeningStatus.FAILED:
            failed_provider = 'iDenfy' if applicant.idenfy_status == ScreeningStatus.FAILED else 'Checkr'
            self.store.append_note(applicant_id, f"Screening failed: {failed_provider} did not pass")
            logger.info(f"Screening finalized: FAILED for applicant {applicant_id} ({failed_provider})")

        return applicant.screening_status

    def enroll_continuous_monitoring(self, applicant) -> Optional[str]:
        """Enroll a passed applicant in Checkr continuous monitoring exactly once"""
        if not applicant.checkr_candidate_id:
            return None

        if not self.store.claim_monitoring_slot(applicant.id):
            logger.info(f"Continuous monitoring already enrolled or enrolling for applicant {applicant.id}")
            return None

        try:
            monitor = self.checkr.enroll_continuous_monitoring(applicant.checkr_candidate_id)
        except Exception as e:
            # No subscription exists, so the slot can be retried
            self.store.release_monitoring_slot(applicant.id)
            logger.error(f"Failed to enroll continuous monitoring for applicant {applicant.id}: {str(e)}")
            return None

        monitor_id = monitor['id']
        try:
            stored = self.store.complete_monitoring_slot(applicant.id, monitor_id)
        except Exception as e:
            # Keep the placeholder so no duplicate subscription is created
            logger.error(
                f"Failed to store monitoring ID {monitor_id} for applicant {applicant.id}, "
                f"manual recovery required: {str(e)}"
            )
            return None

        if not stored:
            logger.error(
                f"Applicant {applicant.id} deleted during monitoring enrollment; "
                f"subscription {monitor_id} requires manual cancellation"
            )
            return None

        self.audit.log(applicant.id, AuditAction.CONTINUOUS_MONITORING_ENROLLED, {
            'monitorId': monitor_id,
            'candidateId': applicant.checkr_candidate_id
        })
        logger.info(f"Continuous monitoring {monitor_id} enrolled for applicant {applicant.id}")
        return monitor_id

    # Reads

    def get_screening_report(self, applicant_id: str, admin_user: dict) -> Dict:
        """Fetch the Checkr report for admin viewing.

        The access is written to the audit log before the report is fetched,
        and the report itself is never stored.
        """
        applicant = self._get_active_applicant(applicant_id)
        if not applicant.checkr_report_id:
            raise NotFoundError("No background check report available for this applicant")

        self.audit.record(applicant_id, AuditAction.VIEW_REPORT, {
            'reportId': applicant.checkr_report_id,
            'adminEmail': admin_user.get('email')
        }, user_id=admin_user.get('user_id'))

        report = self.checkr.get_report(applicant.checkr_report_id)

        return {
            'report_id': report.get('id'),
            'status': report.get('status'),
            'result': report.get('result'),
            'adjudication': report.get('adjudication'),
            'completed_at': report.get('completed_at'),
            'turnaround_time': report.get('turnaround_time'),
            'package': report.get('package'),
            'screenings': [
                {
                    'id': screening.get('id'),
                    'type': screening.get('type'),
                    'status': screening.get('status'),
                    'result': screening.get('result'),
                    'turnaround_time': screening.get('turnaround_time')
                }
                for screening in report.get('screenings') or []
            ],
            'applicant': {
                'id': applicant.id,
                'name': applicant.user.full_name,
                'checkr_candidate_id': applicant.checkr_candidate_id
            }
        }

    def get_status(self, applicant_id: str) -> Dict:
        applicant = self._get_active_applicant(applicant_id)
        return {
            'application_id': applicant.id,
            'status': applicant.application_status.value,
            'screening_status': applicant.screening_status.value,
            'idenfy_status': applicant.idenfy_status.value,
            'checkr_status': applicant.checkr_status.value,
            'consent_recorded': applicant.background_check_consent_at is not None,
            'next_step': self._next_step(applicant)
        }

    def _next_step(self, applicant) -> str:
        if applicant.application_status == ApplicationStatus.PAYMENT_PENDING:
            return "Complete payment to begin screening."
        if not applicant.background_check_consent_at:
            return "Review and sign the background check authorization."
        if applicant.idenfy_status == ScreeningStatus.FAILED:
            return "Retry identity verification."
        if applicant.idenfy_status != ScreeningStatus.PASSED:
            return "Complete identity verification."
        return "We are reviewing your application."
