from flask import Blueprint, request, jsonify
from app.middleware.auth import require_auth, require_admin, is_admin
from app.models.applicant import ApplicationStatus
from app.services.consent_service import ConsentService
from app.services.screening_service import ScreeningService
from app.services.screening_store import ScreeningStore
from app.utils.errors import ScreeningError, ProviderError, NotFoundError, ForbiddenError
from app.utils.security import get_client_ip
from app.utils.validators import validate_application_id, validate_full_name, validate_consent_flag
from app.utils.logger import get_logger

bp = Blueprint('applications', __name__)
logger = get_logger(__name__)
consent_service = ConsentService()
screening_service = ScreeningService()
screening_store = ScreeningStore()


def _owns(applicant, current_user) -> bool:
    if applicant.user_id == current_user.get('user_id'):
        return True
    email = (current_user.get('email') or '').lower()
    return bool(email) and applicant.user is not None and applicant.user.email.lower() == email


def _load_owned_applicant(application_id, current_user, allow_admin=False):
    applicant = screening_store.get_applicant(application_id)
    if not applicant:
        raise NotFoundError("Application not found")
    if not _owns(applicant, current_user) and not (allow_admin and is_admin(current_user)):
        logger.warning(f"User {current_user.get('user_id')} denied access to application {application_id}")
        raise ForbiddenError("Access denied")
    return applicant


@bp.route('/background-check-consent', methods=['POST'])
@require_auth
def record_background_check_consent(current_user):
    """Record FCRA background check consent (standalone disclosure + authorization)"""
    try:
        data = request.get_json(silent=True) or {}
        application_id = data.get('applicationId')

        valid, error = validate_application_id(application_id)
        if not valid:
            return jsonify({'error': error, 'code': 'VALIDATION_ERROR'}), 400

        valid, error = validate_full_name(data.get('fullName'))
        if not valid:
            return jsonify({'error': error, 'code': 'VALIDATION_ERROR'}), 400

        valid, error = validate_consent_flag(data.get('consentGiven'))
        if not valid:
            return jsonify({'error': error, 'code': 'CONSENT_REQUIRED'}), 400

        applicant = _load_owned_applicant(application_id, current_user)

        result = consent_service.record_consent(
            applicant.id,
            data['fullName'],
            get_client_ip(request.headers),
            request.headers.get('User-Agent', 'unknown')
        )

        if result['status'] == 'consent_recorded':
            _start_screening_if_submitted(applicant.id)

        return jsonify(result), 200

    except ScreeningError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception as e:
        logger.error(f"Failed to record background check consent: {str(e)}")
        return jsonify({'error': 'Failed to record consent', 'code': 'INTERNAL_ERROR'}), 500


def _start_screening_if_submitted(applicant_id):
    """Auto-initiate screening when consent arrives after submission"""
    try:
        # Re-read: the submit flow may have committed since the applicant was loaded
        fresh = screening_store.get_applicant(applicant_id)
        if fresh and fresh.application_status in (ApplicationStatus.SUBMITTED,
                                                  ApplicationStatus.SCREENING_IN_PROGRESS):
            screening_service.initiate_screening(applicant_id)
    except Exception as e:
        logger.error(f"Failed to auto-initiate screening after consent for applicant {applicant_id}: {str(e)}")


@bp.route('/verify-identity', methods=['POST'])
@require_auth
def verify_identity(current_user):
    """Start or resume identity verification"""
    try:
        data = request.get_json(silent=True) or {}
        application_id = data.get('applicationId')

        valid, error = validate_application_id(application_id)
        if not valid:
            return jsonify({'error': error, 'code': 'VALIDATION_ERROR'}), 400

        force_new_session = data.get('forceNewSession', False)
        if not isinstance(force_new_session, bool):
            return jsonify({'error': 'forceNewSession must be a boolean', 'code': 'VALIDATION_ERROR'}), 400

        applicant = _load_owned_applicant(application_id, current_user)

        result = screening_service.initiate_identity_verification(applicant.id, force_new_session=force_new_session)
        return jsonify(result), 200

    except ProviderError as e:
        return jsonify({
            'error': 'Identity verification is temporarily unavailable. Please try again.',
            'code': e.code
        }), e.status_code
    except ScreeningError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception as e:
        logger.error(f"Failed to create identity verification session: {str(e)}")
        return jsonify({'error': 'Failed to initiate identity verification', 'code': 'INTERNAL_ERROR'}), 500


@bp.route('/background-check', methods=['POST'])
@require_auth
@require_admin
def background_check(current_user):
    """Trigger a Checkr background check (admin only)"""
    try:
        data = request.get_json(silent=True) or {}
        application_id = data.get('applicationId')

        valid, error = validate_application_id(application_id)
        if not valid:
            return jsonify({'error': error, 'code': 'VALIDATION_ERROR'}), 400

        result = screening_service.initiate_background_check(
            application_id,
            actor_user_id=current_user.get('user_id')
        )
        return jsonify(result), 200

    except ProviderError as e:
        return jsonify({
            'error': 'Background check provider is temporarily unavailable. Please try again.',
            'code': e.code
        }), e.status_code
    except ScreeningError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception as e:
        logger.error(f"Failed to initiate background check: {str(e)}")
        return jsonify({'error': 'Failed to initiate background check', 'code': 'INTERNAL_ERROR'}), 500


@bp.route('/status/<application_id>', methods=['GET'])
@require_auth
def application_status(current_user, application_id):
    """Get screening status for an application"""
    try:
        applicant = _load_owned_applicant(application_id, current_user, allow_admin=True)

        return jsonify(screening_service.get_status(applicant.id)), 200

    except ScreeningError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception as e:
        logger.error(f"Error getting application status: {str(e)}")
        return jsonify({'error': 'Failed to get application status', 'code': 'INTERNAL_ERROR'}), 500
