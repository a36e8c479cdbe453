from flask import Blueprint, jsonify
from app.middleware.auth import require_auth, require_admin
from app.services.screening_service import ScreeningService
from app.utils.errors import ScreeningError, ProviderError
from app.utils.logger import get_logger

bp = Blueprint('admin', __name__)
logger = get_logger(__name__)
screening_service = ScreeningService()


@bp.route('/applications/<application_id>/screening-report', methods=['GET'])
@require_auth
@require_admin
def screening_report(current_user, application_id):
    """Fetch the Checkr report on demand; every access is audited"""
    try:
        report = screening_service.get_screening_report(application_id, current_user)
        return jsonify(report), 200

    except ProviderError as e:
        logger.error(f"Failed to fetch Checkr report for applicant {application_id}: {str(e)}")
        return jsonify({
            'error': 'Failed to fetch background check report from Checkr',
            'code': e.code
        }), e.status_code
    except ScreeningError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception as e:
        logger.error(f"Error getting screening report: {str(e)}")
        return jsonify({'error': 'Failed to get screening report', 'code': 'INTERNAL_ERROR'}), 500
