from flask import Blueprint, request, jsonify
from app.services.webhook_service import WebhookService
from app.utils.errors import ScreeningError
from app.utils.logger import get_logger

bp = Blueprint('webhooks', __name__)
logger = get_logger(__name__)

webhook_service = WebhookService()


@bp.route('/checkr', methods=['POST'])
def checkr_webhook():
    """Handle Checkr webhook events"""
    payload = request.get_data()
    signature = request.headers.get('X-Checkr-Signature', '')

    try:
        result = webhook_service.ingest_checkr(signature, payload)
        return jsonify(result), 200
    except ScreeningError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception as e:
        logger.error(f"Error processing Checkr webhook: {str(e)}")
        return jsonify({'error': 'Failed to process webhook', 'code': 'INTERNAL_ERROR'}), 500


@bp.route('/idenfy', methods=['POST'])
def idenfy_webhook():
    """Handle iDenfy verification results"""
    payload = request.get_data()
    signature = request.headers.get('Idenfy-Signature', '')

    try:
        result = webhook_service.ingest_idenfy(signature, payload)
        return jsonify(result), 200
    except ScreeningError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception as e:
        logger.error(f"Error processing iDenfy webhook: {str(e)}")
        return jsonify({'error': 'Failed to process webhook', 'code': 'INTERNAL_ERROR'}), 500
