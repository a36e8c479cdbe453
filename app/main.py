import os
from flask import Flask, jsonify
from config.config import config
from app.database import init_db
from app.utils.errors import ScreeningError
from app.utils.logger import get_logger

logger = get_logger(__name__)


def create_app(config_name=None):
    """Application factory"""
    config_name = config_name or os.environ.get('FLASK_ENV', 'default')
    app = Flask(__name__)
    app.config.from_object(config.get(config_name, config['default']))

    init_db()

    from app.routes import applications, admin, webhooks
    app.register_blueprint(applications.bp, url_prefix='/api/applications')
    app.register_blueprint(admin.bp, url_prefix='/api/admin')
    app.register_blueprint(webhooks.bp, url_prefix='/api/webhooks')

    @app.route('/health', methods=['GET'])
    def health():
        return jsonify({'status': 'ok'}), 200

    @app.errorhandler(ScreeningError)
    def screening_error(error):
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(404)
    def not_found(error):
        return jsonify({'error': 'Not found', 'code': 'NOT_FOUND'}), 404

    @app.errorhandler(405)
    def method_not_allowed(error):
        return jsonify({'error': 'Method not allowed', 'code': 'METHOD_NOT_ALLOWED'}), 405

    @app.errorhandler(500)
    def internal_error(error):
        logger.error(f"Unhandled server error: {str(error)}")
        return jsonify({'error': 'Internal server error', 'code': 'INTERNAL_ERROR'}), 500

    logger.info(f"Kinship screening API created with '{config_name}' config")
    return app
