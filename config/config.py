import os
from dotenv import load_dotenv

load_dotenv()


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'dev-secret-key-change-in-production'
    DATABASE_URL = os.environ.get('DATABASE_URL') or 'sqlite:///kinship.db'
    SQLALCHEMY_DATABASE_URI = DATABASE_URL
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Identity verification (iDenfy)
    IDENFY_API_KEY = os.environ.get('IDENFY_API_KEY')
    IDENFY_API_SECRET = os.environ.get('IDENFY_API_SECRET')
    IDENFY_BASE_URL = os.environ.get('IDENFY_BASE_URL', 'https://ivs.idenfy.com')
    IDENFY_WEBHOOK_SECRET = os.environ.get('IDENFY_WEBHOOK_SECRET')

    # Background checks (Checkr). Webhooks are signed with the API key.
    CHECKR_API_KEY = os.environ.get('CHECKR_API_KEY')
    CHECKR_BASE_URL = os.environ.get('CHECKR_BASE_URL', 'https://api.checkr.com/v1')
    CHECKR_PACKAGE = os.environ.get('CHECKR_PACKAGE', 'basic_plus')
    CHECKR_WORK_STATE = os.environ.get('CHECKR_WORK_STATE', 'CA')

    # Email
    SENDGRID_API_KEY = os.environ.get('SENDGRID_API_KEY')
    SENDGRID_FROM_EMAIL = os.environ.get('SENDGRID_FROM_EMAIL', 'noreply@kinship.dating')

    # Application Settings
    APP_URL = os.environ.get('APP_URL', 'http://localhost:5000')
    PROVIDER_TIMEOUT_SECONDS = float(os.environ.get('PROVIDER_TIMEOUT_SECONDS', '15'))

    # Admin Settings
    ADMIN_EMAIL = os.environ.get('ADMIN_EMAIL', 'screening@kinship.dating')

    # Token Settings
    ACCESS_TOKEN_EXPIRE_MINUTES = 60 * 24  # 24 hours

    # Logging
    LOG_FILE = os.environ.get('LOG_FILE', 'logs/kinship.log')
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')


class DevelopmentConfig(Config):
    DEBUG = True
    TESTING = False


class TestingConfig(Config):
    DEBUG = True
    TESTING = True


class ProductionConfig(Config):
    DEBUG = False
    TESTING = False


config = {
    'development': DevelopmentConfig,
    'testing': TestingConfig,
    'production': ProductionConfig,
    'default': DevelopmentConfig
}
