from .logger import setup_logger, get_logger
from .security import generate_token, verify_token, get_client_ip
from .validators import validate_application_id, validate_full_name, validate_consent_flag

__all__ = [
    'setup_logger', 'get_logger',
    'generate_token', 'verify_token', 'get_client_ip',
    'validate_application_id', 'validate_full_name', 'validate_consent_flag'
]
