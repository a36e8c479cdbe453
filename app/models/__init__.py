from .user import User
from .applicant import Applicant
from .audit_log import ScreeningAuditLog

__all__ = ['User', 'Applicant', 'ScreeningAuditLog']
