from app.integrations import SendGridClient
from app.utils.logger import get_logger

logger = get_logger(__name__)


class NotificationService:
    """Fire-and-forget screening notifications.

    Delivery problems are logged and never propagate: a state transition has
    already been committed by the time anyone is notified about it.
    """

    def __init__(self):
        self.sendgrid = SendGridClient()

    def send_screening_status(self, applicant, status: str):
        """Email the applicant about a screening milestone"""
        try:
            user = applicant.user
            if not user:
                logger.error(f"Missing user for screening notification on applicant {applicant.id}")
                return

            self.sendgrid.send_screening_status_email(user.email, user.first_name, status)
            logger.info(f"Sent {status} notification for applicant {applicant.id}")

        except Exception as e:
            logger.warning(f"Failed to send {status} notification for applicant {applicant.id}: {str(e)}")

    def send_admin_review(self, applicant_id: str, reason: str):
        """Ask the screening team to review an applicant manually"""
        try:
            self.sendgrid.send_admin_review_email(applicant_id, reason)
            logger.info(f"Sent admin review request for applicant {applicant_id}")

        except Exception as e:
            logger.warning(f"Failed to send admin review request for applicant {applicant_id}: {str(e)}")
