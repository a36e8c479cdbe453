import sendgrid
from sendgrid.helpers.mail import Mail, Email, To, Content
from typing import Optional, Dict
from config.config import Config
from app.utils.logger import get_logger

logger = get_logger(__name__)

STATUS_COPY = {
    'SCREENING_IN_PROGRESS': (
        "Your screening has started",
        "Thanks for submitting your application. We're now verifying your identity "
        "and running your background check. We'll email you as soon as it's done."
    ),
    'IDENTITY_FAILED': (
        "We couldn't verify your identity",
        "Your identity verification didn't go through. You can start a new "
        "verification session from your application page."
    ),
    'SCREENING_PASSED': (
        "Your screening is complete",
        "Good news: your identity verification and background check have both passed. "
        "Our team will be in touch about next steps."
    ),
}


class SendGridClient:
    """Wrapper for SendGrid email operations"""

    def __init__(self):
        self.api_key = Config.SENDGRID_API_KEY
        self.from_email = Config.SENDGRID_FROM_EMAIL

        if self.api_key:
            self.client = sendgrid.SendGridAPIClient(api_key=self.api_key)
        else:
            self.client = None
            logger.warning("SendGrid API key not configured")

    def send_email(self, to_email: str, subject: str, html_content: str,
                   plain_content: str = None) -> Optional[Dict]:
        """Send email via SendGrid"""
        if not self.client:
            logger.error("SendGrid client not initialized")
            return None

        try:
            message = Mail(
                from_email=Email(self.from_email, "Kinship"),
                to_emails=To(to_email),
                subject=subject,
                html_content=Content("text/html", html_content)
            )

            if plain_content:
                message.plain_text_content = Content("text/plain", plain_content)

            response = self.client.send(message)

            return {
                'status_code': response.status_code,
                'message_id': response.headers.get('X-Message-Id')
            }
        except Exception as e:
            logger.error(f"Error sending email to {to_email}: {str(e)}")
            return None

    def send_screening_status_email(self, to_email: str, first_name: str, status: str) -> Optional[Dict]:
        """Send an applicant-facing screening status update"""
        if status not in STATUS_COPY:
            raise ValueError(f"No email template for screening status {status}")

        subject, body = STATUS_COPY[status]
        html_content = f"""
        <html>
            <body style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
                <h2>Hi {first_name},</h2>
                <p>{body}</p>
                <p style="margin: 30px 0;">
                    <a href="{Config.APP_URL}/dashboard"
                       style="background-color: #8E4585; color: white; padding: 14px 28px;
                              text-decoration: none; border-radius: 4px; display: inline-block;">
                        View your application
                    </a>
                </p>
            </body>
        </html>
        """
        plain_content = f"Hi {first_name},\n\n{body}\n\n{Config.APP_URL}/dashboard"

        return self.send_email(to_email, f"Kinship: {subject}", html_content, plain_content)

    def send_admin_review_email(self, applicant_id: str, reason: str) -> Optional[Dict]:
        """Alert the screening team that an applicant needs manual review"""
        review_link = f"{Config.APP_URL}/admin/applications/{applicant_id}"
        html_content = f"""
        <html>
            <body style="font-family: Arial, sans-serif;">
                <h3>Screening review required</h3>
                <p>Applicant <strong>{applicant_id}</strong>: {reason}</p>
                <p><a href="{review_link}">Open application</a></p>
            </body>
        </html>
        """
        plain_content = f"Screening review required for applicant {applicant_id}: {reason}\n{review_link}"

        return self.send_email(Config.ADMIN_EMAIL, "Screening review required", html_content, plain_content)
