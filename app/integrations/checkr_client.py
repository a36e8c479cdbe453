import requests
from typing import Dict, Optional
from config.config import Config
from app.models.applicant import ScreeningStatus
from app.utils.errors import ProviderError
from app.utils.logger import get_logger
from app.utils.security import compute_hmac_signature, signatures_match

logger = get_logger(__name__)


class CheckrClient:
    """Wrapper for Checkr background check operations.

    Every failure surfaces as ProviderError. The client never touches the
    database; persisting what it returns is the caller's job.
    """

    def __init__(self):
        self.api_key = Config.CHECKR_API_KEY
        self.base_url = Config.CHECKR_BASE_URL.rstrip('/')
        self.timeout = Config.PROVIDER_TIMEOUT_SECONDS
        self.headers = {
            'Content-Type': 'application/json'
        }

        if not self.api_key:
            logger.warning("Checkr API key not configured")

    def _make_request(self, method: str, endpoint: str, data: Dict = None) -> Dict:
        """Make API request to Checkr"""
        if not self.api_key:
            raise ProviderError("Checkr API key not configured", provider='checkr')

        url = f"{self.base_url}{endpoint}"

        try:
            # Checkr uses Basic Auth with API key as username
            response = requests.request(
                method=method,
                url=url,
                headers=self.headers,
                auth=(self.api_key, ''),
                json=data,
                timeout=self.timeout
            )
            response.raise_for_status()
            return response.json()
        except requests.exceptions.RequestException as e:
            upstream_status = e.response.status_code if e.response is not None else None
            logger.error(f"Checkr API error on {method} {endpoint}: {str(e)}")
            if e.response is not None:
                logger.error(f"Response: {e.response.text}")
            raise ProviderError(f"Checkr request failed: {method} {endpoint}",
                                provider='checkr', upstream_status=upstream_status) from e
        except ValueError as e:
            raise ProviderError(f"Checkr returned invalid JSON for {method} {endpoint}", provider='checkr') from e

    def create_candidate(self, first_name: str, last_name: str, email: str) -> str:
        """Create a candidate for background check and return its id"""
        candidate = self._make_request('POST', '/candidates', {
            'first_name': first_name,
            'last_name': last_name,
            'email': email
        })
        if not candidate.get('id'):
            raise ProviderError("Checkr candidate response missing id", provider='checkr')
        return candidate['id']

    def create_invitation(self, candidate_id: str, package: str = None) -> Dict:
        """Invite the candidate to complete the background check on Checkr's hosted form"""
        invitation = self._make_request('POST', '/invitations', {
            'candidate_id': candidate_id,
            'package': package or Config.CHECKR_PACKAGE,
            'work_locations': [{'country': 'US', 'state': Config.CHECKR_WORK_STATE}]
        })
        if not invitation.get('id'):
            raise ProviderError("Checkr invitation response missing id", provider='checkr')
        return {
            'id': invitation['id'],
            'package': invitation.get('package') if isinstance(invitation.get('package'), str) else None
        }

    def get_report(self, report_id: str) -> Dict:
        """Get background check report status and details"""
        return self._make_request('GET', f'/reports/{report_id}')

    def enroll_continuous_monitoring(self, candidate_id: str) -> Dict:
        """Subscribe the candidate to ongoing criminal record monitoring"""
        monitor = self._make_request('POST', '/continuous_checks', {
            'candidate_id': candidate_id,
            'type': 'criminal'
        })
        if not monitor.get('id'):
            raise ProviderError("Checkr continuous check response missing id", provider='checkr')
        return monitor

    def verify_webhook_signature(self, signature: str, raw_body: bytes) -> bool:
        """Check the X-Checkr-Signature header, an HMAC-SHA256 of the body keyed with the API key"""
        if not self.api_key or not signature or raw_body is None:
            return False
        expected = compute_hmac_signature(self.api_key, raw_body)
        return signatures_match(expected, signature)

    @staticmethod
    def parse_report_status(report: Dict) -> Optional[ScreeningStatus]:
        """Map a report to PASSED/FAILED, or None while it is not complete"""
        if not report:
            return None

        adjudication = report.get('adjudication')
        if adjudication == 'engaged':
            return ScreeningStatus.PASSED
        if adjudication == 'adverse':
            return ScreeningStatus.FAILED

        if report.get('status') not in (None, 'complete'):
            return None

        result = report.get('result')
        if result is None:
            return None
        return ScreeningStatus.PASSED if result == 'clear' else ScreeningStatus.FAILED
