import requests
from typing import Dict, Optional
from config.config import Config
from app.models.applicant import ScreeningStatus
from app.utils.errors import ProviderError
from app.utils.logger import get_logger
from app.utils.security import compute_hmac_signature, signatures_match

logger = get_logger(__name__)

# Overall statuses iDenfy reports once a verification is final
FINAL_STATUSES = {
    'APPROVED': ScreeningStatus.PASSED,
    'DENIED': ScreeningStatus.FAILED,
    'SUSPECTED': ScreeningStatus.FAILED,
    'EXPIRED': ScreeningStatus.FAILED,
}


class IdenfyClient:
    """Wrapper for iDenfy identity verification sessions"""

    def __init__(self):
        self.api_key = Config.IDENFY_API_KEY
        self.api_secret = Config.IDENFY_API_SECRET
        self.webhook_secret = Config.IDENFY_WEBHOOK_SECRET
        self.base_url = Config.IDENFY_BASE_URL.rstrip('/')
        self.timeout = Config.PROVIDER_TIMEOUT_SECONDS

        if not self.api_key or not self.api_secret:
            logger.warning("iDenfy API credentials not configured")

    def _make_request(self, method: str, endpoint: str, data: Dict = None) -> Dict:
        if not self.api_key or not self.api_secret:
            raise ProviderError("iDenfy API credentials not configured", provider='idenfy')

        url = f"{self.base_url}{endpoint}"

        try:
            response = requests.request(
                method=method,
                url=url,
                auth=(self.api_key, self.api_secret),
                json=data,
                timeout=self.timeout
            )
            response.raise_for_status()
            return response.json()
        except requests.exceptions.RequestException as e:
            upstream_status = e.response.status_code if e.response is not None else None
            logger.error(f"iDenfy API error on {method} {endpoint}: {str(e)}")
            raise ProviderError(f"iDenfy request failed: {method} {endpoint}",
                                provider='idenfy', upstream_status=upstream_status) from e
        except ValueError as e:
            raise ProviderError(f"iDenfy returned invalid JSON for {method} {endpoint}", provider='idenfy') from e

    def create_session(self, applicant_id: str, first_name: str, last_name: str) -> Dict:
        """Create a verification session; the applicant id is sent as iDenfy's clientId"""
        token = self._make_request('POST', '/api/v2/token', {
            'clientId': applicant_id,
            'firstName': first_name,
            'lastName': last_name,
            'successUrl': f"{Config.APP_URL}/apply/verify-identity?result=success",
            'errorUrl': f"{Config.APP_URL}/apply/verify-identity?result=error",
            'callbackUrl': f"{Config.APP_URL}/api/webhooks/idenfy"
        })

        auth_token = token.get('authToken')
        scan_ref = token.get('scanRef')
        if not auth_token or not scan_ref:
            raise ProviderError("iDenfy token response missing authToken or scanRef", provider='idenfy')

        return {
            'scan_ref': scan_ref,
            'auth_token': auth_token,
            'url': f"{self.base_url}/api/v2/redirect?authToken={auth_token}"
        }

    def verify_webhook_signature(self, signature: str, raw_body: bytes) -> bool:
        """Check the Idenfy-Signature header against an HMAC-SHA256 of the body"""
        if not self.webhook_secret or not signature or raw_body is None:
            return False
        expected = compute_hmac_signature(self.webhook_secret, raw_body)
        return signatures_match(expected, signature)

    @staticmethod
    def map_status(overall: str) -> Optional[ScreeningStatus]:
        """Map iDenfy's overall status to PASSED/FAILED; None while still under review"""
        if not overall:
            return None
        return FINAL_STATUSES.get(overall.upper())
