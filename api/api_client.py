import requests
from utils.logger import get_logger
from utils.exceptions import UpstreamError
import time
import json

logger = get_logger('api_client')

IDEMPOTENT_METHODS = ("get", "patch")


class APIClient:
    """
    Thin JSON client over a requests session.

    The bearer token is fetched from token_provider on every request so a long
    batch keeps working after the cached token is refreshed.
    """

    def __init__(self, base_url: str, token_provider=None, max_retries: int = 3, timeout: float = 30):
        self.base_url = base_url.rstrip("/")
        self.token_provider = token_provider
        self.max_retries = max_retries
        self.timeout = timeout
        self.session = requests.Session()
        self.session.headers.update({'Content-Type': 'application/json'})

    def _auth_headers(self) -> dict:
        if not self.token_provider:
            return {}
        token = self.token_provider()
        # Handle both string token and dict with 'access_token' key
        access_token = token if isinstance(token, str) else token.get('access_token')
        return {'Authorization': f"Bearer {access_token}"}

    def _request_with_retry(self, method: str, url: str, **kwargs):
        # A create may have been applied even when the response is lost or is a 5xx
        idempotent = method in IDEMPOTENT_METHODS
        for attempt in range(1, self.max_retries + 1):
            try:
                logger.debug(f"{method.upper()} request to {url}, attempt {attempt}/{self.max_retries}")
                response = self.session.request(
                    method, url, headers=self._auth_headers(), timeout=self.timeout, **kwargs
                )
            except requests.exceptions.RequestException as e:
                logger.error(f"{method.upper()} request to {url} failed: {e}")
                if attempt == self.max_retries or not idempotent:
                    raise UpstreamError(f"{method.upper()} {url} failed: {e}") from e
                time.sleep(2 ** attempt)
                continue

            if 200 <= response.status_code < 300:
                if response.status_code == 204 or not response.content:
                    return None
                return response.json()

            payload = kwargs.get('json') or kwargs.get('params')
            try:
                pretty_payload = json.dumps(payload, default=str) if payload else "No payload"
            except (TypeError, ValueError):
                pretty_payload = str(payload)
            logger.error(
                f"{method.upper()} request to {url} failed with {response.status_code}: "
                f"{response.text[:500]} \nPayload: {pretty_payload[:500]}"
            )

            # Don't retry 400-level errors (client errors), only 500+ (server errors) and 429 (rate limiting)
            if 400 <= response.status_code < 500 and response.status_code != 429:
                raise UpstreamError(
                    f"{method.upper()} {url} with {pretty_payload[:200]} failed with status {response.status_code}",
                    status_code=response.status_code,
                )
            if response.status_code != 429 and not idempotent:
                raise UpstreamError(
                    f"{method.upper()} {url} failed with status {response.status_code}",
                    status_code=response.status_code,
                )
            if attempt < self.max_retries:
                time.sleep(2 ** attempt)

        raise UpstreamError(f"{method.upper()} request to {url} failed after {self.max_retries} attempts")

    def get(self, endpoint: str, params: dict = None):
        url = f"{self.base_url}{endpoint}"
        return self._request_with_retry("get", url, params=params)

    def post(self, endpoint: str, json: dict = None, params: dict = None):
        url = f"{self.base_url}{endpoint}"
        return self._request_with_retry("post", url, json=json, params=params)

    def patch(self, endpoint: str, json: dict = None):
        url = f"{self.base_url}{endpoint}"
        return self._request_with_retry("patch", url, json=json)
