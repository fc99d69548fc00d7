import requests
from utils.logger import get_logger
from utils.exceptions import UpstreamError
from cache.token_cache import CacheRefreshToken
import time
from threading import Lock

logger = get_logger("auth_api")


class AuthAPI:
    """
    Machine to machine token provider (Auth0 client credentials grant).
    When a proxy server url is configured the request goes through the proxy,
    which forwards it to the real Auth0 url.
    """

    CACHE_KEY = "m2m_access_token"

    def __init__(
        self, auth_url, audience, client_id, client_secret, proxy_server_url=None,
        token_cache_time=None, max_retries=3, timeout=10
    ):
        self.auth_url = auth_url
        self.audience = audience
        self.client_id = client_id
        self.client_secret = client_secret
        self.proxy_server_url = proxy_server_url
        self.token_cache_time = token_cache_time
        self.token_cache = CacheRefreshToken()
        self.max_retries = max_retries
        self.timeout = timeout
        self._refresh_lock = Lock()

    def get_token(self):
        token = self.token_cache.get_valid(self.CACHE_KEY)
        if token:
            return token

        # One worker refreshes, the others wait and reuse its token
        with self._refresh_lock:
            token = self.token_cache.get_valid(self.CACHE_KEY)
            if token:
                return token
            return self._request_token()

    def _request_token(self):
        payload = {
            "grant_type": "client_credentials",
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "audience": self.audience,
        }
        url = self.auth_url
        if self.proxy_server_url:
            payload["auth0_url"] = self.auth_url
            url = self.proxy_server_url

        for attempt in range(1, self.max_retries + 1):
            try:
                logger.info(
                    f"Requesting new token from {url} (Attempt {attempt}/{self.max_retries})"
                )
                response = requests.post(url, json=payload, timeout=self.timeout)

                if 200 <= response.status_code < 300:
                    token_data = response.json()
                    access_token = token_data.get("access_token")
                    expires_in = self.token_cache_time or token_data.get("expires_in", 3600)
                    if access_token:
                        self.token_cache.set(self.CACHE_KEY, access_token, expires_in)
                        logger.info("New token obtained and cached")
                        return access_token
                    logger.error("Token not found in auth response")
                    raise UpstreamError("No access_token in auth response")

                if 400 <= response.status_code < 500 and response.status_code != 429:
                    raise UpstreamError(
                        f"Authentication rejected with status {response.status_code}",
                        status_code=response.status_code,
                    )
                logger.warning(f"Server error {response.status_code}, retrying...")
                time.sleep(2**attempt)

            except requests.exceptions.RequestException as e:
                logger.error(f"RequestException on attempt {attempt}: {e}")
                if attempt == self.max_retries:
                    raise UpstreamError(f"Authentication request failed: {e}") from e
                time.sleep(2**attempt)

        raise UpstreamError(f"Failed to obtain token after {self.max_retries} attempts")
