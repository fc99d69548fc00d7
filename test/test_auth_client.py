import threading
import time
from unittest.mock import MagicMock, patch

import pytest

from api.auth_client import AuthAPI
from cache.token_cache import CacheRefreshToken
from utils.exceptions import UpstreamError


def _response(status_code, body=None):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = body or {}
    return response


@pytest.fixture(autouse=True)
def empty_token_cache():
    CacheRefreshToken.clear()
    yield
    CacheRefreshToken.clear()


def auth_api(**kwargs):
    return AuthAPI("https://auth0.test/oauth/token", "https://u-bahn.test", "client", "secret", **kwargs)


@patch("api.auth_client.requests.post")
def test_token_is_requested_once_and_cached(post):
    post.return_value = _response(200, {"access_token": "abc", "expires_in": 86400})
    api = auth_api()

    assert api.get_token() == "abc"
    assert api.get_token() == "abc"
    post.assert_called_once()
    assert post.call_args.args[0] == "https://auth0.test/oauth/token"
    assert post.call_args.kwargs["json"]["grant_type"] == "client_credentials"


@patch("api.auth_client.requests.post")
def test_proxy_receives_real_auth_url(post):
    post.return_value = _response(200, {"access_token": "abc"})

    auth_api(proxy_server_url="https://proxy.test/token").get_token()

    assert post.call_args.args[0] == "https://proxy.test/token"
    assert post.call_args.kwargs["json"]["auth0_url"] == "https://auth0.test/oauth/token"


@patch("api.auth_client.requests.post")
def test_expired_token_is_refreshed(post):
    post.side_effect = [
        _response(200, {"access_token": "first", "expires_in": 30}),
        _response(200, {"access_token": "second", "expires_in": 3600}),
    ]
    api = auth_api()

    assert api.get_token() == "first"
    with patch("cache.token_cache.time.time", return_value=10 ** 12):
        assert api.get_token() == "second"


@patch("api.auth_client.time.sleep")
@patch("api.auth_client.requests.post")
def test_rejected_credentials_are_not_retried(post, sleep):
    post.return_value = _response(401)

    with pytest.raises(UpstreamError) as error:
        auth_api().get_token()

    assert error.value.status_code == 401
    post.assert_called_once()
    sleep.assert_not_called()


@patch("api.auth_client.requests.post")
def test_token_cleared_by_another_worker_after_read_is_still_returned(post):
    CacheRefreshToken.set(AuthAPI.CACHE_KEY, "cached", 3600)
    real_get = CacheRefreshToken.get

    def get_then_clear(key):
        entry = real_get(key)
        CacheRefreshToken.clear()
        return entry

    with patch.object(CacheRefreshToken, "get", side_effect=get_then_clear):
        assert auth_api().get_token() == "cached"
    post.assert_not_called()


@patch("api.auth_client.requests.post")
def test_token_expiring_during_read_is_refreshed_not_none(post):
    post.return_value = _response(200, {"access_token": "fresh", "expires_in": 3600})
    CacheRefreshToken.set(AuthAPI.CACHE_KEY, "stale", 3600)

    with patch("cache.token_cache.time.time", return_value=10 ** 12):
        assert auth_api().get_token() == "fresh"
    post.assert_called_once()


@patch("api.auth_client.requests.post")
def test_concurrent_workers_share_one_refresh(post):
    def slow_post(*args, **kwargs):
        time.sleep(0.05)
        return _response(200, {"access_token": "shared", "expires_in": 3600})

    post.side_effect = slow_post
    api = auth_api()
    tokens = []
    lock = threading.Lock()

    def work():
        token = api.get_token()
        with lock:
            tokens.append(token)

    threads = [threading.Thread(target=work) for _ in range(10)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert tokens == ["shared"] * 10
    post.assert_called_once()
