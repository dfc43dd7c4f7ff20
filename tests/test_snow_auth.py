"""Tests for settings loading and bearer token handling."""

import time
from unittest.mock import MagicMock

import pytest
import requests

from snow_auth import (
    ConfigurationError,
    TokenProvider,
    build_auth_context,
    get_bearer_token,
    load_settings,
)
from conftest import FakeResponse

ENV_VARS = ('SNOW_INSTANCE_URL', 'SNOW_USERNAME', 'SNOW_PASSWORD', 'SNOW_CLIENT_ID',
            'SNOW_CLIENT_SECRET', 'SNOW_BEARER_TOKEN', 'SNOW_TIMEOUT')


@pytest.fixture
def clean_env(monkeypatch):
    for var in ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    return monkeypatch


@pytest.fixture
def settings():
    return {
        'instance_url': 'https://example.service-now.com',
        'username': 'svc_user',
        'password': 'secret',
        'client_id': 'client',
        'client_secret': 'client-secret',
        'bearer_token': None,
        'timeout': 30,
    }


class TestLoadSettings:

    def test_reads_credentials(self, clean_env):
        clean_env.setenv('SNOW_INSTANCE_URL', 'https://example.service-now.com/')
        clean_env.setenv('SNOW_USERNAME', 'svc_user')
        clean_env.setenv('SNOW_PASSWORD', 'secret')
        clean_env.setenv('SNOW_CLIENT_ID', 'client')
        clean_env.setenv('SNOW_CLIENT_SECRET', 'client-secret')

        settings = load_settings()

        assert settings['instance_url'] == 'https://example.service-now.com'
        assert settings['username'] == 'svc_user'
        assert settings['timeout'] == 60

    def test_bearer_token_replaces_credentials(self, clean_env):
        clean_env.setenv('SNOW_BEARER_TOKEN', 'tok')
        clean_env.setenv('SNOW_TIMEOUT', '5')

        settings = load_settings('https://other.service-now.com')

        assert settings['bearer_token'] == 'tok'
        assert settings['instance_url'] == 'https://other.service-now.com'
        assert settings['timeout'] == 5.0

    def test_missing_settings_listed(self, clean_env):
        clean_env.setenv('SNOW_USERNAME', 'svc_user')

        with pytest.raises(ConfigurationError) as excinfo:
            load_settings()

        assert excinfo.value.missing == ['SNOW_INSTANCE_URL', 'SNOW_PASSWORD', 'SNOW_CLIENT_ID', 'SNOW_CLIENT_SECRET']


class TestBearerToken:

    def test_password_grant(self, settings, monkeypatch):
        mock_post = MagicMock(return_value=FakeResponse(json_data={'access_token': 'abc', 'expires_in': 1800}))
        monkeypatch.setattr('snow_auth.requests.post', mock_post)

        token, expires_at = get_bearer_token(settings)

        assert token == 'abc'
        assert expires_at <= time.time() + 1800 - 360
        args, kwargs = mock_post.call_args
        assert args[0] == 'https://example.service-now.com/oauth_token.do'
        assert 'grant_type=password' in kwargs['data']
        assert 'username=svc_user' in kwargs['data']

    def test_failed_request_raises(self, settings, monkeypatch):
        monkeypatch.setattr('snow_auth.requests.post', MagicMock(return_value=FakeResponse(status_code=401)))

        with pytest.raises(requests.exceptions.HTTPError):
            get_bearer_token(settings)

    def test_provider_caches_token(self, settings, monkeypatch):
        mock_post = MagicMock(return_value=FakeResponse(json_data={'access_token': 'abc', 'expires_in': 1800}))
        monkeypatch.setattr('snow_auth.requests.post', mock_post)
        provider = TokenProvider(settings)

        assert provider.get_token() == 'abc'
        assert provider.get_token() == 'abc'
        assert mock_post.call_count == 1

    def test_provider_uses_preissued_token(self, settings, monkeypatch):
        mock_post = MagicMock()
        monkeypatch.setattr('snow_auth.requests.post', mock_post)
        settings['bearer_token'] = 'given'

        auth = TokenProvider(settings).auth_context()

        assert auth['headers']['Authorization'] == 'Bearer given'
        mock_post.assert_not_called()


def test_build_auth_context(settings):
    auth = build_auth_context(settings, 'abc')

    assert auth == {
        'base_uri': 'https://example.service-now.com/api/now',
        'headers': {'Authorization': 'Bearer abc', 'Accept': 'application/json'},
        'timeout': 30,
    }
