import os
import time
from urllib.parse import urlencode

import requests

from snow_logging import logger

DEFAULT_TIMEOUT = 60
# Refresh this many seconds before the token actually expires
TOKEN_EXPIRY_BUFFER = 360

CREDENTIAL_VARS = ('SNOW_USERNAME', 'SNOW_PASSWORD', 'SNOW_CLIENT_ID', 'SNOW_CLIENT_SECRET')


class ConfigurationError(Exception):
    """Raised when required ServiceNow settings are missing."""

    def __init__(self, missing):
        self.missing = list(missing)
        super().__init__(f"Missing ServiceNow settings: {', '.join(self.missing)} (set them in the environment or .env)")


def load_settings(instance_url=None):
    """Read ServiceNow connection settings from the environment.

    Call load_dotenv() first if a .env file should be honoured.
    """
    settings = {
        'instance_url': (instance_url or os.getenv('SNOW_INSTANCE_URL') or '').rstrip('/'),
        'username': os.getenv('SNOW_USERNAME'),
        'password': os.getenv('SNOW_PASSWORD'),
        'client_id': os.getenv('SNOW_CLIENT_ID'),
        'client_secret': os.getenv('SNOW_CLIENT_SECRET'),
        'bearer_token': os.getenv('SNOW_BEARER_TOKEN'),
        'timeout': float(os.getenv('SNOW_TIMEOUT') or DEFAULT_TIMEOUT),
    }

    missing = []
    if not settings['instance_url']:
        missing.append('SNOW_INSTANCE_URL')
    if not settings['bearer_token']:
        missing.extend(var for var in CREDENTIAL_VARS if not os.getenv(var))
    if missing:
        raise ConfigurationError(missing)
    return settings


def get_bearer_token(settings):
    """Request an OAuth token with the password grant. Returns (token, expires_at)."""
    url = f"{settings['instance_url']}/oauth_token.do"
    payload_dict = {
        'grant_type': 'password',
        'username': settings['username'],
        'password': settings['password'],
        'client_id': settings['client_id'],
        'client_secret': settings['client_secret'],
    }
    payload = urlencode(payload_dict)
    headers = {'Content-Type': 'application/x-www-form-urlencoded'}

    try:
        response = requests.post(url, data=payload, headers=headers, timeout=settings.get('timeout'))
        response.raise_for_status()
        data = response.json()
    except requests.exceptions.RequestException as e:
        logger.error(f"❌ Token request failed: {str(e)}")
        raise

    logger.info(f"🔑 Token request status: {response.status_code}")
    expires_at = time.time() + data['expires_in'] - TOKEN_EXPIRY_BUFFER
    return data['access_token'], expires_at


class TokenProvider:
    """Caches a bearer token until shortly before it expires."""

    def __init__(self, settings):
        self.settings = settings
        self.token_cache = {'value': settings.get('bearer_token'), 'expires': float('inf') if settings.get('bearer_token') else 0}

    def get_token(self):
        if time.time() < self.token_cache['expires']:
            return self.token_cache['value']
        token, expires_at = get_bearer_token(self.settings)
        self.token_cache = {'value': token, 'expires': expires_at}
        return token

    def auth_context(self):
        return build_auth_context(self.settings, self.get_token())


def build_auth_context(settings, token):
    return {
        'base_uri': f"{settings['instance_url']}/api/now",
        'headers': {
            'Authorization': f'Bearer {token}',
            'Accept': 'application/json',
        },
        'timeout': settings.get('timeout', DEFAULT_TIMEOUT),
    }
