"""Shared pytest fixtures for the attachment download tests."""

from unittest.mock import MagicMock

import pytest
import requests

BASE_URI = 'https://example.service-now.com/api/now'


class FakeResponse:
    """Stands in for a streamed requests.Response."""

    def __init__(self, content=b'', status_code=200, json_data=None):
        self.content = content
        self.status_code = status_code
        self._json = json_data
        self.closed = False

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f"{self.status_code} Error", response=self)

    def iter_content(self, chunk_size=1):
        for start in range(0, len(self.content), chunk_size):
            yield self.content[start:start + chunk_size]

    def json(self):
        return self._json

    def close(self):
        self.closed = True


@pytest.fixture
def auth():
    return {
        'base_uri': BASE_URI,
        'headers': {'Authorization': 'Bearer test-token', 'Accept': 'application/json'},
        'timeout': 30,
    }


@pytest.fixture
def download_dir(tmp_path):
    download_dir = tmp_path / 'downloads'
    download_dir.mkdir()
    return download_dir


@pytest.fixture
def fake_get(monkeypatch):
    """Patch requests.get as seen by attachment_download and return the mock."""
    mock_get = MagicMock(return_value=FakeResponse(b'attachment body'))
    monkeypatch.setattr('attachment_download.requests.get', mock_get)
    return mock_get
