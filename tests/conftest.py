"""
Shared fixtures: a real ES256 key, a mocked requests.Session and a client wired to it.
"""

import json

import pytest
from unittest.mock import Mock
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec

from asc_client import AppStoreConnectAPI


def make_response(status_code=200, body=b"", headers=None):
    """Build a fake requests.Response."""
    response = Mock()
    response.status_code = status_code
    if isinstance(body, (dict, list)):
        body = json.dumps(body).encode("utf-8")
    elif isinstance(body, str):
        body = body.encode("utf-8")
    response.content = body
    response.headers = headers or {}
    return response


@pytest.fixture
def ec_key():
    return ec.generate_private_key(ec.SECP256R1())


@pytest.fixture
def private_key_pem(ec_key):
    """PEM (PKCS#8) text of a P-256 key, the format of an App Store Connect .p8 file."""
    return ec_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("utf-8")


@pytest.fixture
def key_file(tmp_path, private_key_pem):
    path = tmp_path / "AuthKey_TEST123.p8"
    path.write_text(private_key_pem)
    return path


@pytest.fixture
def mock_session():
    session = Mock()
    session.request.return_value = make_response(200, {"data": []})
    return session


@pytest.fixture
def api_client(private_key_pem, mock_session):
    """Create a test API client instance backed by a mocked session."""
    return AppStoreConnectAPI(
        key_id="TEST123",
        issuer_id="issuer-uuid",
        private_key=private_key_pem,
        session=mock_session,
    )


def sent_request(session, index=-1):
    """Return the keyword arguments of a request made on the mocked session."""
    return session.request.call_args_list[index].kwargs
