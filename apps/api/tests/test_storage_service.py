"""Tests for signed document URLs."""

import pytest
from botocore.exceptions import ClientError

from vault_api.core.config import settings
from vault_api.core.errors import ConfigurationError
from vault_api.services import storage_service


class _FakeS3:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls = []

    def generate_presigned_url(self, operation, Params, ExpiresIn):
        self.calls.append((operation, Params, ExpiresIn))
        if self.fail:
            raise ClientError({"Error": {"Code": "AccessDenied", "Message": "denied"}}, operation)
        return f"https://s3.test/{Params['Bucket']}/{Params['Key']}?X-Amz-Expires={ExpiresIn}"


def test_local_backend_url(monkeypatch):
    monkeypatch.setattr(settings, "STORAGE_BACKEND", "local")

    url = storage_service.create_signed_url("owner 1/will.pdf", 60)

    assert url == "/storage/local/owner%201/will.pdf?expires_in=60"


def test_s3_backend_presigns_get_object(monkeypatch):
    fake = _FakeS3()
    monkeypatch.setattr(settings, "STORAGE_BACKEND", "s3")
    monkeypatch.setattr(settings, "S3_BUCKET", "vault-docs")
    monkeypatch.setattr(storage_service, "get_s3_client", lambda: fake)

    url = storage_service.create_signed_url("owner/will.pdf")

    assert url.startswith("https://s3.test/vault-docs/owner/will.pdf")
    assert fake.calls == [
        ("get_object", {"Bucket": "vault-docs", "Key": "owner/will.pdf"}, settings.SIGNED_URL_TTL_SECONDS)
    ]


def test_s3_signing_failure_is_configuration_error(monkeypatch):
    monkeypatch.setattr(settings, "STORAGE_BACKEND", "s3")
    monkeypatch.setattr(storage_service, "get_s3_client", lambda: _FakeS3(fail=True))

    with pytest.raises(ConfigurationError):
        storage_service.create_signed_url("owner/will.pdf")


def test_unknown_backend_is_rejected(monkeypatch):
    monkeypatch.setattr(settings, "STORAGE_BACKEND", "ftp")

    with pytest.raises(ConfigurationError):
        storage_service.create_signed_url("owner/will.pdf")
