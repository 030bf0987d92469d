"""Test suite for the Vault reader."""
from unittest import mock

import pytest
from hvac.exceptions import Forbidden, VaultError

from vault_synchronizer.secrets.domains.config_loader import VaultSettings
from vault_synchronizer.secrets.domains.errors import DecodeError, RemoteFetchError
from vault_synchronizer.secrets.domains.vault_client import VaultSecretReader, decode_kv_payload


def kv_response(fields):
    return {
        "request_id": "3c1f",
        "lease_id": "",
        "data": {"data": fields, "metadata": {"version": 3}},
    }


@pytest.fixture
def hvac_client():
    return mock.MagicMock()


@pytest.fixture
def vault_reader(hvac_client):
    return VaultSecretReader(VaultSettings(), "s.token", client=hvac_client)


class TestDecodeKvPayload:
    """Test suite for the typed decode step."""

    def test_string_fields(self):
        fields = decode_kv_payload("secret/data/db", kv_response({"user": "app", "pass": "pw"}))

        assert fields == {"user": "app", "pass": "pw"}

    def test_empty_payload(self):
        assert decode_kv_payload("secret/data/db", kv_response({})) == {}

    @pytest.mark.parametrize("response", [
        {},
        {"data": None},
        {"data": {"user": "app"}},
        {"data": {"data": ["not", "a", "mapping"]}},
        "not-a-dict",
    ])
    def test_missing_data_mapping(self, response):
        """Test that a response without data.data is rejected."""
        with pytest.raises(DecodeError) as exc_info:
            decode_kv_payload("secret/data/db", response)

        assert exc_info.value.source_id == "secret/data/db"

    def test_non_string_value(self):
        """Test that nested or numeric values are rejected."""
        with pytest.raises(DecodeError) as exc_info:
            decode_kv_payload("secret/data/db", kv_response({"port": 5432}))

        assert "port" in str(exc_info.value)


class TestVaultSecretReader:
    """Test suite for VaultSecretReader.read."""

    def test_read(self, vault_reader, hvac_client):
        hvac_client.read.return_value = kv_response({"token": "abc"})

        assert vault_reader.read("secret/data/app") == {"token": "abc"}
        hvac_client.read.assert_called_once_with("secret/data/app")

    def test_not_found(self, vault_reader, hvac_client):
        """Test that an absent secret is a remote fetch error."""
        hvac_client.read.return_value = None

        with pytest.raises(RemoteFetchError) as exc_info:
            vault_reader.read("secret/data/missing")

        assert "not found" in str(exc_info.value)
        assert not isinstance(exc_info.value, DecodeError)

    @pytest.mark.parametrize("error", [
        Forbidden("permission denied"),
        VaultError("internal error"),
        ConnectionError("connection refused"),
    ])
    def test_request_failure(self, vault_reader, hvac_client, error):
        """Test that permission, server and network errors are wrapped."""
        hvac_client.read.side_effect = error

        with pytest.raises(RemoteFetchError) as exc_info:
            vault_reader.read("secret/data/app")

        assert exc_info.value.__cause__ is error

    def test_client_built_from_settings(self):
        """Test that the hvac client receives address, token, TLS and namespace."""
        settings = VaultSettings(addr="https://vault:8200", namespace="ops", verify="/ca.pem")

        with mock.patch("vault_synchronizer.secrets.domains.vault_client.hvac.Client") as client_cls:
            reader = VaultSecretReader(settings, "s.token")
            client_cls.assert_not_called()
            reader.client

        client_cls.assert_called_once_with(
            url="https://vault:8200",
            token="s.token",
            verify="/ca.pem",
            cert=None,
            timeout=30,
            namespace="ops",
        )

    def test_client_certificate_and_timeout(self):
        """Test that mutual TLS and the timeout are passed to the hvac client."""
        settings = VaultSettings(cert=("/tls/client.crt", "/tls/client.key"), timeout=5)

        with mock.patch("vault_synchronizer.secrets.domains.vault_client.hvac.Client") as client_cls:
            VaultSecretReader(settings, "s.token").client

        kwargs = client_cls.call_args.kwargs
        assert kwargs["cert"] == ("/tls/client.crt", "/tls/client.key")
        assert kwargs["timeout"] == 5
