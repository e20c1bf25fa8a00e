"""
Unit tests for vault_client module.
"""

import pytest
from unittest.mock import MagicMock, patch
from hvac.exceptions import InvalidPath, VaultError

from sfsync.reconciliation.errors import CredentialError
from sfsync.utils.vault_client import VaultClient


def _secret(data):
    return {"data": {"data": data}}


class TestVaultClient:
    """Test suite for VaultClient class."""

    @pytest.fixture
    def mock_hvac_client(self):
        """Mock hvac.Client for testing."""
        with patch('sfsync.utils.vault_client.hvac.Client') as mock:
            client_instance = MagicMock()
            client_instance.is_authenticated.return_value = True
            mock.return_value = client_instance
            yield mock

    @pytest.fixture
    def vault(self, mock_hvac_client):
        return VaultClient(vault_url="http://test:8200", vault_token="test-token")

    def test_init_with_parameters(self, mock_hvac_client):
        client = VaultClient(
            vault_url="http://test-vault:8200",
            vault_token="test-token",
            salesforce_path="sf/prod"
        )

        assert client.vault_url == "http://test-vault:8200"
        assert client.mount_point == "secret"
        assert client.salesforce_path == "sf/prod"
        mock_hvac_client.assert_called_once_with(url="http://test-vault:8200", token="test-token", verify=True)

    def test_init_with_env_vars(self, mock_hvac_client, monkeypatch):
        monkeypatch.setenv("VAULT_ADDR", "http://env-vault:8200")
        monkeypatch.setenv("VAULT_TOKEN", "env-token")

        client = VaultClient()

        assert client.vault_url == "http://env-vault:8200"
        assert client.vault_token == "env-token"

    def test_init_missing_url_raises_error(self, monkeypatch):
        monkeypatch.delenv("VAULT_ADDR", raising=False)
        with pytest.raises(ValueError, match="Vault URL must be provided"):
            VaultClient(vault_token="test-token")

    def test_init_missing_token_raises_error(self, monkeypatch):
        monkeypatch.delenv("VAULT_TOKEN", raising=False)
        with pytest.raises(ValueError, match="Vault token must be provided"):
            VaultClient(vault_url="http://test:8200")

    def test_init_authentication_failure(self, mock_hvac_client):
        mock_hvac_client.return_value.is_authenticated.return_value = False

        with pytest.raises(VaultError, match="Failed to authenticate"):
            VaultClient(vault_url="http://test:8200", vault_token="bad-token")

    def test_get_secret(self, vault, mock_hvac_client):
        mock_hvac_client.return_value.secrets.kv.v2.read_secret_version.return_value = _secret({"user": "SYSTEM"})

        assert vault.get_secret("sap-credentials") == {"user": "SYSTEM"}

    def test_get_secret_invalid_path(self, vault, mock_hvac_client):
        mock_hvac_client.return_value.secrets.kv.v2.read_secret_version.side_effect = InvalidPath("nope")

        with pytest.raises(InvalidPath):
            vault.get_secret("missing")

    def test_get_salesforce_credentials(self, vault, mock_hvac_client):
        read = mock_hvac_client.return_value.secrets.kv.v2.read_secret_version
        read.return_value = _secret({"client_id": "cid", "client_secret": "s", "username": "u", "password": "p"})

        credentials = vault.get_salesforce_credentials()

        assert credentials["client_id"] == "cid"
        read.assert_called_once_with(path="salesforce-credentials", mount_point="secret")

    def test_incomplete_sap_credentials(self, vault, mock_hvac_client):
        mock_hvac_client.return_value.secrets.kv.v2.read_secret_version.return_value = _secret({"user": "SYSTEM"})

        with pytest.raises(CredentialError, match="missing: password"):
            vault.get_sap_credentials()

    def test_missing_credentials_path(self, vault, mock_hvac_client):
        mock_hvac_client.return_value.secrets.kv.v2.read_secret_version.side_effect = InvalidPath("nope")

        with pytest.raises(CredentialError, match="sap-credentials"):
            vault.get_sap_credentials()

    def test_health_check_healthy(self, vault, mock_hvac_client):
        mock_hvac_client.return_value.sys.read_health_status.return_value = {"sealed": False}

        status = vault.health_check()

        assert status
        assert status.authenticated
        assert status.error is None

    def test_health_check_sealed(self, vault, mock_hvac_client):
        mock_hvac_client.return_value.sys.read_health_status.return_value = {"sealed": True}

        status = vault.health_check()

        assert not status
        assert status.error == "Vault is sealed"

    def test_health_check_unreachable(self, vault, mock_hvac_client):
        mock_hvac_client.return_value.is_authenticated.side_effect = VaultError("connection refused")

        status = vault.health_check()

        assert not status.healthy
        assert "connection refused" in status.error

    def test_context_manager(self, mock_hvac_client):
        with VaultClient(vault_url="http://test:8200", vault_token="t") as client:
            assert client.client is not None

        assert client.client is None
