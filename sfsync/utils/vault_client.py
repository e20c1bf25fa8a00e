"""
Vault Client Utility for the Sync Agent

Retrieves the Salesforce OAuth credentials and the SAP database credentials
from HashiCorp Vault (KV v2) so that no secret lives in configuration files.
"""

import os
from typing import Dict, Any, Optional, Sequence
from dataclasses import dataclass
import hvac
from hvac.exceptions import VaultError, InvalidPath
import logging

from sfsync.reconciliation.errors import CredentialError

logger = logging.getLogger(__name__)

SALESFORCE_KEYS = ("client_id", "client_secret")
SAP_KEYS = ("user", "password")


@dataclass
class HealthStatus:
    """
    Vault reachability as seen by the agent at start-up.

    Attributes:
        healthy: True if authenticated and unsealed
        authenticated: Whether the token is accepted
        sealed: Whether Vault is sealed
        error: Error message if the check failed
    """

    healthy: bool
    authenticated: bool
    sealed: bool
    error: Optional[str] = None

    def __bool__(self) -> bool:
        return self.healthy


class VaultClient:
    """
    Reads sync agent credentials from a KV v2 mount.

    Secret layout:
        <mount>/<salesforce_path>: client_id, client_secret[, username, password]
        <mount>/<sap_path>: user, password
    """

    def __init__(
        self,
        vault_url: Optional[str] = None,
        vault_token: Optional[str] = None,
        verify_ssl: bool = True,
        mount_point: str = "secret",
        salesforce_path: str = "salesforce-credentials",
        sap_path: str = "sap-credentials"
    ):
        """
        Initialize Vault client.

        Args:
            vault_url: Vault server URL (defaults to VAULT_ADDR env var)
            vault_token: Vault authentication token (defaults to VAULT_TOKEN env var)
            verify_ssl: Whether to verify SSL certificates
            mount_point: KV secrets engine mount point
            salesforce_path: Secret path holding Salesforce OAuth credentials
            sap_path: Secret path holding SAP database credentials

        Raises:
            ValueError: If the URL or token is missing
            VaultError: If Vault rejects the token
        """
        self.vault_url = vault_url or os.getenv("VAULT_ADDR")
        self.vault_token = vault_token or os.getenv("VAULT_TOKEN")
        self.mount_point = mount_point
        self.salesforce_path = salesforce_path
        self.sap_path = sap_path

        if not self.vault_url:
            raise ValueError("Vault URL must be provided via parameter or VAULT_ADDR environment variable")
        if not self.vault_token:
            raise ValueError("Vault token must be provided via parameter or VAULT_TOKEN environment variable")

        self.client = hvac.Client(url=self.vault_url, token=self.vault_token, verify=verify_ssl)

        if not self.client.is_authenticated():
            logger.error(f"Vault at {self.vault_url} rejected the token")
            raise VaultError("Failed to authenticate with Vault")

        logger.info(f"Connected to Vault at {self.vault_url}")

    def get_secret(self, path: str) -> Dict[str, Any]:
        """
        Read the latest version of a KV v2 secret.

        Args:
            path: Secret path under the mount point

        Returns:
            Secret key/value data

        Raises:
            InvalidPath: If the secret does not exist
            VaultError: If the read fails
        """
        logger.debug(f"Reading secret {self.mount_point}/data/{path}")

        try:
            response = self.client.secrets.kv.v2.read_secret_version(
                path=path,
                mount_point=self.mount_point
            )
        except InvalidPath:
            logger.error(f"Secret not found at path: {path}")
            raise
        except VaultError as e:
            logger.error(f"Failed to read secret {path}: {e}")
            raise

        if not response or "data" not in response:
            raise InvalidPath(f"No data found at path: {path}")

        return response["data"].get("data") or {}

    def get_salesforce_credentials(self) -> Dict[str, str]:
        """
        Salesforce OAuth credentials.

        Raises:
            CredentialError: If the secret is missing or incomplete
        """
        return self._get_credentials(self.salesforce_path, SALESFORCE_KEYS)

    def get_sap_credentials(self) -> Dict[str, str]:
        """
        SAP database credentials.

        Raises:
            CredentialError: If the secret is missing or incomplete
        """
        return self._get_credentials(self.sap_path, SAP_KEYS)

    def health_check(self) -> HealthStatus:
        """Check that Vault is reachable, unsealed and accepts the token."""
        try:
            if not self.client.is_authenticated():
                logger.warning("Vault authentication check failed")
                return HealthStatus(healthy=False, authenticated=False, sealed=True, error="Not authenticated")

            sealed = self.client.sys.read_health_status(method="GET").get("sealed", True)
        except (VaultError, OSError) as e:
            logger.error(f"Vault health check failed: {e}")
            return HealthStatus(healthy=False, authenticated=False, sealed=True, error=str(e))

        if sealed:
            logger.warning("Vault is sealed")

        return HealthStatus(
            healthy=not sealed,
            authenticated=True,
            sealed=sealed,
            error="Vault is sealed" if sealed else None
        )

    def close(self):
        """Drop the hvac client."""
        self.client = None
        logger.debug("Vault client closed")

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()

    def _get_credentials(self, path: str, required: Sequence[str]) -> Dict[str, str]:
        try:
            secret = self.get_secret(path)
        except VaultError as e:
            raise CredentialError(f"Cannot read credentials from Vault path {path}: {e}") from e

        missing = [key for key in required if not secret.get(key)]
        if missing:
            raise CredentialError(f"Vault secret {path} is missing: {', '.join(missing)}")

        logger.info(f"Loaded credentials from Vault path {path}")
        return {key: str(value) for key, value in secret.items()}
