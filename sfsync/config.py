"""
Configuration for the Sync Agent

Settings are read from a YAML file and overridden from environment
variables. Secrets never live in the file: they come from Vault when it is
enabled, otherwise from environment variables.
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

import yaml

from sfsync.reconciliation.errors import ConfigError, CredentialError
from sfsync.reconciliation.mapping import RecordMapping
from sfsync.utils.vault_client import VaultClient

logger = logging.getLogger(__name__)


@dataclass
class SalesforceSettings:
    instance_url: str = ""
    api_version: str = "v60.0"
    auth_path: str = "/services/oauth2/token"
    grant_type: str = "password"
    request_timeout: float = 30
    token_ttl_seconds: int = 3600


@dataclass
class SapSettings:
    url: Optional[str] = None
    host: Optional[str] = None
    port: int = 30015
    database: Optional[str] = None
    drivername: str = "hana+hdbcli"


@dataclass
class VaultSettings:
    enabled: bool = False
    url: Optional[str] = None
    mount_point: str = "secret"
    salesforce_path: str = "salesforce-credentials"
    sap_path: str = "sap-credentials"
    verify_ssl: bool = True


@dataclass
class RuntimeSettings:
    interval_seconds: int = 300
    max_pages: int = 1000
    metrics_port: int = 9108
    json_logging: bool = False


@dataclass
class SyncConfig:
    """Complete agent configuration."""

    salesforce: SalesforceSettings = field(default_factory=SalesforceSettings)
    sap: SapSettings = field(default_factory=SapSettings)
    vault: VaultSettings = field(default_factory=VaultSettings)
    runtime: RuntimeSettings = field(default_factory=RuntimeSettings)
    records: List[RecordMapping] = field(default_factory=list)

    def get_record(self, name: str) -> RecordMapping:
        for record in self.records:
            if record.name == name:
                return record
        raise ConfigError(f"Unknown record type '{name}'. Configured: {[r.name for r in self.records]}")


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "on")


def _section(data: Dict[str, Any], name: str) -> Dict[str, Any]:
    section = data.get(name) or {}
    if not isinstance(section, dict):
        raise ConfigError(f"Configuration section '{name}' must be a mapping")
    return dict(section)


def _build(cls, values: Dict[str, Any], section: str):
    try:
        return cls(**values)
    except TypeError as e:
        raise ConfigError(f"Invalid '{section}' settings: {e}") from e


def parse_config(data: Dict[str, Any], environ: Optional[Mapping[str, str]] = None) -> SyncConfig:
    """
    Build a SyncConfig from parsed YAML data and environment overrides.

    Args:
        data: Parsed YAML document
        environ: Environment mapping (defaults to os.environ)

    Returns:
        Validated SyncConfig

    Raises:
        ConfigError: If required settings are missing or invalid
    """
    env = os.environ if environ is None else environ

    salesforce = _section(data, "salesforce")
    sap = _section(data, "sap")
    vault = _section(data, "vault")
    runtime = _section(data, "runtime")

    if env.get("SF_INSTANCE_URL"):
        salesforce["instance_url"] = env["SF_INSTANCE_URL"]
    if env.get("SF_API_VERSION"):
        salesforce["api_version"] = env["SF_API_VERSION"]
    if env.get("SAP_DATABASE_URL"):
        sap["url"] = env["SAP_DATABASE_URL"]
    if env.get("VAULT_ADDR"):
        vault["url"] = env["VAULT_ADDR"]
    if env.get("SYNC_INTERVAL_SECONDS"):
        runtime["interval_seconds"] = int(env["SYNC_INTERVAL_SECONDS"])
    if env.get("METRICS_PORT"):
        runtime["metrics_port"] = int(env["METRICS_PORT"])
    if env.get("JSON_LOGGING"):
        runtime["json_logging"] = _as_bool(env["JSON_LOGGING"])

    config = SyncConfig(
        salesforce=_build(SalesforceSettings, salesforce, "salesforce"),
        sap=_build(SapSettings, sap, "sap"),
        vault=_build(VaultSettings, vault, "vault"),
        runtime=_build(RuntimeSettings, runtime, "runtime"),
    )

    records = data.get("records") or {}
    if not isinstance(records, dict) or not records:
        raise ConfigError("At least one record mapping must be configured under 'records'")

    config.records = [RecordMapping.from_dict(name, block or {}) for name, block in records.items()]

    if not config.salesforce.instance_url:
        raise ConfigError("salesforce.instance_url (or SF_INSTANCE_URL) must be set")
    if not config.sap.url and not config.sap.host:
        raise ConfigError("sap.url, sap.host or SAP_DATABASE_URL must be set")
    if config.runtime.interval_seconds <= 0:
        raise ConfigError("runtime.interval_seconds must be positive")

    return config


def load_config(path: str, environ: Optional[Mapping[str, str]] = None) -> SyncConfig:
    """
    Load configuration from a YAML file.

    Args:
        path: Path to the YAML file
        environ: Environment mapping (defaults to os.environ)

    Raises:
        ConfigError: If the file is missing, unparsable or invalid
    """
    try:
        with open(path, 'r') as f:
            data = yaml.safe_load(f) or {}
    except OSError as e:
        raise ConfigError(f"Cannot read configuration file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Configuration file {path} must contain a mapping")

    config = parse_config(data, environ)
    logger.info(f"Loaded configuration from {path} with {len(config.records)} record types")
    return config


def resolve_secrets(
    config: SyncConfig,
    environ: Optional[Mapping[str, str]] = None,
    vault_client=None
) -> Tuple[Dict[str, str], Dict[str, str]]:
    """
    Resolve Salesforce and SAP credentials.

    Args:
        config: Loaded configuration
        environ: Environment mapping (defaults to os.environ)
        vault_client: Optional pre-built VaultClient

    Returns:
        (salesforce credentials, sap credentials)

    Raises:
        CredentialError: If Vault is enabled but unhealthy or the secrets are incomplete
    """
    env = os.environ if environ is None else environ

    if config.vault.enabled:
        if vault_client is None:
            vault_client = VaultClient(
                vault_url=config.vault.url,
                verify_ssl=config.vault.verify_ssl,
                mount_point=config.vault.mount_point,
                salesforce_path=config.vault.salesforce_path,
                sap_path=config.vault.sap_path
            )

        with vault_client:
            status = vault_client.health_check()
            if not status:
                logger.error(f"Vault health check failed: {status.error}")
                raise CredentialError(f"Vault is not usable: {status.error}")
            return vault_client.get_salesforce_credentials(), vault_client.get_sap_credentials()

    salesforce = {
        "client_id": env.get("SF_CLIENT_ID", ""),
        "client_secret": env.get("SF_CLIENT_SECRET", ""),
        "username": env.get("SF_USERNAME", ""),
        "password": env.get("SF_PASSWORD", ""),
    }
    sap = {
        "user": env.get("SAP_USER", ""),
        "password": env.get("SAP_PASSWORD", ""),
    }

    logger.debug("Using credentials from environment variables")
    return salesforce, sap
