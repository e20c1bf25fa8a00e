"""
Salesforce OAuth2 Token Provider

Obtains and caches an access token for the REST API. The cache lives on the
provider instance, so separate orchestrators (and tests) never share state.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

import requests

from sfsync.reconciliation.errors import CredentialError

logger = logging.getLogger(__name__)

SUPPORTED_GRANTS = ("password", "client_credentials")


@dataclass(frozen=True)
class SalesforceToken:
    """
    Access credential for the Salesforce REST API.

    Attributes:
        access_token: Bearer token
        instance_url: Instance URL reported by the token endpoint
        issued_at: Epoch seconds when the token was obtained
    """

    access_token: str
    instance_url: str
    issued_at: float

    def __str__(self) -> str:
        return self.access_token


class SalesforceAuth:
    """Credential provider for Salesforce using the OAuth2 token endpoint."""

    def __init__(
        self,
        instance_url: str,
        credentials: Dict[str, str],
        grant_type: str = "password",
        auth_path: str = "/services/oauth2/token",
        token_ttl_seconds: int = 3600,
        timeout: float = 30,
        session: Optional[requests.Session] = None,
        clock: Callable[[], float] = time.time
    ):
        """
        Initialize token provider.

        Args:
            instance_url: Salesforce instance base URL
            credentials: client_id, client_secret and, for the password
                grant, username and password
            grant_type: "password" or "client_credentials"
            auth_path: Token endpoint path relative to the instance URL
            token_ttl_seconds: How long a cached token is reused
            timeout: Token request timeout in seconds
            session: Optional requests session
            clock: Time source (epoch seconds)

        Raises:
            ValueError: If the grant type is unsupported or credentials are incomplete
        """
        if grant_type not in SUPPORTED_GRANTS:
            raise ValueError(f"Invalid grant type: {grant_type}. Must be one of {list(SUPPORTED_GRANTS)}")

        required = ["client_id", "client_secret"]
        if grant_type == "password":
            required += ["username", "password"]

        missing = [key for key in required if not credentials.get(key)]
        if missing:
            raise ValueError(f"Missing Salesforce credentials: {', '.join(missing)}")

        self.token_url = f"{instance_url.rstrip('/')}/{auth_path.lstrip('/')}"
        self.instance_url = instance_url.rstrip("/")
        self.grant_type = grant_type
        self.token_ttl_seconds = token_ttl_seconds
        self.timeout = timeout
        self._credentials = dict(credentials)
        self._session = session or requests.Session()
        self._clock = clock
        self._token: Optional[SalesforceToken] = None

    def get_valid_token(self) -> SalesforceToken:
        """
        Return a cached token or request a new one.

        Raises:
            CredentialError: If no valid token can be obtained
        """
        if self._token and self._clock() - self._token.issued_at < self.token_ttl_seconds:
            return self._token

        self._token = self._request_token()
        return self._token

    def invalidate(self) -> None:
        """Drop the cached token so the next call requests a fresh one."""
        self._token = None

    def _request_token(self) -> SalesforceToken:
        data = {"grant_type": self.grant_type}
        data.update(self._credentials)

        try:
            response = self._session.post(self.token_url, data=data, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error(f"Salesforce token request failed: {e}")
            raise CredentialError(f"Token request failed: {e}") from e

        if not response.ok:
            logger.error(f"Salesforce token endpoint returned HTTP {response.status_code}")
            raise CredentialError(
                f"Token request rejected (HTTP {response.status_code}): {response.text}"
            )

        try:
            body = response.json()
        except ValueError as e:
            raise CredentialError(f"Token endpoint returned invalid JSON: {e}") from e

        access_token = body.get("access_token")
        if not access_token:
            raise CredentialError("Token endpoint response has no access_token")

        logger.info("Obtained Salesforce access token")

        return SalesforceToken(
            access_token=access_token,
            instance_url=body.get("instance_url") or self.instance_url,
            issued_at=self._clock()
        )
