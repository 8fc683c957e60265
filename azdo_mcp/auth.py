"""Azure CLI backed authentication with credential caching for azdo-mcp."""

import json
import logging
import shutil
import subprocess
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime

from .config import AuthConfig
from .errors import AdoAuthenticationError

logger = logging.getLogger(__name__)

# Application ID of Azure DevOps in Microsoft Entra ID
AZURE_DEVOPS_RESOURCE_ID = "499b84ac-1321-427f-aa17-267ca6975798"


@dataclass
class AuthCredential:
    """Represents a short-lived bearer credential."""

    token: str
    method: str
    expires_at: float | None = None

    def is_expired(self, margin_seconds: float = 0) -> bool:
        """Check if the credential is expired, or will be within the margin."""
        if self.expires_at is None:
            return False
        return time.time() + margin_seconds >= self.expires_at

    def to_header(self) -> dict[str, str]:
        """Convert credential to HTTP Authorization header."""
        return {"Authorization": f"Bearer {self.token}"}


class AuthProvider(ABC):
    """Abstract base class for authentication providers."""

    @abstractmethod
    def get_credential(self) -> AuthCredential | None:
        """Get authentication credential."""
        pass

    @abstractmethod
    def get_name(self) -> str:
        """Get provider name."""
        pass


def _parse_expiry(token_data: dict) -> float | None:
    # Newer CLI versions return a POSIX timestamp, older ones a local time string
    expires_on = token_data.get("expires_on")
    if expires_on is not None:
        try:
            return float(expires_on)
        except (TypeError, ValueError):
            logger.warning(f"Could not parse token expiration: {expires_on}")

    expires_on = token_data.get("expiresOn")
    if expires_on:
        try:
            return datetime.fromisoformat(str(expires_on)).timestamp()
        except ValueError:
            logger.warning(f"Could not parse token expiration: {expires_on}")
    return None


class AzureCliAuthProvider(AuthProvider):
    """Microsoft Entra token for Azure DevOps taken from the Azure CLI login session."""

    def __init__(self, timeout: int = 30):
        """Initialize with timeout."""
        self.timeout = timeout

    def get_credential(self) -> AuthCredential | None:
        """Get a Microsoft Entra token for Azure DevOps via `az account get-access-token`."""
        az_executable = shutil.which("az")
        if not az_executable:
            logger.debug("Azure CLI executable 'az' not found on PATH")
            return None

        try:
            result = subprocess.run(
                [
                    az_executable,
                    "account",
                    "get-access-token",
                    "--resource",
                    AZURE_DEVOPS_RESOURCE_ID,
                    "--output",
                    "json",
                ],
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except (subprocess.TimeoutExpired, OSError) as e:
            logger.debug(f"Azure CLI token request failed: {e}")
            return None

        if result.returncode != 0:
            logger.debug(f"Azure CLI token request failed: {result.stderr.strip()}")
            return None

        try:
            token_data = json.loads(result.stdout)
        except json.JSONDecodeError as e:
            logger.warning(f"Azure CLI returned invalid JSON: {e}")
            return None

        access_token = token_data.get("accessToken")
        if not access_token:
            logger.warning("Azure CLI returned empty access token")
            return None

        logger.info("Obtained Azure CLI Microsoft Entra token for Azure DevOps")
        return AuthCredential(
            token=access_token,
            method="azure_cli",
            expires_at=_parse_expiry(token_data),
        )

    def get_name(self) -> str:
        """Get provider name."""
        return "Azure CLI"


class AuthManager:
    """
    Manages authentication with credential chaining and caching.

    Providers are tried in order until one returns a credential. The credential
    is cached until it is about to expire, so most requests never spawn the
    Azure CLI.
    """

    def __init__(self, config: AuthConfig, providers: list[AuthProvider] | None = None):
        """Initialize authentication manager."""
        self.config = config
        self.providers: list[AuthProvider] = list(providers or [])
        self.cached_credential: AuthCredential | None = None
        self._lock = threading.Lock()

    def add_provider(self, provider: AuthProvider):
        """Add an authentication provider to the chain."""
        self.providers.append(provider)
        logger.debug(f"Added auth provider: {provider.get_name()}")

    def setup_default_providers(self):
        """Set up the default provider chain."""
        self.providers.clear()
        self.add_provider(AzureCliAuthProvider(self.config.timeout_seconds))

    def get_credential(self) -> AuthCredential:
        """
        Get authentication credential using credential chaining.

        Returns:
            AuthCredential: Valid authentication credential

        Raises:
            AdoAuthenticationError: If no authentication method succeeds
        """
        with self._lock:
            if self._is_cached_credential_valid():
                return self.cached_credential

            for provider in self.providers:
                try:
                    credential = provider.get_credential()
                except Exception as e:
                    logger.warning(f"Authentication provider {provider.get_name()} failed: {e}")
                    continue

                if credential and not credential.is_expired():
                    logger.info(f"Authenticated using {provider.get_name()}")
                    self.cached_credential = credential
                    return credential
                elif credential:
                    logger.debug(f"Credential from {provider.get_name()} is expired")
                else:
                    logger.debug(f"No credential available from {provider.get_name()}")

        provider_names = [p.get_name() for p in self.providers]
        raise AdoAuthenticationError(
            "No Azure CLI credential available. Run 'az login' and retry. "
            f"Tried: {', '.join(provider_names) or 'no providers'}",
            context={"providers_tried": provider_names},
        )

    def _is_cached_credential_valid(self) -> bool:
        if not self.cached_credential:
            return False
        return not self.cached_credential.is_expired(self.config.refresh_margin_seconds)

    def invalidate_cache(self):
        """Invalidate the cached credential."""
        with self._lock:
            self.cached_credential = None
        logger.debug("Authentication cache invalidated")

    def get_auth_headers(self) -> dict[str, str]:
        """
        Get authentication headers for HTTP requests.

        Returns:
            dict[str, str]: Headers dictionary with authentication
        """
        return self.get_credential().to_header()

    def get_auth_method(self) -> str:
        """Get the method of the cached credential, or "none"."""
        if self.cached_credential:
            return self.cached_credential.method
        return "none"
