"""Configuration management for azdo-mcp with structured settings and validation."""

import logging
import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

from .errors import AdoConfigurationError

logger = logging.getLogger(__name__)

# Load environment variables
load_dotenv()

DEFAULT_BASE_URL = "https://dev.azure.com"
DEFAULT_VSSPS_URL = "https://app.vssps.visualstudio.com"


def _env_bool(name: str, default: bool) -> bool:
    return os.getenv(name, str(default)).strip().lower() in ("1", "true", "yes", "on")


def _env_str(name: str) -> str | None:
    value = os.getenv(name)
    if value is None or not value.strip():
        return None
    return value.strip()


@dataclass
class RetryConfig:
    """Configuration for retry policies with exponential backoff."""

    max_retries: int = 3
    initial_delay: float = 1.0
    max_delay: float = 30.0
    backoff_multiplier: float = 2.0
    jitter: bool = True

    def __post_init__(self):
        """Validate retry configuration values."""
        if self.max_retries < 0:
            raise AdoConfigurationError(
                "max_retries must be non-negative", context={"max_retries": self.max_retries}
            )

        if self.initial_delay <= 0:
            raise AdoConfigurationError(
                "initial_delay must be positive", context={"initial_delay": self.initial_delay}
            )

        if self.max_delay <= 0:
            raise AdoConfigurationError(
                "max_delay must be positive", context={"max_delay": self.max_delay}
            )

        if self.backoff_multiplier <= 1.0:
            raise AdoConfigurationError(
                "backoff_multiplier must be greater than 1.0",
                context={"backoff_multiplier": self.backoff_multiplier},
            )


@dataclass
class AuthConfig:
    """Configuration for Azure CLI token acquisition."""

    timeout_seconds: int = 30
    refresh_margin_seconds: int = 300

    def __post_init__(self):
        """Validate authentication configuration values."""
        if self.timeout_seconds <= 0:
            raise AdoConfigurationError(
                "timeout_seconds must be positive",
                context={"timeout_seconds": self.timeout_seconds},
            )

        if self.refresh_margin_seconds < 0:
            raise AdoConfigurationError(
                "refresh_margin_seconds must be non-negative",
                context={"refresh_margin_seconds": self.refresh_margin_seconds},
            )


@dataclass
class ConnectionPoolConfig:
    """Configuration for HTTP connection pooling."""

    max_pool_connections: int = 10
    max_pool_size: int = 20

    def __post_init__(self):
        """Validate connection pool configuration values."""
        if self.max_pool_connections <= 0:
            raise AdoConfigurationError(
                "max_pool_connections must be positive",
                context={"max_pool_connections": self.max_pool_connections},
            )

        if self.max_pool_size <= 0:
            raise AdoConfigurationError(
                "max_pool_size must be positive", context={"max_pool_size": self.max_pool_size}
            )


@dataclass
class TelemetryConfig:
    """Configuration for OpenTelemetry tracing."""

    enabled: bool = True
    service_name: str = "azdo-mcp"
    service_version: str = "0.1.0"
    trace_sampling_rate: float = 1.0

    def __post_init__(self):
        """Validate telemetry configuration values."""
        if not 0.0 <= self.trace_sampling_rate <= 1.0:
            raise AdoConfigurationError(
                "trace_sampling_rate must be between 0.0 and 1.0",
                context={"trace_sampling_rate": self.trace_sampling_rate},
            )


@dataclass
class AzdoMcpConfig:
    """
    Main configuration class for azdo-mcp.

    Explicit constructor values win over environment variables, which win over
    the dataclass defaults. The organization and project are only defaults:
    every scoped tool can override them per call.
    """

    # Core settings
    organization: str | None = None
    project: str | None = None
    base_url: str | None = None
    vssps_url: str | None = None

    # Sub-configurations
    retry: RetryConfig = field(default_factory=RetryConfig)
    auth: AuthConfig = field(default_factory=AuthConfig)
    telemetry: TelemetryConfig = field(default_factory=TelemetryConfig)
    connection_pool: ConnectionPoolConfig = field(default_factory=ConnectionPoolConfig)

    # Request settings
    request_timeout_seconds: int = 30

    def __post_init__(self):
        """Load configuration from environment variables and validate."""
        self.organization = (self.organization or "").strip() or _env_str("AZDO_ORGANIZATION")
        self.project = (self.project or "").strip() or _env_str("AZDO_PROJECT")
        self.base_url = (self.base_url or _env_str("AZDO_BASE_URL") or DEFAULT_BASE_URL).rstrip(
            "/"
        )
        self.vssps_url = (
            self.vssps_url or _env_str("AZDO_VSSPS_URL") or DEFAULT_VSSPS_URL
        ).rstrip("/")

        try:
            # Override retry config from environment
            self.retry.max_retries = int(
                os.getenv("AZDO_RETRY_MAX_RETRIES", self.retry.max_retries)
            )
            self.retry.initial_delay = float(
                os.getenv("AZDO_RETRY_INITIAL_DELAY", self.retry.initial_delay)
            )
            self.retry.max_delay = float(os.getenv("AZDO_RETRY_MAX_DELAY", self.retry.max_delay))
            self.retry.backoff_multiplier = float(
                os.getenv("AZDO_RETRY_BACKOFF_MULTIPLIER", self.retry.backoff_multiplier)
            )
            self.retry.jitter = _env_bool("AZDO_RETRY_JITTER", self.retry.jitter)

            # Override auth config from environment
            self.auth.timeout_seconds = int(
                os.getenv("AZDO_AUTH_TIMEOUT", self.auth.timeout_seconds)
            )
            self.auth.refresh_margin_seconds = int(
                os.getenv("AZDO_AUTH_REFRESH_MARGIN", self.auth.refresh_margin_seconds)
            )

            # Override telemetry config from environment
            self.telemetry.enabled = _env_bool("AZDO_TELEMETRY_ENABLED", self.telemetry.enabled)
            self.telemetry.service_name = os.getenv(
                "AZDO_TELEMETRY_SERVICE_NAME", self.telemetry.service_name
            )
            self.telemetry.trace_sampling_rate = float(
                os.getenv("AZDO_TELEMETRY_TRACE_SAMPLING_RATE", self.telemetry.trace_sampling_rate)
            )

            # Override connection pool config from environment
            self.connection_pool.max_pool_connections = int(
                os.getenv(
                    "AZDO_CONNECTION_POOL_MAX_CONNECTIONS",
                    self.connection_pool.max_pool_connections,
                )
            )
            self.connection_pool.max_pool_size = int(
                os.getenv("AZDO_CONNECTION_POOL_MAX_SIZE", self.connection_pool.max_pool_size)
            )

            self.request_timeout_seconds = int(
                os.getenv("AZDO_REQUEST_TIMEOUT", self.request_timeout_seconds)
            )
        except ValueError as e:
            raise AdoConfigurationError(
                f"Invalid numeric configuration value: {e}", original_exception=e
            ) from e

        # Re-run sub-config validation now that environment overrides are applied
        for sub_config in (self.retry, self.auth, self.telemetry, self.connection_pool):
            sub_config.__post_init__()

        self._validate()

        logger.info(
            f"Configuration loaded: organization={self.organization}, project={self.project}, "
            f"retry_max={self.retry.max_retries}, "
            f"request_timeout={self.request_timeout_seconds}, "
            f"telemetry_enabled={self.telemetry.enabled}"
        )

    def _validate(self):
        """Validate the complete configuration."""
        if self.request_timeout_seconds <= 0:
            raise AdoConfigurationError(
                "request_timeout_seconds must be positive",
                context={"request_timeout_seconds": self.request_timeout_seconds},
            )

        if self.connection_pool.max_pool_size < self.connection_pool.max_pool_connections:
            raise AdoConfigurationError(
                "connection_pool.max_pool_size must be >= max_pool_connections",
                context={
                    "max_pool_size": self.connection_pool.max_pool_size,
                    "max_pool_connections": self.connection_pool.max_pool_connections,
                },
            )

        for name, url in (("base_url", self.base_url), ("vssps_url", self.vssps_url)):
            if not url.startswith(("https://", "http://")):
                raise AdoConfigurationError(
                    f"{name} must be an http(s) URL", context={name: url}
                )

    @classmethod
    def from_env(cls, **overrides) -> "AzdoMcpConfig":
        """
        Create configuration from environment variables with optional overrides.

        Args:
            **overrides: Configuration values to override

        Returns:
            AzdoMcpConfig: Configured instance
        """
        return cls(**overrides)
