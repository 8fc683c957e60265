"""Azure DevOps REST client with authentication, retries and error mapping."""

import logging
import uuid
from contextlib import contextmanager
from typing import Any
from urllib.parse import quote

import requests
from opentelemetry import trace
from requests.adapters import HTTPAdapter

from .auth import AuthManager
from .config import AzdoMcpConfig
from .errors import (
    AdoApiError,
    AdoAuthenticationError,
    AdoNetworkError,
    AdoNotFoundError,
    AdoRateLimitError,
    AdoTimeoutError,
)
from .retry import RetryManager
from .telemetry import get_telemetry_manager, initialize_telemetry

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

API_VERSION = "7.1"
IDEMPOTENT_METHODS = frozenset({"GET", "HEAD", "OPTIONS"})


def path_segment(value: str) -> str:
    """Percent-encode a single URL path segment (organization, project, team, ...)."""
    return quote(value, safe="")


class AzureDevOpsClient:
    """
    A client for the Azure DevOps REST API.

    Holds the pooled HTTP session, the credential manager and the retry policy.
    It is not bound to an organization or project: every call names its own
    scope, so a single instance serves concurrent requests for any project.

    Authentication uses the Microsoft Entra token of the local Azure CLI login
    (``az account get-access-token``). The token is fetched on first use and
    cached until shortly before it expires.

    Args:
        config (AzdoMcpConfig, optional): Configuration, read from the
            environment when omitted.
        auth_manager (AuthManager, optional): Credential source. Defaults to
            the Azure CLI provider chain.
        session (requests.Session, optional): HTTP session. Defaults to a
            pooled session built from the configuration.
    """

    def __init__(
        self,
        config: AzdoMcpConfig | None = None,
        auth_manager: AuthManager | None = None,
        session: requests.Session | None = None,
    ):
        self.config = config or AzdoMcpConfig()

        self.telemetry = get_telemetry_manager()
        if not self.telemetry and self.config.telemetry.enabled:
            self.telemetry = initialize_telemetry(self.config.telemetry)

        self.retry_manager = RetryManager(self.config.retry)
        self.session = session or self._create_session()
        self.correlation_id = str(uuid.uuid4())

        if auth_manager is None:
            auth_manager = AuthManager(self.config.auth)
            auth_manager.setup_default_providers()
        self.auth_manager = auth_manager

        logger.info(
            f"AzureDevOpsClient created for base_url={self.config.base_url} "
            f"with correlation_id={self.correlation_id}"
        )

    def _create_session(self) -> requests.Session:
        """
        Create a requests session with connection pooling.

        Returns:
            requests.Session: Configured session with pooling
        """
        session = requests.Session()
        adapter = HTTPAdapter(
            pool_connections=self.config.connection_pool.max_pool_connections,
            pool_maxsize=self.config.connection_pool.max_pool_size,
        )
        session.mount("http://", adapter)
        session.mount("https://", adapter)
        return session

    def close(self):
        """Close the underlying HTTP session."""
        if hasattr(self.session, "close"):
            logger.info("Closing HTTP session")
            self.session.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    @contextmanager
    def trace_operation(self, operation: str, **attributes):
        """
        Open a span named ``azdo_{operation}`` for one logical API operation.

        Args:
            operation: Name of the operation
            **attributes: Span attributes; None values are skipped
        """
        attributes.setdefault("correlation_id", self.correlation_id)
        if self.telemetry:
            with self.telemetry.trace_api_call(operation, **attributes) as span:
                yield span
            return

        with tracer.start_as_current_span(f"azdo_{operation}") as span:
            span.set_attribute("azdo.operation", operation)
            for key, value in attributes.items():
                if value is not None:
                    span.set_attribute(key, value)
            yield span

    # URL builders

    def org_url(self, organization: str, path: str) -> str:
        """URL of an organization-level API, e.g. ``projects``."""
        return f"{self.config.base_url}/{path_segment(organization)}/_apis/{path}"

    def project_url(self, organization: str, project: str, path: str) -> str:
        """URL of a project-level API, e.g. ``wit/workitems``."""
        return (
            f"{self.config.base_url}/{path_segment(organization)}/"
            f"{path_segment(project)}/_apis/{path}"
        )

    def team_url(self, organization: str, project: str, team: str, path: str) -> str:
        """URL of a team-level API, e.g. ``work/boards``."""
        return (
            f"{self.config.base_url}/{path_segment(organization)}/{path_segment(project)}/"
            f"{path_segment(team)}/_apis/{path}"
        )

    def vssps_url(self, path: str) -> str:
        """URL of a profile/account API served from the VSSPS host."""
        return f"{self.config.vssps_url}/_apis/{path}"

    def work_item_url(self, organization: str, work_item_id: int) -> str:
        """Canonical API URL of a work item, as used in relation links."""
        return self.org_url(organization, f"wit/workItems/{work_item_id}")

    # Requests

    def _raise_for_status(self, method: str, url: str, response: requests.Response) -> None:
        """
        Map an unsuccessful Azure DevOps response to a structured error.

        Raises:
            AdoAuthenticationError: For 401 responses or an HTML sign-in page.
            AdoRateLimitError: For 429 responses.
            AdoNotFoundError: For 404 responses.
            AdoApiError: For any other non-2xx response.
        """
        status = response.status_code
        content_type = response.headers.get("Content-Type", "")

        if status == 401 or (status == 203 and "text/html" in content_type):
            # The cached token may have been revoked; next call asks the CLI again
            self.auth_manager.invalidate_cache()
            logger.error(f"Authentication failed for {method} {url} (status {status})")
            raise AdoAuthenticationError(
                "Azure DevOps rejected the Azure CLI credential. Run 'az login' and retry.",
                context={
                    "correlation_id": self.correlation_id,
                    "url": url,
                    "status_code": status,
                },
            )

        if status == 429:
            retry_after = response.headers.get("Retry-After")
            try:
                retry_after = int(retry_after) if retry_after else None
            except ValueError:
                retry_after = None
            raise AdoRateLimitError(
                f"Rate limit exceeded for {method} {url}",
                retry_after=retry_after,
                context={"correlation_id": self.correlation_id, "method": method, "url": url},
            )

        if status < 400:
            return

        message = response.reason or "Request failed"
        type_key = None
        try:
            body = response.json()
            if isinstance(body, dict):
                message = body.get("message") or message
                type_key = body.get("typeKey")
        except ValueError:
            if response.text:
                message = response.text[:500]

        logger.error(
            f"HTTP Error {status} for {method} {url}: {message} - "
            f"Response Body: {response.text[:500] if response.text else 'No response'}"
        )

        context = {
            "correlation_id": self.correlation_id,
            "method": method,
            "url": url,
            "type_key": type_key,
        }
        if status == 404:
            raise AdoNotFoundError(f"Azure DevOps API error 404: {message}", context=context)
        raise AdoApiError(
            f"Azure DevOps API error {status}: {message}", status_code=status, context=context
        )

    def _send_request(
        self,
        method: str,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
        data: bytes | None = None,
        content_type: str | None = None,
        accept: str = "application/json",
        api_version: str | None = API_VERSION,
    ) -> requests.Response:
        """
        Send an authenticated request to the Azure DevOps API with retry logic.

        Args:
            method: The HTTP method (e.g. 'GET', 'POST').
            url: The full URL of the endpoint, without query string.
            params: Query parameters. ``api-version`` is added unless present.
            json: JSON body.
            data: Raw body (binary uploads).
            content_type: Content-Type of the body.
            accept: Accept header.
            api_version: Default API version, or None to send none.

        Returns:
            requests.Response: The successful response.

        Raises:
            AdoError: A structured error for any failure (see ``_raise_for_status``).
        """
        method = method.upper()
        query = dict(params or {})
        if api_version:
            query.setdefault("api-version", api_version)

        @self.retry_manager.retry_on_failure(idempotent=method in IDEMPOTENT_METHODS)
        def make_request() -> requests.Response:
            headers = {
                "Accept": accept,
                # Ask for a 401 instead of a redirect to the interactive sign-in page
                "X-TFS-FedAuthRedirect": "Suppress",
                "X-Correlation-Id": self.correlation_id,
            }
            headers.update(self.auth_manager.get_auth_headers())
            if content_type:
                headers["Content-Type"] = content_type

            logger.debug(f"Request: {method} {url} params={query}")
            try:
                response = self.session.request(
                    method,
                    url,
                    params=query,
                    json=json,
                    data=data,
                    headers=headers,
                    timeout=self.config.request_timeout_seconds,
                )
            except requests.exceptions.Timeout as e:
                raise AdoTimeoutError(
                    f"Request timeout for {method} {url}",
                    timeout_seconds=self.config.request_timeout_seconds,
                    context={"correlation_id": self.correlation_id, "method": method, "url": url},
                    original_exception=e,
                ) from e
            except requests.exceptions.RequestException as e:
                raise AdoNetworkError(
                    f"Network error for {method} {url}: {e}",
                    context={
                        "correlation_id": self.correlation_id,
                        "method": method,
                        "url": url,
                        "error_type": type(e).__name__,
                    },
                    original_exception=e,
                ) from e

            logger.debug(f"Response status: {response.status_code}")
            self._raise_for_status(method, url, response)
            return response

        return make_request()

    def request_json(self, method: str, url: str, **kwargs) -> Any:
        """
        Send a request and decode the JSON response body.

        Returns:
            The parsed JSON, or None if the response has no content.

        Raises:
            AdoApiError: If the body is not valid JSON.
        """
        response = self._send_request(method, url, **kwargs)
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise AdoApiError(
                f"Malformed JSON in response to {method} {url}",
                status_code=response.status_code,
                context={"correlation_id": self.correlation_id, "url": url},
                original_exception=e,
            ) from e

    def get_json(self, url: str, params: dict[str, Any] | None = None, **kwargs) -> Any:
        """GET a JSON resource."""
        return self.request_json("GET", url, params=params, **kwargs)

    def get_list(self, url: str, params: dict[str, Any] | None = None, **kwargs) -> list[Any]:
        """GET a collection resource and return its ``value`` array."""
        data = self.get_json(url, params=params, **kwargs) or {}
        return data.get("value", []) if isinstance(data, dict) else []

    def get_response(
        self, url: str, params: dict[str, Any] | None = None, **kwargs
    ) -> requests.Response:
        """
        GET a resource and return the raw response.

        For paged APIs that return their continuation token in a response header.
        """
        return self._send_request("GET", url, params=params, **kwargs)

    def get_bytes(self, url: str, params: dict[str, Any] | None = None) -> bytes:
        """GET a binary resource."""
        response = self._send_request(
            "GET", url, params=params, accept="application/octet-stream"
        )
        return response.content
