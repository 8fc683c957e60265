import json
import os
import subprocess
import time
from unittest.mock import Mock, patch

import pytest
from opentelemetry.trace import StatusCode

from azdo_mcp.auth import AuthCredential, AuthManager, AzureCliAuthProvider
from azdo_mcp.config import AuthConfig, AzdoMcpConfig, RetryConfig, TelemetryConfig
from azdo_mcp.errors import (
    AdoApiError,
    AdoAuthenticationError,
    AdoConfigurationError,
    AdoError,
    AdoNetworkError,
    AdoNotFoundError,
    AdoRateLimitError,
    AdoTimeoutError,
    AdoValidationError,
)
from azdo_mcp.retry import RetryManager
import azdo_mcp.telemetry as telemetry_module
from azdo_mcp.telemetry import TelemetryManager, shutdown_telemetry
from tests.utils.fake_azdo import StaticTokenProvider


@pytest.fixture
def clean_env(monkeypatch):
    for name in list(os.environ):
        if name.startswith("AZDO_"):
            monkeypatch.delenv(name)


@pytest.fixture
def no_sleep():
    with patch("azdo_mcp.retry.time.sleep") as sleep:
        yield sleep


def completed(stdout: str = "", returncode: int = 0, stderr: str = ""):
    return subprocess.CompletedProcess(
        args=["az"], returncode=returncode, stdout=stdout, stderr=stderr
    )


class TestStructuredErrors:
    def test_azdo_error_structure(self):
        error = AdoError(
            message="Test error",
            error_code="TEST_ERROR",
            context={"key": "value"},
            original_exception=ValueError("original"),
        )

        assert str(error) == "Test error", f"Expected 'Test error' but got '{str(error)}'"
        assert error.error_code == "TEST_ERROR", (
            f"Expected 'TEST_ERROR' but got '{error.error_code}'"
        )
        assert error.context == {"key": "value"}, (
            f"Expected {{'key': 'value'}} but got {error.context}"
        )
        assert isinstance(error.original_exception, ValueError), (
            f"Expected ValueError but got {type(error.original_exception)}"
        )

    def test_validation_error_names_fields(self):
        error = AdoValidationError("Missing title", fields=["title"])

        assert error.error_code == "AZDO_VALIDATION_ERROR", (
            f"Expected 'AZDO_VALIDATION_ERROR' but got '{error.error_code}'"
        )
        assert error.fields == ["title"], f"Expected fields ['title'] but got {error.fields}"
        assert error.context["fields"] == ["title"], (
            f"Expected context fields ['title'] but got {error.context}"
        )

    def test_not_found_is_api_error_with_404(self):
        error = AdoNotFoundError("Work item 7 not found", context={"work_item_id": 7})

        assert isinstance(error, AdoApiError), f"Expected AdoApiError subclass but got {type(error)}"
        assert error.status_code == 404, f"Expected status 404 but got {error.status_code}"
        assert error.error_code == "AZDO_NOT_FOUND", (
            f"Expected 'AZDO_NOT_FOUND' but got '{error.error_code}'"
        )
        assert error.context == {"work_item_id": 7, "status_code": 404}, (
            f"Expected work item id and status in context but got {error.context}"
        )

    def test_rate_limit_error_structure(self):
        error = AdoRateLimitError(message="Rate limited", retry_after=60, context={"url": "test"})

        assert error.error_code == "AZDO_RATE_LIMIT", (
            f"Expected 'AZDO_RATE_LIMIT' but got '{error.error_code}'"
        )
        assert error.retry_after == 60, f"Expected retry_after 60 but got {error.retry_after}"
        assert error.context["retry_after"] == 60, (
            f"Expected context retry_after 60 but got {error.context['retry_after']}"
        )


class TestConfiguration:
    def test_default_config_creation(self, clean_env):
        config = AzdoMcpConfig()

        assert config.organization is None, f"Expected no organization but got {config.organization}"
        assert config.project is None, f"Expected no project but got {config.project}"
        assert config.base_url == "https://dev.azure.com", (
            f"Expected default base_url but got {config.base_url}"
        )
        assert config.retry.max_retries == 3, (
            f"Expected max_retries 3 but got {config.retry.max_retries}"
        )
        assert config.retry.backoff_multiplier == 2.0, (
            f"Expected backoff_multiplier 2.0 but got {config.retry.backoff_multiplier}"
        )
        assert config.auth.timeout_seconds == 30, (
            f"Expected auth timeout 30 but got {config.auth.timeout_seconds}"
        )
        assert config.telemetry.enabled, (
            f"Expected telemetry enabled True but got {config.telemetry.enabled}"
        )
        assert config.request_timeout_seconds == 30, (
            f"Expected request timeout 30 but got {config.request_timeout_seconds}"
        )

    def test_config_from_environment(self, clean_env):
        with patch.dict(
            os.environ,
            {
                "AZDO_ORGANIZATION": "contoso",
                "AZDO_PROJECT": "Fabrikam",
                "AZDO_BASE_URL": "https://ado.internal.example/",
                "AZDO_RETRY_MAX_RETRIES": "5",
                "AZDO_RETRY_INITIAL_DELAY": "2.0",
                "AZDO_AUTH_TIMEOUT": "45",
                "AZDO_TELEMETRY_ENABLED": "false",
            },
        ):
            config = AzdoMcpConfig()

            assert config.organization == "contoso", (
                f"Expected organization 'contoso' but got '{config.organization}'"
            )
            assert config.project == "Fabrikam", (
                f"Expected project 'Fabrikam' but got '{config.project}'"
            )
            assert config.base_url == "https://ado.internal.example", (
                f"Expected trailing slash stripped but got '{config.base_url}'"
            )
            assert config.retry.max_retries == 5, (
                f"Expected max_retries 5 but got {config.retry.max_retries}"
            )
            assert config.retry.initial_delay == 2.0, (
                f"Expected initial_delay 2.0 but got {config.retry.initial_delay}"
            )
            assert config.auth.timeout_seconds == 45, (
                f"Expected auth timeout 45 but got {config.auth.timeout_seconds}"
            )
            assert not config.telemetry.enabled, (
                f"Expected telemetry enabled False but got {config.telemetry.enabled}"
            )

    def test_config_overrides_win_over_environment(self, clean_env):
        with patch.dict(os.environ, {"AZDO_ORGANIZATION": "env-org", "AZDO_PROJECT": "EnvProject"}):
            config = AzdoMcpConfig.from_env(organization="cli-org", request_timeout_seconds=60)

        assert config.organization == "cli-org", (
            f"Expected organization 'cli-org' but got '{config.organization}'"
        )
        assert config.project == "EnvProject", (
            f"Expected project from environment but got '{config.project}'"
        )
        assert config.request_timeout_seconds == 60, (
            f"Expected request_timeout_seconds 60 but got {config.request_timeout_seconds}"
        )

    def test_blank_environment_values_are_unset(self, clean_env):
        with patch.dict(os.environ, {"AZDO_ORGANIZATION": "   ", "AZDO_PROJECT": ""}):
            config = AzdoMcpConfig()

        assert config.organization is None, (
            f"Expected blank organization to be unset but got '{config.organization}'"
        )
        assert config.project is None, f"Expected blank project to be unset but got '{config.project}'"

    def test_config_validation(self):
        with pytest.raises(AdoConfigurationError) as exc_info:
            RetryConfig(max_retries=-1)

        assert exc_info.value.error_code == "AZDO_CONFIG_ERROR", (
            f"Expected error_code 'AZDO_CONFIG_ERROR' but got '{exc_info.value.error_code}'"
        )
        assert "max_retries must be non-negative" in str(exc_info.value), (
            f"Expected 'max_retries must be non-negative' in error message but got '{str(exc_info.value)}'"
        )

    @pytest.mark.parametrize(
        "kwargs, message",
        [
            ({"initial_delay": 0}, "initial_delay must be positive"),
            ({"backoff_multiplier": 1.0}, "backoff_multiplier must be greater than 1.0"),
            ({"max_delay": -1}, "max_delay must be positive"),
        ],
    )
    def test_retry_config_rejects_invalid_values(self, kwargs, message):
        with pytest.raises(AdoConfigurationError, match=message):
            RetryConfig(**kwargs)

    def test_invalid_numeric_environment_value(self, clean_env):
        with patch.dict(os.environ, {"AZDO_RETRY_MAX_RETRIES": "many"}):
            with pytest.raises(AdoConfigurationError) as exc_info:
                AzdoMcpConfig()

        assert "Invalid numeric configuration value" in str(exc_info.value), (
            f"Expected numeric configuration error but got '{str(exc_info.value)}'"
        )

    def test_environment_override_is_validated(self, clean_env):
        with patch.dict(os.environ, {"AZDO_RETRY_BACKOFF_MULTIPLIER": "0.5"}):
            with pytest.raises(AdoConfigurationError, match="backoff_multiplier"):
                AzdoMcpConfig()

    def test_base_url_must_be_http(self, clean_env):
        with pytest.raises(AdoConfigurationError, match="base_url must be an http"):
            AzdoMcpConfig(base_url="dev.azure.com")


class TestAzureCliAuthentication:
    def test_cli_token_is_returned_as_bearer_credential(self):
        token_json = json.dumps({"accessToken": "entra-token", "expires_on": 4102444800})

        with (
            patch("azdo_mcp.auth.shutil.which", return_value="/usr/bin/az"),
            patch("azdo_mcp.auth.subprocess.run", return_value=completed(token_json)) as run,
        ):
            credential = AzureCliAuthProvider(timeout=5).get_credential()

        assert credential.token == "entra-token", f"Expected CLI token but got '{credential.token}'"
        assert credential.method == "azure_cli", f"Expected azure_cli but got '{credential.method}'"
        assert credential.expires_at == 4102444800.0, (
            f"Expected expiry from expires_on but got {credential.expires_at}"
        )
        assert credential.to_header() == {"Authorization": "Bearer entra-token"}, (
            f"Expected bearer header but got {credential.to_header()}"
        )

        command = run.call_args.args[0]
        assert "499b84ac-1321-427f-aa17-267ca6975798" in command, (
            f"Expected Azure DevOps resource id in CLI command but got {command}"
        )
        assert run.call_args.kwargs["timeout"] == 5, (
            f"Expected timeout 5 but got {run.call_args.kwargs['timeout']}"
        )

    def test_legacy_expiry_format(self):
        token_json = json.dumps({"accessToken": "t", "expiresOn": "2099-12-31 23:00:00.000000"})

        with (
            patch("azdo_mcp.auth.shutil.which", return_value="/usr/bin/az"),
            patch("azdo_mcp.auth.subprocess.run", return_value=completed(token_json)),
        ):
            credential = AzureCliAuthProvider().get_credential()

        assert credential.expires_at is not None and credential.expires_at > time.time(), (
            f"Expected a future expiry parsed from expiresOn but got {credential.expires_at}"
        )

    def test_missing_cli_yields_no_credential(self):
        with patch("azdo_mcp.auth.shutil.which", return_value=None):
            credential = AzureCliAuthProvider().get_credential()

        assert credential is None, f"Expected no credential without az but got {credential}"

    @pytest.mark.parametrize(
        "result",
        [
            completed(returncode=1, stderr="Please run 'az login' to setup account."),
            completed("not json"),
            completed(json.dumps({"accessToken": ""})),
        ],
    )
    def test_failed_cli_call_yields_no_credential(self, result):
        with (
            patch("azdo_mcp.auth.shutil.which", return_value="/usr/bin/az"),
            patch("azdo_mcp.auth.subprocess.run", return_value=result),
        ):
            credential = AzureCliAuthProvider().get_credential()

        assert credential is None, f"Expected no credential but got {credential}"

    def test_cli_timeout_yields_no_credential(self):
        with (
            patch("azdo_mcp.auth.shutil.which", return_value="/usr/bin/az"),
            patch(
                "azdo_mcp.auth.subprocess.run",
                side_effect=subprocess.TimeoutExpired(cmd="az", timeout=30),
            ),
        ):
            credential = AzureCliAuthProvider().get_credential()

        assert credential is None, f"Expected no credential after timeout but got {credential}"


class TestAuthenticationChaining:
    def test_auth_manager_provider_chain(self):
        failing = Mock()
        failing.get_name.return_value = "Failing Provider"
        failing.get_credential.return_value = None

        auth_manager = AuthManager(AuthConfig(), providers=[failing, StaticTokenProvider("chain")])
        credential = auth_manager.get_credential()

        assert credential.token == "chain", f"Expected token 'chain' but got '{credential.token}'"
        assert auth_manager.get_auth_method() == "static", (
            f"Expected method 'static' but got '{auth_manager.get_auth_method()}'"
        )

    def test_auth_manager_no_providers_succeed(self):
        with patch("azdo_mcp.auth.shutil.which", return_value=None):
            auth_manager = AuthManager(AuthConfig())
            auth_manager.setup_default_providers()

            with pytest.raises(AdoAuthenticationError) as exc_info:
                auth_manager.get_credential()

        assert exc_info.value.error_code == "AZDO_AUTH_FAILED", (
            f"Expected error_code 'AZDO_AUTH_FAILED' but got '{exc_info.value.error_code}'"
        )
        assert "az login" in str(exc_info.value), (
            f"Expected 'az login' hint in error message but got '{str(exc_info.value)}'"
        )
        assert exc_info.value.context["providers_tried"] == ["Azure CLI"], (
            f"Expected Azure CLI in providers_tried but got {exc_info.value.context}"
        )

    def test_auth_manager_credential_caching(self):
        provider = StaticTokenProvider()
        auth_manager = AuthManager(AuthConfig(), providers=[provider])

        credential1 = auth_manager.get_credential()
        credential2 = auth_manager.get_credential()

        assert provider.calls == 1, (
            f"Expected provider called 1 time after cache hit but was called {provider.calls} times"
        )
        assert credential1 is credential2, "Expected the cached credential to be reused"

    def test_credential_near_expiry_is_refreshed(self):
        provider = Mock()
        provider.get_name.return_value = "Mock Provider"
        provider.get_credential.side_effect = [
            AuthCredential(token="old", method="mock", expires_at=time.time() + 60),
            AuthCredential(token="new", method="mock", expires_at=time.time() + 3600),
        ]
        auth_manager = AuthManager(AuthConfig(refresh_margin_seconds=300), providers=[provider])

        assert auth_manager.get_credential().token == "old", "Expected the first token"
        assert auth_manager.get_credential().token == "new", (
            "Expected a token within the refresh margin to be replaced"
        )

    def test_auth_manager_cache_invalidation(self):
        provider = StaticTokenProvider()
        auth_manager = AuthManager(AuthConfig(), providers=[provider])

        auth_manager.get_credential()
        auth_manager.invalidate_cache()
        auth_manager.get_credential()

        assert provider.calls == 2, (
            f"Expected provider called again after invalidation but was called {provider.calls} times"
        )


class TestRetryMechanism:
    def test_retry_manager_success_no_retry(self, no_sleep):
        retry_manager = RetryManager(RetryConfig(max_retries=3))

        @retry_manager.retry_on_failure
        def successful_function():
            return "success"

        result = successful_function()
        assert result == "success", f"Expected result 'success' but got '{result}'"
        assert no_sleep.call_count == 0, f"Expected no sleep but slept {no_sleep.call_count} times"

    def test_retry_manager_eventual_success(self, no_sleep):
        retry_manager = RetryManager(RetryConfig(max_retries=3, initial_delay=0.1, jitter=False))

        call_count = 0

        @retry_manager.retry_on_failure
        def flaky_function():
            nonlocal call_count
            call_count += 1
            if call_count < 3:
                raise AdoNetworkError("Network error")
            return "success"

        result = flaky_function()
        assert result == "success", f"Expected result 'success' but got '{result}'"
        assert call_count == 3, (
            f"Expected function called 3 times but was called {call_count} times"
        )
        delays = [c.args[0] for c in no_sleep.call_args_list]
        assert delays == pytest.approx([0.1, 0.2]), f"Expected exponential backoff but got {delays}"

    def test_retry_manager_max_retries_exceeded(self, no_sleep):
        retry_manager = RetryManager(RetryConfig(max_retries=2, initial_delay=0.1))

        call_count = 0

        @retry_manager.retry_on_failure
        def always_failing_function():
            nonlocal call_count
            call_count += 1
            raise AdoTimeoutError("Timed out")

        with pytest.raises(AdoTimeoutError):
            always_failing_function()

        assert call_count == 3, f"Expected 1 call plus 2 retries but got {call_count} calls"

    def test_retry_manager_rate_limit_honours_retry_after(self, no_sleep):
        retry_manager = RetryManager(RetryConfig(max_retries=3, initial_delay=0.1, jitter=False))

        call_count = 0

        @retry_manager.retry_on_failure(idempotent=False)
        def rate_limited_function():
            nonlocal call_count
            call_count += 1
            if call_count < 2:
                raise AdoRateLimitError("Rate limited", retry_after=7)
            return "success"

        result = rate_limited_function()
        assert result == "success", f"Expected result 'success' but got '{result}'"
        assert no_sleep.call_args.args[0] == 7.0, (
            f"Expected Retry-After delay of 7s but got {no_sleep.call_args.args[0]}"
        )

    def test_non_idempotent_call_is_not_retried_on_network_error(self, no_sleep):
        retry_manager = RetryManager(RetryConfig(max_retries=3))

        call_count = 0

        @retry_manager.retry_on_failure(idempotent=False)
        def create_something():
            nonlocal call_count
            call_count += 1
            raise AdoApiError("Server error", status_code=503)

        with pytest.raises(AdoApiError):
            create_something()

        assert call_count == 1, f"Expected a single attempt for a write but got {call_count}"

    def test_retry_manager_non_retryable_error(self, no_sleep):
        retry_manager = RetryManager(RetryConfig(max_retries=3))

        call_count = 0

        @retry_manager.retry_on_failure
        def not_found_function():
            nonlocal call_count
            call_count += 1
            raise AdoNotFoundError("Not found")

        with pytest.raises(AdoNotFoundError):
            not_found_function()

        assert call_count == 1, f"Expected no retry for 404 but got {call_count} calls"

    def test_delay_is_capped(self):
        retry_manager = RetryManager(
            RetryConfig(initial_delay=1.0, max_delay=5.0, backoff_multiplier=10.0, jitter=False)
        )

        assert retry_manager._calculate_delay(3) == 5.0, (
            f"Expected delay capped at 5.0 but got {retry_manager._calculate_delay(3)}"
        )


class TestTelemetryIntegration:
    def test_shutdown_flushes_and_resets_global_manager(self, monkeypatch):
        manager = Mock(spec=TelemetryManager)
        monkeypatch.setattr(telemetry_module, "_telemetry_manager", manager)

        shutdown_telemetry()
        shutdown_telemetry()

        manager.shutdown.assert_called_once_with()
        assert telemetry_module.get_telemetry_manager() is None, (
            "Expected the global manager cleared after shutdown"
        )

    def test_shutdown_of_disabled_manager_is_a_no_op(self):
        telemetry = TelemetryManager(TelemetryConfig(enabled=False))

        telemetry.shutdown()

        assert telemetry.tracer is None

    def test_telemetry_disabled(self):
        telemetry = TelemetryManager(TelemetryConfig(enabled=False))

        assert telemetry.tracer is None, (
            f"Expected tracer to be None when disabled but got {telemetry.tracer}"
        )

    def test_trace_api_call_records_span(self, telemetry_setup):
        telemetry = TelemetryManager(TelemetryConfig(enabled=False))

        with telemetry.trace_api_call("list_teams", **{"azdo.project": "Fabrikam", "skip": None}):
            pass

        spans = telemetry_setup.get_finished_spans()
        span = next(s for s in spans if s.name == "azdo_list_teams")
        assert span.attributes["azdo.project"] == "Fabrikam", (
            f"Expected project attribute but got {dict(span.attributes)}"
        )
        assert "skip" not in span.attributes, "Expected None attributes to be skipped"

    def test_trace_api_call_marks_errors(self, telemetry_setup):
        telemetry = TelemetryManager(TelemetryConfig(enabled=False))

        with pytest.raises(AdoNetworkError):
            with telemetry.trace_api_call("get_board"):
                raise AdoNetworkError("boom")

        span = next(s for s in telemetry_setup.get_finished_spans() if s.name == "azdo_get_board")
        assert span.status.status_code == StatusCode.ERROR, (
            f"Expected error status but got {span.status.status_code}"
        )
