"""Test utilities for Azure DevOps Boards MCP testing."""

from .fake_azdo import FakeAzureDevOps, StaticTokenProvider, make_test_client
from .telemetry import SpanAnalyzer, analyze_spans, clear_spans, telemetry_setup

__all__ = [
    "FakeAzureDevOps",
    "StaticTokenProvider",
    "make_test_client",
    "SpanAnalyzer",
    "telemetry_setup",
    "analyze_spans",
    "clear_spans",
]
