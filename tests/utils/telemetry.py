"""
Telemetry utilities for testing Azure DevOps operations with OpenTelemetry.

Provides tools for analyzing spans to verify API operations, retries and
their attributes in tests.
"""

from typing import Any

import pytest
from opentelemetry import trace
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter


class SpanAnalyzer:
    """
    Helper class to analyze OpenTelemetry spans for testing.

    Provides methods to verify API operations and retry behavior through
    telemetry data.
    """

    def __init__(self, spans: list[Any]):
        self.spans = spans

    def find_spans_by_name(self, name: str) -> list[Any]:
        """Find all spans with the given name."""
        return [span for span in self.spans if span.name == name]

    def get_span_attributes(self, span: Any) -> dict[str, Any]:
        """Get all attributes from a span."""
        return dict(span.attributes or {})

    def count_api_calls(self, operation: str = None) -> int:
        """
        Count the number of Azure DevOps operations traced.

        Args:
            operation: Optional specific operation to count (e.g., "list_teams")
        """
        if operation:
            api_spans = self.find_spans_by_name(f"azdo_{operation}")
        else:
            api_spans = [span for span in self.spans if span.name.startswith("azdo_")]
        return len(api_spans)

    def count_retry_attempts(self) -> int:
        """Count the attempts made by the retry manager, first attempts included."""
        return len(self.find_spans_by_name("retry_attempt"))

    def count_retry_delays(self) -> int:
        """Count the backoff delays between attempts."""
        return len(self.find_spans_by_name("retry_delay"))

    def get_operation_attributes(self, operation: str) -> dict[str, Any]:
        """Attributes of the latest span of an operation, or {} if it was not traced."""
        spans = self.find_spans_by_name(f"azdo_{operation}")
        if spans:
            return self.get_span_attributes(spans[-1])
        return {}

    def get_all_span_names(self) -> list[str]:
        """Get all span names for debugging."""
        return [span.name for span in self.spans]


@pytest.fixture
def telemetry_setup():
    """
    Set up OpenTelemetry for testing with in-memory span export.

    Yields:
        InMemorySpanExporter: Exporter to capture spans for analysis
    """
    memory_exporter = InMemorySpanExporter()

    # Get current tracer provider or create new one
    current_provider = trace.get_tracer_provider()
    if not hasattr(current_provider, "add_span_processor"):
        # Only create new provider if none exists
        provider = TracerProvider()
        trace.set_tracer_provider(provider)
        current_provider = provider

    processor = SimpleSpanProcessor(memory_exporter)
    current_provider.add_span_processor(processor)

    yield memory_exporter

    # The provider cannot drop a processor; shutting it down stops further exports
    processor.shutdown()
    memory_exporter.clear()


def analyze_spans(memory_exporter: InMemorySpanExporter) -> SpanAnalyzer:
    """
    Create a SpanAnalyzer from the current spans in the exporter.

    Args:
        memory_exporter: The in-memory span exporter from telemetry_setup

    Returns:
        SpanAnalyzer: Analyzer for the captured spans
    """
    return SpanAnalyzer(memory_exporter.get_finished_spans())


def clear_spans(memory_exporter: InMemorySpanExporter) -> None:
    """Clear all captured spans from the exporter."""
    memory_exporter.clear()
