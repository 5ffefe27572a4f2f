"""
Observability and tracing with Arize Phoenix.

Provides OpenTelemetry spans around indexing and search operations.
"""

from vaultrag.tracing.phoenix import add_span_attributes, record_exception, setup_tracing, traced

__all__ = ["add_span_attributes", "record_exception", "setup_tracing", "traced"]
