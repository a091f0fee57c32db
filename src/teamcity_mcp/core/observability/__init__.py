"""
Observability utilities for teamcity-mcp.

Provides structured audit logging, metrics emission, and the @mcp_tool
decorator for MCP tool handlers.
"""

from teamcity_mcp.core.observability.audit import (
    AuditEvent,
    AuditEventType,
    AuditLogger,
    audit_log,
    get_audit_logger,
)
from teamcity_mcp.core.observability.decorators import mcp_tool
from teamcity_mcp.core.observability.metrics import (
    Metric,
    MetricsCollector,
    MetricType,
    get_metrics,
)

__all__ = [
    # Metrics
    "Metric",
    "MetricType",
    "MetricsCollector",
    "get_metrics",
    # Audit
    "AuditEvent",
    "AuditEventType",
    "AuditLogger",
    "audit_log",
    "get_audit_logger",
    # Decorators
    "mcp_tool",
]
