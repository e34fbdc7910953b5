"""
Governance Metrics
==================
Prometheus metric definitions for rate limiting, store health and the audit log.
"""

from prometheus_client import CollectorRegistry, Counter, generate_latest

# Custom registry so embedding services can mount it alongside their own
GOVERNANCE_REGISTRY = CollectorRegistry()

RATE_LIMIT_DECISIONS = Counter(
    name="vitalgate_rate_limit_decisions_total",
    documentation="Rate limit decisions by bucket and outcome",
    labelnames=["bucket", "outcome"],
    registry=GOVERNANCE_REGISTRY,
)

STORE_DEGRADED = Counter(
    name="vitalgate_store_degraded_total",
    documentation="Counter store failures handled by the failure policy",
    labelnames=["bucket", "policy"],
    registry=GOVERNANCE_REGISTRY,
)

AUDIT_APPENDS = Counter(
    name="vitalgate_audit_appends_total",
    documentation="Audit append attempts by outcome",
    labelnames=["outcome"],
    registry=GOVERNANCE_REGISTRY,
)

AUDIT_INTEGRITY_FAILURES = Counter(
    name="vitalgate_audit_integrity_failures_total",
    documentation="Audit entries that failed integrity verification",
    registry=GOVERNANCE_REGISTRY,
)

SECURITY_ALERTS = Counter(
    name="vitalgate_security_alerts_total",
    documentation="High and critical security events that raised an alert",
    labelnames=["action", "severity"],
    registry=GOVERNANCE_REGISTRY,
)

SUSPICIOUS_IP_BLOCKS = Counter(
    name="vitalgate_suspicious_ip_blocks_total",
    documentation="Source addresses escalated to an automatic block",
    registry=GOVERNANCE_REGISTRY,
)

USAGE_WARNINGS = Counter(
    name="vitalgate_usage_warnings_total",
    documentation="Responses whose quota usage crossed the warning threshold",
    registry=GOVERNANCE_REGISTRY,
)


def get_metrics_text() -> bytes:
    """Render the governance registry in Prometheus text format."""
    return generate_latest(GOVERNANCE_REGISTRY)
